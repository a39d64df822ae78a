"""Process listing for fzk.

Each platform exposes its process table through a different facility with a
different column layout. A ``ProcessListingFormat`` wraps one of them and is
selected once at startup; ``ProcessSource`` drives it and keeps the last good
result around for when a refresh fails.
"""

from __future__ import annotations

import posixpath
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod

import psutil
import structlog

from fzk.errors import DecodeFailure, ExecutionFailure, ProcessListingError, SpawnFailure
from fzk.models import UNSET_PID, ProcessRecord

log = structlog.get_logger()

LISTING_TIMEOUT = 10.0

FORMAT_NAMES = ("auto", "posix", "windows", "native")


def _parse_pid(text: str) -> int:
    try:
        pid = int(text)
    except ValueError:
        return UNSET_PID
    if pid < 0 or pid >= UNSET_PID:
        return UNSET_PID
    return pid


def run_listing(argv: list[str], timeout: float = LISTING_TIMEOUT) -> str:
    """
    Run an external listing command and return its decoded stdout.

    Raises:
        SpawnFailure: The command could not be started.
        ExecutionFailure: The command exited non-zero or timed out.
        DecodeFailure: stdout was not valid UTF-8.
    """
    try:
        result = subprocess.run(argv, capture_output=True, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as e:
        raise ExecutionFailure(f"{argv[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise SpawnFailure(f"failed to exec {argv[0]}: {e}") from e

    if result.returncode != 0:
        raise ExecutionFailure(f"{argv[0]} exited with status {result.returncode}")

    try:
        return result.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeFailure(f"{argv[0]} produced non-UTF-8 output") from e


class ProcessListingFormat(ABC):
    """How one platform lists and kills processes."""

    name: str = ""
    headers: tuple[str, ...] = ()

    @property
    def reports_cpu(self) -> bool:
        return len(self.headers) > 3

    @abstractmethod
    def list_processes(self) -> list[ProcessRecord]:
        """Return the current process table, raising ProcessListingError on failure."""

    @abstractmethod
    def kill_argv(self, pid: int) -> list[str]:
        """Command line that forcefully terminates ``pid``."""


class PosixFormat(ProcessListingFormat):
    """``ps`` based listing for Linux and macOS."""

    name = "posix"
    headers = ("Command", "PID", "Memory Usage (%)", "CPU Usage (%)")
    argv = ["ps", "-A", "-o", "comm,pid,%mem,%cpu"]

    def __init__(self, strip_path: bool | None = None) -> None:
        # BSD ps prints the executable path in the comm column
        self._strip_path = sys.platform == "darwin" if strip_path is None else strip_path

    def list_processes(self) -> list[ProcessRecord]:
        return self.parse(run_listing(self.argv))

    def parse(self, text: str) -> list[ProcessRecord]:
        """Parse ``ps`` output; rows with a bad PID are kept with UNSET_PID."""
        records: list[ProcessRecord] = []
        for line in text.splitlines()[1:]:
            if not line.strip():
                continue
            fields = line.rsplit(None, 3)
            fields += [""] * (4 - len(fields))
            command, pid, mem, cpu = (f.strip() for f in fields)
            if self._strip_path:
                command = posixpath.basename(command) or command
            records.append(
                ProcessRecord(
                    command=command,
                    pid=_parse_pid(pid),
                    memory_metric=mem,
                    cpu_metric=cpu,
                )
            )
        return records

    def kill_argv(self, pid: int) -> list[str]:
        return ["kill", "-9", str(pid)]


class WindowsFormat(ProcessListingFormat):
    """``tasklist`` based listing for Windows."""

    name = "windows"
    headers = ("Command", "PID", "Memory Usage")
    argv = ["tasklist", "/NH", "/FO", "TABLE"]

    def list_processes(self) -> list[ProcessRecord]:
        return self.parse(run_listing(self.argv))

    def parse(self, text: str) -> list[ProcessRecord]:
        """
        Parse ``tasklist /FO TABLE`` output.

        Columns are Image Name, PID, Session Name, Session#, Mem Usage and
        the memory unit. Image names may contain spaces, so the fixed columns
        are taken from the right. Rows with a bad PID are dropped.
        """
        records: list[ProcessRecord] = []
        for line in text.splitlines():
            cols = line.split()
            if len(cols) < 6:
                continue
            pid = _parse_pid(cols[-5])
            if pid == UNSET_PID:
                continue
            size, unit = cols[-2], cols[-1]
            records.append(
                ProcessRecord(
                    command=" ".join(cols[:-5]),
                    pid=pid,
                    memory_metric=f"{size} {unit}iB",
                )
            )
        return records

    def kill_argv(self, pid: int) -> list[str]:
        return ["taskkill", "/T", "/F", "/PID", str(pid)]


class NativeFormat(ProcessListingFormat):
    """psutil based listing, used when no listing binary is available."""

    name = "native"
    headers = PosixFormat.headers

    def __init__(self) -> None:
        self._killer: ProcessListingFormat = (
            WindowsFormat() if sys.platform.startswith("win") else PosixFormat()
        )

    def list_processes(self) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []
        try:
            procs = psutil.process_iter(attrs=["name", "pid", "memory_percent", "cpu_percent"])
            for proc in procs:
                try:
                    info = proc.info
                    records.append(
                        ProcessRecord(
                            command=info.get("name") or "",
                            pid=info.get("pid", UNSET_PID),
                            memory_metric=f"{info.get('memory_percent') or 0.0:.1f}",
                            cpu_metric=f"{info.get('cpu_percent') or 0.0:.1f}",
                        )
                    )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    # Died mid-iteration or not ours to inspect
                    continue
        except psutil.Error as e:
            raise ExecutionFailure(f"psutil listing failed: {e}") from e
        return records

    def kill_argv(self, pid: int) -> list[str]:
        return self._killer.kill_argv(pid)


def select_listing_format(name: str = "auto") -> ProcessListingFormat:
    """
    Pick the listing format for this host.

    ``auto`` chooses windows or posix by platform, falling back to the psutil
    based format when the listing binary is not on PATH.
    """
    if name == "posix":
        return PosixFormat()
    if name == "windows":
        return WindowsFormat()
    if name == "native":
        return NativeFormat()
    if name != "auto":
        raise ValueError(f"unknown listing format: {name!r}")

    fmt: ProcessListingFormat = (
        WindowsFormat() if sys.platform.startswith("win") else PosixFormat()
    )
    if shutil.which(fmt.argv[0]) is None:
        log.warning("listing_binary_missing", binary=fmt.argv[0], fallback="native")
        return NativeFormat()
    return fmt


class ProcessSource:
    """Produces fresh process tables, keeping the last good one on failure."""

    def __init__(self, listing_format: ProcessListingFormat) -> None:
        self._format = listing_format
        self._last: list[ProcessRecord] = []

    @property
    def listing_format(self) -> ProcessListingFormat:
        return self._format

    def refresh(self) -> list[ProcessRecord]:
        """
        Return the current process table.

        Listing failures are logged and absorbed: the previous result (empty
        before the first success) is returned unchanged.
        """
        try:
            records = self._format.list_processes()
        except ProcessListingError as e:
            log.warning(
                "process_listing_failed",
                format=self._format.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return list(self._last)

        self._last = records
        return list(records)
