"""Tests for process listing formats and ProcessSource."""

import subprocess
import sys
from unittest.mock import MagicMock, patch

import psutil
import pytest

from fzk.errors import DecodeFailure, ExecutionFailure, SpawnFailure
from fzk.models import UNSET_PID, ProcessRecord
from fzk.source import (
    NativeFormat,
    PosixFormat,
    ProcessSource,
    WindowsFormat,
    run_listing,
    select_listing_format,
)

PS_OUTPUT = """\
COMMAND           PID %MEM %CPU
systemd             1  0.1  0.0
kworker/0:1        12  0.0  0.0
tmux: server      999  0.2  1.5

bad             abc  0.0  0.0
"""

TASKLIST_OUTPUT = """
System Idle Process              0 Services                   0          8 K
System                           4 Services                   0      2,144 K
chrome.exe                    4321 Console                    1    123,456 K
not a real row
broken.exe                    n/a Console                    1     10,000 K
"""


def completed(stdout: bytes = b"", returncode: int = 0) -> MagicMock:
    """Stand-in for subprocess.CompletedProcess."""
    return MagicMock(stdout=stdout, stderr=b"", returncode=returncode)


class TestPosixFormat:
    """Tests for ps output parsing."""

    def test_parses_four_columns(self):
        """Test each row maps to command, pid, memory and cpu."""
        records = PosixFormat(strip_path=False).parse(PS_OUTPUT)

        assert records[0] == ProcessRecord("systemd", 1, "0.1", "0.0")
        assert records[1] == ProcessRecord("kworker/0:1", 12, "0.0", "0.0")

    def test_skips_header_and_blank_lines(self):
        """Test the header row and empty lines produce no records."""
        records = PosixFormat(strip_path=False).parse(PS_OUTPUT)

        assert len(records) == 4
        assert all(r.command != "COMMAND" for r in records)

    def test_command_with_spaces(self):
        """Test a command containing spaces stays intact."""
        records = PosixFormat(strip_path=False).parse(PS_OUTPUT)

        assert records[2].command == "tmux: server"
        assert records[2].pid == 999
        assert records[2].cpu_metric == "1.5"

    def test_bad_pid_kept_with_sentinel(self):
        """Test an unparsable PID still yields a record (permissive)."""
        records = PosixFormat(strip_path=False).parse(PS_OUTPUT)

        assert records[3].command == "bad"
        assert records[3].pid == UNSET_PID

    def test_strips_path_when_requested(self):
        """Test BSD-style comm paths are reduced to the executable name."""
        output = (
            "COMM PID %MEM %CPU\n"
            "/usr/sbin/sshd 55 0.0 0.0\n"
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome 77 1.0 2.0\n"
        )
        records = PosixFormat(strip_path=True).parse(output)

        assert [r.command for r in records] == ["sshd", "Google Chrome"]

    def test_headers_and_kill(self):
        """Test the posix format reports CPU and kills with SIGKILL."""
        fmt = PosixFormat()

        assert fmt.reports_cpu
        assert fmt.headers[0] == "Command"
        assert fmt.kill_argv(42) == ["kill", "-9", "42"]


class TestWindowsFormat:
    """Tests for tasklist output parsing."""

    def test_parses_table(self):
        """Test rows map to command, pid and memory with an iB suffix."""
        records = WindowsFormat().parse(TASKLIST_OUTPUT)

        assert records[0] == ProcessRecord("System Idle Process", 0, "8 KiB")
        assert records[1] == ProcessRecord("System", 4, "2,144 KiB")
        assert records[2] == ProcessRecord("chrome.exe", 4321, "123,456 KiB")

    def test_drops_bad_rows(self):
        """Test rows with an unparsable PID are dropped (strict)."""
        records = WindowsFormat().parse(TASKLIST_OUTPUT)

        assert len(records) == 3
        assert all(r.pid != UNSET_PID for r in records)
        assert all(r.cpu_metric is None for r in records)

    def test_pids_unique(self):
        """Test retained records never share a PID."""
        records = WindowsFormat().parse(TASKLIST_OUTPUT)
        pids = [r.pid for r in records]

        assert len(pids) == len(set(pids))

    def test_headers_and_kill(self):
        """Test the windows format has no CPU column and tree-kills."""
        fmt = WindowsFormat()

        assert not fmt.reports_cpu
        assert fmt.kill_argv(4321) == ["taskkill", "/T", "/F", "/PID", "4321"]


class _Proc:
    """Minimal psutil.Process stand-in."""

    def __init__(self, info: dict | None = None, error: Exception | None = None) -> None:
        self._info = info
        self._error = error

    @property
    def info(self) -> dict:
        if self._error is not None:
            raise self._error
        return self._info


class TestNativeFormat:
    """Tests for the psutil backed listing."""

    def test_formats_percentages(self):
        """Test memory and cpu are rendered with one decimal place."""
        procs = [
            _Proc({"name": "python", "pid": 10, "memory_percent": 1.234, "cpu_percent": 12.0}),
            _Proc({"name": None, "pid": 11, "memory_percent": None, "cpu_percent": None}),
        ]
        with patch("fzk.source.psutil.process_iter", return_value=procs):
            records = NativeFormat().list_processes()

        assert records[0] == ProcessRecord("python", 10, "1.2", "12.0")
        assert records[1] == ProcessRecord("", 11, "0.0", "0.0")

    def test_skips_vanished_processes(self):
        """Test processes that die mid-iteration are skipped."""
        procs = [
            _Proc(error=psutil.NoSuchProcess(99)),
            _Proc({"name": "bash", "pid": 12, "memory_percent": 0.1, "cpu_percent": 0.0}),
        ]
        with patch("fzk.source.psutil.process_iter", return_value=procs):
            records = NativeFormat().list_processes()

        assert [r.pid for r in records] == [12]

    def test_real_listing(self):
        """Test the native format lists this very process."""
        records = NativeFormat().list_processes()

        assert len(records) > 0
        assert any(r.pid == psutil.Process().pid for r in records)


class TestRunListing:
    """Tests for the external command runner."""

    def test_success_returns_text(self):
        with patch("fzk.source.subprocess.run", return_value=completed(b"hello\n")):
            assert run_listing(["ps"]) == "hello\n"

    def test_spawn_failure(self):
        with patch("fzk.source.subprocess.run", side_effect=FileNotFoundError("ps")):
            with pytest.raises(SpawnFailure):
                run_listing(["ps"])

    def test_execution_failure(self):
        with patch("fzk.source.subprocess.run", return_value=completed(returncode=1)):
            with pytest.raises(ExecutionFailure):
                run_listing(["ps"])

    def test_timeout_is_execution_failure(self):
        timeout = subprocess.TimeoutExpired(["ps"], 10.0)
        with patch("fzk.source.subprocess.run", side_effect=timeout):
            with pytest.raises(ExecutionFailure):
                run_listing(["ps"])

    def test_decode_failure(self):
        with patch("fzk.source.subprocess.run", return_value=completed(b"\xff\xfe\xfa")):
            with pytest.raises(DecodeFailure):
                run_listing(["ps"])


class TestProcessSource:
    """Tests for ProcessSource.refresh()."""

    def test_refresh_returns_parsed_records(self):
        source = ProcessSource(PosixFormat(strip_path=False))
        with patch("fzk.source.subprocess.run", return_value=completed(PS_OUTPUT.encode())):
            records = source.refresh()

        assert len(records) == 4

    @pytest.mark.parametrize(
        "failure",
        [
            {"side_effect": OSError("no such file")},
            {"return_value": completed(returncode=1)},
            {"return_value": completed(b"\xff\xfe\xfa")},
        ],
        ids=["spawn", "exit-status", "decode"],
    )
    def test_failure_keeps_previous_result(self, failure):
        """Test a failed refresh returns the previous table unchanged."""
        source = ProcessSource(PosixFormat(strip_path=False))
        with patch("fzk.source.subprocess.run", return_value=completed(PS_OUTPUT.encode())):
            first = source.refresh()

        with patch("fzk.source.subprocess.run", **failure):
            second = source.refresh()

        assert second == first

    def test_failure_before_first_success_is_empty(self):
        source = ProcessSource(WindowsFormat())
        with patch("fzk.source.subprocess.run", side_effect=OSError("no tasklist")):
            assert source.refresh() == []

    def test_refresh_returns_independent_lists(self):
        """Test callers cannot alias the source's remembered result."""
        source = ProcessSource(PosixFormat(strip_path=False))
        with patch("fzk.source.subprocess.run", return_value=completed(PS_OUTPUT.encode())):
            first = source.refresh()
        first.clear()

        with patch("fzk.source.subprocess.run", return_value=completed(returncode=1)):
            assert len(source.refresh()) == 4


class TestSelectListingFormat:
    """Tests for startup format selection."""

    def test_explicit_names(self):
        assert isinstance(select_listing_format("posix"), PosixFormat)
        assert isinstance(select_listing_format("windows"), WindowsFormat)
        assert isinstance(select_listing_format("native"), NativeFormat)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            select_listing_format("plan9")

    def test_auto_picks_windows(self):
        with (
            patch.object(sys, "platform", "win32"),
            patch("fzk.source.shutil.which", return_value="C:\\tasklist.exe"),
        ):
            assert isinstance(select_listing_format("auto"), WindowsFormat)

    def test_auto_picks_posix(self):
        with (
            patch.object(sys, "platform", "linux"),
            patch("fzk.source.shutil.which", return_value="/bin/ps"),
        ):
            assert isinstance(select_listing_format("auto"), PosixFormat)

    def test_auto_falls_back_to_native(self):
        with (
            patch.object(sys, "platform", "linux"),
            patch("fzk.source.shutil.which", return_value=None),
        ):
            assert isinstance(select_listing_format("auto"), NativeFormat)
