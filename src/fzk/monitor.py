"""Process monitoring engine for fzk."""

import threading
import time

import structlog

from fzk.errors import LockContention
from fzk.killer import TerminationExecutor
from fzk.models import KillResult, MonitorConfig, ProcessRecord
from fzk.ranker import rank, strip_suffix
from fzk.source import ProcessListingFormat, ProcessSource

log = structlog.get_logger()


class ProcessMonitor:
    """
    Thread-safe store for the latest process snapshot.

    The snapshot lives behind a private lock. The poller thread replaces it
    through ``refresh()``; the UI thread reads it through the non-blocking
    ``get_all()`` and ``get_by_fuzzy()``, which raise ``LockContention``
    rather than wait on a refresh in progress.
    """

    def __init__(
        self,
        config: MonitorConfig,
        listing_format: ProcessListingFormat,
        source: ProcessSource | None = None,
        executor: TerminationExecutor | None = None,
    ) -> None:
        """
        Initialize the ProcessMonitor.

        Args:
            config: Interval, threshold and match limit for the session.
            listing_format: Platform listing/kill format selected at startup.
            source: Process table producer. Built from the format if omitted.
            executor: Kill facility. Built from the format if omitted.
        """
        self._config = config
        self._format = listing_format
        self._source = source or ProcessSource(listing_format)
        self._executor = executor or TerminationExecutor(listing_format)
        self._lock = threading.Lock()
        self._records: list[ProcessRecord] = []
        # PIDs killed while a listing was in flight
        self._killed_since_listing: set[int] = set()

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def headers(self) -> tuple[str, ...]:
        """Column titles for the active platform format."""
        return self._format.headers

    @property
    def reports_cpu(self) -> bool:
        return self._format.reports_cpu

    def refresh(self) -> None:
        """
        Replace the snapshot with a fresh listing. Called by the poller only.

        Processes killed after the listing started are left out of the new
        snapshot, so a kill is never undone by a listing that predates it.
        """
        with self._lock:
            self._killed_since_listing = set()
        records = self._source.refresh()
        with self._lock:
            if self._killed_since_listing:
                records = [p for p in records if p.pid not in self._killed_since_listing]
            self._records = records
        log.debug("snapshot_refreshed", count=len(records))

    def get_all(self) -> list[ProcessRecord] | None:
        """
        Copy of every record, or None if the snapshot is empty.

        Raises:
            LockContention: A refresh or kill currently holds the snapshot.
        """
        if not self._lock.acquire(blocking=False):
            raise LockContention("snapshot is being updated")
        try:
            if not self._records:
                return None
            return list(self._records)
        finally:
            self._lock.release()

    def get_by_fuzzy(self, query: str, match_by_pid: bool) -> list[ProcessRecord] | None:
        """
        Records whose name (or PID) fuzzily matches ``query``, best first.

        Returns None when nothing clears the configured threshold.

        Raises:
            LockContention: A refresh or kill currently holds the snapshot.
        """
        if not self._lock.acquire(blocking=False):
            raise LockContention("snapshot is being updated")
        try:
            records = self._records
            keys = [self._match_key(p, match_by_pid) for p in records]
            matches = rank(query, keys, self._config.threshold, self._config.num_matches)

            # Each key resolves to the first record carrying it
            first: dict[str, ProcessRecord] = {}
            for key, record in zip(keys, records):
                first.setdefault(key, record)
            found = [first[match.key] for match in matches]
        finally:
            self._lock.release()

        return found or None

    def kill(self, record: ProcessRecord) -> KillResult:
        """
        Kill ``record``'s process and drop it from the snapshot on success.

        A failed kill leaves the snapshot untouched; the returned result says
        why. Killing a process that is already gone changes nothing.
        """
        result = self._executor.kill(record.pid)
        if not result.ok:
            return result

        with self._lock:
            self._killed_since_listing.add(record.pid)
            for i, p in enumerate(self._records):
                if p.pid == record.pid:
                    # New list so copies handed out earlier stay intact
                    self._records = self._records[:i] + self._records[i + 1 :]
                    break
        return result

    def kill_all_matching(self, name: str) -> list[KillResult]:
        """Kill every process whose command is exactly ``name``."""
        with self._lock:
            targets = [p for p in self._records if p.command == name]
        return [self.kill(p) for p in targets]

    @staticmethod
    def _match_key(record: ProcessRecord, match_by_pid: bool) -> str:
        if match_by_pid:
            return str(record.pid)
        return strip_suffix(record.command)


class ShutdownFlag:
    """A boolean guarded by its own lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._set = False

    def set(self) -> None:
        with self._lock:
            self._set = True

    def is_set(self) -> bool:
        with self._lock:
            return self._set


class Poller:
    """
    Refreshes a ProcessMonitor on a fixed cadence in a daemon thread.

    The sleep between cycles is not interruptible, so ``stop()`` can take up
    to one interval to be observed by the thread.
    """

    def __init__(self, monitor: ProcessMonitor, interval: float | None = None) -> None:
        """
        Initialize the Poller.

        Args:
            monitor: Store to refresh.
            interval: Seconds between refresh starts. Defaults to the
                monitor's configured interval. An explicit value skips the
                config's one-second floor and is meant for tests; negative
                values are treated as zero.
        """
        self._monitor = monitor
        self._interval = monitor.config.interval if interval is None else max(0.0, interval)
        self._shutdown = ShutdownFlag()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """Check if the poller thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start the polling thread.

        A thread still finishing its last sleep after a timed-out ``stop()``
        keeps its own flag and exits on its own; a new thread replaces it.
        """
        if self.is_running and not self._shutdown.is_set():
            return

        self._shutdown = ShutdownFlag()
        self._thread = threading.Thread(
            target=self._poll_loop,
            args=(self._shutdown,),
            daemon=True,
            name="Poller",
        )
        self._thread.start()
        log.info("poller_started", interval=self._interval)

    def request_stop(self) -> None:
        """Ask the thread to exit at its next cycle without waiting for it."""
        self._shutdown.set()

    def stop(self, timeout: float | None = None) -> None:
        """
        Stop the polling thread.

        Args:
            timeout: How long to wait for the thread to exit. Defaults to a
                little over one interval.
        """
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 1.0 if timeout is None else timeout)
            if not self._thread.is_alive():
                self._thread = None
        log.info("poller_stopped")

    def _poll_loop(self, shutdown: ShutdownFlag) -> None:
        """Main polling loop running in the background thread."""
        while not shutdown.is_set():
            started = time.monotonic()
            try:
                self._monitor.refresh()
            except Exception:
                # Keep polling; the previous snapshot stays in place
                log.exception("refresh_failed")

            elapsed = time.monotonic() - started
            time.sleep(max(0.0, self._interval - elapsed))
