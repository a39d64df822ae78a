"""Shared test fixtures for fzk."""

import pytest

from fzk.errors import ExecutionFailure
from fzk.models import KillResult, KillStatus, MonitorConfig, ProcessRecord
from fzk.monitor import ProcessMonitor
from fzk.source import ProcessListingFormat


def make_record(
    command: str = "test_cmd",
    pid: int = 123,
    memory_metric: str = "0.5",
    cpu_metric: str | None = "1.0",
) -> ProcessRecord:
    """Create a ProcessRecord for testing."""
    return ProcessRecord(
        command=command,
        pid=pid,
        memory_metric=memory_metric,
        cpu_metric=cpu_metric,
    )


class FakeFormat(ProcessListingFormat):
    """Listing format serving a canned process table."""

    name = "fake"
    headers = ("Command", "PID", "Memory Usage (%)", "CPU Usage (%)")

    def __init__(self, records: list[ProcessRecord] | None = None) -> None:
        self.records = list(records or [])
        self.fail = False
        self.calls = 0

    def list_processes(self) -> list[ProcessRecord]:
        self.calls += 1
        if self.fail:
            raise ExecutionFailure("listing failed")
        return list(self.records)

    def kill_argv(self, pid: int) -> list[str]:
        return ["kill", "-9", str(pid)]


class FakeExecutor:
    """Kill facility that records requests instead of killing anything."""

    def __init__(self, failing: set[int] | None = None) -> None:
        self.failing = failing or set()
        self.killed: list[int] = []

    def kill(self, pid: int) -> KillResult:
        self.killed.append(pid)
        if pid in self.failing:
            return KillResult(pid, KillStatus.FAILED, "Operation not permitted")
        return KillResult(pid, KillStatus.SUCCESS)


@pytest.fixture
def fake_format() -> FakeFormat:
    return FakeFormat()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def make_monitor(fake_format: FakeFormat, fake_executor: FakeExecutor):
    """Build a ProcessMonitor over the fake format, refreshed once."""

    def _make(records: list[ProcessRecord], **config_kwargs) -> ProcessMonitor:
        fake_format.records = list(records)
        monitor = ProcessMonitor(
            MonitorConfig(**config_kwargs),
            fake_format,
            executor=fake_executor,
        )
        monitor.refresh()
        return monitor

    return _make
