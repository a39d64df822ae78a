"""Data models for fzk."""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

# Marks a record whose PID column failed to parse.
UNSET_PID = 2**64 - 1

MIN_INTERVAL = 1.0
DEFAULT_INTERVAL = 3.0
DEFAULT_THRESHOLD = 0.3
DEFAULT_NUM_MATCHES = 20


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable view of one process at snapshot time."""

    command: str
    pid: int = UNSET_PID
    memory_metric: str = ""
    cpu_metric: str | None = None  # None where the platform reports no CPU

    @property
    def has_pid(self) -> bool:
        """Whether the PID column parsed."""
        return self.pid != UNSET_PID


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """
    Session-wide tuning knobs.

    Values are clamped on construction: ``interval`` to at least one second,
    ``threshold`` into [0, 1] and ``num_matches`` to at least one.
    """

    interval: float = DEFAULT_INTERVAL
    threshold: float = DEFAULT_THRESHOLD
    num_matches: int = DEFAULT_NUM_MATCHES

    def __post_init__(self) -> None:
        object.__setattr__(self, "interval", max(MIN_INTERVAL, float(self.interval)))
        object.__setattr__(self, "threshold", min(1.0, max(0.0, float(self.threshold))))
        object.__setattr__(self, "num_matches", max(1, int(self.num_matches)))


class FuzzyMatch(NamedTuple):
    """A candidate key and its similarity score in [0, 1]."""

    key: str
    score: float


class KillStatus(Enum):
    """Outcome of a termination request."""

    SUCCESS = "success"
    FAILED = "failed"
    SPAWN_FAILED = "spawn_failed"


@dataclass(slots=True, frozen=True)
class KillResult:
    """Result of asking the OS to terminate a process."""

    pid: int
    status: KillStatus
    message: str = field(default="")

    @property
    def ok(self) -> bool:
        return self.status is KillStatus.SUCCESS
