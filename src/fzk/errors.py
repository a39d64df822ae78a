"""Exceptions raised by fzk."""


class FzkError(Exception):
    """Base class for fzk errors."""


class ProcessListingError(FzkError):
    """The process listing facility did not yield a usable table."""


class SpawnFailure(ProcessListingError):
    """The external facility could not be started."""


class ExecutionFailure(ProcessListingError):
    """The external facility ran but did not exit successfully."""


class DecodeFailure(ProcessListingError):
    """The external facility's output was not valid text."""


class LockContention(FzkError):
    """
    The snapshot is being written by another thread.

    Raised by non-blocking reads. Callers keep the data they already have for
    the current tick instead of waiting.
    """
