"""Forceful process termination."""

import subprocess

import structlog

from fzk.models import UNSET_PID, KillResult, KillStatus
from fzk.source import ProcessListingFormat

log = structlog.get_logger()

KILL_TIMEOUT = 10.0


class TerminationExecutor:
    """Runs the platform's kill facility for one PID at a time."""

    def __init__(self, listing_format: ProcessListingFormat) -> None:
        self._format = listing_format

    def kill(self, pid: int) -> KillResult:
        """
        Forcefully terminate ``pid`` and wait for the kill command to finish.

        Success is decided solely by the kill command's exit status. This
        never touches the process snapshot.
        """
        if pid == UNSET_PID:
            return KillResult(pid, KillStatus.FAILED, "process has no PID")

        argv = self._format.kill_argv(pid)
        try:
            result = subprocess.run(
                argv, capture_output=True, text=True, timeout=KILL_TIMEOUT, check=False
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            log.warning("kill_failed", pid=pid, error=str(e))
            return KillResult(pid, KillStatus.SPAWN_FAILED, f"failed to exec {argv[0]}: {e}")

        if result.returncode != 0:
            message = (result.stderr or "").strip() or f"{argv[0]} exited with {result.returncode}"
            log.warning("kill_failed", pid=pid, status=result.returncode, error=message)
            return KillResult(pid, KillStatus.FAILED, message)

        log.info("kill_succeeded", pid=pid)
        return KillResult(pid, KillStatus.SUCCESS)
