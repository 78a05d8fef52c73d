"""Process termination for pulse."""

from collections.abc import Callable

import psutil

from pulse.log import get_logger
from pulse.models import ManagedProcess, ProcessRecord

log = get_logger(__name__)


def send_terminate_signal(pid: int) -> None:
    """Send SIGTERM to ``pid``."""
    psutil.Process(pid).terminate()


class TerminationService:
    """
    Issues terminate requests without waiting for the process to exit.

    Managed applications get a graceful quit request. Bare processes get
    SIGTERM, and only when owned by the session user.
    """

    def __init__(
        self,
        session_user: str,
        kill: Callable[[int], None] = send_terminate_signal,
    ) -> None:
        self._session_user = session_user
        self._kill = kill

    def terminate(self, record: ProcessRecord) -> bool:
        """
        Request termination of ``record``.

        Returns:
            True if a request was issued, False if the record belongs to
            another user and was left alone.
        """
        if isinstance(record, ManagedProcess):
            accepted = record.app.terminate()
            log.info("terminate_requested", pid=record.pid, name=record.name, accepted=accepted)
            return True

        if record.user != self._session_user:
            log.info("terminate_refused", pid=record.pid, user=record.user)
            return False

        try:
            self._kill(record.pid)
        except psutil.NoSuchProcess:
            log.debug("terminate_process_gone", pid=record.pid)
        except psutil.AccessDenied:
            log.warning("terminate_access_denied", pid=record.pid)
        else:
            log.info("kill_sent", pid=record.pid, name=record.name)
        return True
