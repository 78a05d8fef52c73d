"""Smart clean suggestions."""

from collections.abc import Iterable

from pulse import config
from pulse.models import ProcessRecord


def suggest(
    processes: Iterable[ProcessRecord],
    foreground_pid: int | None,
    threshold_mb: float = config.SUGGESTION_THRESHOLD_MB,
) -> list[ProcessRecord]:
    """
    Pick background user apps worth quitting.

    A record qualifies when it is a user app, is not the foreground app and
    uses more than ``threshold_mb``. Input order is preserved.
    """
    return [
        p
        for p in processes
        if p.is_user_app and p.pid != foreground_pid and p.memory_mb > threshold_mb
    ]


def reclaimable_mb(suggestions: Iterable[ProcessRecord]) -> float:
    """Memory that would be released by quitting every suggestion."""
    return sum(p.memory_mb for p in suggestions)
