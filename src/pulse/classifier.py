"""User-app vs system-app classification.

These rules are heuristics over install paths and ownership. Apps installed
in unusual places will be misclassified, and that is accepted.
"""

from pathlib import Path

from pulse import config
from pulse.models import ManagedApplication


def classify_bare(user: str, raw_line: str, session_user: str) -> bool:
    """
    Classify a process unknown to the windowing subsystem.

    It is a user app when it belongs to the session user and its raw
    process-table line mentions ``/Applications`` or ``/Users/``.
    """
    if user != session_user:
        return False
    return config.APPLICATIONS_MARKER in raw_line or config.USER_HOME_MARKER in raw_line


def classify_bundle_path(bundle_path: Path | str | None) -> bool:
    """
    Classify a managed application by its bundle location.

    System prefixes (``/System``, ``/usr``, ``/bin``) always lose. Otherwise
    the bundle must sit under an ``/Applications`` folder or a home directory.
    """
    if bundle_path is None:
        return False
    path = str(bundle_path)
    if path.startswith(config.SYSTEM_PATH_PREFIXES):
        return False
    return config.APPLICATIONS_MARKER in path or path.startswith(config.USER_HOME_PREFIX)


def classify(
    user: str,
    raw_line: str,
    app: ManagedApplication | None,
    session_user: str,
) -> bool:
    """Return True if the process should be treated as a user app."""
    if app is not None:
        return classify_bundle_path(app.bundle_path)
    return classify_bare(user, raw_line, session_user)
