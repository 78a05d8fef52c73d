"""Access to the windowing/application-management subsystem.

On macOS this is ``NSWorkspace`` via PyObjC. Hosts without one get a
``NullWorkspace`` that knows no applications, so every process is bare.

``NSWorkspace.runningApplications`` and ``NSRunningApplication.isTerminated``
only change while the main thread's run loop turns. The TUI's main thread
runs asyncio instead, so it must call ``pump_events`` regularly or the
application list stays frozen at its first read.
"""

import sys
import threading
from pathlib import Path
from typing import Any, Protocol

from pulse.log import get_logger
from pulse.models import ManagedApplication

log = get_logger(__name__)


class Workspace(Protocol):
    """Source of managed applications and the foreground application."""

    def running_applications(self) -> list[ManagedApplication]: ...

    def frontmost_pid(self) -> int | None: ...

    def pump_events(self) -> None: ...


class AppKitApplication:
    """ManagedApplication backed by an ``NSRunningApplication``."""

    __slots__ = ("_app",)

    def __init__(self, app: Any) -> None:
        self._app = app

    @property
    def pid(self) -> int:
        return int(self._app.processIdentifier())

    @property
    def localized_name(self) -> str | None:
        name = self._app.localizedName()
        return str(name) if name is not None else None

    @property
    def icon(self) -> Any:
        return self._app.icon()

    @property
    def bundle_path(self) -> Path | None:
        url = self._app.bundleURL()
        if url is None or url.path() is None:
            return None
        return Path(str(url.path()))

    @property
    def bundle_identifier(self) -> str | None:
        ident = self._app.bundleIdentifier()
        return str(ident) if ident is not None else None

    @property
    def is_terminated(self) -> bool:
        return bool(self._app.isTerminated())

    def terminate(self) -> bool:
        """Ask the application to quit. Does not wait for it to exit."""
        return bool(self._app.terminate())

    def __repr__(self) -> str:
        return f"AppKitApplication(pid={self.pid})"


class AppKitWorkspace:
    """Workspace backed by ``NSWorkspace.sharedWorkspace()``."""

    def __init__(self) -> None:
        from AppKit import NSWorkspace

        self._workspace = NSWorkspace.sharedWorkspace()

    def running_applications(self) -> list[ManagedApplication]:
        return [AppKitApplication(app) for app in self._workspace.runningApplications()]

    def frontmost_pid(self) -> int | None:
        app = self._workspace.frontmostApplication()
        if app is None:
            return None
        return int(app.processIdentifier())

    def pump_events(self) -> None:
        """Let the main run loop deliver pending workspace notifications."""
        if threading.current_thread() is not threading.main_thread():
            log.debug("pump_events_off_main_thread")
            return
        from Foundation import NSDate, NSDefaultRunLoopMode, NSRunLoop

        NSRunLoop.mainRunLoop().runMode_beforeDate_(NSDefaultRunLoopMode, NSDate.date())


class NullWorkspace:
    """Workspace for hosts without a windowing subsystem."""

    def running_applications(self) -> list[ManagedApplication]:
        return []

    def frontmost_pid(self) -> int | None:
        return None

    def pump_events(self) -> None:
        pass


def default_workspace() -> Workspace:
    """Return the workspace for the current platform."""
    if sys.platform == "darwin":
        return AppKitWorkspace()
    log.debug("workspace_unavailable", platform=sys.platform)
    return NullWorkspace()
