"""The process registry: single owner of pulse's process list and stats."""

import threading
from collections.abc import Callable

from pulse import config
from pulse.cleaner import Uninstaller, UninstallReport
from pulse.enumerator import ProcessEnumerator
from pulse.log import get_logger
from pulse.models import ProcessRecord, RegistrySnapshot, SystemStats
from pulse.sampler import HostMemorySampler
from pulse.suggestions import suggest
from pulse.termination import TerminationService
from pulse.workspace import Workspace, default_workspace

log = get_logger(__name__)

Listener = Callable[[RegistrySnapshot], None]


def sort_by_memory(processes: list[ProcessRecord]) -> list[ProcessRecord]:
    """Memory descending, ties by ascending pid."""
    return sorted(processes, key=lambda p: (-p.memory_mb, p.pid))


class ProcessRegistry:
    """
    Cache of the OS process list and memory statistics.

    The registry is eventually consistent: ``terminate``, ``uninstall`` and
    ``smart_clean`` remove records immediately, before the OS confirms the
    process exited. The next ``refresh`` reconciles the cache with reality,
    and a process that survived will reappear.

    All mutation is serialized by an internal lock. Listeners receive a
    ``RegistrySnapshot`` after every mutation, on the mutating thread.
    """

    def __init__(
        self,
        enumerator: ProcessEnumerator | None = None,
        sampler: HostMemorySampler | None = None,
        workspace: Workspace | None = None,
        termination: TerminationService | None = None,
        uninstaller: Uninstaller | None = None,
        suggestion_threshold_mb: float = config.SUGGESTION_THRESHOLD_MB,
    ) -> None:
        self._workspace = workspace if workspace is not None else default_workspace()
        self._enumerator = enumerator if enumerator is not None else ProcessEnumerator(self._workspace)
        self._sampler = sampler if sampler is not None else HostMemorySampler()
        self._termination = (
            termination
            if termination is not None
            else TerminationService(self._enumerator.session_user)
        )
        self._uninstaller = uninstaller if uninstaller is not None else Uninstaller()
        self._threshold_mb = suggestion_threshold_mb

        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._processes: tuple[ProcessRecord, ...] = ()
        self._stats = SystemStats.zero()

    @property
    def processes(self) -> tuple[ProcessRecord, ...]:
        """Current records, memory descending."""
        return self._processes

    @property
    def stats(self) -> SystemStats:
        return self._stats

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    def pump_events(self) -> None:
        """Let the workspace pick up launched and quit applications. Main thread only."""
        self._workspace.pump_events()

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            return RegistrySnapshot(processes=self._processes, stats=self._stats)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener`` for snapshots.

        Returns:
            A callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def refresh(self) -> RegistrySnapshot:
        """Re-read stats and processes from the OS, replacing the cache."""
        with self._lock:
            stats = self._sampler.sample()
            processes = sort_by_memory(self._enumerator.enumerate())
            self._stats = stats
            self._processes = tuple(processes)
            return self._publish()

    def terminate(self, record: ProcessRecord) -> bool:
        """
        Terminate ``record`` and drop it from the cache.

        Returns:
            False if no request was issued, in which case the record stays.
        """
        with self._lock:
            if not self._termination.terminate(record):
                return False
            self._remove(record.pid)
            self._publish()
            return True

    def uninstall(self, record: ProcessRecord) -> UninstallReport:
        """Uninstall the app behind ``record`` and drop it from the cache."""
        with self._lock:
            report = self._uninstaller.uninstall(record)
            if report.attempted:
                self._remove(record.pid)
                self._publish()
            return report

    def suggest(self) -> list[ProcessRecord]:
        """Current smart clean suggestions."""
        return suggest(self._processes, self._workspace.frontmost_pid(), self._threshold_mb)

    def smart_clean(self) -> list[ProcessRecord]:
        """Terminate every current suggestion. Returns the records acted on."""
        with self._lock:
            cleaned = [r for r in self.suggest() if self._termination.terminate(r)]
            for record in cleaned:
                self._remove(record.pid)
            if cleaned:
                self._publish()
            log.info("smart_clean", terminated=len(cleaned))
            return cleaned

    def _remove(self, pid: int) -> None:
        self._processes = tuple(p for p in self._processes if p.pid != pid)

    def _publish(self) -> RegistrySnapshot:
        snapshot = RegistrySnapshot(processes=self._processes, stats=self._stats)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                log.exception("listener_failed")
        return snapshot
