"""Background registry refresh for pulse."""

import threading
from collections.abc import Callable
from queue import Queue

from pulse import config
from pulse.log import get_logger
from pulse.models import RegistrySnapshot
from pulse.registry import ProcessRegistry

log = get_logger(__name__)


class RegistryMonitor:
    """
    Refreshes a ProcessRegistry on a daemon thread.

    Every snapshot the registry publishes (refreshes, but also terminations
    made from other threads) is pushed to a thread-safe Queue, which the UI
    drains on its own schedule.
    """

    def __init__(
        self,
        registry: ProcessRegistry,
        update_queue: Queue[RegistrySnapshot],
        poll_rate: float = config.POLL_RATE_SECONDS,
    ) -> None:
        """
        Initialize the RegistryMonitor.

        Args:
            registry: Registry to refresh.
            update_queue: Thread-safe queue to push snapshots to.
            poll_rate: How often to refresh (in seconds). Default 2.0s.
        """
        self._registry = registry
        self._queue = update_queue
        self._poll_rate = max(config.MIN_POLL_RATE_SECONDS, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(config.MIN_POLL_RATE_SECONDS, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        if self._unsubscribe is None:
            self._unsubscribe = self._registry.subscribe(self._queue.put)
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RegistryMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._registry.refresh()
            except Exception:
                # Keep the loop alive; the registry keeps its last good state
                log.exception("refresh_failed")

            self._stop_event.wait(timeout=self._poll_rate)
