"""Tests for the RegistryMonitor class."""

from queue import Empty, Queue

import pytest

from conftest import SESSION_USER, ps_output
from pulse.models import RegistrySnapshot
from pulse.monitor import RegistryMonitor

TABLE = ps_output(
    f"  10 204800 {SESSION_USER} /Applications/A.app/Contents/MacOS/A",
    "  11 102400 root /usr/libexec/B",
)


@pytest.fixture
def registry(make_registry):
    return make_registry(TABLE)


class TestRegistryMonitor:
    """Tests for RegistryMonitor class."""

    def test_monitor_creation(self, registry):
        """Test RegistryMonitor can be instantiated."""
        queue: Queue[RegistrySnapshot] = Queue()
        monitor = RegistryMonitor(registry, queue)

        assert monitor.poll_rate == 2.0
        assert not monitor.is_running

    def test_monitor_custom_poll_rate(self, registry):
        """Test RegistryMonitor with custom poll rate."""
        monitor = RegistryMonitor(registry, Queue(), poll_rate=1.0)

        assert monitor.poll_rate == 1.0

    def test_poll_rate_minimum(self, registry):
        """Test poll rate has a minimum value."""
        monitor = RegistryMonitor(registry, Queue())

        monitor.poll_rate = 0.01  # Very small value
        assert monitor.poll_rate >= 0.1  # Should be clamped to minimum

    def test_monitor_start_stop(self, registry):
        """Test RegistryMonitor can be started and stopped."""
        monitor = RegistryMonitor(registry, Queue(), poll_rate=0.1)

        assert not monitor.is_running

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_monitor_start_idempotent(self, registry):
        """Test starting an already running monitor is safe."""
        monitor = RegistryMonitor(registry, Queue(), poll_rate=0.1)

        monitor.start()
        thread1 = monitor._thread

        monitor.start()  # Should not create a new thread
        thread2 = monitor._thread

        assert thread1 is thread2
        monitor.stop()

    def test_monitor_collects_snapshots(self, registry):
        """Test RegistryMonitor refreshes and queues snapshots."""
        queue: Queue[RegistrySnapshot] = Queue()
        monitor = RegistryMonitor(registry, queue, poll_rate=0.1)

        monitor.start()

        try:
            snapshot = queue.get(timeout=2.0)
            assert isinstance(snapshot, RegistrySnapshot)
            assert [p.pid for p in snapshot.processes] == [10, 11]
            assert snapshot.stats.total_ram == 8.0
        finally:
            monitor.stop()

    def test_terminations_reach_the_queue(self, registry):
        """Test mutations from another thread are queued too."""
        queue: Queue[RegistrySnapshot] = Queue()
        monitor = RegistryMonitor(registry, queue, poll_rate=5.0)

        monitor.start()

        try:
            queue.get(timeout=2.0)
            registry.terminate(registry.processes[0])
            snapshot = queue.get(timeout=2.0)
            assert [p.pid for p in snapshot.processes] == [11]
        finally:
            monitor.stop()

    def test_stop_unsubscribes(self, registry):
        """Test a stopped monitor no longer receives snapshots."""
        queue: Queue[RegistrySnapshot] = Queue()
        monitor = RegistryMonitor(registry, queue, poll_rate=0.1)
        monitor.start()
        monitor.stop()

        while True:
            try:
                queue.get_nowait()
            except Empty:
                break

        registry.refresh()
        assert queue.empty()

    def test_monitor_graceful_error_handling(self, registry):
        """Test monitor keeps running when a refresh raises."""
        calls = []

        def failing_refresh():
            calls.append(1)
            raise RuntimeError("boom")

        registry.refresh = failing_refresh
        monitor = RegistryMonitor(registry, Queue(), poll_rate=0.1)

        monitor.start()

        try:
            monitor._stop_event.wait(0.5)
            assert monitor.is_running
            assert len(calls) >= 2
        finally:
            monitor.stop()

    def test_daemon_thread(self, registry):
        """Test monitor thread is a daemon thread."""
        monitor = RegistryMonitor(registry, Queue(), poll_rate=0.1)

        monitor.start()

        try:
            assert monitor._thread is not None
            assert monitor._thread.daemon is True
            assert monitor._thread.name == "RegistryMonitor"
        finally:
            monitor.stop()
