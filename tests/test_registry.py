"""Tests for the process registry."""

from pathlib import Path

from conftest import SESSION_USER, FakeApp, ps_output
from pulse.enumerator import EnumerationStrategy
from pulse.models import ManagedProcess, RegistrySnapshot

TABLE = ps_output(
    f"  101  102400 {SESSION_USER} /Applications/Slack.app/Contents/MacOS/Slack",
    "  102  512000 root /usr/libexec/WindowServer",
    f"  103  409600 {SESSION_USER} /Users/{SESSION_USER}/bin/devserver",
    "  104  409600 root /usr/sbin/mDNSResponder",
    f"  105    2048 {SESSION_USER} /bin/zsh",
)


def memory_values(registry):
    return [p.memory_mb for p in registry.processes]


def record_for(registry, pid):
    return next(p for p in registry.processes if p.pid == pid)


class TestRefresh:
    """Tests for ProcessRegistry.refresh."""

    def test_sorted_by_memory_descending(self, make_registry):
        registry = make_registry(TABLE)

        registry.refresh()

        assert memory_values(registry) == sorted(memory_values(registry), reverse=True)
        assert [p.pid for p in registry.processes] == [102, 103, 104, 101, 105]

    def test_all_memory_non_negative(self, make_registry):
        registry = make_registry(ps_output("  1 -5 root /bin/odd", "  2 10 root /bin/ok"))

        registry.refresh()

        assert all(p.memory_mb >= 0 for p in registry.processes)

    def test_idempotent(self, make_registry):
        registry = make_registry(TABLE)

        first = registry.refresh()
        second = registry.refresh()

        assert first.processes == second.processes
        assert first.stats == second.stats

    def test_stats_refreshed(self, make_registry):
        registry = make_registry(TABLE)

        registry.refresh()

        assert registry.stats.total_ram == 8.0
        assert registry.stats.physical_used_ram == 2.0
        assert registry.stats.swap_used_ram == 0.5
        assert registry.stats.free_ram == 6.0

    def test_empty_registry_before_refresh(self, make_registry):
        registry = make_registry(TABLE)

        assert registry.processes == ()
        assert registry.stats.total_ram == 0.0

    def test_registry_only_strategy(self, make_registry):
        apps = [
            FakeApp(pid=7, localized_name="Figma", bundle_path=Path("/Applications/Figma.app")),
            FakeApp(pid=8, localized_name="Finder", bundle_path=Path("/System/Library/CoreServices/Finder.app")),
        ]
        registry = make_registry(
            apps=apps, strategy=EnumerationStrategy.REGISTRY_ONLY, rss={7: 10240, 8: 20480}
        )

        registry.refresh()

        assert [(p.pid, p.is_user_app) for p in registry.processes] == [(8, False), (7, True)]


class TestTerminate:
    """Tests for ProcessRegistry.terminate."""

    def test_optimistic_removal(self, make_registry, fake_kill):
        registry = make_registry(TABLE)
        registry.refresh()
        target = next(p for p in registry.processes if p.pid == 103)

        assert registry.terminate(target) is True

        assert fake_kill.pids == [103]
        assert 103 not in [p.pid for p in registry.processes]

    def test_other_users_bare_process_is_retained(self, make_registry, fake_kill):
        registry = make_registry(TABLE)
        registry.refresh()
        target = next(p for p in registry.processes if p.pid == 102)

        assert registry.terminate(target) is False

        assert fake_kill.pids == []
        assert 102 in [p.pid for p in registry.processes]

    def test_next_refresh_reconciles(self, make_registry):
        registry = make_registry(TABLE)
        registry.refresh()
        registry.terminate(next(p for p in registry.processes if p.pid == 105))

        # The fake OS still reports the process, so it comes back
        registry.refresh()

        assert 105 in [p.pid for p in registry.processes]

    def test_managed_app_terminated_gracefully(self, make_registry, fake_kill):
        app = FakeApp(pid=101, localized_name="Slack", bundle_path=Path("/Applications/Slack.app"))
        registry = make_registry(TABLE, apps=[app])
        registry.refresh()

        registry.terminate(next(p for p in registry.processes if p.pid == 101))

        assert app.terminate_calls == 1
        assert fake_kill.pids == []


class TestWorkspaceChanges:
    """Tests for applications launched or quit between refreshes."""

    def test_launched_app_becomes_managed(self, make_registry):
        apps = [FakeApp(pid=999, localized_name="Placeholder")]
        registry = make_registry(TABLE, apps=apps)
        registry.refresh()
        assert not isinstance(record_for(registry, 101), ManagedProcess)

        apps.append(FakeApp(pid=101, localized_name="Slack", bundle_path=Path("/Applications/Slack.app")))
        registry.refresh()

        record = record_for(registry, 101)
        assert isinstance(record, ManagedProcess)
        assert record.bundle_path == Path("/Applications/Slack.app")

    def test_quit_app_handle_is_dropped(self, make_registry):
        slack = FakeApp(pid=101, localized_name="Slack", bundle_path=Path("/Applications/Slack.app"))
        apps = [slack]
        registry = make_registry(TABLE, apps=apps)
        registry.refresh()
        assert record_for(registry, 101).name == "Slack"

        # The workspace no longer knows the pid
        apps.remove(slack)
        registry.refresh()

        record = record_for(registry, 101)
        assert not isinstance(record, ManagedProcess)
        assert record.name == "Slack"  # basename of the ps command

    def test_pump_events_reaches_workspace(self, make_registry):
        registry = make_registry(TABLE)

        registry.pump_events()
        registry.pump_events()

        assert registry.workspace.pumps == 2


class TestUninstall:
    """Tests for ProcessRegistry.uninstall."""

    def test_uninstall_removes_record(self, make_registry, fake_trash, tmp_path):
        bundle = tmp_path / "Slack.app"
        bundle.mkdir()
        app = FakeApp(pid=101, localized_name="Slack", bundle_path=bundle, bundle_identifier="com.tinyspeck.slackmacgap")
        registry = make_registry(TABLE, apps=[app])
        registry.refresh()

        report = registry.uninstall(next(p for p in registry.processes if p.pid == 101))

        assert report.bundle_trashed is True
        assert fake_trash.moved == [bundle]
        assert 101 not in [p.pid for p in registry.processes]

    def test_uninstall_bare_process_keeps_record(self, make_registry, fake_trash):
        registry = make_registry(TABLE)
        registry.refresh()

        report = registry.uninstall(next(p for p in registry.processes if p.pid == 103))

        assert report.attempted is False
        assert fake_trash.moved == []
        assert 103 in [p.pid for p in registry.processes]


class TestSuggestions:
    """Tests for ProcessRegistry.suggest and smart_clean."""

    def test_suggest_skips_foreground(self, make_registry):
        registry = make_registry(
            ps_output(
                f"  201 409600 {SESSION_USER} /Applications/A.app/Contents/MacOS/A",
                f"  202 102400 {SESSION_USER} /Applications/B.app/Contents/MacOS/B",
                "  203 921600 root /usr/libexec/C",
                f"  204 512000 {SESSION_USER} /Applications/D.app/Contents/MacOS/D",
            ),
            frontmost=204,
        )
        registry.refresh()

        assert [p.pid for p in registry.suggest()] == [201]

    def test_smart_clean_terminates_suggestions(self, make_registry, fake_kill):
        registry = make_registry(
            ps_output(
                f"  301 409600 {SESSION_USER} /Applications/A.app/Contents/MacOS/A",
                f"  302 819200 {SESSION_USER} /Applications/B.app/Contents/MacOS/B",
                f"  303 1024 {SESSION_USER} /Applications/C.app/Contents/MacOS/C",
            )
        )
        registry.refresh()

        cleaned = registry.smart_clean()

        assert [p.pid for p in cleaned] == [302, 301]
        assert fake_kill.pids == [302, 301]
        assert [p.pid for p in registry.processes] == [303]

    def test_smart_clean_with_nothing_to_do(self, make_registry):
        registry = make_registry(TABLE)
        registry.refresh()

        assert registry.smart_clean() == []


class TestSubscribe:
    """Tests for change notification."""

    def test_listener_receives_every_mutation(self, make_registry):
        registry = make_registry(TABLE)
        received: list[RegistrySnapshot] = []
        registry.subscribe(received.append)

        registry.refresh()
        registry.terminate(next(p for p in registry.processes if p.pid == 105))

        assert len(received) == 2
        assert 105 in [p.pid for p in received[0].processes]
        assert 105 not in [p.pid for p in received[1].processes]

    def test_refused_terminate_does_not_publish(self, make_registry):
        registry = make_registry(TABLE)
        registry.refresh()
        received = []
        registry.subscribe(received.append)

        registry.terminate(next(p for p in registry.processes if p.pid == 102))

        assert received == []

    def test_unsubscribe(self, make_registry):
        registry = make_registry(TABLE)
        received = []
        unsubscribe = registry.subscribe(received.append)

        unsubscribe()
        registry.refresh()

        assert received == []

    def test_failing_listener_does_not_break_refresh(self, make_registry):
        registry = make_registry(TABLE)
        received = []

        def broken(snapshot):
            raise RuntimeError("boom")

        registry.subscribe(broken)
        registry.subscribe(received.append)

        registry.refresh()

        assert len(received) == 1
        assert len(registry.processes) == 5

    def test_snapshot_matches_state(self, make_registry):
        registry = make_registry(TABLE)
        registry.refresh()

        snapshot = registry.snapshot()

        assert snapshot.processes == registry.processes
        assert snapshot.stats == registry.stats
