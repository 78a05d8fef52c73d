"""pulse - Textual front end over the process registry."""

import logging
from queue import Empty, Queue

from textual import work
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Label, Static

from pulse import config
from pulse.log import configure_logging
from pulse.models import (
    ManagedProcess,
    ProcessFilter,
    ProcessRecord,
    RegistrySnapshot,
    SystemStats,
    filter_processes,
    format_memory,
)
from pulse.monitor import RegistryMonitor
from pulse.registry import ProcessRegistry
from pulse.suggestions import reclaimable_mb


def usage_bar(ratio: float, color: str, width: int = 20) -> str:
    """Render a ratio in [0, 1] as a markup bar."""
    filled = min(width, max(0, int(ratio * width)))
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


class HeaderStats(Static):
    """Header widget showing physical and swap memory."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 3;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._stats = SystemStats.zero()

    @property
    def stats(self) -> SystemStats:
        return self._stats

    def update_stats(self, stats: SystemStats) -> None:
        """Update the statistics from a registry snapshot."""
        self._stats = stats
        self.update(self._get_mem_info())

    def on_mount(self) -> None:
        self.update(self._get_mem_info())

    def _get_mem_info(self) -> str:
        stats = self._stats
        if stats.total_ram == 0:
            return "Loading memory info..."
        # Use escaped brackets for the bar containers
        return (
            f"Mem\\[{usage_bar(stats.used_ratio, 'cyan')}] {stats.memory_pressure}"
            f"  free {stats.free_ram:.1f} GB\n"
            f"Swp {stats.swap_string}"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._view = ProcessFilter.ALL
        self._all: list[ProcessRecord] = []
        self._rows: list[ProcessRecord] = []

    @property
    def view(self) -> ProcessFilter:
        return self._view

    @property
    def rows(self) -> list[ProcessRecord]:
        """Records currently shown, in display order."""
        return list(self._rows)

    def cycle_view(self) -> ProcessFilter:
        """Cycle to the next view and return it."""
        views = list(ProcessFilter)
        self._view = views[(views.index(self._view) + 1) % len(views)]
        self._render_rows()
        return self._view

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=12)
        table.add_column("MEM", key="mem", width=10)
        table.add_column("APP", key="kind", width=5)
        table.add_column("Name", key="name")

    def update_processes(self, processes: tuple[ProcessRecord, ...] | list[ProcessRecord]) -> None:
        """Replace the table contents, keeping the cursor on the same pid."""
        self._all = list(processes)
        self._render_rows()

    def selected(self) -> ProcessRecord | None:
        """The record under the cursor, if any."""
        table = self.query_one("#process-table", DataTable)
        index = table.cursor_row
        if 0 <= index < len(self._rows):
            return self._rows[index]
        return None

    def _render_rows(self) -> None:
        table = self.query_one("#process-table", DataTable)
        current = self.selected()
        self._rows = filter_processes(self._all, self._view)

        table.clear()
        for proc in self._rows:
            table.add_row(
                str(proc.pid),
                proc.user[:12],
                format_memory(proc.memory_mb),
                "●" if proc.is_user_app else "",
                proc.name[:50],
                key=str(proc.pid),
            )

        if current is not None:
            for index, proc in enumerate(self._rows):
                if proc.pid == current.pid:
                    table.move_cursor(row=index)
                    break


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no dialog. Dismisses with True only on the confirm button."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: thick $error;
        background: $surface;
    }

    #dialog-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #dialog-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, message: str, confirm_label: str) -> None:
        super().__init__()
        self._title = title
        self._message = message
        self._confirm_label = confirm_label

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Label(self._title, id="dialog-title")
            yield Label(self._message, id="dialog-message")
            with Horizontal(id="dialog-buttons"):
                yield Button(self._confirm_label, variant="error", id="confirm")
                yield Button("Cancel", id="cancel")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm")

    def action_cancel(self) -> None:
        self.dismiss(False)


class PulseApp(App):
    """Main pulse application."""

    TITLE = "pulse"
    SUB_TITLE = "Memory monitor & app cleaner"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("f", "filter", "Filter"),
        ("k", "terminate", "Quit app"),
        ("u", "uninstall", "Uninstall"),
        ("s", "smart_clean", "Smart clean"),
    ]

    def __init__(
        self,
        registry: ProcessRegistry | None = None,
        poll_rate: float = config.POLL_RATE_SECONDS,
    ) -> None:
        """Initialize the PulseApp."""
        super().__init__()
        self._process_registry = registry if registry is not None else ProcessRegistry()
        self._update_queue: Queue[RegistrySnapshot] = Queue()
        self._monitor = RegistryMonitor(self._process_registry, self._update_queue, poll_rate=poll_rate)

    @property
    def registry(self) -> ProcessRegistry:
        return self._process_registry

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the registry monitor when the app is mounted."""
        self._process_registry.pump_events()
        self._monitor.start()
        self.set_interval(config.UI_DRAIN_INTERVAL_SECONDS, self._check_for_updates)
        self.set_interval(config.WORKSPACE_PUMP_INTERVAL_SECONDS, self._process_registry.pump_events)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: RegistrySnapshot) -> None:
        """Update the UI with a registry snapshot."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot.stats)
        self.query_one(ProcessTable).update_processes(snapshot.processes)

    def action_refresh(self) -> None:
        self._run_refresh()

    def action_filter(self) -> None:
        view = self.query_one(ProcessTable).cycle_view()
        self.notify(f"View: {view.label}")

    def action_terminate(self) -> None:
        record = self.query_one(ProcessTable).selected()
        if record is not None:
            self._run_terminate(record)

    def action_uninstall(self) -> None:
        record = self.query_one(ProcessTable).selected()
        if record is None:
            return
        if not isinstance(record, ManagedProcess) or record.bundle_path is None:
            self.notify(f"{record.name} has no app bundle to uninstall", severity="warning")
            return

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._run_uninstall(record)

        self.push_screen(
            ConfirmScreen(
                f"Uninstall {record.name}?",
                "This will move the app to Trash and attempt to remove related "
                "caches and preferences. This action cannot be undone.",
                "Uninstall & Clean",
            ),
            on_confirm,
        )

    def action_smart_clean(self) -> None:
        suggestions = self._process_registry.suggest()
        if not suggestions:
            self.notify("Nothing to clean")
            return

        names = ", ".join(p.name for p in suggestions)

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._run_smart_clean()

        self.push_screen(
            ConfirmScreen(
                f"Quit {len(suggestions)} background apps?",
                f"{names}\nFrees about {format_memory(reclaimable_mb(suggestions))}.",
                "Quit apps",
            ),
            on_confirm,
        )

    @work(thread=True, exclusive=True, group="refresh")
    def _run_refresh(self) -> None:
        self._process_registry.refresh()

    @work(thread=True)
    def _run_terminate(self, record: ProcessRecord) -> None:
        if not self._process_registry.terminate(record):
            self.call_from_thread(
                self.notify, f"{record.name} belongs to {record.user}", severity="warning"
            )

    @work(thread=True)
    def _run_uninstall(self, record: ProcessRecord) -> None:
        report = self._process_registry.uninstall(record)
        if not report.bundle_trashed:
            message, severity = f"Could not move {record.name} to Trash", "error"
        elif report.failures:
            message = f"Removed {record.name}; {len(report.failures)} leftovers could not be trashed"
            severity = "warning"
        else:
            message = f"Removed {record.name} and {len(report.residues_trashed)} leftovers"
            severity = "information"
        self.call_from_thread(self.notify, message, severity=severity)

    @work(thread=True)
    def _run_smart_clean(self) -> None:
        cleaned = self._process_registry.smart_clean()
        self.call_from_thread(self.notify, f"Quit {len(cleaned)} apps")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for pulse."""
    path = config.log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as log_file:
        configure_logging(logging.INFO, stream=log_file)
        app = PulseApp()
        app.run()


if __name__ == "__main__":
    main()
