"""fzk - Main Textual application."""

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Input, Static

from fzk.errors import LockContention
from fzk.models import KillResult, MonitorConfig, ProcessRecord
from fzk.monitor import Poller, ProcessMonitor
from fzk.ranker import is_pid_query
from fzk.selection import Intent, SelectionController, ViewWindow
from fzk.source import ProcessListingFormat, select_listing_format

TICK_INTERVAL = 0.05

KEYBINDS_TEXT = [
    "[f1] help",
    "[ctrl+q] quit",
    "[ctrl+r] reset scroll",
    "[enter] kill the selected process",
    "[ctrl+k] kill every process with the selected command",
    "[escape] clear the search",
    "[↕] use arrow keys or mouse to move up and down",
    "Enter characters to fuzzy search for processes",
    "Start with a digit to search by PID",
]


def format_row(record: ProcessRecord, reports_cpu: bool) -> tuple[str, ...]:
    """Display cells for one record."""
    pid = str(record.pid) if record.has_pid else "?"
    row = (record.command, pid, record.memory_metric)
    if reports_cpu:
        row += (record.cpu_metric or "",)
    return row


class HelpScreen(ModalScreen[None]):
    """Overlay listing the key bindings."""

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }

    #help-body {
        width: auto;
        height: auto;
        padding: 1 2;
        border: solid $primary;
        background: $surface;
    }
    """

    BINDINGS = [
        ("f1", "dismiss", "Close"),
        ("escape", "dismiss", "Close"),
    ]

    def compose(self) -> ComposeResult:
        lines = [
            "[f1] to exit this screen" if line == "[f1] help" else line
            for line in KEYBINDS_TEXT
        ]
        yield Vertical(Static("\n".join(lines), markup=False), id="help-body")


class ProcessTable(Container):
    """Container for the process data table, showing only the visible window."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }

    ProcessTable > DataTable {
        height: 1fr;
    }
    """

    class Wheel(Message):
        """The mouse wheel moved over the table."""

        def __init__(self, intent: Intent) -> None:
            self.intent = intent
            super().__init__()

    def __init__(self, headers: tuple[str, ...], *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._headers = headers
        self._view: ViewWindow[ProcessRecord] | None = None

    @property
    def reports_cpu(self) -> bool:
        return len(self._headers) > 3

    @property
    def capacity(self) -> int:
        """Number of body rows that fit under the header."""
        # Measured on the container; the DataTable grows with its rows
        return max(0, self.content_size.height - 1)

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table", cursor_type="row", zebra_stripes=True)

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        # Keys go to the query input; selection is driven by the app
        table.can_focus = False
        for header in self._headers:
            table.add_column(header)

    def show(self, view: ViewWindow[ProcessRecord]) -> None:
        """Render ``view`` unless it is what is already on screen."""
        if view == self._view:
            return
        self._view = view

        table = self.query_one("#process-table", DataTable)
        table.clear()
        for record in view.rows:
            table.add_row(*format_row(record, self.reports_cpu))
        if view.pointer is not None:
            table.move_cursor(row=view.pointer, animate=False)

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.post_message(self.Wheel(Intent.MOVE_DOWN))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.post_message(self.Wheel(Intent.MOVE_UP))


class FzkApp(App):
    """Main fzk application."""

    TITLE = "fzk"
    SUB_TITLE = "Fuzzy find and kill processes"

    CSS = """
    Screen {
        layout: vertical;
    }

    #query {
        dock: top;
    }

    #status {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
        Binding("f1", "help", "Help"),
        Binding("up", "move_up", "Up", show=False, priority=True),
        Binding("down", "move_down", "Down", show=False, priority=True),
        Binding("ctrl+r", "reset_scroll", "Reset scroll"),
        Binding("ctrl+k", "kill_all", "Kill all", priority=True),
        Binding("escape", "clear_query", "Clear"),
    ]

    def __init__(
        self,
        config: MonitorConfig | None = None,
        listing_format: ProcessListingFormat | None = None,
        monitor: ProcessMonitor | None = None,
        tick_interval: float = TICK_INTERVAL,
    ) -> None:
        """Initialize the FzkApp."""
        super().__init__()
        self._config = config or MonitorConfig()
        if monitor is None:
            monitor = ProcessMonitor(self._config, listing_format or select_listing_format())
        self._monitor = monitor
        self._poller = Poller(self._monitor)
        self._selection = SelectionController()
        self._records: list[ProcessRecord] = []
        self._tick_interval = tick_interval

    @property
    def poller(self) -> Poller:
        return self._poller

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Input(placeholder="Search by name, or by PID starting with a digit", id="query")
        yield ProcessTable(self._monitor.headers)
        yield Static("", id="status", markup=False)
        yield Footer()

    def on_mount(self) -> None:
        """Start the poller when the app is mounted."""
        self._poller.start()
        self.query_one("#query", Input).focus()
        self.set_interval(self._tick_interval, self._tick)

    def on_unmount(self) -> None:
        # Observed by the poller at its next cycle; the caller joins it
        self._poller.request_stop()

    def _tick(self) -> None:
        """Read the latest records and re-render the visible window."""
        query = self.query_one("#query", Input).value
        self._selection.query_changed(query)

        try:
            self._records = self._read_records(query)
        except LockContention:
            # Refresh in progress; keep last tick's rows
            pass

        self._render_rows()
        self._update_status(query)

    def _read_records(self, query: str) -> list[ProcessRecord]:
        if not query:
            return self._monitor.get_all() or []
        return self._monitor.get_by_fuzzy(query, is_pid_query(query)) or []

    def _render_rows(self) -> None:
        table = self.query_one(ProcessTable)
        self._selection.update_bounds(len(self._records), table.capacity)
        table.show(self._selection.window(self._records))

    def _update_status(self, query: str) -> None:
        total = len(self._records)
        if not query:
            text = f"{total} processes"
        else:
            mode = "PID" if is_pid_query(query) else "name"
            text = f"{total} matches by {mode}"
        index = self._selection.selected_index
        if index is not None:
            text += f"  [{index + 1}/{total}]"
        self.query_one("#status", Static).update(text)

    def _selected_record(self) -> ProcessRecord | None:
        index = self._selection.selected_index
        if index is None or index >= len(self._records):
            return None
        return self._records[index]

    def _report_kills(self, command: str, results: list[KillResult]) -> None:
        failed = [r for r in results if not r.ok]
        killed = len(results) - len(failed)
        if killed:
            self.notify(f"Killed {killed} {command} process{'es' if killed > 1 else ''}")
        for result in failed:
            self.notify(
                f"Could not kill {command} ({result.pid}): {result.message}",
                severity="error",
            )

    def apply_intent(self, intent: Intent) -> None:
        """Apply a movement or reset intent and redraw immediately."""
        self._selection.apply(intent)
        self._render_rows()

    def on_process_table_wheel(self, message: ProcessTable.Wheel) -> None:
        self.apply_intent(message.intent)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.action_kill_selected()

    def action_move_up(self) -> None:
        self.apply_intent(Intent.MOVE_UP)

    def action_move_down(self) -> None:
        self.apply_intent(Intent.MOVE_DOWN)

    def action_reset_scroll(self) -> None:
        self.apply_intent(Intent.RESET_SCROLL)

    def action_clear_query(self) -> None:
        self.query_one("#query", Input).value = ""

    def action_kill_selected(self) -> None:
        """Kill the process under the pointer."""
        record = self._selected_record()
        if record is None:
            return
        self._report_kills(record.command, [self._monitor.kill(record)])
        self._tick()

    def action_kill_all(self) -> None:
        """Kill every process sharing the selected process's command."""
        record = self._selected_record()
        if record is None:
            return
        self._report_kills(record.command, self._monitor.kill_all_matching(record.command))
        self._tick()

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    async def action_quit(self) -> None:
        """Handle quit action with cooperative poller shutdown."""
        self._poller.request_stop()
        self.exit()
