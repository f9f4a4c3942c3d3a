"""Custom widgets for the tsquery console."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widgets import Static

PHASE_LABELS = {
    "disconnected": "○ disconnected",
    "connecting": "… connecting",
    "awaiting_banner_1": "… banner",
    "awaiting_banner_2": "… banner",
    "ready": "● ready",
}


class StatusBar(Static):
    """Widget displaying connection status."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        dock: top;
        background: $primary;
        color: $text;
        padding: 0 1;
    }

    StatusBar Horizontal {
        height: 1;
    }

    StatusBar .server {
        text-style: bold;
    }

    StatusBar .spacer {
        width: 1fr;
    }

    StatusBar .indicators {
        width: auto;
    }
    """

    server: reactive[str] = reactive("")
    phase: reactive[str] = reactive("disconnected")
    pending: reactive[int] = reactive(0)
    busy: reactive[bool] = reactive(False)

    def compose(self) -> ComposeResult:
        with Horizontal():
            yield Static("tsquery", classes="logo")
            yield Static(" ", classes="spacer")
            yield Static(id="server-display", classes="server")
            yield Static(classes="spacer")
            yield Static(id="indicators", classes="indicators")

    def watch_server(self, value: str) -> None:
        self.query_one("#server-display", Static).update(value)

    def watch_phase(self, _: str) -> None:
        self._update_indicators()

    def watch_pending(self, _: int) -> None:
        self._update_indicators()

    def watch_busy(self, _: bool) -> None:
        self._update_indicators()

    def _update_indicators(self) -> None:
        parts = [PHASE_LABELS.get(self.phase, self.phase)]
        if self.busy:
            parts.append("⏳")
        if self.pending:
            parts.append(f"{self.pending} queued")
        self.query_one("#indicators", Static).update("  ".join(parts))


class HelpBar(Static):
    """Widget displaying keyboard shortcuts."""

    DEFAULT_CSS = """
    HelpBar {
        height: 1;
        dock: bottom;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static(
            "[Enter] Send  [↑/↓] History  [Ctrl+L] Clear  [Ctrl+Q] Quit"
        )
