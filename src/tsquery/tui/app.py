"""tsquery interactive console."""

from __future__ import annotations

import asyncio
import logging

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Input, RichLog

from ..cli.commands import CLIENT_ERRORS, CONNECT_TIMEOUT
from ..cli.output import format_error, format_event, format_fields
from ..config import Config, load_config
from ..protocol.client import QueryClient
from ..protocol.errors import TSQueryError
from ..protocol.messages import Event
from .widgets import HelpBar, StatusBar

_logger = logging.getLogger("tsquery.tui")


class CommandInput(Input):
    """Command line with history."""

    BINDINGS = [
        Binding("up", "history_back", "Previous", show=False),
        Binding("down", "history_forward", "Next", show=False),
    ]

    def __init__(self, **kwargs):
        super().__init__(placeholder="command key=value ... -flag", **kwargs)
        self.history: list[str] = []
        self._cursor = 0

    def remember(self, line: str) -> None:
        if not self.history or self.history[-1] != line:
            self.history.append(line)
        self._cursor = len(self.history)

    def action_history_back(self) -> None:
        if self._cursor > 0:
            self._cursor -= 1
            self.value = self.history[self._cursor]
            self.cursor_position = len(self.value)

    def action_history_forward(self) -> None:
        if self._cursor < len(self.history) - 1:
            self._cursor += 1
            self.value = self.history[self._cursor]
        else:
            self._cursor = len(self.history)
            self.value = ""
        self.cursor_position = len(self.value)


class ConsoleApp(App):
    """Send query commands and watch notifications."""

    CSS = """
    Screen {
        background: $surface;
    }

    #content {
        height: 1fr;
    }

    #log {
        height: 1fr;
        padding: 0 1;
    }

    CommandInput {
        dock: bottom;
        margin-bottom: 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+l", "clear_log", "Clear"),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, config: Config, client: QueryClient | None = None):
        super().__init__()
        self.config = config
        self.client = client or QueryClient(
            command_timeout=config.client.command_timeout
        )
        self._watch_task: asyncio.Task | None = None
        self._command_tasks: set[asyncio.Task] = set()

    def compose(self) -> ComposeResult:
        yield StatusBar(id="status-bar")
        with Vertical(id="content"):
            yield RichLog(id="log", wrap=True, markup=False)
            yield CommandInput(id="command")
        yield HelpBar()

    async def on_mount(self) -> None:
        """Connect and start watching the connection."""
        status_bar = self.query_one("#status-bar", StatusBar)
        server = f"{self.config.server.host}:{self.config.server.port}"
        status_bar.server = server
        status_bar.phase = "connecting"
        self.client.add_event_handler(self._handle_event)

        try:
            await asyncio.wait_for(
                self.client.connect(
                    self.config.server.host,
                    self.config.server.port,
                    self.config.client.encoding,
                ),
                timeout=CONNECT_TIMEOUT,
            )
        except CLIENT_ERRORS as e:
            _logger.error(f"Failed to connect to {server}: {e}")
            status_bar.phase = "disconnected"
            self.notify(f"Failed to connect to {server}: {e}", severity="error")
            return

        self._watch_task = asyncio.create_task(self._watch_connection())
        self.set_interval(0.5, self._refresh_status)
        self.query_one("#command", CommandInput).focus()

    async def on_unmount(self) -> None:
        """Disconnect and clean up tasks."""
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
        for task in list(self._command_tasks):
            task.cancel()
        await self.client.disconnect()

    async def _watch_connection(self) -> None:
        await self.client.closed()
        self._write("-- connection closed --")
        self.query_one("#status-bar", StatusBar).phase = "disconnected"

    def _refresh_status(self) -> None:
        status_bar = self.query_one("#status-bar", StatusBar)
        if status_bar.phase != "disconnected":
            status_bar.phase = self.client.phase.value
        status_bar.pending = self.client.pending
        status_bar.busy = self.client.current is not None

    def _write(self, text: str) -> None:
        self.query_one("#log", RichLog).write(text)

    def _handle_event(self, event: Event) -> None:
        self._write(format_event(event))

    async def on_input_submitted(self, message: Input.Submitted) -> None:
        line = message.value.strip()
        if not line:
            return
        command_input = self.query_one("#command", CommandInput)
        command_input.remember(line)
        command_input.value = ""
        self._write(f"> {line}")
        task = asyncio.create_task(self._run(line))
        self._command_tasks.add(task)
        task.add_done_callback(self._command_tasks.discard)

    async def _run(self, line: str) -> None:
        try:
            result = await self.client.send_raw(line)
        except TSQueryError as e:
            self._write(format_error(e))
        except ValueError as e:
            self._write(f"Error: {e}")
        else:
            self._write(format_fields(result))
        self._refresh_status()

    def action_clear_log(self) -> None:
        self.query_one("#log", RichLog).clear()


def main(config: Config | None = None) -> None:
    """Main entry point for the console."""
    app = ConsoleApp(config or load_config())
    app.run()


if __name__ == "__main__":
    main()
