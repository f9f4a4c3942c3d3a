"""Query client: command queue and line handling for one server connection."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from .errors import CommandTimeoutError, ConnectionLostError, QueryError
from .messages import (
    Event,
    Fields,
    ParamValue,
    Scalar,
    build_command,
    parse_command_line,
    parse_line,
)

_logger = logging.getLogger("tsquery.client")

# Result lines of large listings (clientlist, channellist) exceed asyncio's
# default 64 KiB line limit.
STREAM_LIMIT = 16 * 1024 * 1024

Writer = Callable[[str], None]
Notifier = Callable[[str, Fields, str], None]


class SessionPhase(str, Enum):
    """Connection phase. Advances in order, exactly once each."""

    AWAITING_BANNER_1 = "awaiting_banner_1"
    AWAITING_BANNER_2 = "awaiting_banner_2"
    READY = "ready"


@dataclass
class PendingCommand:
    """A submitted command and the future its caller is waiting on."""

    text: str
    future: asyncio.Future
    data: Fields | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def resolve(self, result: Fields) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_result(result)

    def reject(self, error: BaseException) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class QueryClient:
    """Serializes commands over a single query connection.

    The protocol carries no request ids, so only one command is written at a
    time; the next one is dispatched after the server's ``error`` terminator
    for the previous one. Notification lines are published through
    ``notify`` and never touch command state.
    """

    def __init__(
        self,
        write: Writer | None = None,
        notify: Notifier | None = None,
        command_timeout: float | None = None,
    ):
        self._write = write
        self._notify = notify or self._publish
        self.command_timeout = command_timeout or None
        self._queue: deque[PendingCommand] = deque()
        self._current: PendingCommand | None = None
        self._phase = SessionPhase.AWAITING_BANNER_1
        self._ready: asyncio.Event | None = None
        self._event_handlers: list[Callable[[Event], None]] = []
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task | None = None
        self._lost: ConnectionLostError | None = None
        self._encoding = "utf-8"

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def current(self) -> PendingCommand | None:
        return self._current

    @property
    def pending(self) -> int:
        """Number of commands waiting to be dispatched."""
        return len(self._queue)

    def add_event_handler(self, handler: Callable[[Event], None]) -> None:
        """Add handler for notifications."""
        self._event_handlers.append(handler)

    def _publish(self, name: str, fields: Fields, raw: str) -> None:
        event = Event(name=name, fields=fields, raw=raw)
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception:
                _logger.exception(f"Event handler failed for {name!r}")

    # Command queue

    def submit(
        self,
        name: str,
        params: Mapping[str, ParamValue] | Scalar | None = None,
        *flags: Scalar,
    ) -> asyncio.Future:
        """Queue a command and return a future for its result.

        The future resolves with the result fields, or fails with
        :class:`QueryError` carrying the terminator's fields.
        """
        if params is not None and not isinstance(params, Mapping):
            flags = (params, *flags)
            params = None

        text = build_command(name, params, flags)
        future = asyncio.get_running_loop().create_future()
        if self._lost is not None:
            future.set_exception(ConnectionLostError(str(self._lost)))
            return future
        self._queue.append(PendingCommand(text=text, future=future))
        _logger.debug(f"Queued {name!r} ({len(self._queue)} pending)")

        if self._phase is SessionPhase.READY:
            self.dispatch_if_idle()
        return future

    async def send(
        self,
        name: str,
        params: Mapping[str, ParamValue] | Scalar | None = None,
        *flags: Scalar,
    ) -> Fields:
        """Send a command and wait for its result."""
        return await self.submit(name, params, *flags)

    async def send_raw(self, text: str) -> Fields:
        """Send a command typed as one line, e.g. ``clientkick clid=5 reasonid=5``."""
        name, params, flags = parse_command_line(text)
        return await self.send(name, params, *flags)

    def dispatch_if_idle(self) -> None:
        """Write the next queued command if none is in flight."""
        if self._current is not None or not self._queue:
            return
        if self._write is None:
            return

        command = self._queue.popleft()
        self._current = command
        _logger.debug(f"Dispatching: {command.text}")
        self._write(command.text + "\n")

        if self.command_timeout:
            loop = command.future.get_loop()
            command.timer = loop.call_later(
                self.command_timeout, self._expire, command
            )

    def _expire(self, command: PendingCommand) -> None:
        if command is not self._current:
            return
        _logger.warning(
            f"Command timed out after {self.command_timeout}s: {command.text}"
        )
        command.timer = None
        self._current = None
        command.reject(CommandTimeoutError(command.text, self.command_timeout))
        self.dispatch_if_idle()

    def fail_all(self, error: BaseException) -> None:
        """Fail the in-flight command and every queued command, in order."""
        failed = []
        if self._current is not None:
            failed.append(self._current)
            self._current = None
        while self._queue:
            failed.append(self._queue.popleft())
        for command in failed:
            command.reject(error)

    # Line handling

    def handle_line(self, line: str) -> None:
        """Consume one line received from the server."""
        if self._phase is SessionPhase.AWAITING_BANNER_1:
            self._phase = SessionPhase.AWAITING_BANNER_2
            return
        if self._phase is SessionPhase.AWAITING_BANNER_2:
            self._phase = SessionPhase.READY
            _logger.debug("Banner received, session ready")
            if self._ready is not None:
                self._ready.set()
            self.dispatch_if_idle()
            return

        line = line.strip()
        response = parse_line(line)
        if response is None:
            if line:
                _logger.debug(f"Ignoring unrecognized line: {line!r}")
            return

        if response.is_notification:
            try:
                self._notify(response.event_name, response.fields, line)
            except Exception:
                _logger.exception(f"Notification callback failed for {line!r}")
        elif response.is_error:
            self._terminate(response.succeeded, response.fields)
        elif self._current is not None:
            self._current.data = response.fields

        self.dispatch_if_idle()

    def _terminate(self, succeeded: bool, fields: Fields) -> None:
        command = self._current
        if command is None:
            _logger.warning(f"Terminator with no command in flight: {fields}")
            return

        self._current = None
        if succeeded:
            command.resolve(command.data if command.data is not None else fields)
        else:
            command.reject(QueryError(fields))

    async def wait_ready(self) -> None:
        """Wait until both banner lines have been received.

        Raises :class:`ConnectionLostError` if the connection ends first.
        """
        if self._phase is SessionPhase.READY:
            return
        if self._lost is None:
            if self._ready is None:
                self._ready = asyncio.Event()
            await self._ready.wait()
        if self._phase is not SessionPhase.READY:
            raise ConnectionLostError(str(self._lost))

    # Stream line source

    async def connect(self, host: str, port: int, encoding: str = "utf-8") -> None:
        """Open a TCP connection and start feeding its lines to the client."""
        self._encoding = encoding
        self._reader, self._writer = await asyncio.open_connection(
            host, port, limit=STREAM_LIMIT
        )
        self._lost = None
        self._write = self._write_stream
        self._reader_task = asyncio.create_task(self._read_lines())
        _logger.info(f"Connected to {host}:{port}")

    async def disconnect(self) -> None:
        """Close the connection and fail anything still pending."""
        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        if self._writer:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            self._writer = None

        self._connection_lost(ConnectionLostError("Connection closed"))

    async def closed(self) -> None:
        """Wait until the server closes the connection."""
        if self._reader_task is not None:
            await self._reader_task

    def _connection_lost(self, error: ConnectionLostError) -> None:
        if self._lost is None:
            self._lost = error
            _logger.info(f"Connection lost: {error}")
        self.fail_all(error)
        if self._ready is not None:
            self._ready.set()

    def _write_stream(self, text: str) -> None:
        self._writer.write(text.encode(self._encoding))

    async def _read_lines(self) -> None:
        try:
            while True:
                raw = await self._reader.readline()
                if not raw:
                    break
                line = raw.decode(self._encoding, errors="replace")
                # "\n\r" line endings leave a lone "\r" before EOF
                if line.strip():
                    self.handle_line(line)
        except (ConnectionError, OSError) as e:
            self._connection_lost(ConnectionLostError(str(e)))
            return
        except ValueError as e:
            # Line over STREAM_LIMIT; the stream can no longer be split into lines.
            self._connection_lost(ConnectionLostError(f"Unreadable line: {e}"))
            if self._writer is not None:
                self._writer.close()
            return

        self._connection_lost(ConnectionLostError("Server closed the connection"))

    async def __aenter__(self) -> QueryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()
