"""Exceptions raised to callers awaiting query commands."""

from __future__ import annotations

from typing import Any


class TSQueryError(Exception):
    """Base class for tsquery errors."""


class QueryError(TSQueryError):
    """The server ended a command with a non-zero error id."""

    def __init__(self, fields: dict[str, Any]):
        self.fields = dict(fields)
        self.id = _as_int(self.fields.get("id"))
        msg = self.fields.get("msg", "")
        self.message = " ".join(msg) if isinstance(msg, list) else msg
        super().__init__(f"error {self.fields.get('id', '?')}: {self.message}")

    def to_dict(self) -> dict[str, Any]:
        return dict(self.fields)


class CommandTimeoutError(TSQueryError, TimeoutError):
    """The in-flight command got no terminator within the configured timeout."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"No response to {command.split(' ', 1)[0]!r} within {timeout}s")


class ConnectionLostError(TSQueryError, ConnectionError):
    """The line source closed or failed before the command completed."""


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
