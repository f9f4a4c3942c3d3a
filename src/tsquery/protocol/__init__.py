"""tsquery protocol - line-oriented server query protocol client."""

from .client import PendingCommand, QueryClient, SessionPhase
from .codec import escape, unescape
from .errors import (
    CommandTimeoutError,
    ConnectionLostError,
    QueryError,
    TSQueryError,
)
from .messages import (
    ERROR_TAG,
    NOTIFY_PREFIX,
    Event,
    ParsedLine,
    build_command,
    parse_command_line,
    parse_line,
    split_arguments,
)

__all__ = [
    "ERROR_TAG",
    "NOTIFY_PREFIX",
    "escape",
    "unescape",
    "ParsedLine",
    "Event",
    "parse_line",
    "build_command",
    "parse_command_line",
    "split_arguments",
    "SessionPhase",
    "PendingCommand",
    "QueryClient",
    "TSQueryError",
    "QueryError",
    "CommandTimeoutError",
    "ConnectionLostError",
]
