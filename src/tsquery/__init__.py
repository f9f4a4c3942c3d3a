"""tsquery - client for line-oriented voice server query interfaces."""

from .protocol import (
    CommandTimeoutError,
    ConnectionLostError,
    Event,
    QueryClient,
    QueryError,
    SessionPhase,
    TSQueryError,
)

__version__ = "0.1.0"

__all__ = [
    "QueryClient",
    "SessionPhase",
    "Event",
    "TSQueryError",
    "QueryError",
    "CommandTimeoutError",
    "ConnectionLostError",
]
