"""Output formatting for CLI."""

from __future__ import annotations

import json
import sys

from ..protocol.errors import QueryError
from ..protocol.messages import Event, Fields


def format_value(value: str | list[str]) -> str:
    """Render a field value; repeated values are joined with commas."""
    if isinstance(value, list):
        return ", ".join(value)
    return value


def format_fields(fields: Fields) -> str:
    """Format result fields as ``key: value`` lines."""
    if not fields:
        return "OK"
    return "\n".join(f"{key}: {format_value(value)}" for key, value in fields.items())


def format_event(event: Event) -> str:
    """Format a notification for display."""
    pairs = " ".join(
        f"{key}={format_value(value)}" for key, value in event.fields.items()
    )
    return f"[{event.name}] {pairs}".rstrip()


def format_error(error: Exception) -> str:
    if isinstance(error, QueryError):
        return f"Error [{error.fields.get('id', '?')}]: {error.message}"
    return f"Error: {error}"


def print_result(fields: Fields, json_output: bool = False) -> None:
    """Print command result to stdout."""
    if json_output:
        print(json.dumps(fields, indent=2))
    else:
        print(format_fields(fields))


def print_error(error: Exception, json_output: bool = False) -> None:
    """Print a failed command to stderr."""
    if json_output and isinstance(error, QueryError):
        print(json.dumps({"error": error.to_dict()}, indent=2), file=sys.stderr)
    else:
        print(format_error(error), file=sys.stderr)


def print_event(event: Event, json_output: bool = False) -> None:
    """Print event to stdout."""
    if json_output:
        print(json.dumps(event.to_dict()))
    else:
        print(format_event(event))
    sys.stdout.flush()
