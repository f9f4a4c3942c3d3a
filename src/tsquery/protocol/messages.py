"""Line parsing and command serialization for the query protocol."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union

from .codec import escape, unescape

ERROR_TAG = "error"
NOTIFY_PREFIX = "notify"

Scalar = Union[str, int, float, bool]
ParamValue = Union[Scalar, Sequence[Scalar]]
Fields = dict[str, Union[str, list[str]]]

# A leading bare keyword, or a key=value token whose value stops at a space or pipe.
_TOKEN_RE = re.compile(
    rf"^(?:{ERROR_TAG}|{NOTIFY_PREFIX}\w+)(?=\s|$)|\w+=[^\s|]*",
    re.IGNORECASE,
)


@dataclass
class ParsedLine:
    """One line received from the server."""

    tag: str | None
    fields: Fields = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.tag is not None and self.tag.lower() == ERROR_TAG

    @property
    def is_notification(self) -> bool:
        return self.tag is not None and self.tag.lower().startswith(NOTIFY_PREFIX)

    @property
    def event_name(self) -> str | None:
        """Notification name with the prefix stripped."""
        if not self.is_notification:
            return None
        return self.tag[len(NOTIFY_PREFIX):]

    @property
    def succeeded(self) -> bool:
        """Whether a terminator line reports success (``id`` equal to zero)."""
        value = self.fields.get("id")
        if isinstance(value, list):
            return False
        try:
            return float(value) == 0
        except (TypeError, ValueError):
            return False


@dataclass
class Event:
    """An unsolicited notification pushed by the server."""

    name: str
    fields: Fields = field(default_factory=dict)
    raw: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.name, "fields": self.fields, "raw": self.raw}


def parse_line(line: str) -> ParsedLine | None:
    """Parse a raw protocol line.

    Returns ``None`` when the line holds no recognizable token, which callers
    treat as "ignore this line".
    """
    tokens = _TOKEN_RE.findall(line)
    if not tokens:
        return None

    tag = tokens.pop(0) if "=" not in tokens[0] else None

    fields: Fields = {}
    for token in tokens:
        raw_key, raw_value = token.split("=", 1)
        key, value = unescape(raw_key), unescape(raw_value)
        if key not in fields:
            fields[key] = value
        elif isinstance(fields[key], list):
            fields[key].append(value)
        else:
            fields[key] = [fields[key], value]

    return ParsedLine(tag=tag, fields=fields)


def _render(value: Scalar) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return escape(value)


def build_command(
    name: str,
    params: Mapping[str, ParamValue] | None = None,
    flags: Iterable[Scalar] = (),
) -> str:
    """Serialize a command to its wire text, without the line terminator.

    List values become one pipe-joined run of ``key=value`` pairs. ``None``
    values and empty lists are skipped. Flags follow the keyed parameters.
    """
    parts = [name]
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            if value:
                parts.append("|".join(f"{escape(key)}={_render(v)}" for v in value))
        else:
            parts.append(f"{escape(key)}={_render(value)}")
    parts.extend(_render(flag) for flag in flags)
    return " ".join(parts)


def parse_command_line(text: str) -> tuple[str, dict[str, ParamValue], list[str]]:
    """Split a human-typed command into name, parameters and flags.

    Tokens are split shell-style, so quoted values may contain spaces.
    ``key=value`` tokens become parameters (a repeated key collects a list),
    ``a=1|a=2`` groups are read as a list, and anything else is a flag.
    """
    tokens = shlex.split(text)
    if not tokens:
        raise ValueError("Empty command")

    name, *rest = tokens
    params, flags = split_arguments(rest)
    return name, params, flags


def split_arguments(tokens: Iterable[str]) -> tuple[dict[str, ParamValue], list[str]]:
    """Sort already-split argument tokens into parameters and flags."""
    params: dict[str, ParamValue] = {}
    flags: list[str] = []

    for token in tokens:
        pieces = token.split("|") if "|" in token else [token]
        if not all(_is_pair(p) for p in pieces):
            flags.append(token)
            continue
        for piece in pieces:
            key, value = piece.split("=", 1)
            if key not in params:
                params[key] = value
            elif isinstance(params[key], list):
                params[key].append(value)
            else:
                params[key] = [params[key], value]

    return params, flags


def _is_pair(token: str) -> bool:
    key, sep, _ = token.partition("=")
    return bool(sep) and bool(key)
