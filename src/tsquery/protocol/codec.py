"""Escaping rules for values carried inside query protocol tokens."""

from __future__ import annotations

import re
from typing import Final

# Reserved character -> two-character escape sequence.
ESCAPE_MAP: Final[dict[str, str]] = {
    "\\": r"\\",
    "/": r"\/",
    "|": r"\p",
    "\n": r"\n",
    "\r": r"\r",
    "\t": r"\t",
    "\v": r"\v",
    "\f": r"\f",
    " ": r"\s",
}

UNESCAPE_MAP: Final[dict[str, str]] = {seq: char for char, seq in ESCAPE_MAP.items()}

_ESCAPE_TABLE = str.maketrans(ESCAPE_MAP)
_ESCAPE_SEQUENCE = re.compile(r"\\.", re.DOTALL)


def escape(value: object) -> str:
    """Escape a value for use as a protocol key, value or flag.

    Non-string values are converted with ``str()`` first. Every reserved
    character is replaced in a single pass, so backslashes introduced by a
    substitution are never escaped again.
    """
    return str(value).translate(_ESCAPE_TABLE)


def unescape(value: str) -> str:
    """Reverse :func:`escape`.

    Each two-character sequence is consumed as one unit, left to right.
    Sequences outside the escape table are left untouched.
    """
    return _ESCAPE_SEQUENCE.sub(
        lambda m: UNESCAPE_MAP.get(m.group(0), m.group(0)), value
    )
