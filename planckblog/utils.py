"""String, time, JSON and number helpers shared across the blog."""

from __future__ import annotations

import json
import math
import re
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Union
from urllib.parse import quote

# Characters that the C locale treats as white space.
_WHITESPACE = " \t\n\v\f\r"
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DATE_RE = re.compile(r"\s*(\d{1,4})-(\d{1,2})-(\d{1,2})")
_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(
    r"-?(?:inf(?:inity)?|nan(?:\([A-Za-z0-9_]*\))?"
    r"|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)",
    re.IGNORECASE,
)


def lstrip(s: str) -> str:
    """Remove leading white space."""
    return s.lstrip(_WHITESPACE)


def rstrip(s: str) -> str:
    """Remove trailing white space."""
    return s.rstrip(_WHITESPACE)


def strip(s: str) -> str:
    """Remove white space from both ends."""
    return rstrip(lstrip(s))


def to_lower(s: str) -> str:
    """Lower-case the ASCII letters of a string, leaving others alone."""
    return s.translate(_ASCII_LOWER)


def escape_html(s: str) -> str:
    """Escape the characters that are special in HTML."""
    replacements = {
        "&": "&amp;",
        '"': "&quot;",
        "'": "&apos;",
        "<": "&lt;",
        ">": "&gt;",
    }
    return "".join(replacements.get(c, c) for c in s)


def url_encode(s: Union[str, bytes]) -> str:
    """Percent-encode everything except unreserved URL characters."""
    return quote(s, safe="")


def parse_json(text: Union[str, bytes]) -> Any:
    """Parse a JSON document; raise ValueError if it is invalid."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid JSON: {e}") from e


def _as_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def time_to_seconds(t: datetime) -> int:
    """Whole seconds since the Unix epoch, truncated toward zero."""
    delta = _as_utc(t) - _EPOCH
    micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    return int(micros / 1_000_000) if micros < 0 else micros // 1_000_000


def seconds_to_time(seconds: int) -> datetime:
    """The UTC time that lies the given seconds after the Unix epoch."""
    return _EPOCH + timedelta(seconds=seconds)


def str_to_date(s: str) -> datetime:
    """Parse a YYYY-MM-DD date into midnight UTC of that day."""
    match = _DATE_RE.match(s)
    if match is None:
        raise ValueError("Invalid date")
    year, month, day = (int(g) for g in match.groups())
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError as e:
        raise ValueError("Invalid date") from e


def time_to_str(t: datetime) -> str:
    """Format a time as 'YYYY-MM-DD HH:MM' in UTC."""
    return _as_utc(t).strftime("%Y-%m-%d %H:%M")


def time_to_iso8601(t: datetime) -> str:
    """Format a time as 'YYYY-MM-DDTHH:MM+0000' in UTC."""
    return _as_utc(t).strftime("%Y-%m-%dT%H:%M%z")


def str_to_number(s: str, number_type: type = int) -> Union[int, float]:
    """Convert the whole of a string to an int or a float.

    Raises ValueError when nothing, or only a prefix, can be converted,
    and when a float is out of range.
    """
    if number_type is int:
        pattern = _INT_RE
    elif number_type is float:
        pattern = _FLOAT_RE
    else:
        raise TypeError(f"Unsupported number type: {number_type!r}")

    match = pattern.match(s)
    if match is None:
        raise ValueError("Failed to convert string to number")
    text = match.group(0)
    if number_type is int:
        value: Union[int, float] = int(text)
    else:
        lowered = text.lower().lstrip("-")
        if lowered.startswith("nan"):
            value = math.nan
        else:
            value = float(text)
            if math.isinf(value) and not lowered.startswith("inf"):
                raise ValueError("out of range")
    if match.end() != len(s):
        raise ValueError("Only part of the string can be converted to number")
    return value