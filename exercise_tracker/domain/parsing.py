"""Lenient parsers for request values and the log's date rendering."""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
# date-only inputs resolve to midnight; missing year/month/day come from here
_PARSE_DEFAULT = datetime(2001, 1, 1)


def parse_int(value: Any) -> int | None:
    """Read the leading integer of ``value``, ignoring anything after it.

    ``"45"`` and ``"45min"`` both give ``45``; ``"abc"``, ``""`` and ``None``
    give ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def parse_date(value: Any) -> datetime | None:
    """Parse a date or timestamp string into an aware UTC datetime.

    ISO-8601 is tried first; anything else goes through ``dateutil`` so
    values such as ``"2024/01/06"``, ``"Jan 6 2024"`` or this service's own
    ``"Sat Jan 06 2024"`` are accepted. Date-only strings mean midnight UTC
    and naive timestamps are taken as UTC. Returns ``None`` when the value
    is not a valid calendar date.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = date_parser.parse(text, default=_PARSE_DEFAULT)
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_date_string(moment: datetime) -> str:
    """Render ``moment`` as ``"Mon Jan 01 2024"`` in UTC, independent of locale."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return (
        f"{_DAY_NAMES[moment.weekday()]} {_MONTH_NAMES[moment.month - 1]} "
        f"{moment.day:02d} {moment.year:04d}"
    )


def is_valid_id(value: Any) -> bool:
    """Return ``True`` when ``value`` looks like a store-generated id.

    A literal ``"0"`` is never valid.
    """
    if not isinstance(value, str) or value == "0":
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True
