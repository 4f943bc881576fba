"""Normalization helpers for French-formatted revenue exports.

All functions are total: bad input yields a sentinel (``Decimal(0)``,
``None`` or the unchanged token) and never an exception. Callers decide
whether a sentinel means "missing" or "invalid".
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

# Two-digit years landing more than this many years after the current year
# are placed in the previous century ("31/12/99" -> 1999).
TWO_DIGIT_YEAR_FUTURE_WINDOW = 20

# Any Unicode whitespace, including NBSP / narrow NBSP thousands separators.
_WS_RE = re.compile(r"\s+")
_AMOUNT_RE = re.compile(r"-?\d+(?:\.\d+)?", re.ASCII)
_DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})", re.ASCII)

_TIME_COLON_RE = re.compile(r"(\d{1,2}):(\d{1,2})(?::\d{2})?", re.ASCII)
_TIME_H_RE = re.compile(r"(\d{1,2})H(\d{0,2})", re.ASCII)
_TIME_HOUR_RE = re.compile(r"\d{1,2}", re.ASCII)
_MINUTES_RE = re.compile(r"(\d{1,2})[:H](\d{1,2})?(?::\d{2})?", re.ASCII)


def parse_amount(text: str | None) -> Decimal:
    """Parse a decimal-comma amount such as ``"1 234,50"``.

    Whitespace anywhere in the token is removed and the decimal comma becomes
    a period. Anything that is not then a plain signed decimal returns
    ``Decimal(0)``; zero is therefore not a "missing" marker.
    """

    if text is None:
        return Decimal(0)
    cleaned = _WS_RE.sub("", str(text)).replace(",", ".")
    if not _AMOUNT_RE.fullmatch(cleaned):
        return Decimal(0)
    return Decimal(cleaned)


def expand_two_digit_year(yy: int, *, today: date | None = None) -> int:
    """Expand ``yy`` into the current century with a future window."""

    current_year = (today or date.today()).year
    year = (current_year // 100) * 100 + yy
    if year > current_year + TWO_DIGIT_YEAR_FUTURE_WINDOW:
        year -= 100
    return year


def parse_date(text: str | None, *, today: date | None = None) -> date | None:
    """Parse ``DD/MM/YY`` or ``DD/MM/YYYY``; ``None`` when not a real date."""

    if text is None:
        return None
    m = _DATE_RE.fullmatch(str(text).strip())
    if m is None:
        return None
    day, month, year_raw = m.groups()
    year = int(year_raw)
    if len(year_raw) == 2:
        year = expand_two_digit_year(year, today=today)
    try:
        return date(year, int(month), int(day))
    except ValueError:
        return None


def format_time(text: str | None) -> str:
    """Normalize a time token to zero-padded ``HH:MM``.

    Recognized: ``7``, ``07``, ``7:5``, ``7:30``, ``07:30``, ``07:30:00``,
    ``7H``, ``7h30``, ``07H05``. Seconds are dropped. Empty input gives ``""``;
    anything else is returned stripped and unchanged so that classification
    reports it later.
    """

    if text is None:
        return ""
    token = str(text).strip()
    if not token:
        return ""

    m = _TIME_COLON_RE.fullmatch(token)
    if m:
        return f"{int(m.group(1)):02d}:{int(m.group(2)):02d}"

    m = _TIME_H_RE.fullmatch(token.upper())
    if m:
        minutes = m.group(2) or "0"
        return f"{int(m.group(1)):02d}:{int(minutes):02d}"

    if _TIME_HOUR_RE.fullmatch(token):
        return f"{int(token):02d}:00"

    return token


def time_to_minutes(text: str | None) -> int | None:
    """Minutes since midnight for ``HH:MM``, ``HH:MM:SS`` or ``HHhMM``.

    Returns ``None`` for anything else, including out-of-range clock values.
    """

    if text is None:
        return None
    m = _MINUTES_RE.fullmatch(str(text).strip().upper())
    if m is None:
        return None
    hours = int(m.group(1))
    minutes = int(m.group(2) or 0)
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


__all__ = [
    "TWO_DIGIT_YEAR_FUTURE_WINDOW",
    "expand_two_digit_year",
    "format_time",
    "parse_amount",
    "parse_date",
    "time_to_minutes",
]
