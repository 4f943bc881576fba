"""Service-type classification by time of day.

Windows are inclusive ``[start, end]`` ranges in minutes since midnight; a
window whose end is before its start spans midnight. Sales between 00:00 and
03:59 are attributed to 23:00 of the previous evening before any comparison.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import ServiceTypeRef
from .normalizers import time_to_minutes

NIGHT_HOUR_MAX = 3
NIGHT_REMAP_TIME = "23:00"
NIGHT_NOTICE = (
    "Sales recorded between 00:00 and 03:59 are attributed to the 23:00 service "
    "of the previous evening."
)


def is_night_hour(time: str) -> bool:
    minutes = time_to_minutes(time)
    return minutes is not None and minutes // 60 <= NIGHT_HOUR_MAX


def remap_night_time(time: str) -> str:
    return NIGHT_REMAP_TIME if is_night_hour(time) else time


def is_time_in_window(time: str, window_start: str | None, window_end: str | None) -> bool:
    """Return True when ``time`` (after the night remap) lies in the window.

    Unparseable times or bounds never match.
    """

    t = time_to_minutes(remap_night_time(time))
    start = time_to_minutes(window_start)
    end = time_to_minutes(window_end)
    if t is None or start is None or end is None:
        return False
    if end < start:
        return t >= start or t <= end
    return start <= t <= end


def find_service_type(
    time: str, candidates: Iterable[ServiceTypeRef]
) -> ServiceTypeRef | None:
    """First candidate, in iteration order, whose window contains ``time``.

    Overlapping windows are not detected; the first match wins.
    """

    for candidate in candidates:
        if not candidate.window_start or not candidate.window_end:
            continue
        if is_time_in_window(time, candidate.window_start, candidate.window_end):
            return candidate
    return None


__all__ = [
    "NIGHT_NOTICE",
    "NIGHT_REMAP_TIME",
    "find_service_type",
    "is_night_hour",
    "is_time_in_window",
    "remap_night_time",
]
