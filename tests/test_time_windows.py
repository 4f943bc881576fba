import pytest

from revenue_import.models import ServiceTypeRef
from revenue_import.time_windows import (
    NIGHT_REMAP_TIME,
    find_service_type,
    is_night_hour,
    is_time_in_window,
    remap_night_time,
)


def _st(code: str, start: str | None, end: str | None) -> ServiceTypeRef:
    return ServiceTypeRef(
        id=f"st-{code}",
        code=code,
        label=None,
        window_start=start,
        window_end=end,
        subcategory_id=f"sub-{code}",
    )


@pytest.mark.parametrize(
    ("time", "night"),
    [("00:00", True), ("01:30", True), ("03:59", True), ("04:00", False), ("23:30", False)],
)
def test_is_night_hour(time, night):
    assert is_night_hour(time) is night


def test_remap_night_time():
    assert remap_night_time("02:15") == NIGHT_REMAP_TIME
    assert remap_night_time("12:15") == "12:15"
    assert remap_night_time("bogus") == "bogus"


def test_window_bounds_are_inclusive():
    assert is_time_in_window("11:00", "11:00:00", "14:59:00")
    assert is_time_in_window("14:59", "11:00:00", "14:59:00")
    assert not is_time_in_window("15:00", "11:00:00", "14:59:00")


def test_window_spanning_midnight():
    assert is_time_in_window("23:30", "23:00", "03:00")
    # Night hours are first moved to 23:00, which sits inside the window.
    assert is_time_in_window("02:00", "23:00", "03:00")
    assert not is_time_in_window("12:00", "23:00", "03:00")


def test_night_hours_do_not_match_a_morning_window():
    assert not is_time_in_window("01:00", "00:00", "05:00")


def test_unparseable_inputs_never_match():
    assert not is_time_in_window("noon", "11:00", "14:00")
    assert not is_time_in_window("12:00", "bad", "14:00")
    assert not is_time_in_window("12:00", "11:00", None)


def test_find_service_type_first_match_wins_and_skips_incomplete_windows():
    lunch = _st("DEJ", "11:00:00", "14:59:00")
    brunch = _st("BRUNCH", "10:00:00", "13:00:00")
    unset = _st("UNSET", None, "23:00:00")
    assert find_service_type("12:00", [unset, lunch, brunch]) is lunch
    assert find_service_type("10:30", [unset, lunch, brunch]) is brunch
    assert find_service_type("16:00", [unset, lunch, brunch]) is None
    assert find_service_type("12:00", []) is None
