from datetime import date, datetime

import pytest

from periods import MonthCursor, days_in_month, month_end, month_start


TODAY = date(2024, 3, 20)


def test_month_bounds() -> None:
    assert month_start(2024, 2) == datetime(2024, 2, 1)
    assert month_end(2024, 2) == datetime(2024, 3, 1)
    assert month_end(2024, 12) == datetime(2025, 1, 1)
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28


def test_next_stops_at_current_month() -> None:
    current = MonthCursor.current(TODAY)

    assert current == MonthCursor(2024, 3)
    assert current.next(TODAY) == current
    assert not current.can_go_next(TODAY)
    assert MonthCursor(2024, 2).next(TODAY) == current


def test_previous_and_next_cross_year_boundary() -> None:
    assert MonthCursor(2024, 1).previous() == MonthCursor(2023, 12)
    assert MonthCursor(2023, 12).next(TODAY) == MonthCursor(2024, 1)


def test_jump_bounds() -> None:
    assert MonthCursor.jump(2020, 1, TODAY, floor_year=2020) == MonthCursor(2020, 1)
    assert MonthCursor.jump(2024, 3, TODAY, floor_year=2020).is_current(TODAY)

    with pytest.raises(ValueError):
        MonthCursor.jump(2019, 12, TODAY, floor_year=2020)
    with pytest.raises(ValueError):
        MonthCursor.jump(2024, 4, TODAY, floor_year=2020)


def test_invalid_month_rejected() -> None:
    with pytest.raises(ValueError):
        MonthCursor(2024, 13)


def test_label() -> None:
    assert MonthCursor(2024, 3).label == "March 2024"
