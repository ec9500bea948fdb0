from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def month_end(year: int, month: int) -> datetime:
    """First instant of the following month (exclusive bound)."""
    if month == 12:
        return datetime(year + 1, 1, 1)
    return datetime(year, month + 1, 1)


def days_in_month(year: int, month: int) -> int:
    return (month_end(year, month) - month_start(year, month)).days


@dataclass(frozen=True, order=True)
class MonthCursor:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError("Month must be between 1 and 12")

    @classmethod
    def current(cls, today: Optional[date] = None) -> "MonthCursor":
        today = today or local_today()
        return cls(today.year, today.month)

    def previous(self) -> "MonthCursor":
        if self.month == 1:
            return MonthCursor(self.year - 1, 12)
        return MonthCursor(self.year, self.month - 1)

    def is_current(self, today: Optional[date] = None) -> bool:
        return self == MonthCursor.current(today)

    def can_go_next(self, today: Optional[date] = None) -> bool:
        return self < MonthCursor.current(today)

    def next(self, today: Optional[date] = None) -> "MonthCursor":
        # No future months: stays put once the current month is reached.
        if not self.can_go_next(today):
            return self
        if self.month == 12:
            return MonthCursor(self.year + 1, 1)
        return MonthCursor(self.year, self.month + 1)

    @classmethod
    def jump(
        cls,
        year: int,
        month: int,
        today: Optional[date] = None,
        *,
        floor_year: Optional[int] = None,
    ) -> "MonthCursor":
        if floor_year is None:
            floor_year = get_settings().month_floor_year
        target = cls(year, month)
        if target < cls(floor_year, 1):
            raise ValueError(f"Month must not be before {floor_year}")
        if target > cls.current(today):
            raise ValueError("Month must not be in the future")
        return target

    @property
    def start(self) -> datetime:
        return month_start(self.year, self.month)

    @property
    def end(self) -> datetime:
        return month_end(self.year, self.month)

    @property
    def label(self) -> str:
        return self.start.strftime("%B %Y")
