from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

from periods import days_in_month

T = TypeVar("T")
K = TypeVar("K")

PERCENT_UNITS = 1000  # tenths of a percent


@dataclass(frozen=True)
class MonthSummary(Generic[T, K]):
    year: int
    month: int
    records: list[T] = field(default_factory=list)
    total_cents: int = 0
    breakdown: dict[K, int] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def breakdown_rows(self) -> list[dict[str, object]]:
        return breakdown_rows(self.breakdown)


def build_month_summary(
    year: int,
    month: int,
    records: Iterable[T],
    key: Callable[[T], K],
) -> MonthSummary[T, K]:
    """Single pass over a month's records; ``records`` keep their order."""
    items: list[T] = []
    total = 0
    breakdown: dict[K, int] = {}
    for record in records:
        amount = record.amount_cents
        items.append(record)
        total += amount
        bucket = key(record)
        breakdown[bucket] = breakdown.get(bucket, 0) + amount
    return MonthSummary(
        year=year, month=month, records=items, total_cents=total, breakdown=breakdown
    )


def _display_name(bucket: object) -> str:
    name = getattr(bucket, "display_name", None)
    if name:
        return name
    if isinstance(bucket, Enum):
        return str(bucket.value)
    return str(bucket)


def reconcile_percentages(amounts: Sequence[int]) -> list[float]:
    """Percent shares rounded to one decimal that add up to exactly 100.

    Uses the largest-remainder method so rounding never drifts the total.
    """
    total = sum(amounts)
    if total <= 0:
        return [0.0 for _ in amounts]
    units = [amount * PERCENT_UNITS // total for amount in amounts]
    remainders = [amount * PERCENT_UNITS % total for amount in amounts]
    missing = PERCENT_UNITS - sum(units)
    order = sorted(range(len(amounts)), key=lambda i: remainders[i], reverse=True)
    for i in order[:missing]:
        units[i] += 1
    return [u / 10 for u in units]


def breakdown_rows(breakdown: dict[K, int]) -> list[dict[str, object]]:
    items = sorted(breakdown.items(), key=lambda kv: kv[1], reverse=True)
    percents = reconcile_percentages([amount for _, amount in items])
    return [
        {
            "key": getattr(bucket, "value", bucket),
            "name": _display_name(bucket),
            "amount_cents": amount,
            "percent": percent,
        }
        for (bucket, amount), percent in zip(items, percents)
    ]


class SpendingPaceStatus(str, Enum):
    on_track = "on_track"
    faster = "faster"
    slower = "slower"


@dataclass(frozen=True)
class SpendingPace:
    current_total_cents: int
    projected_total_cents: int
    average_monthly_cents: int
    months_in_average: int
    daily_average_cents: float
    days_elapsed: int
    days_in_month: int
    status: SpendingPaceStatus
    percentage_diff: float


PACE_TOLERANCE_PERCENT = 10.0


def spending_pace(
    current_total_cents: int,
    previous_totals_cents: Sequence[int],
    year: int,
    month: int,
    today: date,
) -> Optional[SpendingPace]:
    """Project this month's spending against the average of earlier months.

    ``previous_totals_cents`` are the totals of the preceding months (most
    recent first); months with no spending are ignored. Returns ``None``
    without any history to compare against.
    """
    history = [total for total in previous_totals_cents if total > 0]
    if not history:
        return None

    dim = days_in_month(year, month)
    is_current = today.year == year and today.month == month
    elapsed = today.day if is_current else dim

    average = sum(history) / len(history)
    daily = current_total_cents / elapsed if elapsed > 0 else 0.0
    projected = daily * dim
    diff = (projected - average) / average * 100

    if abs(diff) <= PACE_TOLERANCE_PERCENT:
        status = SpendingPaceStatus.on_track
    elif diff > 0:
        status = SpendingPaceStatus.faster
    else:
        status = SpendingPaceStatus.slower

    return SpendingPace(
        current_total_cents=current_total_cents,
        projected_total_cents=round(projected),
        average_monthly_cents=round(average),
        months_in_average=len(history),
        daily_average_cents=daily,
        days_elapsed=elapsed,
        days_in_month=dim,
        status=status,
        percentage_diff=diff,
    )
