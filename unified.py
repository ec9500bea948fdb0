"""Merged, read-only view over a month's expenses and incomes.

Everything here is a pure function of its inputs: rows are rebuilt from the
stores on every refresh and edits always go back through the owning store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from itertools import groupby
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from models import Expense, Income, TransactionType
from schemas import ExpenseFilter

if TYPE_CHECKING:  # pragma: no cover
    from services import ExpenseService, IncomeService


class TransactionFilter(str, Enum):
    all = "all"
    income = "income"
    expenses = "expenses"

    @property
    def label(self) -> str:
        return {
            TransactionFilter.all: "transactions",
            TransactionFilter.income: "income entries",
            TransactionFilter.expenses: "expenses",
        }[self]


# Higher rank sorts first among rows sharing a timestamp.
_TYPE_RANK = {TransactionType.expense: 1, TransactionType.income: 0}


@dataclass(frozen=True)
class UnifiedTransaction:
    id: int
    type: TransactionType
    date: datetime
    title: str
    subtitle: str
    amount_cents: int
    is_from_recurring: bool = False
    expense: Optional[Expense] = None
    income: Optional[Income] = None

    def __post_init__(self) -> None:
        if self.type == TransactionType.expense:
            valid = self.expense is not None and self.income is None
        else:
            valid = self.income is not None and self.expense is None
        if not valid:
            raise ValueError("Unified transaction must reference exactly one record")

    @classmethod
    def from_expense(cls, expense: Expense) -> "UnifiedTransaction":
        # A deleted custom category leaves the relationship empty and the
        # built-in category name takes over.
        custom = expense.custom_category
        category_name = custom.name if custom else expense.category.display_name
        merchant = (expense.merchant or "").strip()
        note = (expense.note or "").strip()
        if merchant:
            title, subtitle = merchant, category_name
        elif note:
            title, subtitle = category_name, note
        else:
            title, subtitle = category_name, category_name
        return cls(
            id=expense.id,
            type=TransactionType.expense,
            date=expense.occurred_at,
            title=title,
            subtitle=subtitle,
            amount_cents=expense.amount_cents,
            is_from_recurring=expense.is_from_recurring,
            expense=expense,
        )

    @classmethod
    def from_income(cls, income: Income) -> "UnifiedTransaction":
        note = (income.note or "").strip()
        source_name = income.source.display_name
        if note:
            title, subtitle = note, source_name
        else:
            title, subtitle = source_name, ""
        return cls(
            id=income.id,
            type=TransactionType.income,
            date=income.occurred_at,
            title=title,
            subtitle=subtitle,
            amount_cents=income.amount_cents,
            is_from_recurring=income.is_from_recurring,
            income=income,
        )

    @property
    def key(self) -> str:
        return f"{self.type.value}-{self.id}"

    @property
    def signed_amount_cents(self) -> int:
        if self.type == TransactionType.income:
            return self.amount_cents
        return -self.amount_cents

    @property
    def as_expense(self) -> Expense:
        if self.expense is None:
            raise ValueError("Cannot read an income transaction as an expense")
        return self.expense

    @property
    def as_income(self) -> Income:
        if self.income is None:
            raise ValueError("Cannot read an expense transaction as an income")
        return self.income


def build_unified_transactions(
    expenses: Iterable[Expense], incomes: Iterable[Income]
) -> list[UnifiedTransaction]:
    """Newest first; on equal timestamps expenses precede incomes.

    The sort is stable, so rows of one kind keep the order the store
    returned them in.
    """
    rows = [UnifiedTransaction.from_expense(e) for e in expenses]
    rows.extend(UnifiedTransaction.from_income(i) for i in incomes)
    rows.sort(key=lambda t: (t.date, _TYPE_RANK[t.type]), reverse=True)
    return rows


def unified_transactions(
    expense_service: "ExpenseService",
    income_service: "IncomeService",
    year: int,
    month: int,
) -> list[UnifiedTransaction]:
    return build_unified_transactions(
        expense_service.month_summary(year, month).records,
        income_service.month_summary(year, month).records,
    )


def apply_type_filter(
    transactions: Sequence[UnifiedTransaction], type_filter: TransactionFilter
) -> list[UnifiedTransaction]:
    if type_filter == TransactionFilter.income:
        return [t for t in transactions if t.type == TransactionType.income]
    if type_filter == TransactionFilter.expenses:
        return [t for t in transactions if t.type == TransactionType.expense]
    return list(transactions)


def apply_search(
    transactions: Sequence[UnifiedTransaction], query: Optional[str]
) -> list[UnifiedTransaction]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(transactions)
    return [
        t
        for t in transactions
        if needle in t.title.lower() or needle in t.subtitle.lower()
    ]


def apply_expense_filter(
    transactions: Sequence[UnifiedTransaction], expense_filter: ExpenseFilter
) -> list[UnifiedTransaction]:
    # Income rows are outside the filter's vocabulary and always pass.
    if not expense_filter.has_active_filters:
        return list(transactions)
    return [
        t
        for t in transactions
        if t.type != TransactionType.expense or expense_filter.matches(t.as_expense)
    ]


def has_search_or_filter(
    query: Optional[str], expense_filter: Optional[ExpenseFilter]
) -> bool:
    return bool((query or "").strip()) or bool(
        expense_filter and expense_filter.has_active_filters
    )


def apply_filters(
    transactions: Sequence[UnifiedTransaction],
    type_filter: TransactionFilter = TransactionFilter.all,
    query: Optional[str] = None,
    expense_filter: Optional[ExpenseFilter] = None,
) -> list[UnifiedTransaction]:
    rows = apply_type_filter(transactions, type_filter)
    rows = apply_search(rows, query)
    if expense_filter is not None:
        rows = apply_expense_filter(rows, expense_filter)
    return rows


def group_by_day(
    transactions: Sequence[UnifiedTransaction],
) -> list[tuple[date, list[UnifiedTransaction]]]:
    """Consecutive rows sharing a calendar day, for day headers."""
    return [
        (day, list(rows))
        for day, rows in groupby(transactions, key=lambda t: t.date.date())
    ]
