from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import Expense, ExpenseCategory, ExpenseSource, IncomeSource


class ExpenseIn(BaseModel):
    occurred_at: datetime
    amount_cents: int = Field(..., gt=0)
    category: ExpenseCategory = ExpenseCategory.other
    custom_category_id: Optional[int] = None
    merchant: Optional[str] = Field(default=None, max_length=120)
    note: Optional[str] = Field(default=None, max_length=500)
    source: ExpenseSource = ExpenseSource.manual
    tags: list[str] = Field(default_factory=list)
    recurring_expense_id: Optional[int] = None


class IncomeIn(BaseModel):
    occurred_at: datetime
    amount_cents: int = Field(..., gt=0)
    source: IncomeSource = IncomeSource.other
    note: Optional[str] = Field(default=None, max_length=500)
    recurring_income_id: Optional[int] = None


class TagIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(None, max_length=9)


class CustomCategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(None, max_length=40)
    color: Optional[str] = Field(None, max_length=9)


class ExpenseFilter(BaseModel):
    """Structured expense filter.

    Every populated field is one predicate and a record must satisfy all of
    them. Empty sets and ``None`` bounds are inactive, so the default
    instance matches every expense. Inverted ranges are rejected here so
    that ``matches`` never has to decide what they mean.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    categories: frozenset[ExpenseCategory] = frozenset()
    tag_ids: frozenset[int] = frozenset()
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount_cents: Optional[int] = Field(default=None, ge=0)
    max_amount_cents: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> "ExpenseFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("Start date must be before end date")
        if (
            self.min_amount_cents is not None
            and self.max_amount_cents is not None
            and self.min_amount_cents > self.max_amount_cents
        ):
            raise ValueError("Minimum amount must not exceed maximum amount")
        return self

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.categories
            or self.tag_ids
            or self.start_date is not None
            or self.end_date is not None
            or self.min_amount_cents is not None
            or self.max_amount_cents is not None
        )

    @property
    def active_filter_count(self) -> int:
        count = 0
        if self.categories:
            count += 1
        if self.tag_ids:
            count += 1
        if self.start_date is not None or self.end_date is not None:
            count += 1
        if self.min_amount_cents is not None or self.max_amount_cents is not None:
            count += 1
        return count

    def matches(self, expense: Expense) -> bool:
        if self.categories and expense.category not in self.categories:
            return False
        if self.tag_ids and not (expense.tag_ids & self.tag_ids):
            return False
        day = expense.occurred_at.date()
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        if (
            self.min_amount_cents is not None
            and expense.amount_cents < self.min_amount_cents
        ):
            return False
        if (
            self.max_amount_cents is not None
            and expense.amount_cents > self.max_amount_cents
        ):
            return False
        return True


EMPTY_FILTER = ExpenseFilter()
