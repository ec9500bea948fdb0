from datetime import datetime
from typing import Optional

from models import Expense, ExpenseCategory, Income, IncomeSource
from schemas import ExpenseIn, IncomeIn
from services import ExpenseService, IncomeService


def add_expense(
    service: ExpenseService,
    amount_cents: int,
    occurred_at: datetime,
    category: ExpenseCategory = ExpenseCategory.food,
    merchant: Optional[str] = None,
    note: Optional[str] = None,
    tags: Optional[list[str]] = None,
    custom_category_id: Optional[int] = None,
) -> Expense:
    return service.create(
        ExpenseIn(
            occurred_at=occurred_at,
            amount_cents=amount_cents,
            category=category,
            merchant=merchant,
            note=note,
            tags=tags or [],
            custom_category_id=custom_category_id,
        )
    )


def add_income(
    service: IncomeService,
    amount_cents: int,
    occurred_at: datetime,
    source: IncomeSource = IncomeSource.salary,
    note: Optional[str] = None,
) -> Income:
    return service.create(
        IncomeIn(
            occurred_at=occurred_at,
            amount_cents=amount_cents,
            source=source,
            note=note,
        )
    )
