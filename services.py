from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload

from models import (
    CustomCategory,
    Expense,
    ExpenseCategory,
    Income,
    IncomeSource,
    Tag,
    expense_tags,
)
from periods import MonthCursor, local_today, month_end, month_start
from schemas import CustomCategoryIn, ExpenseIn, IncomeIn, TagIn
from summaries import MonthSummary, SpendingPace, build_month_summary, spending_pace


logger = logging.getLogger(__name__)

Listener = Callable[[], None]


def get_current_user_id() -> int:
    return 1


def cents_to_euros(cents: int) -> float:
    return cents / 100


class ChangeNotifier:
    """Publishes a bare "something changed" event after committed writes."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class TagService(ChangeNotifier):
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        super().__init__()
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Tag]:
        stmt = select(Tag).where(Tag.user_id == self.user_id).order_by(Tag.name)
        return self.session.scalars(stmt).all()

    def get(self, tag_id: int) -> Tag:
        tag = self.session.get(Tag, tag_id)
        if not tag or tag.user_id != self.user_id:
            raise ValueError("Tag not found")
        return tag

    def get_or_create(self, name: str) -> Tag:
        clean_name = name.strip()
        if not clean_name:
            raise ValueError("Tag name cannot be empty")

        stmt = select(Tag).where(
            Tag.user_id == self.user_id, func.lower(Tag.name) == clean_name.lower()
        )
        existing = self.session.scalar(stmt)
        if existing:
            return existing

        tag = Tag(user_id=self.user_id, name=clean_name)
        self.session.add(tag)
        self.session.flush()
        return tag

    def create(self, data: TagIn) -> Tag:
        clean_name = data.name.strip()
        if not clean_name:
            raise ValueError("Tag name cannot be empty")

        stmt = select(Tag).where(
            Tag.user_id == self.user_id, func.lower(Tag.name) == clean_name.lower()
        )
        if self.session.scalar(stmt):
            raise ValueError("Tag already exists")

        tag = Tag(user_id=self.user_id, name=clean_name, color=data.color)
        self.session.add(tag)
        self.session.commit()
        self.session.refresh(tag)
        self._notify()
        return tag

    def delete(self, tag_id: int) -> None:
        tag = self.get(tag_id)
        self.session.execute(
            delete(expense_tags).where(expense_tags.c.tag_id == tag.id)
        )
        self.session.delete(tag)
        self.session.commit()
        # Cached Expense.tags collections still hold the removed tag.
        self.session.expire_all()
        logger.info(f"tag_deleted: id={tag_id}")
        self._notify()

    def resolve_tags(self, names: list[str]) -> list[Tag]:
        tags: list[Tag] = []
        tag_ids: set[int] = set()
        for name in names:
            tag = self.get_or_create(name)
            if tag.id not in tag_ids:
                tags.append(tag)
                tag_ids.add(tag.id)
        return tags


class CustomCategoryService(ChangeNotifier):
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        super().__init__()
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self, include_inactive: bool = False) -> list[CustomCategory]:
        stmt = select(CustomCategory).where(CustomCategory.user_id == self.user_id)
        if not include_inactive:
            stmt = stmt.where(CustomCategory.is_active.is_(True))
        return self.session.scalars(stmt.order_by(CustomCategory.name)).all()

    def get(self, category_id: int) -> CustomCategory:
        category = self.session.get(CustomCategory, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Custom category not found")
        return category

    def create(self, data: CustomCategoryIn) -> CustomCategory:
        clean_name = data.name.strip()
        if not clean_name:
            raise ValueError("Category name cannot be empty")
        stmt = select(CustomCategory).where(
            CustomCategory.user_id == self.user_id,
            func.lower(CustomCategory.name) == clean_name.lower(),
        )
        if self.session.scalar(stmt):
            raise ValueError("Custom category already exists")
        category = CustomCategory(
            user_id=self.user_id, name=clean_name, icon=data.icon, color=data.color
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        self._notify()
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        self.session.execute(
            update(Expense)
            .where(
                Expense.user_id == self.user_id,
                Expense.custom_category_id == category.id,
            )
            .values(custom_category_id=None)
        )
        self.session.delete(category)
        self.session.commit()
        self.session.expire_all()
        logger.info(f"custom_category_deleted: id={category_id}")
        self._notify()


class ExpenseService(ChangeNotifier):
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        super().__init__()
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _check_custom_category(self, category_id: Optional[int]) -> None:
        if category_id is None:
            return
        category = self.session.get(CustomCategory, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Custom category not found")

    def create(self, data: ExpenseIn) -> Expense:
        self._check_custom_category(data.custom_category_id)
        expense = Expense(
            user_id=self.user_id,
            occurred_at=data.occurred_at,
            amount_cents=data.amount_cents,
            category=data.category,
            custom_category_id=data.custom_category_id,
            merchant=data.merchant,
            note=data.note,
            source=data.source,
            recurring_expense_id=data.recurring_expense_id,
        )
        if data.tags:
            expense.tags = TagService(self.session, self.user_id).resolve_tags(
                data.tags
            )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        logger.info(
            f"expense_created: id={expense.id} amount_cents={expense.amount_cents}"
        )
        self._notify()
        return expense

    def get(self, expense_id: int) -> Expense:
        stmt = (
            select(Expense)
            .options(joinedload(Expense.tags), joinedload(Expense.custom_category))
            .where(Expense.user_id == self.user_id, Expense.id == expense_id)
        )
        expense = self.session.scalars(stmt).unique().first()
        if not expense:
            raise ValueError("Expense not found")
        return expense

    def update(self, expense_id: int, data: ExpenseIn) -> Expense:
        expense = self.get(expense_id)
        self._check_custom_category(data.custom_category_id)
        expense.occurred_at = data.occurred_at
        expense.amount_cents = data.amount_cents
        expense.category = data.category
        expense.custom_category_id = data.custom_category_id
        expense.merchant = data.merchant
        expense.note = data.note
        expense.source = data.source
        expense.recurring_expense_id = data.recurring_expense_id
        expense.tags = TagService(self.session, self.user_id).resolve_tags(data.tags)
        self.session.commit()
        self.session.refresh(expense)
        logger.info(f"expense_updated: id={expense.id}")
        self._notify()
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.session.get(Expense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise ValueError("Expense not found")
        self.session.delete(expense)
        self.session.commit()
        logger.info(f"expense_deleted: id={expense_id}")
        self._notify()

    def list_for_month(self, year: int, month: int) -> list[Expense]:
        stmt = (
            select(Expense)
            .options(joinedload(Expense.tags), joinedload(Expense.custom_category))
            .where(
                Expense.user_id == self.user_id,
                Expense.occurred_at >= month_start(year, month),
                Expense.occurred_at < month_end(year, month),
            )
            .order_by(Expense.occurred_at.desc(), Expense.id.desc())
        )
        return list(self.session.scalars(stmt).unique().all())

    def month_summary(
        self, year: int, month: int
    ) -> MonthSummary[Expense, ExpenseCategory]:
        return build_month_summary(
            year, month, self.list_for_month(year, month), key=lambda e: e.category
        )

    def month_total(self, year: int, month: int) -> int:
        stmt = select(func.coalesce(func.sum(Expense.amount_cents), 0)).where(
            Expense.user_id == self.user_id,
            Expense.occurred_at >= month_start(year, month),
            Expense.occurred_at < month_end(year, month),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def spending_pace(
        self, year: int, month: int, today: Optional[date] = None
    ) -> Optional[SpendingPace]:
        today = today or local_today()
        previous: list[int] = []
        cursor = MonthCursor(year, month)
        for _ in range(3):
            cursor = cursor.previous()
            previous.append(self.month_total(cursor.year, cursor.month))
        return spending_pace(
            self.month_total(year, month), previous, year, month, today
        )


class IncomeService(ChangeNotifier):
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        super().__init__()
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def create(self, data: IncomeIn) -> Income:
        income = Income(
            user_id=self.user_id,
            occurred_at=data.occurred_at,
            amount_cents=data.amount_cents,
            source=data.source,
            note=data.note,
            recurring_income_id=data.recurring_income_id,
        )
        self.session.add(income)
        self.session.commit()
        self.session.refresh(income)
        logger.info(
            f"income_created: id={income.id} amount_cents={income.amount_cents}"
        )
        self._notify()
        return income

    def get(self, income_id: int) -> Income:
        income = self.session.get(Income, income_id)
        if not income or income.user_id != self.user_id:
            raise ValueError("Income not found")
        return income

    def update(self, income_id: int, data: IncomeIn) -> Income:
        income = self.get(income_id)
        for field, value in data.model_dump().items():
            setattr(income, field, value)
        self.session.commit()
        self.session.refresh(income)
        logger.info(f"income_updated: id={income.id}")
        self._notify()
        return income

    def delete(self, income_id: int) -> None:
        income = self.get(income_id)
        self.session.delete(income)
        self.session.commit()
        logger.info(f"income_deleted: id={income_id}")
        self._notify()

    def list_for_month(self, year: int, month: int) -> list[Income]:
        stmt = (
            select(Income)
            .where(
                Income.user_id == self.user_id,
                Income.occurred_at >= month_start(year, month),
                Income.occurred_at < month_end(year, month),
            )
            .order_by(Income.occurred_at.desc(), Income.id.desc())
        )
        return list(self.session.scalars(stmt).all())

    def month_summary(self, year: int, month: int) -> MonthSummary[Income, IncomeSource]:
        return build_month_summary(
            year, month, self.list_for_month(year, month), key=lambda i: i.source
        )
