from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class ExpenseSource(str, Enum):
    manual = "manual"
    sms = "sms"
    recurring = "recurring"


class ExpenseCategory(str, Enum):
    food = "food"
    transport = "transport"
    shopping = "shopping"
    entertainment = "entertainment"
    bills = "bills"
    health = "health"
    education = "education"
    other = "other"

    @property
    def display_name(self) -> str:
        return EXPENSE_CATEGORY_NAMES[self]


EXPENSE_CATEGORY_NAMES = {
    ExpenseCategory.food: "Food & Dining",
    ExpenseCategory.transport: "Transport",
    ExpenseCategory.shopping: "Shopping",
    ExpenseCategory.entertainment: "Entertainment",
    ExpenseCategory.bills: "Bills & Utilities",
    ExpenseCategory.health: "Health",
    ExpenseCategory.education: "Education",
    ExpenseCategory.other: "Other",
}


class IncomeSource(str, Enum):
    salary = "salary"
    freelance = "freelance"
    business = "business"
    investment = "investment"
    gift = "gift"
    refund = "refund"
    other = "other"

    @property
    def display_name(self) -> str:
        return INCOME_SOURCE_NAMES[self]


INCOME_SOURCE_NAMES = {
    IncomeSource.salary: "Salary",
    IncomeSource.freelance: "Freelance Income",
    IncomeSource.business: "Business Income",
    IncomeSource.investment: "Investment Returns",
    IncomeSource.gift: "Gift",
    IncomeSource.refund: "Refund",
    IncomeSource.other: "Other",
}


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class CustomCategory(Base, TimestampMixin):
    __tablename__ = "custom_categories"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_custom_category_user_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(40))
    color: Mapped[Optional[str]] = mapped_column(String(9))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="custom_category"
    )


class Tag(Base, TimestampMixin):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(9))

    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", secondary="expense_tags", back_populates="tags"
    )


expense_tags = Table(
    "expense_tags",
    Base.metadata,
    Column("expense_id", Integer, ForeignKey("expenses.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id"), primary_key=True),
)


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        SAEnum(ExpenseCategory), nullable=False, default=ExpenseCategory.other
    )
    custom_category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("custom_categories.id", ondelete="SET NULL")
    )
    merchant: Mapped[Optional[str]] = mapped_column(String(120))
    note: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[ExpenseSource] = mapped_column(
        SAEnum(ExpenseSource), nullable=False, default=ExpenseSource.manual
    )
    recurring_expense_id: Mapped[Optional[int]] = mapped_column(Integer)

    custom_category: Mapped[Optional["CustomCategory"]] = relationship(
        "CustomCategory", back_populates="expenses"
    )
    tags: Mapped[list["Tag"]] = relationship(
        "Tag", secondary="expense_tags", back_populates="expenses"
    )

    __table_args__ = (
        Index("ix_expenses_user_occurred", "user_id", "occurred_at"),
        Index("ix_expenses_user_category_occurred", "user_id", "category", "occurred_at"),
        CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
    )

    @property
    def is_from_recurring(self) -> bool:
        return self.recurring_expense_id is not None

    @property
    def tag_ids(self) -> set[int]:
        return {tag.id for tag in self.tags}


class Income(Base, TimestampMixin):
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[IncomeSource] = mapped_column(
        SAEnum(IncomeSource), nullable=False, default=IncomeSource.other
    )
    note: Mapped[Optional[str]] = mapped_column(Text)
    recurring_income_id: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        Index("ix_incomes_user_occurred", "user_id", "occurred_at"),
        CheckConstraint("amount_cents > 0", name="ck_incomes_amount_positive"),
    )

    @property
    def is_from_recurring(self) -> bool:
        return self.recurring_income_id is not None
