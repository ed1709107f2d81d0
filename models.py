from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class CategoryType(str, Enum):
    income = "INCOME"
    expense = "EXPENSE"


class Frequency(str, Enum):
    one_time = "ONE_TIME"
    weekly = "WEEKLY"
    biweekly = "BIWEEKLY"
    monthly = "MONTHLY"
    annual = "ANNUAL"


class ExpenseStatus(str, Enum):
    pending = "PENDING"
    paid = "PAID"
    overdue = "OVERDUE"
    partial = "PARTIAL"


class AccountType(str, Enum):
    checking = "CHECKING"
    savings = "SAVINGS"
    credit = "CREDIT"
    investment = "INVESTMENT"


def _values(enum_cls):
    return [member.value for member in enum_cls]


CATEGORY_TYPE_ENUM = SAEnum(
    CategoryType, name="categorytype", values_callable=_values
)
FREQUENCY_ENUM = SAEnum(Frequency, name="frequency", values_callable=_values)
EXPENSE_STATUS_ENUM = SAEnum(
    ExpenseStatus, name="expensestatus", values_callable=_values
)
ACCOUNT_TYPE_ENUM = SAEnum(AccountType, name="accounttype", values_callable=_values)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    categories: Mapped[list["Category"]] = relationship(
        "Category", back_populates="user", cascade="all, delete-orphan"
    )
    incomes: Mapped[list["Income"]] = relationship(
        "Income", back_populates="user", cascade="all, delete-orphan"
    )
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="user", cascade="all, delete-orphan"
    )
    accounts: Mapped[list["Account"]] = relationship(
        "Account", back_populates="user", cascade="all, delete-orphan"
    )
    collectors: Mapped[list["Collector"]] = relationship(
        "Collector", back_populates="user", cascade="all, delete-orphan"
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # NULL owner marks a global category shared by every user.
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    name_lower: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[CategoryType] = mapped_column(CATEGORY_TYPE_ENUM, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(7))
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT")
    )
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped[Optional["User"]] = relationship("User", back_populates="categories")
    parent: Mapped[Optional["Category"]] = relationship(
        "Category", remote_side="Category.id"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "type", "name_lower", name="uq_category_user_type_name"
        ),
        # NULL owners never collide under the constraint above.
        Index(
            "uq_categories_global_type_name",
            "type",
            "name_lower",
            unique=True,
            sqlite_where=text("user_id IS NULL"),
            postgresql_where=text("user_id IS NULL"),
        ),
        CheckConstraint("depth >= 0 AND depth <= 2", name="ck_category_depth"),
        Index("ix_categories_user_type", "user_id", "type"),
        Index("ix_categories_parent", "parent_id"),
    )

    @property
    def is_global(self) -> bool:
        return self.user_id is None


class Income(Base, TimestampMixin):
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    frequency: Mapped[Frequency] = mapped_column(FREQUENCY_ENUM, nullable=False)
    income_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    next_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="incomes")
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_incomes_amount_positive"),
        Index("ix_incomes_user_date", "user_id", "income_date"),
        Index("ix_incomes_user_category", "user_id", "category_id"),
    )


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    frequency: Mapped[Frequency] = mapped_column(FREQUENCY_ENUM, nullable=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[ExpenseStatus] = mapped_column(
        EXPENSE_STATUS_ENUM, default=ExpenseStatus.pending, nullable=False
    )
    collector_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("collectors.id", ondelete="SET NULL")
    )

    user: Mapped["User"] = relationship("User", back_populates="expenses")
    category: Mapped["Category"] = relationship("Category")
    collector: Mapped[Optional["Collector"]] = relationship(
        "Collector", back_populates="expenses"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        Index("ix_expenses_user_due", "user_id", "due_date"),
        Index("ix_expenses_user_status", "user_id", "status"),
        Index("ix_expenses_user_category", "user_id", "category_id"),
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AccountType] = mapped_column(ACCOUNT_TYPE_ENUM, nullable=False)
    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="accounts")


class Collector(Base, TimestampMixin):
    """Payee an expense is paid to, keyed by the payment provider's reference."""

    __tablename__ = "collectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="collectors")
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="collector", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("user_id", "external_id", name="uq_collector_user_external"),
        Index("ix_collectors_user", "user_id"),
    )
