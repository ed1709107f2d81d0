from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

import bcrypt
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from rapidfuzz.distance import Levenshtein

from config import get_settings
from dates import calendar_date, local_today, normalize_date
from errors import (
    AccountNotFound,
    CategoryNotFound,
    CollectorInUse,
    CollectorNotFound,
    DuplicateName,
    EmailAlreadyRegistered,
    EntryNotFound,
    HasTransactions,
    InvalidCredentials,
    InvalidDate,
    InvalidRecurrenceSpec,
    InvalidToken,
    TypeMismatch,
)
from hierarchy import CategoryForest, name_key
from models import (
    Account,
    AccountType,
    Category,
    CategoryType,
    Collector,
    Expense,
    ExpenseStatus,
    Frequency,
    Income,
    User,
)
from periods import Period, month_period
from recurrence import TransactionMaterializer, expand, next_occurrence
from schemas import (
    AccountIn,
    AccountUpdateIn,
    CategoryIn,
    CategoryUpdateIn,
    ChangePasswordIn,
    CollectorIn,
    CollectorUpdateIn,
    ExpenseBatchIn,
    ExpenseIn,
    IncomeBatchIn,
    IncomeIn,
    IncomeUpdateIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
)
from tokens import issue_token

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "Cuenta Principal"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _clean_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass
class EntryFilters:
    category_id: Optional[int] = None
    frequency: Optional[Frequency] = None
    status: Optional[ExpenseStatus] = None
    collector_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    query: Optional[str] = None


@dataclass
class CalendarDay:
    day: date
    expenses: list[Expense] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((expense.amount for expense in self.expenses), Decimal("0"))


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(select(User).where(User.email == _clean_email(email)))

    def register(self, data: RegisterIn) -> tuple[User, str]:
        email = _clean_email(data.email)
        if self._by_email(email):
            raise EmailAlreadyRegistered()

        user = User(
            email=email,
            name=data.name.strip(),
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        try:
            self.session.flush()
            self.session.add(
                Account(
                    user_id=user.id,
                    name=DEFAULT_ACCOUNT_NAME,
                    type=AccountType.checking,
                    balance=Decimal("0"),
                    currency=get_settings().default_currency,
                )
            )
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise EmailAlreadyRegistered() from exc
        self.session.refresh(user)
        logger.info(f"register: user_id={user.id}")
        return user, issue_token(user.id, user.email)

    def login(self, data: LoginIn) -> tuple[User, str]:
        user = self._by_email(data.email)
        if not user or not check_password(data.password, user.password_hash):
            logger.info("login_failed: reason=invalid_credentials")
            raise InvalidCredentials()
        return user, issue_token(user.id, user.email)

    def get_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise InvalidToken("El usuario del token ya no existe")
        return user

    def refresh_token(self, user_id: int) -> str:
        user = self.get_user(user_id)
        return issue_token(user.id, user.email)

    def update_profile(self, user_id: int, data: ProfileUpdateIn) -> User:
        user = self.get_user(user_id)
        if data.email is not None:
            email = _clean_email(data.email)
            existing = self._by_email(email)
            if existing and existing.id != user.id:
                raise EmailAlreadyRegistered()
            user.email = email
        if data.name is not None:
            user.name = data.name.strip()
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise EmailAlreadyRegistered() from exc
        self.session.refresh(user)
        return user

    def change_password(self, user_id: int, data: ChangePasswordIn) -> None:
        user = self.get_user(user_id)
        if not check_password(data.current_password, user.password_hash):
            raise InvalidCredentials("La contraseña actual es incorrecta")
        user.password_hash = hash_password(data.new_password)
        self.session.commit()
        logger.info(f"change_password: user_id={user.id}")

    def delete_account(self, user_id: int, password: str) -> None:
        user = self.get_user(user_id)
        if not check_password(password, user.password_hash):
            raise InvalidCredentials("La contraseña es incorrecta")
        # Entries first: they reference categories with RESTRICT.
        for model in (Income, Expense):
            for record in self.session.scalars(
                select(model).where(model.user_id == user.id)
            ):
                self.session.delete(record)
        self.session.flush()
        own = self.session.scalars(
            select(Category)
            .where(Category.user_id == user.id)
            .order_by(Category.depth.desc())
        ).all()
        for category in own:
            self.session.delete(category)
            self.session.flush()
        self.session.delete(user)
        self.session.commit()
        logger.info(f"delete_account: user_id={user_id}")


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _visible(self):
        return or_(Category.user_id == self.user_id, Category.user_id.is_(None))

    def forest(self, category_type: Optional[CategoryType] = None) -> CategoryForest:
        stmt = select(Category).where(self._visible())
        if category_type:
            stmt = stmt.where(Category.type == category_type)
        return CategoryForest(self.session.scalars(stmt).all())

    def list(
        self,
        category_type: Optional[CategoryType] = None,
        *,
        include_global: bool = True,
        page: int = 1,
        limit: int = 50,
    ) -> Page:
        if include_global:
            condition = self._visible()
        else:
            condition = Category.user_id == self.user_id
        stmt = select(Category).where(condition)
        count_stmt = select(func.count(Category.id)).where(condition)
        if category_type:
            stmt = stmt.where(Category.type == category_type)
            count_stmt = count_stmt.where(Category.type == category_type)
        total = self.session.execute(count_stmt).scalar_one() or 0
        stmt = (
            stmt.order_by(Category.type, Category.depth, Category.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(self.session.scalars(stmt).all(), total, page, limit)

    def get(self, category_id: int) -> Category:
        category = self.session.scalar(
            select(Category).where(Category.id == category_id, self._visible())
        )
        if not category:
            raise CategoryNotFound()
        return category

    def _get_owned(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise CategoryNotFound("Categoría no encontrada o no editable")
        return category

    def search(
        self, query: str, category_type: Optional[CategoryType] = None
    ) -> list[Category]:
        term = query.strip().lower()
        if not term:
            return []
        categories = sorted(
            self.forest(category_type), key=lambda c: (c.depth, c.name.lower())
        )
        matches = [c for c in categories if term in c.name.lower()]
        if matches:
            return matches
        # No substring hit: tolerate a single typo.
        return [
            c
            for c in categories
            if int(Levenshtein.distance(term, name_key(c.name))) <= 1
        ]

    def hierarchy(self, category_type: Optional[CategoryType] = None) -> list[dict]:
        forest = self.forest(category_type)

        def build(category: Category) -> dict:
            children = sorted(forest.children_of(category.id), key=lambda c: c.name.lower())
            return {"category": category, "children": [build(c) for c in children]}

        roots = sorted(forest.roots(), key=lambda c: (c.type.value, c.name.lower()))
        return [build(root) for root in roots]

    def create(self, data: CategoryIn) -> Category:
        depth = self.forest().validate_create(data.name, data.type, data.parent_id)
        category = Category(
            user_id=self.user_id,
            name=data.name,
            name_lower=name_key(data.name),
            type=data.type,
            color=data.color,
            parent_id=data.parent_id,
            depth=depth,
        )
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateName() from exc
        self.session.refresh(category)
        logger.info(
            f"category_create: user_id={self.user_id} id={category.id} depth={depth}"
        )
        return category

    def update(self, category_id: int, data: CategoryUpdateIn) -> Category:
        category = self._get_owned(category_id)
        forest = self.forest()

        if data.name is not None and data.name != category.name:
            forest.ensure_unique_name(data.name, category.type, exclude_id=category.id)
            category.name = data.name
            category.name_lower = name_key(data.name)

        if "parent_id" in data.model_fields_set and data.parent_id != category.parent_id:
            new_depth = forest.validate_reparent(category.id, data.parent_id)
            for node_id, depth in forest.subtree_depths(category.id, new_depth).items():
                forest.get(node_id).depth = depth
            category.parent_id = data.parent_id
            logger.info(
                f"category_reparent: user_id={self.user_id} id={category.id} "
                f"parent_id={data.parent_id} depth={new_depth}"
            )

        if "color" in data.model_fields_set:
            category.color = data.color

        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateName() from exc
        self.session.refresh(category)
        return category

    def transaction_count(self, category_id: int) -> int:
        total = 0
        for model in (Income, Expense):
            total += (
                self.session.execute(
                    select(func.count(model.id)).where(model.category_id == category_id)
                ).scalar_one()
                or 0
            )
        return total

    def delete(self, category_id: int) -> None:
        category = self._get_owned(category_id)
        self.forest().validate_delete(category.id, self.transaction_count(category.id))
        self.session.delete(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise HasTransactions() from exc
        logger.info(f"category_delete: user_id={self.user_id} id={category_id}")

    def usage(self, category_id: int) -> dict[str, object]:
        category = self.get(category_id)
        stats: dict[str, object] = {"category_id": category.id}
        for label, model, date_column in (
            ("incomes", Income, Income.income_date),
            ("expenses", Expense, Expense.due_date),
        ):
            count, amount, last = self.session.execute(
                select(
                    func.count(model.id),
                    func.coalesce(func.sum(model.amount), 0),
                    func.max(date_column),
                ).where(model.user_id == self.user_id, model.category_id == category.id)
            ).one()
            stats[label] = {
                "count": int(count or 0),
                "total": Decimal(str(amount or 0)).quantize(Decimal("0.01")),
                "last_date": calendar_date(last).isoformat() if last else None,
            }
        return stats

    def dependencies(self, category_id: int) -> dict[str, object]:
        category = self.get(category_id)
        forest = self.forest()
        children = forest.children_of(category.id)
        transactions = self.transaction_count(category.id)
        return {
            "category_id": category.id,
            "subcategories": len(children),
            "descendants": len(forest.descendants(category.id)),
            "transactions": transactions,
            "can_delete": (
                not category.is_global and not children and transactions == 0
            ),
        }


class _EntryService(ABC):
    """Shared CRUD for income and expense entries.

    Subclasses name the model, the date column carrying the canonical instant
    and the category type entries must be filed under.
    """

    model: type
    date_field: str
    category_type: CategoryType
    hint_field: Optional[str] = None
    # Optional links an update may reset with an explicit null.
    clearable_fields: tuple[str, ...] = ()

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    @property
    def _date_column(self):
        return getattr(self.model, self.date_field)

    def _check_category(self, category_id: int) -> Category:
        category = CategoryService(self.session, self.user_id).get(category_id)
        if category.type != self.category_type:
            raise TypeMismatch("La categoría no corresponde al tipo de registro")
        return category

    def _check_references(self, fields: dict[str, Any]) -> None:
        if fields.get("category_id") is not None:
            self._check_category(fields["category_id"])

    @abstractmethod
    def _template(self, data) -> dict[str, Any]:
        """Column values shared by every record created from ``data``."""

    def _anchor(self, data) -> Optional[date]:
        return getattr(data, self.date_field)

    def create(self, data):
        self._check_references(data.model_dump())
        fields = self._template(data)
        anchor = self._anchor(data)
        fields[self.date_field] = normalize_date(anchor) if anchor else None
        if self.hint_field:
            hint = next_occurrence(data.frequency, anchor) if anchor else None
            fields[self.hint_field] = normalize_date(hint) if hint else None
        record = self.model(user_id=self.user_id, **fields)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def create_recurring(self, data) -> list:
        count = data.recurrence_count
        if data.frequency == Frequency.one_time and count is not None and count > 1:
            raise InvalidRecurrenceSpec(
                "Un registro de frecuencia única no admite más de una ocurrencia"
            )
        self._check_references(data.model_dump())
        anchor = self._anchor(data)
        if anchor is None:
            raise InvalidRecurrenceSpec("Se requiere una fecha para crear recurrencias")

        dates = expand(data.frequency, anchor, count)
        template = {"user_id": self.user_id, **self._template(data)}
        return TransactionMaterializer(self.session).materialize(
            self.model,
            template,
            dates,
            date_field=self.date_field,
            hint_field=self.hint_field,
        )

    def get(self, entry_id: int):
        record = self.session.scalar(
            select(self.model)
            .options(joinedload(self.model.category))
            .where(self.model.id == entry_id, self.model.user_id == self.user_id)
        )
        if not record:
            raise EntryNotFound()
        return record

    def _filtered(self, stmt, filters: EntryFilters):
        if filters.category_id:
            stmt = stmt.where(self.model.category_id == filters.category_id)
        if filters.frequency:
            stmt = stmt.where(self.model.frequency == filters.frequency)
        if filters.date_from:
            stmt = stmt.where(self._date_column >= normalize_date(filters.date_from))
        if filters.date_to:
            stmt = stmt.where(self._date_column <= normalize_date(filters.date_to))
        if filters.query:
            like = f"%{filters.query.strip().lower()}%"
            stmt = stmt.where(func.lower(self.model.description).like(like))
        return stmt

    def _order(self, stmt, sort: str, order: str):
        columns = {
            "date": self._date_column,
            "amount": self.model.amount,
            "description": self.model.description,
            "created_at": self.model.created_at,
        }
        column = columns.get(sort)
        if column is None:
            raise ValueError(f"Unknown sort field: {sort}")
        column = column.asc() if order == "asc" else column.desc()
        return stmt.order_by(column, self.model.id.desc())

    def list(
        self,
        filters: Optional[EntryFilters] = None,
        *,
        page: int = 1,
        limit: int = 20,
        sort: str = "date",
        order: str = "desc",
    ) -> Page:
        filters = filters or EntryFilters()
        base = self._filtered(
            select(self.model)
            .options(joinedload(self.model.category))
            .where(self.model.user_id == self.user_id),
            filters,
        )
        stmt = self._order(base, sort, order).offset((page - 1) * limit).limit(limit)
        return Page(
            self.session.scalars(stmt).all(), self.count(filters), page, limit
        )

    def count(self, filters: Optional[EntryFilters] = None) -> int:
        stmt = self._filtered(
            select(func.count(self.model.id)).where(self.model.user_id == self.user_id),
            filters or EntryFilters(),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def aggregate(self, filters: Optional[EntryFilters] = None) -> dict[str, object]:
        stmt = self._filtered(
            select(
                func.count(self.model.id),
                func.coalesce(func.sum(self.model.amount), 0),
                func.avg(self.model.amount),
                func.min(self.model.amount),
                func.max(self.model.amount),
            ).where(self.model.user_id == self.user_id),
            filters or EntryFilters(),
        )
        count, total, average, smallest, largest = self.session.execute(stmt).one()

        def _money(value) -> Optional[Decimal]:
            if value is None:
                return None
            return Decimal(str(value)).quantize(Decimal("0.01"))

        return {
            "count": int(count or 0),
            "total": _money(total) or Decimal("0.00"),
            "average": _money(average),
            "min": _money(smallest),
            "max": _money(largest),
        }

    def search(self, query: str, limit: int = 20) -> list:
        term = query.strip().lower()
        if not term:
            return []
        like = f"%{term}%"
        stmt = (
            select(self.model)
            .join(Category, Category.id == self.model.category_id)
            .options(joinedload(self.model.category))
            .where(
                self.model.user_id == self.user_id,
                or_(
                    func.lower(self.model.description).like(like),
                    Category.name_lower.like(like),
                ),
            )
            .order_by(self._date_column.desc(), self.model.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def in_period(self, period: Period) -> list:
        start, end = period.bounds()
        stmt = (
            select(self.model)
            .options(joinedload(self.model.category))
            .where(
                self.model.user_id == self.user_id,
                self._date_column.between(start, end),
            )
            .order_by(self._date_column.asc(), self.model.id.asc())
        )
        return self.session.scalars(stmt).all()

    def current_month(self, today: Optional[date] = None) -> list:
        today = today or local_today()
        return self.in_period(month_period(today.year, today.month, "this_month"))

    def update(self, entry_id: int, data):
        record = self.get(entry_id)
        changes = data.model_dump(exclude_unset=True)
        self._check_references(changes)
        for key, value in changes.items():
            if key == self.date_field:
                value = normalize_date(value) if value else None
            elif value is None and key not in self.clearable_fields:
                continue
            setattr(record, key, value)

        if self.hint_field and (self.date_field in changes or "frequency" in changes):
            current = getattr(record, self.date_field)
            anchor = calendar_date(current) if current else None
            hint = next_occurrence(record.frequency, anchor) if anchor else None
            setattr(record, self.hint_field, normalize_date(hint) if hint else None)

        self.session.commit()
        self.session.refresh(record)
        return record

    def delete(self, entry_id: int) -> None:
        record = self.get(entry_id)
        self.session.delete(record)
        self.session.commit()


class IncomeService(_EntryService):
    model = Income
    date_field = "income_date"
    hint_field = "next_date"
    category_type = CategoryType.income

    def _template(self, data: IncomeIn | IncomeBatchIn) -> dict[str, Any]:
        return {
            "description": data.description.strip(),
            "amount": data.amount,
            "category_id": data.category_id,
            "frequency": data.frequency,
            "is_active": data.is_active,
        }

    def update(self, entry_id: int, data: IncomeUpdateIn) -> Income:
        if "income_date" in data.model_fields_set and data.income_date is None:
            raise InvalidDate("La fecha del ingreso es requerida")
        return super().update(entry_id, data)


class ExpenseService(_EntryService):
    model = Expense
    date_field = "due_date"
    category_type = CategoryType.expense
    clearable_fields = ("collector_id",)

    OPEN_STATUSES = (ExpenseStatus.pending, ExpenseStatus.partial)

    def _check_references(self, fields: dict[str, Any]) -> None:
        super()._check_references(fields)
        if fields.get("collector_id") is not None:
            CollectorService(self.session, self.user_id).get(fields["collector_id"])

    def _template(self, data: ExpenseIn | ExpenseBatchIn) -> dict[str, Any]:
        return {
            "description": data.description.strip(),
            "amount": data.amount,
            "category_id": data.category_id,
            "frequency": data.frequency,
            "status": data.status,
            "collector_id": data.collector_id,
        }

    def _filtered(self, stmt, filters: EntryFilters):
        stmt = super()._filtered(stmt, filters)
        if filters.status:
            stmt = stmt.where(Expense.status == filters.status)
        if filters.collector_id:
            stmt = stmt.where(Expense.collector_id == filters.collector_id)
        return stmt

    def upcoming(self, days: int = 7, today: Optional[date] = None) -> list[Expense]:
        today = today or local_today()
        start, end = normalize_date(today), normalize_date(today + timedelta(days=days))
        stmt = (
            select(Expense)
            .options(joinedload(Expense.category))
            .where(
                Expense.user_id == self.user_id,
                Expense.status.in_(self.OPEN_STATUSES),
                Expense.due_date.between(start, end),
            )
            .order_by(Expense.due_date.asc(), Expense.id.asc())
        )
        return self.session.scalars(stmt).all()

    def overdue(self, today: Optional[date] = None) -> list[Expense]:
        today = today or local_today()
        stmt = (
            select(Expense)
            .options(joinedload(Expense.category))
            .where(
                Expense.user_id == self.user_id,
                Expense.status.in_(self.OPEN_STATUSES),
                Expense.due_date < normalize_date(today),
            )
            .order_by(Expense.due_date.asc(), Expense.id.asc())
        )
        return self.session.scalars(stmt).all()


class AccountService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Account]:
        stmt = (
            select(Account)
            .where(Account.user_id == self.user_id)
            .order_by(Account.name, Account.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if not account or account.user_id != self.user_id:
            raise AccountNotFound()
        return account

    def create(self, data: AccountIn) -> Account:
        account = Account(
            user_id=self.user_id,
            name=data.name.strip(),
            type=data.type,
            balance=data.balance,
            currency=(data.currency or get_settings().default_currency).upper(),
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account

    def update(self, account_id: int, data: AccountUpdateIn) -> Account:
        account = self.get(account_id)
        if data.name is not None:
            account.name = data.name.strip()
        if data.type is not None:
            account.type = data.type
        if data.balance is not None:
            account.balance = data.balance
        if data.currency is not None:
            account.currency = data.currency.upper()
        self.session.commit()
        self.session.refresh(account)
        return account

    def delete(self, account_id: int) -> None:
        account = self.get(account_id)
        self.session.delete(account)
        self.session.commit()


class CollectorService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Collector]:
        stmt = (
            select(Collector)
            .where(Collector.user_id == self.user_id)
            .order_by(Collector.name, Collector.id)
        )
        return self.session.scalars(stmt).all()

    def expense_counts(self) -> dict[int, int]:
        rows = self.session.execute(
            select(Collector.id, func.count(Expense.id))
            .outerjoin(Expense, Expense.collector_id == Collector.id)
            .where(Collector.user_id == self.user_id)
            .group_by(Collector.id)
        ).all()
        return {collector_id: int(count or 0) for collector_id, count in rows}

    def get(self, collector_id: int) -> Collector:
        collector = self.session.get(Collector, collector_id)
        if not collector or collector.user_id != self.user_id:
            raise CollectorNotFound()
        return collector

    def find_by_external_id(self, external_id: str) -> Optional[Collector]:
        return self.session.scalar(
            select(Collector).where(
                Collector.user_id == self.user_id,
                Collector.external_id == external_id.strip(),
            )
        )

    def create(self, data: CollectorIn) -> Collector:
        """Register a payee; an existing one with the same reference is returned."""
        existing = self.find_by_external_id(data.external_id)
        if existing:
            return existing
        collector = Collector(
            user_id=self.user_id, external_id=data.external_id, name=data.name
        )
        self.session.add(collector)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            existing = self.find_by_external_id(data.external_id)
            if existing is None:
                raise
            return existing
        self.session.refresh(collector)
        logger.info(f"collector_create: user_id={self.user_id} id={collector.id}")
        return collector

    def get_or_create(self, external_id: str, name: Optional[str] = None) -> Collector:
        return self.create(
            CollectorIn(external_id=external_id, name=name or f"Cobrador {external_id}")
        )

    def update(self, collector_id: int, data: CollectorUpdateIn) -> Collector:
        collector = self.get(collector_id)
        if data.name is not None:
            collector.name = data.name
        self.session.commit()
        self.session.refresh(collector)
        return collector

    def count_expenses(self, collector_id: int) -> int:
        collector = self.get(collector_id)
        return int(
            self.session.execute(
                select(func.count(Expense.id)).where(
                    Expense.user_id == self.user_id,
                    Expense.collector_id == collector.id,
                )
            ).scalar_one()
            or 0
        )

    def delete(self, collector_id: int) -> None:
        collector = self.get(collector_id)
        if self.count_expenses(collector.id):
            raise CollectorInUse()
        self.session.delete(collector)
        self.session.commit()
        logger.info(f"collector_delete: user_id={self.user_id} id={collector_id}")


class DashboardService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _total(self, model, date_column, start, end) -> Decimal:
        value = self.session.execute(
            select(func.coalesce(func.sum(model.amount), 0)).where(
                model.user_id == self.user_id,
                date_column.between(start, end),
            )
        ).scalar_one()
        return Decimal(str(value or 0)).quantize(Decimal("0.01"))

    def _by_root_category(
        self, model, date_column, start, end, forest: CategoryForest
    ) -> list[dict[str, object]]:
        rows = self.session.execute(
            select(model.category_id, func.sum(model.amount))
            .where(model.user_id == self.user_id, date_column.between(start, end))
            .group_by(model.category_id)
        ).all()
        totals: dict[int, Decimal] = {}
        for category_id, amount in rows:
            root_id = forest.root_of(category_id)
            totals[root_id] = totals.get(root_id, Decimal("0")) + Decimal(str(amount or 0))

        grand = sum(totals.values(), Decimal("0"))
        result = []
        for root_id, amount in sorted(totals.items(), key=lambda item: item[1], reverse=True):
            root = forest.get(root_id)
            result.append(
                {
                    "category_id": root_id,
                    "name": root.name if root else None,
                    "color": root.color if root else None,
                    "total": amount.quantize(Decimal("0.01")),
                    "share": float(amount / grand) if grand else 0.0,
                }
            )
        return result

    def summary(self, period: Period) -> dict[str, object]:
        start, end = period.bounds()
        forest = CategoryService(self.session, self.user_id).forest()
        income_total = self._total(Income, Income.income_date, start, end)
        expense_total = self._total(Expense, Expense.due_date, start, end)

        status_rows = self.session.execute(
            select(Expense.status, func.count(Expense.id), func.sum(Expense.amount))
            .where(Expense.user_id == self.user_id, Expense.due_date.between(start, end))
            .group_by(Expense.status)
        ).all()
        by_status = {
            status.value: {"count": 0, "total": Decimal("0.00")}
            for status in ExpenseStatus
        }
        for status, count, amount in status_rows:
            by_status[status.value] = {
                "count": int(count or 0),
                "total": Decimal(str(amount or 0)).quantize(Decimal("0.01")),
            }

        return {
            "period": {
                "slug": period.slug,
                "start": period.start.isoformat(),
                "end": period.end.isoformat(),
            },
            "income_total": income_total,
            "expense_total": expense_total,
            "balance": income_total - expense_total,
            "expenses_by_status": by_status,
            "income_by_category": self._by_root_category(
                Income, Income.income_date, start, end, forest
            ),
            "expense_by_category": self._by_root_category(
                Expense, Expense.due_date, start, end, forest
            ),
        }

    def due_calendar(self, year: int, month: int) -> list[CalendarDay]:
        expenses = ExpenseService(self.session, self.user_id).in_period(
            month_period(year, month)
        )
        days: dict[date, CalendarDay] = {}
        for expense in expenses:
            day = calendar_date(expense.due_date)
            days.setdefault(day, CalendarDay(day)).expenses.append(expense)
        return [days[day] for day in sorted(days)]
