from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from dates import coerce_calendar_date, to_iso
from models import AccountType, CategoryType, ExpenseStatus, Frequency

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
EMAIL = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _calendar_date(value):
    if value is None or value == "":
        return None
    return coerce_calendar_date(value)


class RegisterIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., max_length=255, pattern=EMAIL)
    name: str = Field(..., min_length=1, max_length=100)
    # bcrypt only looks at the first 72 bytes.
    password: str = Field(..., min_length=6, max_length=72)


class LoginIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=72)


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL)


class ChangePasswordIn(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=6, max_length=72)


class DeleteAccountIn(BaseModel):
    password: str = Field(..., min_length=1, max_length=72)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    parent_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("El nombre es requerido")
        return value


class CategoryUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    # Sending ``parent_id: null`` moves the category to the root level;
    # omitting the field leaves the parent untouched.
    parent_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("El nombre es requerido")
        return value


class IncomeIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category_id: int
    frequency: Frequency
    income_date: date
    is_active: bool = True

    _income_date = field_validator("income_date", mode="before")(_calendar_date)


class IncomeBatchIn(IncomeIn):
    recurrence_count: Optional[int] = Field(default=None, ge=1, le=52)


class IncomeUpdateIn(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    category_id: Optional[int] = None
    frequency: Optional[Frequency] = None
    income_date: Optional[date] = None
    is_active: Optional[bool] = None

    _income_date = field_validator("income_date", mode="before")(_calendar_date)


class ExpenseIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category_id: int
    frequency: Frequency
    due_date: Optional[date] = None
    status: ExpenseStatus = ExpenseStatus.pending
    collector_id: Optional[int] = None

    _due_date = field_validator("due_date", mode="before")(_calendar_date)


class ExpenseBatchIn(ExpenseIn):
    recurrence_count: Optional[int] = Field(default=None, ge=1, le=52)


class ExpenseUpdateIn(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    category_id: Optional[int] = None
    frequency: Optional[Frequency] = None
    due_date: Optional[date] = None
    status: Optional[ExpenseStatus] = None
    collector_id: Optional[int] = None

    _due_date = field_validator("due_date", mode="before")(_calendar_date)


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType
    balance: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class AccountUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[AccountType] = None
    balance: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class CollectorIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    external_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=100)


class CollectorUpdateIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(_Out):
    id: int
    email: str
    name: str
    created_at: datetime

    @field_serializer("created_at")
    def _instant(self, value: datetime) -> str:
        return to_iso(value)


class CategoryOut(_Out):
    id: int
    name: str
    type: CategoryType
    color: Optional[str]
    parent_id: Optional[int]
    depth: int
    is_global: bool


class CategoryTreeOut(CategoryOut):
    children: list["CategoryTreeOut"] = Field(default_factory=list)


class IncomeOut(_Out):
    id: int
    description: str
    amount: Decimal
    category_id: int
    category: Optional[CategoryOut] = None
    frequency: Frequency
    income_date: datetime
    next_date: Optional[datetime]
    is_active: bool
    created_at: datetime

    @field_serializer("amount")
    def _amount(self, value: Decimal) -> float:
        return float(value)

    @field_serializer("income_date", "next_date", "created_at")
    def _instant(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value) if value is not None else None


class ExpenseOut(_Out):
    id: int
    description: str
    amount: Decimal
    category_id: int
    category: Optional[CategoryOut] = None
    frequency: Frequency
    due_date: Optional[datetime]
    status: ExpenseStatus
    collector_id: Optional[int] = None
    created_at: datetime

    @field_serializer("amount")
    def _amount(self, value: Decimal) -> float:
        return float(value)

    @field_serializer("due_date", "created_at")
    def _instant(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value) if value is not None else None


class AccountOut(_Out):
    id: int
    name: str
    type: AccountType
    balance: Decimal
    currency: str

    @field_serializer("balance")
    def _balance(self, value: Decimal) -> float:
        return float(value)


class CollectorOut(_Out):
    id: int
    external_id: str
    name: str
    created_at: datetime
    expense_count: Optional[int] = None

    @field_serializer("created_at")
    def _instant(self, value: datetime) -> str:
        return to_iso(value)
