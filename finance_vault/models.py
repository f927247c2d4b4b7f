"""
Domain records of the finance tracker and the security event record.

Wire names are camelCase (``bankId``, ``cuotasCount``, ``amountUSD`` ...);
Python attributes are snake_case. All models validate strictly: numbers must
be numbers, flags must be booleans, nothing is coerced from strings.
"""
import uuid
import calendar
import datetime as dt
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

CardBrand = Literal["Visa", "MasterCard", "American Express"]
CARD_BRANDS: tuple[str, ...] = ("Visa", "MasterCard", "American Express")

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
UUID_PATTERN = (
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def new_id() -> str:
    return str(uuid.uuid4())


class Record(BaseModel):
    """Base for persisted records: strict, camelCase on the wire."""

    model_config = ConfigDict(
        strict=True,
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Bank(Record):
    id: str = Field(pattern=UUID_PATTERN)
    name: str = Field(min_length=1, max_length=50)


class Expense(Record):
    id: str = Field(pattern=UUID_PATTERN)
    amount: float = Field(gt=0, le=1_000_000)
    description: str = Field(min_length=1, max_length=200)
    date: str = Field(pattern=DATE_PATTERN)
    bank_id: str = Field(pattern=UUID_PATTERN)
    card: CardBrand
    cuotas: bool
    cuotas_count: Optional[int] = Field(default=None, ge=1, le=60)
    is_subscription: bool

    @field_validator("date")
    @classmethod
    def validate_calendar_date(cls, v: str) -> str:
        dt.date.fromisoformat(v)
        return v

    @property
    def day(self) -> dt.date:
        return dt.date.fromisoformat(self.date)

    @property
    def recurring(self) -> bool:
        """Installments and subscriptions carry over from month to month."""
        return self.cuotas or self.is_subscription

    def in_month(self, today: dt.date) -> bool:
        return self.date.startswith(f"{today.year:04d}-{today.month:02d}")

    def last_installment_date(self) -> Optional[dt.date]:
        """Estimated date of the final installment, if paid in cuotas."""
        if not self.cuotas or not self.cuotas_count or self.cuotas_count < 2:
            return None
        start = self.day
        months = start.month - 1 + self.cuotas_count - 1
        year = start.year + months // 12
        month = months % 12 + 1
        last_day = calendar.monthrange(year, month)[1]
        return dt.date(year, month, min(start.day, last_day))


class Salary(Record):
    amount_usd: float = Field(ge=0, le=1_000_000, alias="amountUSD")
    rate: float = Field(ge=0, le=10_000)
    amount_ars: float = Field(ge=0, le=100_000_000, alias="amountARS")

    @classmethod
    def from_usd(cls, amount_usd: float, rate: float) -> "Salary":
        return cls(amount_usd=amount_usd, rate=rate, amount_ars=amount_usd * rate)


class FixedExpense(Record):
    alquiler: float = Field(ge=0, le=10_000_000)
    expensas: float = Field(ge=0, le=10_000_000)
    internet: float = Field(ge=0, le=1_000_000)
    luz: float = Field(ge=0, le=1_000_000)

    @classmethod
    def zero(cls) -> "FixedExpense":
        return cls(alquiler=0.0, expensas=0.0, internet=0.0, luz=0.0)

    @property
    def total(self) -> float:
        return self.alquiler + self.expensas + self.internet + self.luz


class ApplicationState(Record):
    """Banks, expenses, salary and fixed expenses of one user.

    Every key is required; ``salary`` must be present but may be null.
    """

    banks: list[Bank]
    expenses: list[Expense]
    salary: Optional[Salary]
    fixed_expenses: FixedExpense

    @model_validator(mode="after")
    def validate_references(self) -> "ApplicationState":
        """Bank ids are unique and every expense points at a known bank."""
        ids = [bank.id for bank in self.banks]
        if len(ids) != len(set(ids)):
            raise ValueError("bank ids must be unique")
        known = set(ids)
        for expense in self.expenses:
            if expense.bank_id not in known:
                raise ValueError(
                    f"expense {expense.id} references unknown bank {expense.bank_id}"
                )
        return self

    @classmethod
    def empty(cls) -> "ApplicationState":
        """Canonical empty state."""
        return cls(
            banks=[],
            expenses=[],
            salary=None,
            fixed_expenses=FixedExpense.zero(),
        )

    def bank(self, bank_id: str) -> Optional[Bank]:
        for bank in self.banks:
            if bank.id == bank_id:
                return bank
        return None

    def expense(self, expense_id: str) -> Optional[Expense]:
        for expense in self.expenses:
            if expense.id == expense_id:
                return expense
        return None


class SecurityEventType(str, Enum):
    XSS_ATTEMPT = "XSS_ATTEMPT"
    INVALID_INPUT = "INVALID_INPUT"
    SUSPICIOUS_PATTERN = "SUSPICIOUS_PATTERN"
    DATA_ANOMALY = "DATA_ANOMALY"


class SecurityEvent(BaseModel):
    """One entry of the security log."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: SecurityEventType
    message: str
    data: Optional[dict[str, Any]] = None
    timestamp: int
    user_agent: str = Field(alias="userAgent")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SecuritySummary(BaseModel):
    """Event counts over the trailing summary window."""

    total_events: int = 0
    xss_attempts: int = 0
    invalid_inputs: int = 0
    suspicious_patterns: int = 0
    data_anomalies: int = 0
    last_event: Optional[SecurityEvent] = None
