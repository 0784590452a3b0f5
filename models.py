"""
models.py
Domain dataclasses, closed enumerations and errors (members, payments, sales, reports).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Union

GOALS = ["MUSCLE_GAIN", "WEIGHT_LOSS", "MAINTENANCE", "FLEXIBILITY", "ATHLETIC_PERFORMANCE"]

# Plan durations in days (used for expiry_date auto-calculation)
PLAN_DAYS = {
    "1 month": 30,
    "2 months": 60,
    "3 months": 90,
    "6 months": 180,
    "12 months": 365,
}

MEMBERSHIP_FEE_LABEL = "Membership Fee"
JOINING_FEE_LABEL = "Initial Joining Fee"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"


class PaymentMethod(str, Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class SaleCategory(str, Enum):
    MEMBERSHIP = "MEMBERSHIP"
    SUPPLEMENT = "SUPPLEMENT"


class WindowKind(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    DATE = "DATE"
    RANGE = "RANGE"


class MessageKind(str, Enum):
    REMINDER = "REMINDER"
    WELCOME = "WELCOME"
    OFFER = "OFFER"


# ---------- Errors ----------

class GymError(Exception):
    """Base class for every error raised by the membership/ledger code."""


class InvalidDurationError(GymError, ValueError):
    pass


class InvalidAmountError(GymError, ValueError):
    pass


class NotFoundError(GymError, LookupError):
    pass


class StaleRecordError(GymError):
    """The record changed in the store since it was read (optimistic concurrency)."""


# ---------- Records ----------

@dataclass(frozen=True)
class PaymentRecord:
    id: str
    date: datetime
    amount: float
    method: PaymentMethod
    recorded_by: str


@dataclass(frozen=True)
class Supplement:
    id: str
    product_name: str
    purchase_date: datetime
    price: float
    end_date: datetime | None = None


@dataclass(frozen=True)
class Member:
    id: str
    name: str
    phone: str
    gym_id: str
    join_date: datetime
    plan_duration_days: int
    expiry_date: datetime
    amount_paid: float
    username: str
    password_hash: str | None = None
    is_active: bool = True
    age: int | None = None
    height: str | None = None
    weight: str | None = None
    address: str | None = None
    goal: str | None = None
    notes: str | None = None
    registration_payment_mode: str | None = None  # 'ONLINE' or 'CASH'
    profile_photo: str | None = None
    id_proof_photo: str | None = None
    payment_history: tuple[PaymentRecord, ...] = ()
    supplement_history: tuple[Supplement, ...] = ()
    version: int = 0


@dataclass(frozen=True)
class Gym:
    id: str  # the gym id managers log in with
    name: str
    manager_password_hash: str
    created_at: datetime
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    profile_photo: str | None = None


@dataclass(frozen=True)
class GymSettings:
    gym_id: str
    gym_name: str
    auto_notify_whatsapp: bool = False
    terms_and_conditions: str | None = None


# ---------- Roles ----------

@dataclass(frozen=True)
class SuperAdmin:
    username: str


@dataclass(frozen=True)
class Manager:
    gym_id: str


@dataclass(frozen=True)
class MemberLogin:
    member_id: str


UserRole = Union[SuperAdmin, Manager, MemberLogin]


# ---------- Reporting ----------

@dataclass(frozen=True)
class SaleEvent:
    id: str
    date: datetime
    amount: float
    category: SaleCategory
    description: str
    member_name: str


@dataclass(frozen=True)
class ReportWindow:
    """
    Tagged reporting window. Build it with the classmethods below;
    `value`, `start` and `end` are local calendar dates.
    """
    kind: WindowKind
    value: date | None = None
    start: date | None = None
    end: date | None = None

    @classmethod
    def daily(cls) -> ReportWindow:
        return cls(WindowKind.DAILY)

    @classmethod
    def weekly(cls) -> ReportWindow:
        return cls(WindowKind.WEEKLY)

    @classmethod
    def monthly(cls) -> ReportWindow:
        return cls(WindowKind.MONTHLY)

    @classmethod
    def on(cls, value: date | str) -> ReportWindow:
        return cls(WindowKind.DATE, value=_as_calendar_date(value))

    @classmethod
    def between(cls, start: date | str, end: date | str) -> ReportWindow:
        return cls(WindowKind.RANGE, start=_as_calendar_date(start), end=_as_calendar_date(end))


def _as_calendar_date(value: date | str) -> date:
    # A bare 'YYYY-MM-DD' is a local calendar date, never a UTC midnight.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


@dataclass(frozen=True)
class ProductSummary:
    name: str
    count: int
    revenue: float


@dataclass(frozen=True)
class ChartBin:
    label: str
    value: float


@dataclass(frozen=True)
class Report:
    gross_total: float
    totals_by_category: dict[SaleCategory, float]
    product_breakdown: list[ProductSummary] = field(default_factory=list)
    chart_series: list[ChartBin] = field(default_factory=list)
