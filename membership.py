"""
membership.py
Membership lifecycle: status classification, member creation, plan extension, supplement billing.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import replace
from datetime import datetime, timedelta

import config
from models import (
    JOINING_FEE_LABEL,
    InvalidAmountError,
    InvalidDurationError,
    Member,
    MembershipStatus,
    PaymentMethod,
    PaymentRecord,
    Supplement,
)

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def new_id() -> str:
    return uuid.uuid4().hex


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta / ONE_DAY)


# ---------- Status ----------

def classify_status(expiry_date: datetime, now: datetime) -> MembershipStatus:
    """
    EXPIRED as soon as the expiry instant has passed, even by less than a day.
    Rounding the remaining days up first (ceil < 0) would keep a plan that ended
    a few hours ago in EXPIRING_SOON; the remaining-days ceil is only used for the
    EXPIRING_SOON threshold.
    """
    if expiry_date < now:
        return MembershipStatus.EXPIRED
    if _ceil_days(expiry_date - now) <= config.EXPIRING_SOON_DAYS:
        return MembershipStatus.EXPIRING_SOON
    return MembershipStatus.ACTIVE


def days_left(expiry_date: datetime, now: datetime) -> int:
    return _ceil_days(expiry_date - now)


def days_active(join_date: datetime, now: datetime) -> int:
    return _ceil_days(now - join_date)


def status_counts(members: list[Member], now: datetime) -> dict[str, int]:
    counts = {"total": len(members), "active": 0, "expiring": 0, "expired": 0}
    keys = {
        MembershipStatus.ACTIVE: "active",
        MembershipStatus.EXPIRING_SOON: "expiring",
        MembershipStatus.EXPIRED: "expired",
    }
    for m in members:
        counts[keys[classify_status(m.expiry_date, now)]] += 1
    return counts


def urgent_alerts(members: list[Member], now: datetime) -> list[Member]:
    return [m for m in members if classify_status(m.expiry_date, now) != MembershipStatus.ACTIVE]


def filter_members(members: list[Member], search: str = "", status_filter: str = "ALL",
                   now: datetime | None = None) -> list[Member]:
    """
    Search by name (case-insensitive) or phone, then filter by status.
    The ACTIVE filter also keeps members that are expiring soon: they are still paid up.
    """
    now = now or datetime.now()
    term = search.strip().lower()
    result = []
    for m in members:
        if term and term not in m.name.lower() and term not in m.phone:
            continue
        status = classify_status(m.expiry_date, now)
        if status_filter == "ALL":
            pass
        elif status_filter == MembershipStatus.ACTIVE.value:
            if status == MembershipStatus.EXPIRED:
                continue
        elif status.value != status_filter:
            continue
        result.append(m)
    return result


# ---------- Creation & billing ----------

def default_username(name: str) -> str:
    return re.sub(r"\s+", "", name).lower()


def new_member(
    name: str,
    phone: str,
    gym_id: str,
    plan_duration_days: int,
    amount_paid: float,
    now: datetime,
    username: str = "",
    password_hash: str | None = None,
    registration_payment_mode: str = "CASH",
    **profile,
) -> Member:
    """
    Build a fresh member whose expiry is join date + plan days,
    with the joining fee as the first payment record.
    """
    if plan_duration_days < 0:
        raise InvalidDurationError(f"Plan duration cannot be negative: {plan_duration_days}")
    if amount_paid < 0:
        raise InvalidAmountError(f"Amount paid cannot be negative: {amount_paid}")

    method = PaymentMethod.ONLINE if registration_payment_mode == "ONLINE" else PaymentMethod.OFFLINE
    first_payment = PaymentRecord(
        id=new_id(),
        date=now,
        amount=float(amount_paid),
        method=method,
        recorded_by=JOINING_FEE_LABEL,
    )
    return Member(
        id=new_id(),
        name=name.strip(),
        phone=phone.strip(),
        gym_id=gym_id,
        join_date=now,
        plan_duration_days=plan_duration_days,
        expiry_date=now + timedelta(days=plan_duration_days),
        amount_paid=float(amount_paid),
        username=username.strip() or default_username(name),
        password_hash=password_hash,
        is_active=True,
        registration_payment_mode=registration_payment_mode,
        payment_history=(first_payment,),
        **profile,
    )


PROFILE_FIELDS = ("height", "weight", "address", "goal", "notes")


def update_profile(member: Member, name: str, phone: str, username: str = "",
                   age: int | None = None, password_hash: str | None = None, **profile) -> Member:
    """
    Apply the manager's edit form. A blank username or password keeps the current one;
    blank optional fields are cleared.
    """
    if not name.strip() or not phone.strip():
        raise ValueError("Name and phone are required.")
    unknown = set(profile) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

    cleaned = {key: (str(value).strip() or None) if value is not None else None for key, value in profile.items()}
    return replace(
        member,
        name=name.strip(),
        phone=phone.strip(),
        username=username.strip() or member.username,
        age=int(age) if age is not None else member.age,
        password_hash=password_hash or member.password_hash,
        **cleaned,
    )


def extension_label(days: int) -> str:
    return f"Extension Renewal ({days} Days)"


def extend_plan(member: Member, days: int, amount_paid: float, now: datetime) -> Member:
    """
    Push the expiry forward by `days` and log the payment that funded it.

    The extension is added to whichever is later, the current expiry or now,
    so an expired plan restarts from today and an active one keeps its remaining days.
    A zero-day extension only records the payment.
    """
    if days < 0:
        raise InvalidDurationError(f"Extension days cannot be negative: {days}")
    if amount_paid < 0:
        raise InvalidAmountError(f"Extension amount cannot be negative: {amount_paid}")

    new_expiry = member.expiry_date
    if days > 0:
        new_expiry = max(member.expiry_date, now) + timedelta(days=days)

    payment = PaymentRecord(
        id=new_id(),
        date=now,
        amount=float(amount_paid),
        method=PaymentMethod.OFFLINE,
        recorded_by=extension_label(days),
    )
    return replace(
        member,
        expiry_date=new_expiry,
        is_active=True,
        payment_history=member.payment_history + (payment,),
    )


def bill_supplement(member: Member, product_name: str, price: float, now: datetime) -> Member:
    if not product_name.strip():
        raise ValueError("Product name is required.")
    if price < 0:
        raise InvalidAmountError(f"Supplement price cannot be negative: {price}")

    sale = Supplement(
        id=new_id(),
        product_name=product_name.strip(),
        purchase_date=now,
        price=float(price),
    )
    return replace(member, supplement_history=member.supplement_history + (sale,))


# ---------- Store-bound workflows ----------

def extend_member(store, member_id: str, days: int, amount_paid: float, now: datetime) -> Member:
    member = store.get_member(member_id)
    updated = store.update_member(extend_plan(member, days, amount_paid, now))
    logger.info("Extended member %s by %s days (paid %.2f)", member_id, days, amount_paid)
    return updated


def sell_supplement(store, member_id: str, product_name: str, price: float, now: datetime) -> Member:
    member = store.get_member(member_id)
    updated = store.update_member(bill_supplement(member, product_name, price, now))
    logger.info("Billed %s to member %s (%.2f)", product_name, member_id, price)
    return updated
