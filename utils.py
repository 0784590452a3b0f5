"""
utils.py
Dates, validation, exports, sample data.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import pandas as pd

import auth
import membership
from ledger import extract_sales
from models import PLAN_DAYS, Member, PaymentMethod, SaleEvent


def now_local() -> datetime:
    return datetime.now()


def parse_instant(value: str | None) -> datetime | None:
    """
    Parse a stored ISO timestamp into a naive local datetime.
    Offsets (e.g. a trailing 'Z') are converted to local time first.
    """
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def validate_member_inputs(name: str, phone: str, plan_days, amount_paid) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Full name is required.")
    if not phone.strip():
        errors.append("Phone is required.")
    try:
        if int(plan_days) <= 0:
            errors.append("Plan duration must be at least one day.")
    except (TypeError, ValueError):
        errors.append("Plan duration must be a whole number of days.")
    try:
        if float(amount_paid) < 0:
            errors.append("Amount paid cannot be negative.")
    except (TypeError, ValueError):
        errors.append("Amount paid must be numeric.")
    return errors


def members_dataframe(members: list[Member], now: datetime | None = None) -> pd.DataFrame:
    now = now or now_local()
    columns = ["id", "name", "phone", "username", "join_date", "expiry_date", "status", "days_left", "amount_paid"]
    rows = [
        {
            "id": m.id,
            "name": m.name,
            "phone": m.phone,
            "username": m.username,
            "join_date": m.join_date.date().isoformat(),
            "expiry_date": m.expiry_date.date().isoformat(),
            "status": membership.classify_status(m.expiry_date, now).value,
            "days_left": membership.days_left(m.expiry_date, now),
            "amount_paid": m.amount_paid,
        }
        for m in members
    ]
    return pd.DataFrame(rows, columns=columns)


def sales_dataframe(events: list[SaleEvent]) -> pd.DataFrame:
    columns = ["id", "date", "member_name", "description", "category", "amount"]
    rows = [
        {
            "id": e.id,
            "date": e.date,
            "member_name": e.member_name,
            "description": e.description,
            "category": e.category.value,
            "amount": e.amount,
        }
        for e in events
    ]
    return pd.DataFrame(rows, columns=columns)


def members_to_csv_bytes(members: list[Member], now: datetime | None = None) -> bytes:
    df = members_dataframe(members, now)
    return df.to_csv(index=False).encode("utf-8")


def sales_to_csv_bytes(events: list[SaleEvent]) -> bytes:
    df = sales_dataframe(events)
    return df.to_csv(index=False).encode("utf-8")


def revenue_summary_by_month(members: list[Member]) -> pd.DataFrame:
    """
    Membership / supplement / total revenue per calendar month, newest first.
    """
    df = sales_dataframe(extract_sales(members))
    if df.empty:
        return pd.DataFrame(columns=["month", "membership", "supplement", "revenue"])
    df["month"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m")
    summary = (
        df.pivot_table(index="month", columns="category", values="amount", aggfunc="sum", fill_value=0)
        .reindex(columns=["MEMBERSHIP", "SUPPLEMENT"], fill_value=0)
        .rename(columns={"MEMBERSHIP": "membership", "SUPPLEMENT": "supplement"})
    )
    summary["revenue"] = summary["membership"] + summary["supplement"]
    summary.columns.name = None
    return summary.sort_index(ascending=False).reset_index()


def insert_sample_data(store, gym_id: str) -> None:
    """
    Insert 3 members with a few payments and supplement sales
    (safe to run multiple times: adds new members each time).
    """
    now = now_local()

    # Member 1: expires in 5 days
    m1 = membership.new_member(
        name="Ahmed Hassan", phone="01000000001", gym_id=gym_id,
        plan_duration_days=PLAN_DAYS["1 month"], amount_paid=50.0,
        password_hash=auth.hash_password("ahmed123"),
        now=now - timedelta(days=25),
    )
    m1 = membership.bill_supplement(m1, "Whey Protein", 30.0, now - timedelta(days=2))

    # Member 2: longer plan, paid online
    m2 = membership.new_member(
        name="Mona Ali", phone="01000000002", gym_id=gym_id,
        plan_duration_days=PLAN_DAYS["3 months"], amount_paid=120.0,
        registration_payment_mode=PaymentMethod.ONLINE.value,
        now=now - timedelta(days=10),
    )
    m2 = membership.bill_supplement(m2, "Creatine", 20.0, now)
    m2 = membership.bill_supplement(m2, "Whey Protein", 30.0, now)

    # Member 3: expired
    m3 = membership.new_member(
        name="Omar Samy", phone="01000000003", gym_id=gym_id,
        plan_duration_days=PLAN_DAYS["1 month"], amount_paid=50.0,
        now=now - timedelta(days=60),
    )

    for m in (m1, m2, m3):
        store.add_member(m)
