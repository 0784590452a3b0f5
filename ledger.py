"""
ledger.py
Sales ledger: flatten member records into sale events, filter them by reporting window,
and aggregate totals, product breakdowns and chart bins for the dashboard.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta

from models import (
    MEMBERSHIP_FEE_LABEL,
    ChartBin,
    Member,
    ProductSummary,
    Report,
    ReportWindow,
    SaleCategory,
    SaleEvent,
    WindowKind,
)

# RANGE windows longer than this are charted per month instead of per day
DAILY_BINS_MAX_SPAN_DAYS = 32

WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def day_label(d: date) -> str:
    return f"{d:%b} {d.day}"


def month_label(d: date) -> str:
    return f"{d:%b %Y}"


# ---------- Extraction ----------

def extract_sales(members: list[Member]) -> list[SaleEvent]:
    """
    One sale event per payment and per supplement purchase, newest first.
    """
    sales: list[SaleEvent] = []
    for m in members:
        for p in m.payment_history or ():
            sales.append(SaleEvent(
                id=p.id,
                date=p.date,
                amount=float(p.amount),
                category=SaleCategory.MEMBERSHIP,
                description=p.recorded_by or MEMBERSHIP_FEE_LABEL,
                member_name=m.name,
            ))
        for s in m.supplement_history or ():
            sales.append(SaleEvent(
                id=s.id,
                date=s.purchase_date,
                amount=float(s.price),
                category=SaleCategory.SUPPLEMENT,
                description=s.product_name,
                member_name=m.name,
            ))
    # sorted() is stable, so events sharing a timestamp keep their input order
    return sorted(sales, key=lambda e: e.date, reverse=True)


# ---------- Filtering ----------

def in_window(event_date: datetime, window: ReportWindow, reference_now: datetime) -> bool:
    kind = window.kind
    if kind == WindowKind.DAILY:
        return event_date.date() == reference_now.date()
    if kind == WindowKind.WEEKLY:
        # No upper bound: future-dated events are kept, unlike DAILY/MONTHLY.
        return event_date >= reference_now - timedelta(days=7)
    if kind == WindowKind.MONTHLY:
        return (event_date.year, event_date.month) == (reference_now.year, reference_now.month)
    if kind == WindowKind.DATE:
        return event_date.date() == window.value
    if kind == WindowKind.RANGE:
        return start_of_day(window.start) <= event_date <= end_of_day(window.end)
    return True


def filter_sales(events: list[SaleEvent], window: ReportWindow, reference_now: datetime) -> list[SaleEvent]:
    return [e for e in events if in_window(e.date, window, reference_now)]


# ---------- Aggregation ----------

def product_share(revenue: float, total: float) -> float:
    """Percentage of `total`; 0.0 when there is nothing to share."""
    if not total:
        return 0.0
    return revenue / total * 100.0


def _product_breakdown(events: list[SaleEvent]) -> list[ProductSummary]:
    products: dict[str, list] = {}
    for e in events:
        if e.category != SaleCategory.SUPPLEMENT:
            continue
        entry = products.setdefault(e.description, [0, 0.0])
        entry[0] += 1
        entry[1] += e.amount
    summaries = [ProductSummary(name, count, revenue) for name, (count, revenue) in products.items()]
    # dicts keep insertion order and sort is stable: ties stay in first-seen order
    return sorted(summaries, key=lambda p: p.revenue, reverse=True)


def _fixed_bins(labels: list[str], events: list[SaleEvent], key) -> list[ChartBin]:
    values = dict.fromkeys(labels, 0.0)
    for e in events:
        label = key(e)
        if label in values:
            values[label] += e.amount
    return [ChartBin(label, value) for label, value in values.items()]


def _observed_bins(events: list[SaleEvent], bucket) -> dict:
    values: dict = {}
    for e in events:
        b = bucket(e.date)
        values[b] = values.get(b, 0.0) + e.amount
    return values


def chart_series(events: list[SaleEvent], window: ReportWindow | None = None,
                 reference_now: datetime | None = None) -> list[ChartBin]:
    kind = window.kind if window else None
    now = reference_now or datetime.now()

    if kind == WindowKind.WEEKLY:
        # Seven weekday bins ending today. The window reaches back exactly 7 days and has
        # no upper bound, so sales from the same weekday a week ago and future-dated sales
        # are counted in the bin sharing their weekday (usually today's).
        today = now.date()
        labels = [WEEKDAY_LABELS[(today - timedelta(days=offset)).weekday()] for offset in range(6, -1, -1)]
        return _fixed_bins(labels, events, lambda e: WEEKDAY_LABELS[e.date.weekday()])

    if kind == WindowKind.MONTHLY:
        days_in_month = calendar.monthrange(now.year, now.month)[1]
        labels = [str(day) for day in range(1, days_in_month + 1)]
        return _fixed_bins(labels, events, lambda e: str(e.date.day))

    if kind == WindowKind.RANGE:
        span_days = (window.end - window.start).days + 1
        if span_days > DAILY_BINS_MAX_SPAN_DAYS:
            values = _observed_bins(events, lambda d: date(d.year, d.month, 1))
            return [ChartBin(month_label(m), values[m]) for m in sorted(values)]
        values = _observed_bins(events, lambda d: d.date())
        return [ChartBin(day_label(d), values[d]) for d in sorted(values)]

    # DAILY, DATE or no window: no useful time axis, split by category instead
    return _fixed_bins(
        ["Membership", "Supplement"],
        events,
        lambda e: "Membership" if e.category == SaleCategory.MEMBERSHIP else "Supplement",
    )


def aggregate(events: list[SaleEvent], window: ReportWindow | None = None,
              reference_now: datetime | None = None) -> Report:
    totals = {SaleCategory.MEMBERSHIP: 0.0, SaleCategory.SUPPLEMENT: 0.0}
    for e in events:
        totals[e.category] += e.amount
    return Report(
        gross_total=totals[SaleCategory.MEMBERSHIP] + totals[SaleCategory.SUPPLEMENT],
        totals_by_category=totals,
        product_breakdown=_product_breakdown(events),
        chart_series=chart_series(events, window, reference_now),
    )


def build_report(members: list[Member], window: ReportWindow, now: datetime) -> tuple[Report, list[SaleEvent]]:
    """
    Full pipeline for one gym: extract, filter, aggregate.
    Returns the report and the filtered events (newest first) for the transactions table.
    """
    events = filter_sales(extract_sales(members), window, now)
    return aggregate(events, window, now), events
