from dataclasses import replace
from datetime import datetime, timedelta

import pytest

import membership
from models import (
    InvalidAmountError,
    InvalidDurationError,
    MembershipStatus,
    PaymentMethod,
)

NOW = datetime(2024, 1, 1)


def make_member(expiry, **kwargs):
    m = membership.new_member(
        name="John Doe", phone="1234567890", gym_id="GYM001",
        plan_duration_days=30, amount_paid=50.0, now=NOW - timedelta(days=25),
    )
    return replace(m, expiry_date=expiry, **kwargs)


# ---------- classify_status ----------

def test_five_days_out_is_expiring_soon():
    assert membership.classify_status(datetime(2024, 1, 6), NOW) == MembershipStatus.EXPIRING_SOON


def test_six_days_out_is_active():
    assert membership.classify_status(datetime(2024, 1, 7), NOW) == MembershipStatus.ACTIVE


def test_past_expiry_is_expired():
    assert membership.classify_status(datetime(2023, 12, 31), NOW) == MembershipStatus.EXPIRED


def test_expired_exactly_when_expiry_is_before_now():
    assert membership.classify_status(NOW - timedelta(hours=1), NOW) == MembershipStatus.EXPIRED
    assert membership.classify_status(NOW, NOW) == MembershipStatus.EXPIRING_SOON
    assert membership.classify_status(NOW + timedelta(seconds=1), NOW) == MembershipStatus.EXPIRING_SOON


def test_partial_day_rounds_up():
    # 5 days and one minute left counts as 6 days
    assert membership.classify_status(NOW + timedelta(days=5, minutes=1), NOW) == MembershipStatus.ACTIVE


def test_threshold_comes_from_config(monkeypatch):
    monkeypatch.setattr(membership.config, "EXPIRING_SOON_DAYS", 7)
    assert membership.classify_status(datetime(2024, 1, 7), NOW) == MembershipStatus.EXPIRING_SOON


def test_days_left_and_days_active():
    assert membership.days_left(NOW + timedelta(days=2, hours=3), NOW) == 3
    assert membership.days_left(NOW - timedelta(days=2), NOW) == -2
    assert membership.days_active(NOW - timedelta(days=10), NOW) == 10


# ---------- new_member / bill_supplement ----------

def test_new_member_expiry_and_first_payment():
    m = membership.new_member(
        name="Mona  Ali", phone=" 0100 ", gym_id="GYM001",
        plan_duration_days=90, amount_paid=120, now=NOW,
        registration_payment_mode="ONLINE",
    )
    assert m.expiry_date == NOW + timedelta(days=90)
    assert m.username == "monaali"
    assert m.phone == "0100"
    assert len(m.payment_history) == 1
    first = m.payment_history[0]
    assert first.amount == 120.0
    assert first.method == PaymentMethod.ONLINE
    assert first.recorded_by == "Initial Joining Fee"


def test_new_member_cash_is_offline():
    m = membership.new_member(name="A", phone="1", gym_id="G", plan_duration_days=30, amount_paid=0, now=NOW)
    assert m.payment_history[0].method == PaymentMethod.OFFLINE


def test_bill_supplement_appends():
    m = make_member(NOW + timedelta(days=10))
    billed = membership.bill_supplement(m, " Whey Protein ", 30, NOW)
    assert m.supplement_history == ()
    assert len(billed.supplement_history) == 1
    assert billed.supplement_history[0].product_name == "Whey Protein"
    assert billed.supplement_history[0].purchase_date == NOW


def test_bill_supplement_rejects_bad_input():
    m = make_member(NOW)
    with pytest.raises(InvalidAmountError):
        membership.bill_supplement(m, "Creatine", -1, NOW)
    with pytest.raises(ValueError):
        membership.bill_supplement(m, "   ", 10, NOW)


def test_update_profile_edits_every_field():
    m = replace(make_member(NOW + timedelta(days=10)), password_hash="old-hash", address="Old St", notes="knee")
    updated = membership.update_profile(
        m, name=" Jane Doe ", phone="555", username="", age=31, password_hash=None,
        height="170", weight=" 65 ", address="", goal="WEIGHT_LOSS", notes="",
    )
    assert updated.name == "Jane Doe"
    assert updated.phone == "555"
    assert updated.age == 31
    assert updated.height == "170"
    assert updated.weight == "65"
    assert updated.goal == "WEIGHT_LOSS"
    assert updated.address is None
    assert updated.notes is None
    assert updated.username == m.username == "johndoe"
    assert updated.password_hash == "old-hash"
    assert updated.payment_history == m.payment_history


def test_update_profile_rejects_bad_input():
    m = make_member(NOW)
    with pytest.raises(ValueError):
        membership.update_profile(m, name="  ", phone="1")
    with pytest.raises(ValueError):
        membership.update_profile(m, name="John", phone="1", expiry_date=NOW)


# ---------- extend_plan ----------

def test_extend_expired_member_starts_from_now():
    m = make_member(NOW - timedelta(days=10), is_active=False)
    extended = membership.extend_plan(m, 30, 0, NOW)
    assert extended.expiry_date == NOW + timedelta(days=30)
    assert extended.is_active is True


def test_extend_active_member_stacks_on_remaining_days():
    m = make_member(NOW + timedelta(days=4))
    extended = membership.extend_plan(m, 30, 50, NOW)
    assert extended.expiry_date == NOW + timedelta(days=34)


def test_zero_day_extension_keeps_expiry_and_records_payment():
    for expiry in (NOW - timedelta(days=3), NOW + timedelta(days=3)):
        m = make_member(expiry)
        billed = membership.extend_plan(m, 0, 25, NOW)
        assert billed.expiry_date == m.expiry_date
        assert len(billed.payment_history) == len(m.payment_history) + 1
        assert billed.payment_history[-1].amount == 25.0


def test_extend_never_shortens():
    for offset in (-40, -1, 0, 1, 40):
        m = make_member(NOW + timedelta(days=offset))
        for days in (0, 1, 7, 365):
            assert membership.extend_plan(m, days, 0, NOW).expiry_date >= m.expiry_date


def test_extend_appends_offline_payment_with_label():
    m = make_member(NOW + timedelta(days=1))
    extended = membership.extend_plan(m, 30, 40, NOW)
    record = extended.payment_history[-1]
    assert record.method == PaymentMethod.OFFLINE
    assert record.recorded_by == "Extension Renewal (30 Days)"
    assert record.date == NOW
    assert len(m.payment_history) == 1


def test_extend_rejects_negative_input():
    m = make_member(NOW)
    with pytest.raises(InvalidDurationError):
        membership.extend_plan(m, -1, 0, NOW)
    with pytest.raises(InvalidAmountError):
        membership.extend_plan(m, 5, -10, NOW)


# ---------- roster helpers ----------

def test_status_counts_and_alerts():
    members = [
        make_member(NOW + timedelta(days=20)),
        make_member(NOW + timedelta(days=2)),
        make_member(NOW - timedelta(days=2)),
    ]
    assert membership.status_counts(members, NOW) == {"total": 3, "active": 1, "expiring": 1, "expired": 1}
    assert membership.urgent_alerts(members, NOW) == members[1:]


def test_filter_members_by_search_and_status():
    active = make_member(NOW + timedelta(days=20))
    due = replace(make_member(NOW + timedelta(days=2)), name="Mona Ali", phone="555")
    expired = make_member(NOW - timedelta(days=2))
    members = [active, due, expired]

    assert membership.filter_members(members, "mona", "ALL", NOW) == [due]
    assert membership.filter_members(members, "555", "ALL", NOW) == [due]
    # ACTIVE also keeps members that are due soon
    assert membership.filter_members(members, "", "ACTIVE", NOW) == [active, due]
    assert membership.filter_members(members, "", "EXPIRING_SOON", NOW) == [due]
    assert membership.filter_members(members, "", "EXPIRED", NOW) == [expired]
