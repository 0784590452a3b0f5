from dataclasses import replace
from datetime import datetime, timedelta

import pytest

import membership
from models import Gym, GymSettings, NotFoundError, StaleRecordError

NOW = datetime(2024, 5, 1, 10, 30, 15, 123456)


def add_member(store, name="John Doe", gym_id="GYM001", **kwargs):
    m = membership.new_member(
        name=name, phone="1234567890", gym_id=gym_id,
        plan_duration_days=30, amount_paid=50.0, now=NOW, **kwargs,
    )
    m = membership.bill_supplement(m, "Whey Protein", 30.0, NOW + timedelta(hours=1))
    return store.add_member(m)


def test_member_round_trip(store):
    m = add_member(store, height="180cm", goal="MUSCLE_GAIN")
    loaded = store.get_member(m.id)
    assert loaded == m
    assert loaded.expiry_date == NOW + timedelta(days=30)
    assert loaded.payment_history[0].recorded_by == "Initial Joining Fee"
    assert loaded.supplement_history[0].product_name == "Whey Protein"


def test_list_members_is_scoped_to_gym(store, manager_hash):
    store.add_gym(Gym(id="GYM002", name="Other", manager_password_hash=manager_hash, created_at=NOW))
    mine = add_member(store)
    add_member(store, name="Elsewhere", gym_id="GYM002")
    assert [m.id for m in store.list_members("GYM001")] == [mine.id]


def test_get_missing_member(store):
    with pytest.raises(NotFoundError):
        store.get_member("nope")


def test_update_member_replaces_histories_in_order(store):
    m = add_member(store)
    extended = membership.extend_plan(m, 30, 40.0, NOW + timedelta(days=1))
    saved = store.update_member(extended)
    loaded = store.get_member(m.id)
    assert saved.version == loaded.version == 1
    assert loaded.expiry_date == m.expiry_date + timedelta(days=30)
    assert [p.recorded_by for p in loaded.payment_history] == ["Initial Joining Fee", "Extension Renewal (30 Days)"]


def test_update_unknown_member_raises_not_found(store):
    m = membership.new_member(name="Ghost", phone="0", gym_id="GYM001", plan_duration_days=30, amount_paid=0, now=NOW)
    with pytest.raises(NotFoundError):
        store.update_member(m)


def test_concurrent_writers_do_not_overwrite_each_other(store):
    m = add_member(store)
    first = store.get_member(m.id)
    second = store.get_member(m.id)

    store.update_member(membership.extend_plan(first, 30, 10, NOW))
    with pytest.raises(StaleRecordError):
        store.update_member(membership.bill_supplement(second, "Creatine", 20, NOW))

    loaded = store.get_member(m.id)
    assert len(loaded.payment_history) == 2
    assert len(loaded.supplement_history) == 1


def test_extend_member_workflow(store):
    m = add_member(store)
    now = m.expiry_date + timedelta(days=10)
    updated = membership.extend_member(store, m.id, 30, 45.0, now)
    assert updated.expiry_date == now + timedelta(days=30)
    assert store.get_member(m.id).payment_history[-1].amount == 45.0


def test_sell_supplement_workflow_missing_member(store):
    with pytest.raises(NotFoundError):
        membership.sell_supplement(store, "missing", "Creatine", 20, NOW)


def test_settings_default_then_saved(store):
    settings = store.get_settings("GYM001")
    assert settings == GymSettings(gym_id="GYM001", gym_name="Iron Paradise")
    store.save_settings(replace(settings, auto_notify_whatsapp=True, terms_and_conditions="Re-rack weights."))
    loaded = store.get_settings("GYM001")
    assert loaded.auto_notify_whatsapp is True
    assert loaded.terms_and_conditions == "Re-rack weights."


def test_update_gym_can_rename_id(store):
    m = add_member(store)
    gym = store.get_gym("GYM001")
    store.update_gym(replace(gym, id="GYM100", name="Iron Paradise 2"), old_id="GYM001")
    assert [g.id for g in store.list_gyms()] == ["GYM100"]
    assert store.get_member(m.id).gym_id == "GYM100"
    with pytest.raises(NotFoundError):
        store.update_gym(gym, old_id="GYM001")


def test_delete_gym_removes_members(store):
    m = add_member(store)
    store.delete_gym("GYM001")
    assert store.list_gyms() == []
    with pytest.raises(NotFoundError):
        store.get_member(m.id)


def test_delete_member(store):
    m = add_member(store)
    store.delete_member(m.id)
    assert store.list_members("GYM001") == []
    assert store.fetch_all("SELECT * FROM payments") == []


def test_find_member_by_username(store):
    m = add_member(store, username="johnny")
    assert store.find_member_by_username("johnny").id == m.id
    assert store.find_member_by_username("nobody") is None
