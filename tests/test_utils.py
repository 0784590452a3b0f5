from datetime import datetime, timedelta, timezone

import membership
import utils


def test_validate_member_inputs():
    assert utils.validate_member_inputs("John", "123", 30, "50") == []
    errors = utils.validate_member_inputs(" ", "", 0, "abc")
    assert "Full name is required." in errors
    assert "Phone is required." in errors
    assert "Amount paid must be numeric." in errors
    assert len(errors) == 4


def test_parse_instant_local_and_offset():
    assert utils.parse_instant("2024-01-05T10:00:00") == datetime(2024, 1, 5, 10, 0)
    assert utils.parse_instant(None) is None
    utc = utils.parse_instant("2024-01-05T10:00:00Z")
    expected = datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert utc == expected


def test_revenue_summary_by_month():
    joined = datetime(2024, 1, 10)
    m = membership.new_member(name="John", phone="1", gym_id="G", plan_duration_days=30, amount_paid=50, now=joined)
    m = membership.bill_supplement(m, "Whey", 30, joined + timedelta(days=1))
    m = membership.extend_plan(m, 30, 40, datetime(2024, 2, 9))

    df = utils.revenue_summary_by_month([m])
    assert list(df["month"]) == ["2024-02", "2024-01"]
    feb, jan = df.to_dict("records")
    assert (jan["membership"], jan["supplement"], jan["revenue"]) == (50, 30, 80)
    assert (feb["membership"], feb["supplement"], feb["revenue"]) == (40, 0, 40)


def test_revenue_summary_empty():
    df = utils.revenue_summary_by_month([])
    assert df.empty
    assert list(df.columns) == ["month", "membership", "supplement", "revenue"]


def test_csv_exports_have_headers():
    m = membership.new_member(name="John", phone="1", gym_id="G", plan_duration_days=30, amount_paid=50,
                              now=datetime(2024, 1, 1))
    members_csv = utils.members_to_csv_bytes([m], now=datetime(2024, 1, 2)).decode("utf-8")
    assert members_csv.splitlines()[0] == "id,name,phone,username,join_date,expiry_date,status,days_left,amount_paid"
    assert "ACTIVE" in members_csv

    sales_csv = utils.sales_to_csv_bytes([]).decode("utf-8")
    assert sales_csv.strip() == "id,date,member_name,description,category,amount"


def test_insert_sample_data(store):
    utils.insert_sample_data(store, "GYM001")
    members = store.list_members("GYM001")
    assert len(members) == 3
    assert sum(len(m.supplement_history) for m in members) == 3
