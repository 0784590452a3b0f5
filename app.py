"""
app.py
Streamlit Gym Chain Admin (super admin, gym managers, members).
Run: streamlit run app.py
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
import pandas as pd
import streamlit as st

import auth
import config
import db
import ledger
import membership
import messaging
import utils
from models import (
    GOALS,
    PLAN_DAYS,
    Gym,
    GymError,
    Manager,
    MemberLogin,
    MembershipStatus,
    MessageKind,
    ReportWindow,
    SaleCategory,
    SuperAdmin,
)

st.set_page_config(page_title="Gym Chain Admin", layout="wide")

store = db.Store()

STATUS_BADGES = {
    MembershipStatus.ACTIVE: "🟢 Active",
    MembershipStatus.EXPIRING_SOON: "🟠 Due soon",
    MembershipStatus.EXPIRED: "🔴 Expired",
}


def init_once():
    # Initialize DB + default super admin if needed
    if st.session_state.get("db_ready"):
        return
    default_hash = auth.hash_password(config.DEFAULT_ADMIN_PASSWORD)
    store.init_db(default_hash)
    st.session_state.db_ready = True


def require_login():
    if "user" not in st.session_state:
        st.session_state.user = None


def logout():
    st.session_state.user = None
    st.session_state.page = None
    st.success("Logged out.")


def login_screen():
    st.title("🔐 Gym Chain Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        role = st.radio("I am a", ["MANAGER", "MEMBER", "SUPER_ADMIN"], horizontal=True,
                        format_func=lambda r: r.replace("_", " ").title())
        gym_id = ""
        username = ""
        if role != "SUPER_ADMIN":
            gym_id = st.text_input("Gym ID")
        if role != "MANAGER":
            username = st.text_input("Username", value=("admin" if role == "SUPER_ADMIN" else ""))
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            user = auth.login(store, role, username.strip(), password, gym_id.strip() or None)
            if user:
                st.session_state.user = user
                st.rerun()
            else:
                st.error("Invalid credentials.")

    with col2:
        st.info(
            "First run creates a default super admin:\n\n"
            f"- username: **{config.DEFAULT_ADMIN_USERNAME}**\n"
            "- password: see `DEFAULT_ADMIN_PASSWORD`\n\n"
            "You will be forced to change it on first login."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        if len(new1) < 6:
            st.error("Password must be at least 6 characters.")
            return
        if new1 != new2:
            st.error("Passwords do not match.")
            return
        auth.change_password(store, st.session_state.user.username, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Super admin ----------

def gyms_page():
    st.header("🏢 Gym Tenants")

    gyms = store.list_gyms()
    df = pd.DataFrame(
        [{"id": g.id, "name": g.name, "city": g.city, "state": g.state, "email": g.email,
          "phone": g.phone, "created_at": g.created_at.date().isoformat()} for g in gyms],
        columns=["id", "name", "city", "state", "email", "phone", "created_at"],
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    options = ["(new gym)"] + [g.id for g in gyms]
    selected = st.selectbox("Gym", options)
    existing = next((g for g in gyms if g.id == selected), None)

    col1, col2 = st.columns(2)
    with col1:
        gym_id = st.text_input("Gym ID (used to log in)", value=existing.id if existing else "")
        name = st.text_input("Gym name", value=existing.name if existing else "")
        password = st.text_input(
            "Manager password" + (" (leave blank to keep)" if existing else ""), type="password"
        )
    with col2:
        email = st.text_input("Email", value=(existing.email or "") if existing else "")
        phone = st.text_input("Phone", value=(existing.phone or "") if existing else "")
        city = st.text_input("City", value=(existing.city or "") if existing else "")
        state = st.text_input("State", value=(existing.state or "") if existing else "")

    if st.button("Save gym", type="primary"):
        if not gym_id.strip() or not name.strip():
            st.error("Gym ID and name are required.")
            return
        if not existing and not password:
            st.error("A manager password is required for a new gym.")
            return
        gym = Gym(
            id=gym_id.strip(),
            name=name.strip(),
            manager_password_hash=auth.hash_password(password) if password else existing.manager_password_hash,
            created_at=existing.created_at if existing else utils.now_local(),
            email=email.strip() or None,
            phone=phone.strip() or None,
            city=city.strip() or None,
            state=state.strip() or None,
        )
        if existing:
            store.update_gym(gym, old_id=existing.id)
            st.success("Gym updated.")
        else:
            store.add_gym(gym)
            st.success("Gym added.")
        st.rerun()

    if existing:
        confirm = st.checkbox("Confirm delete (removes all its members)", value=False)
        if st.button("Delete gym", disabled=not confirm):
            store.delete_gym(existing.id)
            st.success("Gym deleted.")
            st.rerun()


# ---------- Manager ----------

def dashboard_page(gym_id: str):
    st.header("📊 Dashboard")

    now = utils.now_local()
    members = store.list_members(gym_id)
    counts = membership.status_counts(members, now)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total members", counts["total"])
    c2.metric("Active", counts["active"])
    c3.metric("Due soon", counts["expiring"])
    c4.metric("Expired", counts["expired"])

    report, _ = ledger.build_report(members, ReportWindow.monthly(), now)
    st.metric("Revenue (current month)", f"{report.gross_total:.2f}")

    st.divider()

    st.subheader("Urgent alerts")
    alerts = membership.urgent_alerts(members, now)
    if alerts:
        st.dataframe(utils.members_dataframe(alerts, now), use_container_width=True, hide_index=True)
    else:
        st.caption("No expired or due-soon members.")


def member_form(gym_id: str):
    st.subheader("➕ Add Member")

    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Full name")
        phone = st.text_input("WhatsApp / Mobile")
        age = st.number_input("Age", min_value=0, max_value=120, value=25)
        address = st.text_input("Address")
    with col2:
        plan = st.selectbox("Plan tenure", options=list(PLAN_DAYS.keys()))
        amount_paid = st.text_input("Join fee paid", value="50")
        payment_mode = st.selectbox("Payment mode", ["CASH", "ONLINE"])
        height = st.text_input("Height")
        weight = st.text_input("Weight")
    with col3:
        username = st.text_input("Portal username (optional)")
        password = st.text_input("Portal password", type="password")
        goal = st.selectbox("Goal", GOALS)
        notes = st.text_area("Notes")

    errors = utils.validate_member_inputs(name, phone, PLAN_DAYS[plan], amount_paid)
    submitted = st.button("Register member", type="primary")

    if submitted:
        if errors:
            for e in errors:
                st.error(e)
            return
        member = membership.new_member(
            name=name,
            phone=phone,
            gym_id=gym_id,
            plan_duration_days=PLAN_DAYS[plan],
            amount_paid=float(amount_paid),
            now=utils.now_local(),
            username=username,
            password_hash=auth.hash_password(password) if password else None,
            registration_payment_mode=payment_mode,
            age=int(age),
            goal=goal,
            height=height.strip() or None,
            weight=weight.strip() or None,
            address=address.strip() or None,
            notes=notes.strip() or None,
        )
        store.add_member(member)
        st.success(f"Member added. Login username: {member.username}")
        st.rerun()


def member_actions(member):
    now = utils.now_local()
    status = membership.classify_status(member.expiry_date, now)
    st.write(
        f"**{member.name}** ({member.phone}) | {STATUS_BADGES[status]} | "
        f"Expires **{member.expiry_date:%Y-%m-%d}** ({membership.days_left(member.expiry_date, now)} days left)"
    )

    tab_extend, tab_supp, tab_edit, tab_msg = st.tabs(["Extend plan", "Bill supplement", "Edit profile", "AI message"])

    with tab_extend:
        amount = st.text_input("Renewal payment amount", value="0")
        days = st.number_input("Days to add", min_value=0, value=30, step=1)
        if st.button("Extend", type="primary"):
            try:
                paid = float(amount or 0)
            except ValueError:
                st.error("Amount must be numeric.")
                return
            try:
                membership.extend_member(store, member.id, int(days), paid, utils.now_local())
            except GymError as e:
                st.error(str(e))
                return
            st.success(f"Membership access extended by {int(days)} days.")
            st.rerun()

        history = pd.DataFrame(
            [{"date": p.date, "amount": p.amount, "method": p.method.value, "recorded_by": p.recorded_by}
             for p in reversed(member.payment_history)],
            columns=["date", "amount", "method", "recorded_by"],
        )
        st.dataframe(history, use_container_width=True, hide_index=True)

    with tab_supp:
        product = st.text_input("Product name")
        price = st.text_input("Price", value="0")
        if st.button("Bill supplement"):
            try:
                unit_price = float(price)
            except ValueError:
                st.error("Price must be numeric.")
                return
            try:
                membership.sell_supplement(store, member.id, product, unit_price, utils.now_local())
            except (GymError, ValueError) as e:
                st.error(str(e))
                return
            st.success("Supplement billed successfully.")
            st.rerun()

    with tab_edit:
        c1, c2 = st.columns(2)
        with c1:
            name = st.text_input("Full name", value=member.name, key="edit_name")
            phone = st.text_input("Phone", value=member.phone, key="edit_phone")
            age = st.number_input("Age", min_value=0, max_value=120, value=member.age or 0, key="edit_age")
            username = st.text_input("Username", value=member.username, key="edit_username")
            password = st.text_input("New password (leave blank to keep)", type="password", key="edit_password")
        with c2:
            height = st.text_input("Height", value=member.height or "", key="edit_height")
            weight = st.text_input("Weight", value=member.weight or "", key="edit_weight")
            address = st.text_input("Address", value=member.address or "", key="edit_address")
            goal = st.selectbox("Goal", GOALS, index=GOALS.index(member.goal) if member.goal in GOALS else 0, key="edit_goal")
        notes = st.text_area("Notes", value=member.notes or "", key="edit_notes")
        if st.button("Save profile"):
            try:
                updated = membership.update_profile(
                    member, name=name, phone=phone, username=username, age=int(age) or None,
                    password_hash=auth.hash_password(password) if password else None,
                    height=height, weight=weight, address=address, goal=goal, notes=notes,
                )
                store.update_member(updated)
            except (GymError, ValueError) as e:
                st.error(str(e))
                return
            st.success("Member profile updated successfully!")
            st.rerun()

        confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
        if st.button("Delete member", disabled=not confirm):
            store.delete_member(member.id)
            st.session_state.selected_member_id = None
            st.success("Member deleted.")
            st.rerun()

    with tab_msg:
        kind = st.selectbox("Message type", [k.value for k in MessageKind])
        if st.button("Generate message"):
            with st.spinner("Writing..."):
                st.session_state.ai_message = messaging.generate_message(member.name, member.expiry_date, MessageKind(kind))
        if st.session_state.get("ai_message"):
            st.text_area("Message", value=st.session_state.ai_message, height=120)


def members_page(gym_id: str):
    st.header("👥 Members")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone)")
        status_filter = st.selectbox("Status", ["ALL", "ACTIVE", "EXPIRING_SOON", "EXPIRED"])

    now = utils.now_local()
    members = membership.filter_members(store.list_members(gym_id), search, status_filter, now)
    st.dataframe(utils.members_dataframe(members, now), use_container_width=True, hide_index=True)

    st.divider()

    labels = {f"{m.name} ({m.phone})": m.id for m in members}
    chosen = st.selectbox("Select member", ["(none)"] + list(labels.keys()))
    if chosen != "(none)":
        member_actions(store.get_member(labels[chosen]))
    else:
        member_form(gym_id)


def sales_window_picker() -> ReportWindow:
    kind = st.radio("Window", ["DAILY", "WEEKLY", "MONTHLY", "DATE", "RANGE"], horizontal=True, index=2)
    if kind == "DAILY":
        return ReportWindow.daily()
    if kind == "WEEKLY":
        return ReportWindow.weekly()
    if kind == "MONTHLY":
        return ReportWindow.monthly()
    if kind == "DATE":
        return ReportWindow.on(st.date_input("Date", value=date.today()))
    c1, c2 = st.columns(2)
    with c1:
        start = st.date_input("From", value=date.today() - timedelta(days=30))
    with c2:
        end = st.date_input("To", value=date.today())
    return ReportWindow.between(start, end)


def sales_page(gym_id: str):
    st.header("💰 Sales & Revenue")

    window = sales_window_picker()
    members = store.list_members(gym_id)
    report, events = ledger.build_report(members, window, utils.now_local())

    c1, c2, c3 = st.columns(3)
    c1.metric("Gross revenue", f"{report.gross_total:.2f}")
    c2.metric("Memberships", f"{report.totals_by_category[SaleCategory.MEMBERSHIP]:.2f}")
    c3.metric("Supplements", f"{report.totals_by_category[SaleCategory.SUPPLEMENT]:.2f}")

    chart = pd.DataFrame([{"label": b.label, "value": b.value} for b in report.chart_series], columns=["label", "value"])
    if not chart.empty:
        st.bar_chart(chart, x="label", y="value")

    st.subheader("Supplement breakdown")
    supp_total = report.totals_by_category[SaleCategory.SUPPLEMENT]
    if report.product_breakdown:
        st.dataframe(
            pd.DataFrame([
                {"product": p.name, "count": p.count, "revenue": p.revenue,
                 "share %": round(ledger.product_share(p.revenue, supp_total), 1)}
                for p in report.product_breakdown
            ]),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("No supplement sales in this window.")

    st.subheader("Transactions")
    if events:
        st.dataframe(utils.sales_dataframe(events), use_container_width=True, hide_index=True)
        st.download_button(
            "Download sales.csv",
            data=utils.sales_to_csv_bytes(events),
            file_name="sales.csv",
            mime="text/csv",
        )
    else:
        st.caption("No sales in this window.")

    st.divider()

    st.subheader("Revenue summary by month")
    st.dataframe(utils.revenue_summary_by_month(members), use_container_width=True, hide_index=True)

    st.download_button(
        "Download members.csv",
        data=utils.members_to_csv_bytes(members),
        file_name="members.csv",
        mime="text/csv",
    )


def settings_page(gym_id: str):
    st.header("⚙️ Settings")

    settings = store.get_settings(gym_id)
    gym_name = st.text_input("Gym display name", value=settings.gym_name)
    notify = st.toggle("Auto-notify on WhatsApp", value=settings.auto_notify_whatsapp)
    terms = st.text_area("Public terms & conditions", value=settings.terms_and_conditions or "")
    if st.button("Save settings", type="primary"):
        store.save_settings(replace(settings, gym_name=gym_name.strip(), auto_notify_whatsapp=notify,
                                    terms_and_conditions=terms.strip() or None))
        st.success("Settings saved.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 3 sample members with payments and supplement sales (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data(store, gym_id)
        st.success("Sample data inserted.")
        st.rerun()


# ---------- Member ----------

def member_home_page(member_id: str):
    member = store.get_member(member_id)
    now = utils.now_local()
    status = membership.classify_status(member.expiry_date, now)

    st.header(f"👋 Welcome, {member.name}")
    c1, c2, c3 = st.columns(3)
    c1.metric("Status", STATUS_BADGES[status])
    c2.metric("Days left", max(0, membership.days_left(member.expiry_date, now)))
    c3.metric("Days with us", membership.days_active(member.join_date, now))

    st.info(messaging.workout_tip(membership.days_active(member.join_date, now)))

    st.subheader("Payments")
    st.dataframe(
        pd.DataFrame([{"date": p.date.date(), "amount": p.amount, "details": p.recorded_by}
                      for p in reversed(member.payment_history)], columns=["date", "amount", "details"]),
        use_container_width=True, hide_index=True,
    )

    st.subheader("Supplements")
    st.dataframe(
        pd.DataFrame([{"date": s.purchase_date.date(), "product": s.product_name, "price": s.price}
                      for s in reversed(member.supplement_history)], columns=["date", "product", "price"]),
        use_container_width=True, hide_index=True,
    )

    terms = store.get_settings(member.gym_id).terms_and_conditions
    if terms:
        with st.expander("Gym terms & conditions"):
            st.write(terms)


def main_app():
    user = st.session_state.user
    st.sidebar.title("🏋️ Gym Chain Admin")

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if isinstance(user, SuperAdmin):
        st.sidebar.caption(f"Super admin: {user.username}")
        gyms_page()
    elif isinstance(user, Manager):
        st.sidebar.caption(f"Managing gym: {user.gym_id}")
        pages = ["Dashboard", "Members", "Sales", "Settings"]
        if st.session_state.get("page") not in pages:
            st.session_state.page = "Dashboard"
        st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))
        if st.session_state.page == "Dashboard":
            dashboard_page(user.gym_id)
        elif st.session_state.page == "Members":
            members_page(user.gym_id)
        elif st.session_state.page == "Sales":
            sales_page(user.gym_id)
        elif st.session_state.page == "Settings":
            settings_page(user.gym_id)
    elif isinstance(user, MemberLogin):
        member_home_page(user.member_id)


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.user:
        login_screen()
        return

    # Force password change on first super admin login after DB creation
    if isinstance(st.session_state.user, SuperAdmin) and store.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
