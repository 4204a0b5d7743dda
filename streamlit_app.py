from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterator

import streamlit as st

from clinic_ui.api_client import API_BASE, ApiError, ClinicApiClient
from clinic_ui.state import LoadingState, ThemeState, session_state_container

st.set_page_config(page_title="Clinic Booking", layout="wide")

api = ClinicApiClient(API_BASE)

# UI state, one instance per browser session
loading: LoadingState = session_state_container(st.session_state, "loading_state", LoadingState)
theme: ThemeState = session_state_container(st.session_state, "theme_state", ThemeState)

DARK_CSS = """
<style>
.stApp { background-color: #1e1e2e; color: #e0e0e0; }
.stApp h1, .stApp h2, .stApp h3, .stApp label, .stApp p { color: #e0e0e0; }
</style>
"""



# Loading overlay

overlay = st.empty()


def render_overlay(state: object) -> None:
    if isinstance(state, LoadingState) and state.is_loading:
        overlay.info(f"⏳ {state.message}")
    else:
        overlay.empty()


# the session keeps the container across reruns, the placeholder is new each run
loading.clear_listeners()
loading.subscribe(render_overlay)


@contextmanager
def busy(message: str) -> Iterator[None]:
    loading.show(message)
    try:
        with st.spinner(message):
            yield
    finally:
        loading.hide()



# Sidebar

with st.sidebar:
    st.header("Clinic admin")

    label = "☀️ Light mode" if theme.is_dark else "🌙 Dark mode"
    if st.button(label, key="theme_toggle"):
        theme.toggle()
        st.rerun()

    try:
        stats = api.dashboard_stats()
        st.metric("Unread notifications", stats["unreadNotifications"])
        c1, c2 = st.columns(2)
        c1.metric("Appointments today", stats["appointmentsToday"])
        c2.metric("Upcoming", stats["upcomingAppointments"])
        c1.metric("Therapists", stats["totalTherapists"])
        c2.metric("Patients", stats["totalPatients"])
    except Exception as e:
        st.caption(f"Backend not reachable: {e}")

    st.divider()
    st.caption(f"API: {API_BASE}")

if theme.is_dark:
    st.markdown(DARK_CSS, unsafe_allow_html=True)



# UI

st.title("Clinic Booking")

tab1, tab2, tab3, tab4, tab5, tab6 = st.tabs(
    ["Book a visit", "Bookings", "Notifications", "Patients", "Therapists", "Appointments"]
)



# TAB 1 - Booking form (public)

with tab1:
    st.subheader("Request a booking")

    c1, c2 = st.columns(2)
    name = c1.text_input("Full name", key="book_name")
    phone = c2.text_input("Phone", key="book_phone")
    service = c1.selectbox(
        "Service",
        options=["General", "Physiotherapy", "Orthopedic Therapy", "Sports Therapy"],
        key="book_service",
    )
    when = c2.date_input("Date", value=date.today(), key="book_date")
    message = st.text_area("Message (optional)", height=100, key="book_message")

    if st.button("Send booking request", key="book_submit"):
        if not name.strip() or not phone.strip():
            st.error("Name and phone are required.")
        else:
            payload = {
                "name": name.strip(),
                "phone": phone.strip(),
                "service": service,
                "date": when.isoformat(),
                "message": message.strip() or None,
            }
            try:
                with busy("Sending booking..."):
                    res = api.create_booking(payload)
                st.success(f"{res.get('message')} (ID: {res.get('bookingId')})")
            except ApiError as e:
                st.error(e.message)
            except Exception as e:
                st.error(str(e))



# TAB 2 - Bookings

with tab2:
    st.subheader("Bookings")

    status_filter = st.selectbox("Status", ["all", "pending", "active", "cancelled"], key="bookings_status")
    try:
        rows = api.list_bookings(None if status_filter == "all" else status_filter)
        if not rows:
            st.info("No bookings.")
        for b in rows:
            cols = st.columns([5, 2, 2])
            cols[0].write(
                f"**#{b['id']} {b['name']}** | {b['service']} | {b['date']} | {b['phone']}"
                + (f" | _{b['message']}_" if b.get("message") else "")
            )
            cols[1].write(f"Status: **{b['status']}**")
            new_status = cols[2].selectbox(
                "Set status",
                ["pending", "active", "cancelled"],
                index=["pending", "active", "cancelled"].index(b["status"]),
                key=f"booking_status_{b['id']}",
                label_visibility="collapsed",
            )
            if new_status != b["status"]:
                api.update_booking_status(b["id"], new_status)
                st.rerun()
    except Exception as e:
        st.error(f"Error loading bookings: {e}")



# TAB 3 - Notifications

with tab3:
    st.subheader("Notifications")

    c1, c2 = st.columns([3, 1])
    notif_filter = c1.selectbox("Status", ["pending", "resolved", "all"], key="notif_status")
    if c2.button("Run fan-out", key="fan_out"):
        try:
            with busy("Creating missing notifications..."):
                res = api.fan_out()
            st.success(f"{res['created']} notifications created ({res['skipped']} skipped).")
        except Exception as e:
            st.error(str(e))

    try:
        items = api.list_notifications(None if notif_filter == "all" else notif_filter)
        if not items:
            st.info("No notifications.")
        for n in items:
            cols = st.columns([6, 1, 1])
            badge = "" if n["isRead"] else "🔵 "
            cols[0].write(f"{badge}**{n['title']}** | {n['message']} | {n['status']}")
            if not n["isRead"] and cols[1].button("Read", key=f"read_{n['id']}"):
                api.mark_read(n["id"])
                st.rerun()
            if n["status"] == "pending" and cols[2].button("Resolve", key=f"resolve_{n['id']}"):
                api.resolve(n["id"])
                st.rerun()
    except Exception as e:
        st.error(f"Error loading notifications: {e}")



# TAB 4 - Patients

with tab4:
    st.subheader("Patients")
    try:
        pts = api.list_patients()
        if not pts:
            st.info("No patients.")
        for p in pts:
            st.write(f"- {p['fullName']} | {p['phone']} | {p['age']} | {p['gender']}")
    except Exception as e:
        st.error(f"Error loading patients: {e}")



# TAB 5 - Therapists

with tab5:
    st.subheader("Therapists")
    try:
        ths = api.list_therapists()
        if not ths:
            st.info("No therapists.")
        for t in ths:
            st.write(f"- {t['name']} | {t['specialization'] or '-'} | {t['phone']} | {t['status']}")
    except Exception as e:
        st.error(f"Error loading therapists: {e}")



# TAB 6 - Appointments

with tab6:
    st.subheader("Appointments")
    day = st.date_input("Day", value=date.today(), key="appt_day")
    try:
        appts = api.list_appointments(date=day.isoformat())
        if not appts:
            st.info("No appointments for this day.")
        for a in appts:
            st.write(
                f"- **{a['startTime']} - {a['endTime']}** | {a['patient']['fullName']} "
                f"with {a['therapist']['name']} | {a['status']} | {a['notes'] or '-'}"
            )
    except Exception as e:
        st.error(f"Error loading appointments: {e}")
