from datetime import datetime

import streamlit as st
import pandas as pd
import plotly.express as px

from streamlit_calendar import calendar

from coordination.models import (
    EngineSettings, InvalidInputError, MemberAssignment, PreferredTime,
    ResponseStatus, RoomMember, TimeBlock,
)
from coordination.negotiation import build_block_negotiation
from coordination.timegrid import build_timetable, js_day_of_week, timetable_frame

from prometheus_client import start_http_server, Counter


# ✅ Create response counter only once
if "RESPONSE_COUNTER" not in st.session_state:
    st.session_state.RESPONSE_COUNTER = Counter(
        "coordination_responses_total",
        "Negotiation responses recorded, by response",
        ["response"],
    )
RESPONSE_COUNTER = st.session_state.RESPONSE_COUNTER

# ✅ Start metrics server only once
if "metrics_started" not in st.session_state:
    start_http_server(8000)
    st.session_state.metrics_started = True


DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# Session State Setup
if "settings" not in st.session_state:
    st.session_state.settings = EngineSettings()

if "members" not in st.session_state:
    st.session_state.members = []       # list[RoomMember]

if "week_start" not in st.session_state:
    today = pd.Timestamp.now(tz=st.session_state.settings.tz)
    monday = today - pd.Timedelta(days=today.weekday())
    st.session_state.week_start = monday.normalize().tz_localize(None)

if "negotiation" not in st.session_state:
    st.session_state.negotiation = None


# Sidebar: Inputs
st.sidebar.title("Coordination Room")

st.sidebar.subheader("Week")
week_date = st.sidebar.date_input(
    "Week of (Monday)",
    value=st.session_state.week_start.date()
)
st.session_state.week_start = pd.Timestamp(datetime.combine(week_date, datetime.min.time()))
st.session_state.settings.weekend_ok = st.sidebar.checkbox(
    "Allow weekends?", value=st.session_state.settings.weekend_ok)

st.sidebar.subheader("Add Member")
with st.sidebar.form("member_form"):
    m_id = st.text_input("Name", key="m_id")
    m_owner = st.checkbox("Room owner", key="m_owner")
    m_required = st.number_input("Sessions needed (30 min each)", 0, 20, value=2)
    m_priority = st.slider("Priority", 1, 3, 3)
    m_days = st.multiselect("Available days", list(range(7)), default=[1],
                            format_func=lambda d: DAY_LABELS[d])
    m_start = st.text_input("From (HH:MM)", "09:00")
    m_end = st.text_input("To (HH:MM)", "12:00")
    add_member = st.form_submit_button("Add Member")
    if add_member:
        if not m_id or any(m.id == m_id for m in st.session_state.members):
            st.sidebar.error("Please enter a new, unique name.")
        else:
            try:
                st.session_state.members.append(RoomMember(
                    id=m_id,
                    required_slots=None if m_owner else int(m_required),
                    priority=int(m_priority),
                    is_owner=m_owner,
                    default_schedule=[PreferredTime(d, m_start, m_end) for d in m_days],
                ))
            except InvalidInputError as e:
                st.sidebar.error(str(e))

st.sidebar.subheader("Contested Block")
b_date = st.sidebar.date_input("Date", value=st.session_state.week_start.date(), key="b_date")
b_start = st.sidebar.text_input("Start (HH:MM)", "09:00", key="b_start")
b_end = st.sidebar.text_input("End (HH:MM)", "12:00", key="b_end")


# Main
st.title("Negotiation Board")

members = st.session_state.members
owners = [m for m in members if m.is_owner]

if members:
    st.markdown("### Room Members")
    st.dataframe(pd.DataFrame([{
        "name": m.id,
        "owner": m.is_owner,
        "sessions": m.required_slots,
        "priority": m.priority,
        "availability": "; ".join(
            f"{DAY_LABELS[p.day_of_week]} {p.start_time}-{p.end_time}" for p in m.default_schedule
        ),
    } for m in members]))

    timetable = build_timetable(members, st.session_state.week_start, st.session_state.settings)
    frame = timetable_frame(timetable)
    if not frame.empty:
        st.markdown("### Availability")
        grid = frame.pivot(index="time", columns="date", values="available_count").fillna(0)
        fig = px.imshow(grid, aspect="auto", color_continuous_scale="Blues",
                        labels={"x": "Date", "y": "Slot", "color": "Members"})
        st.plotly_chart(fig, use_container_width=True)
else:
    timetable = {}
    st.info("Add the room owner and some members in the sidebar.")


if st.button("Build Negotiation"):
    if len(owners) != 1:
        st.error("The room needs exactly one owner.")
    else:
        try:
            date_obj = pd.Timestamp(b_date)
            block = TimeBlock(
                day_of_week=js_day_of_week(date_obj),
                start_date=date_obj.strftime("%Y-%m-%d"),
                start_time=b_start,
                end_time=b_end,
                date_obj=date_obj,
            )
            st.session_state.negotiation = build_block_negotiation(
                block=block,
                conflicting_member_ids=[m.id for m in members if not m.is_owner],
                roster=members,
                assignments={m.id: MemberAssignment() for m in members if not m.is_owner},
                timetable=timetable,
                owner_id=owners[0].id,
                start_date=st.session_state.week_start,
                settings=st.session_state.settings,
            )
            if st.session_state.negotiation is None:
                st.success("Every member is already satisfied, nothing to negotiate.")
        except InvalidInputError as e:
            st.error(str(e))


negotiation = st.session_state.negotiation
if negotiation is not None:
    info = negotiation.slot_info
    st.markdown("## Negotiation")
    st.write(f"**{negotiation.type.value}** on {info['day']} "
             f"{pd.Timestamp(info['date']).date()} {info['start_time']}-{info['end_time']} "
             f"(status: {negotiation.status.value})")

    if negotiation.available_time_slots:
        # one row per (date, window), listing the members who can take it
        block_date = pd.Timestamp(info["date"]).strftime("%Y-%m-%d")
        rows = {}
        for mid, mopts in negotiation.member_specific_time_slots.items():
            for o in mopts:
                key = (o.date or block_date, o.start_time, o.end_time)
                rows.setdefault(key, []).append(mid)
        opts = pd.DataFrame([{
            "date": d,
            "start": s,
            "end": e,
            "members": ", ".join(mids),
        } for (d, s, e), mids in sorted(rows.items())])
        st.dataframe(opts)

        events = [{
            "title": row["members"] or "option",
            "start": f"{row['date']}T{row['start']}:00",
            "end": f"{row['date']}T{row['end']}:00",
            "color": "#1f77b4",
        } for _, row in opts.iterrows()]
        cal_options = {
            "initialView": "timeGridWeek",
            "initialDate": st.session_state.week_start.strftime("%Y-%m-%d"),
            "slotMinTime": "06:00:00",
            "slotMaxTime": "23:00:00",
            "allDaySlot": False,
            "firstDay": 1,  # Monday
        }
        calendar(events=events, options=cal_options, key="calendar")
    else:
        st.write("No alternative windows; members accept or reject the block as is.")

    st.markdown("### Responses")
    for cm in negotiation.conflicting_members:
        choice = st.selectbox(
            f"{cm.user} (priority {cm.priority}, needs {cm.required_slots})",
            options=[r.value for r in ResponseStatus],
            index=[r.value for r in ResponseStatus].index(cm.response.value),
            key=f"resp_{cm.user}",
        )
        if choice != cm.response.value:
            cm.response = ResponseStatus(choice)
            RESPONSE_COUNTER.labels(response=choice).inc()

    st.json(negotiation.to_dict())
