# coordination/timegrid.py
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping

import pandas as pd

from .models import (
    EngineSettings, InvalidInputError, RoomMember, SlotAvailability,
    TimeBlock, Timetable, TimetableSlot, check_time,
)


def parse_time(value: str) -> int:
    """'HH:MM' -> minutes from midnight."""
    check_time(value)
    h, m = value.split(":")
    return int(h) * 60 + int(m)


def format_time(minutes: int) -> str:
    if minutes < 0 or minutes > 24 * 60:
        raise InvalidInputError(f"minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def make_slot_key(date_key: str, time: str) -> str:
    return f"{date_key}-{time}"


def generate_time_slots(start_time: str, end_time: str, slot_minutes: int = 30) -> List[str]:
    """Slot start times covering [start_time, end_time)."""
    start, end = parse_time(start_time), parse_time(end_time)
    return [format_time(m) for m in range(start, end, slot_minutes)]


def block_slot_count(block: TimeBlock, slot_minutes: int = 30) -> int:
    return (parse_time(block.end_time) - parse_time(block.start_time)) // slot_minutes


def js_day_of_week(ts: datetime) -> int:
    # pandas/datetime use Monday=0; the room grid uses Sunday=0
    return (ts.weekday() + 1) % 7


def add_member_availability(timetable: Timetable, key: str, member_id: str,
                            priority: int = 2, is_owner: bool = False) -> TimetableSlot:
    slot = timetable.setdefault(key, TimetableSlot())
    if not any(a.member_id == member_id for a in slot.available):
        slot.available.append(SlotAvailability(member_id, priority, is_owner))
    return slot


def build_timetable(members: Iterable[RoomMember],
                    week_start: datetime,
                    settings: EngineSettings,
                    days: int = 7) -> Timetable:
    """Expand every member's weekly preferences over the grid of the week."""
    week_start = pd.Timestamp(week_start).normalize()
    week_end = week_start + timedelta(days=days)
    dates = pd.date_range(week_start, week_end, freq="D", inclusive="left")

    timetable: Timetable = {}
    for member in members:
        for pref in member.default_schedule:
            if pref.specific_date is not None:
                target = [d for d in dates if d.strftime("%Y-%m-%d") == pref.specific_date]
            else:
                target = [d for d in dates if js_day_of_week(d) == pref.day_of_week]

            for d in target:
                if not settings.weekend_ok and js_day_of_week(d) in (0, 6):
                    continue
                date_key = d.strftime("%Y-%m-%d")
                for t in generate_time_slots(pref.start_time, pref.end_time,
                                             settings.slot_minutes):
                    add_member_availability(
                        timetable, make_slot_key(date_key, t),
                        member.id, pref.priority, member.is_owner,
                    )
    return timetable


def timetable_from_records(records: Mapping[str, dict]) -> Timetable:
    """Convert the allocator's {key: {"available": [{"memberId": ...}]}} shape."""
    timetable: Timetable = {}
    for key, raw in records.items():
        date_key, sep, time = key.rpartition("-")
        if not sep or len(date_key) != 10:
            raise InvalidInputError(f"malformed slot key: {key!r}")
        check_time(time, f"time in slot key {key!r}")

        available = raw.get("available") if isinstance(raw, Mapping) else None
        if not isinstance(available, list):
            raise InvalidInputError(f"slot {key!r} has no 'available' list")

        slot = TimetableSlot(assigned_to=raw.get("assignedTo"))
        for entry in available:
            if "memberId" not in entry:
                raise InvalidInputError(f"slot {key!r} has an entry without memberId")
            slot.available.append(SlotAvailability(
                member_id=str(entry["memberId"]),
                priority=int(entry.get("priority", 2)),
                is_owner=bool(entry.get("isOwner", False)),
            ))
        timetable[key] = slot
    return timetable


def timetable_frame(timetable: Timetable) -> pd.DataFrame:
    """One row per slot: date, time, available_count, members."""
    rows = []
    for key, slot in timetable.items():
        date_key, _, time = key.rpartition("-")
        rows.append({
            "date": date_key,
            "time": time,
            "available_count": len(slot.available),
            "members": ", ".join(a.member_id for a in slot.available),
        })
    if not rows:
        return pd.DataFrame(columns=["date", "time", "available_count", "members"])
    return pd.DataFrame(rows).sort_values(["date", "time"]).reset_index(drop=True)
