# coordination/options.py
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd

from .models import (
    EngineSettings, MemberAssignment, RoomMember, TimeBlock, TimeSlotOption,
    Timetable, UnsatisfiedMember,
)
from .needs import find_member
from .timegrid import format_time, js_day_of_week, make_slot_key, parse_time

logger = logging.getLogger(__name__)


def split_runs(slots: np.ndarray, slot_minutes: int = 30) -> List[np.ndarray]:
    """Split sorted slot starts wherever the gap is not exactly one slot."""
    if slots.size == 0:
        return []
    breaks = np.where(np.diff(slots) != slot_minutes)[0] + 1
    return np.split(slots, breaks)


def generate_options_from_available_slots(available_slots: Iterable[int],
                                          required_duration: int,
                                          slot_minutes: int = 30,
                                          align_minutes: int = 60) -> List[TimeSlotOption]:
    """
    Turn scattered 30-minute availability into full-length candidate windows.

    available_slots are slot start offsets in minutes from midnight. A window
    must start on an `align_minutes` boundary, fit inside one run of
    consecutive slots, and last exactly `required_duration` minutes.
    """
    slots = np.sort(np.asarray(list(available_slots), dtype=int))
    options: List[TimeSlotOption] = []
    seen = set()

    for run in split_runs(slots, slot_minutes):
        range_start = int(run[0])
        range_end = int(run[-1]) + slot_minutes
        present = set(run.tolist())

        start = range_start
        while start + required_duration <= range_end:
            # runs starting on the half hour never reach an hour boundary
            if start % align_minutes:
                start += align_minutes
                continue
            end = start + required_duration
            if all(m in present for m in range(start, end, slot_minutes)):
                option = TimeSlotOption(format_time(start), format_time(end))
                if option not in seen:
                    seen.add(option)
                    options.append(option)
            start += align_minutes

    return options


def member_available_offsets(member_id: str, block: TimeBlock, timetable: Timetable,
                             slot_minutes: int = 30) -> List[int]:
    offsets = []
    for minutes in range(parse_time(block.start_time), parse_time(block.end_time), slot_minutes):
        slot = timetable.get(make_slot_key(block.start_date, format_time(minutes)))
        if slot is not None and any(a.member_id == member_id for a in slot.available):
            offsets.append(minutes)
    return offsets


def generate_member_time_slot_options(unsatisfied_members: List[UnsatisfiedMember],
                                      block: TimeBlock,
                                      timetable: Timetable,
                                      required_duration: int,
                                      slot_minutes: int = 30,
                                      align_minutes: int = 60) -> Dict[str, List[TimeSlotOption]]:
    member_options: Dict[str, List[TimeSlotOption]] = {}
    for m in unsatisfied_members:
        offsets = member_available_offsets(m.member_id, block, timetable, slot_minutes)
        member_options[m.member_id] = generate_options_from_available_slots(
            offsets, required_duration, slot_minutes, align_minutes,
        )
        logger.debug("%s: %d free slots in block, %d options",
                     m.member_id, len(offsets), len(member_options[m.member_id]))
    return member_options


def merge_all_time_slot_options(member_options: Mapping[str, List[TimeSlotOption]]) -> List[TimeSlotOption]:
    """
    Union of every member's (start_time, end_time) pairs, ordered by start
    time. Dates on full-conflict alternatives stay in the per-member lists.
    """
    merged = set()
    for opts in member_options.values():
        merged.update(TimeSlotOption(o.start_time, o.end_time) for o in opts)
    return sorted(merged, key=lambda o: (o.start_time, o.end_time))


def _overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return not (end_a <= start_b or end_b <= start_a)


def collect_full_conflict_options(unsatisfied_members: List[UnsatisfiedMember],
                                  roster: List[RoomMember],
                                  assignments: Mapping[str, MemberAssignment],
                                  week_start: datetime,
                                  settings: EngineSettings) -> Dict[str, List[TimeSlotOption]]:
    """
    Alternatives for a full conflict: each member's preferred times across the
    week, minus anything overlapping what they already hold on that date.
    """
    week_start = pd.Timestamp(week_start).normalize()
    dates = pd.date_range(week_start, week_start + timedelta(days=7),
                          freq="D", inclusive="left")
    member_options: Dict[str, List[TimeSlotOption]] = {}

    for m in unsatisfied_members:
        member = find_member(roster, m.member_id)
        if member is None or not member.default_schedule:
            member_options[m.member_id] = []
            continue
        held = assignments.get(m.member_id, MemberAssignment()).windows
        options = []

        for d in dates:
            date_key = d.strftime("%Y-%m-%d")
            dow = js_day_of_week(d)
            prefs = [p for p in member.default_schedule
                     if p.priority >= settings.min_preference_priority
                     and (p.specific_date == date_key
                          or (p.specific_date is None and p.day_of_week == dow))]

            for p in sorted(prefs, key=lambda p: p.start_time):
                taken = any(
                    w.date == date_key and _overlaps(w.start_time, w.end_time,
                                                     p.start_time, p.end_time)
                    for w in held
                )
                if not taken:
                    option = TimeSlotOption(p.start_time, p.end_time, date_key)
                    if option not in options:
                        options.append(option)

        member_options[m.member_id] = options
    return member_options
