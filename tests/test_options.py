"""
Tests for option generation and merging
"""
import pandas as pd
import pytest

from coordination.models import (
    AssignedWindow, EngineSettings, MemberAssignment, PreferredTime, RoomMember,
    TimeSlotOption, UnsatisfiedMember,
)
from coordination.options import (
    collect_full_conflict_options, generate_member_time_slot_options,
    generate_options_from_available_slots, merge_all_time_slot_options,
)
from coordination.timegrid import parse_time


def opt(start, end, date=None):
    return TimeSlotOption(start, end, date)


class TestGenerateOptionsFromAvailableSlots:
    """Tests for windows derived from scattered 30-minute slots"""

    def test_gap_splits_runs(self):
        # 09:00, 09:30, 10:00 | 11:00, 11:30
        options = generate_options_from_available_slots([540, 570, 600, 660, 690], 60)
        assert options == [opt("09:00", "10:00"), opt("11:00", "12:00")]

    def test_window_slides_by_the_hour(self):
        options = generate_options_from_available_slots([540, 570, 600, 630, 660, 690], 120)
        assert options == [opt("09:00", "11:00"), opt("10:00", "12:00")]

    def test_run_starting_on_the_half_hour_yields_nothing(self):
        # 09:30 .. 11:30: every candidate start lands on :30
        assert generate_options_from_available_slots([570, 600, 630, 660], 60) == []

    def test_half_hour_run_does_not_affect_later_runs(self):
        # 08:30 .. 09:30 | 10:00 .. 11:00
        options = generate_options_from_available_slots([510, 540, 600, 630], 60)
        assert options == [opt("10:00", "11:00")]

    def test_short_run_yields_nothing(self):
        assert generate_options_from_available_slots([540], 60) == []
        assert generate_options_from_available_slots([540, 570], 90) == []

    def test_empty_input(self):
        assert generate_options_from_available_slots([], 60) == []

    def test_unsorted_and_duplicate_input(self):
        options = generate_options_from_available_slots([600, 540, 570, 540], 60)
        assert options == [opt("09:00", "10:00")]

    def test_thirty_minute_sessions_still_start_on_the_hour(self):
        options = generate_options_from_available_slots([540, 570, 600], 30)
        assert options == [opt("09:00", "09:30"), opt("10:00", "10:30")]

    @pytest.mark.parametrize("slots,duration", [
        ([480, 510, 540, 600, 630, 660, 690, 720, 780], 60),
        ([540, 570, 600, 630, 660, 690, 720, 750], 90),
        ([510, 540, 570, 600, 660, 690, 720, 750, 780], 120),
    ])
    def test_window_properties(self, slots, duration):
        options = generate_options_from_available_slots(slots, duration)
        assert len(options) == len(set(options))
        for o in options:
            start, end = parse_time(o.start_time), parse_time(o.end_time)
            assert start % 60 == 0
            assert end - start == duration
            assert all(m in slots for m in range(start, end, 30))


class TestGenerateMemberTimeSlotOptions:
    """Tests for per-member options inside a contested block"""

    def test_options_per_member(self, members, monday_block, timetable):
        unsatisfied = [UnsatisfiedMember(m.id, 2, 2) for m in members]
        options = generate_member_time_slot_options(unsatisfied, monday_block, timetable, 60)
        assert options["minji"] == [opt("09:00", "10:00"), opt("10:00", "11:00"), opt("11:00", "12:00")]
        assert options["junho"] == [opt("10:00", "11:00"), opt("11:00", "12:00")]
        assert options["seoyeon"] == [opt("09:00", "10:00"), opt("10:00", "11:00")]

    def test_absent_member_gets_empty_list(self, monday_block, timetable):
        options = generate_member_time_slot_options(
            [UnsatisfiedMember("stranger", 2, 2)], monday_block, timetable, 60)
        assert options == {"stranger": []}

    def test_empty_timetable(self, monday_block):
        options = generate_member_time_slot_options(
            [UnsatisfiedMember("minji", 2, 2)], monday_block, {}, 60)
        assert options == {"minji": []}


class TestMergeAllTimeSlotOptions:
    """Tests for the union offered to the group"""

    def test_union_sorted_and_deduplicated(self):
        merged = merge_all_time_slot_options({
            "a": [opt("09:00", "10:00"), opt("10:00", "11:00")],
            "b": [opt("10:00", "11:00"), opt("08:00", "09:00")],
        })
        assert merged == [opt("08:00", "09:00"), opt("09:00", "10:00"), opt("10:00", "11:00")]

    def test_independent_of_map_order(self):
        a = [opt("11:00", "12:00"), opt("09:00", "11:00")]
        b = [opt("09:00", "10:00")]
        assert merge_all_time_slot_options({"a": a, "b": b}) == \
            merge_all_time_slot_options({"b": b, "a": a})

    def test_same_start_different_end_are_distinct(self):
        merged = merge_all_time_slot_options({
            "a": [opt("09:00", "11:00")],
            "b": [opt("09:00", "10:00")],
        })
        assert merged == [opt("09:00", "10:00"), opt("09:00", "11:00")]

    def test_dated_options_merge_on_times_only(self):
        merged = merge_all_time_slot_options({
            "a": [opt("09:00", "10:00", "2025-11-03"), opt("09:00", "10:00", "2025-11-04")],
            "b": [opt("09:00", "10:00", "2025-11-05"), opt("13:00", "14:00", "2025-11-05")],
        })
        assert merged == [opt("09:00", "10:00"), opt("13:00", "14:00")]

    def test_empty(self):
        assert merge_all_time_slot_options({}) == []
        assert merge_all_time_slot_options({"a": []}) == []


class TestCollectFullConflictOptions:
    """Tests for alternatives across the week"""

    def test_preferred_times_minus_held_windows(self, week_start):
        roster = [RoomMember("a", 2, default_schedule=[
            PreferredTime(1, "09:00", "10:00"),
            PreferredTime(2, "13:00", "14:00", priority=1),   # not preferred
            PreferredTime(3, "14:00", "16:00"),
        ])]
        assignments = {"a": MemberAssignment(1, [AssignedWindow("2025-11-05", "14:00", "15:00")])}
        options = collect_full_conflict_options(
            [UnsatisfiedMember("a", 1, 2)], roster, assignments, week_start, EngineSettings())
        assert options == {"a": [opt("09:00", "10:00", "2025-11-03")]}

    def test_member_without_schedule_gets_empty_list(self, week_start):
        options = collect_full_conflict_options(
            [UnsatisfiedMember("a", 2, 2)], [RoomMember("a", 2)], {}, week_start, EngineSettings())
        assert options == {"a": []}

    def test_member_missing_from_roster_gets_empty_list(self, week_start):
        options = collect_full_conflict_options(
            [UnsatisfiedMember("ghost", 2, 2)], [], {}, week_start, EngineSettings())
        assert options == {"ghost": []}

    def test_option_dates_fall_in_the_week(self, members, week_start):
        unsatisfied = [UnsatisfiedMember(m.id, 2, 2) for m in members]
        options = collect_full_conflict_options(unsatisfied, members, {}, week_start, EngineSettings())
        week = {d.strftime("%Y-%m-%d") for d in pd.date_range(week_start, periods=7, freq="D")}
        for opts in options.values():
            assert all(o.date in week for o in opts)
