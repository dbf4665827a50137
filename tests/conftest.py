import pandas as pd
import pytest

from coordination.models import (
    EngineSettings, MemberAssignment, PreferredTime, RoomMember, TimeBlock,
)
from coordination.timegrid import build_timetable


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def week_start() -> pd.Timestamp:
    # a Monday
    return pd.Timestamp("2025-11-03")


@pytest.fixture
def owner() -> RoomMember:
    return RoomMember(
        id="owner",
        is_owner=True,
        default_schedule=[PreferredTime(d, "09:00", "18:00", priority=3) for d in range(1, 6)],
    )


@pytest.fixture
def members():
    return [
        RoomMember(
            id="minji",
            required_slots=2,
            priority=2,
            default_schedule=[
                PreferredTime(1, "09:00", "12:00"),
                PreferredTime(3, "14:00", "16:00", priority=3),
            ],
        ),
        RoomMember(
            id="junho",
            required_slots=2,
            priority=3,
            default_schedule=[PreferredTime(1, "10:00", "12:00")],
        ),
        RoomMember(
            id="seoyeon",
            required_slots=2,
            priority=1,
            default_schedule=[PreferredTime(1, "09:00", "11:00")],
        ),
    ]


@pytest.fixture
def roster(owner, members):
    return [owner] + members


@pytest.fixture
def monday_block() -> TimeBlock:
    return TimeBlock(
        day_of_week=1,
        start_date="2025-11-03",
        start_time="09:00",
        end_time="12:00",
        date_obj=pd.Timestamp("2025-11-03"),
    )


@pytest.fixture
def timetable(roster, week_start, settings):
    return build_timetable(roster, week_start, settings)


@pytest.fixture
def no_assignments(members):
    return {m.id: MemberAssignment() for m in members}
