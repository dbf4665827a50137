# coordination/models.py
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pandas as pd


_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidInputError(ValueError):
    """Raised when a record handed to the engine is malformed."""


class MissingRequirementError(InvalidInputError):
    """Raised when a member's weekly slot requirement is unset."""


class NegotiationType(str, Enum):
    TIME_SLOT_CHOICE = "time_slot_choice"
    PARTIAL_CONFLICT = "partial_conflict"
    FULL_CONFLICT = "full_conflict"


class NegotiationStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class ResponseStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class EngineSettings:
    tz: str = "Asia/Seoul"
    slot_minutes: int = 30
    align_minutes: int = 60         # option windows start on the hour
    default_priority: int = 3       # used when a member record is missing
    min_preference_priority: int = 2
    weekend_ok: bool = False
    day_names: Tuple[str, ...] = (
        "sunday", "monday", "tuesday", "wednesday",
        "thursday", "friday", "saturday",
    )


def check_time(value: str, what: str = "time") -> str:
    m = _TIME_RE.match(value) if isinstance(value, str) else None
    if not m or int(m.group(1)) > 24 or int(m.group(2)) > 59:
        raise InvalidInputError(f"{what} must be 'HH:MM', got {value!r}")
    if int(m.group(1)) == 24 and int(m.group(2)) != 0:
        raise InvalidInputError(f"{what} is past midnight: {value!r}")
    return value


def _minutes(value: str) -> int:
    h, m = value.split(":")
    return int(h) * 60 + int(m)


def _check_day(day_of_week: int) -> None:
    if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise InvalidInputError(f"day_of_week must be 0..6, got {day_of_week!r}")


@dataclass(frozen=True)
class TimeBlock:
    """A contested interval on one date of the room's week."""
    day_of_week: int      # 0 = Sunday
    start_date: str       # YYYY-MM-DD, the date part of slot keys
    start_time: str
    end_time: str
    date_obj: pd.Timestamp

    def __post_init__(self):
        _check_day(self.day_of_week)
        if not isinstance(self.start_date, str) or not _DATE_RE.match(self.start_date):
            raise InvalidInputError(f"start_date must be 'YYYY-MM-DD', got {self.start_date!r}")
        check_time(self.start_time, "start_time")
        check_time(self.end_time, "end_time")
        if _minutes(self.start_time) % 30 or _minutes(self.end_time) % 30:
            raise InvalidInputError("block times must be 30-minute aligned")
        if _minutes(self.end_time) <= _minutes(self.start_time):
            raise InvalidInputError("block end_time must be after start_time")
        date_obj = pd.Timestamp(self.date_obj)
        if date_obj.strftime("%Y-%m-%d") != self.start_date:
            raise InvalidInputError(
                f"date_obj {date_obj.date()} does not fall on start_date {self.start_date}"
            )
        if (date_obj.weekday() + 1) % 7 != self.day_of_week:
            raise InvalidInputError(
                f"day_of_week {self.day_of_week} does not match {self.start_date}"
            )
        object.__setattr__(self, "date_obj", date_obj)


@dataclass
class PreferredTime:
    day_of_week: int
    start_time: str
    end_time: str
    priority: int = 2                       # >= 2 means "preferred"
    specific_date: Optional[str] = None     # one-off entry instead of weekly

    def __post_init__(self):
        _check_day(self.day_of_week)
        check_time(self.start_time, "start_time")
        check_time(self.end_time, "end_time")
        if _minutes(self.end_time) <= _minutes(self.start_time):
            raise InvalidInputError("preferred time must end after it starts")


@dataclass
class RoomMember:
    id: str
    required_slots: Optional[int] = None    # weekly 30-min sessions; None = unset
    priority: int = 3
    is_owner: bool = False
    default_schedule: List[PreferredTime] = field(default_factory=list)

    def __post_init__(self):
        if not self.id:
            raise InvalidInputError("member id is required")
        if self.required_slots is not None and (
            not isinstance(self.required_slots, int) or self.required_slots < 0
        ):
            raise InvalidInputError(
                f"required_slots for {self.id} must be a non-negative int"
            )


@dataclass
class AssignedWindow:
    date: str
    start_time: str
    end_time: str


@dataclass
class MemberAssignment:
    assigned_slots: int = 0
    windows: List[AssignedWindow] = field(default_factory=list)


@dataclass(frozen=True)
class MemberNeed:
    needed_slots: int
    originally_needed_slots: int


@dataclass(frozen=True)
class UnsatisfiedMember:
    member_id: str
    needed_slots: int
    originally_needed_slots: int

    def __post_init__(self):
        if self.needed_slots <= 0:
            raise InvalidInputError(f"{self.member_id} is not unsatisfied")
        if self.needed_slots > self.originally_needed_slots:
            raise InvalidInputError(
                f"{self.member_id}: needed_slots exceeds originally_needed_slots"
            )


@dataclass
class SlotAvailability:
    member_id: str
    priority: int = 2
    is_owner: bool = False


@dataclass
class TimetableSlot:
    available: List[SlotAvailability] = field(default_factory=list)
    assigned_to: Optional[str] = None


Timetable = Dict[str, TimetableSlot]


@dataclass(frozen=True, order=True)
class TimeSlotOption:
    start_time: str
    end_time: str
    date: Optional[str] = None   # only set for alternatives on other days

    def to_dict(self) -> dict:
        out = {"startTime": self.start_time, "endTime": self.end_time}
        if self.date is not None:
            out["date"] = self.date
        return out


@dataclass
class ConflictingMember:
    user: str
    priority: int
    required_slots: int
    response: ResponseStatus = ResponseStatus.PENDING


@dataclass
class Negotiation:
    type: NegotiationType
    available_time_slots: List[TimeSlotOption]
    member_specific_time_slots: Dict[str, List[TimeSlotOption]]
    slot_info: dict
    conflicting_members: List[ConflictingMember]
    participants: List[str]
    week_start_date: str
    created_at: datetime
    messages: List[dict] = field(default_factory=list)
    status: NegotiationStatus = NegotiationStatus.ACTIVE

    def to_dict(self) -> dict:
        """Wire shape stored by the persistence layer."""
        return {
            "type": self.type.value,
            "availableTimeSlots": [o.to_dict() for o in self.available_time_slots],
            "memberSpecificTimeSlots": {
                member_id: [o.to_dict() for o in opts]
                for member_id, opts in self.member_specific_time_slots.items()
            },
            "slotInfo": {
                "day": self.slot_info["day"],
                "startTime": self.slot_info["start_time"],
                "endTime": self.slot_info["end_time"],
                "date": pd.Timestamp(self.slot_info["date"]).isoformat(),
            },
            "conflictingMembers": [{
                "user": cm.user,
                "priority": cm.priority,
                "requiredSlots": cm.required_slots,
                "response": cm.response.value,
            } for cm in self.conflicting_members],
            "participants": list(self.participants),
            "messages": list(self.messages),
            "status": self.status.value,
            "weekStartDate": self.week_start_date,
            "createdAt": pd.Timestamp(self.created_at).isoformat(),
        }
