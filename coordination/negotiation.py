# coordination/negotiation.py
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from .metrics import NEGOTIATION_BUILD_TIME, NEGOTIATIONS_CREATED, PRIORITY_FALLBACKS
from .models import (
    ConflictingMember, EngineSettings, InvalidInputError, MemberAssignment,
    Negotiation, NegotiationStatus, NegotiationType, ResponseStatus,
    RoomMember, TimeBlock, TimeSlotOption, Timetable, UnsatisfiedMember,
)
from .needs import find_member, find_unsatisfied_members, sort_by_priority
from .options import (
    collect_full_conflict_options, generate_member_time_slot_options,
    merge_all_time_slot_options,
)
from .timegrid import block_slot_count

logger = logging.getLogger(__name__)


def determine_negotiation_type(unsatisfied_members: List[UnsatisfiedMember],
                               total_needed: int,
                               total_slots: int) -> NegotiationType:
    """
    Classify a conflict. Rules are checked in order and the first match wins:

    - everyone needs the same original amount and the block leaves room for
      at least two placements -> TIME_SLOT_CHOICE
    - two members whose remaining need exactly fills the block -> PARTIAL_CONFLICT
    - anything else -> FULL_CONFLICT
    """
    if not unsatisfied_members:
        raise InvalidInputError("cannot classify a conflict with no unsatisfied members")

    first = unsatisfied_members[0].originally_needed_slots
    if all(m.originally_needed_slots == first for m in unsatisfied_members):
        number_of_options = total_slots - first + 1
        if number_of_options >= 2:
            return NegotiationType.TIME_SLOT_CHOICE

    if total_needed == total_slots and len(unsatisfied_members) == 2:
        return NegotiationType.PARTIAL_CONFLICT

    return NegotiationType.FULL_CONFLICT


def week_start_string(start_date: datetime) -> str:
    ts = pd.Timestamp(start_date)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.strftime("%Y-%m-%d")


def create_negotiation(negotiation_type: NegotiationType,
                       block: TimeBlock,
                       unsatisfied_members: List[UnsatisfiedMember],
                       member_time_slot_options: Optional[Dict[str, List[TimeSlotOption]]],
                       available_time_slots: List[TimeSlotOption],
                       non_owner_members: Iterable[RoomMember],
                       owner_id: str,
                       start_date: datetime,
                       settings: Optional[EngineSettings] = None) -> Negotiation:
    settings = settings or EngineSettings()
    if not unsatisfied_members:
        raise InvalidInputError("a negotiation needs at least one conflicting member")

    member_ids = [m.member_id for m in unsatisfied_members]
    if owner_id in member_ids:
        raise InvalidInputError(f"owner {owner_id} cannot be a conflicting member")
    if len(set(member_ids)) != len(member_ids):
        raise InvalidInputError("conflicting members must be distinct")

    roster = list(non_owner_members)
    conflicting = []
    for m in unsatisfied_members:
        member = find_member(roster, m.member_id)
        if member is None:
            logger.warning("member %s not in room roster, using default priority %d",
                           m.member_id, settings.default_priority)
            PRIORITY_FALLBACKS.inc()
            priority = settings.default_priority
        else:
            priority = member.priority
        conflicting.append(ConflictingMember(
            user=m.member_id,
            priority=priority,
            required_slots=m.needed_slots,
            response=ResponseStatus.PENDING,
        ))

    return Negotiation(
        type=NegotiationType(negotiation_type),
        available_time_slots=list(available_time_slots),
        member_specific_time_slots=dict(member_time_slot_options or {}),
        slot_info={
            "day": settings.day_names[block.day_of_week],
            "start_time": block.start_time,
            "end_time": block.end_time,
            "date": block.date_obj,
        },
        conflicting_members=conflicting,
        participants=member_ids + [owner_id],
        messages=[],
        status=NegotiationStatus.ACTIVE,
        week_start_date=week_start_string(start_date),
        created_at=pd.Timestamp.now(tz=settings.tz),
    )


@NEGOTIATION_BUILD_TIME.time()
def build_block_negotiation(block: TimeBlock,
                            conflicting_member_ids: List[str],
                            roster: List[RoomMember],
                            assignments: Mapping[str, MemberAssignment],
                            timetable: Timetable,
                            owner_id: str,
                            start_date: datetime,
                            settings: Optional[EngineSettings] = None) -> Optional[Negotiation]:
    """
    Run one contested block through the engine.

    Returns None when every competing member is already satisfied.
    """
    settings = settings or EngineSettings()
    non_owner_members = [m for m in roster if not m.is_owner]
    candidates = [mid for mid in conflicting_member_ids if mid != owner_id]

    # 1) Who still needs slots
    unsatisfied = find_unsatisfied_members(candidates, non_owner_members, assignments)
    if not unsatisfied:
        logger.debug("block %s %s-%s: all members satisfied",
                     block.start_date, block.start_time, block.end_time)
        return None

    # 2) Classify
    total_slots = block_slot_count(block, settings.slot_minutes)
    total_needed = sum(m.needed_slots for m in unsatisfied)
    negotiation_type = determine_negotiation_type(unsatisfied, total_needed, total_slots)

    # 3) Options per member, then the union
    member_options: Dict[str, List[TimeSlotOption]] = {}
    if negotiation_type == NegotiationType.TIME_SLOT_CHOICE:
        required_duration = unsatisfied[0].originally_needed_slots * settings.slot_minutes
        member_options = generate_member_time_slot_options(
            unsatisfied, block, timetable, required_duration,
            settings.slot_minutes, settings.align_minutes,
        )
    elif negotiation_type == NegotiationType.FULL_CONFLICT:
        member_options = collect_full_conflict_options(
            unsatisfied, non_owner_members, assignments, start_date, settings,
        )
    available = merge_all_time_slot_options(member_options)

    # 4) Package, highest priority first
    negotiation = create_negotiation(
        negotiation_type=negotiation_type,
        block=block,
        unsatisfied_members=sort_by_priority(unsatisfied, non_owner_members, settings),
        member_time_slot_options=member_options,
        available_time_slots=available,
        non_owner_members=non_owner_members,
        owner_id=owner_id,
        start_date=start_date,
        settings=settings,
    )
    NEGOTIATIONS_CREATED.labels(type=negotiation_type.value).inc()
    logger.info("negotiation %s for %s %s-%s: %d members, %d options",
                negotiation_type.value, block.start_date, block.start_time,
                block.end_time, len(unsatisfied), len(available))
    return negotiation
