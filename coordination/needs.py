# coordination/needs.py
from typing import Dict, Iterable, List, Mapping, Optional

from .models import (
    EngineSettings, InvalidInputError, MemberAssignment, MemberNeed,
    MissingRequirementError, RoomMember, UnsatisfiedMember,
)


def find_member(roster: Iterable[RoomMember], member_id: str) -> Optional[RoomMember]:
    for member in roster:
        if member.id == member_id:
            return member
    return None


def compute_member_need(member: RoomMember,
                        assignment: Optional[MemberAssignment] = None) -> MemberNeed:
    """
    How many slots the member still needs this pass.

    originally_needed_slots is the weekly requirement before anything in this
    pass was assigned; needed_slots only goes down as slots get assigned.
    """
    if member.is_owner:
        raise InvalidInputError(f"{member.id} is the room owner and has no need to track")
    if member.required_slots is None:
        raise MissingRequirementError(f"member {member.id} has no required_slots set")

    assigned = assignment.assigned_slots if assignment is not None else 0
    return MemberNeed(
        needed_slots=max(member.required_slots - assigned, 0),
        originally_needed_slots=member.required_slots,
    )


def find_unsatisfied_members(member_ids: Iterable[str],
                             roster: List[RoomMember],
                             assignments: Mapping[str, MemberAssignment]) -> List[UnsatisfiedMember]:
    unsatisfied = []
    for member_id in member_ids:
        member = find_member(roster, member_id)
        if member is None:
            raise InvalidInputError(f"unknown member in conflict: {member_id}")
        need = compute_member_need(member, assignments.get(member_id))
        if need.needed_slots > 0:
            unsatisfied.append(UnsatisfiedMember(
                member_id=member_id,
                needed_slots=need.needed_slots,
                originally_needed_slots=need.originally_needed_slots,
            ))
    return unsatisfied


def sort_by_priority(unsatisfied: List[UnsatisfiedMember],
                     roster: List[RoomMember],
                     settings: EngineSettings) -> List[UnsatisfiedMember]:
    # higher weight first, then the bigger remaining need, then id
    weights: Dict[str, int] = {}
    for m in unsatisfied:
        member = find_member(roster, m.member_id)
        weights[m.member_id] = member.priority if member else settings.default_priority
    return sorted(
        unsatisfied,
        key=lambda m: (-weights[m.member_id], -m.needed_slots, m.member_id),
    )
