# demo.py
import json
import logging

import pandas as pd
import matplotlib.pyplot as plt

from coordination.models import (
    EngineSettings, MemberAssignment, PreferredTime, RoomMember, TimeBlock,
)
from coordination.negotiation import build_block_negotiation
from coordination.timegrid import build_timetable, timetable_frame


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = EngineSettings(tz="Asia/Seoul")

    # Week start (Monday)
    week_start = pd.Timestamp("2025-11-03 00:00")

    owner = RoomMember(
        id="owner",
        is_owner=True,
        default_schedule=[PreferredTime(d, "09:00", "18:00", priority=3) for d in range(1, 6)],
    )
    members = [
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
            default_schedule=[
                PreferredTime(1, "10:00", "12:00"),
                PreferredTime(4, "13:00", "15:00"),
            ],
        ),
        RoomMember(
            id="seoyeon",
            required_slots=2,
            priority=1,
            default_schedule=[PreferredTime(1, "09:00", "11:00")],
        ),
    ]
    roster = [owner] + members

    timetable = build_timetable(roster, week_start, settings)

    # Monday morning: everybody wants it
    block = TimeBlock(
        day_of_week=1,
        start_date="2025-11-03",
        start_time="09:00",
        end_time="12:00",
        date_obj=pd.Timestamp("2025-11-03"),
    )
    assignments = {m.id: MemberAssignment() for m in members}

    negotiation = build_block_negotiation(
        block=block,
        conflicting_member_ids=[m.id for m in members],
        roster=roster,
        assignments=assignments,
        timetable=timetable,
        owner_id=owner.id,
        start_date=week_start,
        settings=settings,
    )

    print("=== Negotiation ===")
    if negotiation is None:
        print("Nobody is short of slots in this block.")
    else:
        print(json.dumps(negotiation.to_dict(), indent=2, ensure_ascii=False))

    # Plot availability per slot on the contested day
    frame = timetable_frame(timetable)
    day = frame[frame["date"] == block.start_date]
    plt.figure(figsize=(10, 3))
    plt.bar(day["time"], day["available_count"])
    plt.title(f"Members available on {block.start_date}")
    plt.xlabel("Slot")
    plt.ylabel("Members")
    plt.xticks(rotation=90)
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
