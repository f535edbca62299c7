import logging

from ticket_allocator.application.allocation_engine import AllocationEngine
from ticket_allocator.infrastructure.db.models import Base
from ticket_allocator.infrastructure.db.session import SessionLocal, engine
from ticket_allocator.infrastructure.locking.event_lock import EventLock

logger = logging.getLogger(__name__)

DEMO_EVENTS = [
    {"name": "Sunidhi Chauhan Live Concert", "total_tickets": 400},
    {"name": "Holi Festival 2026", "total_tickets": 700},
    {"name": "Nigeria vs Congo Football Match", "total_tickets": 2},
]


def seed_events(allocation_engine: AllocationEngine) -> list[str]:
    event_ids = []
    for item in DEMO_EVENTS:
        event = allocation_engine.initialize_event(
            name=item["name"],
            total_tickets=item["total_tickets"],
        )
        event_ids.append(event.id)
    return event_ids


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)

    allocation_engine = AllocationEngine(
        session_factory=SessionLocal,
        event_lock=EventLock(),
    )
    event_ids = seed_events(allocation_engine)
    print(f"Seed complete: {len(event_ids)} demo events added.")
    for event_id in event_ids:
        print(f"  {event_id}")


if __name__ == "__main__":
    main()
