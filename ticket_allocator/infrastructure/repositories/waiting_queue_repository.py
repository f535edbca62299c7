# ticket_allocator/infrastructure/repositories/waiting_queue_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, func

from ticket_allocator.infrastructure.db.models import WaitingQueueEntry
from ticket_allocator.domain.state_machine import QueueEntryState


class WaitingQueueRepository:
    """
    Per-event FIFO of waiting requesters.

    Entries are ordered by position only. Promoted entries stay in the
    table and remaining positions are never renumbered, so readers must
    not assume positions are contiguous.
    """

    def __init__(self, db: Session):
        self.db = db

    def max_position(self, event_id: str) -> int | None:
        """
        Highest position ever assigned for the event, promoted entries
        included, so the next position is never handed out twice.
        """
        stmt = select(func.max(WaitingQueueEntry.position)).where(
            WaitingQueueEntry.event_id == event_id
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_entry(
        self,
        event_id: str,
        requester_id: str,
        booking_id: str,
        position: int,
    ) -> WaitingQueueEntry:
        entry = WaitingQueueEntry(
            event_id=event_id,
            requester_id=requester_id,
            booking_id=booking_id,
            position=position,
            state=QueueEntryState.WAITING,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def find_earliest_waiting(self, event_id: str) -> WaitingQueueEntry | None:
        stmt = (
            select(WaitingQueueEntry)
            .where(WaitingQueueEntry.event_id == event_id)
            .where(WaitingQueueEntry.state == QueueEntryState.WAITING)
            .order_by(WaitingQueueEntry.position.asc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def mark_promoted(self, entry: WaitingQueueEntry) -> WaitingQueueEntry:
        entry.state = QueueEntryState.PROMOTED
        self.db.flush()
        return entry

    def count_waiting(self, event_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(WaitingQueueEntry)
            .where(WaitingQueueEntry.event_id == event_id)
            .where(WaitingQueueEntry.state == QueueEntryState.WAITING)
        )
        return self.db.execute(stmt).scalar_one()

    def list_waiting(self, event_id: str) -> list[WaitingQueueEntry]:
        stmt = (
            select(WaitingQueueEntry)
            .where(WaitingQueueEntry.event_id == event_id)
            .where(WaitingQueueEntry.state == QueueEntryState.WAITING)
            .order_by(WaitingQueueEntry.position.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
