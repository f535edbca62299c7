# ticket_allocator/infrastructure/repositories/event_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update

from ticket_allocator.infrastructure.db.models import Event
from ticket_allocator.domain.exceptions import EventNotFoundError, StorageFailureError


class EventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_event(self, event_id: str) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_event(
        self,
        name: str,
        total_tickets: int,
    ) -> Event:
        event = Event(
            name=name,
            total_tickets=total_tickets,
            available_tickets=total_tickets,
        )
        self.db.add(event)
        self.db.flush()
        return event

    def increment_available(
        self,
        event_id: str,
        delta: int,
    ) -> Event:
        """
        UPDATE ... SET available_tickets = available_tickets + delta
        in one statement, refused when it would leave 0..total_tickets.
        """

        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.available_tickets + delta >= 0)
            .where(Event.available_tickets + delta <= Event.total_tickets)
            .values(available_tickets=Event.available_tickets + delta)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            event = self.get_event(event_id)
            if event is None:
                raise EventNotFoundError(event_id)
            raise StorageFailureError(
                f"Ticket ledger for event {event_id} refused change of {delta:+d} "
                f"(available {event.available_tickets} of {event.total_tickets})"
            )

        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one()
