from contextlib import contextmanager
from dataclasses import dataclass
import logging
from typing import Iterator, NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ticket_allocator.domain.exceptions import (
    AllocationError,
    BookingNotFoundError,
    DuplicateBookingError,
    EventNotFoundError,
    InvalidArgumentError,
    StorageFailureError,
)
from ticket_allocator.domain.state_machine import (
    ACTIVE_STATUSES,
    BookingStateMachine,
    BookingStatus,
)
from ticket_allocator.infrastructure.db.models import Booking, Event, WaitingQueueEntry
from ticket_allocator.infrastructure.db.session import get_db_session
from ticket_allocator.infrastructure.locking.event_lock import EventLock
from ticket_allocator.infrastructure.repositories.booking_repository import BookingRepository
from ticket_allocator.infrastructure.repositories.event_repository import EventRepository
from ticket_allocator.infrastructure.repositories.waiting_queue_repository import (
    WaitingQueueRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationResult:
    cancelled_booking: Booking
    assigned_booking: Booking | None


@dataclass(frozen=True)
class EventStatus:
    event_id: str
    name: str
    total_tickets: int
    available_tickets: int
    confirmed_count: int
    waiting_count: int


class _Repositories(NamedTuple):
    events: EventRepository
    bookings: BookingRepository
    queue: WaitingQueueRepository


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} must be a non-empty string")
    return value


def _require_positive_int(value, field: str) -> int:
    # bool is an int subclass; True is not a ticket count.
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgumentError(f"{field} must be a positive integer")
    return value


class AllocationEngine:
    """
    Allocates a fixed pool of tickets per event.

    book_ticket and cancel_booking run under the event's lock and inside
    a single storage transaction that commits before the lock is released,
    so every holder sees the writes of the one before it. Status reads take
    no lock and may be stale.
    """

    def __init__(self, session_factory: sessionmaker, event_lock: EventLock):
        self.session_factory = session_factory
        self.event_lock = event_lock

    @contextmanager
    def _transaction(self) -> Iterator[_Repositories]:
        try:
            with get_db_session(self.session_factory) as session:
                yield self._repositories(session)
        except AllocationError as exc:
            logger.warning("Allocation request refused: %s", exc)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Record store failure")
            raise StorageFailureError("Record store operation failed") from exc

    @staticmethod
    def _repositories(session: Session) -> _Repositories:
        return _Repositories(
            events=EventRepository(session),
            bookings=BookingRepository(session),
            queue=WaitingQueueRepository(session),
        )

    # -----------------------------
    # Event setup
    # -----------------------------
    def initialize_event(self, name: str, total_tickets: int) -> Event:
        _require_text(name, "name")
        _require_positive_int(total_tickets, "total_tickets")

        with self._transaction() as repos:
            event = repos.events.create_event(name=name, total_tickets=total_tickets)

        logger.info("Event initialized. event_id=%s tickets=%s", event.id, total_tickets)
        return event

    # -----------------------------
    # Booking
    # -----------------------------
    def book_ticket(self, event_id: str, requester_id: str) -> Booking:
        _require_text(event_id, "event_id")
        _require_text(requester_id, "requester_id")

        return self.event_lock.with_lock(
            event_id,
            lambda: self._book_locked(event_id, requester_id),
        )

    def _book_locked(self, event_id: str, requester_id: str) -> Booking:
        with self._transaction() as repos:
            existing = repos.bookings.find_booking(
                event_id,
                requester_id,
                statuses=ACTIVE_STATUSES,
            )
            if existing:
                raise DuplicateBookingError(event_id, requester_id)

            event = repos.events.get_event(event_id)
            if event is None:
                raise EventNotFoundError(event_id)

            if event.available_tickets > 0:
                repos.events.increment_available(event_id, -1)
                booking = repos.bookings.create_booking(
                    event_id=event_id,
                    requester_id=requester_id,
                    status=BookingStatus.CONFIRMED,
                )
                logger.info(
                    "Ticket booked. event_id=%s requester_id=%s booking_id=%s",
                    event_id,
                    requester_id,
                    booking.id,
                )
                return booking

            position = (repos.queue.max_position(event_id) or 0) + 1
            booking = repos.bookings.create_booking(
                event_id=event_id,
                requester_id=requester_id,
                status=BookingStatus.WAITING,
                queue_position=position,
            )
            repos.queue.create_entry(
                event_id=event_id,
                requester_id=requester_id,
                booking_id=booking.id,
                position=position,
            )
            logger.info(
                "Event sold out, requester queued. event_id=%s requester_id=%s position=%s",
                event_id,
                requester_id,
                position,
            )
            return booking

    # -----------------------------
    # Cancellation and promotion
    # -----------------------------
    def cancel_booking(self, event_id: str, requester_id: str) -> CancellationResult:
        _require_text(event_id, "event_id")
        _require_text(requester_id, "requester_id")

        return self.event_lock.with_lock(
            event_id,
            lambda: self._cancel_locked(event_id, requester_id),
        )

    def _cancel_locked(self, event_id: str, requester_id: str) -> CancellationResult:
        with self._transaction() as repos:
            booking = repos.bookings.find_booking(
                event_id,
                requester_id,
                statuses=(BookingStatus.CONFIRMED,),
            )
            if booking is None:
                raise BookingNotFoundError(event_id, requester_id)

            self._transition(repos.bookings, booking, BookingStatus.CANCELLED)
            repos.events.increment_available(event_id, 1)
            logger.info(
                "Booking cancelled. event_id=%s requester_id=%s booking_id=%s",
                event_id,
                requester_id,
                booking.id,
            )

            assigned = self._promote_next_waiting(repos, event_id)
            return CancellationResult(cancelled_booking=booking, assigned_booking=assigned)

    def _promote_next_waiting(self, repos: _Repositories, event_id: str) -> Booking | None:
        entry = repos.queue.find_earliest_waiting(event_id)
        if entry is None:
            return None

        promoted = repos.bookings.get_by_id(entry.booking_id)
        if promoted is None:
            raise StorageFailureError(
                f"Waiting queue entry {entry.id} references missing booking {entry.booking_id}"
            )

        self._transition(repos.bookings, promoted, BookingStatus.CONFIRMED)
        repos.queue.mark_promoted(entry)
        # The ticket freed by the cancellation goes straight to the promoted requester.
        repos.events.increment_available(event_id, -1)

        logger.info(
            "Waiting requester promoted. event_id=%s requester_id=%s position=%s",
            event_id,
            entry.requester_id,
            entry.position,
        )
        return promoted

    # -----------------------------
    # Read-only views
    # -----------------------------
    def get_event_status(self, event_id: str) -> EventStatus:
        _require_text(event_id, "event_id")

        with self._transaction() as repos:
            event = repos.events.get_event(event_id)
            if event is None:
                raise EventNotFoundError(event_id)

            return EventStatus(
                event_id=event.id,
                name=event.name,
                total_tickets=event.total_tickets,
                available_tickets=event.available_tickets,
                confirmed_count=repos.bookings.count_bookings(event_id, BookingStatus.CONFIRMED),
                waiting_count=repos.queue.count_waiting(event_id),
            )

    def get_waiting_queue(self, event_id: str) -> list[WaitingQueueEntry]:
        _require_text(event_id, "event_id")

        with self._transaction() as repos:
            if repos.events.get_event(event_id) is None:
                raise EventNotFoundError(event_id)
            return repos.queue.list_waiting(event_id)

    def _transition(
        self,
        bookings: BookingRepository,
        booking: Booking,
        to_status: BookingStatus,
    ) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        bookings.update_status(booking, to_status)
