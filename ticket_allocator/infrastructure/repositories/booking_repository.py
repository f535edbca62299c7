# ticket_allocator/infrastructure/repositories/booking_repository.py

from typing import Iterable

from sqlalchemy.orm import Session
from sqlalchemy import select, func

from ticket_allocator.infrastructure.db.models import Booking
from ticket_allocator.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_booking(
        self,
        event_id: str,
        requester_id: str,
        statuses: Iterable[BookingStatus] | None = None,
    ) -> Booking | None:
        """
        Latest booking of the requester for the event,
        optionally restricted to the given statuses.
        """

        stmt = select(Booking).where(
            Booking.event_id == event_id,
            Booking.requester_id == requester_id,
        )
        if statuses is not None:
            stmt = stmt.where(Booking.status.in_(list(statuses)))

        stmt = stmt.order_by(Booking.created_at.desc()).limit(1)
        return self.db.execute(stmt).scalars().first()

    def create_booking(
        self,
        event_id: str,
        requester_id: str,
        status: BookingStatus,
        queue_position: int | None = None,
    ) -> Booking:

        booking = Booking(
            event_id=event_id,
            requester_id=requester_id,
            status=status,
            queue_position=queue_position,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> Booking:

        booking.status = new_status
        if new_status is not BookingStatus.WAITING:
            booking.queue_position = None

        self.db.flush()
        return booking

    def count_bookings(
        self,
        event_id: str,
        status: BookingStatus,
    ) -> int:

        stmt = (
            select(func.count())
            .select_from(Booking)
            .where(Booking.event_id == event_id)
            .where(Booking.status == status)
        )
        return self.db.execute(stmt).scalar_one()
