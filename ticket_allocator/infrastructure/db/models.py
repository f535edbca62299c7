# ticket_allocator/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Enum,
    Index,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
)
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from uuid import uuid4

from ticket_allocator.infrastructure.db.session import Base
from ticket_allocator.domain.state_machine import BookingStatus, QueueEntryState


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    """
    Ticket ledger for one event.
    available_tickets moves only through the allocation engine.
    """

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    available_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("total_tickets >= 1", name="ck_total_tickets_positive"),
        CheckConstraint("available_tickets >= 0", name="ck_available_tickets_nonnegative"),
        CheckConstraint("available_tickets <= total_tickets", name="ck_available_lte_total"),
    )


class Booking(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    requester_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
    )
    queue_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_bookings_event_requester", "event_id", "requester_id"),
        Index("ix_bookings_event_status", "event_id", "status"),
        CheckConstraint(
            "queue_position IS NULL OR queue_position >= 1",
            name="ck_queue_position_positive",
        ),
    )


class WaitingQueueEntry(Base):
    __tablename__ = "waiting_queue"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    requester_id: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[QueueEntryState] = mapped_column(
        Enum(QueueEntryState, name="queue_entry_state"),
        nullable=False,
        default=QueueEntryState.WAITING,
    )
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False,
    )

    __table_args__ = (
        # Positions come from a per-event monotonic counter and are never reused.
        UniqueConstraint(
            "event_id",
            "position",
            name="uq_waiting_queue_event_position",
        ),
        Index("ix_waiting_queue_event_state", "event_id", "state"),
        CheckConstraint("position >= 1", name="ck_waiting_position_positive"),
    )
