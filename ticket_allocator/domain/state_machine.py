# ticket_allocator/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from ticket_allocator.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    WAITING = "waiting"
    CANCELLED = "cancelled"


class QueueEntryState(str, Enum):
    WAITING = "waiting"
    PROMOTED = "promoted"


ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.WAITING)


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal state transitions.

    A booking is created as CONFIRMED or WAITING, a WAITING booking
    is promoted to CONFIRMED, and a CONFIRMED booking can be CANCELLED.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.WAITING: {
            BookingStatus.CONFIRMED,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.CANCELLED,
        },
        BookingStatus.CANCELLED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def is_active(cls, status: BookingStatus) -> bool:
        """
        Returns True if the status holds a ticket or a queue position.
        """
        cls._ensure_valid_status(status)
        return status in ACTIVE_STATUSES

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
