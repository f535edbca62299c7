from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    LOCK_SATURATED = "LOCK_SATURATED"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class AllocationError(Exception):
    """
    Base exception for all errors raised by the
    ticket allocation engine.
    """

    kind: ErrorKind = ErrorKind.STORAGE_FAILURE


class InvalidArgumentError(AllocationError):
    """Raised when caller input is missing or malformed."""

    kind = ErrorKind.INVALID_ARGUMENT


class EventNotFoundError(AllocationError):
    kind = ErrorKind.EVENT_NOT_FOUND

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class BookingNotFoundError(AllocationError):
    """Raised when the requester holds no confirmed booking for the event."""

    kind = ErrorKind.BOOKING_NOT_FOUND

    def __init__(self, event_id: str, requester_id: str):
        self.event_id = event_id
        self.requester_id = requester_id
        super().__init__(
            f"No confirmed booking found for requester {requester_id} "
            f"on event {event_id}"
        )


class DuplicateBookingError(AllocationError):
    """Raised when the requester already holds an active booking."""

    kind = ErrorKind.DUPLICATE_BOOKING

    def __init__(self, event_id: str, requester_id: str):
        self.event_id = event_id
        self.requester_id = requester_id
        super().__init__(
            f"Requester {requester_id} already has an active booking "
            f"for event {event_id}"
        )


class InvalidStateTransitionError(AllocationError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    kind = ErrorKind.INVALID_STATE_TRANSITION

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class LockTimeoutError(AllocationError):
    """Raised when the event lock is not acquired within the timeout."""

    kind = ErrorKind.LOCK_TIMEOUT

    def __init__(self, event_id: str, timeout: float):
        self.event_id = event_id
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:.2f}s waiting for lock on event {event_id}"
        )


class LockSaturatedError(AllocationError):
    """Raised when too many callers are already queued on one event lock."""

    kind = ErrorKind.LOCK_SATURATED

    def __init__(self, event_id: str, max_pending: int):
        self.event_id = event_id
        self.max_pending = max_pending
        super().__init__(
            f"Too many pending operations on event {event_id} "
            f"(limit {max_pending})"
        )


class StorageFailureError(AllocationError):
    """Raised when the record store fails. Wraps the underlying error."""

    kind = ErrorKind.STORAGE_FAILURE
