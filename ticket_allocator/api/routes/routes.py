import logging
import os

from fastapi import APIRouter, Depends, HTTPException, status

from ticket_allocator.application.allocation_engine import AllocationEngine
from ticket_allocator.api.schemas.schemas import (
    InitializeEventRequest,
    EventResponse,
    BookingRequest,
    CancelRequest,
    BookingResponse,
    BookTicketResponse,
    CancelBookingResponse,
    EventStatusResponse,
    WaitingEntryResponse,
)
from ticket_allocator.domain.exceptions import AllocationError, ErrorKind
from ticket_allocator.domain.state_machine import BookingStatus
from ticket_allocator.infrastructure.db.models import Booking, Event
from ticket_allocator.infrastructure.db.session import SessionLocal
from ticket_allocator.infrastructure.locking.event_lock import EventLock


router = APIRouter()
logger = logging.getLogger(__name__)

EVENT_LOCK_TIMEOUT_SECONDS = float(os.getenv("EVENT_LOCK_TIMEOUT_SECONDS", "5"))
EVENT_LOCK_MAX_PENDING = int(os.getenv("EVENT_LOCK_MAX_PENDING", "1000"))

_allocation_engine = AllocationEngine(
    session_factory=SessionLocal,
    event_lock=EventLock(
        timeout=EVENT_LOCK_TIMEOUT_SECONDS,
        max_pending=EVENT_LOCK_MAX_PENDING,
    ),
)

_STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.LOCK_TIMEOUT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.LOCK_SATURATED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.STORAGE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_allocation_engine() -> AllocationEngine:
    return _allocation_engine


def _http_error(exc: AllocationError) -> HTTPException:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if exc.kind is ErrorKind.STORAGE_FAILURE:
        logger.error("Storage failure surfaced to caller: %s", exc)
        return HTTPException(
            status_code=status_code,
            detail="Internal storage error. Please retry later.",
        )

    headers = None
    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        headers = {"Retry-After": "1"}

    return HTTPException(status_code=status_code, detail=str(exc), headers=headers)


def _event_response(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        name=event.name,
        total_tickets=event.total_tickets,
        available_tickets=event.available_tickets,
        created_at=event.created_at.isoformat(),
    )


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        booking_id=booking.id,
        event_id=booking.event_id,
        requester_id=booking.requester_id,
        status=booking.status.value,
        queue_position=booking.queue_position,
        created_at=booking.created_at.isoformat(),
    )


@router.get("/health")
def health():
    return {"message": "Ticket Allocation Engine is running"}


@router.post(
    "/initialize",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
)
def initialize_event(
    request: InitializeEventRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    try:
        event = engine.initialize_event(
            name=request.name,
            total_tickets=request.total_tickets,
        )
    except AllocationError as exc:
        raise _http_error(exc) from exc

    return _event_response(event)


@router.post(
    "/book",
    response_model=BookTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
def book_ticket(
    request: BookingRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    try:
        booking = engine.book_ticket(
            event_id=request.event_id,
            requester_id=request.requester_id,
        )
    except AllocationError as exc:
        raise _http_error(exc) from exc

    if booking.status is BookingStatus.CONFIRMED:
        message = "Ticket booked successfully"
    else:
        message = f"Added to waiting list at position {booking.queue_position}"

    return BookTicketResponse(
        message=message,
        booking=_booking_response(booking),
    )


@router.post("/cancel", response_model=CancelBookingResponse)
def cancel_booking(
    request: CancelRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    try:
        result = engine.cancel_booking(
            event_id=request.event_id,
            requester_id=request.requester_id,
        )
    except AllocationError as exc:
        raise _http_error(exc) from exc

    assigned = result.assigned_booking
    if assigned is not None:
        message = (
            f"Booking cancelled and next waiting requester "
            f"({assigned.requester_id}) assigned"
        )
    else:
        message = "Booking cancelled successfully"

    return CancelBookingResponse(
        message=message,
        cancelled_booking=_booking_response(result.cancelled_booking),
        assigned_booking=_booking_response(assigned) if assigned is not None else None,
    )


@router.get("/status/{event_id}", response_model=EventStatusResponse)
def get_event_status(
    event_id: str,
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    try:
        event_status = engine.get_event_status(event_id)
    except AllocationError as exc:
        raise _http_error(exc) from exc

    return EventStatusResponse(
        event_id=event_status.event_id,
        name=event_status.name,
        total_tickets=event_status.total_tickets,
        available_tickets=event_status.available_tickets,
        confirmed_count=event_status.confirmed_count,
        waiting_count=event_status.waiting_count,
    )


@router.get("/status/{event_id}/waitlist", response_model=list[WaitingEntryResponse])
def get_waiting_queue(
    event_id: str,
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    try:
        entries = engine.get_waiting_queue(event_id)
    except AllocationError as exc:
        raise _http_error(exc) from exc

    return [
        WaitingEntryResponse(
            requester_id=entry.requester_id,
            booking_id=entry.booking_id,
            position=entry.position,
            enqueued_at=entry.enqueued_at.isoformat(),
        )
        for entry in entries
    ]
