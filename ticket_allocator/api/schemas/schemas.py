from pydantic import BaseModel, Field


class InitializeEventRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    total_tickets: int = Field(gt=0)


class EventResponse(BaseModel):
    id: str
    name: str
    total_tickets: int
    available_tickets: int
    created_at: str


class BookingRequest(BaseModel):
    event_id: str = Field(min_length=1, max_length=36)
    requester_id: str = Field(min_length=1, max_length=255)


class CancelRequest(BaseModel):
    event_id: str = Field(min_length=1, max_length=36)
    requester_id: str = Field(min_length=1, max_length=255)


class BookingResponse(BaseModel):
    booking_id: str
    event_id: str
    requester_id: str
    status: str
    queue_position: int | None = None
    created_at: str


class BookTicketResponse(BaseModel):
    message: str
    booking: BookingResponse


class CancelBookingResponse(BaseModel):
    message: str
    cancelled_booking: BookingResponse
    assigned_booking: BookingResponse | None = None


class EventStatusResponse(BaseModel):
    event_id: str
    name: str
    total_tickets: int
    available_tickets: int
    confirmed_count: int
    waiting_count: int


class WaitingEntryResponse(BaseModel):
    requester_id: str
    booking_id: str
    position: int
    enqueued_at: str
