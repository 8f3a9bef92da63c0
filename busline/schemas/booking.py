from datetime import datetime
from typing import List, Optional
from pydantic import Field, EmailStr

from busline.models.enums import TicketStatus, SeatStatus
from busline.schemas.common import RequestModel, ORMModel


class TicketCreate(RequestModel):
    bus_seat_id: int
    customer_id: Optional[int] = None
    price: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1024)


class BulkTicketItem(RequestModel):
    schedule_id: int
    bus_seat_id: int
    customer_id: Optional[int] = None
    price: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1024)
    # Used to find or create the customer when customer_id is absent
    passenger_name: Optional[str] = Field(None, max_length=255)
    passenger_document: Optional[str] = Field(None, max_length=64)
    contact_phone: Optional[str] = Field(None, max_length=32)
    contact_email: Optional[EmailStr] = None


class BulkTicketCreate(RequestModel):
    tickets: List[BulkTicketItem] = Field(..., min_length=1, max_length=100)


class TicketCancel(RequestModel):
    reason: str = Field(..., max_length=1024)


class TicketReassign(RequestModel):
    new_schedule_id: int
    new_bus_seat_id: int
    reason: str = Field(..., max_length=1024)


class TicketUpdate(RequestModel):
    notes: Optional[str] = Field(None, max_length=1024)


class SeatTierOut(ORMModel):
    id: int
    name: str
    base_price: float


class SeatOut(ORMModel):
    id: int
    seat_number: str
    floor: str
    row: Optional[int]
    column: Optional[int]
    tier_id: int
    status: SeatStatus
    is_active: bool


class CustomerBrief(ORMModel):
    id: int
    full_name: str
    document_id: Optional[str]


class TicketOut(ORMModel):
    id: int
    schedule_id: int
    bus_seat_id: int
    customer_id: Optional[int]
    purchased_by: Optional[int]
    price: float
    status: TicketStatus
    notes: Optional[str]
    purchased_at: datetime
    bus_seat: Optional[SeatOut] = None
    customer: Optional[CustomerBrief] = None


class TicketCancellationOut(ORMModel):
    id: int
    ticket_id: int
    reason: str
    cancelled_by: Optional[int]
    cancelled_at: datetime


class TicketReassignmentOut(ORMModel):
    id: int
    ticket_id: int
    old_schedule_id: int
    new_schedule_id: int
    old_bus_seat_id: int
    new_bus_seat_id: int
    reason: str
    reassigned_by: Optional[int]
    reassigned_at: datetime
