from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from agenda.schemas.availability import ProfessionalSummary
from agenda.services.store import BookingStatus


class BookingCommitRequest(BaseModel):
    tenant_id: str
    service_id: str
    professional_id: Optional[str] = None
    date: str = Field(..., description="Calendar date as YYYY-MM-DD (UTC)")
    time: str = Field(..., description="Slot start as HH:MM (UTC)")
    end_time: Optional[str] = Field(
        None, description="Optional HH:MM end, only checked against the service duration"
    )
    customer_name: str
    customer_email: EmailStr
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    idempotency_key: Optional[str] = Field(
        None, max_length=128, description="Repeated keys return the booking created first"
    )


class ServiceRef(BaseModel):
    id: str
    name: str
    duration_minutes: int


class ClientRef(BaseModel):
    id: str
    name: str
    email: str


class BookingSummary(BaseModel):
    id: str
    start_datetime: datetime
    end_datetime: datetime
    service: ServiceRef
    professional: Optional[ProfessionalSummary] = None
    client: Optional[ClientRef] = None
    total_price: float
    status: BookingStatus
    notes: Optional[str] = None


class BookingStatusUpdateRequest(BaseModel):
    tenant_id: str
    booking_id: str
    status: BookingStatus


class BookingListRequest(BaseModel):
    tenant_id: str
    service_id: Optional[str] = None
    professional_id: Optional[str] = None
    status: Optional[BookingStatus] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=200)


class BookingListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[BookingSummary]


class BookingDeleteRequest(BaseModel):
    tenant_id: str
    booking_id: str


class BookingDeleteResponse(BaseModel):
    booking_id: str
    deleted: bool
