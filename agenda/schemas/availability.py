from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AvailabilityRequest(BaseModel):
    tenant_id: str
    service_id: str
    professional_id: Optional[str] = Field(
        None, description="Specific professional id; omit or use 'any' for any professional"
    )
    date: str = Field(..., description="Calendar date as YYYY-MM-DD (UTC)")


class ProfessionalSummary(BaseModel):
    id: str
    name: str


class DecoratedSlot(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = None
    professionals: Optional[List[ProfessionalSummary]] = None


class RangeCheckRequest(BaseModel):
    tenant_id: str
    service_id: str
    professional_id: Optional[str] = None
    start_datetime: datetime
    end_datetime: datetime


class ConflictingBooking(BaseModel):
    id: str
    start_datetime: datetime
    end_datetime: datetime
    status: str


class RangeCheckResponse(BaseModel):
    available: bool
    conflicting_booking: Optional[ConflictingBooking] = None
