from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ServiceDeleteRequest(BaseModel):
    tenant_id: str
    service_id: str


class ProfessionalDeleteRequest(BaseModel):
    tenant_id: str
    professional_id: str


class DeletionResponse(BaseModel):
    deleted_id: str
    removed_bookings: int
    removed_rules: int
    message: str


class NotificationView(BaseModel):
    id: str
    booking_id: Optional[str] = None
    kind: str
    title: str
    message: str
    read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    total: int
    unread: int
    items: List[NotificationView]


class NotificationReadResponse(BaseModel):
    updated: int
    unread: int
