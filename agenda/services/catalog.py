from __future__ import annotations

import logging
from typing import List

from agenda.schemas.catalog import (
    DeletionResponse,
    NotificationListResponse,
    NotificationReadResponse,
    NotificationView,
    ProfessionalDeleteRequest,
    ServiceDeleteRequest,
)
from agenda.services.exceptions import NotFoundError, ValidationError
from agenda.services.store import (
    BookingRecord,
    BookingStatus,
    NotificationRecord,
    RuleScope,
    ScheduleStore,
)

logger = logging.getLogger(__name__)


def _blocking(bookings: List[BookingRecord]) -> List[BookingRecord]:
    return [booking for booking in bookings if booking.status is not BookingStatus.CANCELLED]


def _notification_view(record: NotificationRecord) -> NotificationView:
    return NotificationView(
        id=record.notification_id,
        booking_id=record.booking_id,
        kind=record.kind,
        title=record.title,
        message=record.message,
        read=record.read,
        created_at=record.created_at,
    )


class CatalogService:
    """Catalog deletions that keep booking references intact, plus the tenant notification feed."""

    def __init__(self, store: ScheduleStore) -> None:
        self._store = store

    async def delete_service(self, request: ServiceDeleteRequest) -> DeletionResponse:
        async with self._store.transaction(request.tenant_id):
            service = self._store.catalog.get_service(request.tenant_id, request.service_id)
            if service is None:
                raise NotFoundError(f"Service {request.service_id} not found")

            bookings = await self._store.bookings.list(
                request.tenant_id, service_id=request.service_id
            )
            blocking = _blocking(bookings)
            if blocking:
                raise ValidationError(
                    f"Cannot delete service {service.name}: {len(blocking)} booking(s) "
                    "are not cancelled"
                )

            for booking in bookings:
                await self._store.bookings.delete(request.tenant_id, booking.booking_id)
            removed_rules = await self._store.rules.delete_for_scope(
                request.tenant_id, RuleScope.SERVICE, request.service_id
            )
            self._store.catalog.remove_service(request.tenant_id, request.service_id)

        logger.info(
            "Deleted service %s with %s cancelled bookings and %s rules",
            request.service_id,
            len(bookings),
            removed_rules,
        )
        return DeletionResponse(
            deleted_id=request.service_id,
            removed_bookings=len(bookings),
            removed_rules=removed_rules,
            message=f"Service {service.name} deleted",
        )

    async def delete_professional(self, request: ProfessionalDeleteRequest) -> DeletionResponse:
        async with self._store.transaction(request.tenant_id):
            professional = self._store.catalog.get_professional(
                request.tenant_id, request.professional_id
            )
            if professional is None:
                raise NotFoundError(f"Professional {request.professional_id} not found")

            bookings = await self._store.bookings.list(
                request.tenant_id, professional_id=request.professional_id
            )
            blocking = _blocking(bookings)
            if blocking:
                raise ValidationError(
                    f"Cannot delete professional {professional.name}: {len(blocking)} "
                    "booking(s) are not cancelled"
                )

            for booking in bookings:
                await self._store.bookings.delete(request.tenant_id, booking.booking_id)
            removed_rules = await self._store.rules.delete_for_scope(
                request.tenant_id, RuleScope.PROFESSIONAL, request.professional_id
            )
            self._store.catalog.remove_professional(request.tenant_id, request.professional_id)

        logger.info(
            "Deleted professional %s with %s cancelled bookings and %s rules",
            request.professional_id,
            len(bookings),
            removed_rules,
        )
        return DeletionResponse(
            deleted_id=request.professional_id,
            removed_bookings=len(bookings),
            removed_rules=removed_rules,
            message=f"Professional {professional.name} deleted",
        )

    async def notifications(self, tenant_id: str, *, unread_only: bool = False) -> NotificationListResponse:
        if self._store.catalog.get_tenant(tenant_id) is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        records = await self._store.notifications.list(tenant_id, unread_only=unread_only)
        items = [_notification_view(record) for record in records]
        return NotificationListResponse(
            total=len(items),
            unread=sum(1 for item in items if not item.read),
            items=items,
        )

    async def mark_read(self, tenant_id: str, notification_id: str) -> NotificationView:
        if not await self._store.notifications.mark_read(tenant_id, notification_id):
            raise NotFoundError(f"Notification {notification_id} not found")
        record = await self._store.notifications.get(tenant_id, notification_id)
        logger.info("Notification %s marked read for tenant %s", notification_id, tenant_id)
        return _notification_view(record)

    async def mark_all_read(self, tenant_id: str) -> NotificationReadResponse:
        if self._store.catalog.get_tenant(tenant_id) is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        updated = await self._store.notifications.mark_all_read(tenant_id)
        logger.info("Marked %s notifications read for tenant %s", updated, tenant_id)
        return NotificationReadResponse(updated=updated, unread=0)
