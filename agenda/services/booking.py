from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from agenda.schemas.availability import ProfessionalSummary
from agenda.schemas.booking import (
    BookingCommitRequest,
    BookingDeleteRequest,
    BookingDeleteResponse,
    BookingListRequest,
    BookingListResponse,
    BookingStatusUpdateRequest,
    BookingSummary,
    ClientRef,
    ServiceRef,
)
from agenda.services.availability import AvailabilityResolver, ProfessionalSelector
from agenda.services.conflicts import ConflictIndex
from agenda.services.exceptions import ConflictError, NotFoundError, ValidationError
from agenda.services.notifications import BookingEvent, EventKind, NotificationDispatcher
from agenda.services.slots import parse_clock, parse_date, slot_window, to_utc
from agenda.services.store import BookingRecord, BookingStatus, ScheduleStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

DELETABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CANCELLED})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class BookingCommitter:
    """Turns a candidate slot into a PENDING booking, or refuses with ConflictError."""

    def __init__(
        self,
        store: ScheduleStore,
        resolver: AvailabilityResolver,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._dispatcher = dispatcher

    @staticmethod
    def _validate(request: BookingCommitRequest) -> None:
        missing = [
            field_name
            for field_name, value in [
                ("tenant_id", request.tenant_id),
                ("service_id", request.service_id),
                ("date", request.date),
                ("time", request.time),
                ("customer_name", request.customer_name),
                ("customer_email", request.customer_email),
            ]
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    async def commit(
        self, request: BookingCommitRequest, *, now: datetime | None = None
    ) -> BookingRecord:
        self._validate(request)
        day = parse_date(request.date)
        start_minute = parse_clock(request.time)
        end_minute = parse_clock(request.end_time) if request.end_time else None
        selector = ProfessionalSelector.parse(request.professional_id)
        current = to_utc(now) if now is not None else datetime.now(timezone.utc)
        tenant_id = request.tenant_id

        async with self._store.transaction(tenant_id):
            if request.idempotency_key:
                existing = await self._store.bookings.find_by_idempotency_key(
                    tenant_id, request.idempotency_key
                )
                if existing is not None:
                    logger.info(
                        "Idempotency key %s replayed; returning booking %s",
                        request.idempotency_key,
                        existing.booking_id,
                    )
                    return existing

            scope = await self._resolver.load_scope(tenant_id, request.service_id, selector)
            service = scope.service
            if end_minute is not None and end_minute != start_minute + service.duration_minutes:
                raise ValidationError(
                    f"End time {request.end_time} does not match the "
                    f"{service.duration_minutes} minute duration of {service.name}"
                )

            start, end = slot_window(day, start_minute, service.duration_minutes)
            if start < current:
                raise ValidationError("Cannot book a slot that starts in the past")

            slot = next(
                (
                    candidate
                    for candidate in self._resolver.raw_slots(scope, day)
                    if candidate.start_minute == start_minute
                ),
                None,
            )
            if slot is None:
                logger.info(
                    "Rejected booking for %s %s: not offered by the schedule",
                    request.date,
                    request.time,
                )
                raise ConflictError()

            bookings = await self._resolver.conflicts.find_overlapping_range(
                tenant_id, service.service_id, selector.professional_id, start, end
            )

            professional = scope.professional
            if selector.is_any and scope.candidates:
                working = [
                    candidate
                    for candidate in scope.candidates
                    if scope.works_at(candidate, day, slot)
                ]
                free = ConflictIndex.free_professionals(
                    working, bookings, service.service_id, start, end
                )
                if not free:
                    blocking_id = bookings[0].booking_id if bookings else None
                    logger.info(
                        "Conflict for any professional on %s at %s", request.date, request.time
                    )
                    raise ConflictError(conflicting_booking_id=blocking_id)
                professional = free[0]
            else:
                blocking = ConflictIndex.first_conflict(
                    bookings,
                    start,
                    end,
                    service_id=service.service_id,
                    professional_id=selector.professional_id,
                )
                if blocking is not None:
                    logger.info(
                        "Conflict with booking %s on %s at %s",
                        blocking.booking_id,
                        request.date,
                        request.time,
                    )
                    raise ConflictError(conflicting_booking_id=blocking.booking_id)

            client = await self._store.clients.find_or_create(
                tenant_id,
                name=request.customer_name.strip(),
                email=request.customer_email,
                phone=request.customer_phone,
            )
            booking = await self._store.bookings.insert(
                tenant_id,
                service_id=service.service_id,
                professional_id=professional.professional_id if professional else None,
                client_id=client.client_id,
                start=start,
                end=end,
                total_price=service.price,
                notes=request.notes,
                idempotency_key=request.idempotency_key,
            )

        logger.info(
            "Booking %s created for %s on %s at %s",
            booking.booking_id,
            client.name,
            request.date,
            request.time,
        )
        if self._dispatcher is not None:
            self._dispatcher.enqueue(
                BookingEvent(
                    kind=EventKind.NEW_BOOKING,
                    tenant_id=tenant_id,
                    booking_id=booking.booking_id,
                    client_name=client.name,
                    client_email=client.email,
                    service_name=service.name,
                    start=booking.start,
                    end=booking.end,
                    professional_name=professional.name if professional else None,
                    tenant_name=scope.tenant.name,
                    tenant_email=scope.tenant.email,
                    client_phone=client.phone,
                    notes=booking.notes,
                    total_price=booking.total_price,
                )
            )
        return booking


class BookingService:
    def __init__(
        self,
        store: ScheduleStore,
        committer: BookingCommitter,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._store = store
        self._committer = committer
        self._dispatcher = dispatcher

    async def commit(
        self, request: BookingCommitRequest, *, now: datetime | None = None
    ) -> BookingSummary:
        logger.info("Committing booking for %s", request.customer_name)
        booking = await self._committer.commit(request, now=now)
        return await self._summary(booking)

    async def get(self, tenant_id: str, booking_id: str) -> BookingSummary:
        booking = await self._store.bookings.get(tenant_id, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return await self._summary(booking)

    async def list(self, request: BookingListRequest) -> BookingListResponse:
        records = await self._store.bookings.list(
            request.tenant_id,
            service_id=request.service_id,
            professional_id=request.professional_id,
            status=request.status,
        )
        start = (request.page - 1) * request.page_size
        end = start + request.page_size
        items = [await self._summary(record) for record in records[start:end]]
        return BookingListResponse(
            total=len(records),
            page=request.page,
            page_size=request.page_size,
            items=items,
        )

    async def update_status(self, request: BookingStatusUpdateRequest) -> BookingSummary:
        async with self._store.transaction(request.tenant_id):
            booking = await self._store.bookings.get(request.tenant_id, request.booking_id)
            if booking is None:
                raise NotFoundError(f"Booking {request.booking_id} not found")
            if booking.status in TERMINAL_STATUSES:
                raise ValidationError(
                    f"Booking {booking.booking_id} is {booking.status.value}; "
                    "its status can no longer change"
                )
            if not can_transition(booking.status, request.status):
                raise ValidationError(
                    f"Cannot change booking status from {booking.status.value} "
                    f"to {request.status.value}"
                )
            updated = await self._store.bookings.set_status(
                request.tenant_id, request.booking_id, request.status
            )

        logger.info(
            "Booking %s moved from %s to %s",
            updated.booking_id,
            booking.status.value,
            updated.status.value,
        )
        kind = (
            EventKind.BOOKING_CANCELLED
            if updated.status is BookingStatus.CANCELLED
            else EventKind.BOOKING_UPDATED
        )
        await self._notify(kind, updated)
        return await self._summary(updated)

    async def delete(self, request: BookingDeleteRequest) -> BookingDeleteResponse:
        async with self._store.transaction(request.tenant_id):
            booking = await self._store.bookings.get(request.tenant_id, request.booking_id)
            if booking is None:
                raise NotFoundError(f"Booking {request.booking_id} not found")
            if booking.status not in DELETABLE_STATUSES:
                raise ValidationError(
                    f"Only pending or cancelled bookings can be deleted; "
                    f"booking {booking.booking_id} is {booking.status.value}"
                )
            deleted = await self._store.bookings.delete(request.tenant_id, request.booking_id)
        logger.info("Booking %s deleted", request.booking_id)
        return BookingDeleteResponse(booking_id=request.booking_id, deleted=deleted)

    async def _notify(self, kind: EventKind, booking: BookingRecord) -> None:
        if self._dispatcher is None:
            return
        service = self._store.catalog.get_service(booking.tenant_id, booking.service_id)
        client = await self._store.clients.get(booking.tenant_id, booking.client_id)
        professional = (
            self._store.catalog.get_professional(booking.tenant_id, booking.professional_id)
            if booking.professional_id
            else None
        )
        self._dispatcher.enqueue(
            BookingEvent(
                kind=kind,
                tenant_id=booking.tenant_id,
                booking_id=booking.booking_id,
                client_name=client.name if client else "Client",
                client_email=client.email if client else "",
                service_name=service.name if service else booking.service_id,
                start=booking.start,
                end=booking.end,
                professional_name=professional.name if professional else None,
                total_price=booking.total_price,
            )
        )

    async def _summary(self, booking: BookingRecord) -> BookingSummary:
        service = self._store.catalog.get_service(booking.tenant_id, booking.service_id)
        professional: Optional[ProfessionalSummary] = None
        if booking.professional_id:
            record = self._store.catalog.get_professional(
                booking.tenant_id, booking.professional_id
            )
            if record is not None:
                professional = ProfessionalSummary(id=record.professional_id, name=record.name)
        client = await self._store.clients.get(booking.tenant_id, booking.client_id)
        duration = int((booking.end - booking.start).total_seconds() // 60)
        return BookingSummary(
            id=booking.booking_id,
            start_datetime=booking.start,
            end_datetime=booking.end,
            service=ServiceRef(
                id=booking.service_id,
                name=service.name if service else booking.service_id,
                duration_minutes=service.duration_minutes if service else duration,
            ),
            professional=professional,
            client=(
                ClientRef(id=client.client_id, name=client.name, email=client.email)
                if client
                else None
            ),
            total_price=booking.total_price,
            status=booking.status,
            notes=booking.notes,
        )
