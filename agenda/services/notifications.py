"""Post-commit side effects.

Booking operations hand a :class:`BookingEvent` to the
:class:`NotificationDispatcher` and return immediately. A single consumer
task delivers each event to the tenant notification feed and, for new
bookings, sends the client confirmation email. Delivery failures are logged
and never reach the caller of the booking operation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Tuple

from agenda.services.exceptions import DependencyFailure
from agenda.services.store import ScheduleStore

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    NEW_BOOKING = "NEW_BOOKING"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_UPDATED = "BOOKING_UPDATED"


@dataclass(frozen=True)
class BookingEvent:
    kind: EventKind
    tenant_id: str
    booking_id: str
    client_name: str
    client_email: str
    service_name: str
    start: datetime
    end: datetime
    professional_name: Optional[str] = None
    tenant_name: Optional[str] = None
    tenant_email: Optional[str] = None
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    total_price: Optional[float] = None


class NotificationSink(Protocol):
    async def publish(self, event: BookingEvent) -> None: ...


class EmailSink(Protocol):
    async def send_booking_confirmation(self, event: BookingEvent) -> None: ...

    async def send_tenant_booking_notice(self, event: BookingEvent) -> None: ...


def notification_messages(
    kind: EventKind, client_name: str, service_name: str, start: datetime
) -> Tuple[str, str]:
    date_str = start.strftime("%Y-%m-%d")
    time_str = start.strftime("%H:%M")
    if kind is EventKind.NEW_BOOKING:
        return (
            "New booking created",
            f"{client_name} booked {service_name} on {date_str} at {time_str} UTC",
        )
    if kind is EventKind.BOOKING_CANCELLED:
        return (
            "Booking cancelled",
            f"The booking of {client_name} for {service_name} has been cancelled",
        )
    return (
        "Booking updated",
        f"The booking of {client_name} for {service_name} has been updated",
    )


class StoreNotificationSink:
    """Writes events into the tenant's in-app notification feed."""

    def __init__(self, store: ScheduleStore) -> None:
        self._store = store

    async def publish(self, event: BookingEvent) -> None:
        title, message = notification_messages(
            event.kind, event.client_name, event.service_name, event.start
        )
        await self._store.notifications.add(
            event.tenant_id,
            booking_id=event.booking_id,
            kind=event.kind.value,
            title=title,
            message=message,
        )


class NotificationDispatcher:
    def __init__(
        self,
        sink: NotificationSink,
        email: EmailSink | None = None,
        *,
        max_queue_size: int = 1000,
    ) -> None:
        self._sink = sink
        self._email = email
        self._queue: asyncio.Queue[BookingEvent] = asyncio.Queue(maxsize=max_queue_size)
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, event: BookingEvent) -> bool:
        """Queue an event without waiting. Returns False when it had to be dropped."""

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Notification queue full; dropping %s for booking %s",
                event.kind.value,
                event.booking_id,
            )
            return False
        return True

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
            logger.info("Notification dispatcher started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        await self.drain()
        logger.info("Notification dispatcher stopped")

    async def drain(self) -> int:
        """Deliver every queued event inline and return how many were handled."""

        handled = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return handled
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()
            handled += 1

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: BookingEvent) -> None:
        try:
            await self._sink.publish(event)
        except Exception as exc:
            failure = DependencyFailure("Failed to publish booking notification", cause=exc)
            logger.exception("%s for booking %s", failure, event.booking_id)

        if event.kind is not EventKind.NEW_BOOKING or self._email is None:
            return
        try:
            await self._email.send_booking_confirmation(event)
        except Exception as exc:
            failure = DependencyFailure("Failed to send booking confirmation", cause=exc)
            logger.exception("%s for booking %s", failure, event.booking_id)

        if not event.tenant_email:
            return
        try:
            await self._email.send_tenant_booking_notice(event)
        except Exception as exc:
            failure = DependencyFailure("Failed to send tenant booking notice", cause=exc)
            logger.exception("%s for booking %s", failure, event.booking_id)
