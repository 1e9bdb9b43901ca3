from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request

from agenda.clients.email import EmailServiceClient
from agenda.config import Settings, get_settings
from agenda.services.availability import AvailabilityResolver, AvailabilityService
from agenda.services.booking import BookingCommitter, BookingService
from agenda.services.catalog import CatalogService
from agenda.services.conflicts import ConflictIndex
from agenda.services.notifications import NotificationDispatcher, StoreNotificationSink
from agenda.services.schedule import ScheduleService
from agenda.services.store import ScheduleStore


@dataclass
class ServiceContainer:
    settings: Settings
    store: ScheduleStore
    email_client: EmailServiceClient
    dispatcher: NotificationDispatcher
    availability: AvailabilityService
    bookings: BookingService
    schedule: ScheduleService
    catalog: CatalogService


def build_container(
    settings: Settings | None = None,
    *,
    store: ScheduleStore | None = None,
    email_client: EmailServiceClient | None = None,
) -> ServiceContainer:
    """Wire the store, dispatcher and services; the caller owns their lifecycle."""

    settings = settings or get_settings()
    store = store or ScheduleStore()
    email_client = email_client or EmailServiceClient(
        settings.email_api_base_url,
        sender=settings.email_from,
        api_key=settings.email_api_key,
        timeout=settings.email_timeout,
    )
    dispatcher = NotificationDispatcher(
        StoreNotificationSink(store),
        email_client,
        max_queue_size=settings.notification_queue_size,
    )
    resolver = AvailabilityResolver(
        store,
        ConflictIndex(store),
        interval_minutes=settings.slot_interval_minutes,
    )
    committer = BookingCommitter(store, resolver, dispatcher)
    return ServiceContainer(
        settings=settings,
        store=store,
        email_client=email_client,
        dispatcher=dispatcher,
        availability=AvailabilityService(resolver),
        bookings=BookingService(store, committer, dispatcher),
        schedule=ScheduleService(store),
        catalog=CatalogService(store),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_availability_service(
    container: ServiceContainer = Depends(get_container),
) -> AvailabilityService:
    return container.availability


def get_booking_service(
    container: ServiceContainer = Depends(get_container),
) -> BookingService:
    return container.bookings


def get_schedule_service(
    container: ServiceContainer = Depends(get_container),
) -> ScheduleService:
    return container.schedule


def get_catalog_service(
    container: ServiceContainer = Depends(get_container),
) -> CatalogService:
    return container.catalog
