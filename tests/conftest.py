import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from agenda.services.store import BookingStatus, RuleScope, ScheduleStore

# 2030-01-07 is a Monday; tests run "the day before" unless they say otherwise.
MONDAY = "2030-01-07"
NOW = datetime(2030, 1, 6, 12, 0, tzinfo=timezone.utc)


def at(day: str, clock: str) -> datetime:
    hours, minutes = (int(part) for part in clock.split(":"))
    return datetime.fromisoformat(day).replace(
        hour=hours, minute=minutes, tzinfo=timezone.utc
    )


@pytest.fixture
def store() -> ScheduleStore:
    return ScheduleStore()


@pytest.fixture
def salon(store: ScheduleStore) -> SimpleNamespace:
    """A tenant with a staffed Haircut service and an unstaffed Consultation service.

    Both services are open on Mondays from 09:00 to 12:00 and last 30 minutes.
    """

    tenant = store.catalog.add_tenant("Salon Norte", email="hola@salon-norte.example")
    haircut = store.catalog.add_service(
        tenant.tenant_id, name="Haircut", duration_minutes=30, price=25.0
    )
    consultation = store.catalog.add_service(
        tenant.tenant_id, name="Consultation", duration_minutes=30, price=40.0
    )
    ximena = store.catalog.add_professional(
        tenant.tenant_id, name="Ximena", service_ids=[haircut.service_id]
    )
    yago = store.catalog.add_professional(
        tenant.tenant_id, name="Yago", service_ids=[haircut.service_id]
    )

    async def _rules() -> None:
        for service in (haircut, consultation):
            await store.rules.add(
                tenant.tenant_id,
                scope=RuleScope.SERVICE,
                scope_id=service.service_id,
                day_of_week=1,
                start_time="09:00",
                end_time="12:00",
            )

    asyncio.run(_rules())
    return SimpleNamespace(
        tenant=tenant,
        haircut=haircut,
        consultation=consultation,
        ximena=ximena,
        yago=yago,
    )


@pytest.fixture
def add_booking(store: ScheduleStore):
    def _add(
        tenant_id: str,
        service_id: str,
        start: datetime,
        *,
        professional_id=None,
        minutes: int = 30,
        status: BookingStatus = BookingStatus.CONFIRMED,
    ):
        async def _insert():
            client = await store.clients.find_or_create(
                tenant_id, name="Seeded Client", email="seeded@example.com"
            )
            return await store.bookings.insert(
                tenant_id,
                service_id=service_id,
                professional_id=professional_id,
                client_id=client.client_id,
                start=start,
                end=start + timedelta(minutes=minutes),
                total_price=10.0,
                status=status,
            )

        return asyncio.run(_insert())

    return _add
