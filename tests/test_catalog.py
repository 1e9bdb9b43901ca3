import asyncio

import pytest
from conftest import MONDAY, at

from agenda.schemas.catalog import ProfessionalDeleteRequest, ServiceDeleteRequest
from agenda.services.catalog import CatalogService
from agenda.services.exceptions import NotFoundError, ValidationError
from agenda.services.store import BookingStatus, RuleScope


def test_service_with_live_bookings_is_kept(store, salon, add_booking) -> None:
    tenant_id = salon.tenant.tenant_id
    add_booking(tenant_id, salon.consultation.service_id, at(MONDAY, "09:00"))
    add_booking(
        tenant_id,
        salon.consultation.service_id,
        at(MONDAY, "10:00"),
        status=BookingStatus.CANCELLED,
    )

    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(
            CatalogService(store).delete_service(
                ServiceDeleteRequest(tenant_id=tenant_id, service_id=salon.consultation.service_id)
            )
        )

    assert "1 booking(s) are not cancelled" in str(excinfo.value)
    assert store.catalog.get_service(tenant_id, salon.consultation.service_id) is not None
    remaining = asyncio.run(store.bookings.list(tenant_id, service_id=salon.consultation.service_id))
    assert len(remaining) == 2


def test_service_with_only_cancelled_bookings_is_removed(store, salon, add_booking) -> None:
    tenant_id = salon.tenant.tenant_id
    add_booking(
        tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "10:00"),
        status=BookingStatus.CANCELLED,
    )

    result = asyncio.run(
        CatalogService(store).delete_service(
            ServiceDeleteRequest(tenant_id=tenant_id, service_id=salon.haircut.service_id)
        )
    )

    assert result.removed_bookings == 1
    assert result.removed_rules == 1
    assert store.catalog.get_service(tenant_id, salon.haircut.service_id) is None
    assert store.catalog.list_professionals(tenant_id, service_id=salon.haircut.service_id) == []
    assert store.catalog.get_professional(tenant_id, salon.ximena.professional_id).service_ids == []


def test_professional_deletion(store, salon, add_booking) -> None:
    tenant_id = salon.tenant.tenant_id
    service = CatalogService(store)
    add_booking(
        tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "09:00"),
        professional_id=salon.yago.professional_id,
        status=BookingStatus.COMPLETED,
    )
    asyncio.run(
        store.rules.add(
            tenant_id,
            scope=RuleScope.PROFESSIONAL,
            scope_id=salon.ximena.professional_id,
            day_of_week=1,
            start_time="09:00",
            end_time="10:00",
        )
    )

    with pytest.raises(ValidationError):
        asyncio.run(
            service.delete_professional(
                ProfessionalDeleteRequest(tenant_id=tenant_id, professional_id=salon.yago.professional_id)
            )
        )
    result = asyncio.run(
        service.delete_professional(
            ProfessionalDeleteRequest(tenant_id=tenant_id, professional_id=salon.ximena.professional_id)
        )
    )

    assert result.removed_rules == 1
    assert [p.name for p in store.catalog.list_professionals(tenant_id)] == ["Yago"]


def test_deleting_unknown_entities_is_not_found(store, salon) -> None:
    service = CatalogService(store)

    with pytest.raises(NotFoundError):
        asyncio.run(
            service.delete_service(
                ServiceDeleteRequest(tenant_id=salon.tenant.tenant_id, service_id="SVC-99999")
            )
        )
    with pytest.raises(NotFoundError):
        asyncio.run(
            service.delete_professional(
                ProfessionalDeleteRequest(tenant_id="TEN-99999", professional_id=salon.yago.professional_id)
            )
        )


def test_notification_feed_counts_unread(store, salon) -> None:
    tenant_id = salon.tenant.tenant_id

    async def _seed():
        first = await store.notifications.add(
            tenant_id, booking_id="BKG-00001", kind="NEW_BOOKING", title="a", message="a"
        )
        await store.notifications.add(
            tenant_id, booking_id="BKG-00002", kind="NEW_BOOKING", title="b", message="b"
        )
        await store.notifications.mark_read(tenant_id, first.notification_id)

    asyncio.run(_seed())
    service = CatalogService(store)

    everything = asyncio.run(service.notifications(tenant_id))
    unread = asyncio.run(service.notifications(tenant_id, unread_only=True))

    assert (everything.total, everything.unread) == (2, 1)
    assert [item.booking_id for item in everything.items] == ["BKG-00002", "BKG-00001"]
    assert [item.booking_id for item in unread.items] == ["BKG-00002"]
    with pytest.raises(NotFoundError):
        asyncio.run(service.notifications("TEN-99999"))


def test_marking_notifications_read_lowers_the_unread_count(store, salon) -> None:
    tenant_id = salon.tenant.tenant_id
    rival = store.catalog.add_tenant("Rival")

    async def _seed():
        mine = [
            await store.notifications.add(
                tenant_id, booking_id=f"BKG-0000{n}", kind="NEW_BOOKING", title="t", message="m"
            )
            for n in (1, 2, 3)
        ]
        theirs = await store.notifications.add(
            rival.tenant_id, booking_id="BKG-00009", kind="NEW_BOOKING", title="t", message="m"
        )
        return mine, theirs

    mine, theirs = asyncio.run(_seed())
    service = CatalogService(store)

    view = asyncio.run(service.mark_read(tenant_id, mine[0].notification_id))
    assert view.read is True
    assert asyncio.run(service.notifications(tenant_id)).unread == 2

    with pytest.raises(NotFoundError):
        asyncio.run(service.mark_read(tenant_id, theirs.notification_id))

    result = asyncio.run(service.mark_all_read(tenant_id))
    assert result.updated == 2
    assert asyncio.run(service.notifications(tenant_id)).unread == 0
    assert asyncio.run(service.notifications(rival.tenant_id)).unread == 1
    assert asyncio.run(service.mark_all_read(tenant_id)).updated == 0
