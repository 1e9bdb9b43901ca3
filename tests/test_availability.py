import asyncio
from datetime import datetime, timezone

import pytest
from conftest import MONDAY, NOW, at

from agenda.schemas.availability import RangeCheckRequest
from agenda.services.availability import (
    AvailabilityResolver,
    AvailabilityService,
    ProfessionalSelector,
)
from agenda.services.exceptions import NotFoundError, ValidationError
from agenda.services.store import BookingStatus, RuleScope


def _service(store) -> AvailabilityService:
    return AvailabilityService(AvailabilityResolver(store))


def _slots(store, salon, service, professional_id=None, day=MONDAY, now=NOW):
    return asyncio.run(
        _service(store).slots(
            salon.tenant.tenant_id, service.service_id, professional_id, day, now=now
        )
    )


def test_selector_parsing() -> None:
    assert ProfessionalSelector.parse(None).is_any
    assert ProfessionalSelector.parse("").is_any
    assert ProfessionalSelector.parse(" Any ").is_any
    assert ProfessionalSelector.parse("PRO-00001") == ProfessionalSelector.specific("PRO-00001")


def test_unassigned_booking_blocks_its_slot_only(store, salon, add_booking) -> None:
    add_booking(salon.tenant.tenant_id, salon.consultation.service_id, at(MONDAY, "10:00"))

    slots = {slot.time: slot for slot in _slots(store, salon, salon.consultation)}

    assert list(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert slots["10:00"].available is False
    assert slots["10:00"].reason == "booked"
    assert slots["09:30"].available is True
    assert slots["10:30"].available is True
    assert slots["09:30"].reason is None


def test_cancelled_bookings_do_not_block(store, salon, add_booking) -> None:
    add_booking(
        salon.tenant.tenant_id,
        salon.consultation.service_id,
        at(MONDAY, "10:00"),
        status=BookingStatus.CANCELLED,
    )

    slots = _slots(store, salon, salon.consultation)

    assert all(slot.available for slot in slots)


def test_slots_already_started_are_past(store, salon) -> None:
    now = datetime(2030, 1, 7, 10, 15, tzinfo=timezone.utc)

    slots = {slot.time: slot for slot in _slots(store, salon, salon.consultation, now=now)}

    for time in ("09:00", "09:30", "10:00"):
        assert slots[time].available is False
        assert slots[time].reason == "past"
    for time in ("10:30", "11:00", "11:30"):
        assert slots[time].available is True


def test_past_dates_are_entirely_unavailable(store, salon) -> None:
    slots = _slots(store, salon, salon.consultation, day="2029-12-31")

    assert slots
    assert {slot.reason for slot in slots} == {"past"}


def test_future_dates_are_not_filtered(store, salon) -> None:
    slots = _slots(store, salon, salon.consultation, day="2030-01-14")

    assert [slot.available for slot in slots] == [True] * 6


def test_resolution_is_deterministic(store, salon, add_booking) -> None:
    add_booking(
        salon.tenant.tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "09:00"),
        professional_id=salon.yago.professional_id,
    )

    first = _slots(store, salon, salon.haircut)
    second = _slots(store, salon, salon.haircut)

    assert [slot.model_dump() for slot in first] == [slot.model_dump() for slot in second]


def test_any_professional_lists_who_is_free(store, salon, add_booking) -> None:
    add_booking(
        salon.tenant.tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "09:00"),
        professional_id=salon.yago.professional_id,
    )
    add_booking(
        salon.tenant.tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "09:30"),
        professional_id=salon.yago.professional_id,
    )
    add_booking(
        salon.tenant.tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "09:30"),
        professional_id=salon.ximena.professional_id,
    )

    slots = {slot.time: slot for slot in _slots(store, salon, salon.haircut, "any")}

    assert [professional.name for professional in slots["09:00"].professionals] == ["Ximena"]
    assert slots["09:30"].available is False
    assert slots["09:30"].reason == "booked"
    assert slots["09:30"].professionals == []
    assert [professional.name for professional in slots["10:00"].professionals] == [
        "Ximena",
        "Yago",
    ]


def test_specific_professional_ignores_colleagues(store, salon, add_booking) -> None:
    add_booking(
        salon.tenant.tenant_id,
        salon.haircut.service_id,
        at(MONDAY, "09:00"),
        professional_id=salon.yago.professional_id,
    )

    ximena = _slots(store, salon, salon.haircut, salon.ximena.professional_id)
    yago = _slots(store, salon, salon.haircut, salon.yago.professional_id)

    assert ximena[0].available is True
    assert ximena[0].professionals is None
    assert yago[0].available is False


def test_professional_rules_replace_service_rules(store, salon) -> None:
    asyncio.run(
        store.rules.add(
            salon.tenant.tenant_id,
            scope=RuleScope.PROFESSIONAL,
            scope_id=salon.ximena.professional_id,
            day_of_week=1,
            start_time="10:00",
            end_time="11:00",
        )
    )

    own = _slots(store, salon, salon.haircut, salon.ximena.professional_id)
    anyone = {slot.time: slot for slot in _slots(store, salon, salon.haircut)}

    assert [slot.time for slot in own] == ["10:00", "10:30"]
    assert [professional.name for professional in anyone["09:00"].professionals] == ["Yago"]
    assert [professional.name for professional in anyone["10:00"].professionals] == [
        "Ximena",
        "Yago",
    ]


def test_duplicate_times_collapse_to_one_entry(store, salon) -> None:
    asyncio.run(
        store.rules.add(
            salon.tenant.tenant_id,
            scope=RuleScope.SERVICE,
            scope_id=salon.consultation.service_id,
            day_of_week=1,
            start_time="11:00",
            end_time="13:00",
        )
    )

    times = [slot.time for slot in _slots(store, salon, salon.consultation)]

    assert times == sorted(set(times))
    assert times[-1] == "12:30"


def test_day_without_rules_is_empty(store, salon) -> None:
    assert _slots(store, salon, salon.consultation, day="2030-01-08") == []


@pytest.mark.parametrize(
    "field, value",
    [("tenant_id", "TEN-99999"), ("service_id", "SVC-99999"), ("professional_id", "PRO-99999")],
)
def test_unknown_references_are_not_found(store, salon, field, value) -> None:
    arguments = {
        "tenant_id": salon.tenant.tenant_id,
        "service_id": salon.haircut.service_id,
        "professional_id": None,
    }
    arguments[field] = value

    with pytest.raises(NotFoundError):
        asyncio.run(
            _service(store).slots(
                arguments["tenant_id"],
                arguments["service_id"],
                arguments["professional_id"],
                MONDAY,
                now=NOW,
            )
        )


def test_professional_must_perform_the_service(store, salon) -> None:
    with pytest.raises(NotFoundError):
        _slots(store, salon, salon.consultation, salon.ximena.professional_id)


def test_invalid_date_is_rejected(store, salon) -> None:
    with pytest.raises(ValidationError):
        _slots(store, salon, salon.consultation, day="next monday")


def test_check_range_reports_the_blocking_booking(store, salon, add_booking) -> None:
    booking = add_booking(salon.tenant.tenant_id, salon.consultation.service_id, at(MONDAY, "10:00"))
    service = _service(store)

    busy = asyncio.run(
        service.check_range(
            RangeCheckRequest(
                tenant_id=salon.tenant.tenant_id,
                service_id=salon.consultation.service_id,
                start_datetime=at(MONDAY, "09:45"),
                end_datetime=at(MONDAY, "10:15"),
            )
        )
    )
    free = asyncio.run(
        service.check_range(
            RangeCheckRequest(
                tenant_id=salon.tenant.tenant_id,
                service_id=salon.consultation.service_id,
                start_datetime=at(MONDAY, "10:30"),
                end_datetime=at(MONDAY, "11:00"),
            )
        )
    )

    assert busy.available is False
    assert busy.conflicting_booking.id == booking.booking_id
    assert free.available is True
    assert free.conflicting_booking is None


def test_check_range_rejects_inverted_ranges(store, salon) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(
            _service(store).check_range(
                RangeCheckRequest(
                    tenant_id=salon.tenant.tenant_id,
                    service_id=salon.consultation.service_id,
                    start_datetime=at(MONDAY, "11:00"),
                    end_datetime=at(MONDAY, "10:00"),
                )
            )
        )
