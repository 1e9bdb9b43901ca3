from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from agenda.schemas.availability import (
    ConflictingBooking,
    DecoratedSlot,
    ProfessionalSummary,
    RangeCheckRequest,
    RangeCheckResponse,
)
from agenda.services.conflicts import ConflictIndex
from agenda.services.exceptions import NotFoundError, ValidationError
from agenda.services.slots import (
    DEFAULT_INTERVAL_MINUTES,
    Slot,
    covers,
    generate_slots,
    parse_date,
    slot_window,
    to_utc,
)
from agenda.services.store import (
    AvailabilityRuleRecord,
    ProfessionalRecord,
    RuleScope,
    ScheduleStore,
    ServiceRecord,
    TenantRecord,
)

logger = logging.getLogger(__name__)

ANY_PROFESSIONAL = "any"
REASON_BOOKED = "booked"
REASON_PAST = "past"


@dataclass(frozen=True)
class ProfessionalSelector:
    """Either a specific professional or any qualified one."""

    professional_id: Optional[str] = None

    @property
    def is_any(self) -> bool:
        return self.professional_id is None

    @classmethod
    def any(cls) -> "ProfessionalSelector":
        return cls(None)

    @classmethod
    def specific(cls, professional_id: str) -> "ProfessionalSelector":
        return cls(professional_id)

    @classmethod
    def parse(cls, value: Optional[str]) -> "ProfessionalSelector":
        if value is None:
            return cls.any()
        normalized = str(value).strip()
        if not normalized or normalized.lower() == ANY_PROFESSIONAL:
            return cls.any()
        return cls.specific(normalized)


@dataclass
class BookingScope:
    """Resolved references for one availability query or commit."""

    tenant: TenantRecord
    service: ServiceRecord
    professional: Optional[ProfessionalRecord]
    rules: List[AvailabilityRuleRecord]
    candidates: List[ProfessionalRecord]
    candidate_rules: Dict[str, List[AvailabilityRuleRecord]]

    def works_at(self, professional: ProfessionalRecord, day: date, slot: Slot) -> bool:
        personal = self.candidate_rules.get(professional.professional_id)
        if not personal:
            return True
        return covers(personal, day, slot.start_minute, slot.end_minute)


def professional_summary(professional: ProfessionalRecord) -> ProfessionalSummary:
    return ProfessionalSummary(id=professional.professional_id, name=professional.name)


class AvailabilityResolver:
    def __init__(
        self,
        store: ScheduleStore,
        conflicts: ConflictIndex | None = None,
        *,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
    ) -> None:
        self._store = store
        self._conflicts = conflicts or ConflictIndex(store)
        self._interval = interval_minutes

    @property
    def conflicts(self) -> ConflictIndex:
        return self._conflicts

    async def load_scope(
        self, tenant_id: str, service_id: str, selector: ProfessionalSelector
    ) -> BookingScope:
        tenant = self._store.catalog.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        service = self._store.catalog.get_service(tenant_id, service_id)
        if service is None or not service.active:
            raise NotFoundError(f"Service {service_id} not found")

        service_rules = await self._store.rules.list_for_scope(
            tenant_id, RuleScope.SERVICE, service_id, active_only=True
        )

        if not selector.is_any:
            professional = self._store.catalog.get_professional(
                tenant_id, selector.professional_id
            )
            if professional is None or not professional.performs(service_id):
                raise NotFoundError(f"Professional {selector.professional_id} not found")
            personal = await self._store.rules.list_for_scope(
                tenant_id, RuleScope.PROFESSIONAL, professional.professional_id, active_only=True
            )
            return BookingScope(
                tenant=tenant,
                service=service,
                professional=professional,
                rules=personal or service_rules,
                candidates=[professional],
                candidate_rules={},
            )

        candidates = self._store.catalog.list_professionals(tenant_id, service_id=service_id)
        candidate_rules = {
            professional.professional_id: await self._store.rules.list_for_scope(
                tenant_id,
                RuleScope.PROFESSIONAL,
                professional.professional_id,
                active_only=True,
            )
            for professional in candidates
        }
        return BookingScope(
            tenant=tenant,
            service=service,
            professional=None,
            rules=service_rules,
            candidates=candidates,
            candidate_rules=candidate_rules,
        )

    def raw_slots(self, scope: BookingScope, day: date) -> List[Slot]:
        return generate_slots(scope.rules, day, scope.service.duration_minutes, self._interval)

    async def resolve(
        self,
        tenant_id: str,
        service_id: str,
        selector: ProfessionalSelector,
        day: date | str,
        now: datetime | None = None,
    ) -> List[DecoratedSlot]:
        target = parse_date(day)
        current = to_utc(now) if now is not None else datetime.now(timezone.utc)
        scope = await self.load_scope(tenant_id, service_id, selector)

        raw = self.raw_slots(scope, target)
        if not raw:
            return []

        bookings = await self._conflicts.find_overlapping(
            tenant_id, service_id, selector.professional_id, target
        )

        by_time: Dict[str, DecoratedSlot] = {}
        for slot in raw:
            decorated = self._decorate(scope, selector, target, slot, bookings, current)
            existing = by_time.get(slot.time)
            # the same clock time can come from two rules; keep one entry per time
            if existing is None or (decorated.available and not existing.available):
                by_time[slot.time] = decorated

        resolved = [by_time[key] for key in sorted(by_time)]
        logger.info(
            "Resolved %s slots (%s available) for tenant %s service %s on %s",
            len(resolved),
            sum(1 for slot in resolved if slot.available),
            tenant_id,
            service_id,
            target.isoformat(),
        )
        return resolved

    def _decorate(
        self,
        scope: BookingScope,
        selector: ProfessionalSelector,
        day: date,
        slot: Slot,
        bookings,
        now: datetime,
    ) -> DecoratedSlot:
        start, end = slot_window(day, slot.start_minute, scope.service.duration_minutes)

        if day < now.date() or (day == now.date() and start < now):
            return DecoratedSlot(time=slot.time, available=False, reason=REASON_PAST)

        if selector.is_any and scope.candidates:
            working = [
                professional
                for professional in scope.candidates
                if scope.works_at(professional, day, slot)
            ]
            free = ConflictIndex.free_professionals(
                working, bookings, scope.service.service_id, start, end
            )
            if not free:
                return DecoratedSlot(
                    time=slot.time, available=False, reason=REASON_BOOKED, professionals=[]
                )
            return DecoratedSlot(
                time=slot.time,
                available=True,
                professionals=[professional_summary(professional) for professional in free],
            )

        blocking = ConflictIndex.first_conflict(
            bookings,
            start,
            end,
            service_id=scope.service.service_id,
            professional_id=selector.professional_id,
        )
        if blocking is not None:
            return DecoratedSlot(time=slot.time, available=False, reason=REASON_BOOKED)
        return DecoratedSlot(time=slot.time, available=True)


class AvailabilityService:
    """Availability queries exposed to the router layer."""

    def __init__(self, resolver: AvailabilityResolver) -> None:
        self._resolver = resolver

    async def slots(
        self,
        tenant_id: str,
        service_id: str,
        professional_id: Optional[str],
        day: str,
        *,
        now: datetime | None = None,
    ) -> List[DecoratedSlot]:
        logger.info(
            "Availability requested for tenant %s service %s on %s", tenant_id, service_id, day
        )
        selector = ProfessionalSelector.parse(professional_id)
        return await self._resolver.resolve(tenant_id, service_id, selector, day, now)

    async def check_range(self, request: RangeCheckRequest) -> RangeCheckResponse:
        start = to_utc(request.start_datetime)
        end = to_utc(request.end_datetime)
        if start >= end:
            raise ValidationError("start_datetime must be before end_datetime")

        selector = ProfessionalSelector.parse(request.professional_id)
        scope = await self._resolver.load_scope(request.tenant_id, request.service_id, selector)
        bookings = await self._resolver.conflicts.find_overlapping_range(
            request.tenant_id, request.service_id, selector.professional_id, start, end
        )
        if selector.is_any and scope.candidates:
            free = ConflictIndex.free_professionals(
                scope.candidates, bookings, request.service_id, start, end
            )
            blocking = None if free else (bookings[0] if bookings else None)
        else:
            blocking = ConflictIndex.first_conflict(
                bookings,
                start,
                end,
                service_id=request.service_id,
                professional_id=selector.professional_id,
            )
        if blocking is None:
            return RangeCheckResponse(available=True)
        return RangeCheckResponse(
            available=False,
            conflicting_booking=ConflictingBooking(
                id=blocking.booking_id,
                start_datetime=blocking.start,
                end_datetime=blocking.end,
                status=blocking.status.value,
            ),
        )
