"""In-memory ScheduleStore.

Holds the tenant catalog (services, professionals), weekly availability
rules, bookings, the client directory and the tenant notification feed.
Every lookup is scoped by ``tenant_id``. Writes that must be atomic with a
preceding read run inside :meth:`ScheduleStore.transaction`, which
serializes callers per tenant.
"""

from __future__ import annotations

import asyncio
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Dict, Iterable, List, Optional


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _BaseRepository:
    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def _next_id(self) -> str:
        return f"{self._prefix}-{next(self._counter):05d}"


class RuleScope(str, Enum):
    SERVICE = "service"
    PROFESSIONAL = "professional"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass
class TenantRecord:
    tenant_id: str
    name: str
    email: Optional[str] = None


@dataclass
class ServiceRecord:
    service_id: str
    tenant_id: str
    name: str
    duration_minutes: int
    price: float
    active: bool = True


@dataclass
class ProfessionalRecord:
    professional_id: str
    tenant_id: str
    name: str
    email: Optional[str] = None
    service_ids: List[str] = field(default_factory=list)
    active: bool = True

    def performs(self, service_id: str) -> bool:
        return self.active and service_id in self.service_ids


@dataclass
class AvailabilityRuleRecord:
    rule_id: str
    tenant_id: str
    scope: RuleScope
    scope_id: str
    day_of_week: int
    start_time: str
    end_time: str
    active: bool = True


@dataclass
class BookingRecord:
    booking_id: str
    tenant_id: str
    service_id: str
    professional_id: Optional[str]
    client_id: str
    start: datetime
    end: datetime
    status: BookingStatus
    total_price: float
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass
class ClientRecord:
    client_id: str
    tenant_id: str
    name: str
    email: str
    phone: Optional[str] = None


@dataclass
class NotificationRecord:
    notification_id: str
    tenant_id: str
    booking_id: Optional[str]
    kind: str
    title: str
    message: str
    read: bool = False
    created_at: datetime = field(default_factory=_utc_now)


class CatalogRepository:
    """Tenants, services and professionals."""

    def __init__(self) -> None:
        self._tenant_ids = _BaseRepository("TEN")
        self._service_ids = _BaseRepository("SVC")
        self._professional_ids = _BaseRepository("PRO")
        self._tenants: Dict[str, TenantRecord] = {}
        self._services: Dict[str, ServiceRecord] = {}
        self._professionals: Dict[str, ProfessionalRecord] = {}

    def add_tenant(self, name: str, *, email: Optional[str] = None) -> TenantRecord:
        record = TenantRecord(tenant_id=self._tenant_ids._next_id(), name=name, email=email)
        self._tenants[record.tenant_id] = record
        return replace(record)

    def list_tenants(self) -> List[TenantRecord]:
        return [
            replace(record)
            for record in sorted(self._tenants.values(), key=lambda item: item.tenant_id)
        ]

    def get_tenant(self, tenant_id: str) -> Optional[TenantRecord]:
        record = self._tenants.get(tenant_id)
        return replace(record) if record is not None else None

    def add_service(
        self,
        tenant_id: str,
        *,
        name: str,
        duration_minutes: int,
        price: float,
        active: bool = True,
    ) -> ServiceRecord:
        if tenant_id not in self._tenants:
            raise KeyError(f"Tenant {tenant_id} not found")
        record = ServiceRecord(
            service_id=self._service_ids._next_id(),
            tenant_id=tenant_id,
            name=name,
            duration_minutes=int(duration_minutes),
            price=float(price),
            active=active,
        )
        self._services[record.service_id] = record
        return replace(record)

    def get_service(self, tenant_id: str, service_id: str) -> Optional[ServiceRecord]:
        record = self._services.get(service_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return replace(record)

    def list_services(self, tenant_id: str) -> List[ServiceRecord]:
        return [
            replace(record)
            for record in sorted(self._services.values(), key=lambda item: item.service_id)
            if record.tenant_id == tenant_id
        ]

    def remove_service(self, tenant_id: str, service_id: str) -> bool:
        record = self._services.get(service_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        del self._services[service_id]
        for professional in self._professionals.values():
            if professional.tenant_id == tenant_id and service_id in professional.service_ids:
                professional.service_ids.remove(service_id)
        return True

    def add_professional(
        self,
        tenant_id: str,
        *,
        name: str,
        service_ids: Iterable[str] = (),
        email: Optional[str] = None,
        active: bool = True,
    ) -> ProfessionalRecord:
        if tenant_id not in self._tenants:
            raise KeyError(f"Tenant {tenant_id} not found")
        linked = list(service_ids)
        for service_id in linked:
            if self.get_service(tenant_id, service_id) is None:
                raise KeyError(f"Service {service_id} not found")
        record = ProfessionalRecord(
            professional_id=self._professional_ids._next_id(),
            tenant_id=tenant_id,
            name=name,
            email=email,
            service_ids=linked,
            active=active,
        )
        self._professionals[record.professional_id] = record
        return replace(record, service_ids=list(record.service_ids))

    def get_professional(self, tenant_id: str, professional_id: str) -> Optional[ProfessionalRecord]:
        record = self._professionals.get(professional_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return replace(record, service_ids=list(record.service_ids))

    def list_professionals(
        self, tenant_id: str, *, service_id: Optional[str] = None
    ) -> List[ProfessionalRecord]:
        """Return the tenant's professionals, optionally only those qualified for a service."""

        matches = [
            record
            for record in self._professionals.values()
            if record.tenant_id == tenant_id
            and (service_id is None or record.performs(service_id))
        ]
        matches.sort(key=lambda record: (record.name, record.professional_id))
        return [replace(record, service_ids=list(record.service_ids)) for record in matches]

    def remove_professional(self, tenant_id: str, professional_id: str) -> bool:
        record = self._professionals.get(professional_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        del self._professionals[professional_id]
        return True


class AvailabilityRuleRepository(_BaseRepository):
    def __init__(self) -> None:
        super().__init__("RULE")
        self._rules: Dict[str, AvailabilityRuleRecord] = {}

    async def add(
        self,
        tenant_id: str,
        *,
        scope: RuleScope,
        scope_id: str,
        day_of_week: int,
        start_time: str,
        end_time: str,
        active: bool = True,
    ) -> AvailabilityRuleRecord:
        record = AvailabilityRuleRecord(
            rule_id=self._next_id(),
            tenant_id=tenant_id,
            scope=scope,
            scope_id=scope_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            active=active,
        )
        self._rules[record.rule_id] = record
        return replace(record)

    async def get(self, tenant_id: str, rule_id: str) -> Optional[AvailabilityRuleRecord]:
        record = self._rules.get(rule_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return replace(record)

    async def list_for_scope(
        self,
        tenant_id: str,
        scope: RuleScope,
        scope_id: str,
        *,
        day_of_week: Optional[int] = None,
        active_only: bool = False,
    ) -> List[AvailabilityRuleRecord]:
        matches = [
            record
            for record in self._rules.values()
            if record.tenant_id == tenant_id
            and record.scope == scope
            and record.scope_id == scope_id
            and (day_of_week is None or record.day_of_week == day_of_week)
            and (record.active or not active_only)
        ]
        matches.sort(key=lambda record: (record.day_of_week, record.start_time, record.rule_id))
        return [replace(record) for record in matches]

    async def save(self, record: AvailabilityRuleRecord) -> AvailabilityRuleRecord:
        existing = self._rules.get(record.rule_id)
        if existing is None or existing.tenant_id != record.tenant_id:
            raise KeyError(f"Rule {record.rule_id} not found")
        self._rules[record.rule_id] = replace(record)
        return replace(record)

    async def delete(self, tenant_id: str, rule_id: str) -> bool:
        record = self._rules.get(rule_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        del self._rules[rule_id]
        return True

    async def delete_for_scope(self, tenant_id: str, scope: RuleScope, scope_id: str) -> int:
        doomed = [
            rule_id
            for rule_id, record in self._rules.items()
            if record.tenant_id == tenant_id
            and record.scope == scope
            and record.scope_id == scope_id
        ]
        for rule_id in doomed:
            del self._rules[rule_id]
        return len(doomed)


class BookingRepository(_BaseRepository):
    def __init__(self) -> None:
        super().__init__("BKG")
        self._bookings: Dict[str, BookingRecord] = {}

    async def insert(
        self,
        tenant_id: str,
        *,
        service_id: str,
        professional_id: Optional[str],
        client_id: str,
        start: datetime,
        end: datetime,
        total_price: float,
        status: BookingStatus = BookingStatus.PENDING,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> BookingRecord:
        record = BookingRecord(
            booking_id=self._next_id(),
            tenant_id=tenant_id,
            service_id=service_id,
            professional_id=professional_id,
            client_id=client_id,
            start=start,
            end=end,
            status=status,
            total_price=total_price,
            notes=notes,
            idempotency_key=idempotency_key,
        )
        self._bookings[record.booking_id] = record
        return replace(record)

    async def get(self, tenant_id: str, booking_id: str) -> Optional[BookingRecord]:
        record = self._bookings.get(booking_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return replace(record)

    async def list(
        self,
        tenant_id: str,
        *,
        service_id: Optional[str] = None,
        professional_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
    ) -> List[BookingRecord]:
        matches = [
            record
            for record in self._bookings.values()
            if record.tenant_id == tenant_id
            and (service_id is None or record.service_id == service_id)
            and (professional_id is None or record.professional_id == professional_id)
            and (status is None or record.status == status)
        ]
        matches.sort(key=lambda record: (record.start, record.booking_id))
        return [replace(record) for record in matches]

    async def overlapping(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> List[BookingRecord]:
        """Active bookings of the tenant whose range intersects ``[start, end)``."""

        matches = [
            record
            for record in self._bookings.values()
            if record.tenant_id == tenant_id
            and record.is_active
            and record.start < end
            and start < record.end
        ]
        matches.sort(key=lambda record: (record.start, record.booking_id))
        return [replace(record) for record in matches]

    async def find_by_idempotency_key(self, tenant_id: str, key: str) -> Optional[BookingRecord]:
        for record in self._bookings.values():
            if record.tenant_id == tenant_id and record.idempotency_key == key:
                return replace(record)
        return None

    async def set_status(
        self, tenant_id: str, booking_id: str, status: BookingStatus
    ) -> BookingRecord:
        record = self._bookings.get(booking_id)
        if record is None or record.tenant_id != tenant_id:
            raise KeyError(f"Booking {booking_id} not found")
        record.status = status
        return replace(record)

    async def delete(self, tenant_id: str, booking_id: str) -> bool:
        record = self._bookings.get(booking_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        del self._bookings[booking_id]
        return True


class ClientDirectory(_BaseRepository):
    def __init__(self) -> None:
        super().__init__("CLI")
        self._clients: Dict[str, ClientRecord] = {}

    async def find_or_create(
        self, tenant_id: str, *, name: str, email: str, phone: Optional[str] = None
    ) -> ClientRecord:
        normalized = email.strip().lower()
        for record in self._clients.values():
            if record.tenant_id == tenant_id and record.email == normalized:
                return replace(record)
        record = ClientRecord(
            client_id=self._next_id(),
            tenant_id=tenant_id,
            name=name,
            email=normalized,
            phone=phone,
        )
        self._clients[record.client_id] = record
        return replace(record)

    async def get(self, tenant_id: str, client_id: str) -> Optional[ClientRecord]:
        record = self._clients.get(client_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return replace(record)


class NotificationRepository(_BaseRepository):
    def __init__(self) -> None:
        super().__init__("NTF")
        self._notifications: Dict[str, NotificationRecord] = {}

    async def add(
        self,
        tenant_id: str,
        *,
        booking_id: Optional[str],
        kind: str,
        title: str,
        message: str,
    ) -> NotificationRecord:
        record = NotificationRecord(
            notification_id=self._next_id(),
            tenant_id=tenant_id,
            booking_id=booking_id,
            kind=kind,
            title=title,
            message=message,
        )
        self._notifications[record.notification_id] = record
        return replace(record)

    async def list(self, tenant_id: str, *, unread_only: bool = False) -> List[NotificationRecord]:
        matches = [
            record
            for record in self._notifications.values()
            if record.tenant_id == tenant_id and (not record.read or not unread_only)
        ]
        matches.sort(key=lambda record: record.notification_id, reverse=True)
        return [replace(record) for record in matches]

    async def get(self, tenant_id: str, notification_id: str) -> Optional[NotificationRecord]:
        record = self._notifications.get(notification_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return replace(record)

    async def mark_read(self, tenant_id: str, notification_id: str) -> bool:
        record = self._notifications.get(notification_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        record.read = True
        return True

    async def mark_all_read(self, tenant_id: str) -> int:
        updated = 0
        for record in self._notifications.values():
            if record.tenant_id == tenant_id and not record.read:
                record.read = True
                updated += 1
        return updated


@dataclass
class ScheduleStore:
    catalog: CatalogRepository = field(default_factory=CatalogRepository)
    rules: AvailabilityRuleRepository = field(default_factory=AvailabilityRuleRepository)
    bookings: BookingRepository = field(default_factory=BookingRepository)
    clients: ClientDirectory = field(default_factory=ClientDirectory)
    notifications: NotificationRepository = field(default_factory=NotificationRepository)
    _locks: Dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)

    @asynccontextmanager
    async def transaction(self, tenant_id: str) -> AsyncIterator[None]:
        """Serialize read-then-write sequences for one tenant."""

        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            yield


async def seed_demo_data(store: ScheduleStore) -> TenantRecord:
    """Populate a demo tenant with two services, two professionals and a weekday schedule."""

    tenant = store.catalog.add_tenant("Demo Studio", email="hola@demo-studio.example")
    haircut = store.catalog.add_service(
        tenant.tenant_id, name="Haircut", duration_minutes=30, price=25.0
    )
    coloring = store.catalog.add_service(
        tenant.tenant_id, name="Coloring", duration_minutes=90, price=80.0
    )
    ana = store.catalog.add_professional(
        tenant.tenant_id,
        name="Ana Rojas",
        service_ids=[haircut.service_id, coloring.service_id],
    )
    store.catalog.add_professional(
        tenant.tenant_id,
        name="Bruno Diaz",
        service_ids=[haircut.service_id],
    )

    for service in (haircut, coloring):
        for day in range(1, 6):
            await store.rules.add(
                tenant.tenant_id,
                scope=RuleScope.SERVICE,
                scope_id=service.service_id,
                day_of_week=day,
                start_time="09:00",
                end_time="12:00",
            )
            await store.rules.add(
                tenant.tenant_id,
                scope=RuleScope.SERVICE,
                scope_id=service.service_id,
                day_of_week=day,
                start_time="14:00",
                end_time="18:00" if day != 5 else "17:00",
            )

    for day in (2, 4):
        await store.rules.add(
            tenant.tenant_id,
            scope=RuleScope.PROFESSIONAL,
            scope_id=ana.professional_id,
            day_of_week=day,
            start_time="10:00",
            end_time="16:00",
        )
    return tenant
