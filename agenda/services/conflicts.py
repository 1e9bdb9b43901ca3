from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from agenda.services.slots import day_bounds
from agenda.services.store import BookingRecord, ProfessionalRecord, ScheduleStore

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval intersection: touching ranges do not overlap."""

    return a_start < b_end and b_start < a_end


class ConflictIndex:
    """Looks up active bookings that can block a candidate slot."""

    def __init__(self, store: ScheduleStore) -> None:
        self._store = store

    async def find_overlapping(
        self,
        tenant_id: str,
        service_id: str,
        professional_id: Optional[str],
        day: date,
    ) -> List[BookingRecord]:
        start, end = day_bounds(day)
        return await self.find_overlapping_range(
            tenant_id, service_id, professional_id, start, end
        )

    async def find_overlapping_range(
        self,
        tenant_id: str,
        service_id: str,
        professional_id: Optional[str],
        start: datetime,
        end: datetime,
    ) -> List[BookingRecord]:
        candidates = await self._store.bookings.overlapping(tenant_id, start, end)
        if professional_id is not None:
            scoped = [
                booking
                for booking in candidates
                if booking.professional_id == professional_id
                or (booking.professional_id is None and booking.service_id == service_id)
            ]
        else:
            qualified = {
                professional.professional_id
                for professional in self._store.catalog.list_professionals(
                    tenant_id, service_id=service_id
                )
            }
            scoped = [
                booking
                for booking in candidates
                if booking.service_id == service_id or booking.professional_id in qualified
            ]
        logger.debug(
            "Found %s blocking bookings for tenant %s service %s professional %s",
            len(scoped),
            tenant_id,
            service_id,
            professional_id or "any",
        )
        return scoped

    @staticmethod
    def first_conflict(
        bookings: Iterable[BookingRecord],
        start: datetime,
        end: datetime,
        *,
        service_id: str,
        professional_id: Optional[str] = None,
    ) -> Optional[BookingRecord]:
        """Return the first booking that blocks ``[start, end)`` for the given scope.

        With a professional, only that professional's bookings and unassigned
        bookings of the service count. Without one, every booking of the
        service counts.
        """

        for booking in bookings:
            if not booking.is_active or not overlaps(start, end, booking.start, booking.end):
                continue
            if professional_id is None:
                if booking.service_id == service_id:
                    return booking
                continue
            if booking.professional_id == professional_id:
                return booking
            if booking.professional_id is None and booking.service_id == service_id:
                return booking
        return None

    @classmethod
    def free_professionals(
        cls,
        candidates: Sequence[ProfessionalRecord],
        bookings: Iterable[BookingRecord],
        service_id: str,
        start: datetime,
        end: datetime,
    ) -> List[ProfessionalRecord]:
        bookings = list(bookings)
        free = [
            professional
            for professional in candidates
            if cls.first_conflict(
                bookings,
                start,
                end,
                service_id=service_id,
                professional_id=professional.professional_id,
            )
            is None
        ]
        free.sort(key=lambda professional: (professional.name, professional.professional_id))
        return free
