from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from agenda.schemas.schedule import (
    DaySchedule,
    RuleCreateRequest,
    RuleDeleteRequest,
    RuleListRequest,
    RuleListResponse,
    RuleReplaceRequest,
    RuleUpdateRequest,
    RuleView,
    TimeWindow,
    WeeklySchedule,
)
from agenda.services.exceptions import ConflictError, NotFoundError, ValidationError
from agenda.services.slots import Weekday, format_clock, parse_clock
from agenda.services.store import AvailabilityRuleRecord, RuleScope, ScheduleStore

logger = logging.getLogger(__name__)


def day_name(day_of_week: int) -> str:
    return Weekday(day_of_week).name.capitalize()


def _rule_view(record: AvailabilityRuleRecord) -> RuleView:
    return RuleView(
        rule_id=record.rule_id,
        scope=record.scope,
        scope_id=record.scope_id,
        day_of_week=record.day_of_week,
        day_name=day_name(record.day_of_week),
        start_time=record.start_time,
        end_time=record.end_time,
        active=record.active,
    )


def _normalize_window(day_of_week: int, start_time: str, end_time: str) -> Tuple[int, str, str]:
    if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise ValidationError(f"day_of_week must be between 0 (Sunday) and 6, got {day_of_week!r}")
    start = parse_clock(start_time)
    end = parse_clock(end_time)
    if start >= end:
        raise ValidationError("start_time must be before end_time")
    return day_of_week, format_clock(start), format_clock(end)


def _find_overlap(
    existing: Iterable[AvailabilityRuleRecord],
    day_of_week: int,
    start_time: str,
    end_time: str,
    *,
    ignore_rule_id: Optional[str] = None,
) -> Optional[AvailabilityRuleRecord]:
    start = parse_clock(start_time)
    end = parse_clock(end_time)
    for rule in existing:
        if rule.rule_id == ignore_rule_id or not rule.active or rule.day_of_week != day_of_week:
            continue
        if start < parse_clock(rule.end_time) and parse_clock(rule.start_time) < end:
            return rule
    return None


class ScheduleService:
    """CRUD over weekly availability rules; active rules of one scope and day never overlap."""

    def __init__(self, store: ScheduleStore) -> None:
        self._store = store

    def _ensure_scope(self, tenant_id: str, scope: RuleScope, scope_id: str) -> None:
        if self._store.catalog.get_tenant(tenant_id) is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        if scope is RuleScope.SERVICE:
            if self._store.catalog.get_service(tenant_id, scope_id) is None:
                raise NotFoundError(f"Service {scope_id} not found")
        elif self._store.catalog.get_professional(tenant_id, scope_id) is None:
            raise NotFoundError(f"Professional {scope_id} not found")

    async def create_rule(self, request: RuleCreateRequest) -> RuleView:
        day, start, end = _normalize_window(request.day_of_week, request.start_time, request.end_time)
        self._ensure_scope(request.tenant_id, request.scope, request.scope_id)

        async with self._store.transaction(request.tenant_id):
            existing = await self._store.rules.list_for_scope(
                request.tenant_id, request.scope, request.scope_id, day_of_week=day
            )
            clash = _find_overlap(existing, day, start, end)
            if clash is not None:
                raise ConflictError(
                    f"Schedule overlaps existing rule {clash.rule_id} "
                    f"({clash.start_time}-{clash.end_time})"
                )
            record = await self._store.rules.add(
                request.tenant_id,
                scope=request.scope,
                scope_id=request.scope_id,
                day_of_week=day,
                start_time=start,
                end_time=end,
            )
        logger.info(
            "Created rule %s for %s %s on %s %s-%s",
            record.rule_id,
            record.scope.value,
            record.scope_id,
            day_name(day),
            start,
            end,
        )
        return _rule_view(record)

    async def list_rules(self, request: RuleListRequest) -> RuleListResponse:
        self._ensure_scope(request.tenant_id, request.scope, request.scope_id)
        records = await self._store.rules.list_for_scope(
            request.tenant_id, request.scope, request.scope_id
        )
        return RuleListResponse(total=len(records), items=[_rule_view(record) for record in records])

    async def update_rule(self, request: RuleUpdateRequest) -> RuleView:
        async with self._store.transaction(request.tenant_id):
            record = await self._store.rules.get(request.tenant_id, request.rule_id)
            if record is None:
                raise NotFoundError(f"Rule {request.rule_id} not found")

            day, start, end = _normalize_window(
                request.day_of_week if request.day_of_week is not None else record.day_of_week,
                request.start_time or record.start_time,
                request.end_time or record.end_time,
            )
            active = record.active if request.active is None else request.active
            if active:
                existing = await self._store.rules.list_for_scope(
                    request.tenant_id, record.scope, record.scope_id, day_of_week=day
                )
                clash = _find_overlap(existing, day, start, end, ignore_rule_id=record.rule_id)
                if clash is not None:
                    raise ConflictError(
                        f"Schedule overlaps existing rule {clash.rule_id} "
                        f"({clash.start_time}-{clash.end_time})"
                    )

            record.day_of_week = day
            record.start_time = start
            record.end_time = end
            record.active = active
            saved = await self._store.rules.save(record)
        logger.info("Updated rule %s", saved.rule_id)
        return _rule_view(saved)

    async def delete_rule(self, request: RuleDeleteRequest) -> bool:
        async with self._store.transaction(request.tenant_id):
            deleted = await self._store.rules.delete(request.tenant_id, request.rule_id)
        if not deleted:
            raise NotFoundError(f"Rule {request.rule_id} not found")
        logger.info("Deleted rule %s", request.rule_id)
        return True

    async def replace_rules(self, request: RuleReplaceRequest) -> RuleListResponse:
        """Replace every rule of a scope in one step; nothing changes if any window is invalid."""

        self._ensure_scope(request.tenant_id, request.scope, request.scope_id)
        windows = [
            _normalize_window(window.day_of_week, window.start_time, window.end_time)
            for window in request.rules
        ]
        accepted: List[AvailabilityRuleRecord] = []
        for index, (day, start, end) in enumerate(windows):
            incoming = AvailabilityRuleRecord(
                rule_id=f"new-{index}",
                tenant_id=request.tenant_id,
                scope=request.scope,
                scope_id=request.scope_id,
                day_of_week=day,
                start_time=start,
                end_time=end,
            )
            clash = _find_overlap(accepted, day, start, end)
            if clash is not None:
                raise ConflictError(
                    f"Windows {clash.start_time}-{clash.end_time} and {start}-{end} "
                    f"overlap on {day_name(day)}"
                )
            accepted.append(incoming)

        async with self._store.transaction(request.tenant_id):
            removed = await self._store.rules.delete_for_scope(
                request.tenant_id, request.scope, request.scope_id
            )
            for day, start, end in windows:
                await self._store.rules.add(
                    request.tenant_id,
                    scope=request.scope,
                    scope_id=request.scope_id,
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                )
        logger.info(
            "Replaced %s rules with %s for %s %s",
            removed,
            len(windows),
            request.scope.value,
            request.scope_id,
        )
        return await self.list_rules(
            RuleListRequest(
                tenant_id=request.tenant_id, scope=request.scope, scope_id=request.scope_id
            )
        )

    async def weekly_schedule(
        self, tenant_id: str, scope: RuleScope, scope_id: str
    ) -> WeeklySchedule:
        self._ensure_scope(tenant_id, scope, scope_id)
        records = await self._store.rules.list_for_scope(
            tenant_id, scope, scope_id, active_only=True
        )
        days = []
        for weekday in Weekday:
            windows = [
                TimeWindow(start_time=record.start_time, end_time=record.end_time)
                for record in records
                if record.day_of_week == weekday.value
            ]
            days.append(
                DaySchedule(
                    day_of_week=weekday.value,
                    day_name=day_name(weekday.value),
                    is_working=bool(windows),
                    windows=windows,
                )
            )
        return WeeklySchedule(scope=scope, scope_id=scope_id, days=days)
