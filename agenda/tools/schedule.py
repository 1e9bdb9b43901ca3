from fastapi import APIRouter, Depends

from agenda.dependencies.services import get_schedule_service
from agenda.schemas.schedule import (
    RuleCreateRequest,
    RuleDeleteRequest,
    RuleListRequest,
    RuleListResponse,
    RuleReplaceRequest,
    RuleUpdateRequest,
    RuleView,
    WeeklySchedule,
)
from agenda.services.exceptions import ServiceError
from agenda.services.schedule import ScheduleService
from agenda.tools.errors import to_http_error

router = APIRouter()


@router.post("/rules/create", response_model=RuleView, status_code=201)
async def create_rule(
    req: RuleCreateRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        return await service.create_rule(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/rules/list", response_model=RuleListResponse)
async def list_rules(
    req: RuleListRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        return await service.list_rules(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/rules/update", response_model=RuleView)
async def update_rule(
    req: RuleUpdateRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        return await service.update_rule(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/rules/delete")
async def delete_rule(
    req: RuleDeleteRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        await service.delete_rule(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc
    return {"rule_id": req.rule_id, "deleted": True}


@router.post("/rules/replace", response_model=RuleListResponse)
async def replace_rules(
    req: RuleReplaceRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        return await service.replace_rules(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/weekly", response_model=WeeklySchedule)
async def weekly_schedule(
    req: RuleListRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        return await service.weekly_schedule(req.tenant_id, req.scope, req.scope_id)
    except ServiceError as exc:
        raise to_http_error(exc) from exc
