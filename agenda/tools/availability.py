from typing import List

from fastapi import APIRouter, Depends

from agenda.dependencies.services import get_availability_service
from agenda.schemas.availability import (
    AvailabilityRequest,
    DecoratedSlot,
    RangeCheckRequest,
    RangeCheckResponse,
)
from agenda.services.availability import AvailabilityService
from agenda.services.exceptions import ServiceError
from agenda.tools.errors import to_http_error

router = APIRouter()


@router.post(
    "/slots",
    response_model=List[DecoratedSlot],
    response_model_exclude_none=True,
)
async def available_slots(
    req: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        return await service.slots(req.tenant_id, req.service_id, req.professional_id, req.date)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/check", response_model=RangeCheckResponse, response_model_exclude_none=True)
async def check_range(
    req: RangeCheckRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        return await service.check_range(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc
