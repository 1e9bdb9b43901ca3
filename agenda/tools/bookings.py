from fastapi import APIRouter, Depends

from agenda.dependencies.services import get_booking_service
from agenda.schemas.booking import (
    BookingCommitRequest,
    BookingDeleteRequest,
    BookingDeleteResponse,
    BookingListRequest,
    BookingListResponse,
    BookingStatusUpdateRequest,
    BookingSummary,
)
from agenda.services.booking import BookingService
from agenda.services.exceptions import ServiceError
from agenda.tools.errors import to_http_error

router = APIRouter()


@router.post("/commit", response_model=BookingSummary, status_code=201)
async def commit_booking(
    req: BookingCommitRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.commit(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/status", response_model=BookingSummary)
async def update_booking_status(
    req: BookingStatusUpdateRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.update_status(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/list", response_model=BookingListResponse)
async def list_bookings(
    req: BookingListRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.list(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/delete", response_model=BookingDeleteResponse)
async def delete_booking(
    req: BookingDeleteRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.delete(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc
