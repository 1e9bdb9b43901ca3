from fastapi import APIRouter, Depends

from agenda.dependencies.services import get_catalog_service
from agenda.schemas.catalog import (
    DeletionResponse,
    NotificationListResponse,
    NotificationReadResponse,
    NotificationView,
    ProfessionalDeleteRequest,
    ServiceDeleteRequest,
)
from agenda.services.catalog import CatalogService
from agenda.services.exceptions import ServiceError
from agenda.tools.errors import to_http_error

router = APIRouter()


@router.post("/tools/catalog/services/delete", response_model=DeletionResponse)
async def delete_service(
    req: ServiceDeleteRequest,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.delete_service(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.post("/tools/catalog/professionals/delete", response_model=DeletionResponse)
async def delete_professional(
    req: ProfessionalDeleteRequest,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.delete_professional(req)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.get("/tenants/{tenant_id}/notifications", response_model=NotificationListResponse)
async def tenant_notifications(
    tenant_id: str,
    unread_only: bool = False,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.notifications(tenant_id, unread_only=unread_only)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.put("/tenants/{tenant_id}/notifications/mark-all-read", response_model=NotificationReadResponse)
async def mark_all_notifications_read(
    tenant_id: str,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.mark_all_read(tenant_id)
    except ServiceError as exc:
        raise to_http_error(exc) from exc


@router.put("/tenants/{tenant_id}/notifications/{notification_id}", response_model=NotificationView)
async def mark_notification_read(
    tenant_id: str,
    notification_id: str,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.mark_read(tenant_id, notification_id)
    except ServiceError as exc:
        raise to_http_error(exc) from exc
