# agenda/health.py
from fastapi import APIRouter, Depends

from agenda.dependencies.services import ServiceContainer, get_container

router = APIRouter()


@router.get("/health")
def health(container: ServiceContainer = Depends(get_container)):
    return {
        "ok": True,
        "pending_notifications": container.dispatcher.pending,
        "email_dry_run": container.email_client.dry_run,
    }
