from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agenda.config import Settings, get_settings
from agenda.dependencies.services import build_container
from agenda.health import router as health_router
from agenda.services.store import seed_demo_data
from agenda.tools.availability import router as availability_router
from agenda.tools.bookings import router as bookings_router
from agenda.tools.catalog import router as catalog_router
from agenda.tools.errors import ConflictHTTPException, conflict_exception_handler
from agenda.tools.schedule import router as schedule_router


def configure_logging(level: str = "INFO") -> None:
    """Ensure application logs use the configured level."""
    root_logger = logging.getLogger()
    resolved = getattr(logging, level.upper(), logging.INFO)
    if not root_logger.handlers:
        logging.basicConfig(
            level=resolved,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(resolved)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    # --- Startup Logic ---
    container = app.state.container
    settings_snapshot = container.settings.model_dump(exclude={"email_api_key"})
    logger.info("Application settings on startup: %s", settings_snapshot)

    if container.settings.seed_demo_data and not container.store.catalog.list_tenants():
        tenant = await seed_demo_data(container.store)
        logger.info("Seeded demo tenant %s (%s)", tenant.tenant_id, tenant.name)

    await container.dispatcher.start()
    logger.info("Application startup complete.")

    try:
        yield  # The application is now running
    finally:
        # --- Shutdown Logic ---
        await container.dispatcher.stop()
        logger.info("Closing email client connection.")
        await container.email_client.close()
        logger.info("Application shutdown complete.")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.container = build_container(settings)
    app.add_exception_handler(ConflictHTTPException, conflict_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Include Routers ---

    app.include_router(availability_router, prefix="/tools/availability")
    app.include_router(bookings_router, prefix="/tools/bookings")
    app.include_router(schedule_router, prefix="/tools/schedule")
    app.include_router(catalog_router)
    app.include_router(health_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("agenda.main:app", host="0.0.0.0", port=8000)
