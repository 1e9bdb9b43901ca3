"""Service package public API definitions.

The service implementations import the schemas, which in turn import the
store enums from this package. Importing them eagerly here would make
``agenda.services.store`` depend on its own package being fully initialised,
so they are resolved lazily on first attribute access.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AvailabilityService",
    "BookingService",
    "CatalogService",
    "ScheduleService",
]

_SERVICE_MODULES = {
    "AvailabilityService": "availability",
    "BookingService": "booking",
    "CatalogService": "catalog",
    "ScheduleService": "schedule",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .availability import AvailabilityService as AvailabilityService
    from .booking import BookingService as BookingService
    from .catalog import CatalogService as CatalogService
    from .schedule import ScheduleService as ScheduleService
