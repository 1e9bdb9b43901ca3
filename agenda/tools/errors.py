from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from agenda.services.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError


class ConflictHTTPException(HTTPException):
    """409 that renders as ``{"error": ...}`` instead of ``{"detail": ...}``."""

    def __init__(self, message: str) -> None:
        super().__init__(status_code=409, detail=message)


async def conflict_exception_handler(request: Request, exc: ConflictHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def to_http_error(exc: ServiceError) -> HTTPException:
    """Translate a service layer failure into the matching HTTP status."""

    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ConflictError):
        return ConflictHTTPException(str(exc))
    return HTTPException(status_code=502, detail=str(exc))
