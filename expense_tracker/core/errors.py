from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from expense_tracker.services.rates.errors import ConversionError, RateNotFound

logger = logging.getLogger("expense_tracker.errors")


def envelope_error(status_code: int, message: str, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return envelope_error(
            exc.status_code, f"No route for {request.method} {request.url.path}"
        )
    return envelope_error(exc.status_code, str(exc.detail))


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return envelope_error(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", errors=exc.errors()
    )


def conversion_error_handler(request: Request, exc: ConversionError):  # type: ignore
    code = (
        status.HTTP_404_NOT_FOUND
        if isinstance(exc, RateNotFound)
        else status.HTTP_400_BAD_REQUEST
    )
    logger.info("conversion failed: %s", exc)
    return envelope_error(code, f"Conversion failed: {exc}")


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return envelope_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred."
    )
