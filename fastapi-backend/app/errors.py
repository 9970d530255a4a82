"""Error types and the JSON error envelope shared by every route."""

from contextlib import contextmanager
from typing import Iterator
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("app.errors")


class GrievanceStoreError(Exception):
    """Validation or persistence failure; always reported as a 500."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@contextmanager
def failures_as_store_errors(operation: str) -> Iterator[None]:
    """Turn anything raised inside a handler body into a GrievanceStoreError.

    HTTPExceptions (401/403/404 raised on purpose) pass through unchanged.
    """
    try:
        yield
    except (HTTPException, GrievanceStoreError):
        raise
    except Exception as exc:
        logger.error("%s failed: %s", operation, exc, exc_info=True)
        raise GrievanceStoreError(str(exc)) from exc


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Malformed input has no 4xx category of its own here.
        return JSONResponse(status_code=500, content=error_body(_validation_message(exc)))

    @app.exception_handler(GrievanceStoreError)
    async def store_exception_handler(request: Request, exc: GrievanceStoreError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


__all__ = [
    "GrievanceStoreError",
    "error_body",
    "failures_as_store_errors",
    "register_exception_handlers",
]
