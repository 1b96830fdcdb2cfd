"""Error types and the JSON error envelope shared by every route."""

import logging
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.config import Settings

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Failure reported by (or while reaching) the LLM provider."""

    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UNKNOWN = "unknown"

    HTTP_STATUS = {
        RATE_LIMITED: 429,
        UNAUTHORIZED: 401,
        BAD_REQUEST: 400,
        UPSTREAM_UNAVAILABLE: 503,
        UNKNOWN: 500,
    }

    def __init__(
        self,
        kind: str,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def http_status(self) -> int:
        return self.HTTP_STATUS.get(self.kind, 500)

    @property
    def retryable(self) -> bool:
        return self.kind in (self.RATE_LIMITED, self.UPSTREAM_UNAVAILABLE)


class ReportNotFoundError(Exception):
    """No report file matches the requested name."""

    def __init__(self, file_name: str, brand_folder: Optional[str] = None):
        where = f" in brand folder {brand_folder}" if brand_folder else ""
        super().__init__(f"File not found: {file_name}{where}")
        self.file_name = file_name
        self.brand_folder = brand_folder


class InvalidReportNameError(ValueError):
    """A file or folder name that could escape the report root."""


class ReportStoreError(Exception):
    """Filesystem failure while persisting a report."""


def error_body(
    error: str,
    message: Optional[str] = None,
    details: Any = None,
    exc: Optional[BaseException] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": error,
        "timestamp": datetime.now().isoformat(),
    }
    if message:
        body["message"] = message
    if details is not None:
        body["details"] = details
    if exc is not None and settings is not None and not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Attach the handlers that turn exceptions into the error envelope."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(loc) for loc in e["loc"] if loc != "body"),
                "message": e["msg"],
                "value": e.get("input"),
            }
            for e in exc.errors()
        ]
        logger.warning(f"Validation failed on {request.url.path}: {details}")
        return JSONResponse(
            status_code=400,
            content=error_body(
                "Validation error",
                details[0]["message"] if details else None,
                details=_jsonable(details),
            ),
        )

    @app.exception_handler(UpstreamError)
    async def upstream_exception_handler(request: Request, exc: UpstreamError):
        headers = {}
        if exc.kind == UpstreamError.RATE_LIMITED and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        details = None
        if not settings.is_production:
            details = {"type": exc.kind, "provider": exc.provider, "upstreamStatus": exc.status_code}
        return JSONResponse(
            status_code=exc.http_status,
            content=error_body(exc.message, details=details),
            headers=headers,
        )

    @app.exception_handler(ReportNotFoundError)
    async def not_found_exception_handler(request: Request, exc: ReportNotFoundError):
        return JSONResponse(status_code=404, content=error_body("File not found", str(exc)))

    @app.exception_handler(InvalidReportNameError)
    async def invalid_name_exception_handler(request: Request, exc: InvalidReportNameError):
        return JSONResponse(status_code=400, content=error_body("Invalid file name", str(exc)))

    @app.exception_handler(ReportStoreError)
    async def store_exception_handler(request: Request, exc: ReportStoreError):
        logger.error(f"Report storage failed on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=error_body("Report storage error", str(exc), exc=exc, settings=settings),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict):
            content = error_body(exc.detail.get("error", "Error"), exc.detail.get("message"))
            content.update({k: v for k, v in exc.detail.items() if k not in ("error", "message")})
        else:
            content = error_body(str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=error_body("Internal server error", str(exc), exc=exc, settings=settings),
        )


def _jsonable(details):
    # pydantic puts raw inputs (possibly non-JSON types) into errors
    for d in details:
        value = d.get("value")
        if not isinstance(value, (str, int, float, bool, list, dict, type(None))):
            d["value"] = str(value)
    return details
