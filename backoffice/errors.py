from __future__ import annotations

import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.models.ops_log import OpsLogImmutableError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _split_detail(status_code: int, detail: object) -> tuple[str, str, object]:
    """Map an HTTPException detail onto (code, message, details).

    Services raise either a plain message or a dict carrying its own code,
    e.g. the 409 body of a rejected contract transition.
    """
    if isinstance(detail, dict):
        return (
            detail.get("code", f"http_{status_code}"),
            detail.get("message", "Request failed"),
            detail.get("details"),
        )
    if isinstance(detail, str):
        return f"http_{status_code}", detail, None
    return f"http_{status_code}", "Request failed", detail


def _json_safe(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {key: _json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _respond(request: Request, status_code: int, code: str, message: str, details=None):
    if status_code < 500:
        logger.info(
            "%s %s -> %s %s",
            request.method,
            request.url.path,
            status_code,
            code,
            extra={"request_id": _request_id(request)},
        )
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(code, message, details, _request_id(request)),
    )


def register_error_handlers(app) -> None:
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code, message, details = _split_detail(exc.status_code, exc.detail)
        return _respond(request, exc.status_code, code, message, details)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        code, message, details = _split_detail(exc.status_code, exc.detail or "Request failed")
        return _respond(request, exc.status_code, code, message, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            item = dict(error)
            for key in ("input", "ctx"):
                if key in item:
                    item[key] = _json_safe(item[key])
            errors.append(item)
        return _respond(request, 422, "validation_error", "Validation error", errors)

    @app.exception_handler(OpsLogImmutableError)
    async def ops_log_immutable_handler(request: Request, exc: OpsLogImmutableError):
        return _respond(request, 409, "ops_log_immutable", str(exc))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        # Uniqueness races not already mapped by a service.
        return _respond(request, 409, "conflict", "Conflicting record already exists")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return _respond(request, 500, "internal_error", "Internal server error")
