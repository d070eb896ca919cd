"""
projecthub/errors.py

Error taxonomy shared by the moderation engine, the stores and the routes.

Every failure the API reports is one of these classes. Routes never build
HTTPException bodies by hand; the handlers registered here map each class to
its status code and a stable JSON shape:

    {"detail": "<message>", "error": "<code>", "fields": [...]}

Diagnostic text (e.g. the storage driver's message) is attached only in DEV.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from projecthub import config

logger = logging.getLogger(__name__)


class ProjectHubError(Exception):
    """Base class for every error surfaced to API callers."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "error": self.code}
        if self.detail and config.IS_DEV:
            body["debug"] = self.detail
        return body


class InvalidArgument(ProjectHubError):
    status_code = 400
    code = "invalid_argument"

    def __init__(self, message: str, fields: Optional[List[str]] = None, detail: Optional[str] = None):
        super().__init__(message, detail)
        self.fields = list(fields or [])

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.fields:
            body["fields"] = self.fields
        return body


class PayloadTooLarge(InvalidArgument):
    status_code = 413
    code = "payload_too_large"


class Unauthenticated(ProjectHubError):
    status_code = 401
    code = "unauthenticated"


class InvalidToken(Unauthenticated):
    code = "invalid_token"


class ExpiredToken(Unauthenticated):
    code = "expired_token"


class Forbidden(ProjectHubError):
    status_code = 403
    code = "forbidden"


class NotFound(ProjectHubError):
    status_code = 404
    code = "not_found"


class Conflict(ProjectHubError):
    status_code = 409
    code = "conflict"


class Unavailable(ProjectHubError):
    status_code = 503
    code = "unavailable"


class Internal(ProjectHubError):
    status_code = 500
    code = "internal"


# ---------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------
def _project_hub_error_handler(request: Request, exc: ProjectHubError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.detail or exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        if loc:
            fields.append(".".join(loc))
    error = InvalidArgument("Invalid request", fields=fields, detail=str(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = Internal("Internal server error", detail=f"{type(exc).__name__}: {exc}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProjectHubError, _project_hub_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
