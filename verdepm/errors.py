"""
Error taxonomy shared by services and routes.

Services raise these; routers either let the app-level handlers turn them
into JSON responses or wrap the call in ``safe_operation`` when the caller
expects a ``{"data", "error"}`` envelope.
"""
from typing import Any, Callable, Dict, Optional, TypeVar

import structlog
from fastapi import HTTPException


T = TypeVar("T")

log = structlog.get_logger(__name__)


class VerdeError(Exception):
    """Base class for errors with a user-facing message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(VerdeError):
    status_code = 400

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class NotFound(VerdeError):
    status_code = 404


class NotFoundOrDenied(NotFound):
    """Raised when a scoped write touched zero rows."""


class Forbidden(VerdeError):
    status_code = 403


class ExternalServiceError(VerdeError):
    status_code = 500


class StorageError(ExternalServiceError):
    pass


class ObjectNotFound(StorageError):
    status_code = 404


def describe_db_error(exc: BaseException, fallback: str) -> str:
    """Build a message from a DB error, appending detail/hint/code when the driver exposes them."""
    orig = getattr(exc, "orig", None) or exc
    message = str(orig).strip() or fallback
    diag = getattr(orig, "diag", None)
    details = getattr(diag, "message_detail", None) or getattr(orig, "details", None)
    hint = getattr(diag, "message_hint", None) or getattr(orig, "hint", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None) or getattr(orig, "code", None)
    if details:
        message += f" Details: {details}"
    if hint:
        message += f" Hint: {hint}"
    if code:
        message += f" (Code: {code})"
    return message


def safe_operation(operation: Callable[[], T]) -> Dict[str, Any]:
    """Run ``operation`` and return ``{"data": result, "error": None}`` or ``{"data": None, "error": message}``."""
    try:
        return {"data": operation(), "error": None}
    except HTTPException:
        raise
    except VerdeError as e:
        log.warning("operation_failed", error=e.message)
        return {"data": None, "error": e.message}
    except Exception as e:
        log.exception("operation_failed", error=str(e))
        return {"data": None, "error": str(e) or "An unknown error occurred."}
