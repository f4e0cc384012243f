"""HTTP-aware error types raised by the service layer.

Every error is an :class:`fastapi.HTTPException` so routers can let them
propagate untouched. The ``detail`` is always a dict with a stable ``code``
(machine readable) and a human ``message``; callers and tests match on the
code.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class MarketplaceError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "error"

    def __init__(self, message: str, code: Optional[str] = None, **extra: Any) -> None:
        detail: Dict[str, Any] = {"code": code or self.default_code, "message": message}
        detail.update(extra)
        super().__init__(status_code=self.status_code, detail=detail)

    @property
    def code(self) -> str:
        return self.detail["code"]

    @property
    def message(self) -> str:
        return self.detail["message"]


class ValidationFailed(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class AuthenticationFailed(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "not_authenticated"

    def __init__(self, message: str = "Could not validate credentials", code: Optional[str] = None, **extra: Any) -> None:
        super().__init__(message, code, **extra)
        self.headers = {"WWW-Authenticate": "Bearer"}


class PermissionDenied(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class Conflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class ExternalServiceError(MarketplaceError):
    """A payment gateway / ERP call failed in a user-facing flow."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "external_service_error"
