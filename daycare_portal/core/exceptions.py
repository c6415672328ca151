"""
Error taxonomy shared by every route.

Services raise these; the handler registered in main.py renders them as
``{"error": <category>, "message": <human>, "details": ...}``.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class PortalError(HTTPException):
    category = "InternalError"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(status_code=self.status_code_default, detail=message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body = {"error": self.category, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationFailure(PortalError):
    category = "AuthenticationFailure"
    status_code_default = status.HTTP_401_UNAUTHORIZED


class AuthorizationFailure(PortalError):
    category = "AuthorizationFailure"
    status_code_default = status.HTTP_403_FORBIDDEN


class SelfEditForbidden(AuthorizationFailure):
    """Admin path used on the caller's own record."""
    category = "SelfEditForbidden"


class NotFound(PortalError):
    category = "NotFound"
    status_code_default = status.HTTP_404_NOT_FOUND


class ValidationFailure(PortalError):
    category = "ValidationFailure"
    status_code_default = status.HTTP_400_BAD_REQUEST


class UpstreamFailure(PortalError):
    category = "UpstreamFailure"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
