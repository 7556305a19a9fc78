"""Exceptions raised by the service layer and mapped to HTTP responses."""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None, *, details: Any = None, code: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details
        if code:
            self.code = code

    default_message = "Internal server error"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class BadRequestError(ApiError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Invalid request"


class AuthenticationError(ApiError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"
    default_message = "Authentication required"


class AuthorizationError(ApiError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "Insufficient permissions"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource conflict"
