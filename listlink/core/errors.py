"""Error taxonomy shared by the callable endpoints, OAuth endpoints and services."""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Canonical error kinds, named after the callable-function status codes."""

    INVALID_ARGUMENT = "invalid-argument"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    PERMISSION_DENIED = "permission-denied"
    UNAUTHENTICATED = "unauthenticated"
    FAILED_PRECONDITION = "failed-precondition"
    DEADLINE_EXCEEDED = "deadline-exceeded"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    INTERNAL = "internal"

    @property
    def wire_status(self) -> str:
        """Upper snake case form used in callable error payloads."""
        return self.value.replace("-", "_").upper()


_HTTP_STATUS_BY_CODE: Dict[ErrorCode, HTTPStatus] = {
    ErrorCode.INVALID_ARGUMENT: HTTPStatus.BAD_REQUEST,
    ErrorCode.FAILED_PRECONDITION: HTTPStatus.BAD_REQUEST,
    ErrorCode.UNAUTHENTICATED: HTTPStatus.UNAUTHORIZED,
    ErrorCode.PERMISSION_DENIED: HTTPStatus.FORBIDDEN,
    ErrorCode.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.ALREADY_EXISTS: HTTPStatus.CONFLICT,
    ErrorCode.RESOURCE_EXHAUSTED: HTTPStatus.TOO_MANY_REQUESTS,
    ErrorCode.DEADLINE_EXCEEDED: HTTPStatus.GATEWAY_TIMEOUT,
    ErrorCode.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """Raised by services when an operation cannot be completed."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def http_status(self) -> HTTPStatus:
        return _HTTP_STATUS_BY_CODE[self.code]

    def to_payload(self) -> Dict[str, Any]:
        """Render the callable-style error body."""
        error: Dict[str, Any] = {
            "status": self.code.wire_status,
            "message": self.message,
        }
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def __repr__(self) -> str:
        return f"ServiceError({self.code.value!r}, {self.message!r})"


__all__ = ["ErrorCode", "ServiceError"]
