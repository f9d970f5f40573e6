"""Error hierarchy shared by the service layer and the HTTP layer."""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Error carrying a machine-readable code, message and HTTP status."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, Any] = details if details is not None else {}


class ValidationError(ServiceError):
    """Input rejected: bad category, short description, bad file type or size."""

    def __init__(self, error: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error, message, 400, details)


class NotFoundError(ServiceError):
    """Unknown dispute or contract id."""

    def __init__(self, error: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error, message, 404, details)


class ConflictError(ServiceError):
    """Another active dispute already exists for the contract."""

    def __init__(self, error: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error, message, 409, details)


class StateError(ServiceError):
    """Mutation attempted on a dispute in the wrong or a terminal status."""

    def __init__(self, error: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error, message, 409, details)


class UpstreamError(ServiceError):
    """An external upload, contract or escrow call failed."""

    def __init__(self, error: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error, message, 502, details)
