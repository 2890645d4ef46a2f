# Overview: Typed service errors; each maps to the HTTP status a route returns for it.

from __future__ import annotations


class ServiceError(Exception):
    """Base for errors raised by the service layer."""
    status_code = 500

    def __init__(self, message: str, payload: dict | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        body.update(self.payload)
        return body


class ValidationError(ServiceError):
    """400-level input problem."""
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    """Authenticated, but wrong role or not the owner."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate return request)."""
    status_code = 409


class AlreadyPaidError(ConflictError):
    pass


class PaymentGatewayError(ServiceError):
    """Upstream payment gateway failed, timed out or rejected the call."""
    status_code = 502


class RateLimitedError(ServiceError):
    """Too many requests; payload carries retry_after in seconds."""
    status_code = 429
