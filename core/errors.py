from __future__ import annotations


class ServiceError(Exception):
    """Base error raised by domain services and rendered by the API layer."""

    status_code = 500
    code = "error"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code


class ValidationFailed(ServiceError):
    status_code = 400
    code = "validation_error"


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"


class TooManyRequests(ServiceError):
    status_code = 429
    code = "too_many_requests"


class StoreFailure(ServiceError):
    status_code = 500
    code = "store_failure"


class ServiceUnavailable(ServiceError):
    status_code = 503
    code = "service_unavailable"
