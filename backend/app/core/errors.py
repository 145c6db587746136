from __future__ import annotations


class DomainError(Exception):
    status_code: int = 400
    error_code: str = "domain_error"

    def __init__(self, message: str = "request failed"):
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    status_code = 404
    error_code = "not_found"


class InvalidArgument(DomainError):
    status_code = 400
    error_code = "invalid_argument"


class InvalidState(DomainError):
    status_code = 409
    error_code = "invalid_state"


class Conflict(DomainError):
    status_code = 409
    error_code = "conflict"


class GenerationFailure(DomainError):
    status_code = 502
    error_code = "generation_failed"


class Forbidden(DomainError):
    status_code = 403
    error_code = "forbidden"
