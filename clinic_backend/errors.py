from __future__ import annotations


class ClinicError(Exception):
    """Base error: carries the HTTP status and a message safe to show to clients."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ClinicError):
    """Missing or malformed input, correctable by the caller."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(ClinicError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ClinicError):
    """Duplicate email, slot already booked."""

    status_code = 409
    default_message = "Conflict"


class PersistenceError(ClinicError):
    """Storage unavailable or constraint violation. Details stay in the server log."""

    status_code = 500
    default_message = "A storage error occurred, please try again later"


class UnexpectedError(ClinicError):
    status_code = 500
    default_message = "An unexpected error occurred"
