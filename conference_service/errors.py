from fastapi import status


class DomainError(Exception):
    """
    Base class for errors raised by the service layer.

    Each subclass carries the HTTP status code the API reports for it, so
    route functions can let these propagate to the exception handler.
    """
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    """Malformed or out-of-range input."""
    status_code = status.HTTP_400_BAD_REQUEST


class BookingConflictError(DomainError):
    """Another booking on the same room overlaps the requested interval."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    """A referenced room, user or booking does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class BusinessRuleError(DomainError):
    """The operation is well-formed but blocked by existing bookings."""
    status_code = status.HTTP_409_CONFLICT
