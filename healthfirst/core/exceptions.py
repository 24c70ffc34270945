"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    error_code = "INTERNAL"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# Generic HTTP-shaped errors


class NotFoundException(AppException):
    """Resource not found exception."""

    error_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    error_code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    error_code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


# Time windows


class InvalidRangeException(ValidationException):
    """Start is not before end."""

    error_code = "INVALID_RANGE"

    def __init__(self, message: str = "End time must be after start time"):
        super().__init__(message)


class TooShortException(ValidationException):
    """Window is shorter than the minimum length."""

    error_code = "TOO_SHORT"

    def __init__(self, message: str = "Time slot must be at least 15 minutes"):
        super().__init__(message)


class OverlapException(ConflictException):
    """Window intersects an existing window for the same provider and date."""

    error_code = "OVERLAP"

    def __init__(self, message: str = "Time slot overlaps with existing availability"):
        super().__init__(message)


# Availability store


class HasBookedSlotsException(ConflictException):
    """Window cannot be deleted while it has booked (or unconfirmed) slots."""

    error_code = "HAS_BOOKED_SLOTS"

    def __init__(self, message: str = "Availability has booked slots"):
        super().__init__(message)


class CannotDeleteBookedException(ConflictException):
    """Booked slots are never deleted."""

    error_code = "CANNOT_DELETE_BOOKED"

    def __init__(self, message: str = "Cannot delete booked slot"):
        super().__init__(message)


class InvalidStatusTransitionException(ConflictException):
    """Requested slot status change is not an allowed transition."""

    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, message: str = "Slot status transition is not allowed"):
        super().__init__(message)


# Booking engine


class PatientNotFoundException(NotFoundException):
    """Patient could not be resolved."""

    error_code = "PATIENT_NOT_FOUND"

    def __init__(self, message: str = "Patient not found"):
        super().__init__(message)


class ProviderNotFoundException(NotFoundException):
    """Provider could not be resolved."""

    error_code = "PROVIDER_NOT_FOUND"

    def __init__(self, message: str = "Provider not found"):
        super().__init__(message)


class PastAppointmentException(BadRequestException):
    """Requested appointment time is in the past."""

    error_code = "PAST_APPOINTMENT"

    def __init__(self, message: str = "Appointment cannot be scheduled in the past"):
        super().__init__(message)


class SlotConflictException(ConflictException):
    """Requested time is already booked."""

    error_code = "SLOT_CONFLICT"

    def __init__(self, message: str = "This time slot is already booked"):
        super().__init__(message)


class NoAvailableSlotException(ConflictException):
    """No available slot covers the requested time."""

    error_code = "NO_AVAILABLE_SLOT"

    def __init__(self, message: str = "No available slot found for the requested time"):
        super().__init__(message)


class OutOfBoundsException(BadRequestException):
    """Requested time falls outside the slot (or window) bounds."""

    error_code = "OUT_OF_BOUNDS"

    def __init__(self, message: str = "Requested time is not within provider's availability"):
        super().__init__(message)


class NotBookedException(ConflictException):
    """Only booked appointments can be cancelled."""

    error_code = "NOT_BOOKED"

    def __init__(
        self,
        message: str = "Appointment is not in BOOKED status and cannot be cancelled",
    ):
        super().__init__(message)


# Collaborator failures


class ServiceUnavailableException(AppException):
    """Persistence backend could not be reached."""

    error_code = "UNAVAILABLE"

    def __init__(self, message: str = "Service temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class InternalException(AppException):
    """Unexpected persistence failure."""

    error_code = "INTERNAL"

    def __init__(self, message: str = "An unexpected error occurred"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)
