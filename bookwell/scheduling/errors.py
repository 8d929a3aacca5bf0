class SchedulingError(Exception):
    """Base class for every failure the engine reports to its callers."""

    status_code = 400
    message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFoundError(SchedulingError):
    # Always generic: never tell the caller whether an id or token exists.
    status_code = 404
    message = "Not found"

    def __init__(self, message: str | None = None):
        super().__init__(self.message)


class InvalidInputError(SchedulingError):
    message = "Invalid input"


class InvalidTimezoneError(InvalidInputError):
    message = "Invalid timezone"


class AlreadyCancelledError(SchedulingError):
    message = "Booking is already cancelled"


class NoOpRescheduleError(SchedulingError):
    message = "New time is the same as the current time"


class OutOfWindowError(SchedulingError):
    message = "Requested time is outside the bookable window"


class ConflictError(SchedulingError):
    status_code = 409
    message = "This time slot is no longer available"


class UpstreamUnavailableError(SchedulingError):
    status_code = 503
    message = "Calendar provider unavailable"


class LedgerBusyError(SchedulingError):
    status_code = 503
    message = "Booking is temporarily unavailable, please retry"
