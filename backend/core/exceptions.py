"""Domain errors raised by the scheduling services.

Each error carries the HTTP status it maps to; ``backend.main`` renders them
as ``{"error": message}`` responses.
"""


class SchedulingError(Exception):
    status_code = 400
    default_message = 'Scheduling request failed.'

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class MissingParameter(SchedulingError):
    default_message = 'A required parameter is missing.'


class InvalidReference(SchedulingError):
    default_message = 'Referenced record does not exist.'


class DoctorNotFound(SchedulingError):
    status_code = 404
    default_message = 'Doctor not found'


class AppointmentNotFound(SchedulingError):
    status_code = 404
    default_message = 'Appointment not found'


class AppointmentConflict(SchedulingError):
    default_message = 'Doctor has a conflicting appointment at this time'


class AccessDenied(SchedulingError):
    status_code = 403
    default_message = 'Access denied'


class CancellationNotAllowed(SchedulingError):
    default_message = 'Appointment cannot be cancelled. It must be at least 24 hours in advance.'


class InvalidParameter(SchedulingError):
    default_message = 'A request parameter is invalid.'
