from datetime import date, datetime

from pydantic import Field, field_validator

from backend.models.appointment import APPOINTMENT_STATUSES, APPOINTMENT_TYPES, DEPARTMENTS
from backend.schemas.common import CamelModel, Pagination
from backend.services.slot_service import normalize_time

MIN_REASON_LENGTH = 10
MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 180


def _validate_status(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise ValueError('Invalid appointment status.')
    return normalized


def _validate_time(value: str) -> str:
    try:
        return normalize_time(value)
    except ValueError as exc:
        raise ValueError('Please provide a valid appointment time (HH:MM format).') from exc


def _validate_department(value: str) -> str:
    normalized = value.strip()
    if normalized not in DEPARTMENTS:
        raise ValueError('Please provide a valid department.')
    return normalized


def _validate_appointment_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_TYPES:
        raise ValueError('Please provide a valid appointment type.')
    return normalized


def _validate_reason(value: str) -> str:
    normalized = value.strip()
    if not MIN_REASON_LENGTH <= len(normalized) <= MAX_REASON_LENGTH:
        raise ValueError(f'Reason must be between {MIN_REASON_LENGTH} and {MAX_REASON_LENGTH} characters.')
    return normalized


def _clean_symptoms(value: list[str]) -> list[str]:
    return [symptom.strip() for symptom in value if symptom and symptom.strip()]


def _validate_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes cannot exceed {MAX_NOTES_LENGTH} characters.')

    return normalized


class CreateAppointmentRequest(CamelModel):
    patient: int | None = None
    doctor: int
    appointment_date: date
    appointment_time: str
    duration: int = Field(default=30, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    department: str
    appointment_type: str
    status: str | None = None
    reason: str
    symptoms: list[str] = Field(default_factory=list)
    notes: str | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _validate_time(value)

    @field_validator('department')
    @classmethod
    def validate_department(cls, value: str) -> str:
        return _validate_department(value)

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        return _validate_appointment_type(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_status(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        return _validate_reason(value)

    @field_validator('symptoms')
    @classmethod
    def validate_symptoms(cls, value: list[str]) -> list[str]:
        return _clean_symptoms(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class UpdateAppointmentRequest(CamelModel):
    """Partial update; only the fields present in the body change."""

    appointment_date: date | None = None
    appointment_time: str | None = None
    duration: int | None = Field(default=None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    department: str | None = None
    appointment_type: str | None = None
    status: str | None = None
    reason: str | None = None
    symptoms: list[str] | None = None
    notes: str | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str | None) -> str | None:
        return None if value is None else _validate_time(value)

    @field_validator('department')
    @classmethod
    def validate_department(cls, value: str | None) -> str | None:
        return None if value is None else _validate_department(value)

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str | None) -> str | None:
        return None if value is None else _validate_appointment_type(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return None if value is None else _validate_status(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return None if value is None else _validate_reason(value)

    @field_validator('symptoms')
    @classmethod
    def validate_symptoms(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else _clean_symptoms(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)

    def changes(self) -> dict:
        """Model field names mapped to the values the caller actually sent."""
        values = self.model_dump(exclude_unset=True, exclude_none=True)
        if 'duration' in values:
            values['duration_minutes'] = values.pop('duration')
        return values


class UpdateAppointmentStatusRequest(CamelModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _validate_status(value)


class AppointmentResponse(CamelModel):
    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    department: str | None = None
    appointment_type: str | None = None
    status: str
    reason: str | None = None
    symptoms: list[str] = Field(default_factory=list)
    notes: str | None = None
    created_at: datetime | None = None

    @field_validator('symptoms', mode='before')
    @classmethod
    def default_symptoms(cls, value):
        return value or []


class AppointmentListResponse(CamelModel):
    appointments: list[AppointmentResponse]
    pagination: Pagination


class StatusCount(CamelModel):
    status: str
    count: int


class DepartmentCount(CamelModel):
    department: str | None = None
    count: int


class AppointmentStatsResponse(CamelModel):
    total_appointments: int
    today_appointments: int
    appointments_by_status: list[StatusCount]
    appointments_by_department: list[DepartmentCount]
    upcoming_appointments: list[AppointmentResponse]
