from pydantic import Field, field_validator

from backend.models.doctor import SPECIALIZATIONS
from backend.schemas.common import CamelModel, Pagination
from backend.services.slot_service import WEEKDAYS, DaySchedule


class DoctorSummary(CamelModel):
    id: int
    name: str
    specialization: str | None = None
    consultation_fee: float | None = None


class DoctorResponse(CamelModel):
    id: int
    user_id: int | None = None
    name: str
    email: str
    phone: str | None = None
    specialization: str | None = None
    department: str | None = None
    license_number: str | None = None
    experience_years: int | None = None
    consultation_fee: float | None = None
    availability: dict[str, DaySchedule] | None = None
    is_active: bool
    verified: bool


class DoctorListResponse(CamelModel):
    doctors: list[DoctorResponse]
    pagination: Pagination


def _strip_required(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Value is required.')
    return normalized


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if '@' not in normalized:
        raise ValueError('Please provide a valid email.')
    return normalized


def _validate_specialization(value: str) -> str:
    if value not in SPECIALIZATIONS:
        raise ValueError('Invalid specialization.')
    return value


def _normalize_weekdays(value: dict[str, DaySchedule]) -> dict[str, DaySchedule]:
    normalized = {day.strip().lower(): schedule for day, schedule in value.items()}
    unknown = set(normalized) - set(WEEKDAYS)
    if unknown:
        raise ValueError(f'Unknown weekdays: {", ".join(sorted(unknown))}.')
    return normalized


class CreateDoctorRequest(CamelModel):
    user_id: int | None = None
    name: str = Field(min_length=1, max_length=100)
    email: str
    phone: str
    specialization: str
    department: str
    license_number: str
    experience_years: int = Field(ge=0)
    consultation_fee: float = Field(ge=0)
    availability: dict[str, DaySchedule] | None = None

    @field_validator('name', 'phone', 'department', 'license_number')
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator('specialization')
    @classmethod
    def validate_specialization(cls, value: str) -> str:
        return _validate_specialization(value)

    @field_validator('availability')
    @classmethod
    def validate_weekdays(cls, value: dict[str, DaySchedule] | None) -> dict[str, DaySchedule] | None:
        return None if value is None else _normalize_weekdays(value)


class UpdateDoctorRequest(CamelModel):
    """Partial profile update. Sending ``availability: null`` resets the
    doctor to the default working window."""

    user_id: int | None = None
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = None
    phone: str | None = None
    specialization: str | None = None
    department: str | None = None
    license_number: str | None = None
    experience_years: int | None = Field(default=None, ge=0)
    consultation_fee: float | None = Field(default=None, ge=0)
    availability: dict[str, DaySchedule] | None = None
    is_active: bool | None = None
    verified: bool | None = None

    @field_validator('name', 'phone', 'department', 'license_number')
    @classmethod
    def strip_required(cls, value: str | None) -> str | None:
        return None if value is None else _strip_required(value)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_email(value)

    @field_validator('specialization')
    @classmethod
    def validate_specialization(cls, value: str | None) -> str | None:
        return None if value is None else _validate_specialization(value)

    @field_validator('availability')
    @classmethod
    def validate_weekdays(cls, value: dict[str, DaySchedule] | None) -> dict[str, DaySchedule] | None:
        return None if value is None else _normalize_weekdays(value)

    def changes(self) -> dict:
        values = self.model_dump(exclude_unset=True)
        if self.availability is not None:
            values['availability'] = {day: schedule.model_dump() for day, schedule in self.availability.items()}
        return {field: value for field, value in values.items() if value is not None or field == 'availability'}


class AvailableSlotsResponse(CamelModel):
    doctor: DoctorSummary
    date: str
    available_slots: list[str]
    total_slots: int
    booked_slots: int


class DoctorOverallStats(CamelModel):
    total_doctors: int
    avg_experience: float
    avg_consultation_fee: float


class SpecializationCount(CamelModel):
    specialization: str | None = None
    count: int


class DoctorStatsResponse(CamelModel):
    overall: DoctorOverallStats
    specializations: list[SpecializationCount]
