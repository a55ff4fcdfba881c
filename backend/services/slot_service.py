"""Slot generation and booking-conflict checks for doctor schedules.

Everything here is pure: callers load the doctor's weekly schedule and the
day's appointments, and these helpers work on them in integer minutes since
midnight.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from backend.core import config
from backend.models.appointment import OCCUPYING_STATUSES

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
WORKING_WEEKDAYS = WEEKDAYS[:5]

_TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def parse_time_to_minutes(value: str) -> int:
    match = _TIME_PATTERN.match((value or '').strip())
    if not match:
        raise ValueError(f'Invalid time {value!r}; expected HH:MM.')
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(total_minutes: int) -> str:
    return f'{total_minutes // 60:02d}:{total_minutes % 60:02d}'


def normalize_time(value: str) -> str:
    return format_minutes(parse_time_to_minutes(value))


def weekday_name(day_index: int) -> str:
    return WEEKDAYS[day_index]


class DaySchedule(BaseModel):
    """One weekday entry of a doctor's schedule template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_available: bool = True
    start_time: str | None = None
    end_time: str | None = None
    slot_duration_minutes: int = Field(default_factory=lambda: config.DEFAULT_SLOT_DURATION_MINUTES, gt=0)
    max_patients: int = Field(default=20, ge=0)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return normalize_time(value)

    @model_validator(mode='after')
    def validate_window(self) -> 'DaySchedule':
        if self.is_available and self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValueError('start_time must be earlier than end_time.')
        return self


class SlotAvailability(BaseModel):
    slots: list[str]
    total_slots: int
    booked_slots: int


def default_day_schedule(day_of_week: str) -> DaySchedule:
    return DaySchedule(
        is_available=day_of_week in WORKING_WEEKDAYS,
        start_time=config.DEFAULT_SCHEDULE_START,
        end_time=config.DEFAULT_SCHEDULE_END,
        slot_duration_minutes=config.DEFAULT_SLOT_DURATION_MINUTES,
        max_patients=20 if day_of_week in WORKING_WEEKDAYS else 10,
    )


def _normalize_day(day_of_week: str) -> str:
    normalized = (day_of_week or '').strip().lower()
    if normalized not in WEEKDAYS:
        raise ValueError(f'Unrecognized day of week: {day_of_week!r}.')
    return normalized


def resolve_day_schedule(template: Mapping[str, Any] | None, day_of_week: str) -> DaySchedule | None:
    """Return the effective schedule for ``day_of_week`` or ``None`` if the doctor is off.

    A doctor without any template works the configured default window on
    weekdays. An available day that lacks times falls back to the same window.
    """
    day = _normalize_day(day_of_week)

    if template is None:
        schedule = default_day_schedule(day)
    else:
        entry = template.get(day)
        if entry is None:
            return None
        schedule = entry if isinstance(entry, DaySchedule) else DaySchedule.model_validate(entry)

    if not schedule.is_available:
        return None

    if schedule.start_time is None or schedule.end_time is None:
        schedule = schedule.model_copy(
            update={
                'start_time': schedule.start_time or normalize_time(config.DEFAULT_SCHEDULE_START),
                'end_time': schedule.end_time or normalize_time(config.DEFAULT_SCHEDULE_END),
            }
        )

    return schedule


def generate_slots(template: Mapping[str, Any] | None, day_of_week: str) -> list[str]:
    schedule = resolve_day_schedule(template, day_of_week)
    if schedule is None:
        return []
    return slots_for_schedule(schedule)


def slots_for_schedule(schedule: DaySchedule) -> list[str]:
    # Only the slot start has to fall inside the window.
    slots: list[str] = []
    current = parse_time_to_minutes(schedule.start_time)
    end = parse_time_to_minutes(schedule.end_time)

    while current < end:
        slots.append(format_minutes(current))
        current += schedule.slot_duration_minutes

    return slots


def is_occupying(appointment: Any) -> bool:
    return appointment.status in OCCUPYING_STATUSES


def intervals_overlap(first_start: int, first_end: int, second_start: int, second_end: int) -> bool:
    return first_start < second_end and first_end > second_start


def find_conflict(candidate_start: int, candidate_duration_minutes: int, existing_appointments: Iterable[Any]):
    """Return the first occupying appointment overlapping the candidate, else ``None``.

    Appointments are anything exposing ``appointment_time``, ``duration_minutes``
    and ``status``. Intervals are half-open, so back-to-back bookings are fine.
    """
    candidate_end = candidate_start + candidate_duration_minutes

    for appointment in existing_appointments:
        if not is_occupying(appointment):
            continue

        appointment_start = parse_time_to_minutes(appointment.appointment_time)
        appointment_end = appointment_start + (appointment.duration_minutes or config.DEFAULT_SLOT_DURATION_MINUTES)

        if intervals_overlap(candidate_start, candidate_end, appointment_start, appointment_end):
            return appointment

    return None


def has_conflict(candidate_start: int, candidate_duration_minutes: int, existing_appointments: Iterable[Any]) -> bool:
    return find_conflict(candidate_start, candidate_duration_minutes, existing_appointments) is not None


def compute_available_slots(
    candidate_slots: list[str],
    slot_duration_minutes: int,
    existing_appointments: Iterable[Any],
) -> SlotAvailability:
    occupying = [appointment for appointment in existing_appointments if is_occupying(appointment)]
    available = [
        slot
        for slot in candidate_slots
        if not has_conflict(parse_time_to_minutes(slot), slot_duration_minutes, occupying)
    ]

    return SlotAvailability(
        slots=available,
        total_slots=len(candidate_slots),
        booked_slots=len(occupying),
    )
