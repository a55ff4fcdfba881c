import logging
from datetime import date, datetime, timedelta
from enum import Enum

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.exceptions import (
    AccessDenied,
    AppointmentConflict,
    AppointmentNotFound,
    CancellationNotAllowed,
    DoctorNotFound,
    InvalidParameter,
    InvalidReference,
    MissingParameter,
)
from backend.models.appointment import OCCUPYING_STATUSES, Appointment
from backend.models.doctor import Doctor
from backend.models.user import User
from backend.services.slot_service import (
    SlotAvailability,
    compute_available_slots,
    find_conflict,
    parse_time_to_minutes,
    resolve_day_schedule,
    slots_for_schedule,
    weekday_name,
)

logger = logging.getLogger(__name__)


class ConflictResult(str, Enum):
    CONFLICT = 'conflict'
    NO_CONFLICT = 'no-conflict'


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise DoctorNotFound()
    return doctor


def get_doctor_for_user(db: Session, user: User) -> Doctor | None:
    return db.query(Doctor).filter(Doctor.user_id == user.id).first()


def lock_doctor(db: Session, doctor_id: int) -> Doctor | None:
    """Load the doctor row with `SELECT ... FOR UPDATE`.

    Every write that can occupy a slot takes this lock before its conflict
    check, so concurrent bookings for one doctor run one after another.
    """
    return db.query(Doctor).filter(Doctor.id == doctor_id).with_for_update().first()


def list_active_appointments(
    db: Session,
    doctor_id: int,
    appointment_date: date,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == appointment_date,
        Appointment.status.in_(sorted(OCCUPYING_STATUSES)),
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.order_by(Appointment.appointment_time.asc()).all()


def get_available_slots(
    db: Session,
    doctor_id: int | None,
    slot_date: date | None,
    duration_minutes: int | None = None,
) -> tuple[Doctor, SlotAvailability]:
    """Bookable slot starts for ``doctor_id`` on ``slot_date``.

    A slot is bookable when a booking of the slot's length starting there does
    not overlap any occupying appointment. ``duration_minutes`` overrides the
    length of the schedule's own slots.
    """
    if doctor_id is None or slot_date is None:
        raise MissingParameter('Doctor ID and date are required')

    doctor = get_doctor(db, doctor_id)
    day_of_week = weekday_name(slot_date.weekday())
    schedule = resolve_day_schedule(doctor.availability, day_of_week)

    if schedule is None:
        logger.debug('Doctor %s is not available on %s (%s)', doctor.id, slot_date, day_of_week)
        return doctor, SlotAvailability(slots=[], total_slots=0, booked_slots=0)

    candidate_slots = slots_for_schedule(schedule)
    appointments = list_active_appointments(db, doctor.id, slot_date)
    availability = compute_available_slots(
        candidate_slots,
        duration_minutes or schedule.slot_duration_minutes,
        appointments,
    )

    logger.debug(
        'Doctor %s on %s: %d candidate slots, %d booked, %d available',
        doctor.id,
        slot_date,
        availability.total_slots,
        availability.booked_slots,
        len(availability.slots),
    )
    return doctor, availability


def check_create_conflict(
    db: Session,
    doctor_id: int,
    appointment_date: date,
    candidate_start: int,
    candidate_duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> ConflictResult:
    appointments = list_active_appointments(db, doctor_id, appointment_date, exclude_appointment_id)
    conflicting = find_conflict(candidate_start, candidate_duration_minutes, appointments)

    if conflicting is not None:
        logger.warning(
            'Booking for doctor %s on %s overlaps appointment %s at %s',
            doctor_id,
            appointment_date,
            conflicting.id,
            conflicting.appointment_time,
        )
        return ConflictResult.CONFLICT

    return ConflictResult.NO_CONFLICT


def create_appointment(
    db: Session,
    *,
    patient_id: int,
    doctor_id: int,
    appointment_date: date,
    appointment_time: str,
    duration_minutes: int,
    department: str,
    appointment_type: str,
    reason: str,
    status: str = 'scheduled',
    symptoms: list[str] | None = None,
    notes: str | None = None,
) -> Appointment:
    patient = db.query(User).filter(User.id == patient_id).first()
    if patient is None or patient.role != 'patient':
        raise InvalidReference('Invalid patient ID')

    doctor = lock_doctor(db, doctor_id)
    if doctor is None or not doctor.is_active:
        db.rollback()
        raise InvalidReference('Invalid doctor ID')

    candidate_start = parse_time_to_minutes(appointment_time)
    conflict = check_create_conflict(db, doctor.id, appointment_date, candidate_start, duration_minutes)
    if conflict is ConflictResult.CONFLICT:
        db.rollback()
        raise AppointmentConflict()

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        duration_minutes=duration_minutes,
        department=department,
        appointment_type=appointment_type,
        status=status,
        reason=reason,
        symptoms=symptoms or [],
        notes=notes,
    )
    db.add(appointment)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            'Unique slot constraint rejected booking for doctor %s on %s at %s',
            doctor_id,
            appointment_date,
            appointment_time,
        )
        raise AppointmentConflict() from exc

    db.refresh(appointment)
    logger.info(
        'Appointment %s booked: doctor=%s patient=%s %s %s (%d min)',
        appointment.id,
        doctor.id,
        patient.id,
        appointment_date,
        appointment_time,
        duration_minutes,
    )
    return appointment


def ensure_can_access(db: Session, appointment: Appointment, user: User) -> None:
    if user.role == 'admin':
        return
    if user.role == 'patient' and appointment.patient_id == user.id:
        return
    if user.role == 'doctor':
        doctor = get_doctor_for_user(db, user)
        if doctor is not None and appointment.doctor_id == doctor.id:
            return
    raise AccessDenied()


def get_appointment(db: Session, appointment_id: int, user: User) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise AppointmentNotFound()
    ensure_can_access(db, appointment, user)
    return appointment


def parse_date_range(value: str) -> tuple[date, date]:
    """Parse ``start,end`` (ISO dates, both inclusive)."""
    parts = [part.strip() for part in value.split(',')]
    try:
        start, end = (date.fromisoformat(part) for part in parts)
    except ValueError as exc:
        raise InvalidParameter('dateRange must be two ISO dates separated by a comma') from exc

    if start > end:
        raise InvalidParameter('dateRange start must not be after its end')
    return start, end


def _scope_filters(db: Session, user: User) -> list | None:
    """Filters limiting appointments to what ``user`` may see.

    ``None`` means the caller can see nothing (a doctor account with no profile).
    """
    if user.role == 'patient':
        return [Appointment.patient_id == user.id]
    if user.role == 'doctor':
        doctor = get_doctor_for_user(db, user)
        if doctor is None:
            return None
        return [Appointment.doctor_id == doctor.id]
    return []


def list_appointments(
    db: Session,
    user: User,
    *,
    status: str | None = None,
    appointment_date: date | None = None,
    date_range: tuple[date, date] | None = None,
    department: str | None = None,
    appointment_type: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Appointment], int]:
    filters = _scope_filters(db, user)
    if filters is None:
        return [], 0

    query = db.query(Appointment).filter(*filters)

    if status:
        query = query.filter(Appointment.status == status)
    if appointment_date:
        query = query.filter(Appointment.appointment_date == appointment_date)
    if date_range:
        query = query.filter(Appointment.appointment_date.between(*date_range))
    if department:
        query = query.filter(Appointment.department == department)
    if appointment_type:
        query = query.filter(Appointment.appointment_type == appointment_type)
    if search:
        query = query.filter(
            Appointment.reason.icontains(search, autoescape=True)
            | Appointment.notes.icontains(search, autoescape=True)
        )

    total = query.count()
    appointments = (
        query.order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return appointments, total


def update_appointment(db: Session, appointment_id: int, changes: dict, user: User) -> Appointment:
    """Apply ``changes`` (model field names) to an appointment.

    A reschedule, or a move back into an occupying status, runs the same
    conflict guard as a new booking under the doctor lock, ignoring the
    appointment being changed.
    """
    appointment = get_appointment(db, appointment_id, user)

    new_status = changes.get('status', appointment.status)
    reschedules = any(field in changes for field in ('appointment_date', 'appointment_time', 'duration_minutes'))
    reactivates = appointment.status not in OCCUPYING_STATUSES

    if new_status in OCCUPYING_STATUSES and (reschedules or reactivates):
        lock_doctor(db, appointment.doctor_id)
        conflict = check_create_conflict(
            db,
            appointment.doctor_id,
            changes.get('appointment_date', appointment.appointment_date),
            parse_time_to_minutes(changes.get('appointment_time', appointment.appointment_time)),
            changes.get('duration_minutes', appointment.duration_minutes),
            exclude_appointment_id=appointment.id,
        )
        if conflict is ConflictResult.CONFLICT:
            db.rollback()
            raise AppointmentConflict()

    for field, value in changes.items():
        setattr(appointment, field, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AppointmentConflict() from exc

    db.refresh(appointment)
    logger.info('Appointment %s updated by user %s: %s', appointment.id, user.id, sorted(changes))
    return appointment


def update_appointment_status(db: Session, appointment_id: int, new_status: str, user: User) -> Appointment:
    return update_appointment(db, appointment_id, {'status': new_status}, user)


def appointment_stats(db: Session, user: User, today: date | None = None) -> dict:
    """Counts and the next few bookings within the caller's scope."""
    today = today or date.today()
    filters = _scope_filters(db, user)
    if filters is None:
        return {
            'total_appointments': 0,
            'today_appointments': 0,
            'appointments_by_status': [],
            'appointments_by_department': [],
            'upcoming_appointments': [],
        }

    scoped = db.query(Appointment).filter(*filters)
    by_status = (
        db.query(Appointment.status, func.count(Appointment.id))
        .filter(*filters)
        .group_by(Appointment.status)
        .order_by(Appointment.status)
        .all()
    )
    by_department = (
        db.query(Appointment.department, func.count(Appointment.id))
        .filter(*filters)
        .group_by(Appointment.department)
        .order_by(Appointment.department)
        .all()
    )
    upcoming = (
        scoped.filter(
            Appointment.appointment_date >= today,
            Appointment.status.in_(('scheduled', 'confirmed')),
        )
        .order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc())
        .limit(5)
        .all()
    )

    return {
        'total_appointments': scoped.count(),
        'today_appointments': scoped.filter(Appointment.appointment_date == today).count(),
        'appointments_by_status': [{'status': status, 'count': count} for status, count in by_status],
        'appointments_by_department': [
            {'department': department, 'count': count} for department, count in by_department
        ],
        'upcoming_appointments': upcoming,
    }


def appointment_starts_at(appointment: Appointment) -> datetime:
    start_minutes = parse_time_to_minutes(appointment.appointment_time)
    return datetime.combine(appointment.appointment_date, datetime.min.time()) + timedelta(minutes=start_minutes)


def can_be_cancelled(appointment: Appointment, now: datetime | None = None) -> bool:
    now = now or datetime.now()
    notice = timedelta(hours=config.CANCELLATION_NOTICE_HOURS)
    return appointment.status == 'scheduled' and appointment_starts_at(appointment) - now > notice


def delete_appointment(db: Session, appointment_id: int, user: User, now: datetime | None = None) -> None:
    appointment = get_appointment(db, appointment_id, user)

    if not can_be_cancelled(appointment, now):
        raise CancellationNotAllowed(
            'Appointment cannot be cancelled. '
            f'It must be at least {config.CANCELLATION_NOTICE_HOURS} hours in advance.'
        )

    db.delete(appointment)
    db.commit()
    logger.info('Appointment %s deleted by user %s', appointment_id, user.id)
