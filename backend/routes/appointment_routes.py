import logging
import math
from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user
from backend.core.exceptions import AccessDenied, MissingParameter
from backend.database import get_db
from backend.models.user import User
from backend.routes.dependencies import database_unavailable, ensure_database_ready
from backend.schemas.appointment import (
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatsResponse,
    CreateAppointmentRequest,
    DepartmentCount,
    StatusCount,
    UpdateAppointmentRequest,
    UpdateAppointmentStatusRequest,
)
from backend.schemas.common import CamelModel, Pagination
from backend.services import appointment_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=['appointments'])


class SlotListResponse(CamelModel):
    slots: list[str]
    date: str
    doctor: int


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    patient_id = data.patient
    if current_user.role == 'patient':
        if patient_id is not None and patient_id != current_user.id:
            raise AccessDenied('Patients can only book appointments for themselves.')
        patient_id = current_user.id
    elif patient_id is None:
        raise MissingParameter('Patient ID is required')

    ensure_database_ready()

    try:
        appointment = appointment_service.create_appointment(
            db,
            patient_id=patient_id,
            doctor_id=data.doctor,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            duration_minutes=data.duration,
            department=data.department,
            appointment_type=data.appointment_type,
            reason=data.reason,
            status=data.status or 'scheduled',
            symptoms=data.symptoms,
            notes=data.notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Creating appointment failed.')
        raise database_unavailable() from exc

    return AppointmentResponse.model_validate(appointment)


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    appointment_date: date | None = Query(default=None, alias='date'),
    department: str | None = Query(default=None),
    appointment_type: str | None = Query(default=None, alias='appointmentType'),
    date_range: str | None = Query(default=None, alias='dateRange'),
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed_range = appointment_service.parse_date_range(date_range) if date_range else None

    ensure_database_ready()

    try:
        appointments, total = appointment_service.list_appointments(
            db,
            current_user,
            status=appointment_status,
            appointment_date=appointment_date,
            date_range=parsed_range,
            department=department,
            appointment_type=appointment_type,
            search=search,
            page=page,
            limit=limit,
        )
    except SQLAlchemyError as exc:
        logger.exception('Listing appointments failed.')
        raise database_unavailable() from exc

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get('/available-slots', response_model=SlotListResponse, dependencies=[Depends(get_current_user)])
def list_available_slots(
    doctor: int | None = Query(default=None),
    slot_date: date | None = Query(default=None, alias='date'),
    duration: int = Query(default=30, ge=15, le=180),
    db: Session = Depends(get_db),
):
    if doctor is None or slot_date is None:
        raise MissingParameter('Doctor ID and date are required')

    ensure_database_ready()

    try:
        _, availability = appointment_service.get_available_slots(db, doctor, slot_date, duration)
    except SQLAlchemyError as exc:
        logger.exception('Computing available slots for doctor %s failed.', doctor)
        raise database_unavailable() from exc

    return SlotListResponse(slots=availability.slots, date=slot_date.isoformat(), doctor=doctor)


@router.get('/stats', response_model=AppointmentStatsResponse)
def get_appointment_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        stats = appointment_service.appointment_stats(db, current_user)
    except SQLAlchemyError as exc:
        logger.exception('Computing appointment statistics failed.')
        raise database_unavailable() from exc

    return AppointmentStatsResponse(
        total_appointments=stats['total_appointments'],
        today_appointments=stats['today_appointments'],
        appointments_by_status=[StatusCount(**item) for item in stats['appointments_by_status']],
        appointments_by_department=[DepartmentCount(**item) for item in stats['appointments_by_department']],
        upcoming_appointments=[
            AppointmentResponse.model_validate(appointment) for appointment in stats['upcoming_appointments']
        ],
    )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.get_appointment(db, appointment_id, current_user)
    except SQLAlchemyError as exc:
        logger.exception('Loading appointment %s failed.', appointment_id)
        raise database_unavailable() from exc

    return AppointmentResponse.model_validate(appointment)


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = data.changes()
    if current_user.role == 'patient' and changes.get('status', 'cancelled') != 'cancelled':
        raise AccessDenied('Patients can only cancel their appointments.')

    ensure_database_ready()

    try:
        appointment = appointment_service.update_appointment(db, appointment_id, changes, current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Updating appointment %s failed.', appointment_id)
        raise database_unavailable() from exc

    return AppointmentResponse.model_validate(appointment)


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == 'patient' and data.status != 'cancelled':
        raise AccessDenied('Patients can only cancel their appointments.')

    ensure_database_ready()

    try:
        appointment = appointment_service.update_appointment_status(db, appointment_id, data.status, current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Updating appointment %s failed.', appointment_id)
        raise database_unavailable() from exc

    return AppointmentResponse.model_validate(appointment)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment_service.delete_appointment(db, appointment_id, current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Deleting appointment %s failed.', appointment_id)
        raise database_unavailable() from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
