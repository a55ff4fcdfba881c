import logging
import math
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.exceptions import MissingParameter
from backend.database import get_db
from backend.models.doctor import Doctor
from backend.models.user import User
from backend.routes.dependencies import database_unavailable, ensure_database_ready, require_admin
from backend.schemas.common import Pagination
from backend.schemas.doctor import (
    AvailableSlotsResponse,
    CreateDoctorRequest,
    DoctorListResponse,
    DoctorResponse,
    DoctorStatsResponse,
    DoctorSummary,
    UpdateDoctorRequest,
)
from backend.services import appointment_service, doctor_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=['doctors'])


@router.get('', response_model=DoctorListResponse)
def list_doctors(
    specialization: str | None = Query(default=None),
    department: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Doctor).filter(Doctor.is_active.is_(True))
        if specialization:
            query = query.filter(Doctor.specialization == specialization)
        if department:
            query = query.filter(Doctor.department == department)

        total = query.count()
        doctors = (
            query.order_by(Doctor.experience_years.desc(), Doctor.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return DoctorListResponse(
            doctors=[DoctorResponse.model_validate(doctor) for doctor in doctors],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )
    except SQLAlchemyError as exc:
        logger.exception('Listing doctors failed.')
        raise database_unavailable() from exc


@router.get('/stats', response_model=DoctorStatsResponse)
def get_doctor_stats(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return DoctorStatsResponse.model_validate(doctor_service.doctor_stats(db))
    except SQLAlchemyError as exc:
        logger.exception('Computing doctor statistics failed.')
        raise database_unavailable() from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return DoctorResponse.model_validate(appointment_service.get_doctor(db, doctor_id))
    except SQLAlchemyError as exc:
        logger.exception('Loading doctor %s failed.', doctor_id)
        raise database_unavailable() from exc


@router.get('/{doctor_id}/available-slots', response_model=AvailableSlotsResponse)
def get_available_slots(
    doctor_id: int,
    slot_date: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
):
    if slot_date is None:
        raise MissingParameter('Date is required')

    ensure_database_ready()

    try:
        doctor, availability = appointment_service.get_available_slots(db, doctor_id, slot_date)
    except SQLAlchemyError as exc:
        logger.exception('Computing available slots for doctor %s failed.', doctor_id)
        raise database_unavailable() from exc

    return AvailableSlotsResponse(
        doctor=DoctorSummary.model_validate(doctor),
        date=slot_date.isoformat(),
        available_slots=availability.slots,
        total_slots=availability.total_slots,
        booked_slots=availability.booked_slots,
    )


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    data: CreateDoctorRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    ensure_database_ready()

    availability = None
    if data.availability is not None:
        availability = {day: schedule.model_dump() for day, schedule in data.availability.items()}

    doctor = Doctor(
        user_id=data.user_id,
        name=data.name,
        email=data.email,
        phone=data.phone,
        specialization=data.specialization,
        department=data.department,
        license_number=data.license_number,
        experience_years=data.experience_years,
        consultation_fee=data.consultation_fee,
        availability=availability,
        is_active=True,
        verified=False,
    )

    try:
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='A doctor with this email or license number already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Creating doctor failed.')
        raise database_unavailable() from exc

    logger.info('Doctor %s created by admin %s', doctor.id, current_user.id)
    return DoctorResponse.model_validate(doctor)


@router.put('/{doctor_id}', response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    data: UpdateDoctorRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    ensure_database_ready()

    try:
        doctor = doctor_service.update_doctor(db, doctor_id, data.changes())
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='A doctor with this email or license number already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Updating doctor %s failed.', doctor_id)
        raise database_unavailable() from exc

    logger.info('Doctor %s updated by admin %s', doctor.id, current_user.id)
    return DoctorResponse.model_validate(doctor)


@router.delete('/{doctor_id}', dependencies=[Depends(require_admin)])
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        deleted = doctor_service.remove_doctor(db, doctor_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Deleting doctor %s failed.', doctor_id)
        raise database_unavailable() from exc

    if deleted:
        return {'message': 'Doctor deleted successfully'}
    return {'message': 'Doctor deactivated; existing appointments were kept'}
