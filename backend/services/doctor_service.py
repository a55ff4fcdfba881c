import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.models.doctor import Doctor
from backend.services.appointment_service import get_doctor

logger = logging.getLogger(__name__)


def update_doctor(db: Session, doctor_id: int, changes: dict) -> Doctor:
    doctor = get_doctor(db, doctor_id)

    for field, value in changes.items():
        setattr(doctor, field, value)

    db.commit()
    db.refresh(doctor)
    logger.info('Doctor %s updated: %s', doctor.id, sorted(changes))
    return doctor


def remove_doctor(db: Session, doctor_id: int) -> bool:
    """Delete a doctor, or deactivate one that still has appointments.

    Returns ``True`` when the row was deleted. A deactivated doctor drops out of
    listings and can no longer be booked, while past bookings keep their
    doctor reference.
    """
    doctor = get_doctor(db, doctor_id)

    has_appointments = db.query(Appointment.id).filter(Appointment.doctor_id == doctor.id).first() is not None
    if has_appointments:
        doctor.is_active = False
        db.commit()
        logger.info('Doctor %s deactivated; appointments reference it', doctor_id)
        return False

    db.delete(doctor)
    db.commit()
    logger.info('Doctor %s deleted', doctor_id)
    return True


def doctor_stats(db: Session) -> dict:
    total, avg_experience, avg_fee = (
        db.query(
            func.count(Doctor.id),
            func.avg(Doctor.experience_years),
            func.avg(Doctor.consultation_fee),
        )
        .filter(Doctor.is_active.is_(True))
        .one()
    )

    count = func.count(Doctor.id)
    specializations = (
        db.query(Doctor.specialization, count)
        .filter(Doctor.is_active.is_(True))
        .group_by(Doctor.specialization)
        .order_by(count.desc(), Doctor.specialization.asc())
        .all()
    )

    return {
        'overall': {
            'total_doctors': total,
            'avg_experience': float(avg_experience or 0),
            'avg_consultation_fee': float(avg_fee or 0),
        },
        'specializations': [
            {'specialization': specialization, 'count': value} for specialization, value in specializations
        ],
    }
