"""Seed the database with demo users, doctors and appointments.

Usage:
    python -m backend.seed_data
"""
import logging
import sys
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError

from backend.database import Base, SessionLocal, engine
from backend.models.appointment import Appointment
from backend.models.doctor import Doctor
from backend.models.user import User

logger = logging.getLogger(__name__)

WEEKDAY_HOURS = {'is_available': True, 'start_time': '09:00', 'end_time': '17:00', 'slot_duration_minutes': 30, 'max_patients': 20}
DAY_OFF = {'is_available': False, 'max_patients': 10}

DEMO_USERS = [
    {'email': 'admin@healthhub.test', 'first_name': 'Ada', 'last_name': 'Admin', 'role': 'admin'},
    {'email': 'patient@healthhub.test', 'first_name': 'Pat', 'last_name': 'Patient', 'role': 'patient'},
    {'email': 'dr.smith@healthhub.test', 'first_name': 'John', 'last_name': 'Smith', 'role': 'doctor'},
    {'email': 'dr.lee@healthhub.test', 'first_name': 'Sarah', 'last_name': 'Lee', 'role': 'doctor'},
]

DEMO_DOCTORS = [
    {
        'email': 'dr.smith@healthhub.test',
        'name': 'Dr. John Smith',
        'phone': '+1-555-0101',
        'specialization': 'Cardiology',
        'department': 'Cardiology',
        'license_number': 'MD-CARD-0001',
        'experience_years': 12,
        'consultation_fee': 150,
        'availability': {
            'monday': WEEKDAY_HOURS,
            'tuesday': WEEKDAY_HOURS,
            'wednesday': WEEKDAY_HOURS,
            'thursday': WEEKDAY_HOURS,
            'friday': {**WEEKDAY_HOURS, 'end_time': '13:00'},
            'saturday': DAY_OFF,
            'sunday': DAY_OFF,
        },
    },
    {
        'email': 'dr.lee@healthhub.test',
        'name': 'Dr. Sarah Lee',
        'phone': '+1-555-0102',
        'specialization': 'Pediatrics',
        'department': 'Pediatrics',
        'license_number': 'MD-PED-0002',
        'experience_years': 7,
        'consultation_fee': 110,
        'availability': {
            'monday': {**WEEKDAY_HOURS, 'start_time': '08:00', 'end_time': '12:00', 'slot_duration_minutes': 20},
            'wednesday': {**WEEKDAY_HOURS, 'start_time': '13:00', 'end_time': '18:00'},
            'saturday': {**WEEKDAY_HOURS, 'start_time': '10:00', 'end_time': '14:00', 'max_patients': 10},
        },
    },
]


def _next_weekday(start: date, weekday: int) -> date:
    return start + timedelta(days=(weekday - start.weekday()) % 7 or 7)


def seed(db) -> None:
    users = {}
    for data in DEMO_USERS:
        existing = db.query(User).filter(User.email == data['email']).first()
        users[data['email']] = existing or User(hashed_password='', **data)
        db.add(users[data['email']])
    db.flush()

    doctors = {}
    for data in DEMO_DOCTORS:
        existing = db.query(Doctor).filter(Doctor.email == data['email']).first()
        doctors[data['email']] = existing or Doctor(user_id=users[data['email']].id, is_active=True, verified=True, **data)
        db.add(doctors[data['email']])
    db.flush()

    patient = users['patient@healthhub.test']
    cardiologist = doctors['dr.smith@healthhub.test']
    next_monday = _next_weekday(date.today(), 0)

    if not db.query(Appointment).filter(Appointment.patient_id == patient.id).first():
        db.add(
            Appointment(
                patient_id=patient.id,
                doctor_id=cardiologist.id,
                appointment_date=next_monday,
                appointment_time='10:00',
                duration_minutes=30,
                department='Cardiology',
                appointment_type='consultation',
                status='confirmed',
                reason='Chest pain follow-up',
                symptoms=['chest pain'],
            )
        )

    db.commit()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Seeding failed.')
        sys.exit(1)
    finally:
        db.close()

    logger.info('Seeded %d users and %d doctors.', len(DEMO_USERS), len(DEMO_DOCTORS))


if __name__ == '__main__':
    main()
