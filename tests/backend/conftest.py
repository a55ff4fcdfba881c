import os
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402
from backend.models.doctor import Doctor  # noqa: E402
from backend.models.user import User  # noqa: E402

# 2026-01-05 is a Monday.
MONDAY = date(2026, 1, 5)
SATURDAY = date(2026, 1, 10)

MORNING_SCHEDULE = {
    'monday': {'is_available': True, 'start_time': '09:00', 'end_time': '12:00', 'slot_duration_minutes': 30},
    'saturday': {'is_available': False, 'start_time': '09:00', 'end_time': '12:00'},
}


@pytest.fixture
def appointment_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, Doctor.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.doctor_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('backend.routes.appointment_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def patient(appointment_db) -> User:
    user = User(email='patient@example.com', hashed_password='', first_name='Pat', last_name='Ient', role='patient')
    appointment_db.add(user)
    appointment_db.commit()
    appointment_db.refresh(user)
    return user


@pytest.fixture
def doctor_user(appointment_db) -> User:
    user = User(email='doctor@example.com', hashed_password='', first_name='Greg', last_name='House', role='doctor')
    appointment_db.add(user)
    appointment_db.commit()
    appointment_db.refresh(user)
    return user


@pytest.fixture
def admin(appointment_db) -> User:
    user = User(email='admin@example.com', hashed_password='', first_name='Ada', last_name='Min', role='admin')
    appointment_db.add(user)
    appointment_db.commit()
    appointment_db.refresh(user)
    return user


@pytest.fixture
def doctor(appointment_db, doctor_user) -> Doctor:
    record = Doctor(
        user_id=doctor_user.id,
        name='Dr. Gregory House',
        email='house@example.com',
        phone='555-0100',
        specialization='General Medicine',
        department='General Medicine',
        license_number='LIC-001',
        experience_years=20,
        consultation_fee=120.0,
        availability=MORNING_SCHEDULE,
        is_active=True,
        verified=True,
    )
    appointment_db.add(record)
    appointment_db.commit()
    appointment_db.refresh(record)
    return record


@pytest.fixture
def book(appointment_db, patient, doctor):
    def _book(appointment_time: str, *, status: str = 'confirmed', duration: int = 30, on: date = MONDAY) -> Appointment:
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=on,
            appointment_time=appointment_time,
            duration_minutes=duration,
            department='General Medicine',
            appointment_type='consultation',
            status=status,
            reason='Check-up',
        )
        appointment_db.add(appointment)
        appointment_db.commit()
        appointment_db.refresh(appointment)
        return appointment

    return _book
