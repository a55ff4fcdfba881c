import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from backend import database

EXISTING_APPOINTMENTS_TABLE = (
    'CREATE TABLE appointments ('
    'id INTEGER PRIMARY KEY, doctor_id INTEGER, appointment_date DATE, '
    'appointment_time VARCHAR(5), status VARCHAR NOT NULL)'
)


@pytest.fixture
def bare_engine(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
    monkeypatch.setattr(database, 'engine', engine)
    monkeypatch.setattr(database, '_appointment_schema_checked', False)
    monkeypatch.setattr(database, '_doctor_schema_checked', False)
    yield engine
    engine.dispose()


def test_existing_appointments_table_gains_slot_indexes_only(bare_engine) -> None:
    with bare_engine.begin() as connection:
        connection.execute(text(EXISTING_APPOINTMENTS_TABLE))

    database.ensure_appointment_schema()

    inspector = inspect(bare_engine)
    index_names = {index['name'] for index in inspector.get_indexes('appointments')}
    column_names = [column['name'] for column in inspector.get_columns('appointments')]

    assert {'idx_appointments_doctor_date', 'uq_appointments_doctor_slot_active'} <= index_names
    assert column_names == ['id', 'doctor_id', 'appointment_date', 'appointment_time', 'status']


def test_slot_index_only_covers_occupying_statuses(bare_engine) -> None:
    insert = text(
        'INSERT INTO appointments (doctor_id, appointment_date, appointment_time, status) '
        "VALUES (1, '2026-01-05', '10:00', :status)"
    )
    with bare_engine.begin() as connection:
        connection.execute(text(EXISTING_APPOINTMENTS_TABLE))

    database.ensure_appointment_schema()

    with bare_engine.begin() as connection:
        connection.execute(insert, {'status': 'cancelled'})
        connection.execute(insert, {'status': 'confirmed'})

    with pytest.raises(IntegrityError):
        with bare_engine.begin() as connection:
            connection.execute(insert, {'status': 'scheduled'})


def test_schema_checks_skip_missing_tables(bare_engine) -> None:
    database.ensure_doctor_schema()
    database.ensure_appointment_schema()

    assert inspect(bare_engine).get_table_names() == []
