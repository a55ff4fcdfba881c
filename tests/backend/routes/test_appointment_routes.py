from datetime import date

import pytest
from pydantic import ValidationError

from backend.auth.dependencies import get_current_user
from backend.core.exceptions import AccessDenied, AppointmentConflict, InvalidParameter, MissingParameter
from backend.routes.appointment_routes import (
    create_appointment,
    get_appointment,
    get_appointment_stats,
    list_appointments,
    list_available_slots,
    router,
    update_appointment,
    update_appointment_status,
)
from backend.schemas.appointment import (
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
    UpdateAppointmentStatusRequest,
)

MONDAY = date(2026, 1, 5)


def _request(**overrides) -> CreateAppointmentRequest:
    payload = {
        'doctor': 1,
        'appointmentDate': '2026-01-05',
        'appointmentTime': '10:00',
        'duration': 30,
        'department': 'General Medicine',
        'appointmentType': 'Consultation',
        'reason': ' Recurring headache ',
    }
    payload.update(overrides)
    return CreateAppointmentRequest(**payload)


def test_create_appointment_request_accepts_camel_case_and_normalizes() -> None:
    request = _request(appointmentTime='9:30', symptoms=[' fever ', ''])

    assert request.appointment_date == MONDAY
    assert request.appointment_time == '09:30'
    assert request.appointment_type == 'consultation'
    assert request.reason == 'Recurring headache'
    assert request.symptoms == ['fever']


@pytest.mark.parametrize(
    'overrides',
    [
        {'appointmentTime': '25:00'},
        {'duration': 10},
        {'duration': 240},
        {'appointmentType': 'spa-day'},
        {'reason': '   '},
        {'reason': 'Too short'},
        {'department': 'Astrology'},
        {'status': 'lost'},
    ],
)
def test_create_appointment_request_rejects_invalid_fields(overrides) -> None:
    with pytest.raises(ValidationError):
        _request(**overrides)


def test_patient_books_for_themself(appointment_db, patient, doctor) -> None:
    response = create_appointment(data=_request(doctor=doctor.id), db=appointment_db, current_user=patient)
    body = response.model_dump(by_alias=True)

    assert body['patientId'] == patient.id
    assert body['doctorId'] == doctor.id
    assert body['appointmentTime'] == '10:00'
    assert body['status'] == 'scheduled'


def test_patient_cannot_book_for_someone_else(appointment_db, patient, doctor) -> None:
    with pytest.raises(AccessDenied):
        create_appointment(data=_request(doctor=doctor.id, patient=patient.id + 100), db=appointment_db, current_user=patient)


def test_admin_must_name_the_patient(appointment_db, admin, doctor) -> None:
    with pytest.raises(MissingParameter):
        create_appointment(data=_request(doctor=doctor.id), db=appointment_db, current_user=admin)


def test_booking_an_exact_slot_twice_conflicts(appointment_db, patient, doctor, book) -> None:
    book('10:00')

    with pytest.raises(AppointmentConflict) as exception_info:
        create_appointment(data=_request(doctor=doctor.id), db=appointment_db, current_user=patient)

    assert exception_info.value.message == 'Doctor has a conflicting appointment at this time'


def test_booking_an_overlapping_slot_conflicts(appointment_db, patient, doctor, book) -> None:
    book('10:00')

    with pytest.raises(AppointmentConflict):
        create_appointment(data=_request(doctor=doctor.id, appointmentTime='10:15'), db=appointment_db, current_user=patient)


def test_list_available_slots_requires_doctor_and_date(patient) -> None:
    with pytest.raises(MissingParameter) as exception_info:
        list_available_slots(doctor=None, slot_date=MONDAY, duration=30, db=None)

    assert exception_info.value.message == 'Doctor ID and date are required'


def test_list_available_slots_uses_requested_duration(appointment_db, patient, doctor, book) -> None:
    book('10:00')

    response = list_available_slots(doctor=doctor.id, slot_date=MONDAY, duration=60, db=appointment_db)

    assert response.slots == ['09:00', '10:30', '11:00', '11:30']
    assert response.doctor == doctor.id


def test_list_appointments_paginates(appointment_db, admin, book) -> None:
    book('09:00')
    book('09:30')
    book('10:00')

    response = list_appointments(
        appointment_status=None,
        appointment_date=MONDAY,
        department=None,
        appointment_type=None,
        date_range=None,
        search=None,
        page=1,
        limit=2,
        db=appointment_db,
        current_user=admin,
    )

    assert [item.appointment_time for item in response.appointments] == ['09:00', '09:30']
    assert response.pagination.total == 3
    assert response.pagination.pages == 2


def test_doctor_can_view_own_appointment(appointment_db, doctor_user, book) -> None:
    appointment = book('11:00')

    response = get_appointment(appointment_id=appointment.id, db=appointment_db, current_user=doctor_user)

    assert response.id == appointment.id


def test_patient_may_only_cancel_through_status_update(appointment_db, patient, book) -> None:
    appointment = book('11:00')

    with pytest.raises(AccessDenied):
        update_appointment_status(
            appointment_id=appointment.id,
            data=UpdateAppointmentStatusRequest(status='completed'),
            db=appointment_db,
            current_user=patient,
        )

    response = update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateAppointmentStatusRequest(status='Cancelled'),
        db=appointment_db,
        current_user=patient,
    )
    assert response.status == 'cancelled'


def _list(db, user, **filters):
    params = {
        'appointment_status': None,
        'appointment_date': None,
        'department': None,
        'appointment_type': None,
        'date_range': None,
        'search': None,
        'page': 1,
        'limit': 10,
    }
    params.update(filters)
    return list_appointments(db=db, current_user=user, **params)


def test_list_appointments_filters_by_date_range(appointment_db, admin, book) -> None:
    book('09:00', on=date(2026, 1, 5))
    book('09:00', on=date(2026, 1, 7))
    book('09:00', on=date(2026, 1, 12))

    response = _list(appointment_db, admin, date_range='2026-01-05,2026-01-07')

    assert [item.appointment_date for item in response.appointments] == [date(2026, 1, 5), date(2026, 1, 7)]


@pytest.mark.parametrize('date_range', ['2026-01-05', '2026-01-07,2026-01-05', 'yesterday,today'])
def test_list_appointments_rejects_malformed_date_range(appointment_db, admin, date_range: str) -> None:
    with pytest.raises(InvalidParameter):
        _list(appointment_db, admin, date_range=date_range)


def test_list_appointments_searches_reason_and_notes(appointment_db, admin, book) -> None:
    by_reason = book('09:00')
    by_reason.reason = 'Migraine since Tuesday'
    by_notes = book('10:00')
    by_notes.notes = 'History of MIGRAINE'
    book('11:00')
    appointment_db.commit()

    response = _list(appointment_db, admin, search='migraine')

    assert sorted(item.id for item in response.appointments) == sorted([by_reason.id, by_notes.id])


def test_reschedule_moves_appointment_to_free_time(appointment_db, patient, book) -> None:
    appointment = book('10:00', status='scheduled')

    response = update_appointment(
        appointment_id=appointment.id,
        data=UpdateAppointmentRequest(appointmentTime='10:15', duration=45),
        db=appointment_db,
        current_user=patient,
    )

    assert response.appointment_time == '10:15'
    assert response.duration_minutes == 45


def test_reschedule_onto_a_booked_time_conflicts(appointment_db, patient, book) -> None:
    book('11:00')
    appointment = book('09:00', status='scheduled')

    with pytest.raises(AppointmentConflict):
        update_appointment(
            appointment_id=appointment.id,
            data=UpdateAppointmentRequest(appointmentTime='10:45'),
            db=appointment_db,
            current_user=patient,
        )

    appointment_db.refresh(appointment)
    assert appointment.appointment_time == '09:00'


def test_patient_cannot_confirm_through_update(appointment_db, patient, book) -> None:
    appointment = book('09:00', status='scheduled')

    with pytest.raises(AccessDenied):
        update_appointment(
            appointment_id=appointment.id,
            data=UpdateAppointmentRequest(status='confirmed'),
            db=appointment_db,
            current_user=patient,
        )


def test_update_request_rejects_invalid_fields() -> None:
    with pytest.raises(ValidationError):
        UpdateAppointmentRequest(reason='short')
    with pytest.raises(ValidationError):
        UpdateAppointmentRequest(department='Astrology')


def test_appointment_stats_count_the_callers_bookings(appointment_db, patient, book) -> None:
    book('09:00', on=date.today())
    book('10:00', status='cancelled', on=date.today())

    response = get_appointment_stats(db=appointment_db, current_user=patient)

    assert response.total_appointments == 2
    assert response.today_appointments == 2
    assert [(item.status, item.count) for item in response.appointments_by_status] == [('cancelled', 1), ('confirmed', 1)]
    assert [(item.department, item.count) for item in response.appointments_by_department] == [('General Medicine', 2)]
    assert [item.appointment_time for item in response.upcoming_appointments] == ['09:00']

def test_available_slots_route_requires_a_logged_in_caller() -> None:
    route = next(route for route in router.routes if route.path == '/available-slots')

    assert get_current_user in [dependency.dependency for dependency in route.dependencies]
