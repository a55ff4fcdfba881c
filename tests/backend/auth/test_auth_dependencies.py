import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from backend.auth import jwt_handler
from backend.auth.dependencies import get_current_user
from backend.routes.auth_routes import me


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trips_subject_and_role() -> None:
    token = jwt_handler.create_access_token(subject='patient@example.com', role='patient')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'patient@example.com'
    assert payload['role'] == 'patient'


def test_get_current_user_resolves_token_subject(appointment_db, patient) -> None:
    token = jwt_handler.create_access_token(subject='PATIENT@example.com')

    user = get_current_user(credentials=_credentials(token), db=appointment_db)

    assert user.id == patient.id
    assert me(current_user=user) == {
        'id': patient.id,
        'email': 'patient@example.com',
        'role': 'patient',
        'firstName': 'Pat',
        'lastName': 'Ient',
    }


def test_get_current_user_rejects_garbage_token(appointment_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials('not-a-token'), db=appointment_db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_unknown_user(appointment_db) -> None:
    token = jwt_handler.create_access_token(subject='ghost@example.com')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials(token), db=appointment_db)

    assert exception_info.value.detail == 'User not found'
