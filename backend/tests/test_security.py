"""
Tests de la vérification des jetons JWT et de la dépendance d'authentification.
"""

import uuid
from unittest.mock import patch

import jwt
import pytest

from woti_attendance.config import settings
from woti_attendance.security import create_access_token, decode_access_token

CONFLICTS_URL = "/api/v1/attendance/sync/conflicts"


def test_jeton_valide():
    user_id = uuid.uuid4()
    payload = decode_access_token(create_access_token(user_id))
    assert payload["sub"] == str(user_id)


def test_jeton_expire():
    token = create_access_token(uuid.uuid4(), expires_in_seconds=-10)
    with pytest.raises(ValueError, match="expiré"):
        decode_access_token(token)


def test_jeton_mauvaise_signature():
    token = jwt.encode({"sub": str(uuid.uuid4())}, "une-autre-cle", algorithm=settings.ALGORITHM)
    with pytest.raises(ValueError, match="invalide"):
        decode_access_token(token)


def test_api_jeton_valide(anon_client):
    user_id = uuid.uuid4()
    token = create_access_token(user_id)

    with patch("woti_attendance.routers.sync.attendance_service.list_pending_conflicts") as mock:
        mock.return_value = []
        response = anon_client.get(CONFLICTS_URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert mock.call_args.args[1] == user_id


def test_api_sans_jeton(anon_client):
    response = anon_client.get(CONFLICTS_URL)
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentification requise."


def test_api_jeton_expire(anon_client):
    token = create_access_token(uuid.uuid4(), expires_in_seconds=-10)
    response = anon_client.get(CONFLICTS_URL, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Jeton expiré."


def test_api_sujet_non_uuid(anon_client):
    token = jwt.encode({"sub": "amina"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    response = anon_client.get(CONFLICTS_URL, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
