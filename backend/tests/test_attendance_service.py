"""
Tests du service des pointages en ligne (SQLite) : entrée, sortie,
historique, clôture automatique, file de revue.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from woti_attendance.models.activity import Activity
from woti_attendance.models.attendance import Attendance
from woti_attendance.schemas.attendance import ClockInRequest, ClockOutRequest
from woti_attendance.services import attendance_service
from woti_attendance.services.sync_service import sync_batch

T = datetime(2026, 3, 2, 8, 0, 0, tzinfo=timezone.utc)


def clock_in_request(facility, **kwargs) -> ClockInRequest:
    return ClockInRequest(facility_id=facility.id, **kwargs)


def actions(db):
    return sorted(a.action for a in db.execute(select(Activity)).scalars())


# ============================================================
# Pointage d'entrée
# ============================================================

def test_clock_in(db_session, staff_user, facility):
    result = attendance_service.clock_in(
        db_session, staff_user.id,
        clock_in_request(facility, latitude=-6.8, longitude=39.28, clock_in=T),
    )

    assert result.status == "clocked_in"
    assert result.sync_version == 1
    assert result.synced is True
    assert result.clock_in == T
    assert result.clock_in_latitude == pytest.approx(-6.8)
    assert actions(db_session) == ["CLOCK_IN"]


def test_clock_in_heure_serveur_par_defaut(db_session, staff_user, facility):
    before = datetime.now(timezone.utc)
    result = attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility))
    assert result.clock_in >= before - timedelta(seconds=1)


def test_clock_in_deja_pointe(db_session, staff_user, facility):
    attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility))

    with pytest.raises(ValueError, match="déjà pointé"):
        attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility))

    assert len(db_session.execute(select(Attendance)).scalars().all()) == 1


def test_clock_in_etablissement_inactif(db_session, staff_user, inactive_facility):
    with pytest.raises(ValueError, match="introuvable"):
        attendance_service.clock_in(db_session, staff_user.id, clock_in_request(inactive_facility))


def test_clock_in_coordonnees_incompletes():
    with pytest.raises(ValueError):
        ClockInRequest(facility_id=uuid.uuid4(), latitude=-6.8)


# ============================================================
# Pointage de sortie
# ============================================================

def test_clock_out(db_session, staff_user, facility):
    opened = attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility, clock_in=T))

    result = attendance_service.clock_out(
        db_session, staff_user.id, ClockOutRequest(clock_out=T + timedelta(hours=8), notes="RAS")
    )

    assert result.id == opened.id
    assert result.status == "clocked_out"
    assert result.clock_out == T + timedelta(hours=8)
    assert result.sync_version == 2
    assert result.notes == "RAS"
    assert actions(db_session) == ["CLOCK_IN", "CLOCK_OUT"]


def test_clock_out_par_identifiant(db_session, staff_user, facility):
    opened = attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility, clock_in=T))

    result = attendance_service.clock_out(
        db_session, staff_user.id,
        ClockOutRequest(attendance_id=opened.id, clock_out=T + timedelta(hours=1)),
    )

    assert result.id == opened.id


def test_clock_out_sans_pointage_ouvert(db_session, staff_user, facility):
    with pytest.raises(ValueError, match="introuvable"):
        attendance_service.clock_out(db_session, staff_user.id, ClockOutRequest())


def test_clock_out_pointage_d_un_autre(db_session, staff_user, other_user, facility):
    opened = attendance_service.clock_in(db_session, other_user.id, clock_in_request(facility, clock_in=T))

    with pytest.raises(PermissionError):
        attendance_service.clock_out(db_session, staff_user.id, ClockOutRequest(attendance_id=opened.id))


def test_clock_out_deja_cloture(db_session, staff_user, facility):
    opened = attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility, clock_in=T))
    request = ClockOutRequest(attendance_id=opened.id, clock_out=T + timedelta(hours=8))
    attendance_service.clock_out(db_session, staff_user.id, request)

    with pytest.raises(ValueError, match="déjà clôturé"):
        attendance_service.clock_out(db_session, staff_user.id, request)


def test_clock_out_avant_clock_in(db_session, staff_user, facility):
    attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility, clock_in=T))

    with pytest.raises(ValueError, match="postérieure"):
        attendance_service.clock_out(db_session, staff_user.id, ClockOutRequest(clock_out=T))


# ============================================================
# Historique
# ============================================================

def open_and_close(db, user, facility, start):
    attendance_service.clock_in(db, user.id, clock_in_request(facility, clock_in=start))
    attendance_service.clock_out(db, user.id, ClockOutRequest(clock_out=start + timedelta(hours=8)))


def test_historique_pagine(db_session, staff_user, facility):
    for day in range(3):
        open_and_close(db_session, staff_user, facility, T + timedelta(days=day))

    history = attendance_service.get_user_attendance(db_session, staff_user.id, page=1, limit=2)

    assert len(history.records) == 2
    assert history.records[0].clock_in == T + timedelta(days=2)
    assert (history.pagination.total, history.pagination.pages) == (3, 2)

    last = attendance_service.get_user_attendance(db_session, staff_user.id, page=2, limit=2)
    assert [r.clock_in for r in last.records] == [T]


def test_historique_filtre_par_statut(db_session, staff_user, facility):
    open_and_close(db_session, staff_user, facility, T)
    attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility, clock_in=T + timedelta(days=1)))

    history = attendance_service.get_user_attendance(db_session, staff_user.id, status="clocked_in")

    assert history.pagination.total == 1
    assert history.records[0].status == "clocked_in"


def test_historique_taille_de_page_plafonnee(db_session, staff_user):
    history = attendance_service.get_user_attendance(db_session, staff_user.id, limit=10_000)
    assert history.pagination.limit == 100
    assert history.pagination.pages == 0


# ============================================================
# Clôture automatique et file de revue
# ============================================================

def test_cloture_des_pointages_oublies(db_session, staff_user, other_user, facility):
    attendance_service.clock_in(db_session, staff_user.id, clock_in_request(facility, clock_in=T))
    attendance_service.clock_in(
        db_session, other_user.id, clock_in_request(facility, clock_in=T + timedelta(hours=10))
    )

    closed = attendance_service.close_stale_sessions(db_session, now=T + timedelta(hours=17))

    assert closed == 1
    history = attendance_service.get_user_attendance(db_session, staff_user.id)
    assert history.records[0].status == "incomplete"
    assert history.records[0].sync_version == 2
    assert attendance_service.get_user_attendance(db_session, other_user.id).records[0].status == "clocked_in"


def test_conflits_en_attente(db_session, staff_user, other_user, facility):
    record = {
        "facilityId": str(facility.id),
        "clockIn": T.isoformat(),
        "deviceId": "tablet-01",
        "clientTimestamp": T.isoformat(),
    }
    sync_batch(db_session, staff_user.id, [record])
    sync_batch(db_session, staff_user.id, [
        dict(record, clockIn=(T + timedelta(minutes=5)).isoformat(), conflictResolutionStrategy="manual"),
    ])

    pending = attendance_service.list_pending_conflicts(db_session, staff_user.id)

    assert len(pending) == 1
    assert pending[0].status == "pending_review"
    assert pending[0].incoming_payload["conflictResolutionStrategy"] == "manual"
    assert attendance_service.list_pending_conflicts(db_session, other_user.id) == []
