"""
Tests de la passerelle de persistance des pointages (SQLite).
Contrainte UNIQUE de déduplication, mise à jour conditionnelle, import tout-ou-rien.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from woti_attendance.models.attendance import Attendance
from woti_attendance.repositories.attendance_repository import AttendanceRepository
from woti_attendance.services.sync_errors import DuplicateRecordError, StaleRecordError

T = datetime(2026, 3, 2, 8, 0, 0, tzinfo=timezone.utc)


def make_attendance(user, facility, device_id="tablet-01", client_timestamp=T, clock_in=T, **kwargs):
    return Attendance(
        user_id=user.id,
        facility_id=facility.id,
        clock_in=clock_in,
        device_id=device_id,
        client_timestamp=client_timestamp,
        sync_version=kwargs.pop("sync_version", 1),
        status=kwargs.pop("status", "clocked_in"),
        synced=True,
        **kwargs,
    )


def insert(db, attendance):
    repo = AttendanceRepository(db)
    with repo.transaction():
        return repo.insert(attendance)


def test_insertion_et_recherche_par_cle(db_session, staff_user, facility):
    created = insert(db_session, make_attendance(staff_user, facility))
    repo = AttendanceRepository(db_session)

    found = repo.find_by_device_and_client_timestamp("tablet-01", T)

    assert found.id == created.id
    assert found.server_timestamp is not None
    assert repo.find_by_device_and_client_timestamp("tablet-02", T) is None
    assert repo.find_by_device_and_client_timestamp("tablet-01", T + timedelta(seconds=1)) is None


def test_cle_dupliquee_refusee(db_session, staff_user, facility):
    insert(db_session, make_attendance(staff_user, facility))

    with pytest.raises(DuplicateRecordError):
        insert(db_session, make_attendance(staff_user, facility, clock_in=T + timedelta(hours=1)))

    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 1


def test_mise_a_jour_conditionnelle(db_session, staff_user, facility):
    created = insert(db_session, make_attendance(staff_user, facility))
    repo = AttendanceRepository(db_session)

    with repo.transaction():
        updated = repo.update_in_place(
            created.id, {"notes": "corrigé", "sync_version": 2}, expected_version=1
        )

    assert updated.notes == "corrigé"
    assert updated.sync_version == 2


def test_mise_a_jour_version_perimee(db_session, staff_user, facility):
    """Un écrivain concurrent a déjà incrémenté la version : aucune ligne touchée."""
    created = insert(db_session, make_attendance(staff_user, facility, sync_version=3))
    repo = AttendanceRepository(db_session)

    with pytest.raises(StaleRecordError):
        with repo.transaction():
            repo.update_in_place(created.id, {"notes": "trop tard", "sync_version": 3}, expected_version=2)

    db_session.expire_all()
    row = repo.find_by_id(created.id)
    assert row.notes is None
    assert row.sync_version == 3


def test_mise_a_jour_champ_non_modifiable(db_session, staff_user, facility):
    created = insert(db_session, make_attendance(staff_user, facility))

    with pytest.raises(ValueError, match="device_id"):
        AttendanceRepository(db_session).update_in_place(
            created.id, {"device_id": "autre"}, expected_version=1
        )


def test_import_groupe_tout_ou_rien(db_session, staff_user, facility):
    insert(db_session, make_attendance(staff_user, facility))
    batch = [
        make_attendance(staff_user, facility, device_id="tablet-02"),
        make_attendance(staff_user, facility),
    ]

    with pytest.raises(DuplicateRecordError):
        AttendanceRepository(db_session).bulk_insert(batch)

    assert db_session.execute(select(func.count()).select_from(Attendance)).scalar() == 1


def test_historique_pagine_et_filtre(db_session, staff_user, other_user, facility):
    for hours in range(3):
        ts = T + timedelta(days=hours)
        insert(db_session, make_attendance(staff_user, facility, client_timestamp=ts, clock_in=ts))
    insert(db_session, make_attendance(other_user, facility, device_id="tablet-09"))
    repo = AttendanceRepository(db_session)

    page = repo.find_by_user(staff_user.id, limit=2, offset=0)
    assert [r.clock_in.day for r in page] == [4, 3]
    assert repo.count_by_user(staff_user.id) == 3
    assert repo.count_by_user(staff_user.id, start_date=T + timedelta(days=1)) == 2
    assert repo.count_by_user(staff_user.id, end_date=T) == 1
    assert repo.count_by_user(staff_user.id, status="clocked_out") == 0


def test_pointage_actif(db_session, staff_user, facility):
    repo = AttendanceRepository(db_session)
    assert repo.find_active_for_user(staff_user.id) is None

    created = insert(db_session, make_attendance(staff_user, facility))

    assert repo.find_active_for_user(staff_user.id).id == created.id


def test_cloture_des_pointages_oublies(db_session, staff_user, facility):
    old = insert(db_session, make_attendance(staff_user, facility, clock_in=T))
    recent = insert(db_session, make_attendance(
        staff_user, facility, device_id="tablet-02", clock_in=T + timedelta(hours=20)
    ))
    repo = AttendanceRepository(db_session)

    with repo.transaction():
        closed = repo.close_stale_sessions(T + timedelta(hours=17))

    assert closed == 1
    db_session.expire_all()
    assert repo.find_by_id(old.id).status == "incomplete"
    assert repo.find_by_id(old.id).sync_version == 2
    assert repo.find_by_id(recent.id).status == "clocked_in"
