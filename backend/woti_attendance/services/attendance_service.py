"""
Service métier des pointages en ligne : entrée, sortie, historique.
Clôture automatique des pointages restés ouverts (tâche planifiée).
"""

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from woti_attendance.config import settings
from woti_attendance.datetime_utils import as_utc, utc_now
from woti_attendance.models.attendance import STATUS_CLOCKED_IN, STATUS_CLOCKED_OUT, Attendance
from woti_attendance.repositories.attendance_repository import AttendanceRepository
from woti_attendance.repositories.conflict_repository import ConflictRepository
from woti_attendance.repositories.facility_repository import FacilityRepository
from woti_attendance.schemas.attendance import (
    AttendanceHistory,
    AttendanceRecordOut,
    ClockInRequest,
    ClockOutRequest,
    Pagination,
    SyncConflictOut,
)
from woti_attendance.services import audit_service

logger = logging.getLogger(__name__)


def clock_in(db: Session, user_id: uuid.UUID, data: ClockInRequest) -> AttendanceRecordOut:
    """
    Ouvre un pointage (version 1, synced=True, créé côté serveur).

    Lève ValueError si l'utilisateur a déjà un pointage ouvert,
    ou si l'établissement est introuvable ou inactif.
    """
    attendances = AttendanceRepository(db)

    with attendances.transaction():
        if attendances.find_active_for_user(user_id) is not None:
            raise ValueError("Utilisateur déjà pointé. Veuillez d'abord pointer la sortie.")

        if not FacilityRepository(db).is_active(data.facility_id):
            raise ValueError("Établissement introuvable ou inactif.")

        attendance = attendances.insert(Attendance(
            user_id=user_id,
            facility_id=data.facility_id,
            clock_in=as_utc(data.clock_in) or utc_now(),
            clock_in_latitude=data.latitude,
            clock_in_longitude=data.longitude,
            notes=data.notes,
            status=STATUS_CLOCKED_IN,
            synced=True,
            device_id=data.device_id,
            client_timestamp=as_utc(data.client_timestamp),
            sync_version=1,
            extra_data={},
        ))
        audit_service.log_activity(
            db, user_id, "CLOCK_IN",
            entity_type="attendance",
            entity_id=attendance.id,
            description="Pointage d'entrée",
            metadata={"facilityId": str(data.facility_id)},
        )
        response = AttendanceRecordOut.model_validate(attendance)

    logger.info(
        "Pointage d'entrée user=%s attendance=%s facility=%s",
        user_id, response.id, data.facility_id,
    )
    return response


def clock_out(db: Session, user_id: uuid.UUID, data: ClockOutRequest) -> AttendanceRecordOut:
    """
    Clôture un pointage ouvert (celui indiqué, sinon le plus récent de l'utilisateur).

    La mise à jour incrémente sync_version de manière conditionnelle : si un
    appareil a synchronisé une autre version entre-temps, StaleRecordError est levée.
    Lève ValueError (introuvable / déjà clôturé / sortie avant entrée)
    ou PermissionError (pointage d'un autre utilisateur).
    """
    attendances = AttendanceRepository(db)

    with attendances.transaction():
        if data.attendance_id is not None:
            attendance = attendances.find_by_id(data.attendance_id)
        else:
            attendance = attendances.find_active_for_user(user_id)

        if attendance is None:
            raise ValueError("Pointage actif introuvable.")
        if attendance.user_id != user_id:
            raise PermissionError("Vous n'êtes pas autorisé à clôturer ce pointage.")
        if attendance.clock_out is not None:
            raise ValueError("Pointage déjà clôturé.")

        clock_out_at = as_utc(data.clock_out) or utc_now()
        if clock_out_at <= as_utc(attendance.clock_in):
            raise ValueError("L'heure de sortie doit être postérieure à l'heure d'entrée.")

        updated = attendances.update_in_place(
            attendance.id,
            {
                "clock_out": clock_out_at,
                "clock_out_latitude": data.latitude,
                "clock_out_longitude": data.longitude,
                "notes": data.notes or attendance.notes,
                "status": STATUS_CLOCKED_OUT,
                "sync_version": attendance.sync_version + 1,
            },
            expected_version=attendance.sync_version,
        )
        audit_service.log_activity(
            db, user_id, "CLOCK_OUT",
            entity_type="attendance",
            entity_id=attendance.id,
            description="Pointage de sortie",
        )
        response = AttendanceRecordOut.model_validate(updated)

    logger.info("Pointage de sortie user=%s attendance=%s", user_id, response.id)
    return response


def get_user_attendance(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = 50,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: Optional[str] = None,
) -> AttendanceHistory:
    """Historique paginé des pointages de l'utilisateur, du plus récent au plus ancien."""
    page = max(page, 1)
    limit = min(max(limit, 1), settings.ATTENDANCE_PAGE_SIZE_MAX)
    filters = {"start_date": start_date, "end_date": end_date, "status": status}

    attendances = AttendanceRepository(db)
    records = attendances.find_by_user(user_id, limit=limit, offset=(page - 1) * limit, **filters)
    total = attendances.count_by_user(user_id, **filters)

    return AttendanceHistory(
        records=[AttendanceRecordOut.model_validate(r) for r in records],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


def close_stale_sessions(db: Session, now: Optional[datetime] = None) -> int:
    """
    Passe en "incomplete" les pointages ouverts depuis plus de
    ATTENDANCE_STALE_AFTER_HOURS. Retourne le nombre de pointages clôturés.
    """
    cutoff = (now or utc_now()) - timedelta(hours=settings.ATTENDANCE_STALE_AFTER_HOURS)
    attendances = AttendanceRepository(db)
    with attendances.transaction():
        closed = attendances.close_stale_sessions(cutoff)
    if closed:
        logger.info("%d pointage(s) ouvert(s) avant %s passé(s) en incomplete", closed, cutoff.isoformat())
    return closed


def list_pending_conflicts(db: Session, user_id: uuid.UUID) -> List[SyncConflictOut]:
    """Conflits "manual" soumis par l'utilisateur et en attente de revue."""
    conflicts = ConflictRepository(db).list_pending_for_user(user_id)
    return [SyncConflictOut.model_validate(c) for c in conflicts]
