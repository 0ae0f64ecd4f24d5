"""
Passerelle de persistance des pointages.

Seul point de mutation de la table attendance. Les écritures concurrentes sur
une même clé de déduplication sont arbitrées par la base elle-même :
- insert         : contrainte UNIQUE (device_id, client_timestamp) → DuplicateRecordError
- update_in_place : UPDATE ... WHERE sync_version = :expected (compare-and-swap) → StaleRecordError
Aucune méthode ne commite : la portée transactionnelle est fixée par l'appelant
via transaction().
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from woti_attendance.database import transaction
from woti_attendance.datetime_utils import as_utc, utc_now
from woti_attendance.models.attendance import (
    STATUS_CLOCKED_IN,
    STATUS_CLOCKED_OUT,
    STATUS_INCOMPLETE,
    Attendance,
)
from woti_attendance.schemas.sync import SyncRecord
from woti_attendance.services.sync_errors import DuplicateRecordError, StaleRecordError

# Champs modifiables après création ; l'identité (user_id, facility_id, clé de dédup) est immuable
UPDATABLE_FIELDS = {
    "clock_in",
    "clock_out",
    "clock_in_latitude",
    "clock_in_longitude",
    "clock_out_latitude",
    "clock_out_longitude",
    "notes",
    "status",
    "synced",
    "sync_version",
    "conflict_resolution_strategy",
    "extra_data",
}


def build_from_sync_record(user_id: uuid.UUID, record: SyncRecord) -> Attendance:
    """Construit un pointage à partir d'un enregistrement offline validé."""
    return Attendance(
        user_id=user_id,
        facility_id=record.facility_id,
        clock_in=record.clock_in,
        clock_out=record.clock_out,
        clock_in_latitude=record.clock_in_latitude,
        clock_in_longitude=record.clock_in_longitude,
        clock_out_latitude=record.clock_out_latitude,
        clock_out_longitude=record.clock_out_longitude,
        notes=record.notes,
        status=STATUS_CLOCKED_OUT if record.clock_out else STATUS_CLOCKED_IN,
        synced=True,
        device_id=record.device_id,
        client_timestamp=record.client_timestamp,
        sync_version=record.sync_version,
        conflict_resolution_strategy=record.conflict_resolution_strategy,
        extra_data=record.extra_data or {},
    )


def fields_from_sync_record(record: SyncRecord, next_version: int) -> Dict[str, Any]:
    """Champs appliqués sur l'existant quand la version client l'emporte."""
    return {
        "clock_in": record.clock_in,
        "clock_out": record.clock_out,
        "clock_in_latitude": record.clock_in_latitude,
        "clock_in_longitude": record.clock_in_longitude,
        "clock_out_latitude": record.clock_out_latitude,
        "clock_out_longitude": record.clock_out_longitude,
        "notes": record.notes,
        "status": STATUS_CLOCKED_OUT if record.clock_out else STATUS_CLOCKED_IN,
        "synced": True,
        "sync_version": next_version,
        "conflict_resolution_strategy": record.conflict_resolution_strategy,
        "extra_data": record.extra_data or {},
    }


class AttendanceRepository:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit si le bloc réussit, rollback sinon."""
        with transaction(self.db) as session:
            yield session

    # --- Lecture ---

    def find_by_id(self, attendance_id: uuid.UUID) -> Optional[Attendance]:
        return self.db.get(Attendance, attendance_id)

    def find_by_device_and_client_timestamp(
        self, device_id: str, client_timestamp: datetime
    ) -> Optional[Attendance]:
        """Recherche par clé de déduplication : au plus un résultat (contrainte UNIQUE)."""
        return self.db.execute(
            select(Attendance).where(
                Attendance.device_id == device_id,
                Attendance.client_timestamp == as_utc(client_timestamp),
            )
        ).scalar_one_or_none()

    def find_active_for_user(self, user_id: uuid.UUID) -> Optional[Attendance]:
        """Pointage ouvert (entrée sans sortie) le plus récent de l'utilisateur."""
        return self.db.execute(
            select(Attendance)
            .where(
                Attendance.user_id == user_id,
                Attendance.status == STATUS_CLOCKED_IN,
                Attendance.clock_out.is_(None),
            )
            .order_by(Attendance.clock_in.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _user_filters(
        self,
        user_id: uuid.UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> list:
        conditions = [Attendance.user_id == user_id]
        if start_date is not None:
            conditions.append(Attendance.clock_in >= as_utc(start_date))
        if end_date is not None:
            conditions.append(Attendance.clock_in <= as_utc(end_date))
        if status is not None:
            conditions.append(Attendance.status == status)
        return conditions

    def find_by_user(
        self,
        user_id: uuid.UUID,
        limit: int,
        offset: int,
        **filters: Any,
    ) -> Sequence[Attendance]:
        """Historique de l'utilisateur, du plus récent au plus ancien."""
        return self.db.execute(
            select(Attendance)
            .where(*self._user_filters(user_id, **filters))
            .order_by(Attendance.clock_in.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()

    def count_by_user(self, user_id: uuid.UUID, **filters: Any) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(Attendance)
            .where(*self._user_filters(user_id, **filters))
        ).scalar() or 0

    # --- Écriture ---

    def insert(self, attendance: Attendance) -> Attendance:
        """
        Insère un pointage et lui attribue son id et son horodatage serveur.
        Lève DuplicateRecordError si la clé (device_id, client_timestamp) existe déjà.
        """
        if attendance.server_timestamp is None:
            attendance.server_timestamp = utc_now()
        self.db.add(attendance)
        try:
            self.db.flush()  # Obtenir l'ID et déclencher les contraintes avant le commit
        except IntegrityError as exc:
            raise DuplicateRecordError(str(exc.orig)) from exc
        return attendance

    def update_in_place(
        self, attendance_id: uuid.UUID, fields: Dict[str, Any], expected_version: int
    ) -> Attendance:
        """
        Met à jour un pointage en une seule instruction conditionnée par sa version.

        UPDATE attendance SET ... WHERE id = :id AND sync_version = :expected
        Aucune ligne touchée → un autre écrivain est passé entre la lecture et l'écriture.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Champs non modifiables : {', '.join(sorted(unknown))}")

        result = self.db.execute(
            update(Attendance)
            .where(
                Attendance.id == attendance_id,
                Attendance.sync_version == expected_version,
            )
            .values(**fields, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StaleRecordError(
                f"Pointage {attendance_id} : version {expected_version} périmée ou introuvable"
            )

        return self.db.get(Attendance, attendance_id, populate_existing=True)

    def bulk_insert(self, attendances: List[Attendance]) -> List[Attendance]:
        """
        Insertion groupée tout-ou-rien : un seul échec annule l'ensemble.
        Commite elle-même (transaction dédiée).
        """
        now = utc_now()
        with self.transaction():
            for attendance in attendances:
                if attendance.server_timestamp is None:
                    attendance.server_timestamp = now
            self.db.add_all(attendances)
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise DuplicateRecordError(str(exc.orig)) from exc
        return attendances

    def close_stale_sessions(self, cutoff: datetime) -> int:
        """
        Passe en "incomplete" les pointages ouverts avant `cutoff`.
        Une seule instruction UPDATE ; chaque ligne touchée voit sa version incrémentée.
        """
        result = self.db.execute(
            update(Attendance)
            .where(
                Attendance.status == STATUS_CLOCKED_IN,
                Attendance.clock_out.is_(None),
                Attendance.clock_in < as_utc(cutoff),
            )
            .values(
                status=STATUS_INCOMPLETE,
                sync_version=Attendance.sync_version + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
