"""
File de revue des conflits "manual".
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from woti_attendance.models.attendance import Attendance
from woti_attendance.models.sync_conflict import STATUS_PENDING_REVIEW, SyncConflict
from woti_attendance.schemas.sync import SyncRecord


class ConflictRepository:
    def __init__(self, db: Session):
        self.db = db

    def enqueue(
        self, user_id: Optional[uuid.UUID], incoming: SyncRecord, existing: Attendance
    ) -> SyncConflict:
        """
        Ajoute un conflit en attente de revue.
        Idempotent : une resoumission de la même version entrante met à jour
        la ligne pending_review existante au lieu d'en créer une seconde.
        """
        conflict = self.db.execute(
            select(SyncConflict).where(
                SyncConflict.attendance_id == existing.id,
                SyncConflict.incoming_sync_version == incoming.sync_version,
                SyncConflict.status == STATUS_PENDING_REVIEW,
            )
        ).scalar_one_or_none()

        if conflict is None:
            conflict = SyncConflict(
                attendance_id=existing.id,
                user_id=user_id,
                device_id=incoming.device_id,
                client_timestamp=incoming.client_timestamp,
                incoming_sync_version=incoming.sync_version,
                status=STATUS_PENDING_REVIEW,
            )
            self.db.add(conflict)

        conflict.existing_sync_version = existing.sync_version
        conflict.incoming_payload = incoming.to_wire()
        self.db.flush()
        return conflict

    def list_pending_for_user(self, user_id: uuid.UUID) -> Sequence[SyncConflict]:
        """Conflits en attente soumis par l'utilisateur, du plus ancien au plus récent."""
        return self.db.execute(
            select(SyncConflict)
            .where(
                SyncConflict.user_id == user_id,
                SyncConflict.status == STATUS_PENDING_REVIEW,
            )
            .order_by(SyncConflict.created_at)
        ).scalars().all()
