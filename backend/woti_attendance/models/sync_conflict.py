"""
File de revue des conflits de synchronisation (stratégie "manual").

Le pointage existant n'est jamais modifié : la version entrante est conservée
ici, en statut pending_review, jusqu'au traitement par un administrateur.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Uuid, func

from woti_attendance.database import Base

STATUS_PENDING_REVIEW = "pending_review"


class SyncConflict(Base):
    __tablename__ = "sync_conflicts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    attendance_id = Column(Uuid, ForeignKey("attendance.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    device_id = Column(String(255), nullable=False)
    client_timestamp = Column(DateTime(timezone=True), nullable=False)
    incoming_sync_version = Column(Integer, nullable=False)
    existing_sync_version = Column(Integer, nullable=False)
    incoming_payload = Column(JSON, nullable=False)   # enregistrement client normalisé (camelCase)

    status = Column(String(20), default=STATUS_PENDING_REVIEW)  # pending_review, resolved
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
