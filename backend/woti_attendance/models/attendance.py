"""
Modèle SQLAlchemy pour les pointages (offline-first).

Architecture offline-first :
- (device_id, client_timestamp) : clé de déduplication, contrainte UNIQUE en base
- client_timestamp : horodatage local de l'appareil (non fiable)
- server_timestamp : première acceptation par le serveur (fiable)
- sync_version     : jeton de concurrence optimiste, incrémenté à chaque mutation acceptée
Les enregistrements sont créés localement sur le mobile, puis synchronisés via
POST /api/v1/attendance/sync.
"""

import uuid
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from woti_attendance.database import Base

STATUS_CLOCKED_IN = "clocked_in"
STATUS_CLOCKED_OUT = "clocked_out"
STATUS_INCOMPLETE = "incomplete"


def _coordinates_check(prefix: str) -> CheckConstraint:
    lat, lon = f"{prefix}_latitude", f"{prefix}_longitude"
    return CheckConstraint(
        f"({lat} IS NULL AND {lon} IS NULL) OR "
        f"({lat} IS NOT NULL AND {lon} IS NOT NULL AND "
        f"{lat} BETWEEN -90 AND 90 AND {lon} BETWEEN -180 AND 180)",
        name=f"valid_{prefix}_coords",
    )


class Attendance(Base):
    """Pointage entrée/sortie d'un membre du personnel dans un établissement."""
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("device_id", "client_timestamp", name="uq_attendance_device_client_timestamp"),
        CheckConstraint("clock_out IS NULL OR clock_out > clock_in", name="valid_clock_times"),
        CheckConstraint("sync_version >= 1", name="valid_sync_version"),
        CheckConstraint(
            "status IN ('clocked_in', 'clocked_out', 'incomplete')", name="valid_attendance_status"
        ),
        CheckConstraint(
            "conflict_resolution_strategy IN ('client_wins', 'server_wins', 'manual')",
            name="valid_conflict_resolution_strategy",
        ),
        _coordinates_check("clock_in"),
        _coordinates_check("clock_out"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    facility_id = Column(Uuid, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False)

    clock_in = Column(DateTime(timezone=True), nullable=False)
    clock_out = Column(DateTime(timezone=True), nullable=True)
    clock_in_latitude = Column(Numeric(10, 8, asdecimal=False), nullable=True)
    clock_in_longitude = Column(Numeric(11, 8, asdecimal=False), nullable=True)
    clock_out_latitude = Column(Numeric(10, 8, asdecimal=False), nullable=True)
    clock_out_longitude = Column(Numeric(11, 8, asdecimal=False), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(50), default=STATUS_CLOCKED_IN)

    # Métadonnées de synchronisation
    synced = Column(Boolean, default=False)
    client_timestamp = Column(DateTime(timezone=True), nullable=True)
    server_timestamp = Column(DateTime(timezone=True), server_default=func.now())
    device_id = Column(String(255), nullable=True, index=True)
    sync_version = Column(Integer, nullable=False, default=1)
    conflict_resolution_strategy = Column(String(50), default="server_wins")
    # "metadata" est réservé par la déclarative SQLAlchemy
    extra_data = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
