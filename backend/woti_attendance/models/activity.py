"""
Modèle SQLAlchemy du journal d'audit (table activities).
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid, func

from woti_attendance.database import Base


class Activity(Base):
    """Entrée du journal d'audit : qui a fait quoi, sur quelle entité."""
    __tablename__ = "activities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)  # CLOCK_IN, CLOCK_OUT, OFFLINE_SYNC
    entity_type = Column(String(100), nullable=True)
    entity_id = Column(Uuid, nullable=True)
    description = Column(Text, nullable=True)
    extra_data = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
