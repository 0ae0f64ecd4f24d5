"""
Modèles SQLAlchemy de la hiérarchie organisationnelle : région → conseil → établissement.
Les utilisateurs (4e niveau) sont rattachés à un établissement (voir user.py).
"""

import uuid
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid, func

from woti_attendance.database import Base


class Region(Base):
    __tablename__ = "regions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Council(Base):
    __tablename__ = "councils"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    region_id = Column(Uuid, ForeignKey("regions.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Facility(Base):
    """Établissement géolocalisé où le personnel pointe."""
    __tablename__ = "facilities"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive', 'maintenance')", name="valid_facility_status"),
        CheckConstraint(
            "(latitude IS NULL AND longitude IS NULL) OR "
            "(latitude IS NOT NULL AND longitude IS NOT NULL AND "
            "latitude BETWEEN -90 AND 90 AND longitude BETWEEN -180 AND 180)",
            name="valid_facility_coordinates",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    council_id = Column(Uuid, ForeignKey("councils.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=True)
    type = Column(String(100), nullable=True)
    latitude = Column(Numeric(10, 8, asdecimal=False), nullable=True)
    longitude = Column(Numeric(11, 8, asdecimal=False), nullable=True)
    address = Column(Text, nullable=True)
    status = Column(String(50), default="active")  # active, inactive, maintenance
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
