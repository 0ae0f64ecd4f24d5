"""
Modèle SQLAlchemy pour les utilisateurs (personnel qui pointe).
Le hachage des mots de passe et l'émission des jetons sont gérés par le service d'authentification.
"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid, func

from woti_attendance.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    facility_id = Column(Uuid, ForeignKey("facilities.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    employee_id = Column(String(50), unique=True, nullable=True)
    role = Column(String(50), nullable=False)  # tester, data_clerk, focal, ddo, supervisor, backstopper, admin
    status = Column(String(50), default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
