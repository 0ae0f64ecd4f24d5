"""
Accès en lecture aux établissements (vérification d'existence pour les pointages).
"""

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from woti_attendance.models.organization import Facility


class FacilityRepository:
    def __init__(self, db: Session):
        self.db = db

    def is_active(self, facility_id: uuid.UUID) -> bool:
        """Vrai si l'établissement existe et est en statut active."""
        found = self.db.execute(
            select(Facility.id).where(Facility.id == facility_id, Facility.status == "active")
        ).scalar()
        return found is not None
