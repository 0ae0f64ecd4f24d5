"""
Journal d'audit (table activities).
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from woti_attendance.database import transaction
from woti_attendance.models.activity import Activity

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    user_id: Optional[uuid.UUID],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Activity:
    """Ajoute une entrée d'audit dans la transaction courante (pas de commit)."""
    activity = Activity(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        extra_data=metadata or {},
    )
    db.add(activity)
    return activity


def log_activity_detached(db: Session, user_id: Optional[uuid.UUID], action: str, **kwargs: Any) -> None:
    """
    Variante « fire-and-forget » : transaction dédiée, un échec est journalisé
    mais n'interrompt jamais l'opération métier déjà validée.
    """
    try:
        with transaction(db):
            log_activity(db, user_id, action, **kwargs)
    except Exception as exc:
        logger.warning("Échec d'écriture du journal d'audit (%s) : %s", action, exc, exc_info=True)
