"""
Détection de conflit entre un enregistrement entrant et l'enregistrement stocké
partageant la même clé de déduplication (device_id, client_timestamp).

Lecture seule : aucune écriture, aucune requête.
"""

import enum
from datetime import datetime
from typing import Any, Optional

from woti_attendance.config import settings
from woti_attendance.datetime_utils import as_utc


class Detection(str, enum.Enum):
    NO_MATCH = "no_match"          # rien en base → insertion
    NO_CONFLICT = "no_conflict"    # resoumission idempotente → aucune écriture
    CONFLICT = "conflict"          # modification concurrente → résolution


def _within(a: datetime, b: datetime, tolerance_seconds: int) -> bool:
    return abs((as_utc(a) - as_utc(b)).total_seconds()) <= tolerance_seconds


def has_conflict(incoming: Any, existing: Any, tolerance_seconds: Optional[int] = None) -> bool:
    """
    Vrai si les deux versions divergent :
    - sync_version différente
    - clock_in écarté de plus de `tolerance_seconds`
    - clock_out présent d'un seul côté, ou écarté de plus de `tolerance_seconds`
    """
    if tolerance_seconds is None:
        tolerance_seconds = settings.SYNC_CONFLICT_TOLERANCE_SECONDS

    if incoming.sync_version != existing.sync_version:
        return True

    if not _within(incoming.clock_in, existing.clock_in, tolerance_seconds):
        return True

    if (incoming.clock_out is None) != (existing.clock_out is None):
        return True

    if incoming.clock_out is not None and not _within(incoming.clock_out, existing.clock_out, tolerance_seconds):
        return True

    return False


def detect(incoming: Any, existing: Optional[Any], tolerance_seconds: Optional[int] = None) -> Detection:
    """Classe un enregistrement entrant par rapport à l'existant (ou à son absence)."""
    if existing is None:
        return Detection.NO_MATCH
    if has_conflict(incoming, existing, tolerance_seconds):
        return Detection.CONFLICT
    return Detection.NO_CONFLICT
