"""
Validation d'un enregistrement offline avant synchronisation.

Fonction pure, à une vérification externe près : l'existence d'un
établissement actif (callable injecté, une requête BDD en production).
"""

import uuid
from typing import Any, Callable, List

from pydantic import ValidationError

from woti_attendance.schemas.sync import SyncRecord
from woti_attendance.services.sync_errors import RecordValidationError


def format_validation_errors(exc: ValidationError) -> List[str]:
    """Transforme les erreurs Pydantic en messages « champ: message » lisibles."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return messages


def validate_record(raw: Any, facility_is_active: Callable[[uuid.UUID], bool]) -> SyncRecord:
    """
    Valide et normalise un enregistrement brut.

    Étapes :
    1. Types, champs requis, bornes (Pydantic)
    2. Règles inter-champs (clockOut > clockIn, paires de coordonnées)
    3. Établissement existant et actif

    Lève RecordValidationError avec la liste détaillée des erreurs.
    """
    if not isinstance(raw, dict):
        raise RecordValidationError(["L'enregistrement doit être un objet JSON."])

    try:
        record = SyncRecord.model_validate(raw)
    except ValidationError as exc:
        raise RecordValidationError(format_validation_errors(exc)) from exc

    errors = record.consistency_errors()
    if not facility_is_active(record.facility_id):
        errors.append("facilityId: établissement introuvable ou inactif")

    if errors:
        raise RecordValidationError(errors)

    return record
