"""
Router de synchronisation offline → online des pointages.
Reçoit les batchs générés hors-ligne par l'application mobile dès reconnexion réseau.
"""

import uuid
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from woti_attendance.database import get_db
from woti_attendance.rate_limit import enforce_sync_rate_limit
from woti_attendance.schemas.attendance import SyncConflictOut
from woti_attendance.schemas.sync import BulkImportResponse, SyncResponse
from woti_attendance.security import get_current_user_id
from woti_attendance.services import attendance_service, sync_service
from woti_attendance.services.sync_errors import BatchInputError, DuplicateRecordError

router = APIRouter(prefix="/api/v1/attendance", tags=["Synchronisation offline"])


@router.post(
    "/sync",
    response_model=SyncResponse,
    response_model_by_alias=True,
    summary="Synchroniser les pointages hors-ligne",
)
def sync_attendance(
    payload: Any = Body(default=None),
    user_id: uuid.UUID = Depends(enforce_sync_rate_limit),
    db: Session = Depends(get_db),
):
    """
    Fusionne un batch d'enregistrements offline dans l'état serveur.

    Comportement :
    - Idempotent : la clé (deviceId, clientTimestamp) identifie un enregistrement
    - Chaque enregistrement est classé dans exactement un bucket : synced / conflicts / errors
    - Un enregistrement invalide n'interrompt pas le batch
    - 400 uniquement si le corps n'est pas {"records": [objet, ...]} ou dépasse la taille maximale

    Le client purge les enregistrements "synced", conserve les "conflicts"
    et corrige ou abandonne les "errors".
    """
    try:
        request = sync_service.parse_batch(payload)
    except BatchInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return sync_service.sync_batch(db, user_id, request.records)


@router.post(
    "/bulk",
    response_model=BulkImportResponse,
    status_code=201,
    summary="Import groupé de pointages (tout-ou-rien)",
)
def bulk_import_attendance(
    payload: Any = Body(default=None),
    user_id: uuid.UUID = Depends(enforce_sync_rate_limit),
    db: Session = Depends(get_db),
):
    """
    Crée en une transaction un lot de pointages nouveaux.
    Une erreur de validation (400) ou une clé déjà connue (409) rejette tout le lot.
    """
    try:
        request = sync_service.parse_batch(payload)
        return sync_service.bulk_import(db, user_id, request.records)
    except BatchInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateRecordError:
        raise HTTPException(
            status_code=409,
            detail="Au moins un pointage du lot existe déjà. Utilisez la synchronisation.",
        )


@router.get(
    "/sync/conflicts",
    response_model=List[SyncConflictOut],
    response_model_by_alias=True,
    summary="Conflits en attente de revue",
)
def list_sync_conflicts(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Conflits "manual" soumis par l'utilisateur courant et non encore traités."""
    return attendance_service.list_pending_conflicts(db, user_id)
