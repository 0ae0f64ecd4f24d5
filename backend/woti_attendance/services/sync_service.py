"""
Service de synchronisation offline → online des pointages.

Stratégie : versionnage optimiste + résolution déclarée par enregistrement
- Clé d'idempotence : (device_id, client_timestamp), contrainte UNIQUE en base
- Resoumission identique (±60 s, même version) → no_change, aucune écriture
- Conflit réel → client_wins / server_wins / manual selon l'enregistrement
- Chaque enregistrement est traité dans sa propre transaction : un échec
  n'annule jamais les autres et n'interrompt pas le batch
- Traitement séquentiel dans l'ordre d'arrivée : deux enregistrements du même
  batch partageant une clé → le premier gagne, le second le voit comme existant
"""

import logging
import uuid
from typing import Any, List, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from woti_attendance.datetime_utils import utc_now
from woti_attendance.repositories.attendance_repository import (
    AttendanceRepository,
    build_from_sync_record,
    fields_from_sync_record,
)
from woti_attendance.repositories.conflict_repository import ConflictRepository
from woti_attendance.repositories.facility_repository import FacilityRepository
from woti_attendance.schemas.attendance import AttendanceRecordOut
from woti_attendance.schemas.sync import (
    BulkImportResponse,
    ConflictItem,
    ErrorItem,
    SyncedItem,
    SyncRequest,
    SyncResponse,
    SyncResultData,
)
from woti_attendance.services import audit_service
from woti_attendance.services.conflict_detector import Detection, detect
from woti_attendance.services.conflict_resolver import Winner, resolve
from woti_attendance.services.sync_errors import (
    BatchInputError,
    DuplicateRecordError,
    RecordValidationError,
    StaleRecordError,
    StorageError,
)
from woti_attendance.services.sync_validation import format_validation_errors, validate_record

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = StorageError.public_message


def _field(raw: Any, name: str) -> Any:
    """Lecture tolérante d'un champ brut (un élément du batch n'est pas forcément un objet)."""
    return raw.get(name) if isinstance(raw, dict) else None


def parse_batch(payload: Any) -> SyncRequest:
    """
    Valide la structure globale de la requête ({"records": [...]}, taille max).
    Le contenu de chaque élément est validé plus tard, enregistrement par enregistrement.
    Lève BatchInputError avant tout traitement si elle est inexploitable.
    """
    if payload is None:
        raise BatchInputError("Corps de requête manquant : un objet {\"records\": [...]} est attendu.")
    try:
        return SyncRequest.model_validate(payload)
    except ValidationError as exc:
        raise BatchInputError("; ".join(format_validation_errors(exc))) from exc


def _apply_record(db: Session, user_id: uuid.UUID, raw: Any) -> Union[SyncedItem, ConflictItem]:
    """
    Pipeline d'un enregistrement : valider → chercher → détecter → résoudre → écrire.
    Tout s'exécute dans une transaction ; une exception annule l'écriture éventuelle.
    """
    attendances = AttendanceRepository(db)
    facilities = FacilityRepository(db)

    with attendances.transaction():
        record = validate_record(raw, facilities.is_active)

        existing = attendances.find_by_device_and_client_timestamp(
            record.device_id, record.client_timestamp
        )
        detection = detect(record, existing)
        logger.debug(
            "Enregistrement device=%s ts=%s : %s",
            record.device_id, record.client_timestamp.isoformat(), detection.value,
        )

        if detection is Detection.NO_MATCH:
            created = attendances.insert(build_from_sync_record(user_id, record))
            return SyncedItem(id=created.id, action="created")

        if detection is Detection.NO_CONFLICT:
            return SyncedItem(id=existing.id, action="no_change")

        resolution = resolve(record, existing, record.conflict_resolution_strategy)
        logger.debug(
            "Résolution device=%s ts=%s : %s (%s)",
            record.device_id, record.client_timestamp.isoformat(), resolution.winner.value, resolution.reason,
        )

        if resolution.winner is Winner.NONE:
            ConflictRepository(db).enqueue(user_id, record, existing)
            return ConflictItem(
                record=record.to_wire(),
                existing_record=AttendanceRecordOut.model_validate(existing),
            )

        if resolution.winner is Winner.INCOMING:
            attendances.update_in_place(
                existing.id,
                fields_from_sync_record(resolution.resolved_record, resolution.next_version),
                expected_version=existing.sync_version,
            )
            return SyncedItem(id=existing.id, action="updated", resolution="client")

        return SyncedItem(id=existing.id, action="updated", resolution="server")


def _sync_record(db: Session, user_id: uuid.UUID, raw: Any) -> Union[SyncedItem, ConflictItem]:
    """
    Applique un enregistrement, avec une seconde tentative si l'écriture a perdu
    la course contre un autre batch (clé insérée entre-temps, ou version modifiée) :
    l'enregistrement est reclassé contre l'état qui a gagné.
    """
    try:
        return _apply_record(db, user_id, raw)
    except (DuplicateRecordError, StaleRecordError) as exc:
        logger.info("Écriture concurrente détectée (%s), nouvelle tentative pour %s", exc, _field(raw, "deviceId"))
        return _apply_record(db, user_id, raw)


def sync_batch(db: Session, user_id: uuid.UUID, records: List[Any]) -> SyncResponse:
    """
    Fusionne un batch d'enregistrements offline dans l'état serveur.

    Pour chaque enregistrement, dans l'ordre reçu :
    1. Validation → échec : bucket errors (détail par champ)
    2. Recherche par (device_id, client_timestamp)
    3. Détection :
       - absent      → insertion, action "created"
       - identique   → action "no_change", aucune écriture
       - conflit     → résolution : server ("updated"/server), client ("updated"/client),
                       manual (bucket conflicts + file de revue, pointage inchangé)
    4. Toute erreur inattendue → bucket errors avec un message générique

    Chaque enregistrement produit exactement un résultat dans exactement un bucket.
    """
    synced: List[SyncedItem] = []
    conflicts: List[ConflictItem] = []
    errors: List[ErrorItem] = []

    for raw in records:
        try:
            outcome = _sync_record(db, user_id, raw)
        except RecordValidationError as exc:
            errors.append(ErrorItem(record=raw, errors=exc.errors))
            logger.debug("Enregistrement rejeté : %s", exc)
            continue
        except StorageError as exc:
            logger.error(
                "Erreur de stockage pour device=%s ts=%s : %s",
                _field(raw, "deviceId"), _field(raw, "clientTimestamp"), exc, exc_info=True,
            )
            errors.append(ErrorItem(record=raw, errors=[exc.public_message]))
            continue
        except Exception as exc:
            logger.error(
                "Erreur inattendue pour device=%s ts=%s : %s",
                _field(raw, "deviceId"), _field(raw, "clientTimestamp"), exc, exc_info=True,
            )
            errors.append(ErrorItem(record=raw, errors=[GENERIC_ERROR_MESSAGE]))
            continue

        if isinstance(outcome, ConflictItem):
            conflicts.append(outcome)
        else:
            synced.append(outcome)

    device_ids = sorted({str(_field(r, "deviceId")) for r in records if _field(r, "deviceId")})
    logger.info(
        "Sync user=%s devices=%s : %d reçus, %d synchronisés, %d conflits, %d erreurs",
        user_id, ",".join(device_ids) or "inconnu",
        len(records), len(synced), len(conflicts), len(errors),
    )
    audit_service.log_activity_detached(
        db, user_id, "OFFLINE_SYNC",
        entity_type="attendance",
        description="Synchronisation offline terminée",
        metadata={
            "received": len(records),
            "synced": len(synced),
            "conflicts": len(conflicts),
            "errors": len(errors),
            "devices": device_ids,
        },
    )

    return SyncResponse(
        success=True,
        synced=len(synced),
        conflicts=len(conflicts),
        errors=len(errors),
        timestamp=utc_now(),
        data=SyncResultData(synced=synced, conflicts=conflicts, errors=errors),
    )


def bulk_import(db: Session, user_id: uuid.UUID, records: List[Any]) -> BulkImportResponse:
    """
    Import groupé tout-ou-rien de pointages nouveaux (rattrapage d'un appareil).

    Contrairement à sync_batch, aucun enregistrement n'est accepté isolément :
    une seule erreur de validation, ou une clé déjà connue, rejette tout le lot.
    Lève BatchInputError (validation) ou DuplicateRecordError (clé existante).
    """
    facilities = FacilityRepository(db)
    attendances = AttendanceRepository(db)

    validated = []
    problems: List[str] = []
    for index, raw in enumerate(records):
        try:
            validated.append(validate_record(raw, facilities.is_active))
        except RecordValidationError as exc:
            problems += [f"records[{index}] {message}" for message in exc.errors]
    if problems:
        db.rollback()
        raise BatchInputError("; ".join(problems))

    created = attendances.bulk_insert([build_from_sync_record(user_id, r) for r in validated])
    logger.info("Import groupé user=%s : %d pointages créés", user_id, len(created))
    return BulkImportResponse(created=len(created), ids=[a.id for a in created])
