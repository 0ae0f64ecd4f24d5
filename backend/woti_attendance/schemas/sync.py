"""
Schémas Pydantic pour la synchronisation offline → online.
Endpoint : POST /api/v1/attendance/sync

Le corps de requête est validé en deux temps :
- SyncRequest : structure globale (liste, taille max) → échec = requête rejetée (400)
- SyncRecord  : chaque enregistrement individuellement → échec = bucket `errors`, le batch continue
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from woti_attendance.config import settings
from woti_attendance.datetime_utils import as_utc, utc_now
from woti_attendance.schemas.attendance import AttendanceRecordOut, coordinate_pair_errors

DEFAULT_STRATEGY = "server_wins"

ConflictStrategy = Literal["client_wins", "server_wins", "manual"]


class SyncRecord(BaseModel):
    """Un pointage créé hors-ligne sur un appareil mobile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    facility_id: uuid.UUID
    clock_in: datetime
    clock_out: Optional[datetime] = None
    clock_in_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    clock_in_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    clock_out_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    clock_out_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = Field(default=None, alias="metadata")

    device_id: str                 # identifiant opaque de l'appareil, clé de dédup avec client_timestamp
    client_timestamp: datetime     # horodatage local de création (non fiable)
    sync_version: int = Field(default=1, ge=1, strict=True)
    conflict_resolution_strategy: ConflictStrategy = DEFAULT_STRATEGY

    @field_validator("device_id")
    @classmethod
    def device_id_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("L'identifiant d'appareil ne peut pas être vide.")
        return v.strip()

    @field_validator("sync_version", mode="before")
    @classmethod
    def default_sync_version(cls, v: Any) -> Any:
        return 1 if v is None else v

    @field_validator("conflict_resolution_strategy", mode="before")
    @classmethod
    def default_strategy(cls, v: Any) -> Any:
        return DEFAULT_STRATEGY if v is None else v

    @field_validator("clock_in", "clock_out")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("client_timestamp")
    @classmethod
    def not_in_future(cls, v: datetime) -> datetime:
        v = as_utc(v)
        limit = utc_now() + timedelta(seconds=settings.SYNC_CLOCK_SKEW_TOLERANCE_SECONDS)
        if v > limit:
            raise ValueError("L'horodatage client est dans le futur (au-delà de la tolérance d'horloge).")
        return v

    def consistency_errors(self) -> List[str]:
        """Règles inter-champs : chronologie entrée/sortie et paires de coordonnées complètes."""
        errors: List[str] = []
        if self.clock_out is not None and self.clock_out <= self.clock_in:
            errors.append("clockOut: doit être strictement postérieur à clockIn")
        errors += coordinate_pair_errors("clockIn", self.clock_in_latitude, self.clock_in_longitude)
        errors += coordinate_pair_errors("clockOut", self.clock_out_latitude, self.clock_out_longitude)
        return errors

    def to_wire(self) -> Dict[str, Any]:
        """Représentation JSON camelCase (réponse de sync, file de revue)."""
        return self.model_dump(mode="json", by_alias=True)


class SyncRequest(BaseModel):
    """Corps de la requête batch de synchronisation."""

    records: List[Any]  # éléments validés un par un : un non-objet finit dans `errors`

    @field_validator("records")
    @classmethod
    def records_not_too_large(cls, v: List[Any]) -> List[Any]:
        if len(v) > settings.SYNC_MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch trop grand : maximum {settings.SYNC_MAX_BATCH_SIZE} enregistrements par requête."
            )
        return v


class SyncedItem(BaseModel):
    """Enregistrement accepté : le client peut le purger de son stockage local."""
    id: uuid.UUID
    action: Literal["created", "updated", "no_change"]
    resolution: Optional[Literal["server", "client"]] = None


class ConflictItem(BaseModel):
    """Conflit en attente de revue manuelle : le client conserve l'enregistrement."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    record: Dict[str, Any]
    existing_record: AttendanceRecordOut


class ErrorItem(BaseModel):
    """Enregistrement rejeté, avec la liste des erreurs lisibles."""
    record: Any
    errors: List[str]


class SyncResultData(BaseModel):
    synced: List[SyncedItem] = []
    conflicts: List[ConflictItem] = []
    errors: List[ErrorItem] = []


class SyncResponse(BaseModel):
    """Rapport de synchronisation retourné par le serveur."""
    success: bool = True
    synced: int
    conflicts: int
    errors: int
    timestamp: datetime          # heure serveur de la réponse
    data: SyncResultData


class BulkImportResponse(BaseModel):
    """Résultat d'un import groupé tout-ou-rien."""
    created: int
    ids: List[uuid.UUID]
