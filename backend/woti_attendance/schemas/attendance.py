"""
Schémas Pydantic pour les pointages (entrée / sortie / historique).
Les clients mobiles échangent en camelCase (clockIn, facilityId, ...).
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from woti_attendance.datetime_utils import as_utc

CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def coordinate_pair_errors(prefix: str, latitude: Optional[float], longitude: Optional[float]) -> List[str]:
    """Une paire (latitude, longitude) doit être complète ou absente."""
    if (latitude is None) == (longitude is None):
        return []
    missing = "Longitude" if longitude is None else "Latitude"
    return [f"{prefix}{missing}: requis lorsque l'autre coordonnée de la paire est fournie"]


class AttendanceRecordOut(BaseModel):
    """Pointage tel que renvoyé aux clients."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: uuid.UUID
    user_id: uuid.UUID
    facility_id: uuid.UUID
    clock_in: datetime
    clock_out: Optional[datetime] = None
    clock_in_latitude: Optional[float] = None
    clock_in_longitude: Optional[float] = None
    clock_out_latitude: Optional[float] = None
    clock_out_longitude: Optional[float] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    synced: Optional[bool] = None
    client_timestamp: Optional[datetime] = None
    server_timestamp: Optional[datetime] = None
    device_id: Optional[str] = None
    sync_version: int
    conflict_resolution_strategy: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("extra_data", "metadata"),
        serialization_alias="metadata",
    )

    @field_validator("clock_in", "clock_out", "client_timestamp", "server_timestamp")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class ClockInRequest(BaseModel):
    """Pointage d'entrée en ligne (POST /attendance/clock-in)."""
    model_config = CAMEL_CONFIG

    facility_id: uuid.UUID
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None
    device_id: Optional[str] = None
    client_timestamp: Optional[datetime] = None
    clock_in: Optional[datetime] = None  # défaut : heure serveur

    @model_validator(mode="after")
    def coordinates_complete(self) -> "ClockInRequest":
        if coordinate_pair_errors("", self.latitude, self.longitude):
            raise ValueError("La latitude et la longitude doivent être fournies ensemble.")
        return self


class ClockOutRequest(BaseModel):
    """Pointage de sortie (POST /attendance/clock-out)."""
    model_config = CAMEL_CONFIG

    attendance_id: Optional[uuid.UUID] = None  # défaut : pointage ouvert de l'utilisateur
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None
    clock_out: Optional[datetime] = None  # défaut : heure serveur

    @model_validator(mode="after")
    def coordinates_complete(self) -> "ClockOutRequest":
        if coordinate_pair_errors("", self.latitude, self.longitude):
            raise ValueError("La latitude et la longitude doivent être fournies ensemble.")
        return self


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AttendanceHistory(BaseModel):
    """Historique paginé des pointages d'un utilisateur."""
    records: List[AttendanceRecordOut]
    pagination: Pagination


class SyncConflictOut(BaseModel):
    """Conflit en attente de revue (stratégie manual)."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: uuid.UUID
    attendance_id: uuid.UUID
    device_id: str
    client_timestamp: datetime
    incoming_sync_version: int
    existing_sync_version: int
    incoming_payload: Dict[str, Any]
    status: str
    created_at: Optional[datetime] = None

    @field_validator("client_timestamp", "created_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)
