"""
Résolution d'un conflit de synchronisation selon la stratégie déclarée par le client.

Table de décision (aucun effet de bord, la persistance est à la charge de l'appelant) :

| stratégie     | gagnant  | enregistrement résolu               | version suivante     |
|---------------|----------|-------------------------------------|----------------------|
| server_wins   | existing | existant inchangé                   | existing.sync_version |
| client_wins   | incoming | entrant, sync_version = existant + 1 | existing.sync_version + 1 |
| manual        | none     | None (les deux côtés remontés)      | inchangée, pending_review |
| inconnue      | existing | existant inchangé                   | existing.sync_version |
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Winner(str, enum.Enum):
    INCOMING = "incoming"
    EXISTING = "existing"
    NONE = "none"


@dataclass(frozen=True)
class Resolution:
    winner: Winner
    resolved_record: Optional[Any]
    next_version: int
    reason: str

    @property
    def pending_review(self) -> bool:
        return self.winner is Winner.NONE


def resolve(incoming: Any, existing: Any, strategy: Optional[str]) -> Resolution:
    """
    Calcule le gagnant d'un conflit.

    `incoming` est un SyncRecord, `existing` le pointage stocké.
    Une stratégie inconnue retombe sur server_wins : des données client non
    fiables ne doivent jamais écraser l'état serveur par défaut.
    """
    current_version = existing.sync_version

    if strategy == "client_wins":
        return Resolution(
            winner=Winner.INCOMING,
            resolved_record=incoming.model_copy(update={"sync_version": current_version + 1}),
            next_version=current_version + 1,
            reason="Stratégie client_wins appliquée",
        )

    if strategy == "server_wins":
        return Resolution(
            winner=Winner.EXISTING,
            resolved_record=existing,
            next_version=current_version,
            reason="Stratégie server_wins appliquée",
        )

    if strategy == "manual":
        return Resolution(
            winner=Winner.NONE,
            resolved_record=None,
            next_version=current_version,
            reason="Résolution manuelle requise",
        )

    logger.warning("Stratégie de résolution inconnue %r, repli sur server_wins", strategy)
    return Resolution(
        winner=Winner.EXISTING,
        resolved_record=existing,
        next_version=current_version,
        reason="Stratégie inconnue, repli sur server_wins",
    )
