"""
Utilitaires de dates : toutes les comparaisons se font en UTC « aware ».
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Heure serveur courante (UTC). Encapsulée pour faciliter le patch en test."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise un datetime en UTC.
    Un datetime naïf (SQLite, client sans fuseau) est interprété comme UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
