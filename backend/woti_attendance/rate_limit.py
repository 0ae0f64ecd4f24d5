"""
Limitation de débit en mémoire (fenêtre fixe par clé).

Suffisant pour une instance unique ; plusieurs instances derrière un
répartiteur ont chacune leur propre compteur.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict

from fastapi import Depends, HTTPException

from woti_attendance.config import settings
from woti_attendance.security import get_current_user_id

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    start_ts: float
    count: int = 0


class RateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._last_purge = 0.0

    def allow(self, key: str) -> bool:
        """Comptabilise une requête pour `key` ; False si le quota de la fenêtre est dépassé."""
        if self.max_requests <= 0:
            return True
        now = self._clock()
        with self._lock:
            # Purge des fenêtres expirées, au plus une fois par fenêtre
            if now - self._last_purge >= self.window_seconds:
                expired = [k for k, w in self._windows.items() if now - w.start_ts >= self.window_seconds]
                for k in expired:
                    del self._windows[k]
                self._last_purge = now

            window = self._windows.get(key)
            if window is None or now - window.start_ts >= self.window_seconds:
                self._windows[key] = RateWindow(start_ts=now, count=1)
                return True
            window.count += 1
            return window.count <= self.max_requests

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_purge = 0.0


sync_rate_limiter = RateLimiter(
    max_requests=settings.SYNC_RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.SYNC_RATE_LIMIT_WINDOW_SECONDS,
)


def enforce_sync_rate_limit(user_id: uuid.UUID = Depends(get_current_user_id)) -> uuid.UUID:
    """Dépendance FastAPI : 429 si l'utilisateur dépasse le quota de synchronisations."""
    if not sync_rate_limiter.allow(str(user_id)):
        logger.warning("Quota de synchronisation dépassé pour user=%s", user_id)
        raise HTTPException(
            status_code=429,
            detail="Trop de requêtes de synchronisation. Réessayez plus tard.",
            headers={"Retry-After": str(int(sync_rate_limiter.window_seconds))},
        )
    return user_id
