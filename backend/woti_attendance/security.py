"""
Authentification des appels API par jeton JWT (Bearer).

Les jetons sont émis par le service d'authentification ; cette API se contente
de vérifier la signature et l'expiration, puis d'extraire l'utilisateur (claim "sub").
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from woti_attendance.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user_id: uuid.UUID, expires_in_seconds: int = 3600) -> str:
    """Émet un jeton signé (utilisé par les outils d'administration et les tests)."""
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in_seconds}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Vérifie la signature et l'expiration du jeton.
    Lève ValueError si le jeton est expiré ou invalide.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Jeton expiré.") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Jeton invalide.") from exc


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> uuid.UUID:
    """Dépendance FastAPI : identifiant de l'utilisateur authentifié, sinon 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Authentification requise.")

    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError as e:
        logger.info("Jeton refusé : %s", e)
        raise _unauthorized(str(e))

    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized("Jeton invalide : identifiant utilisateur absent.")
