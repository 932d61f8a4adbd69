from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
import jwt

from termin_manager.core.settings import settings
from termin_manager.crud.session import get_active_session
from termin_manager.db import get_db
from termin_manager.models.team import TeamSession

bearer = HTTPBearer(auto_error=False)

_SECRET_CACHE: str | None = None


def _secret() -> str:
    global _SECRET_CACHE
    if _SECRET_CACHE:
        return _SECRET_CACHE

    sec = str(settings.AUTH_JWT_SECRET or "").strip()
    if not sec:
        if settings.ENV == "prod":
            raise RuntimeError("SECURITY: AUTH_JWT_SECRET required when ENV=prod")
        # lab: tokens die with the process
        sec = secrets.token_urlsafe(48)

    _SECRET_CACHE = sec
    return sec


def create_access_token(session_id: str, expires_at: datetime) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": session_id,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("token expired")
    except jwt.PyJWTError:
        raise _unauthorized("invalid token")


def require_session(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    access_token: str | None = Query(default=None, include_in_schema=False),
    db: Session = Depends(get_db),
) -> TeamSession:
    """
    Resolves the bearer token to a live server-side session.

    The token only names the session; the team always comes from the session row.
    `access_token` in the query string is accepted for EventSource clients.
    """
    token = None
    if creds and (creds.scheme or "").lower() == "bearer":
        token = creds.credentials
    elif access_token:
        token = access_token

    if not token:
        raise _unauthorized("not authenticated")

    claims = decode_token(token)
    row = get_active_session(db, claims.get("sub"))
    if row is None:
        raise _unauthorized("session expired or revoked")
    return row
