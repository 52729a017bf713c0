import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import AccessDenied, Unauthorized
from ..models.models import UserRole

logger = structlog.get_logger(__name__)

http_bearer = HTTPBearer(auto_error=False)


def _create_token(sub: str, ttl_seconds: int, extra: Optional[dict] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if extra:
        payload.update(extra)
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token


def create_access_token(user_id: str, roles: Optional[List[str]] = None, ttl_seconds: Optional[int] = None) -> str:
    return _create_token(str(user_id), ttl_seconds or settings.jwt_ttl_seconds, extra={"roles": roles or []})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        # Expired, malformed and wrongly signed tokens all read the same to the caller
        raise Unauthorized()


def authenticate(token: Optional[str]) -> str:
    """Resolve a bearer token to the actor id carried in its ``sub`` claim."""
    if not token:
        raise Unauthorized()
    payload = decode_token(token)
    actor_id = payload.get("sub")
    if not actor_id:
        raise Unauthorized()
    return str(actor_id)


def authorize_super_admin(db: Session, actor_id: str) -> None:
    """Require the super-admin role; lookup failures count as a denial."""
    try:
        role = db.execute(
            select(UserRole.id).where(
                UserRole.user_id == actor_id,
                UserRole.role == settings.super_admin_role,
            )
        ).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("super_admin_denied", actor_id=actor_id, reason="lookup_failed", error=str(e))
        raise AccessDenied()
    if role is None:
        logger.warning("super_admin_denied", actor_id=actor_id, reason="missing_role")
        raise AccessDenied()


def require_super_admin(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> str:
    if creds is None:
        raise Unauthorized()
    actor_id = authenticate(creds.credentials)
    authorize_super_admin(db, actor_id)
    return actor_id
