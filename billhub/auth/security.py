import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext

from ..config import settings
from ..errors import NotFoundError
from ..logging import structlog
from ..services.access import Identity, load_identity
from ..store.provider import DocumentStore
from ..store.registry import get_store


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)
logger = structlog.get_logger(__name__)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # unknown or malformed hash
        return False


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


def create_access_token(uid: str, role_id: Optional[str] = None) -> str:
    return _create_token(uid, settings.jwt_ttl_seconds, extra={"role": role_id or ""})


def create_refresh_token(uid: str) -> str:
    return _create_token(uid, settings.refresh_ttl_seconds, extra={"type": "refresh"})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def identity_from_token(token: str, store: DocumentStore) -> Identity:
    payload = decode_token(token)
    if payload.get("type") == "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token not accepted here")
    uid = payload.get("sub")
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")
    try:
        return load_identity(store, str(uid))
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")


def get_current_identity(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    store: DocumentStore = Depends(get_store),
) -> Identity:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return identity_from_token(creds.credentials, store)


def require_path(path: str):
    """Require the application area ``path`` in the caller's role (or ``*``)."""
    def _dep(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not identity.can_access(path):
            logger.info("access_denied", uid=identity.uid, role_id=identity.role_id, path=path)
            raise HTTPException(status_code=403, detail="Forbidden")
        return identity

    return _dep


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return identity
