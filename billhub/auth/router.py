from fastapi import APIRouter, Depends, HTTPException

from ..constants import ROLES
from ..schemas.auth import LoginRequest, MeResponse, RefreshRequest, RegisterRequest, TokenResponse
from ..services import users as user_service
from ..services.access import Identity, visible_menu
from ..store.provider import DocumentStore
from ..store.registry import get_store
from .security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_identity,
)
from ..logging import structlog


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


def _tokens(uid: str, role_id: str = "") -> TokenResponse:
    return TokenResponse(access_token=create_access_token(uid, role_id), refresh_token=create_refresh_token(uid))


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, store: DocumentStore = Depends(get_store)):
    uid = user_service.authenticate(store, req.email, req.password)
    if not uid:
        logger.info("login_failed", email=user_service.normalize_email(req.email))
        raise HTTPException(status_code=401, detail="Invalid credentials")
    profile = store.get("users", uid) or {}
    return _tokens(uid, profile.get("role_id") or "")


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    return _tokens(payload["sub"])


@router.post("/register", response_model=TokenResponse)
def register(req: RegisterRequest, store: DocumentStore = Depends(get_store)):
    """Sign up; claims a pending invite for the email when there is one."""
    profile = user_service.register(store, req.email, req.password, req.display_name)
    return _tokens(profile.uid, profile.role_id)


@router.get("/me", response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity), store: DocumentStore = Depends(get_store)):
    role = store.get(ROLES, identity.role_id) if identity.role_id else None
    return MeResponse(
        uid=identity.uid,
        email=identity.email,
        display_name=identity.display_name,
        role_id=identity.role_id,
        role_name=(role or {}).get("name"),
        allowed_paths=list(identity.allowed_paths),
        manager_email=identity.manager_email,
        subcontractor_id=identity.subcontractor_id,
        menu=visible_menu(identity.allowed_paths),
    )
