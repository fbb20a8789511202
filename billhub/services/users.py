"""
User accounts, profiles, invites and role definitions.

Credentials live in ``auth_accounts`` keyed by the normalized email; the
public profile lives in ``users`` keyed by uid.
"""
import threading
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from ..auth.security import get_password_hash, verify_password
from ..config import settings
from ..constants import AUTH_ACCOUNTS, ROLES, USER_INVITES, USERS
from ..errors import ConflictError, NotFoundError, ValidationError
from ..schemas.users import RoleDefinition, RoleUpdate, UserCreateRequest, UserProfile, UserUpdate
from ..schemas.updates import apply_update
from ..store.provider import DocumentStore, new_document_id

logger = structlog.get_logger(__name__)

# One account creation at a time so the credential and profile writes never interleave
_creation_lock = threading.Lock()

INVITE_PENDING = "pending"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =====================
# Credentials
# =====================

def get_account(store: DocumentStore, email: str) -> Optional[dict]:
    return store.get(AUTH_ACCOUNTS, normalize_email(email))


def create_account(store: DocumentStore, email: str, password: str) -> str:
    if not password or len(password) < settings.min_password_length:
        raise ValidationError(f"password must be at least {settings.min_password_length} characters")
    key = normalize_email(email)
    if store.get(AUTH_ACCOUNTS, key) is not None:
        raise ConflictError(f"an account for {key} already exists")
    uid = str(uuid.uuid4())
    store.create(AUTH_ACCOUNTS, {
        "id": key,
        "uid": uid,
        "email": key,
        "password_hash": get_password_hash(password),
        "created_at": _now_iso(),
    })
    return uid


def authenticate(store: DocumentStore, email: str, password: str) -> Optional[str]:
    account = get_account(store, email)
    if not account or not verify_password(password, account.get("password_hash") or ""):
        return None
    store.update(AUTH_ACCOUNTS, account["id"], {"last_login_at": _now_iso()})
    return account["uid"]


# =====================
# Profiles
# =====================

def get_profile(store: DocumentStore, uid: str) -> UserProfile:
    doc = store.get(USERS, uid)
    if doc is None:
        raise NotFoundError(USERS, uid)
    return UserProfile(**{**doc, "uid": uid})


def list_profiles(store: DocumentStore, q: Optional[str] = None) -> List[UserProfile]:
    needle = (q or "").lower()
    out = []
    for doc in store.list(USERS):
        profile = UserProfile(**{**doc, "uid": doc.get("uid") or doc["id"]})
        if needle and needle not in profile.display_name.lower() and needle not in profile.email.lower():
            continue
        out.append(profile)
    return out


def _write_profile(store: DocumentStore, profile: UserProfile) -> None:
    store.upsert(USERS, profile.uid, profile.model_dump(mode="json"))


def create_user(store: DocumentStore, req: UserCreateRequest) -> dict:
    """Direct mode writes the credential then the profile; invite mode stores a claimable invite."""
    if req.role_id and store.get(ROLES, req.role_id) is None:
        raise NotFoundError(ROLES, req.role_id)
    if req.mode == "invite":
        return {"mode": "invite", "invite": create_invite(store, req)}
    with _creation_lock:
        uid = create_account(store, req.email, req.password or "")
        profile = UserProfile(
            uid=uid,
            email=req.email,
            display_name=req.display_name,
            role_id=req.role_id or "subcontractor",
            manager_email=req.manager_email,
            subcontractor_id=req.subcontractor_id,
        )
        _write_profile(store, profile)
    logger.info("user_created", uid=uid, role_id=profile.role_id)
    return {"mode": "direct", "user": profile.model_dump(mode="json")}


def update_user(store: DocumentStore, uid: str, payload: UserUpdate) -> UserProfile:
    current = get_profile(store, uid)
    fields = payload.model_dump(exclude_unset=True)
    apply_update(UserProfile, current.model_dump(mode="json"), fields)
    if fields.get("role_id") and store.get(ROLES, fields["role_id"]) is None:
        raise NotFoundError(ROLES, fields["role_id"])
    doc = store.update(USERS, uid, fields)
    return UserProfile(**{**doc, "uid": uid})


def delete_user(store: DocumentStore, uid: str) -> None:
    """Remove the profile; the credential goes with it so the email can be reused."""
    doc = store.get(USERS, uid)
    if doc is None:
        raise NotFoundError(USERS, uid)
    store.delete(USERS, uid)
    store.delete(AUTH_ACCOUNTS, normalize_email(doc.get("email", "")))


# =====================
# Invites
# =====================

def create_invite(store: DocumentStore, req: UserCreateRequest) -> dict:
    email = normalize_email(req.email)
    if get_account(store, email) is not None:
        raise ConflictError(f"{email} is already registered")
    invite = {
        "id": new_document_id(),
        "email": email,
        "display_name": req.display_name,
        "role_id": req.role_id,
        "manager_email": req.manager_email,
        "subcontractor_id": req.subcontractor_id,
        "status": INVITE_PENDING,
        "created_at": _now_iso(),
    }
    store.create(USER_INVITES, invite)
    logger.info("invite_created", email=email, role_id=req.role_id)
    return invite


def list_invites(store: DocumentStore) -> List[dict]:
    return [d for d in store.list(USER_INVITES) if d.get("status") == INVITE_PENDING]


def find_invite(store: DocumentStore, email: str) -> Optional[dict]:
    key = normalize_email(email)
    return next((d for d in list_invites(store) if d.get("email") == key), None)


def delete_invite(store: DocumentStore, invite_id: str) -> None:
    if not store.delete(USER_INVITES, invite_id):
        raise NotFoundError(USER_INVITES, invite_id)


def register(store: DocumentStore, email: str, password: str, display_name: Optional[str] = None) -> UserProfile:
    """Self sign-up. A pending invite for the email is claimed and consumed;
    without one the account gets no role and sees nothing until an admin assigns one.
    """
    with _creation_lock:
        invite = find_invite(store, email)
        uid = create_account(store, email, password)
        profile = UserProfile(
            uid=uid,
            email=email,
            display_name=display_name or (invite or {}).get("display_name") or "",
            role_id=(invite or {}).get("role_id") or "",
            manager_email=(invite or {}).get("manager_email"),
            subcontractor_id=(invite or {}).get("subcontractor_id"),
        )
        _write_profile(store, profile)
        if invite:
            store.delete(USER_INVITES, invite["id"])
    logger.info("user_registered", uid=uid, invited=bool(invite))
    return profile


# =====================
# Roles
# =====================

def list_roles(store: DocumentStore) -> List[RoleDefinition]:
    return [RoleDefinition(**doc) for doc in store.list(ROLES)]


def get_role(store: DocumentStore, role_id: str) -> RoleDefinition:
    doc = store.get(ROLES, role_id)
    if doc is None:
        raise NotFoundError(ROLES, role_id)
    return RoleDefinition(**doc)


def save_role(store: DocumentStore, role: RoleDefinition) -> RoleDefinition:
    if not role.id.strip() or not role.name.strip():
        raise ValidationError("role id and name are required")
    store.upsert(ROLES, role.id, role.model_dump(mode="json"))
    return role


def update_role(store: DocumentStore, role_id: str, payload: RoleUpdate) -> RoleDefinition:
    current = get_role(store, role_id)
    fields = payload.model_dump(exclude_unset=True)
    merged = apply_update(RoleDefinition, current.model_dump(mode="json"), fields)
    if not merged.name.strip():
        raise ValidationError("role name is required")
    doc = store.update(ROLES, role_id, fields)
    return RoleDefinition(**doc)


def delete_role(store: DocumentStore, role_id: str) -> None:
    in_use = [d["id"] for d in store.list(USERS) if d.get("role_id") == role_id]
    if in_use:
        raise ConflictError(f"role {role_id} is still assigned to {len(in_use)} user(s)")
    if not store.delete(ROLES, role_id):
        raise NotFoundError(ROLES, role_id)
