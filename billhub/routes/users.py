from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import require_path
from ..schemas.users import UserCreateRequest, UserUpdate
from ..services import users as user_service
from ..services.access import Identity
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(tags=["users"])


@router.get("/users")
def list_users(
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/admin/users")),
):
    """
    List user profiles with pagination

    Args:
        q: Search query (display name or email)
        page: Page number (1-indexed)
        limit: Number of items per page (default 50, max 200)
    """
    limit = min(max(1, limit), 200)
    page = max(1, page)
    offset = (page - 1) * limit

    profiles = sorted(user_service.list_profiles(store, q), key=lambda p: (p.display_name or p.email).lower())
    return {
        "items": [p.model_dump(mode="json") for p in profiles[offset:offset + limit]],
        "total": len(profiles),
        "page": page,
        "limit": limit,
    }


@router.post("/users", status_code=201)
def create_user(req: UserCreateRequest, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/users"))):
    return user_service.create_user(store, req)


@router.get("/users/{uid}")
def get_user(uid: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/users"))):
    return user_service.get_profile(store, uid).model_dump(mode="json")


@router.patch("/users/{uid}")
def update_user(uid: str, payload: UserUpdate, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/users"))):
    return user_service.update_user(store, uid, payload).model_dump(mode="json")


@router.delete("/users/{uid}")
def delete_user(uid: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/users"))):
    user_service.delete_user(store, uid)
    return {"status": "ok"}


# =====================
# Invites
# =====================

@router.get("/invites")
def list_invites(store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/users"))):
    return user_service.list_invites(store)


@router.delete("/invites/{invite_id}")
def delete_invite(invite_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/users"))):
    user_service.delete_invite(store, invite_id)
    return {"status": "ok"}
