from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_current_identity
from ..services import notifications as notification_service
from ..services.access import Identity
from ..store.provider import DocumentStore
from ..store.registry import get_store

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _role(identity: Identity):
    role = identity.actor_role
    if role is None:
        raise HTTPException(status_code=403, detail="Your role does not receive notifications")
    return role


@router.get("")
def list_notifications(
    unread_only: bool = False,
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(get_current_identity),
):
    """Notifications addressed to the caller's role, newest first."""
    role = _role(me)
    items = notification_service.list_for_role(store, role, unread_only=unread_only)
    return {
        "items": [n.model_dump(mode="json") for n in items],
        "unread": notification_service.unread_count(store, role),
    }


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, store: DocumentStore = Depends(get_store), me: Identity = Depends(get_current_identity)):
    return notification_service.mark_read(store, notification_id, _role(me)).model_dump(mode="json")


@router.post("/read-all")
def mark_all_read(store: DocumentStore = Depends(get_store), me: Identity = Depends(get_current_identity)):
    return {"updated": notification_service.mark_all_read(store, _role(me))}


@router.delete("")
def clear(store: DocumentStore = Depends(get_store), me: Identity = Depends(get_current_identity)):
    return {"deleted": notification_service.clear_for_role(store, _role(me))}
