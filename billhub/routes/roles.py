from fastapi import APIRouter, Depends

from ..auth.security import require_path
from ..constants import MENU_ITEMS
from ..schemas.users import RoleDefinition, RoleUpdate
from ..services import users as user_service
from ..services.access import Identity
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("")
def list_roles(store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/roles"))):
    return [r.model_dump(mode="json") for r in user_service.list_roles(store)]


@router.get("/paths")
def list_paths(_: Identity = Depends(require_path("/admin/roles"))):
    # Areas a role can be granted
    return MENU_ITEMS


@router.put("/{role_id}")
def save_role(role_id: str, role: RoleDefinition, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/roles"))):
    return user_service.save_role(store, role.model_copy(update={"id": role_id})).model_dump(mode="json")


@router.patch("/{role_id}")
def update_role(role_id: str, payload: RoleUpdate, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/roles"))):
    return user_service.update_role(store, role_id, payload).model_dump(mode="json")


@router.delete("/{role_id}")
def delete_role(role_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/admin/roles"))):
    user_service.delete_role(store, role_id)
    return {"status": "ok"}
