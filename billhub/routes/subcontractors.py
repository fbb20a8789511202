from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import require_path
from ..schemas.billing import SubcontractorCreate, SubcontractorUpdate
from ..services import projects as project_service
from ..services.access import Identity
from ..services.mirror import load_state
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(prefix="/subcontractors", tags=["subcontractors"])


@router.get("")
def list_subcontractors(
    q: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/resources")),
):
    subs = project_service.search_subcontractors(load_state(store).subcontractors, q or "")
    return [s.model_dump(mode="json") for s in subs]


@router.post("", status_code=201)
def create_subcontractor(
    payload: SubcontractorCreate,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/resources")),
):
    return project_service.create_subcontractor(store, payload).model_dump(mode="json")


@router.get("/{subcontractor_id}")
def get_subcontractor(subcontractor_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/resources"))):
    return project_service.get_subcontractor(store, subcontractor_id).model_dump(mode="json")


@router.patch("/{subcontractor_id}")
def update_subcontractor(
    subcontractor_id: str,
    payload: SubcontractorUpdate,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/resources")),
):
    return project_service.update_subcontractor(store, subcontractor_id, payload).model_dump(mode="json")


@router.delete("/{subcontractor_id}")
def delete_subcontractor(subcontractor_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/resources"))):
    project_service.delete_subcontractor(store, subcontractor_id)
    return {"status": "ok"}
