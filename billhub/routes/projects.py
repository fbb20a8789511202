from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import require_path
from ..constants import TIME_LOGS
from ..schemas.billing import ProjectAssignment, ProjectCreate, ProjectUpdate, TimeLog
from ..services import projects as project_service
from ..services.access import Identity
from ..services.quota import project_quotas, remaining_hours_hint
from ..store.provider import DocumentStore
from ..store.registry import get_store
from ..services.mirror import load_state


router = APIRouter(prefix="/projects", tags=["projects"])


def _time_logs(store: DocumentStore):
    return [TimeLog(**d) for d in store.list(TIME_LOGS)]


@router.get("")
def list_projects(
    q: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/projects")),
):
    state = load_state(store)
    needle = (q or "").lower()
    out = []
    for p in state.projects:
        if needle and needle not in p.name.lower() and needle not in p.client.lower():
            continue
        out.append({
            **p.model_dump(mode="json"),
            "quotas": [u.to_dict() for u in project_quotas(p, state.time_logs)],
        })
    return out


@router.post("", status_code=201)
def create_project(payload: ProjectCreate, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/projects"))):
    return project_service.create_project(store, payload).model_dump(mode="json")


@router.get("/{project_id}")
def get_project(project_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/projects"))):
    p = project_service.get_project(store, project_id)
    return {
        **p.model_dump(mode="json"),
        "quotas": [u.to_dict() for u in project_quotas(p, _time_logs(store))],
    }


@router.patch("/{project_id}")
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/projects")),
):
    return project_service.update_project(store, project_id, payload).model_dump(mode="json")


@router.delete("/{project_id}")
def delete_project(project_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/projects"))):
    project_service.delete_project(store, project_id)
    return {"status": "ok"}


# =====================
# Assignments & quotas
# =====================

@router.post("/{project_id}/assignments", status_code=201)
def add_assignment(
    project_id: str,
    payload: ProjectAssignment,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/projects")),
):
    return project_service.add_assignment(store, project_id, payload).model_dump(mode="json")


@router.delete("/{project_id}/assignments/{subcontractor_id}")
def remove_assignment(
    project_id: str,
    subcontractor_id: str,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/projects")),
):
    return project_service.remove_assignment(store, project_id, subcontractor_id).model_dump(mode="json")


@router.get("/{project_id}/quota")
def get_quota(project_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/projects"))):
    p = project_service.get_project(store, project_id)
    return [u.to_dict() for u in project_quotas(p, _time_logs(store))]


@router.get("/{project_id}/quota/{subcontractor_id}")
def get_quota_hint(
    project_id: str,
    subcontractor_id: str,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/projects")),
):
    p = project_service.get_project(store, project_id)
    return {
        "project_id": p.id,
        "subcontractor_id": subcontractor_id,
        "remaining": remaining_hours_hint(p, subcontractor_id, _time_logs(store)),
    }
