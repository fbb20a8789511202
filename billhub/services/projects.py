"""
Projects, their resource assignments, and the subcontractor registry.
"""
from typing import List

import structlog

from ..config import settings
from ..constants import PROJECTS, SUBCONTRACTORS
from ..errors import ConflictError, NotFoundError, ValidationError
from ..schemas.billing import (
    Project,
    ProjectAssignment,
    ProjectCreate,
    ProjectUpdate,
    Subcontractor,
    SubcontractorCreate,
    SubcontractorUpdate,
)
from ..schemas.updates import apply_update
from ..store.provider import DocumentStore, new_document_id

logger = structlog.get_logger(__name__)


def get_project(store: DocumentStore, project_id: str) -> Project:
    doc = store.get(PROJECTS, project_id)
    if doc is None:
        raise NotFoundError(PROJECTS, project_id)
    return Project(**doc)


def get_subcontractor(store: DocumentStore, subcontractor_id: str) -> Subcontractor:
    doc = store.get(SUBCONTRACTORS, subcontractor_id)
    if doc is None:
        raise NotFoundError(SUBCONTRACTORS, subcontractor_id)
    return Subcontractor(**doc)


def _check_unique_assignments(assignments: List[ProjectAssignment]) -> None:
    seen = set()
    for a in assignments:
        if a.subcontractor_id in seen:
            raise ConflictError(f"subcontractor {a.subcontractor_id} is assigned twice")
        seen.add(a.subcontractor_id)


def create_project(store: DocumentStore, payload: ProjectCreate) -> Project:
    if not payload.name or not payload.client:
        raise ValidationError("name and client are required")
    _check_unique_assignments(payload.assignments)
    project = Project(**{**payload.model_dump(), "id": payload.id or new_document_id()})
    store.create(PROJECTS, project.model_dump(mode="json"))
    logger.info("project_created", project_id=project.id)
    return project


def update_project(store: DocumentStore, project_id: str, payload: ProjectUpdate) -> Project:
    current = get_project(store, project_id)
    fields = payload.model_dump(exclude_unset=True)
    merged = apply_update(Project, current.model_dump(mode="json"), fields)
    if not merged.name or not merged.client:
        raise ValidationError("name and client cannot be empty")
    doc = store.update(PROJECTS, project_id, fields)
    return Project(**doc)


def delete_project(store: DocumentStore, project_id: str) -> None:
    if not store.delete(PROJECTS, project_id):
        raise NotFoundError(PROJECTS, project_id)


def add_assignment(store: DocumentStore, project_id: str, assignment: ProjectAssignment) -> Project:
    """Assign a resource to a project; at most one assignment per resource."""
    project = get_project(store, project_id)
    get_subcontractor(store, assignment.subcontractor_id)
    if project.assignment_for(assignment.subcontractor_id) is not None:
        raise ConflictError(f"subcontractor {assignment.subcontractor_id} is already assigned to {project_id}")
    assignments = [a.model_dump(mode="json") for a in project.assignments]
    assignments.append(assignment.model_dump(mode="json"))
    doc = store.update(
        PROJECTS,
        project_id,
        {"assignments": assignments},
        expected={"assignments": [a.model_dump(mode="json") for a in project.assignments]},
    )
    return Project(**doc)


def remove_assignment(store: DocumentStore, project_id: str, subcontractor_id: str) -> Project:
    project = get_project(store, project_id)
    if project.assignment_for(subcontractor_id) is None:
        raise NotFoundError(f"{PROJECTS}/{project_id}/assignments", subcontractor_id)
    remaining = [a.model_dump(mode="json") for a in project.assignments if a.subcontractor_id != subcontractor_id]
    doc = store.update(PROJECTS, project_id, {"assignments": remaining})
    return Project(**doc)


def create_subcontractor(store: DocumentStore, payload: SubcontractorCreate) -> Subcontractor:
    if not payload.name.strip():
        raise ValidationError("name is required")
    data = payload.model_dump()
    data["id"] = payload.id or new_document_id()
    data["currency"] = data.get("currency") or settings.default_currency
    sub = Subcontractor(**data)
    store.create(SUBCONTRACTORS, sub.model_dump(mode="json"))
    return sub


def update_subcontractor(store: DocumentStore, subcontractor_id: str, payload: SubcontractorUpdate) -> Subcontractor:
    current = get_subcontractor(store, subcontractor_id)
    fields = payload.model_dump(exclude_unset=True)
    merged = apply_update(Subcontractor, current.model_dump(mode="json"), fields)
    if not merged.name.strip():
        raise ValidationError("name cannot be empty")
    doc = store.update(SUBCONTRACTORS, subcontractor_id, fields)
    return Subcontractor(**doc)


def delete_subcontractor(store: DocumentStore, subcontractor_id: str) -> None:
    if not store.delete(SUBCONTRACTORS, subcontractor_id):
        raise NotFoundError(SUBCONTRACTORS, subcontractor_id)


def search_subcontractors(subcontractors: List[Subcontractor], text: str = "") -> List[Subcontractor]:
    needle = (text or "").lower()
    if not needle:
        return list(subcontractors)
    return [s for s in subcontractors if needle in s.name.lower() or needle in (s.role or "").lower()]
