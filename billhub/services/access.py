"""
Acting identity and path-based access checks.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..constants import ALL_PATHS, MENU_ITEMS, ROLES, USERS
from ..errors import NotFoundError
from ..schemas.billing import Subcontractor, TimeLog
from ..schemas.users import ActorRole, RoleDefinition, UserProfile
from ..store.provider import DocumentStore


@dataclass(frozen=True)
class Identity:
    """Who is acting. Passed explicitly to every workflow and scoping call."""

    uid: str
    email: str
    role_id: str = ""
    allowed_paths: Tuple[str, ...] = ()
    display_name: str = ""
    subcontractor_id: Optional[str] = None
    manager_email: Optional[str] = None

    @property
    def actor_role(self) -> Optional[ActorRole]:
        try:
            return ActorRole((self.role_id or "").upper())
        except ValueError:
            return None

    @property
    def is_admin(self) -> bool:
        return (self.role_id or "").lower() == "admin" or ALL_PATHS in self.allowed_paths

    def can_access(self, path: str) -> bool:
        return can_access(self.allowed_paths, path)


def can_access(allowed_paths: Iterable[str], path: str) -> bool:
    allowed = set(allowed_paths or ())
    return ALL_PATHS in allowed or path in allowed


def visible_menu(allowed_paths: Sequence[str]) -> List[dict]:
    return [item for item in MENU_ITEMS if can_access(allowed_paths, item["path"])]


def load_identity(store: DocumentStore, uid: str) -> Identity:
    doc = store.get(USERS, uid)
    if doc is None:
        raise NotFoundError(USERS, uid)
    profile = UserProfile(**{**doc, "uid": doc.get("uid") or uid})
    role_doc = store.get(ROLES, profile.role_id) if profile.role_id else None
    role = RoleDefinition(**role_doc) if role_doc else None
    return Identity(
        uid=profile.uid,
        email=profile.email,
        role_id=profile.role_id,
        allowed_paths=tuple(role.allowed_paths) if role else (),
        display_name=profile.display_name,
        subcontractor_id=profile.subcontractor_id,
        manager_email=profile.manager_email,
    )


def is_approver(identity: Identity) -> bool:
    return identity.actor_role in (ActorRole.PROJECT_MANAGER, ActorRole.DIRECTOR)


def managed_subcontractor_ids(identity: Identity, subcontractors: Iterable[Subcontractor]) -> set:
    return {s.id for s in subcontractors if s.manager_email and s.manager_email == identity.email}


def scope_to_managed(identity: Identity, logs: Iterable[TimeLog], subcontractors: Iterable[Subcontractor]) -> List[TimeLog]:
    """Approvers only see the entries of resources that report to them.

    A resource without a manager email is visible to no approver.
    """
    logs = list(logs)
    if not (is_approver(identity) and identity.email):
        return logs
    managed = managed_subcontractor_ids(identity, subcontractors)
    return [log for log in logs if log.subcontractor_id in managed]
