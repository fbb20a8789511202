"""
Approval workflow shared by time logs and invoices.

    PENDING --(project manager)--> APPROVED_PM --(director)--> RATIFIED_MGR
       |                               |
       +--(project manager)--> REJECTED <--(director)--+

RATIFIED_MGR and REJECTED are terminal.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Type

import structlog
from pydantic import BaseModel

from ..constants import INVOICES, TIME_LOGS
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..schemas.billing import Invoice, Status, TimeLog
from ..schemas.users import ActorRole
from ..store.provider import DocumentStore
from .access import Identity
from .audit import create_audit_log

logger = structlog.get_logger(__name__)


TRANSITIONS: Dict[ActorRole, Dict[Status, FrozenSet[Status]]] = {
    ActorRole.PROJECT_MANAGER: {
        Status.PENDING: frozenset({Status.APPROVED_PM, Status.REJECTED}),
    },
    ActorRole.DIRECTOR: {
        Status.APPROVED_PM: frozenset({Status.RATIFIED_MGR, Status.REJECTED}),
    },
}

TERMINAL_STATES: FrozenSet[Status] = frozenset({Status.RATIFIED_MGR, Status.REJECTED})


@dataclass(frozen=True)
class EntityBinding:
    collection: str
    model: Type[BaseModel]
    entity_type: str


TIME_LOG_BINDING = EntityBinding(TIME_LOGS, TimeLog, "time_log")
INVOICE_BINDING = EntityBinding(INVOICES, Invoice, "invoice")


def allowed_targets(role: Optional[ActorRole], current: Status) -> FrozenSet[Status]:
    if role is None:
        return frozenset()
    return TRANSITIONS.get(role, {}).get(current, frozenset())


def is_allowed(role: Optional[ActorRole], current: Status, target: Status) -> bool:
    return target in allowed_targets(role, current)


def check_transition(role: Optional[ActorRole], current: Status, target: Status) -> None:
    if current in TERMINAL_STATES:
        raise AuthorizationError(f"{current.value} is final; cannot move to {target.value}")
    if not is_allowed(role, current, target):
        who = role.value if role else "this role"
        raise AuthorizationError(f"{who} cannot move a record from {current.value} to {target.value}")


def transition(
    store: DocumentStore,
    binding: EntityBinding,
    record_id: str,
    identity: Identity,
    target: Status,
    feedback: Optional[str] = None,
) -> BaseModel:
    """Move one record to ``target`` on behalf of ``identity``.

    The write is conditional on the status read here; if another actor changed it
    first the store raises ConflictError and nothing is applied.
    """
    doc = store.get(binding.collection, record_id)
    if doc is None:
        raise NotFoundError(binding.collection, record_id)
    current = Status(doc.get("status") or Status.PENDING.value)
    target = Status(target)

    check_transition(identity.actor_role, current, target)
    feedback = (feedback or "").strip() or None
    if feedback and target is not Status.REJECTED:
        raise ValidationError("feedback can only accompany a rejection")

    fields = {"status": target.value}
    if feedback:
        fields["feedback"] = feedback
    updated = store.update(binding.collection, record_id, fields, expected={"status": current.value})

    create_audit_log(
        store,
        entity_type=binding.entity_type,
        entity_id=record_id,
        action=target.value,
        actor_id=identity.uid,
        actor_role=identity.role_id,
        source="api",
        changes={"status": {"before": current.value, "after": target.value}, "feedback": feedback},
    )
    logger.info(
        "status_transition",
        entity=binding.entity_type,
        record_id=record_id,
        before=current.value,
        after=target.value,
        actor=identity.uid,
    )
    return binding.model(**updated)


def approve_time_log(store: DocumentStore, log_id: str, identity: Identity) -> TimeLog:
    return transition(store, TIME_LOG_BINDING, log_id, identity, Status.APPROVED_PM)


def ratify_time_log(store: DocumentStore, log_id: str, identity: Identity) -> TimeLog:
    return transition(store, TIME_LOG_BINDING, log_id, identity, Status.RATIFIED_MGR)


def reject_time_log(store: DocumentStore, log_id: str, identity: Identity, feedback: Optional[str] = None) -> TimeLog:
    return transition(store, TIME_LOG_BINDING, log_id, identity, Status.REJECTED, feedback)


def approve_invoice(store: DocumentStore, invoice_id: str, identity: Identity) -> Invoice:
    return transition(store, INVOICE_BINDING, invoice_id, identity, Status.APPROVED_PM)


def ratify_invoice(store: DocumentStore, invoice_id: str, identity: Identity) -> Invoice:
    return transition(store, INVOICE_BINDING, invoice_id, identity, Status.RATIFIED_MGR)


def reject_invoice(store: DocumentStore, invoice_id: str, identity: Identity, feedback: Optional[str] = None) -> Invoice:
    return transition(store, INVOICE_BINDING, invoice_id, identity, Status.REJECTED, feedback)
