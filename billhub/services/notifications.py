"""
Role-addressed in-app notifications.
"""
from datetime import datetime
from typing import List, Optional

import pytz
import structlog

from ..config import settings
from ..constants import NOTIFICATIONS
from ..errors import NotFoundError
from ..schemas.users import ActorRole, Notification, NotificationType
from ..store.provider import DocumentStore, new_document_id

logger = structlog.get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(pytz.timezone(settings.tz_default)).isoformat()


def notify(
    store: DocumentStore,
    recipient_role: ActorRole,
    message: str,
    type: NotificationType = NotificationType.INFO,
    related_id: Optional[str] = None,
) -> Notification:
    notification = Notification(
        id=new_document_id(),
        recipient_role=recipient_role,
        message=message,
        type=type,
        read=False,
        timestamp=_now_iso(),
        related_id=related_id,
    )
    store.create(NOTIFICATIONS, notification.model_dump(mode="json", exclude_none=True))
    logger.info("notification_created", recipient_role=recipient_role.value, related_id=related_id)
    return notification


def list_for_role(store: DocumentStore, role: ActorRole, unread_only: bool = False) -> List[Notification]:
    """Notifications addressed to ``role``, newest first."""
    items = [Notification(**doc) for doc in store.list(NOTIFICATIONS) if doc.get("recipient_role") == role.value]
    if unread_only:
        items = [n for n in items if not n.read]
    return sorted(items, key=lambda n: n.timestamp, reverse=True)


def unread_count(store: DocumentStore, role: ActorRole) -> int:
    return len(list_for_role(store, role, unread_only=True))


def mark_read(store: DocumentStore, notification_id: str, role: ActorRole) -> Notification:
    doc = store.get(NOTIFICATIONS, notification_id)
    if doc is None or doc.get("recipient_role") != role.value:
        raise NotFoundError(NOTIFICATIONS, notification_id)
    return Notification(**store.update(NOTIFICATIONS, notification_id, {"read": True}))


def mark_all_read(store: DocumentStore, role: ActorRole) -> int:
    count = 0
    for n in list_for_role(store, role, unread_only=True):
        store.update(NOTIFICATIONS, n.id, {"read": True})
        count += 1
    return count


# Workflow hooks

def time_log_submitted(store: DocumentStore, subcontractor_name: str, hours: float, project_name: str, log_id: str) -> Notification:
    return notify(
        store,
        ActorRole.PROJECT_MANAGER,
        f"{subcontractor_name} logged {hours:g}h on {project_name}.",
        related_id=log_id,
    )


def time_log_approved(store: DocumentStore, subcontractor_name: str, project_name: str, log_id: str) -> Notification:
    return notify(
        store,
        ActorRole.DIRECTOR,
        f"Hours of {subcontractor_name} on {project_name} approved and awaiting ratification.",
        type=NotificationType.SUCCESS,
        related_id=log_id,
    )


def invoice_registered(store: DocumentStore, project_name: str, period: str, invoice_id: str) -> Notification:
    return notify(
        store,
        ActorRole.PROJECT_MANAGER,
        f"New invoice for {project_name} ({period}) ready for review.",
        type=NotificationType.WARNING,
        related_id=invoice_id,
    )


def clear_for_role(store: DocumentStore, role: ActorRole) -> int:
    count = 0
    for doc in store.list(NOTIFICATIONS):
        if doc.get("recipient_role") == role.value and store.delete(NOTIFICATIONS, doc["id"]):
            count += 1
    return count
