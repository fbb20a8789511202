"""
Audit logging service.
Append-only audit trail stored in the audit_logs collection, with integrity hashing.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Optional, Dict, List

from ..config import settings
from ..constants import AUDIT_LOGS
from ..store.provider import DocumentStore, new_document_id


def _integrity_hash(entry: Dict, secret: str) -> str:
    # Remove None values and sort keys for consistency
    canonical = {k: v for k, v in entry.items() if v is not None}
    canonical_json = json.dumps(canonical, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def create_audit_log(
    store: DocumentStore,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    source: Optional[str] = None,
    changes: Optional[Dict] = None,
    integrity_secret: Optional[str] = None,
) -> Dict:
    """
    Append an audit entry.

    Args:
        store: Document store
        entity_type: Type of entity (time_log|invoice|project|user)
        entity_id: Entity ID
        action: Action performed (APPROVED_PM|RATIFIED_MGR|REJECTED|...)
        actor_id: User ID who performed the action
        actor_role: Role of the actor
        source: Source of the action (api|sync|system)
        changes: Before/after values
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)

    Returns:
        The stored entry
    """
    entry = {
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "action": action,
        "actor_id": str(actor_id) if actor_id else None,
        "actor_role": actor_role,
        "source": source or "system",
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "changes": changes,
    }
    secret = integrity_secret if integrity_secret is not None else settings.jwt_secret
    if secret:
        entry["integrity_hash"] = _integrity_hash(entry, secret)
    entry["id"] = new_document_id()
    store.create(AUDIT_LOGS, entry)
    return entry


def verify_audit_log(entry: Dict, integrity_secret: Optional[str] = None) -> bool:
    secret = integrity_secret if integrity_secret is not None else settings.jwt_secret
    body = {k: v for k, v in entry.items() if k not in ("id", "integrity_hash")}
    return entry.get("integrity_hash") == _integrity_hash(body, secret)


def get_audit_logs(
    store: DocumentStore,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict]:
    """Audit entries, newest first, optionally filtered by entity."""
    rows = store.list(AUDIT_LOGS)
    if entity_type:
        rows = [r for r in rows if r.get("entity_type") == entity_type]
    if entity_id:
        rows = [r for r in rows if r.get("entity_id") == str(entity_id)]
    rows.sort(key=lambda r: r.get("timestamp_utc") or "", reverse=True)
    return rows[offset:offset + limit]
