from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..auth.security import require_path
from ..config import settings
from ..constants import FACTORIAL_SETTINGS_ID, INVOICES, PROJECTS, SETTINGS, SUBCONTRACTORS, TIME_LOGS
from ..logging import structlog
from ..services.access import Identity
from ..services.integration_sync import SyncOptions, sync_all
from ..store.provider import DocumentStore
from ..store.registry import get_store
from ..store.sql_provider import SQLDocumentStore


router = APIRouter(prefix="/integrations", tags=["integrations"])
logger = structlog.get_logger(__name__)

CLEARABLE_COLLECTIONS = (PROJECTS, TIME_LOGS, SUBCONTRACTORS, INVOICES)


class FactorialSettings(BaseModel):
    api_key: Optional[str] = None


class SyncRequest(BaseModel):
    dry_run: bool = False
    preserve_local_fields: Optional[bool] = None
    strict_references: Optional[bool] = None


def _mask(key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    return f"{'*' * max(0, len(key) - 4)}{key[-4:]}"


def _factorial_key(store: DocumentStore) -> Optional[str]:
    doc = store.get(SETTINGS, FACTORIAL_SETTINGS_ID) or {}
    return doc.get("api_key") or settings.factorial_api_key


@router.get("/status")
def status(store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/settings"))):
    # DB health
    db_ok = None
    if isinstance(store, SQLDocumentStore):
        db_ok = True
        try:
            with store.engine.connect() as conn:
                conn.execute(text("select 1"))
        except SQLAlchemyError:
            db_ok = False

    return {
        "store": settings.store_backend,
        "db": db_ok,
        "factorial": bool(_factorial_key(store)),
    }


@router.get("/factorial")
def get_factorial_settings(store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/settings"))):
    key = _factorial_key(store)
    return {"configured": bool(key), "api_key": _mask(key), "base_url": settings.factorial_base_url, "version": settings.factorial_api_version}


@router.put("/factorial")
def put_factorial_settings(
    payload: FactorialSettings,
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(require_path("/settings")),
):
    key = (payload.api_key or "").strip() or None
    store.upsert(SETTINGS, FACTORIAL_SETTINGS_ID, {"api_key": key})
    logger.info("factorial_settings_updated", by=me.uid, configured=bool(key))
    return {"configured": bool(key), "api_key": _mask(key)}


@router.post("/factorial/sync")
def run_sync(
    req: Optional[SyncRequest] = None,
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(require_path("/settings")),
):
    req = req or SyncRequest()
    options = SyncOptions.from_settings(
        dry_run=req.dry_run,
        preserve_local_fields=req.preserve_local_fields,
        strict_references=req.strict_references,
    )
    logger.info("sync_requested", by=me.uid, dry_run=req.dry_run)
    return sync_all(store, options=options).to_dict()


@router.delete("/data")
def clear_data(store: DocumentStore = Depends(get_store), me: Identity = Depends(require_path("/settings"))):
    """Wipe projects, time logs, subcontractors and invoices."""
    removed = {name: store.delete_all_in(name) for name in CLEARABLE_COLLECTIONS}
    logger.warning("data_cleared", by=me.uid, **removed)
    return {"deleted": removed}
