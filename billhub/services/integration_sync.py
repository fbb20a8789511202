"""
Factorial -> document store synchronisation.

Every external record lands at a deterministic id, so re-running a sync
overwrites instead of duplicating. Phases run employees -> projects -> time
entries; a failing phase stops the run and earlier phases stay applied.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from ..config import settings
from ..constants import PROJECTS, SUBCONTRACTORS, TIME_LOGS
from ..schemas.billing import Status
from ..store.provider import DocumentStore
from .factorial_client import FactorialClient

logger = structlog.get_logger(__name__)

EMPLOYEE_PREFIX = "fac_emp_"
PROJECT_PREFIX = "fac_proj_"
TIME_LOG_PREFIX = "fac_log_"

DEFAULT_EMPLOYEE_ROLE = "Factorial Employee"
DEFAULT_CLIENT = "Factorial Import"
DEFAULT_DESCRIPTION = "Imported from Factorial"

# Fields the HR system owns; everything else on the record is local
EXTERNAL_SUBCONTRACTOR_FIELDS = ("name", "role", "personnel_number", "factorial_id")
EXTERNAL_PROJECT_FIELDS = ("name", "client")


def employee_doc_id(external_id: Any) -> str:
    return f"{EMPLOYEE_PREFIX}{external_id}"


def project_doc_id(external_id: Any) -> str:
    return f"{PROJECT_PREFIX}{external_id}"


def time_log_doc_id(external_id: Any) -> str:
    return f"{TIME_LOG_PREFIX}{external_id}"


@dataclass
class SyncOptions:
    preserve_local_fields: bool = False
    strict_references: bool = False
    placeholder_project_id: str = "fac_default_project"
    dry_run: bool = False

    @classmethod
    def from_settings(cls, **overrides) -> "SyncOptions":
        values = {
            "preserve_local_fields": settings.sync_preserve_local_fields,
            "strict_references": settings.sync_strict_references,
            "placeholder_project_id": settings.sync_placeholder_project_id,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class PhaseResult:
    written: int = 0
    skipped: int = 0
    deferred: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"written": self.written, "skipped": self.skipped, "deferred": list(self.deferred)}


@dataclass
class SyncResult:
    success: bool = True
    error: Optional[str] = None
    failed_phase: Optional[str] = None
    employees: PhaseResult = field(default_factory=PhaseResult)
    projects: PhaseResult = field(default_factory=PhaseResult)
    time_entries: PhaseResult = field(default_factory=PhaseResult)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "failed_phase": self.failed_phase,
            "employees": self.employees.to_dict(),
            "projects": self.projects.to_dict(),
            "time_entries": self.time_entries.to_dict(),
        }


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat does not accept a trailing Z before 3.11
    if isinstance(value, str) and value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def derive_hours(entry: Dict[str, Any]) -> float:
    """Worked hours of a shift: end - start when both are set, else minutes / 60."""
    hours = 0.0
    if entry.get("start") and entry.get("end"):
        start = _parse_timestamp(entry["start"])
        end = _parse_timestamp(entry["end"])
        hours = (end - start).total_seconds() / 3600
    elif entry.get("minutes"):
        hours = float(entry["minutes"]) / 60
    return round(hours, 2)


def derive_date(entry: Dict[str, Any]) -> Optional[str]:
    if entry.get("date"):
        return str(entry["date"])[:10]
    start = entry.get("start")
    if start:
        return str(start).split("T")[0]
    return None


def employee_to_subcontractor(emp: Dict[str, Any]) -> Dict[str, Any]:
    first = emp.get("first_name") or ""
    last = emp.get("last_name") or ""
    return {
        "name": f"{first} {last}".strip(),
        "role": emp.get("role") or DEFAULT_EMPLOYEE_ROLE,
        "hourly_rate": 0,
        "currency": settings.default_currency,
        "factorial_id": str(emp["id"]),
        "personnel_number": str(emp.get("identifier") or emp.get("employee_number") or ""),
        "manager_email": emp.get("manager_email") or "",
    }


def factorial_project_to_project(proj: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": proj.get("name") or "",
        "client": proj.get("client_name") or DEFAULT_CLIENT,
        "budget": 0,
        "currency": settings.default_currency,
        "manager_id": "",
        "assignments": [],
    }


def shift_to_time_log(entry: Dict[str, Any], hours: float, work_date: str, project_id: str) -> Dict[str, Any]:
    return {
        "subcontractor_id": employee_doc_id(entry.get("employee_id")),
        "project_id": project_id,
        "date": work_date,
        "hours": hours,
        "description": entry.get("observations") or DEFAULT_DESCRIPTION,
        "status": Status.PENDING.value,
        "factorial_id": str(entry["id"]),
    }


def _put(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    data: Dict[str, Any],
    options: SyncOptions,
    external_fields: tuple = (),
) -> None:
    if options.dry_run:
        return
    if options.preserve_local_fields and external_fields and store.get(collection, doc_id) is not None:
        store.update(collection, doc_id, {k: data[k] for k in external_fields})
        return
    store.upsert(collection, doc_id, data)


def sync_employees(store: DocumentStore, employees: List[Dict[str, Any]], options: Optional[SyncOptions] = None) -> PhaseResult:
    options = options or SyncOptions.from_settings()
    result = PhaseResult()
    for emp in employees:
        if not emp.get("email"):
            result.skipped += 1
            continue
        doc_id = employee_doc_id(emp["id"])
        _put(store, SUBCONTRACTORS, doc_id, employee_to_subcontractor(emp), options, EXTERNAL_SUBCONTRACTOR_FIELDS)
        result.written += 1
    logger.info("sync_employees_done", written=result.written, skipped=result.skipped, dry_run=options.dry_run)
    return result


def sync_projects(store: DocumentStore, projects: List[Dict[str, Any]], options: Optional[SyncOptions] = None) -> PhaseResult:
    options = options or SyncOptions.from_settings()
    result = PhaseResult()
    for proj in projects:
        doc_id = project_doc_id(proj["id"])
        _put(store, PROJECTS, doc_id, factorial_project_to_project(proj), options, EXTERNAL_PROJECT_FIELDS)
        result.written += 1
    logger.info("sync_projects_done", written=result.written, dry_run=options.dry_run)
    return result


def sync_time_entries(store: DocumentStore, entries: List[Dict[str, Any]], options: Optional[SyncOptions] = None) -> PhaseResult:
    options = options or SyncOptions.from_settings()
    result = PhaseResult()
    for entry in entries:
        hours = derive_hours(entry)
        work_date = derive_date(entry)
        if hours <= 0 or not work_date:
            result.skipped += 1
            continue
        doc_id = time_log_doc_id(entry["id"])
        data = shift_to_time_log(entry, hours, work_date, options.placeholder_project_id)
        if options.strict_references and store.get(SUBCONTRACTORS, data["subcontractor_id"]) is None:
            logger.warning("sync_time_entry_deferred", entry_id=entry["id"], subcontractor_id=data["subcontractor_id"])
            result.deferred.append(doc_id)
            continue
        _put(store, TIME_LOGS, doc_id, data, options)
        result.written += 1
    logger.info(
        "sync_time_entries_done",
        written=result.written,
        skipped=result.skipped,
        deferred=len(result.deferred),
        dry_run=options.dry_run,
    )
    return result


def sync_all(
    store: DocumentStore,
    client: Optional[FactorialClient] = None,
    options: Optional[SyncOptions] = None,
    time_entry_params: Optional[Dict[str, Any]] = None,
) -> SyncResult:
    """Run the three phases in order and report instead of raising."""
    options = options or SyncOptions.from_settings()
    result = SyncResult()
    phase = "configuration"
    logger.info("sync_started", dry_run=options.dry_run)
    try:
        client = client or FactorialClient.from_store(store)

        phase = "employees"
        result.employees = sync_employees(store, client.get_employees(), options)

        phase = "projects"
        result.projects = sync_projects(store, client.get_projects(), options)

        phase = "time_entries"
        result.time_entries = sync_time_entries(store, client.get_time_entries(time_entry_params), options)
    except Exception as e:
        logger.exception("sync_failed", phase=phase)
        result.success = False
        result.error = str(e)
        result.failed_phase = phase
        return result

    logger.info("sync_completed", **{k: v for k, v in result.to_dict().items() if k in ("employees", "projects", "time_entries")})
    return result
