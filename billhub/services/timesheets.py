"""
Time log submission and timesheet views.
"""
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from ..constants import PROJECTS, SUBCONTRACTORS, TIME_LOGS
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..schemas.billing import Status, TimeLog, TimeLogCreate, TimesheetGrid
from ..schemas.users import ActorRole
from ..store.provider import DocumentStore, new_document_id
from .access import Identity
from .mirror import AppState

logger = structlog.get_logger(__name__)

# Fixed public holidays (MM-DD)
FIXED_HOLIDAYS = {
    "01-01",
    "01-06",
    "05-01",
    "08-15",
    "10-12",
    "11-01",
    "12-06",
    "12-08",
    "12-25",
}

VIEW_MODES = ("week", "month", "quarter", "year", "all")
MAX_HOURS_PER_DAY = 24


def parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"invalid date: {value!r}")


def start_of_week(d: date) -> date:
    return d - timedelta(days=d.weekday())


def is_holiday(d: date) -> bool:
    return d.strftime("%m-%d") in FIXED_HOLIDAYS


def is_weekend(d: date) -> bool:
    return d.weekday() >= 5


def week_days(week_start: date) -> List[dict]:
    start = start_of_week(week_start)
    days = []
    for i in range(7):
        d = start + timedelta(days=i)
        days.append({
            "date": d.isoformat(),
            "weekend": is_weekend(d),
            "holiday": is_holiday(d),
            "working": not (is_weekend(d) or is_holiday(d)),
        })
    return days


def period_bounds(anchor: date, mode: str) -> Optional[Tuple[date, date]]:
    """Inclusive [start, end] of the view period around ``anchor``; None for 'all'."""
    if mode == "all":
        return None
    if mode == "week":
        start = start_of_week(anchor)
        return start, start + timedelta(days=6)
    if mode == "month":
        start = anchor.replace(day=1)
        nxt = (start + timedelta(days=32)).replace(day=1)
        return start, nxt - timedelta(days=1)
    if mode == "quarter":
        first_month = (anchor.month - 1) // 3 * 3 + 1
        start = anchor.replace(month=first_month, day=1)
        end_month = first_month + 2
        nxt = (start.replace(month=end_month) + timedelta(days=32)).replace(day=1)
        return start, nxt - timedelta(days=1)
    if mode == "year":
        return anchor.replace(month=1, day=1), anchor.replace(month=12, day=31)
    raise ValidationError(f"unknown view mode: {mode}")


def filter_time_logs(
    state: AppState,
    text: str = "",
    status: Optional[Status] = None,
    project_id: Optional[str] = None,
    subcontractor_id: Optional[str] = None,
    view: str = "all",
    anchor: Optional[date] = None,
) -> List[TimeLog]:
    bounds = period_bounds(anchor or date.today(), view)
    needle = (text or "").lower()
    out = []
    for log in state.time_logs:
        if needle:
            sub = state.subcontractor(log.subcontractor_id)
            proj = state.project(log.project_id)
            names = ((sub.name if sub else "") + "\n" + (proj.name if proj else "")).lower()
            if needle not in names:
                continue
        if bounds and not (bounds[0].isoformat() <= log.date <= bounds[1].isoformat()):
            continue
        if status is not None and log.status is not status:
            continue
        if project_id and log.project_id != project_id:
            continue
        if subcontractor_id and log.subcontractor_id != subcontractor_id:
            continue
        out.append(log)
    return out


def group_time_logs(state: AppState, logs: Iterable[TimeLog], group_by: str = "none") -> Dict[str, List[TimeLog]]:
    if group_by == "none":
        return {"All": list(logs)}
    groups: Dict[str, List[TimeLog]] = {}
    for log in logs:
        if group_by == "project":
            proj = state.project(log.project_id)
            key = proj.name if proj else "No project"
        elif group_by == "subcontractor":
            sub = state.subcontractor(log.subcontractor_id)
            key = sub.name if sub else "Unknown"
        else:
            raise ValidationError(f"unknown grouping: {group_by}")
        groups.setdefault(key, []).append(log)
    return groups


def resolve_subcontractor(identity: Identity, requested: Optional[str]) -> str:
    """The resource a submission is booked against."""
    if identity.actor_role is ActorRole.SUBCONTRACTOR:
        own = identity.subcontractor_id
        if not own:
            raise ValidationError("your profile is not linked to a subcontractor")
        if requested and requested != own:
            raise AuthorizationError("subcontractors can only log their own hours")
        return own
    if not requested:
        if identity.subcontractor_id:
            return identity.subcontractor_id
        raise ValidationError("subcontractor_id is required")
    return requested


def _require(store: DocumentStore, collection: str, doc_id: str) -> dict:
    doc = store.get(collection, doc_id)
    if doc is None:
        raise NotFoundError(collection, doc_id)
    return doc


def submit_time_log(store: DocumentStore, identity: Identity, payload: TimeLogCreate) -> TimeLog:
    subcontractor_id = resolve_subcontractor(identity, payload.subcontractor_id)
    _require(store, PROJECTS, payload.project_id)
    _require(store, SUBCONTRACTORS, subcontractor_id)
    parse_day(payload.date)
    log = TimeLog(
        id=new_document_id(),
        subcontractor_id=subcontractor_id,
        project_id=payload.project_id,
        date=payload.date,
        hours=payload.hours,
        description=payload.description.strip(),
        status=Status.PENDING,
    )
    store.create(TIME_LOGS, log.model_dump(mode="json", exclude_none=True))
    logger.info("time_log_submitted", log_id=log.id, subcontractor_id=subcontractor_id, hours=log.hours)
    return log


def grid_to_time_logs(grid: TimesheetGrid, subcontractor_id: str) -> List[TimeLog]:
    """Expand a weekly grid into PENDING time logs, one per day cell with hours.

    Rows without hours are ignored; rows with hours need a project and a description.
    """
    start = start_of_week(parse_day(grid.week_start))
    logs: List[TimeLog] = []
    incomplete = []
    for idx, row in enumerate(grid.rows):
        values = [float(h or 0) for h in row.hours]
        if any(v < 0 or v > MAX_HOURS_PER_DAY for v in values):
            raise ValidationError(f"row {idx}: hours must be between 0 and {MAX_HOURS_PER_DAY}")
        if not any(v > 0 for v in values):
            continue
        if not row.project_id or not (row.description or "").strip():
            incomplete.append(idx)
            continue
        for day_index, value in enumerate(values):
            if value > 0:
                logs.append(TimeLog(
                    id=new_document_id(),
                    subcontractor_id=subcontractor_id,
                    project_id=row.project_id,
                    date=(start + timedelta(days=day_index)).isoformat(),
                    hours=value,
                    description=row.description.strip(),
                    status=Status.PENDING,
                ))
    if incomplete:
        raise ValidationError(f"rows {incomplete} have hours but no project or description")
    return logs


def submit_timesheet(store: DocumentStore, identity: Identity, grid: TimesheetGrid) -> List[TimeLog]:
    subcontractor_id = resolve_subcontractor(identity, grid.subcontractor_id)
    _require(store, SUBCONTRACTORS, subcontractor_id)
    logs = grid_to_time_logs(grid, subcontractor_id)
    for project_id in {log.project_id for log in logs}:
        _require(store, PROJECTS, project_id)
    for log in logs:
        store.create(TIME_LOGS, log.model_dump(mode="json", exclude_none=True))
    logger.info("timesheet_submitted", subcontractor_id=subcontractor_id, entries=len(logs))
    return logs


def pending_approvals(logs: Iterable[TimeLog]) -> List[TimeLog]:
    """Pending entries, newest date first."""
    pending = [log for log in logs if log.status is Status.PENDING]
    return sorted(pending, key=lambda log: log.date, reverse=True)


def approval_history(logs: Iterable[TimeLog]) -> List[TimeLog]:
    return [log for log in logs if log.status in (Status.APPROVED_PM, Status.RATIFIED_MGR)]
