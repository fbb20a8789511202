from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import require_path
from ..schemas.billing import Status, TimeLogCreate, TimesheetGrid, TransitionRequest
from ..schemas.users import ActorRole
from ..services import notifications as notification_service
from ..services import timesheets as timesheet_service
from ..services.access import Identity, scope_to_managed
from ..services.audit import get_audit_logs
from ..services.mirror import AppState, load_state
from ..services.quota import remaining_hours_hint
from ..services.workflow import TIME_LOG_BINDING, transition
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(prefix="/timelogs", tags=["timelogs"])


def _row(state: AppState, log) -> dict:
    sub = state.subcontractor(log.subcontractor_id)
    proj = state.project(log.project_id)
    return {
        **log.model_dump(mode="json"),
        "subcontractor_name": sub.name if sub else None,
        "project_name": proj.name if proj else None,
    }


@router.get("")
def list_time_logs(
    q: Optional[str] = None,
    status: Optional[Status] = None,
    project_id: Optional[str] = None,
    subcontractor_id: Optional[str] = None,
    view: str = "all",
    anchor: Optional[str] = None,
    group_by: str = "none",
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(require_path("/timesheets")),
):
    """Time logs filtered by text, status, project, resource and period around ``anchor``.

    Subcontractors only ever see their own entries.
    """
    if view not in timesheet_service.VIEW_MODES:
        raise HTTPException(status_code=400, detail=f"view must be one of {', '.join(timesheet_service.VIEW_MODES)}")
    if me.actor_role is ActorRole.SUBCONTRACTOR:
        subcontractor_id = me.subcontractor_id or "__none__"
    anchor_day = timesheet_service.parse_day(anchor) if anchor else date.today()
    state = load_state(store)
    logs = timesheet_service.filter_time_logs(state, q or "", status, project_id, subcontractor_id, view, anchor_day)
    logs.sort(key=lambda log: log.date, reverse=True)
    groups = timesheet_service.group_time_logs(state, logs, group_by)
    return {
        "total_hours": sum(log.hours for log in logs),
        "count": len(logs),
        "groups": [{"name": name, "items": [_row(state, log) for log in items]} for name, items in groups.items()],
    }


@router.get("/week")
def week(start: Optional[str] = None, _: Identity = Depends(require_path("/timesheets"))):
    anchor = timesheet_service.parse_day(start) if start else date.today()
    return timesheet_service.week_days(anchor)


@router.get("/projects")
def bookable_projects(
    subcontractor_id: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(require_path("/timesheets")),
):
    """Projects to book against, with the caller's remaining hours on each."""
    sub_id = timesheet_service.resolve_subcontractor(me, subcontractor_id)
    state = load_state(store)
    return [
        {"id": p.id, "name": p.name, "client": p.client, "remaining_hours": remaining_hours_hint(p, sub_id, state.time_logs)}
        for p in state.projects
    ]


@router.post("", status_code=201)
def submit_time_log(payload: TimeLogCreate, store: DocumentStore = Depends(get_store), me: Identity = Depends(require_path("/timesheets"))):
    log = timesheet_service.submit_time_log(store, me, payload)
    state = load_state(store)
    row = _row(state, log)
    notification_service.time_log_submitted(
        store, row["subcontractor_name"] or log.subcontractor_id, log.hours, row["project_name"] or log.project_id, log.id
    )
    return row


@router.post("/timesheet", status_code=201)
def submit_timesheet(grid: TimesheetGrid, store: DocumentStore = Depends(get_store), me: Identity = Depends(require_path("/timesheets"))):
    logs = timesheet_service.submit_timesheet(store, me, grid)
    if logs:
        state = load_state(store)
        sub = state.subcontractor(logs[0].subcontractor_id)
        notification_service.notify(
            store,
            ActorRole.PROJECT_MANAGER,
            f"{sub.name if sub else logs[0].subcontractor_id} submitted {len(logs)} entries "
            f"({sum(log.hours for log in logs):g}h) for the week of {grid.week_start}.",
        )
    return {"created": len(logs), "items": [log.model_dump(mode="json") for log in logs]}


@router.get("/approvals/pending")
def pending_approvals(store: DocumentStore = Depends(get_store), me: Identity = Depends(require_path("/timesheets"))):
    state = load_state(store)
    logs = scope_to_managed(me, state.time_logs, state.subcontractors)
    return [_row(state, log) for log in timesheet_service.pending_approvals(logs)]


@router.get("/approvals/history")
def approval_history(store: DocumentStore = Depends(get_store), me: Identity = Depends(require_path("/timesheets"))):
    state = load_state(store)
    logs = scope_to_managed(me, state.time_logs, state.subcontractors)
    return [_row(state, log) for log in timesheet_service.approval_history(logs)]


@router.post("/{log_id}/transition")
def transition_time_log(
    log_id: str,
    req: TransitionRequest,
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(require_path("/timesheets")),
):
    log = transition(store, TIME_LOG_BINDING, log_id, me, req.status, req.feedback)
    if log.status is Status.APPROVED_PM:
        state = load_state(store)
        row = _row(state, log)
        notification_service.time_log_approved(
            store, row["subcontractor_name"] or log.subcontractor_id, row["project_name"] or log.project_id, log.id
        )
    return log.model_dump(mode="json")


@router.get("/{log_id}/audit")
def time_log_audit(log_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/timesheets"))):
    return get_audit_logs(store, entity_type=TIME_LOG_BINDING.entity_type, entity_id=log_id)
