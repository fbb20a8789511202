from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..auth.security import require_path
from ..services.access import Identity
from ..services.aggregations import ReportFilter, build_report, dashboard_summary, export_csv
from ..services.mirror import load_state
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(tags=["reports"])


@router.get("/dashboard")
def dashboard(store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/"))):
    return dashboard_summary(load_state(store))


def _filter(project_id, subcontractor_id, start_date, end_date) -> ReportFilter:
    return ReportFilter(
        project_id=project_id or None,
        subcontractor_id=subcontractor_id or None,
        start_date=start_date or None,
        end_date=end_date or None,
    )


@router.get("/reports")
def report(
    project_id: Optional[str] = None,
    subcontractor_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/reports")),
):
    return build_report(load_state(store), _filter(project_id, subcontractor_id, start_date, end_date))


@router.get("/reports/export")
def report_export(
    kind: str = "hours",
    project_id: Optional[str] = None,
    subcontractor_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/reports")),
):
    if kind not in ("hours", "financial"):
        raise HTTPException(status_code=400, detail="kind must be 'hours' or 'financial'")
    body = export_csv(load_state(store), _filter(project_id, subcontractor_id, start_date, end_date), kind)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="report_{kind}.csv"'},
    )
