"""
Dashboard and report rollups. Pure functions over the mirrored collections;
recomputed on demand, never cached.
"""
import csv
import io
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..config import settings
from ..schemas.billing import Invoice, Project, Status, Subcontractor, TimeLog
from .mirror import AppState

BILLABLE_STATES = (Status.APPROVED_PM, Status.RATIFIED_MGR)


# =====================
# Dashboard
# =====================

def total_ratified_spend(invoices: Iterable[Invoice]) -> float:
    return sum(i.amount for i in invoices if i.status is Status.RATIFIED_MGR)


def pending_approval_count(time_logs: Iterable[TimeLog], invoices: Iterable[Invoice]) -> int:
    return (
        sum(1 for t in time_logs if t.status is Status.PENDING)
        + sum(1 for i in invoices if i.status is Status.PENDING)
    )


def spend_by_project(
    projects: Iterable[Project],
    invoices: Iterable[Invoice],
    alert_ratio: Optional[float] = None,
) -> List[dict]:
    """Ratified spend against budget for every project."""
    alert_ratio = settings.budget_alert_ratio if alert_ratio is None else alert_ratio
    spent: Dict[str, float] = {}
    for inv in invoices:
        if inv.status is Status.RATIFIED_MGR:
            spent[inv.project_id] = spent.get(inv.project_id, 0.0) + inv.amount
    out = []
    for p in projects:
        amount = spent.get(p.id, 0.0)
        usage = amount / p.budget if p.budget > 0 else 0.0
        out.append({
            "project_id": p.id,
            "name": p.name,
            "spent": amount,
            "budget": p.budget,
            "usage": usage,
            "alert": usage > alert_ratio,
        })
    return out


def status_distribution(time_logs: Iterable[TimeLog]) -> "OrderedDict[str, int]":
    counts = OrderedDict((s.value, 0) for s in Status)
    for t in time_logs:
        counts[Status(t.status).value] += 1
    return counts


def dashboard_summary(state: AppState) -> dict:
    return {
        "total_spent": total_ratified_spend(state.invoices),
        "pending_approvals": pending_approval_count(state.time_logs, state.invoices),
        "active_projects": len(state.projects),
        "resources": len(state.subcontractors),
        "spend_by_project": spend_by_project(state.projects, state.invoices),
        "status_distribution": status_distribution(state.time_logs),
    }


# =====================
# Invoice checks
# =====================

@dataclass(frozen=True)
class InvoiceCheck:
    invoice_id: str
    amount: float
    theoretical: float
    deviation: float

    @property
    def has_risk(self) -> bool:
        # billed more than the approved hours justify
        return self.deviation > 0

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "amount": self.amount,
            "theoretical": self.theoretical,
            "deviation": self.deviation,
            "has_risk": self.has_risk,
        }


def billable_hours(invoice: Invoice, time_logs: Iterable[TimeLog]) -> float:
    return sum(
        log.hours for log in time_logs
        if log.project_id == invoice.project_id
        and log.subcontractor_id == invoice.subcontractor_id
        and (log.date or "").startswith(invoice.period)
        and log.status in BILLABLE_STATES
    )


def theoretical_invoice_amount(
    invoice: Invoice,
    subcontractors: Iterable[Subcontractor],
    time_logs: Iterable[TimeLog],
) -> float:
    sub = next((s for s in subcontractors if s.id == invoice.subcontractor_id), None)
    if sub is None:
        return 0.0
    return billable_hours(invoice, time_logs) * sub.hourly_rate


def check_invoice(
    invoice: Invoice,
    subcontractors: Iterable[Subcontractor],
    time_logs: Iterable[TimeLog],
) -> InvoiceCheck:
    theoretical = theoretical_invoice_amount(invoice, subcontractors, time_logs)
    return InvoiceCheck(
        invoice_id=invoice.id,
        amount=invoice.amount,
        theoretical=theoretical,
        deviation=invoice.amount - theoretical,
    )


def group_invoices_by_project(invoices: Iterable[Invoice]) -> "OrderedDict[str, List[Invoice]]":
    groups: "OrderedDict[str, List[Invoice]]" = OrderedDict()
    for inv in invoices:
        groups.setdefault(inv.project_id, []).append(inv)
    return groups


def invoice_board(state: AppState, invoices: Optional[List[Invoice]] = None) -> List[dict]:
    """Invoices grouped by project, each with its theoretical amount and deviation."""
    invoices = state.invoices if invoices is None else invoices
    board = []
    for project_id, items in group_invoices_by_project(invoices).items():
        project = state.project(project_id)
        rows = []
        for inv in items:
            sub = state.subcontractor(inv.subcontractor_id)
            rows.append({
                **inv.model_dump(mode="json"),
                "subcontractor_name": sub.name if sub else None,
                **check_invoice(inv, state.subcontractors, state.time_logs).to_dict(),
            })
        board.append({
            "project_id": project_id,
            "project_name": project.name if project else None,
            "client": project.client if project else None,
            "total": sum(i.amount for i in items),
            "invoices": rows,
        })
    return board


# =====================
# Reports
# =====================

@dataclass(frozen=True)
class ReportFilter:
    project_id: Optional[str] = None
    subcontractor_id: Optional[str] = None
    start_date: Optional[str] = None  # YYYY-MM-DD, inclusive
    end_date: Optional[str] = None

    def matches_log(self, log: TimeLog) -> bool:
        if self.project_id and log.project_id != self.project_id:
            return False
        if self.subcontractor_id and log.subcontractor_id != self.subcontractor_id:
            return False
        if self.start_date and log.date < self.start_date:
            return False
        if self.end_date and log.date > self.end_date:
            return False
        return True

    def matches_invoice(self, inv: Invoice) -> bool:
        # invoices carry a month, so only the dimension filters apply
        if self.project_id and inv.project_id != self.project_id:
            return False
        if self.subcontractor_id and inv.subcontractor_id != self.subcontractor_id:
            return False
        return True


def _project_name(projects: Iterable[Project], project_id: str) -> str:
    return next((p.name for p in projects if p.id == project_id), "Unknown")


def hours_by_project(time_logs: Iterable[TimeLog], projects: List[Project]) -> List[dict]:
    totals: "OrderedDict[str, float]" = OrderedDict()
    for log in time_logs:
        name = _project_name(projects, log.project_id)
        totals[name] = totals.get(name, 0.0) + log.hours
    return [{"name": k, "value": v} for k, v in totals.items()]


def cost_by_project(invoices: Iterable[Invoice], projects: List[Project]) -> List[dict]:
    totals: "OrderedDict[str, float]" = OrderedDict()
    for inv in invoices:
        name = _project_name(projects, inv.project_id)
        totals[name] = totals.get(name, 0.0) + inv.amount
    return [{"name": k, "value": v} for k, v in totals.items()]


def activity_over_time(time_logs: Iterable[TimeLog]) -> List[dict]:
    totals: Dict[str, float] = {}
    for log in time_logs:
        totals[log.date] = totals.get(log.date, 0.0) + log.hours
    return [{"date": d, "hours": totals[d]} for d in sorted(totals)]


def approved_rate(time_logs: List[TimeLog]) -> float:
    if not time_logs:
        return 0.0
    approved = sum(1 for t in time_logs if t.status in BILLABLE_STATES)
    return approved / len(time_logs) * 100


def build_report(state: AppState, report_filter: ReportFilter) -> dict:
    logs = [log for log in state.time_logs if report_filter.matches_log(log)]
    invoices = [inv for inv in state.invoices if report_filter.matches_invoice(inv)]
    return {
        "total_hours": sum(log.hours for log in logs),
        "total_cost": sum(inv.amount for inv in invoices),
        "approved_rate": approved_rate(logs),
        "time_log_count": len(logs),
        "invoice_count": len(invoices),
        "hours_by_project": hours_by_project(logs, state.projects),
        "cost_by_project": cost_by_project(invoices, state.projects),
        "activity_over_time": activity_over_time(logs),
    }


TIME_LOG_COLUMNS = ["date", "project", "subcontractor", "hours", "description", "status"]
INVOICE_COLUMNS = ["period", "project", "subcontractor", "amount", "currency", "status"]


def export_csv(state: AppState, report_filter: ReportFilter, kind: str = "hours") -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    if kind == "hours":
        writer.writerow(TIME_LOG_COLUMNS)
        for log in sorted((l for l in state.time_logs if report_filter.matches_log(l)), key=lambda l: l.date):
            sub = state.subcontractor(log.subcontractor_id)
            writer.writerow([
                log.date,
                _project_name(state.projects, log.project_id),
                sub.name if sub else "",
                log.hours,
                log.description,
                Status(log.status).value,
            ])
    elif kind == "financial":
        writer.writerow(INVOICE_COLUMNS)
        for inv in (i for i in state.invoices if report_filter.matches_invoice(i)):
            sub = state.subcontractor(inv.subcontractor_id)
            writer.writerow([
                inv.period,
                _project_name(state.projects, inv.project_id),
                sub.name if sub else "",
                inv.amount,
                inv.currency,
                Status(inv.status).value,
            ])
    else:
        raise ValueError(f"Unknown export kind: {kind}")
    return buf.getvalue()
