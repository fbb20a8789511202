"""
Hours-cap tracking per project assignment.
Consumption is always re-derived from the time logs; nothing here is persisted.
"""
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Iterable, List, Optional

import pytz

from ..config import settings
from ..schemas.billing import CapPeriod, Project, ProjectAssignment, TimeLog


@dataclass(frozen=True)
class QuotaUsage:
    project_id: str
    subcontractor_id: str
    hours_cap: float
    period: CapPeriod
    consumed: float
    remaining: float  # negative means over-allocated
    percentage: float

    @property
    def over_allocated(self) -> bool:
        return self.remaining < 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["period"] = self.period.value
        data["over_allocated"] = self.over_allocated
        return data


def current_month(today: Optional[date] = None, timezone_str: Optional[str] = None) -> str:
    """ISO ``YYYY-MM`` of ``today`` or of now in the configured timezone."""
    if today is None:
        tz = pytz.timezone(timezone_str or settings.tz_default)
        today = datetime.now(tz).date()
    return today.strftime("%Y-%m")


def consumed_hours(
    assignment: ProjectAssignment,
    project_id: str,
    time_logs: Iterable[TimeLog],
    today: Optional[date] = None,
) -> float:
    # Every submitted entry counts, whatever its approval state
    logs = [
        log for log in time_logs
        if log.project_id == project_id and log.subcontractor_id == assignment.subcontractor_id
    ]
    if CapPeriod(assignment.period) is CapPeriod.MONTHLY:
        month = current_month(today)
        logs = [log for log in logs if (log.date or "").startswith(month)]
    return sum(log.hours for log in logs)


def compute_quota(
    assignment: ProjectAssignment,
    project_id: str,
    time_logs: Iterable[TimeLog],
    today: Optional[date] = None,
) -> QuotaUsage:
    consumed = consumed_hours(assignment, project_id, time_logs, today)
    cap = assignment.hours_cap
    percentage = min(100.0, consumed / cap * 100) if cap > 0 else 0.0
    return QuotaUsage(
        project_id=project_id,
        subcontractor_id=assignment.subcontractor_id,
        hours_cap=cap,
        period=CapPeriod(assignment.period),
        consumed=consumed,
        remaining=cap - consumed,
        percentage=percentage,
    )


def project_quotas(project: Project, time_logs: Iterable[TimeLog], today: Optional[date] = None) -> List[QuotaUsage]:
    logs = list(time_logs)
    return [compute_quota(a, project.id, logs, today) for a in project.assignments]


def remaining_hours_hint(
    project: Project,
    subcontractor_id: str,
    time_logs: Iterable[TimeLog],
    today: Optional[date] = None,
) -> Optional[float]:
    """Remaining hours a resource still has on a project, or None when not assigned."""
    assignment = project.assignment_for(subcontractor_id)
    if assignment is None:
        return None
    return compute_quota(assignment, project.id, time_logs, today).remaining
