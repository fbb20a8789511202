import pytest

from billhub.constants import PROJECTS, SUBCONTRACTORS, TIME_LOGS
from billhub.errors import ExternalServiceError
from billhub.services.integration_sync import (
    SyncOptions,
    derive_hours,
    sync_all,
    sync_employees,
    sync_projects,
    sync_time_entries,
)

EMPLOYEES = [
    {"id": 1, "first_name": "Ana", "last_name": "Garcia", "email": "ana@example.com", "identifier": "E-1", "manager_email": "pm@example.com"},
    {"id": 2, "first_name": "No", "last_name": "Mail", "email": ""},
]
PROJECTS_PAYLOAD = [{"id": 10, "name": "Retail App", "client_name": "Contoso"}, {"id": 11, "name": "Internal"}]
SHIFTS = [
    {"id": 100, "employee_id": 1, "start": "2024-10-01T09:00:00Z", "end": "2024-10-01T17:00:00Z", "observations": "Daily work"},
    {"id": 101, "employee_id": 1, "date": "2024-10-02", "minutes": 90},
    {"id": 102, "employee_id": 1, "date": "2024-10-03", "minutes": 0},
    {"id": 103, "employee_id": 99, "date": "2024-10-04", "minutes": 60},
]


class FakeClient:
    def __init__(self, employees=EMPLOYEES, projects=PROJECTS_PAYLOAD, shifts=SHIFTS, fail_on=None):
        self.employees = employees
        self.projects = projects
        self.shifts = shifts
        self.fail_on = fail_on

    def _maybe_fail(self, name):
        if self.fail_on == name:
            raise ExternalServiceError(f"Failed to fetch {name}: 500", status_code=500, body="oops")

    def get_employees(self):
        self._maybe_fail("employees")
        return self.employees

    def get_projects(self):
        self._maybe_fail("projects")
        return self.projects

    def get_time_entries(self, params=None):
        self._maybe_fail("time_entries")
        return self.shifts


def test_derive_hours():
    assert derive_hours({"start": "2024-10-01T09:00:00Z", "end": "2024-10-01T17:00:00Z"}) == 8
    assert derive_hours({"minutes": 90}) == 1.5
    assert derive_hours({"minutes": 20}) == 0.33
    assert derive_hours({}) == 0


def test_employees_map_and_skip_without_email(store):
    result = sync_employees(store, EMPLOYEES, SyncOptions())
    assert (result.written, result.skipped) == (1, 1)
    sub = store.get(SUBCONTRACTORS, "fac_emp_1")
    assert sub["name"] == "Ana Garcia"
    assert sub["role"] == "Factorial Employee"
    assert sub["hourly_rate"] == 0
    assert sub["personnel_number"] == "E-1"
    assert sub["manager_email"] == "pm@example.com"
    assert store.get(SUBCONTRACTORS, "fac_emp_2") is None


def test_projects_defaults(store):
    sync_projects(store, PROJECTS_PAYLOAD, SyncOptions())
    assert store.get(PROJECTS, "fac_proj_10")["client"] == "Contoso"
    internal = store.get(PROJECTS, "fac_proj_11")
    assert internal["client"] == "Factorial Import"
    assert internal["budget"] == 0
    assert internal["assignments"] == []


def test_time_entries_hours_placeholder_and_skip(store):
    result = sync_time_entries(store, SHIFTS, SyncOptions())
    assert result.skipped == 1
    first = store.get(TIME_LOGS, "fac_log_100")
    assert first["hours"] == 8
    assert first["date"] == "2024-10-01"
    assert first["description"] == "Daily work"
    assert first["status"] == "PENDING"
    assert first["project_id"] == "fac_default_project"
    assert first["subcontractor_id"] == "fac_emp_1"
    assert store.get(TIME_LOGS, "fac_log_101")["hours"] == 1.5
    assert store.get(TIME_LOGS, "fac_log_101")["description"] == "Imported from Factorial"
    assert store.get(TIME_LOGS, "fac_log_102") is None
    # orphan written by default
    assert store.get(TIME_LOGS, "fac_log_103")["subcontractor_id"] == "fac_emp_99"


def test_strict_references_defers_orphans(store):
    sync_employees(store, EMPLOYEES, SyncOptions())
    result = sync_time_entries(store, SHIFTS, SyncOptions(strict_references=True))
    assert result.deferred == ["fac_log_103"]
    assert store.get(TIME_LOGS, "fac_log_103") is None
    assert store.get(TIME_LOGS, "fac_log_100") is not None


def test_sync_is_idempotent(store):
    first = sync_all(store, client=FakeClient(), options=SyncOptions())
    counts = {c: len(store.list(c)) for c in (SUBCONTRACTORS, PROJECTS, TIME_LOGS)}
    second = sync_all(store, client=FakeClient(), options=SyncOptions())
    assert first.success and second.success
    assert {c: len(store.list(c)) for c in (SUBCONTRACTORS, PROJECTS, TIME_LOGS)} == counts
    assert counts == {SUBCONTRACTORS: 1, PROJECTS: 2, TIME_LOGS: 3}


def test_default_upsert_overwrites_local_edits(store):
    sync_employees(store, EMPLOYEES, SyncOptions())
    store.update(SUBCONTRACTORS, "fac_emp_1", {"hourly_rate": 60})
    sync_employees(store, EMPLOYEES, SyncOptions())
    assert store.get(SUBCONTRACTORS, "fac_emp_1")["hourly_rate"] == 0


def test_preserve_local_fields_keeps_rates_and_budgets(store):
    opts = SyncOptions(preserve_local_fields=True)
    sync_employees(store, EMPLOYEES, opts)
    sync_projects(store, PROJECTS_PAYLOAD, opts)
    store.update(SUBCONTRACTORS, "fac_emp_1", {"hourly_rate": 60})
    store.update(PROJECTS, "fac_proj_10", {"budget": 5000})

    renamed = [dict(EMPLOYEES[0], last_name="Lopez")]
    sync_employees(store, renamed, opts)
    sync_projects(store, PROJECTS_PAYLOAD, opts)

    sub = store.get(SUBCONTRACTORS, "fac_emp_1")
    assert sub["name"] == "Ana Lopez"
    assert sub["hourly_rate"] == 60
    assert store.get(PROJECTS, "fac_proj_10")["budget"] == 5000


def test_failing_phase_stops_run_without_rollback(store):
    result = sync_all(store, client=FakeClient(fail_on="projects"), options=SyncOptions())
    assert result.success is False
    assert result.failed_phase == "projects"
    assert "500" in result.error
    assert store.get(SUBCONTRACTORS, "fac_emp_1") is not None
    assert store.list(TIME_LOGS) == []


def test_missing_key_reports_failure(store, monkeypatch):
    from billhub.services import factorial_client

    monkeypatch.setattr(factorial_client.settings, "factorial_api_key", None)
    result = sync_all(store, options=SyncOptions())
    assert result.success is False
    assert result.failed_phase == "configuration"


def test_dry_run_writes_nothing(store):
    result = sync_all(store, client=FakeClient(), options=SyncOptions(dry_run=True))
    assert result.success
    assert result.employees.written == 1
    assert store.list(SUBCONTRACTORS) == []
    assert store.list(TIME_LOGS) == []


@pytest.mark.parametrize("flag", [True, False])
def test_options_from_settings_overrides(flag):
    opts = SyncOptions.from_settings(strict_references=flag, preserve_local_fields=None)
    assert opts.strict_references is flag
    assert opts.placeholder_project_id == "fac_default_project"
