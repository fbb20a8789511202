"""
HTTP surface: path guards, domain error mapping and the approval flow end to end.
"""
from billhub.constants import INVOICES, NOTIFICATIONS, PROJECTS, SETTINGS, TIME_LOGS

from billhub.auth.security import create_access_token


def _submit(client, headers, **overrides):
    payload = {"project_id": "P1", "date": "2024-10-01", "hours": 4, "description": "API work"}
    payload.update(overrides)
    return client.post("/timelogs", json=payload, headers=headers)


# =============================================================================
# Auth and guards
# =============================================================================

def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_missing_token_is_401(client):
    assert client.get("/projects").status_code == 401


def test_unknown_user_token_is_401(client):
    assert client.get("/projects", headers={"Authorization": f"Bearer {create_access_token('ghost')}"}).status_code == 401


def test_path_guard(client, sub_headers, pm_headers):
    assert client.get("/projects", headers=sub_headers).status_code == 403
    assert client.get("/integrations/status", headers=pm_headers).status_code == 403
    assert client.get("/projects", headers=pm_headers).status_code == 200


def test_me_lists_visible_menu(client, sub_headers):
    body = client.get("/auth/me", headers=sub_headers).json()
    assert body["role_id"] == "subcontractor"
    assert body["subcontractor_id"] == "S1"
    assert [item["path"] for item in body["menu"]] == ["/timesheets"]


def test_register_login_refresh(client, admin_headers):
    created = client.post("/users", json={
        "email": "New.Sub@example.com", "role_id": "subcontractor", "mode": "invite", "subcontractor_id": "S2",
    }, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["mode"] == "invite"

    tokens = client.post("/auth/register", json={"email": "new.sub@example.com", "password": "secret1"}).json()
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}).json()
    assert me["role_id"] == "subcontractor"
    assert me["subcontractor_id"] == "S2"
    assert client.get("/invites", headers=admin_headers).json() == []

    assert client.post("/auth/login", json={"email": "new.sub@example.com", "password": "wrong!"}).status_code == 401
    login = client.post("/auth/login", json={"email": "NEW.SUB@example.com", "password": "secret1"})
    assert login.status_code == 200

    refreshed = client.post("/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert refreshed.status_code == 200
    assert client.post("/auth/refresh", json={"refresh_token": login.json()["access_token"]}).status_code == 400
    # refresh tokens are not bearer tokens
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {login.json()['refresh_token']}"}).status_code == 401


def test_register_twice_conflicts(client):
    body = {"email": "solo@example.com", "password": "secret1"}
    assert client.post("/auth/register", json=body).status_code == 200
    assert client.post("/auth/register", json=body).status_code == 409


# =============================================================================
# Projects and resources
# =============================================================================

def test_project_crud_and_duplicate_assignment(client, pm_headers):
    created = client.post("/projects", json={"id": "P2", "name": "Retail", "client": "Contoso", "budget": 5000}, headers=pm_headers)
    assert created.status_code == 201

    added = client.post("/projects/P2/assignments", json={"subcontractor_id": "S2", "hours_cap": 40, "period": "total"}, headers=pm_headers)
    assert added.status_code == 201
    dup = client.post("/projects/P2/assignments", json={"subcontractor_id": "S2", "hours_cap": 10}, headers=pm_headers)
    assert dup.status_code == 409
    assert dup.json()["error"] == "conflict"

    hint = client.get("/projects/P2/quota/S2", headers=pm_headers).json()
    assert hint["remaining"] == 40

    assert client.patch("/projects/P2", json={"budget": 7000}, headers=pm_headers).json()["budget"] == 7000
    assert [p["id"] for p in client.get("/projects?q=contoso", headers=pm_headers).json()] == ["P2"]
    assert client.delete("/projects/P2/assignments/S2", headers=pm_headers).json()["assignments"] == []
    assert client.delete("/projects/P2", headers=pm_headers).status_code == 200
    assert client.get("/projects/P2", headers=pm_headers).status_code == 404


def test_subcontractor_crud(client, pm_headers):
    created = client.post("/subcontractors", json={"name": "QA Partners", "hourly_rate": 40}, headers=pm_headers)
    assert created.status_code == 201
    sub_id = created.json()["id"]
    assert [s["id"] for s in client.get("/subcontractors?q=qa", headers=pm_headers).json()] == [sub_id]
    assert client.patch(f"/subcontractors/{sub_id}", json={"hourly_rate": 45}, headers=pm_headers).json()["hourly_rate"] == 45
    assert client.delete(f"/subcontractors/{sub_id}", headers=pm_headers).status_code == 200


def test_patch_with_null_required_field_is_rejected(client, pm_headers, admin_headers):
    resp = client.patch("/subcontractors/S1", json={"name": None}, headers=pm_headers)
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation"
    assert "S1" in {s["id"] for s in client.get("/subcontractors", headers=pm_headers).json()}

    assert client.patch("/projects/P1", json={"name": None}, headers=pm_headers).status_code == 422
    assert client.get("/projects/P1", headers=pm_headers).json()["name"] == "Cloud Migration"

    assert client.patch("/roles/project_manager", json={"name": None}, headers=admin_headers).status_code == 422
    assert client.get("/projects", headers=pm_headers).status_code == 200

    assert client.patch("/users/u-pm", json={"role_id": None}, headers=admin_headers).status_code == 422
    assert client.get("/projects", headers=pm_headers).status_code == 200


def test_create_with_existing_id_conflicts(client, pm_headers):
    dup = client.post("/projects", json={"id": "P1", "name": "Other", "client": "Contoso"}, headers=pm_headers)
    assert dup.status_code == 409
    assert dup.json()["error"] == "conflict"
    kept = client.get("/projects/P1", headers=pm_headers).json()
    assert kept["name"] == "Cloud Migration"
    assert [a["subcontractor_id"] for a in kept["assignments"]] == ["S1"]

    dup = client.post("/subcontractors", json={"id": "S1", "name": "Impostor", "hourly_rate": 1}, headers=pm_headers)
    assert dup.status_code == 409
    assert client.get("/subcontractors/S1", headers=pm_headers).json()["hourly_rate"] == 50


# =============================================================================
# Time logs
# =============================================================================

def test_approval_flow_over_http(client, seeded_store, sub_headers, pm_headers, director_headers):
    submitted = _submit(client, sub_headers)
    assert submitted.status_code == 201
    log_id = submitted.json()["id"]
    assert submitted.json()["project_name"] == "Cloud Migration"

    pending = client.get("/timelogs/approvals/pending", headers=pm_headers).json()
    assert [row["id"] for row in pending] == [log_id]
    # S1 reports to the project manager, not the director
    assert client.get("/timelogs/approvals/pending", headers=director_headers).json() == []

    # director cannot skip the manager step
    early = client.post(f"/timelogs/{log_id}/transition", json={"status": "RATIFIED_MGR"}, headers=director_headers)
    assert early.status_code == 403

    ok = client.post(f"/timelogs/{log_id}/transition", json={"status": "APPROVED_PM"}, headers=pm_headers)
    assert ok.status_code == 200
    assert ok.json()["status"] == "APPROVED_PM"

    assert client.post(f"/timelogs/{log_id}/transition", json={"status": "RATIFIED_MGR"}, headers=pm_headers).status_code == 403
    assert client.post(f"/timelogs/{log_id}/transition", json={"status": "RATIFIED_MGR"}, headers=director_headers).status_code == 200
    assert seeded_store.get(TIME_LOGS, log_id)["status"] == "RATIFIED_MGR"

    audit = client.get(f"/timelogs/{log_id}/audit", headers=pm_headers).json()
    assert sorted(entry["action"] for entry in audit) == ["APPROVED_PM", "RATIFIED_MGR"]

    roles = sorted(doc["recipient_role"] for doc in seeded_store.list(NOTIFICATIONS))
    assert roles == ["DIRECTOR", "PROJECT_MANAGER"]


def test_subcontractor_cannot_approve(client, sub_headers):
    log_id = _submit(client, sub_headers).json()["id"]
    assert client.post(f"/timelogs/{log_id}/transition", json={"status": "APPROVED_PM"}, headers=sub_headers).status_code == 403


def test_reject_with_feedback(client, sub_headers, pm_headers):
    log_id = _submit(client, sub_headers).json()["id"]
    bad = client.post(f"/timelogs/{log_id}/transition", json={"status": "APPROVED_PM", "feedback": "fine"}, headers=pm_headers)
    assert bad.status_code == 422
    rejected = client.post(f"/timelogs/{log_id}/transition", json={"status": "REJECTED", "feedback": "wrong project"}, headers=pm_headers)
    assert rejected.json()["feedback"] == "wrong project"
    assert client.post("/timelogs/missing/transition", json={"status": "REJECTED"}, headers=pm_headers).status_code == 404


def test_subcontractor_only_sees_own_logs(client, seeded_store, sub_headers, pm_headers):
    seeded_store.create(TIME_LOGS, {
        "id": "other", "subcontractor_id": "S2", "project_id": "P1",
        "date": "2024-10-02", "hours": 3, "status": "PENDING",
    })
    _submit(client, sub_headers)

    mine = client.get("/timelogs", headers=sub_headers).json()
    assert mine["count"] == 1
    assert mine["groups"][0]["items"][0]["subcontractor_id"] == "S1"

    everything = client.get("/timelogs?group_by=subcontractor", headers=pm_headers).json()
    assert everything["total_hours"] == 7
    assert sorted(g["name"] for g in everything["groups"]) == ["DevCorps", "Securitas"]

    assert client.get("/timelogs?view=decade", headers=pm_headers).status_code == 400


def test_weekly_timesheet_submission(client, seeded_store, sub_headers):
    res = client.post("/timelogs/timesheet", json={
        "week_start": "2024-10-14",
        "rows": [{"project_id": "P1", "description": "Build", "hours": [8, 8, 8, 0, 0, 0, 0]}],
    }, headers=sub_headers)
    assert res.status_code == 201
    assert res.json()["created"] == 3
    assert len(seeded_store.list(NOTIFICATIONS)) == 1

    bad = client.post("/timelogs/timesheet", json={
        "week_start": "2024-10-14",
        "rows": [{"project_id": None, "description": "", "hours": [2]}],
    }, headers=sub_headers)
    assert bad.status_code == 422


def test_bookable_projects_for_subcontractor(client, sub_headers):
    rows = client.get("/timelogs/projects", headers=sub_headers).json()
    assert rows[0]["id"] == "P1"
    assert rows[0]["remaining_hours"] is not None


# =============================================================================
# Invoices, reports, notifications
# =============================================================================

def test_invoice_registration_and_risk(client, seeded_store, pm_headers, director_headers):
    for i in range(2):
        seeded_store.create(TIME_LOGS, {
            "id": f"t{i}", "subcontractor_id": "S1", "project_id": "P1",
            "date": f"2024-10-0{i + 1}", "hours": 4, "status": "APPROVED_PM",
        })
    res = client.post("/invoices", json={
        "project_id": "P1", "subcontractor_id": "S1", "period": "2024-10", "amount": 440,
    }, headers=pm_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "PENDING"
    assert body["theoretical"] == 400
    assert body["deviation"] == 40
    assert body["has_risk"] is True

    board = client.get("/invoices", headers=director_headers).json()
    assert board[0]["project_name"] == "Cloud Migration"

    invoice_id = body["id"]
    assert client.post(f"/invoices/{invoice_id}/transition", json={"status": "APPROVED_PM"}, headers=pm_headers).status_code == 200
    assert client.post(f"/invoices/{invoice_id}/transition", json={"status": "RATIFIED_MGR"}, headers=director_headers).status_code == 200
    assert client.get("/dashboard", headers=director_headers).json()["total_spent"] == 440


def test_invoice_validation(client, seeded_store, pm_headers):
    res = client.post("/invoices", json={"project_id": "P1", "period": "2024-10"}, headers=pm_headers)
    assert res.status_code == 422
    assert "subcontractor_id" in res.json()["detail"]
    missing = client.post("/invoices", json={"project_id": "nope", "subcontractor_id": "S1", "period": "2024-10", "amount": 5}, headers=pm_headers)
    assert missing.status_code == 404
    assert seeded_store.list(INVOICES) == []


def test_reports_and_export(client, seeded_store, pm_headers, sub_headers):
    _submit(client, sub_headers)
    report = client.get("/reports?project_id=P1", headers=pm_headers).json()
    assert report["total_hours"] == 4

    export = client.get("/reports/export?kind=hours", headers=pm_headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "attachment" in export.headers["content-disposition"]
    assert export.text.splitlines()[1].startswith("2024-10-01,Cloud Migration,DevCorps")

    assert client.get("/reports/export?kind=pdf", headers=pm_headers).status_code == 400
    assert client.get("/reports", headers=sub_headers).status_code == 403


def test_notifications_for_role(client, pm_headers, sub_headers, admin_headers):
    _submit(client, sub_headers)
    listing = client.get("/notifications", headers=pm_headers).json()
    assert listing["unread"] == 1
    note_id = listing["items"][0]["id"]

    assert client.post(f"/notifications/{note_id}/read", headers=pm_headers).json()["read"] is True
    assert client.get("/notifications", headers=pm_headers).json()["unread"] == 0
    assert client.post(f"/notifications/{note_id}/read", headers=sub_headers).status_code == 404
    assert client.get("/notifications", headers=admin_headers).status_code == 403
    assert client.delete("/notifications", headers=pm_headers).json()["deleted"] == 1


# =============================================================================
# Integrations and administration
# =============================================================================

def test_factorial_settings_are_masked(client, seeded_store, admin_headers):
    saved = client.put("/integrations/factorial", json={"api_key": "abcdef123456"}, headers=admin_headers).json()
    assert saved == {"configured": True, "api_key": "********3456"}
    assert seeded_store.get(SETTINGS, "factorial")["api_key"] == "abcdef123456"
    assert client.get("/integrations/status", headers=admin_headers).json()["factorial"] is True


def test_sync_without_key_reports_configuration_failure(client, admin_headers, monkeypatch):
    from billhub.services import factorial_client

    monkeypatch.setattr(factorial_client.settings, "factorial_api_key", None)
    result = client.post("/integrations/factorial/sync", headers=admin_headers).json()
    assert result["success"] is False
    assert result["failed_phase"] == "configuration"


def test_clear_data(client, seeded_store, admin_headers, pm_headers):
    res = client.delete("/integrations/data", headers=admin_headers)
    assert res.json()["deleted"][PROJECTS] == 1
    assert seeded_store.list(PROJECTS) == []
    assert client.delete("/integrations/data", headers=pm_headers).status_code == 403


def test_user_admin(client, admin_headers):
    listing = client.get("/users?limit=2", headers=admin_headers).json()
    assert listing["total"] == 4
    assert len(listing["items"]) == 2

    created = client.post("/users", json={
        "email": "lead@example.com", "display_name": "Lead", "role_id": "project_manager", "password": "secret1",
    }, headers=admin_headers)
    assert created.status_code == 201
    uid = created.json()["user"]["uid"]
    assert client.patch(f"/users/{uid}", json={"role_id": "director"}, headers=admin_headers).json()["role_id"] == "director"
    assert client.patch(f"/users/{uid}", json={"role_id": "nope"}, headers=admin_headers).status_code == 404
    assert client.delete(f"/users/{uid}", headers=admin_headers).status_code == 200

    # role still assigned
    assert client.delete("/roles/director", headers=admin_headers).status_code == 409
    paths = client.get("/roles/paths", headers=admin_headers).json()
    assert {"path": "/", "label": "Dashboard"} in paths
