import pytest

from billhub.constants import AUDIT_LOGS, TIME_LOGS
from billhub.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from billhub.schemas.billing import Status
from billhub.services.audit import verify_audit_log
from billhub.services.workflow import (
    INVOICE_BINDING,
    TIME_LOG_BINDING,
    allowed_targets,
    approve_time_log,
    ratify_time_log,
    reject_invoice,
    reject_time_log,
    transition,
)
from billhub.schemas.users import ActorRole


def _log(store, log_id="t1", status="PENDING"):
    store.upsert(TIME_LOGS, log_id, {
        "subcontractor_id": "S1", "project_id": "P1", "date": "2024-10-01",
        "hours": 8, "description": "work", "status": status,
    })


def test_pm_approves_then_director_ratifies(seeded_store, pm, director):
    _log(seeded_store)
    approved = approve_time_log(seeded_store, "t1", pm)
    assert approved.status is Status.APPROVED_PM

    ratified = ratify_time_log(seeded_store, "t1", director)
    assert ratified.status is Status.RATIFIED_MGR
    assert seeded_store.get(TIME_LOGS, "t1")["status"] == "RATIFIED_MGR"


def test_director_cannot_skip_pm_approval(seeded_store, director):
    _log(seeded_store)
    with pytest.raises(AuthorizationError):
        ratify_time_log(seeded_store, "t1", director)
    assert seeded_store.get(TIME_LOGS, "t1")["status"] == "PENDING"


def test_pm_cannot_ratify(seeded_store, pm):
    _log(seeded_store, status="APPROVED_PM")
    with pytest.raises(AuthorizationError):
        ratify_time_log(seeded_store, "t1", pm)


def test_subcontractor_and_admin_have_no_transitions(seeded_store, subcontractor, admin):
    _log(seeded_store)
    with pytest.raises(AuthorizationError):
        approve_time_log(seeded_store, "t1", subcontractor)
    with pytest.raises(AuthorizationError):
        approve_time_log(seeded_store, "t1", admin)


@pytest.mark.parametrize("terminal", ["RATIFIED_MGR", "REJECTED"])
def test_terminal_states_are_final(seeded_store, pm, director, terminal):
    _log(seeded_store, status=terminal)
    for actor in (pm, director):
        with pytest.raises(AuthorizationError):
            reject_time_log(seeded_store, "t1", actor)
    assert seeded_store.get(TIME_LOGS, "t1")["status"] == terminal


def test_reject_stores_feedback(seeded_store, pm):
    _log(seeded_store)
    rejected = reject_time_log(seeded_store, "t1", pm, feedback="Overestimated hours")
    assert rejected.status is Status.REJECTED
    assert rejected.feedback == "Overestimated hours"


def test_feedback_only_with_rejection(seeded_store, pm):
    _log(seeded_store)
    with pytest.raises(ValidationError):
        transition(seeded_store, TIME_LOG_BINDING, "t1", pm, Status.APPROVED_PM, feedback="nice")
    assert seeded_store.get(TIME_LOGS, "t1")["status"] == "PENDING"


def test_missing_record(seeded_store, pm):
    with pytest.raises(NotFoundError):
        approve_time_log(seeded_store, "nope", pm)


def test_stale_status_is_a_conflict(seeded_store, pm, director, monkeypatch):
    _log(seeded_store)
    real_get = seeded_store.get

    def racing_get(collection, doc_id):
        doc = real_get(collection, doc_id)
        # another approver lands first, between our read and our write
        if collection == TIME_LOGS and doc and doc["status"] == "PENDING":
            seeded_store.update(TIME_LOGS, doc_id, {"status": "REJECTED"})
        return doc

    monkeypatch.setattr(seeded_store, "get", racing_get)
    with pytest.raises(ConflictError):
        approve_time_log(seeded_store, "t1", pm)
    assert real_get(TIME_LOGS, "t1")["status"] == "REJECTED"


def test_transition_writes_verifiable_audit_entry(seeded_store, pm):
    _log(seeded_store)
    approve_time_log(seeded_store, "t1", pm)
    entries = seeded_store.list(AUDIT_LOGS)
    assert len(entries) == 1
    entry = entries[0]
    assert entry["entity_type"] == "time_log"
    assert entry["action"] == "APPROVED_PM"
    assert entry["changes"]["status"] == {"before": "PENDING", "after": "APPROVED_PM"}
    assert verify_audit_log(entry)


def test_invoice_binding_shares_the_machine(seeded_store, pm):
    seeded_store.upsert("invoices", "i1", {
        "subcontractor_id": "S1", "project_id": "P1", "period": "2024-10", "amount": 100, "status": "PENDING",
    })
    inv = reject_invoice(seeded_store, "i1", pm, feedback="wrong period")
    assert inv.status is Status.REJECTED
    with pytest.raises(AuthorizationError):
        transition(seeded_store, INVOICE_BINDING, "i1", pm, Status.APPROVED_PM)


def test_allowed_targets_table():
    assert allowed_targets(ActorRole.PROJECT_MANAGER, Status.PENDING) == {Status.APPROVED_PM, Status.REJECTED}
    assert allowed_targets(ActorRole.DIRECTOR, Status.APPROVED_PM) == {Status.RATIFIED_MGR, Status.REJECTED}
    assert allowed_targets(ActorRole.DIRECTOR, Status.PENDING) == frozenset()
    assert allowed_targets(None, Status.PENDING) == frozenset()
