from billhub.constants import INVOICES, PROJECTS, SUBCONTRACTORS, TIME_LOGS
from billhub.services.mirror import StateMirror, load_state


def test_load_state_parses_collections(seeded_store):
    state = load_state(seeded_store)
    assert [p.id for p in state.projects] == ["P1"]
    assert state.subcontractor("S1").hourly_rate == 50
    assert state.project("missing") is None
    assert state.time_logs == [] and state.invoices == []


def test_malformed_documents_are_skipped(seeded_store):
    seeded_store.upsert(SUBCONTRACTORS, "bad", {"role": "no name"})
    state = load_state(seeded_store)
    assert {s.id for s in state.subcontractors} == {"S1", "S2"}


def test_mirror_emits_once_on_start_then_per_change(seeded_store):
    seen = []
    mirror = StateMirror(seeded_store, on_change=seen.append).start()
    try:
        assert len(seen) == 1
        assert mirror.active

        seeded_store.create(TIME_LOGS, {
            "id": "t1", "subcontractor_id": "S1", "project_id": "P1",
            "date": "2024-10-01", "hours": 4, "status": "PENDING",
        })
        assert len(seen) == 2
        assert [t.id for t in mirror.state.time_logs] == ["t1"]
    finally:
        mirror.close()

    assert not mirror.active
    for name in (PROJECTS, SUBCONTRACTORS, TIME_LOGS, INVOICES):
        assert seeded_store.listener_count(name) == 0

    seeded_store.delete(TIME_LOGS, "t1")
    assert len(seen) == 2


def test_mirror_context_manager(seeded_store):
    with StateMirror(seeded_store) as mirror:
        assert seeded_store.listener_count(PROJECTS) == 1
        assert mirror.state.project("P1").name == "Cloud Migration"
    assert seeded_store.listener_count(PROJECTS) == 0


def test_start_is_idempotent(seeded_store):
    mirror = StateMirror(seeded_store).start()
    mirror.start()
    assert seeded_store.listener_count(INVOICES) == 1
    mirror.close()
