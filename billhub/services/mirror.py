"""
Read-side mirrors of the billing collections.

``load_state`` takes a one-off snapshot; ``StateMirror`` keeps one current through
store subscriptions and must be closed to release them.
"""
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

import structlog

from ..constants import INVOICES, PROJECTS, SUBCONTRACTORS, TIME_LOGS
from ..schemas.billing import Invoice, Project, Subcontractor, TimeLog
from ..store.provider import DocumentStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AppState:
    projects: List[Project] = field(default_factory=list)
    subcontractors: List[Subcontractor] = field(default_factory=list)
    time_logs: List[TimeLog] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)

    def project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def subcontractor(self, subcontractor_id: str) -> Optional[Subcontractor]:
        return next((s for s in self.subcontractors if s.id == subcontractor_id), None)


_MODELS = {
    PROJECTS: ("projects", Project),
    SUBCONTRACTORS: ("subcontractors", Subcontractor),
    TIME_LOGS: ("time_logs", TimeLog),
    INVOICES: ("invoices", Invoice),
}


def _parse(collection: str, docs: List[dict]) -> list:
    _, model = _MODELS[collection]
    out = []
    for doc in docs:
        try:
            out.append(model(**doc))
        except ValueError:
            logger.warning("mirror_skipped_document", collection=collection, doc_id=doc.get("id"))
    return out


def load_state(store: DocumentStore) -> AppState:
    return AppState(**{attr: _parse(name, store.list(name)) for name, (attr, _) in _MODELS.items()})


class StateMirror:
    """Live AppState rebuilt on every change notification of the four collections."""

    def __init__(self, store: DocumentStore, on_change: Optional[Callable[[AppState], None]] = None) -> None:
        self._store = store
        self._on_change = on_change
        self._lock = threading.Lock()
        self._state = AppState()
        self._unsubscribers: List[Callable[[], None]] = []
        self._ready = False

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    @property
    def active(self) -> bool:
        return bool(self._unsubscribers)

    def start(self) -> "StateMirror":
        if self._unsubscribers:
            return self
        for name in _MODELS:
            self._unsubscribers.append(self._store.subscribe(name, self._listener(name)))
        self._ready = True
        self._emit()
        return self

    def close(self) -> None:
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
        self._ready = False

    def __enter__(self) -> "StateMirror":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    def _listener(self, collection: str) -> Callable[[List[dict]], None]:
        attr, _ = _MODELS[collection]

        def _apply(docs: List[dict]) -> None:
            items = _parse(collection, docs)
            with self._lock:
                self._state = replace(self._state, **{attr: items})
            # initial snapshots arrive during start(); emit once they are all in
            if self._ready:
                self._emit()

        return _apply

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state)
