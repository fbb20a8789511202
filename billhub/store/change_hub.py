import threading
from typing import Any, Callable, Dict, List, Set

import structlog

logger = structlog.get_logger(__name__)

Listener = Callable[[List[Dict[str, Any]]], None]


class _Subscription:
    __slots__ = ("collection", "callback")

    def __init__(self, collection: str, callback: Listener) -> None:
        self.collection = collection
        self.callback = callback


class ChangeHub:
    """Fan-out of collection snapshots to in-process listeners."""

    def __init__(self) -> None:
        # collection name -> set of live subscriptions
        self._subscriptions: Dict[str, Set[_Subscription]] = {}
        self._lock = threading.Lock()

    def add(self, collection: str, callback: Listener) -> Callable[[], None]:
        sub = _Subscription(collection, callback)
        with self._lock:
            self._subscriptions.setdefault(collection, set()).add(sub)

        def unsubscribe() -> None:
            self._remove(sub)

        return unsubscribe

    def _remove(self, sub: _Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.collection)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    self._subscriptions.pop(sub.collection, None)

    def has_listeners(self, collection: str) -> bool:
        with self._lock:
            return bool(self._subscriptions.get(collection))

    def listener_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(collection, ()))

    def publish(self, collection: str, snapshot: List[Dict[str, Any]]) -> None:
        with self._lock:
            targets = list(self._subscriptions.get(collection, set()))
        for sub in targets:
            try:
                sub.callback([dict(doc) for doc in snapshot])
            except Exception:
                # best-effort; keep notifying the rest
                logger.exception("change_listener_failed", collection=collection)
