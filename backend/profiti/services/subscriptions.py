# profiti/services/subscriptions.py
"""
Explicit handles for Firestore snapshot listeners.

Every listener is owned by a Subscription registered under a key. Whoever opens it
(a request, the application) closes it; the application closes whatever is left on shutdown.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("profiti.subscriptions")


class Subscription:
    def __init__(self, key: str, watch: Any, on_close: Optional[Callable[["Subscription"], None]] = None):
        self.key = key
        self._watch = watch
        self._on_close = on_close
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        """Stop the listener. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._watch.unsubscribe()
        finally:
            if self._on_close:
                self._on_close(self)
        logger.debug("Subscription %s closed", self.key)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class SubscriptionRegistry:
    def __init__(self):
        self._subs: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, key: str, target: Any, callback: Callable) -> Subscription:
        """
        Attach `callback` to `target.on_snapshot` (document, collection or query).
        An existing subscription under the same key is closed first.
        """
        self.close(key)
        watch = target.on_snapshot(callback)
        sub = Subscription(key, watch, on_close=self._forget)
        with self._lock:
            self._subs[key] = sub
        logger.debug("Subscription %s opened", key)
        return sub

    def _forget(self, sub: Subscription) -> None:
        with self._lock:
            if self._subs.get(sub.key) is sub:
                del self._subs[sub.key]

    def get(self, key: str) -> Optional[Subscription]:
        with self._lock:
            return self._subs.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._subs)

    def close(self, key: str) -> bool:
        sub = self.get(key)
        if sub is None:
            return False
        sub.unsubscribe()
        return True

    def close_all(self) -> int:
        with self._lock:
            subs = list(self._subs.values())
        for sub in subs:
            sub.unsubscribe()
        if subs:
            logger.info("Closed %d subscription(s)", len(subs))
        return len(subs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)


registry = SubscriptionRegistry()
