# Overview: In-process change feed for the open-rental set.

"""
Open Rental Feed

WHY: Operator dashboards watch the set of open rentals. Every committed
change to that set is pushed to subscribers as a full snapshot, so a
subscriber never has to merge deltas.

DESIGN:
- Subscribers register a callback and get a Subscription handle back
- Snapshots are built by a callable run while the feed lock is held, so
  publishes are serialized: the last snapshot delivered is the newest one
- Snapshots are plain data (lists of dicts), never session-bound objects
- Delivery and cancel() share one lock: once cancel() returns, the
  subscriber receives nothing further
- A failing subscriber is logged and skipped; the write that triggered
  the publish has already committed
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Sequence

from flask import current_app, has_app_context


SnapshotBuilder = Callable[[], Sequence[dict]]


class Subscription:
    """Handle returned by RentalFeed.subscribe()."""

    def __init__(self, feed: "RentalFeed", subscription_id: int, callback: Callable):
        self._feed = feed
        self.id = subscription_id
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        self._feed._remove(self)

    def __repr__(self):
        state = "active" if self.active else "cancelled"
        return f"<Subscription {self.id} ({state})>"


class RentalFeed:
    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._subscribers: dict[int, Subscription] = {}

    def subscribe(
        self,
        callback: Callable[[list[dict]], None],
        initial: SnapshotBuilder | None = None,
    ) -> Subscription:
        """
        Register a callback. When `initial` is given, its snapshot is built
        and delivered before any later publish can reach this subscriber.
        """
        with self._lock:
            sub = Subscription(self, next(self._ids), callback)
            self._subscribers[sub.id] = sub
            if initial is not None:
                self._call(sub, initial())
            return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            self._subscribers.pop(sub.id, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, build_snapshot: SnapshotBuilder) -> int:
        """Build one snapshot and push it to every active subscriber. Returns deliveries made."""
        delivered = 0
        with self._lock:
            if not self._subscribers:
                return 0
            snapshot = build_snapshot()
            for sub in list(self._subscribers.values()):
                if self._call(sub, snapshot):
                    delivered += 1
        return delivered

    def clear(self) -> None:
        with self._lock:
            for sub in self._subscribers.values():
                sub.active = False
            self._subscribers.clear()

    def _call(self, sub: Subscription, snapshot: Sequence[dict]) -> bool:
        if not sub.active:
            return False
        try:
            sub.callback([dict(row) for row in snapshot])
        except Exception:
            logger = current_app.logger if has_app_context() else logging.getLogger(__name__)
            logger.exception("Open rental subscriber %s failed", sub.id)
            return False
        return True
