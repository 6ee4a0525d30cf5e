# Overview: Open-rental listing and live subscription built on the in-process feed.

from __future__ import annotations

from typing import Callable

from ..extensions import db, rental_feed
from ..feed import Subscription
from ..models import Rental
from ..models.rentals import RENTAL_STATUS_OPEN


def list_open_rentals() -> list[Rental]:
    """Open rentals, newest checkout first (source order, before dashboard sort)."""
    return db.session.query(Rental).filter_by(
        status=RENTAL_STATUS_OPEN
    ).order_by(Rental.started_at.desc(), Rental.id.desc()).all()


def open_rentals_snapshot() -> list[dict]:
    return [r.to_dict() for r in list_open_rentals()]


def subscribe_open_rentals(callback: Callable[[list[dict]], None], *, deliver_initial: bool = True) -> Subscription:
    """
    Watch the open-rental set.

    The callback receives the full current list (rental dicts) on subscribe
    (unless deliver_initial=False) and after every committed checkout,
    check-in, or rental edit. Call .cancel() on the returned handle to detach.
    """
    return rental_feed.subscribe(callback, initial=open_rentals_snapshot if deliver_initial else None)


def publish_open_rentals() -> int:
    """Push a fresh snapshot to subscribers. Call after commit."""
    return rental_feed.publish(open_rentals_snapshot)
