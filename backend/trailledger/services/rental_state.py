"""
Rental State Classifier

WHY: Overdue is never written by a timer. Every view derives the live
state of a rental from its stored timestamps, the park timing, and the
current instant, so the answer is always consistent with "now".

DESIGN PRINCIPLES:
- Pure functions; "now" is a parameter and only defaults to the clock
- Evaluation order matters: returned, buffer, overdue, approaching, on time.
  The approaching and overdue windows overlap when warn > grace, and
  overdue must win.
- A closed rental's overdue-ness is fixed at its return instant
  (return_status), separate from the live minutes_overdue
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from ..models.rentals import RENTAL_STATUS_RETURNED
from ..time_utils import add_minutes, minutes_between, utcnow


STATE_BUFFER = "buffer"
STATE_ON_TIME = "on_time"
STATE_APPROACHING = "approaching"
STATE_OVERDUE = "overdue"

DASHBOARD_RANK = {
    STATE_OVERDUE: 0,
    STATE_APPROACHING: 1,
    STATE_ON_TIME: 2,
    STATE_BUFFER: 3,
}


@dataclass(frozen=True)
class ReturnStatus:
    on_time: bool
    minutes_overdue: int

    def to_dict(self) -> dict:
        return {"on_time": self.on_time, "minutes_overdue": self.minutes_overdue}


def overdue_at(rental_ends_at: datetime, config) -> datetime:
    return add_minutes(rental_ends_at, config.grace_minutes)


def dashboard_state(
    buffer_ends_at: datetime,
    rental_ends_at: datetime,
    returned_at: datetime | None,
    status: str,
    config,
    now: datetime | None = None,
) -> str:
    if returned_at is not None or status == RENTAL_STATUS_RETURNED:
        return STATE_ON_TIME

    now = now or utcnow()
    if now < buffer_ends_at:
        return STATE_BUFFER
    if now >= overdue_at(rental_ends_at, config):
        return STATE_OVERDUE
    if now >= add_minutes(rental_ends_at, -config.warn_before_end_minutes):
        return STATE_APPROACHING
    return STATE_ON_TIME


def classify(rental, config, now: datetime | None = None) -> str:
    """Dashboard state for a Rental record."""
    return dashboard_state(
        rental.buffer_ends_at,
        rental.rental_ends_at,
        rental.returned_at,
        rental.status,
        config,
        now=now,
    )


def minutes_overdue(rental_ends_at: datetime, config, now: datetime | None = None) -> int:
    """Live minutes past the grace boundary; exactly 0 at and before it."""
    now = now or utcnow()
    boundary = overdue_at(rental_ends_at, config)
    if now < boundary:
        return 0
    return minutes_between(boundary, now)


def remaining_minutes(rental_ends_at: datetime, now: datetime | None = None) -> int:
    now = now or utcnow()
    return max(0, minutes_between(now, rental_ends_at))


def elapsed_minutes(started_at: datetime, now: datetime | None = None) -> int:
    now = now or utcnow()
    return minutes_between(started_at, now)


def return_status(rental_ends_at: datetime, returned_at: datetime, config) -> ReturnStatus:
    """On-time/overdue verdict evaluated at the return instant, not now."""
    boundary = overdue_at(rental_ends_at, config)
    if returned_at < boundary:
        return ReturnStatus(on_time=True, minutes_overdue=0)
    return ReturnStatus(on_time=False, minutes_overdue=minutes_between(boundary, returned_at))


def dashboard_sort_key(rental, config, now: datetime | None = None) -> tuple:
    """
    (rank, tiebreak) for one open rental.

    Overdue rentals tie-break on minutes overdue, worst first; every other
    state on rental_ends_at, soonest first.
    """
    state = classify(rental, config, now=now)
    rank = DASHBOARD_RANK.get(state, len(DASHBOARD_RANK))
    if state == STATE_OVERDUE:
        return (rank, -minutes_overdue(rental.rental_ends_at, config, now=now), rental.rental_ends_at)
    return (rank, 0, rental.rental_ends_at)


def sort_for_dashboard(rentals: Iterable, config, now: datetime | None = None) -> list:
    now = now or utcnow()
    return sorted(rentals, key=lambda r: dashboard_sort_key(r, config, now=now))


def describe(rental, config, now: datetime | None = None) -> dict:
    """Rental dict plus live state and metrics for display."""
    now = now or utcnow()
    data = rental.to_dict()
    if rental.is_open:
        data.update(
            {
                "state": classify(rental, config, now=now),
                "minutes_overdue": minutes_overdue(rental.rental_ends_at, config, now=now),
                "remaining_minutes": remaining_minutes(rental.rental_ends_at, now=now),
                "elapsed_minutes": elapsed_minutes(rental.started_at, now=now),
            }
        )
    else:
        data["state"] = STATE_ON_TIME
        if rental.returned_at is not None:
            data["return_status"] = return_status(rental.rental_ends_at, rental.returned_at, config).to_dict()
    return data
