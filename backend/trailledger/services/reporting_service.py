# Overview: Service-layer operations for rental history, daily metrics, and CSV export.

from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta
from typing import Iterable

from ..extensions import db
from ..models import Rental
from ..models.rentals import RENTAL_STATUS_RETURNED
from ..time_utils import day_bounds, to_utc_z, utcnow
from ..validation import ValidationError
from . import feed_service, settings_service
from .rental_state import minutes_overdue, return_status


MAX_HISTORY_LIMIT = 500

CSV_HEADERS = ["Bike ID", "Staff", "Renter", "Started", "Returned", "Total min", "Status"]


def list_history(limit: int = 50, days: int | None = None, *, now: datetime | None = None) -> list[Rental]:
    """Returned rentals, most recently returned first."""
    if limit < 1 or limit > MAX_HISTORY_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")

    query = db.session.query(Rental).filter(Rental.status == RENTAL_STATUS_RETURNED)

    if days is not None:
        if days < 1:
            raise ValidationError("days must be >= 1")
        since = (now or utcnow()) - timedelta(days=days)
        query = query.filter(Rental.returned_at >= since)

    return query.order_by(Rental.returned_at.desc(), Rental.id.desc()).limit(limit).all()


def list_by_date_range(start: datetime, end: datetime) -> list[Rental]:
    """All rentals (any status) whose started_at lies in [start, end]."""
    if start is None or end is None:
        raise ValidationError("start and end are required")
    if start > end:
        raise ValidationError("start must be before end")

    return db.session.query(Rental).filter(
        Rental.started_at >= start,
        Rental.started_at <= end,
    ).order_by(Rental.started_at.desc(), Rental.id.desc()).all()


def summarize(rentals: Iterable[Rental], config) -> dict:
    """
    Checked out / returned counts, average duration, and on-time split.

    Average covers returned rentals with a recorded total_minutes.
    On-time vs overdue is judged at each rental's return instant.
    """
    rentals = list(rentals)
    returned = [r for r in rentals if r.status == RENTAL_STATUS_RETURNED]
    durations = [r.total_minutes for r in returned if r.total_minutes is not None]

    returned_on_time = 0
    returned_overdue = 0
    for rental in returned:
        if rental.returned_at is None:
            continue
        verdict = return_status(rental.rental_ends_at, rental.returned_at, config)
        if verdict.on_time:
            returned_on_time += 1
        else:
            returned_overdue += 1

    average = round(sum(durations) / len(durations), 1) if durations else None

    return {
        "checked_out_count": len(rentals),
        "returned_count": len(returned),
        "open_count": len(rentals) - len(returned),
        "average_duration_minutes": average,
        "returned_on_time_count": returned_on_time,
        "returned_overdue_count": returned_overdue,
    }


def daily_report(day: date, *, now: datetime | None = None) -> dict:
    """End-of-day summary for one calendar day (UTC) plus the live overdue list."""
    now = now or utcnow()
    config = settings_service.get_park_config()
    start, end = day_bounds(day)
    rentals = list_by_date_range(start, end)

    overdue_now = []
    for rental in feed_service.list_open_rentals():
        late = minutes_overdue(rental.rental_ends_at, config, now=now)
        if late > 0:
            overdue_now.append({**rental.to_dict(), "minutes_overdue": late})
    overdue_now.sort(key=lambda row: row["minutes_overdue"], reverse=True)

    return {
        "date": day.isoformat(),
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        **summarize(rentals, config),
        "overdue_now": overdue_now,
    }


def rentals_to_csv(rentals: Iterable[Rental]) -> str:
    """Flatten rentals into CSV; every field quoted, embedded quotes doubled."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in rentals:
        writer.writerow(
            [
                r.bike_code,
                r.operator_label or r.operator_id,
                r.renter_name or "",
                to_utc_z(r.started_at) or "",
                to_utc_z(r.returned_at) or "",
                "" if r.total_minutes is None else r.total_minutes,
                r.status,
            ]
        )
    return buf.getvalue()
