"""
Rental Checkout / Check-in Service

WHY: A bike is a single physical object. Two operators scanning the same
tag must never both check it out, and a rental must never exist while the
bike still reads AVAILABLE (or the reverse).

DESIGN PRINCIPLES:
- Checkout and check-in each commit the rental row and the bike row in a
  single transaction; a failure rolls back both
- No check-then-act window: the bike row is locked and its version_id is
  bumped by the same commit that inserts the rental. A concurrent writer
  hits StaleDataError, is rolled back, and its retry sees the open rental.
  The partial unique index on open rentals is the last line of defense.
- Persisted rental status is OPEN or RETURNED only; live states are derived
- Check-in requires an OPEN rental, so a second check-in cannot overwrite
  returned_at / total_minutes; racing check-ins collide on rentals.version_id

LIFECYCLE:
1. Scan -> lookup_scan() decides register / checkout / checkin
2. checkout(): rental OPEN, bike OUT
3. checkin(): rental RETURNED, bike AVAILABLE (MAINTENANCE is kept)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Bike, Rental
from ..models.bikes import (
    BIKE_STATUS_AVAILABLE,
    BIKE_STATUS_MAINTENANCE,
    BIKE_STATUS_OUT,
)
from ..models.rentals import RENTAL_STATUS_OPEN, RENTAL_STATUS_RETURNED
from ..time_utils import add_minutes, minutes_between, utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
    MAX_NOTE_LENGTH,
    clean_optional_text,
    normalize_bike_code,
    validate_renter,
)
from . import bike_service, feed_service, settings_service
from .concurrency import lock_for_update, run_with_retry


# Bike statuses that allow a checkout
CHECKOUT_ELIGIBLE_STATUSES = {BIKE_STATUS_AVAILABLE, BIKE_STATUS_OUT}

SCAN_ACTION_REGISTER = "register"
SCAN_ACTION_CHECKOUT = "checkout"
SCAN_ACTION_CHECKIN = "checkin"


@dataclass
class ScanResult:
    action: str
    code: str
    bike: Bike | None = None
    rental: Rental | None = None

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "code": self.code,
            "bike": self.bike.to_dict() if self.bike else None,
            "rental": self.rental.to_dict() if self.rental else None,
        }


def get_rental(rental_id: int) -> Rental:
    rental = db.session.get(Rental, rental_id)
    if not rental:
        raise NotFoundError(f"Rental {rental_id} not found")
    return rental


def find_open_rental_for_bike(bike_id: int) -> Rental | None:
    return bike_service.open_rental_for_bike(bike_id)


# =============================================================================
# SCAN ENTRY POINT
# =============================================================================

def lookup_scan(code: str) -> ScanResult:
    """
    Decide what a scanned tag means.

    Returns:
        ScanResult with action:
        - "register": code unknown, caller may offer to add the bike
        - "checkin": bike has an open rental (rental attached)
        - "checkout": bike is eligible for a new rental

    Raises:
        ValidationError: malformed code
        StateError: bike exists but its status blocks checkout
    """
    normalized = normalize_bike_code(code)
    bike = bike_service.resolve_bike_by_code(normalized)
    if bike is None:
        return ScanResult(action=SCAN_ACTION_REGISTER, code=normalized)

    open_rental = bike_service.open_rental_for_bike(bike.id)
    if open_rental:
        return ScanResult(action=SCAN_ACTION_CHECKIN, code=normalized, bike=bike, rental=open_rental)

    if bike.status not in CHECKOUT_ELIGIBLE_STATUSES:
        raise StateError(
            f"Bike {bike.code} is {bike.status}",
            status=bike.status,
            bike_id=bike.id,
        )

    return ScanResult(action=SCAN_ACTION_CHECKOUT, code=normalized, bike=bike)


# =============================================================================
# CHECKOUT
# =============================================================================

def checkout(
    bike_id: int,
    bike_code: str | None,
    operator_id: str,
    operator_label: str | None = None,
    renter: dict | None = None,
    *,
    now: datetime | None = None,
    require_renter_name: bool | None = None,
) -> Rental:
    """
    Check a bike out (rental OPEN, bike OUT) in one transaction.

    Args:
        bike_id: Bike key
        bike_code: Tag code as scanned; must match the bike when given
        operator_id: Staff member performing the checkout
        operator_label: Display name/email of the staff member
        renter: Optional {"name", "email", "phone"}
        now: Checkout instant (defaults to the clock)
        require_renter_name: Overrides REQUIRE_RENTER_NAME

    Returns:
        The new Rental

    Raises:
        ValidationError: bad operator, renter, or code mismatch
        NotFoundError: unknown bike
        StateError: bike status blocks checkout (status attached)
        ConflictError: bike already has an open rental
    """
    operator_id = clean_optional_text("operator_id", operator_id, 128)
    if not operator_id:
        raise ValidationError("operator_id is required")
    operator_label = clean_optional_text("operator_label", operator_label, 255)

    if require_renter_name is None:
        require_renter_name = bool(current_app.config.get("REQUIRE_RENTER_NAME", False))
    renter_fields = validate_renter(renter, require_name=require_renter_name)

    expected_code = normalize_bike_code(bike_code) if bike_code else None

    def _op() -> Rental:
        bike = lock_for_update(
            db.session.query(Bike).filter_by(id=bike_id).populate_existing()
        ).first()
        if not bike:
            raise NotFoundError(f"Bike {bike_id} not found")

        if expected_code and bike.code != expected_code:
            raise ValidationError(f"Bike {bike_id} has code {bike.code}, not {expected_code}")

        # An open rental outranks the bike status (e.g. MAINTENANCE while out)
        existing = bike_service.open_rental_for_bike(bike.id)
        if existing:
            raise ConflictError(
                "This bike already has an active rental. Check it in first.",
                bike_id=bike.id,
                rental_id=existing.id,
            )

        if bike.status not in CHECKOUT_ELIGIBLE_STATUSES:
            raise StateError(
                f"Bike {bike.code} is {bike.status}",
                status=bike.status,
                bike_id=bike.id,
            )

        config = settings_service.get_park_config()
        started_at = now or utcnow()
        buffer_ends_at = add_minutes(started_at, config.buffer_minutes)
        rental_ends_at = add_minutes(buffer_ends_at, config.rental_duration_minutes)

        rental = Rental(
            bike_id=bike.id,
            bike_code=bike.code,
            status=RENTAL_STATUS_OPEN,
            operator_id=operator_id,
            operator_label=operator_label,
            started_at=started_at,
            buffer_ends_at=buffer_ends_at,
            rental_ends_at=rental_ends_at,
            **renter_fields,
        )
        db.session.add(rental)

        # Same flush bumps bike.version_id; a concurrent checkout fails here
        bike.status = BIKE_STATUS_OUT

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(
                "This bike already has an active rental. Check it in first.",
                bike_id=bike_id,
            )

        return rental

    rental = run_with_retry(_op)
    feed_service.publish_open_rentals()
    return rental


# =============================================================================
# CHECK-IN
# =============================================================================

def checkin(rental_id: int, *, now: datetime | None = None) -> Rental:
    """
    Close an open rental (rental RETURNED, bike AVAILABLE) in one transaction.

    total_minutes is measured from started_at, buffer included.
    A bike placed in MAINTENANCE while out stays in MAINTENANCE.

    Raises:
        NotFoundError: unknown rental
        StateError: rental already returned
    """
    def _op() -> Rental:
        rental = lock_for_update(
            db.session.query(Rental).filter_by(id=rental_id).populate_existing()
        ).first()
        if not rental:
            raise NotFoundError(f"Rental {rental_id} not found")

        if rental.status != RENTAL_STATUS_OPEN:
            raise StateError(
                f"Rental {rental_id} already returned",
                status=rental.status,
                bike_id=rental.bike_id,
                rental_id=rental.id,
            )

        returned_at = now or utcnow()
        rental.status = RENTAL_STATUS_RETURNED
        rental.returned_at = returned_at
        rental.total_minutes = minutes_between(rental.started_at, returned_at)

        if rental.bike_id is not None:
            bike = lock_for_update(
                db.session.query(Bike).filter_by(id=rental.bike_id).populate_existing()
            ).first()
            if bike and bike.status != BIKE_STATUS_MAINTENANCE:
                bike.status = BIKE_STATUS_AVAILABLE

        db.session.commit()
        return rental

    rental = run_with_retry(_op)
    feed_service.publish_open_rentals()
    return rental


# =============================================================================
# SINGLE-ROW EDITS
# =============================================================================

def set_incident_note(rental_id: int, note: str | None) -> Rental:
    """Attach or clear an incident note (damage, injury, late return reason)."""
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string")
    cleaned = clean_optional_text("note", note, MAX_NOTE_LENGTH)

    rental = get_rental(rental_id)
    rental.incident_note = cleaned
    db.session.commit()

    if rental.is_open:
        feed_service.publish_open_rentals()
    return rental


# =============================================================================
# DEMO DATA
# =============================================================================

def seed_demo(operator_id: str, operator_label: str | None = None, *, now: datetime | None = None) -> list[Rental]:
    """
    Put TL-001 three hours into a rental (overdue under default timing) and
    TL-002 one minute into one (buffer). Seeds 20 bikes if either is missing.
    """
    now = now or utcnow()
    bikes = [bike_service.resolve_bike_by_code(code) for code in ("TL-001", "TL-002")]
    if not all(bikes):
        bike_service.seed_bikes(20)
        bikes = [bike_service.resolve_bike_by_code(code) for code in ("TL-001", "TL-002")]

    overdue_bike, buffer_bike = bikes
    return [
        checkout(
            overdue_bike.id,
            overdue_bike.code,
            operator_id,
            operator_label,
            now=now - timedelta(hours=3),
            require_renter_name=False,
        ),
        checkout(
            buffer_bike.id,
            buffer_bike.code,
            operator_id,
            operator_label,
            now=now - timedelta(minutes=1),
            require_renter_name=False,
        ),
    ]
