"""
Bike Registry Service

WHY: Bikes are the scannable assets. Their status has to agree with the
rental table at all times: OUT exactly when an open rental references the
bike, MAINTENANCE when an operator pulls it, AVAILABLE otherwise.

DESIGN PRINCIPLES:
- Codes are normalized (uppercase, no whitespace) before every lookup
- Bikes with an open rental cannot be deleted or forced to AVAILABLE
- Deleting a bike keeps its rental history (bike_code is denormalized)
"""

from __future__ import annotations

from ..extensions import db
from ..models import Bike, Rental
from ..models.bikes import (
    BIKE_STATUS_AVAILABLE,
    BIKE_STATUS_MAINTENANCE,
    BIKE_STATUSES,
)
from ..models.rentals import RENTAL_STATUS_OPEN
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    clean_optional_text,
    normalize_bike_code,
)


# Statuses an operator may set by hand. OUT belongs to the rental protocol.
MANUAL_STATUSES = {BIKE_STATUS_AVAILABLE, BIKE_STATUS_MAINTENANCE}


def get_bike(bike_id: int) -> Bike:
    bike = db.session.get(Bike, bike_id)
    if not bike:
        raise NotFoundError(f"Bike {bike_id} not found")
    return bike


def resolve_bike_by_code(code: str) -> Bike | None:
    """Look up a bike by its tag code; None when the code is not registered."""
    normalized = normalize_bike_code(code)
    return db.session.query(Bike).filter_by(code=normalized).first()


def list_bikes(status: str | None = None) -> list[Bike]:
    query = db.session.query(Bike)
    if status:
        status = status.upper()
        if status not in BIKE_STATUSES:
            raise ValidationError(f"Unknown bike status: {status}")
        query = query.filter_by(status=status)
    return query.order_by(Bike.code.asc()).all()


def open_rental_for_bike(bike_id: int) -> Rental | None:
    return db.session.query(Rental).filter_by(
        bike_id=bike_id,
        status=RENTAL_STATUS_OPEN,
    ).first()


def add_bike(
    code: str,
    label: str | None = None,
    model: str | None = None,
    size: str | None = None,
    notes: str | None = None,
    photo_urls: list[str] | None = None,
) -> Bike:
    """
    Register a new bike (status: AVAILABLE).

    Raises:
        ValidationError: malformed code or fields
        ConflictError: code already registered
    """
    normalized = normalize_bike_code(code)

    existing = db.session.query(Bike).filter_by(code=normalized).first()
    if existing:
        raise ConflictError(f"Bike {normalized} already exists", bike_id=existing.id)

    bike = Bike(
        code=normalized,
        label=clean_optional_text("label", label, 128) or normalized,
        model=clean_optional_text("model", model, 128),
        size=clean_optional_text("size", size, 32),
        notes=clean_optional_text("notes", notes, 2000),
        photo_urls=_clean_photo_urls(photo_urls),
        status=BIKE_STATUS_AVAILABLE,
    )

    db.session.add(bike)
    db.session.commit()

    return bike


def _clean_photo_urls(photo_urls) -> list[str]:
    if photo_urls is None:
        return []
    if not isinstance(photo_urls, (list, tuple)):
        raise ValidationError("photo_urls must be a list")
    cleaned = []
    for url in photo_urls:
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("photo_urls must contain non-empty strings")
        cleaned.append(url.strip())
    return cleaned


def update_bike_photo_urls(bike_id: int, photo_urls: list[str]) -> Bike:
    """Replace the photo list. Uploading the photos happens elsewhere."""
    bike = get_bike(bike_id)
    bike.photo_urls = _clean_photo_urls(photo_urls)
    db.session.commit()
    return bike


def set_bike_status(bike_id: int, status: str) -> Bike:
    """
    Operator maintenance toggle.

    MAINTENANCE may be set at any time and blocks checkout. AVAILABLE is
    refused while a rental is open, since the bike is physically out.
    """
    status = (status or "").strip().upper()
    if status not in MANUAL_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(sorted(MANUAL_STATUSES))}")

    bike = get_bike(bike_id)

    if status == BIKE_STATUS_AVAILABLE:
        open_rental = open_rental_for_bike(bike.id)
        if open_rental:
            raise ConflictError(
                f"Bike {bike.code} has an open rental. Check it in first.",
                bike_id=bike.id,
                rental_id=open_rental.id,
            )

    bike.status = status
    db.session.commit()

    return bike


def delete_bike(bike_id: int) -> None:
    """
    Remove a bike record. Rental history stays.

    Raises:
        NotFoundError: unknown bike
        ConflictError: bike has an open rental
    """
    bike = get_bike(bike_id)

    open_rental = open_rental_for_bike(bike.id)
    if open_rental:
        raise ConflictError(
            "Cannot remove bike with an active rental. Check it in first.",
            bike_id=bike.id,
            rental_id=open_rental.id,
        )

    db.session.delete(bike)
    db.session.commit()


def seed_bikes(count: int, prefix: str = "TL") -> list[Bike]:
    """Create bikes PREFIX-001..PREFIX-NNN, skipping codes already registered."""
    if count < 1:
        raise ValidationError("count must be >= 1")

    existing = {code for (code,) in db.session.query(Bike.code).all()}
    created = []
    for i in range(1, count + 1):
        code = normalize_bike_code(f"{prefix}-{i:03d}")
        if code in existing:
            continue
        bike = Bike(code=code, label=f"Bike {i}", status=BIKE_STATUS_AVAILABLE, photo_urls=[])
        db.session.add(bike)
        created.append(bike)
    db.session.commit()
    return created
