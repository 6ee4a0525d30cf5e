from __future__ import annotations

from dataclasses import asdict, dataclass

from flask import current_app

from ..extensions import db
from ..models import ParkConfig
from ..models.settings import PARK_CONFIG_ID
from ..validation import ValidationError, coerce_minutes


PARK_FIELDS = (
    "buffer_minutes",
    "rental_duration_minutes",
    "grace_minutes",
    "warn_before_end_minutes",
)

# Used when the app config carries no PARK_DEFAULT_* keys
FALLBACK_DEFAULTS = {
    "buffer_minutes": 5,
    "rental_duration_minutes": 120,
    "grace_minutes": 10,
    "warn_before_end_minutes": 15,
}


@dataclass(frozen=True)
class ParkSettings:
    buffer_minutes: int
    rental_duration_minutes: int
    grace_minutes: int
    warn_before_end_minutes: int

    def to_dict(self) -> dict:
        return asdict(self)


def default_park_settings() -> ParkSettings:
    """Defaults from app config (PARK_DEFAULT_*); one value per field."""
    cfg = current_app.config
    return ParkSettings(
        buffer_minutes=int(cfg.get("PARK_DEFAULT_BUFFER_MINUTES", FALLBACK_DEFAULTS["buffer_minutes"])),
        rental_duration_minutes=int(
            cfg.get("PARK_DEFAULT_RENTAL_DURATION_MINUTES", FALLBACK_DEFAULTS["rental_duration_minutes"])
        ),
        grace_minutes=int(cfg.get("PARK_DEFAULT_GRACE_MINUTES", FALLBACK_DEFAULTS["grace_minutes"])),
        warn_before_end_minutes=int(
            cfg.get("PARK_DEFAULT_WARN_BEFORE_END_MINUTES", FALLBACK_DEFAULTS["warn_before_end_minutes"])
        ),
    )


def get_park_config() -> ParkSettings:
    """
    Current park timing.

    Missing row -> app defaults. Missing columns on an older row fall back
    field by field.
    """
    defaults = default_park_settings()
    row = db.session.get(ParkConfig, PARK_CONFIG_ID)
    if row is None:
        return defaults
    values = {}
    for field in PARK_FIELDS:
        value = getattr(row, field)
        values[field] = getattr(defaults, field) if value is None else int(value)
    return ParkSettings(**values)


def validate_park_payload(payload: dict, *, partial: bool) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for key in payload.keys():
        if key not in PARK_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    if not partial:
        missing = [f for f in PARK_FIELDS if f not in payload]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    return {key: coerce_minutes(key, value) for key, value in payload.items()}


def set_park_config(values: dict, *, updated_by: str | None = None, partial: bool = True) -> ParkSettings:
    """
    Save park timing. Unspecified fields keep their current effective value.

    Single-row write; no cross-entity transaction needed.
    """
    patch = validate_park_payload(values, partial=partial)
    merged = {**get_park_config().to_dict(), **patch}

    if merged["warn_before_end_minutes"] > merged["rental_duration_minutes"]:
        raise ValidationError("warn_before_end_minutes cannot exceed rental_duration_minutes")

    row = db.session.get(ParkConfig, PARK_CONFIG_ID)
    if row is None:
        row = ParkConfig(id=PARK_CONFIG_ID, **merged)
        db.session.add(row)
    else:
        for key, value in merged.items():
            setattr(row, key, value)
    row.updated_by = updated_by
    db.session.commit()

    return ParkSettings(**merged)
