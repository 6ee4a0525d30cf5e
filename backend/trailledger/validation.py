from __future__ import annotations

import re
from typing import Any


# Tag codes printed on bikes, e.g. "TL-001"
BIKE_CODE_RE = re.compile(r"^[A-Z0-9][A-Z0-9_-]*$")
MAX_BIKE_CODE_LENGTH = 32
MAX_NOTE_LENGTH = 2000

# Upper bound for any park timing value (one year, in minutes)
MAX_SETTING_MINUTES = 525600


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing bike, code, or rental."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., bike already rented out)."""

    def __init__(self, message: str, *, bike_id: int | None = None, rental_id: int | None = None):
        super().__init__(message)
        self.bike_id = bike_id
        self.rental_id = rental_id

    def to_dict(self) -> dict:
        return {"error": str(self), "bike_id": self.bike_id, "rental_id": self.rental_id}


class StateError(ValueError):
    """409-level lifecycle problem; `status` is the state that blocked the operation."""

    def __init__(
        self,
        message: str,
        *,
        status: str | None = None,
        bike_id: int | None = None,
        rental_id: int | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.bike_id = bike_id
        self.rental_id = rental_id

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "status": self.status,
            "bike_id": self.bike_id,
            "rental_id": self.rental_id,
        }


def normalize_bike_code(raw: Any) -> str:
    """Uppercase and strip all whitespace; scanners often add trailing newlines."""
    if raw is None:
        raise ValidationError("Bike code is required")
    code = "".join(str(raw).split()).upper()
    if not code:
        raise ValidationError("Bike code is required")
    if len(code) > MAX_BIKE_CODE_LENGTH:
        raise ValidationError(f"Bike code exceeds max length {MAX_BIKE_CODE_LENGTH}")
    if not BIKE_CODE_RE.match(code):
        raise ValidationError(f"Malformed bike code: {code}")
    return code


def coerce_minutes(field: str, value: Any) -> int:
    """
    Strict non-negative integer coercion for minute settings.

    Rejects bools, floats, decimals, and scientific notation. Values are
    capped at MAX_SETTING_MINUTES so derived timestamps stay in range.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if result < 0:
        raise ValidationError(f"{field} must be >= 0")
    if result > MAX_SETTING_MINUTES:
        raise ValidationError(f"{field} must be <= {MAX_SETTING_MINUTES}")
    return result


def clean_optional_text(field: str, value: Any, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def validate_renter(renter: dict | None, *, require_name: bool = False) -> dict:
    """
    Returns {"renter_name", "renter_email", "renter_phone"}.

    Name is mandatory whenever any renter detail is supplied.
    """
    if renter is None:
        renter = {}
    if not isinstance(renter, dict):
        raise ValidationError("renter must be an object")

    unknown = set(renter) - {"name", "email", "phone"}
    if unknown:
        raise ValidationError(f"Unknown renter field: {sorted(unknown)[0]}")

    name = clean_optional_text("renter.name", renter.get("name"), 128)
    email = clean_optional_text("renter.email", renter.get("email"), 255)
    phone = clean_optional_text("renter.phone", renter.get("phone"), 32)

    if name is None and (require_name or email or phone):
        raise ValidationError("Renter name is required")
    if email is not None and "@" not in email:
        raise ValidationError("renter.email must be an email address")

    return {"renter_name": name, "renter_email": email, "renter_phone": phone}
