# backend/trailledger/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/trailledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///trailledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Park timing used when no park_config row has been saved yet (minutes).
    # One default grace value for every code path.
    PARK_DEFAULT_BUFFER_MINUTES = _env_int("PARK_DEFAULT_BUFFER_MINUTES", 5)
    PARK_DEFAULT_RENTAL_DURATION_MINUTES = _env_int("PARK_DEFAULT_RENTAL_DURATION_MINUTES", 120)
    PARK_DEFAULT_GRACE_MINUTES = _env_int("PARK_DEFAULT_GRACE_MINUTES", 10)
    PARK_DEFAULT_WARN_BEFORE_END_MINUTES = _env_int("PARK_DEFAULT_WARN_BEFORE_END_MINUTES", 15)

    # Checkout desk policy
    REQUIRE_RENTER_NAME = os.environ.get("REQUIRE_RENTER_NAME", "false").lower() == "true"

    HISTORY_DEFAULT_LIMIT = _env_int("HISTORY_DEFAULT_LIMIT", 50)

    # Browser origins allowed to call the API (comma-separated)
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip() for o in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",") if o.strip()
    )
