from __future__ import annotations

from ..extensions import db
from trailledger.time_utils import to_utc_z


PARK_CONFIG_ID = 1


class ParkConfig(db.Model):
    """
    Park-wide rental timing, all values in minutes.

    Single row (id = 1). When the row is absent the app-config defaults
    apply; see services.settings_service.
    """
    __tablename__ = "park_config"

    id = db.Column(db.Integer, primary_key=True)
    buffer_minutes = db.Column(db.Integer, nullable=False)
    rental_duration_minutes = db.Column(db.Integer, nullable=False)
    grace_minutes = db.Column(db.Integer, nullable=False)
    warn_before_end_minutes = db.Column(db.Integer, nullable=False)

    updated_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "buffer_minutes": self.buffer_minutes,
            "rental_duration_minutes": self.rental_duration_minutes,
            "grace_minutes": self.grace_minutes,
            "warn_before_end_minutes": self.warn_before_end_minutes,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
        }
