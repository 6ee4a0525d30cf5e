from __future__ import annotations

from ..extensions import db
from trailledger.time_utils import to_utc_z


BIKE_STATUS_AVAILABLE = "AVAILABLE"
BIKE_STATUS_OUT = "OUT"
BIKE_STATUS_OVERDUE = "OVERDUE"
BIKE_STATUS_MAINTENANCE = "MAINTENANCE"
BIKE_STATUSES = {
    BIKE_STATUS_AVAILABLE,
    BIKE_STATUS_OUT,
    BIKE_STATUS_OVERDUE,
    BIKE_STATUS_MAINTENANCE,
}


class Bike(db.Model):
    """
    Physical rentable bike.

    WHY: Each bike carries a printed tag (QR/NFC) encoding `code`. Scanning
    the tag is the entry point for both checkout and check-in.

    STATUS:
    - AVAILABLE: on the rack, can be checked out
    - OUT: an open rental references this bike
    - OVERDUE: legacy value, still accepted on read
    - MAINTENANCE: operator override, blocks checkout

    DESIGN: version_id is the optimistic lock that keeps two checkouts of
    the same bike from both committing.
    """
    __tablename__ = "bikes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Normalized tag code (uppercase, no whitespace), e.g. "TL-001"
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    label = db.Column(db.String(128), nullable=True)
    model = db.Column(db.String(128), nullable=True)
    size = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    photo_urls = db.Column(db.JSON, nullable=False, default=list)

    status = db.Column(db.String(16), nullable=False, default=BIKE_STATUS_AVAILABLE, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "label": self.label,
            "model": self.model,
            "size": self.size,
            "notes": self.notes,
            "photo_urls": list(self.photo_urls or []),
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def __repr__(self):
        return f"<Bike {self.code} ({self.status})>"
