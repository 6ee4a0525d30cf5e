from __future__ import annotations

from ..extensions import db
from trailledger.time_utils import to_utc_z


RENTAL_STATUS_OPEN = "OPEN"
RENTAL_STATUS_RETURNED = "RETURNED"


class Rental(db.Model):
    """
    One checkout of one bike.

    LIFECYCLE:
    - OPEN: created at checkout
    - RETURNED: set once at check-in with returned_at and total_minutes

    Finer states (buffer, on time, approaching, overdue) are never stored;
    they are derived from the timestamps by services.rental_state.

    DESIGN: version_id makes a second concurrent check-in fail at flush
    instead of overwriting returned_at.

    IMMUTABLE HISTORY: rentals are never deleted. bike_code is copied at
    checkout so history survives deletion of the bike.
    """
    __tablename__ = "rentals"
    __table_args__ = (
        # At most one open rental per bike
        db.Index(
            "uq_rentals_open_bike",
            "bike_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bike_id = db.Column(db.Integer, db.ForeignKey("bikes.id", ondelete="SET NULL"), nullable=True, index=True)
    bike_code = db.Column(db.String(32), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=RENTAL_STATUS_OPEN, index=True)

    # Staff member who performed the checkout
    operator_id = db.Column(db.String(128), nullable=False)
    operator_label = db.Column(db.String(255), nullable=True)

    # Customer contact, optional
    renter_name = db.Column(db.String(128), nullable=True)
    renter_email = db.Column(db.String(255), nullable=True)
    renter_phone = db.Column(db.String(32), nullable=True)

    started_at = db.Column(db.DateTime, nullable=False, index=True)
    buffer_ends_at = db.Column(db.DateTime, nullable=False)
    rental_ends_at = db.Column(db.DateTime, nullable=False)
    returned_at = db.Column(db.DateTime, nullable=True, index=True)
    total_minutes = db.Column(db.Integer, nullable=True)

    incident_note = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    bike = db.relationship("Bike", backref=db.backref("rentals", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == RENTAL_STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "bike_code": self.bike_code,
            "status": self.status,
            "operator_id": self.operator_id,
            "operator_label": self.operator_label,
            "renter_name": self.renter_name,
            "renter_email": self.renter_email,
            "renter_phone": self.renter_phone,
            "started_at": to_utc_z(self.started_at),
            "buffer_ends_at": to_utc_z(self.buffer_ends_at),
            "rental_ends_at": to_utc_z(self.rental_ends_at),
            "returned_at": to_utc_z(self.returned_at),
            "total_minutes": self.total_minutes,
            "incident_note": self.incident_note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def __repr__(self):
        return f"<Rental {self.id} ({self.bike_code} {self.status})>"
