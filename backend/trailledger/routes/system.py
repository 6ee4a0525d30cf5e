# backend/trailledger/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db, rental_feed
from ..models import Bike, Rental
from ..models.rentals import RENTAL_STATUS_OPEN
from trailledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        bike_count = db.session.query(Bike).count()
        open_rentals = db.session.query(Rental).filter_by(status=RENTAL_STATUS_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "bikes": bike_count,
                "open_rentals": open_rentals,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "time": to_utc_z(utcnow()),
        "database": database,
        "subscribers": rental_feed.subscriber_count,
    }), 200 if healthy else 503
