# Overview: Flask API routes for scan, checkout, check-in, and rental views.

"""
Rental API Routes

WHY: The scan screen, the live dashboard, and the history screen all sit
on top of these endpoints.

DESIGN:
- POST /scan resolves a tag into the next action (register/checkout/checkin)
- Checkout and check-in each commit rental + bike atomically
- Active list is re-sorted into dashboard order with live state attached
- Operator identity comes from the upstream auth layer via headers
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import feed_service, rental_service, reporting_service, settings_service
from ..services.rental_state import describe, sort_for_dashboard
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, StateError, ValidationError
from ..decorators import require_operator


rentals_bp = Blueprint("rentals", __name__, url_prefix="/api/rentals")


# =============================================================================
# SCAN / CHECKOUT / CHECK-IN
# =============================================================================

@rentals_bp.post("/scan")
@require_operator
def scan_route():
    """
    Resolve a scanned tag.

    Request body: {"code": "tl-001"}

    Returns:
        200: {"action": "register" | "checkout" | "checkin", "bike": ..., "rental": ...}
        400: Malformed code
        409: Bike status blocks checkout (e.g. MAINTENANCE)
    """
    data = request.get_json(silent=True) or {}
    try:
        result = rental_service.lookup_scan(data.get("code"))
        return jsonify(result.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StateError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to look up scanned code")
        return jsonify({"error": "Internal server error"}), 500


@rentals_bp.post("/checkout")
@require_operator
def checkout_route():
    """
    Check a bike out.

    Request body:
    {
        "bike_id": 12,
        "bike_code": "TL-012",  (optional, verified when present)
        "renter": {"name": "Sam", "email": "sam@example.com", "phone": "555-0100"}  (optional)
    }

    Returns:
        201: Rental created (bike OUT)
        400: Invalid input
        404: Bike not found
        409: Bike already rented or not eligible
    """
    data = request.get_json(silent=True) or {}
    bike_id = data.get("bike_id")
    if not isinstance(bike_id, int) or isinstance(bike_id, bool):
        return jsonify({"error": "bike_id (integer) required"}), 400

    try:
        rental = rental_service.checkout(
            bike_id=bike_id,
            bike_code=data.get("bike_code"),
            operator_id=g.operator_id,
            operator_label=g.operator_label,
            renter=data.get("renter"),
        )
        current_app.logger.info("Bike %s checked out as rental %s by %s", rental.bike_code, rental.id, g.operator_id)
        config = settings_service.get_park_config()
        return jsonify({"rental": describe(rental, config)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ConflictError, StateError) as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to check out bike")
        return jsonify({"error": "Internal server error"}), 500


@rentals_bp.post("/<int:rental_id>/checkin")
@require_operator
def checkin_route(rental_id: int):
    """
    Check a bike back in.

    Returns:
        200: Rental RETURNED with total_minutes and return_status
        404: Rental not found
        409: Rental already returned
    """
    try:
        rental = rental_service.checkin(rental_id)
        current_app.logger.info("Rental %s checked in by %s (%s min)", rental.id, g.operator_id, rental.total_minutes)
        config = settings_service.get_park_config()
        return jsonify({"rental": describe(rental, config)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StateError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to check in rental")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# VIEWS
# =============================================================================

@rentals_bp.get("/active")
def active_rentals_route():
    """Open rentals in dashboard order: overdue, approaching, on time, buffer."""
    now = utcnow()
    config = settings_service.get_park_config()
    rentals = sort_for_dashboard(feed_service.list_open_rentals(), config, now=now)
    return jsonify({
        "config": config.to_dict(),
        "rentals": [describe(r, config, now=now) for r in rentals],
    }), 200


@rentals_bp.get("/history")
def history_route():
    limit = request.args.get("limit", current_app.config.get("HISTORY_DEFAULT_LIMIT", 50), type=int)
    days = request.args.get("days", type=int)
    try:
        rentals = reporting_service.list_history(limit=limit, days=days)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    config = settings_service.get_park_config()
    return jsonify({"rentals": [describe(r, config) for r in rentals]}), 200


@rentals_bp.get("/<int:rental_id>")
def get_rental_route(rental_id: int):
    try:
        rental = rental_service.get_rental(rental_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    config = settings_service.get_park_config()
    return jsonify({"rental": describe(rental, config)}), 200


@rentals_bp.put("/<int:rental_id>/incident-note")
@require_operator
def incident_note_route(rental_id: int):
    """Request body: {"note": "Flat tire on return"}; null or "" clears it."""
    data = request.get_json(silent=True) or {}
    try:
        rental = rental_service.set_incident_note(rental_id, data.get("note"))
        return jsonify({"rental": rental.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update incident note")
        return jsonify({"error": "Internal server error"}), 500
