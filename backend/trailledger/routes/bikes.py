# Overview: Flask API routes for the bike registry; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import bike_service
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_operator


bikes_bp = Blueprint("bikes", __name__, url_prefix="/api/bikes")


@bikes_bp.get("/")
@bikes_bp.get("")
def list_bikes_route():
    try:
        bikes = bike_service.list_bikes(status=request.args.get("status"))
        return jsonify({"bikes": [b.to_dict() for b in bikes]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@bikes_bp.post("/")
@bikes_bp.post("")
@require_operator
def add_bike_route():
    """
    Register a bike.

    Request body:
    {
        "code": "TL-021",
        "label": "Bike 21",  (optional, defaults to code)
        "model": "Trek Marlin",  (optional)
        "size": "M",  (optional)
        "notes": "...",  (optional)
        "photo_urls": ["https://..."]  (optional)
    }

    Returns:
        201: Bike created (status: AVAILABLE)
        400: Invalid input
        409: Code already registered
    """
    data = request.get_json(silent=True) or {}
    try:
        bike = bike_service.add_bike(
            code=data.get("code"),
            label=data.get("label"),
            model=data.get("model"),
            size=data.get("size"),
            notes=data.get("notes"),
            photo_urls=data.get("photo_urls"),
        )
        current_app.logger.info("Bike %s registered", bike.code)
        return jsonify({"bike": bike.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to add bike")
        return jsonify({"error": "Internal server error"}), 500


@bikes_bp.get("/<int:bike_id>")
def get_bike_route(bike_id: int):
    try:
        bike = bike_service.get_bike(bike_id)
        return jsonify({"bike": bike.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@bikes_bp.get("/by-code/<code>")
def get_bike_by_code_route(code: str):
    try:
        bike = bike_service.resolve_bike_by_code(code)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    if bike is None:
        return jsonify({"error": "Bike not found"}), 404
    return jsonify({"bike": bike.to_dict()}), 200


@bikes_bp.patch("/<int:bike_id>/status")
@require_operator
def set_bike_status_route(bike_id: int):
    """
    Maintenance toggle.

    Request body: {"status": "MAINTENANCE" | "AVAILABLE"}
    """
    data = request.get_json(silent=True) or {}
    try:
        bike = bike_service.set_bike_status(bike_id, data.get("status"))
        return jsonify({"bike": bike.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to update bike status")
        return jsonify({"error": "Internal server error"}), 500


@bikes_bp.put("/<int:bike_id>/photos")
@require_operator
def update_bike_photos_route(bike_id: int):
    data = request.get_json(silent=True) or {}
    if "photo_urls" not in data:
        return jsonify({"error": "photo_urls is required"}), 400
    try:
        bike = bike_service.update_bike_photo_urls(bike_id, data.get("photo_urls"))
        return jsonify({"bike": bike.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@bikes_bp.delete("/<int:bike_id>")
@require_operator
def delete_bike_route(bike_id: int):
    try:
        bike_service.delete_bike(bike_id)
        current_app.logger.info("Bike %s deleted", bike_id)
        return jsonify({"deleted": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to delete bike")
        return jsonify({"error": "Internal server error"}), 500
