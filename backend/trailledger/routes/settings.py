# Overview: Flask API routes for park timing settings.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_operator
from ..services import settings_service
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/park")
def get_park_settings():
    config = settings_service.get_park_config()
    return jsonify({"park": config.to_dict()}), 200


@settings_bp.put("/park")
@require_operator
def update_park_settings():
    """
    Update park timing (minutes). Omitted fields keep their current value.

    Request body:
    {
        "buffer_minutes": 5,
        "rental_duration_minutes": 120,
        "grace_minutes": 10,
        "warn_before_end_minutes": 15
    }
    """
    data = request.get_json(silent=True)
    try:
        config = settings_service.set_park_config(data, updated_by=g.operator_id)
        current_app.logger.info("Park settings updated by %s: %s", g.operator_id, config.to_dict())
        return jsonify({"park": config.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update park settings")
        return jsonify({"error": "Internal server error"}), 500
