# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


OPERATOR_ID_HEADER = "X-Operator-Id"
OPERATOR_LABEL_HEADER = "X-Operator-Label"


def require_operator(f):
    """
    Require operator identity from the upstream auth layer.

    Sets the following Flask g attributes:
    - g.operator_id: stable staff identifier - REQUIRED
    - g.operator_label: display name or email (may be None)

    Returns 401 if the X-Operator-Id header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        operator_id = (request.headers.get(OPERATOR_ID_HEADER) or "").strip()
        if not operator_id:
            return jsonify({"error": "Operator identity required"}), 401

        g.operator_id = operator_id
        g.operator_label = (request.headers.get(OPERATOR_LABEL_HEADER) or "").strip() or None

        return f(*args, **kwargs)

    return decorated_function
