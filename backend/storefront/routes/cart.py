# Overview: Flask API routes for cart reconciliation; parses input and returns JSON responses.

"""
Cart Reconciliation API

Carts are held by the client. The client posts its lines (with the price
snapshot from when each was added) and receives the drift against the live
catalogue. Nothing is written.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..validation import json_object
from ..services import cart_service


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.post("/validate")
def validate_cart_route():
    """
    Reconcile a client cart against live products.

    Request body:
    {
        "items": [
            {"productId": 1, "quantity": 5, "price": 1000, "discountPercentage": 0}
        ]
    }

    Returns:
        200: {"valid": bool, "changes": [...]}
        400: Malformed items
    """
    try:
        data = json_object(request.get_json(silent=True))
        lines = cart_service.parse_cart_lines(data.get("items"))
        result = cart_service.reconcile_cart(lines)
        return jsonify(result.to_dict()), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to validate cart")
        return jsonify({"error": "Internal server error"}), 500
