# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/storefront/routes/payments.py
"""
Payment API Routes

FLOW:
1. POST /request  (owner)  -> {authority, redirect_url, amount}
2. Customer pays on the gateway page
3. POST /verify   (gateway callback relayed by the client; auth optional)

When the verify call carries a token, the caller must own the order.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..validation import json_object
from ..services import payment_service
from ..decorators import require_auth, optional_auth


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/request")
@require_auth
def request_payment_route():
    """
    Start a gateway payment for an order's amount due.

    Request body: {"order_id": 123}

    Returns:
        200: {"authority", "redirect_url", "amount"}
        403: Not the owner
        404: Order not found
        409: Already paid (order unchanged)
        502: Gateway unavailable
    """
    try:
        data = json_object(request.get_json(silent=True))
        order_id = data.get("order_id")
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            return jsonify({"error": "order_id (integer) is required"}), 400

        result = payment_service.request_payment(order_id, g.current_user)
        return jsonify(result), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/verify")
@optional_auth
def verify_payment_route():
    """
    Verify a payment after the gateway redirect.

    Request body: {"authority": "A000...", "status": "OK" | "NOK"}

    Returns:
        200: {"success": true, ...} or {"success": false, "can_retry": true}
        404: Unknown authority
        502: Verification failed
    """
    try:
        data = json_object(request.get_json(silent=True))
        result = payment_service.verify_payment(
            data.get("authority"),
            data.get("status"),
            user=g.current_user,
        )
        return jsonify(result), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify payment")
        return jsonify({"error": "Internal server error"}), 500
