# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/storefront/routes/orders.py
"""
Order API Routes

LIFECYCLE:
    PENDING -> CONFIRMED -> SHIPPED -> DELIVERED, CANCELLED from any non-terminal state

SECURITY:
- Checkout: CUSTOMER
- Read: owner, WORKER or ADMIN
- Status change: ADMIN (enforced in order_service, 403 otherwise)
- Cancel: owner, while PENDING and UNPAID
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..validation import json_object
from ..models.auth import ROLE_CUSTOMER
from ..services import order_service, return_service
from ..decorators import require_auth, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# CHECKOUT
# =============================================================================

@orders_bp.post("")
@require_auth
@require_role(ROLE_CUSTOMER)
def create_order_route():
    """
    Create an order from the client cart (status: PENDING, UNPAID).

    Request body:
    {
        "items": [{"productId": 1, "quantity": 2, "price": 1000, "discountPercentage": 0}],
        "delivery_date": "2026-01-15",
        "notes": "Back door",          (optional)
        "use_credit": true             (optional, default: false)
    }

    Returns:
        201: Order created
        400: Invalid input
        409: Cart out of date; body carries {"valid": false, "changes": [...]}
    """
    try:
        data = json_object(request.get_json(silent=True))

        use_credit = data.get("use_credit", False)
        if not isinstance(use_credit, bool):
            return jsonify({"error": "use_credit must be true or false"}), 400

        order = order_service.create_order(
            g.current_user,
            data.get("items"),
            data.get("delivery_date"),
            notes=data.get("notes"),
            use_credit=use_credit,
        )
        return jsonify({"order": order.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("")
@require_auth
def list_my_orders_route():
    """Orders of the current user, newest first."""
    try:
        orders = order_service.list_orders_for_user(g.current_user.id)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200

    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user)
        data = order.to_dict()
        data["return_request"] = order.return_request.to_dict() if order.return_request else None
        return jsonify({"order": data}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/return")
@require_auth
def get_order_return_route(order_id: int):
    """The order's return request, or null when none was filed."""
    try:
        return_request = return_service.get_return_request_for_order(order_id, g.current_user)
        return jsonify({
            "return_request": return_request.to_dict() if return_request else None,
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get order return request")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# TRANSITIONS
# =============================================================================

@orders_bp.patch("/<int:order_id>/status")
@require_auth
def set_order_status_route(order_id: int):
    """
    Change order status. Requires: ADMIN

    Request body: {"status": "CONFIRMED"}

    Returns:
        200: Updated order
        400: Unknown status or transition not allowed
        403: Not an admin (order unchanged)
        404: Order not found
    """
    try:
        data = json_object(request.get_json(silent=True))
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status is required"}), 400

        order = order_service.set_status(order_id, new_status, g.current_user)
        return jsonify({"order": order.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    try:
        order = order_service.cancel_order(order_id, g.current_user)
        return jsonify({"order": order.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500
