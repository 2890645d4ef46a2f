# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/storefront/routes/returns.py
"""
Return Request API Routes

WHY: Customers report wrong or damaged goods against a delivered order;
an admin approves or rejects.

DESIGN:
- One return request per order (second attempt is 409, first untouched)
- Items reference order lines with a quantity up to the ordered quantity
- Decision is terminal

SECURITY:
- Create: order owner
- List: ADMIN or WORKER
- Decide: ADMIN
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..validation import json_object
from ..models.auth import ROLE_ADMIN, ROLE_WORKER
from ..services import return_service
from ..decorators import require_auth, require_role


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
def create_return_route():
    """
    Create a return request (status: REQUESTED).

    Request body:
    {
        "order_id": 123,
        "reason": "Two bottles arrived broken",
        "items": [{"orderItemId": 456, "quantity": 2}]
    }

    Returns:
        201: Return request created
        400: Invalid items
        403: Not the order owner
        404: Order not found
        409: Order already has a return request
    """
    try:
        data = json_object(request.get_json(silent=True))

        order_id = data.get("order_id")
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            return jsonify({"error": "order_id (integer) is required"}), 400

        return_request = return_service.create_return_request(
            order_id,
            g.current_user,
            data.get("reason"),
            data.get("items"),
        )
        return jsonify({"return_request": return_request.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return request")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WORKER)
def list_returns_route():
    """
    List return requests with their order and customer destination.

    Query params:
    - status: REQUESTED | APPROVED | REJECTED (optional)
    """
    try:
        status = request.args.get("status")
        returns = return_service.list_return_requests(status=status)
        return jsonify({
            "return_requests": [r.to_dict(include_order=True) for r in returns],
            "count": len(returns),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list return requests")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.patch("/<int:return_id>/status")
@require_auth
def set_return_status_route(return_id: int):
    """
    Approve or reject a return request. Requires: ADMIN

    Request body: {"status": "APPROVED" | "REJECTED"}
    """
    try:
        data = json_object(request.get_json(silent=True))
        return_request = return_service.set_return_status(
            return_id,
            data.get("status"),
            g.current_user,
        )
        return jsonify({"return_request": return_request.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update return request")
        return jsonify({"error": "Internal server error"}), 500
