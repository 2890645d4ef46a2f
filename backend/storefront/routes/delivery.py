# Overview: Flask API routes for delivery operations; parses input and returns JSON responses.

# backend/storefront/routes/delivery.py
"""
Delivery API Routes

- Ready-for-delivery listing and planned routes for a date (ADMIN, WORKER)
- Orders out for delivery (WORKER, ADMIN)
- Delivery confirmation by the worker
- Delivery zone estimate for the current customer

A WORKER sees only their own route; ADMIN may ask for any worker's.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..models.auth import ROLE_ADMIN, ROLE_WORKER
from ..services import delivery_service, order_service
from ..decorators import require_auth, require_role
from ..time_utils import parse_iso_date, utcnow
from ..validation import coerce_int


delivery_bp = Blueprint("delivery", __name__, url_prefix="/api/delivery")


def _date_arg():
    """?date=YYYY-MM-DD, defaulting to today (UTC). Raises ValueError when malformed."""
    raw = request.args.get("date")
    if not raw:
        return utcnow().date()
    day = parse_iso_date(raw)
    if day is None:
        raise ValueError(raw)
    return day


@delivery_bp.get("/ready")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WORKER)
def ready_for_delivery_route():
    """Orders ready for delivery on ?date, oldest first, with destination and items."""
    try:
        day = _date_arg()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    try:
        orders = delivery_service.list_ready_for_delivery(day)
        return jsonify({"date": day.isoformat(), "orders": orders, "count": len(orders)}), 200

    except Exception:
        current_app.logger.exception("Failed to list orders ready for delivery")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.get("/routes")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WORKER)
def routes_route():
    """
    Planned delivery routes for ?date.

    Query params:
    - date: YYYY-MM-DD (optional, default today)
    - worker_id: int (optional; a WORKER always gets their own route)

    Returns:
        200: {"routes": [...]} or {"route": {...} | null} when a worker is selected
    """
    try:
        day = _date_arg()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    raw_worker_id = request.args.get("worker_id")
    try:
        worker_id = coerce_int(raw_worker_id, "worker_id") if raw_worker_id else None
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code

    user = g.current_user
    if user.role == ROLE_WORKER:
        if worker_id is not None and worker_id != user.id:
            return jsonify({"error": "Workers can only view their own route"}), 403
        worker_id = user.id

    try:
        if worker_id is None:
            routes = delivery_service.get_routes(day)
            return jsonify({
                "date": day.isoformat(),
                "routes": [r.to_dict() for r in routes],
                "count": len(routes),
            }), 200

        route = delivery_service.get_routes(day, worker_id=worker_id)
        return jsonify({
            "date": day.isoformat(),
            "worker_id": worker_id,
            "route": route.to_dict() if route else None,
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to plan delivery routes")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.get("/worker-orders")
@require_auth
@require_role(ROLE_WORKER, ROLE_ADMIN)
def worker_orders_route():
    """Orders out for delivery (SHIPPED), earliest delivery date first."""
    try:
        orders = delivery_service.list_worker_orders()
        return jsonify({"orders": orders, "count": len(orders)}), 200

    except Exception:
        current_app.logger.exception("Failed to list worker orders")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.post("/orders/<int:order_id>/delivered")
@require_auth
@require_role(ROLE_WORKER, ROLE_ADMIN)
def mark_delivered_route(order_id: int):
    try:
        order = order_service.mark_delivered(order_id, g.current_user)
        return jsonify({"order": order.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark order delivered")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.get("/estimate")
@require_auth
def delivery_estimate_route():
    """Delivery zone, fee and earliest date for the current user's shop location."""
    try:
        return jsonify(delivery_service.delivery_estimate_for(g.current_user)), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to estimate delivery")
        return jsonify({"error": "Internal server error"}), 500
