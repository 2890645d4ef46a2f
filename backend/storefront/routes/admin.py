# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/storefront/routes/admin.py
"""
Admin back-office routes.

Provides endpoints for:
- Dashboard statistics (cached)
- Order listing across customers
- User management (list, create, update, wallet credit)

All endpoints require ADMIN, except the order listing which WORKER may also read.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ServiceError
from ..validation import json_object
from ..models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_WORKER
from ..services import admin_service, auth_service, order_service
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# DASHBOARD
# =============================================================================

@admin_bp.get("/dashboard")
@require_auth
@require_role(ROLE_ADMIN)
def dashboard_route():
    try:
        return jsonify(admin_service.get_dashboard_stats()), 200
    except Exception:
        current_app.logger.exception("Failed to load dashboard")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/orders")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WORKER)
def list_orders_route():
    """
    All orders, newest first.

    Query params:
    - status: order status filter (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        result = order_service.list_orders(
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    """
    Query params:
    - role: CUSTOMER | WORKER | ADMIN (optional)
    - include_inactive: bool (default false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    try:
        users = admin_service.list_users(
            role=request.args.get("role"),
            active_only=not include_inactive,
        )
        return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Create an account.

    Request body:
    {
        "username": "shop42",
        "password": "Str0ng!pass",
        "role": "CUSTOMER",             (optional, default CUSTOMER)
        "phone": "09120000000",         (optional)
        "name", "shop_name", "shop_address", "latitude", "longitude"  (optional)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        username = data.get("username")
        password = data.get("password")
        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        profile = {
            key: data[key]
            for key in ("name", "shop_name", "shop_address", "latitude", "longitude")
            if data.get(key) is not None
        }
        user = auth_service.create_user(
            username,
            password,
            role=data.get("role", ROLE_CUSTOMER),
            phone=data.get("phone"),
            **profile,
        )
        current_app.logger.info("User %s (%s) created by admin %s", user.id, user.role, g.current_user.id)
        return jsonify({"user": user.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    """
    Writable fields: role, is_active, name, shop_name, shop_address,
    latitude, longitude. Role change or deactivation revokes the user's sessions.
    """
    try:
        payload = json_object(request.get_json(silent=True))
        user = admin_service.update_user(user_id, payload, g.current_user)
        return jsonify({"user": user.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/wallet")
@require_auth
@require_role(ROLE_ADMIN)
def adjust_wallet_route(user_id: int):
    """Request body: {"amount": 50000} (negative to deduct)"""
    try:
        data = json_object(request.get_json(silent=True))
        if data.get("amount") is None:
            return jsonify({"error": "amount is required"}), 400

        user = admin_service.adjust_wallet(user_id, data["amount"], g.current_user)
        return jsonify({"user": user.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust wallet")
        return jsonify({"error": "Internal server error"}), 500
