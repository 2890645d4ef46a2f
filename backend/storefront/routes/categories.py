# Overview: Flask API routes for category operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..validation import json_object
from ..models.auth import ROLE_ADMIN
from ..services import category_service
from ..decorators import require_auth, require_role

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    try:
        categories = category_service.list_categories()
        return jsonify({"categories": categories, "count": len(categories)})
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_category_route():
    try:
        payload = json_object(request.get_json(silent=True))
        category = category_service.create_category(payload)
        return jsonify(category.to_dict()), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_category_route(category_id: int):
    try:
        payload = json_object(request.get_json(silent=True))
        category = category_service.update_category(category_id, payload)
        return jsonify(category.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_category_route(category_id: int):
    """Only empty categories can be deleted (409 otherwise)."""
    try:
        category_service.delete_category(category_id)
        return jsonify({"deleted": True, "category_id": category_id})
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
