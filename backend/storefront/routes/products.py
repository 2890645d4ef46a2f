# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Product catalogue routes.

Reads are public and served through the read cache.
Writes require ADMIN and invalidate the product-derived cache keys.
"""
from flask import Blueprint, request, current_app

from ..errors import RateLimitedError, ServiceError
from ..validation import json_object
from ..models.auth import ROLE_ADMIN
from ..services import products_service, throttle_service
from ..decorators import require_auth, require_role

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List available products, or search them when q is given.

    Query params:
    - page: int (optional, default 1)
    - per_page: int (optional, default 20, max 100)
    - category_id: int (optional) - ignored when searching
    - q: str (optional) - name/description search term, rate limited per client (429)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    category_id = request.args.get("category_id", type=int)
    term = (request.args.get("q") or "").strip()

    try:
        if term:
            throttle_service.check_search_rate_limit(request.remote_addr or "unknown")
            return products_service.search_products(term, page=page, per_page=per_page)
        return products_service.list_products(page=page, per_page=per_page, category_id=category_id)
    except RateLimitedError as e:
        return e.to_dict(), e.status_code, {"Retry-After": str(e.payload["retry_after"])}
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return {"error": "Internal server error"}, 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id)
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product")
        return {"error": "Internal server error"}, 500


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    """
    Create a product. Requires: ADMIN

    Writable fields: name, description, category_id, price,
    discount_percentage, stock, available, image_url (name and price required).
    """
    try:
        payload = json_object(request.get_json(silent=True))
        product = products_service.create_product(payload)
        return product.to_dict(), 201
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    """Partial update. Requires: ADMIN"""
    try:
        payload = json_object(request.get_json(silent=True))
        product = products_service.update_product(product_id, payload)
        return product.to_dict()
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    """
    Delete a product. Requires: ADMIN

    Past order lines keep their snapshot; carts see the product as REMOVED.
    """
    try:
        products_service.delete_product(product_id)
        return {"deleted": True, "product_id": product_id}
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500


@products_bp.post("/bulk-update-price")
@require_auth
@require_role(ROLE_ADMIN)
def bulk_update_price_route():
    """
    Change base prices by a percentage. Requires: ADMIN

    Request body:
    {
        "percent": 10,            // -99..1000, non-zero
        "category_id": 3          // or "product_ids": [1, 2, 3]
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        if data.get("percent") is None:
            return {"error": "percent is required"}, 400

        return products_service.bulk_update_price(
            data["percent"],
            category_id=data.get("category_id"),
            product_ids=data.get("product_ids"),
        )
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk update prices")
        return {"error": "Internal server error"}, 500


@products_bp.post("/bulk-delete")
@require_auth
@require_role(ROLE_ADMIN)
def bulk_delete_route():
    """
    Delete products matching every given filter. Requires: ADMIN

    Request body (at least one filter):
    {
        "product_ids": [1, 2, 3],   // optional
        "category_id": 3,           // optional
        "available": false          // optional
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        return products_service.bulk_delete_products(
            product_ids=data.get("product_ids"),
            category_id=data.get("category_id"),
            available=data.get("available"),
        )
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk delete products")
        return {"error": "Internal server error"}, 500
