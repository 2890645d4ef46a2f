# Overview: Service-layer operations for the product catalogue; cached reads and admin writes.

"""
Products Service

READS are read-through cached (see storefront.cache):
- list:   products:list:<page>:<per_page>:<category>   CACHE_TTL_PRODUCTS
- search: search:<term>:<page>:<per_page>              CACHE_TTL_SEARCH
- detail: product:<id>                                 CACHE_TTL_PRODUCTS

WRITES commit first, then invalidate every product-derived key. Deleting a
product is a hard delete: historical order lines keep their name and price
snapshot with product_id set to NULL, and client carts holding the product
see it as REMOVED on the next reconciliation.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db, cache
from ..cache import PRODUCT_PATTERNS, product_detail_key, products_list_key, search_key
from ..errors import NotFoundError, ValidationError
from ..models import Category, OrderItem, Product
from ..pricing import apply_percentage_change
from ..time_utils import utcnow
from ..validation import PRODUCT_POLICY, coerce_int, enforce_rules_product, validate_payload


DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

# Bulk price change bounds, in percent
MIN_PRICE_CHANGE = -99
MAX_PRICE_CHANGE = 1000


def _page_args(page, per_page) -> tuple[int, int]:
    page = max(page or 1, 1)
    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    return page, max(per_page, 1)


def _paginate(query, page: int, per_page: int) -> dict:
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


# =============================================================================
# PUBLIC READS
# =============================================================================

def list_products(
    page: int | None = None,
    per_page: int | None = None,
    category_id: int | None = None,
) -> dict:
    """Available products, newest first. Cached per page and category."""
    page, per_page = _page_args(page, per_page)

    def fetch() -> dict:
        query = db.session.query(Product).filter(Product.available.is_(True))
        if category_id is not None:
            query = query.filter(Product.category_id == category_id)
        query = query.order_by(Product.created_at.desc(), Product.id.desc())
        return _paginate(query, page, per_page)

    return cache.get_or_set(
        products_list_key(page, per_page, category_id),
        fetch,
        current_app.config["CACHE_TTL_PRODUCTS"],
    )


def search_products(term: str, page: int | None = None, per_page: int | None = None) -> dict:
    """Case-insensitive match on name or description among available products."""
    term = (term or "").strip()
    if not term:
        raise ValidationError("Search term is required")
    page, per_page = _page_args(page, per_page)

    def fetch() -> dict:
        pattern = f"%{term}%"
        query = (
            db.session.query(Product)
            .filter(Product.available.is_(True))
            .filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
            .order_by(Product.name.asc(), Product.id.asc())
        )
        return _paginate(query, page, per_page)

    return cache.get_or_set(
        search_key(term, page, per_page),
        fetch,
        current_app.config["CACHE_TTL_SEARCH"],
    )


def get_product(product_id: int) -> dict:
    """
    Product detail, including unavailable products.

    Raises:
        NotFoundError: product missing (misses are not cached)
    """
    key = product_detail_key(product_id)

    def fetch() -> dict | None:
        product = db.session.get(Product, product_id)
        return product.to_dict() if product else None

    data = cache.get_or_set(key, fetch, current_app.config["CACHE_TTL_PRODUCTS"])
    if data is None:
        cache.invalidate(key)
        raise NotFoundError(f"Product {product_id} not found")
    return data


# =============================================================================
# ADMIN WRITES
# =============================================================================

def _require_category(category_id: int | None) -> None:
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError(f"Category {category_id} does not exist")


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _require_category(patch.get("category_id"))

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    cache.invalidate(*PRODUCT_PATTERNS)

    current_app.logger.info("Product %s created: %s", product.id, product.name)
    return product


def update_product(product_id: int, payload: dict) -> Product:
    """
    Partial update through the product allow-list.

    Raises:
        ValidationError: field not writable, wrong type or out of range
        NotFoundError: product missing
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    if "category_id" in patch:
        _require_category(patch["category_id"])

    for key, value in patch.items():
        setattr(product, key, value)
    product.updated_at = utcnow()

    db.session.commit()
    cache.invalidate(*PRODUCT_PATTERNS)

    current_app.logger.info("Product %s updated: %s", product.id, ", ".join(sorted(patch)))
    return product


def delete_product(product_id: int) -> None:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    # SQLite does not enforce ON DELETE SET NULL without the foreign_keys pragma
    db.session.query(OrderItem).filter(OrderItem.product_id == product_id).update(
        {OrderItem.product_id: None}, synchronize_session=False
    )
    db.session.delete(product)
    db.session.commit()
    cache.invalidate(*PRODUCT_PATTERNS)

    current_app.logger.info("Product %s deleted", product_id)


def bulk_delete_products(
    product_ids: list | None = None,
    category_id=None,
    available=None,
) -> dict:
    """
    Delete every product matching all the given filters.

    At least one filter is required so an empty body never wipes the catalogue.
    Order lines keep their snapshot, as with delete_product.

    Returns:
        {"deleted": <count>, "product_ids": [...]}
    """
    if product_ids is None and category_id is None and available is None:
        raise ValidationError("Provide at least one of product_ids, category_id or available")

    query = db.session.query(Product)
    if product_ids is not None:
        if not isinstance(product_ids, list) or not product_ids:
            raise ValidationError("product_ids must be a non-empty list")
        ids = {coerce_int(pid, "product_ids") for pid in product_ids}
        query = query.filter(Product.id.in_(ids))
    if category_id is not None:
        category_id = coerce_int(category_id, "category_id")
        _require_category(category_id)
        query = query.filter(Product.category_id == category_id)
    if available is not None:
        if not isinstance(available, bool):
            raise ValidationError("available must be true or false")
        query = query.filter(Product.available.is_(available))

    products = query.order_by(Product.id.asc()).all()
    deleted_ids = [p.id for p in products]
    if deleted_ids:
        db.session.query(OrderItem).filter(OrderItem.product_id.in_(deleted_ids)).update(
            {OrderItem.product_id: None}, synchronize_session=False
        )
        for product in products:
            db.session.delete(product)
    db.session.commit()
    cache.invalidate(*PRODUCT_PATTERNS)

    current_app.logger.info("Bulk delete removed %s products", len(deleted_ids))
    return {"deleted": len(deleted_ids), "product_ids": deleted_ids}


def bulk_update_price(
    percent,
    category_id: int | None = None,
    product_ids: list | None = None,
) -> dict:
    """
    Raise or lower base prices by a whole percentage.

    Exactly one scope: a category or an explicit list of product ids.
    Discounts are left as they are. Prices never go below zero.

    Returns:
        {"updated": <count>, "product_ids": [...]}
    """
    percent = coerce_int(percent, "percent")
    if not MIN_PRICE_CHANGE <= percent <= MAX_PRICE_CHANGE:
        raise ValidationError(f"percent must be between {MIN_PRICE_CHANGE} and {MAX_PRICE_CHANGE}")
    if percent == 0:
        raise ValidationError("percent cannot be zero")

    if (category_id is None) == (product_ids is None):
        raise ValidationError("Provide exactly one of category_id or product_ids")

    query = db.session.query(Product)
    if category_id is not None:
        category_id = coerce_int(category_id, "category_id")
        _require_category(category_id)
        query = query.filter(Product.category_id == category_id)
    else:
        if not isinstance(product_ids, list) or not product_ids:
            raise ValidationError("product_ids must be a non-empty list")
        ids = {coerce_int(pid, "product_ids") for pid in product_ids}
        query = query.filter(Product.id.in_(ids))

    now = utcnow()
    products = query.order_by(Product.id.asc()).all()
    for product in products:
        product.price = apply_percentage_change(product.price, percent)
        product.updated_at = now

    db.session.commit()
    cache.invalidate(*PRODUCT_PATTERNS)

    current_app.logger.info("Bulk price change %s%% applied to %s products", percent, len(products))
    return {"updated": len(products), "product_ids": [p.id for p in products]}
