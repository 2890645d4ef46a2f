# Overview: Service-layer operations for product categories.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db, cache
from ..cache import CATEGORIES_KEY, CATEGORY_PATTERNS
from ..errors import ConflictError, NotFoundError
from ..models import Category, Product
from ..validation import CATEGORY_POLICY, validate_payload


def list_categories() -> list[dict]:
    """All categories by name with their product counts. Cached under categories:all."""

    def fetch() -> list[dict]:
        rows = (
            db.session.query(Category, func.count(Product.id))
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.name.asc())
            .all()
        )
        return [category.to_dict(product_count=count) for category, count in rows]

    return cache.get_or_set(CATEGORIES_KEY, fetch, current_app.config["CACHE_TTL_CATEGORIES"])


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError(f"Category '{name}' already exists")


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    _ensure_unique_name(patch["name"])

    category = Category(**patch)
    db.session.add(category)
    db.session.commit()
    cache.invalidate(*CATEGORY_PATTERNS)

    current_app.logger.info("Category %s created: %s", category.id, category.name)
    return category


def update_category(category_id: int, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)

    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")

    if "name" in patch:
        _ensure_unique_name(patch["name"], exclude_id=category.id)
        category.name = patch["name"]

    db.session.commit()
    cache.invalidate(*CATEGORY_PATTERNS)
    return category


def delete_category(category_id: int) -> None:
    """
    Delete an empty category.

    Raises:
        NotFoundError: category missing
        ConflictError: products still reference it
    """
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")

    in_use = db.session.query(Product.id).filter(Product.category_id == category_id).count()
    if in_use:
        raise ConflictError(
            f"Category {category_id} still has {in_use} products",
            payload={"product_count": in_use},
        )

    db.session.delete(category)
    db.session.commit()
    cache.invalidate(*CATEGORY_PATTERNS)

    current_app.logger.info("Category %s deleted", category_id)
