# Overview: Service-layer operations for the admin back-office; dashboard, user management and wallets.

"""
Admin Service

DASHBOARD:
Aggregates over orders, returns, products and users, cached for
CACHE_TTL_DASHBOARD under dashboard:stats. Order, payment, return and product
writes invalidate it.

USERS:
Admins edit accounts through USER_ADMIN_POLICY. Deactivating a user or
changing their role revokes all of their sessions so the new permissions
apply immediately. Store credit changes only through adjust_wallet.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db, cache
from ..cache import DASHBOARD_KEY
from ..errors import NotFoundError, ValidationError
from ..models import Order, Product, ReturnRequest, User
from ..models.auth import ROLE_ADMIN, ROLE_CUSTOMER, VALID_ROLES
from ..validation import USER_ADMIN_POLICY, coerce_int, enforce_rules_user, validate_payload
from .order_service import ORDER_STATUSES, PAYMENT_STATUS_PAID
from .return_service import RETURN_STATUS_REQUESTED
from . import session_service


# =============================================================================
# DASHBOARD
# =============================================================================

def _dashboard_stats() -> dict:
    counts = dict(
        db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    orders_by_status = {status: counts.get(status, 0) for status in ORDER_STATUSES}

    revenue = db.session.query(func.coalesce(func.sum(Order.total_price), 0)).filter(
        Order.payment_status == PAYMENT_STATUS_PAID
    ).scalar()

    pending_returns = db.session.query(func.count(ReturnRequest.id)).filter(
        ReturnRequest.status == RETURN_STATUS_REQUESTED
    ).scalar()

    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    low_stock = (
        db.session.query(Product)
        .filter(Product.available.is_(True), Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )

    customers = db.session.query(func.count(User.id)).filter(User.role == ROLE_CUSTOMER).scalar()

    return {
        "orders_total": sum(orders_by_status.values()),
        "orders_by_status": orders_by_status,
        "paid_revenue": int(revenue or 0),
        "pending_return_requests": pending_returns or 0,
        "low_stock_threshold": threshold,
        "low_stock_products": [
            {"id": p.id, "name": p.name, "stock": p.stock} for p in low_stock
        ],
        "customer_count": customers or 0,
    }


def get_dashboard_stats() -> dict:
    return cache.get_or_set(DASHBOARD_KEY, _dashboard_stats, current_app.config["CACHE_TTL_DASHBOARD"])


# =============================================================================
# USERS
# =============================================================================

def list_users(role: str | None = None, active_only: bool = False) -> list[User]:
    query = db.session.query(User)
    if role:
        if role not in VALID_ROLES:
            raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}")
        query = query.filter(User.role == role)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.id.asc()).all()


def update_user(user_id: int, payload: dict, acting_user: User) -> User:
    """
    Admin edit of a user account.

    Raises:
        ValidationError: field not writable, bad value, or an admin demoting
            or deactivating their own account
        NotFoundError: user missing
    """
    patch = validate_payload(model=User, payload=payload, policy=USER_ADMIN_POLICY, partial=True)
    enforce_rules_user(patch)

    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    if user.id == acting_user.id:
        if patch.get("is_active") is False:
            raise ValidationError("You cannot deactivate your own account")
        if "role" in patch and patch["role"] != ROLE_ADMIN:
            raise ValidationError("You cannot remove your own admin role")

    revoke = (
        ("role" in patch and patch["role"] != user.role)
        or (patch.get("is_active") is False and user.is_active)
    )

    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()

    if revoke:
        revoked = session_service.revoke_all_user_sessions(user.id)
        current_app.logger.info("Revoked %s sessions of user %s after account change", revoked, user.id)

    current_app.logger.info("User %s updated by admin %s: %s", user.id, acting_user.id, ", ".join(sorted(patch)))
    return user


def adjust_wallet(user_id: int, amount, acting_user: User) -> User:
    """
    Add (positive) or remove (negative) store credit.

    Raises:
        ValidationError: amount not a non-zero integer, or the balance would go negative
        NotFoundError: user missing
    """
    amount = coerce_int(amount, "amount")
    if amount == 0:
        raise ValidationError("amount cannot be zero")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    if user.balance + amount < 0:
        raise ValidationError(f"Balance cannot go below zero (current balance {user.balance})")

    user.balance += amount
    db.session.commit()

    current_app.logger.info(
        "Wallet of user %s adjusted by %s (new balance %s) by admin %s",
        user.id, amount, user.balance, acting_user.id,
    )
    return user
