# Overview: Service-layer operations for orders; checkout and the role-gated status lifecycle.

"""
Order Lifecycle Service

LIFECYCLE:
    PENDING -> CONFIRMED -> SHIPPED -> DELIVERED
    CANCELLED is reachable from any non-terminal state.

Only the transitions listed in ALLOWED_TRANSITIONS are accepted; anything
else is a ValidationError. Who may move an order:
- set_status: ADMIN only, any allowed transition
- cancel_order: the owning customer, PENDING and UNPAID orders only
- mark_delivered: WORKER or ADMIN, SHIPPED -> DELIVERED

Each operation is a single commit on one order; on error nothing is written.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db, cache
from ..cache import ORDER_PATTERNS
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Order, OrderItem, User
from ..models.auth import ROLE_ADMIN, ROLE_WORKER
from ..time_utils import utcnow, parse_iso_datetime
from .cart_service import parse_cart_lines, reconcile_cart, load_products


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

ORDER_STATUS_PENDING = "PENDING"
ORDER_STATUS_CONFIRMED = "CONFIRMED"
ORDER_STATUS_SHIPPED = "SHIPPED"
ORDER_STATUS_DELIVERED = "DELIVERED"
ORDER_STATUS_CANCELLED = "CANCELLED"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ORDER_STATUS_PENDING: frozenset({ORDER_STATUS_CONFIRMED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_CONFIRMED: frozenset({ORDER_STATUS_SHIPPED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_SHIPPED: frozenset({ORDER_STATUS_DELIVERED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_DELIVERED: frozenset(),
    ORDER_STATUS_CANCELLED: frozenset(),
}

# Left confirmation, waiting for dispatch
READY_FOR_DELIVERY_STATUS = ORDER_STATUS_CONFIRMED

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PAID = "PAID"


def validate_transition(current: str, new: str) -> None:
    if new not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        allowed = sorted(ALLOWED_TRANSITIONS.get(current, frozenset()))
        raise ValidationError(
            f"Cannot move order from {current} to {new}. "
            f"Allowed: {', '.join(allowed) if allowed else 'none (terminal status)'}"
        )


def _get_order_or_404(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def reserved_credit(user_id: int) -> int:
    """
    Store credit held by the user's open unpaid orders.

    Partial-credit orders keep their credit on the balance until the gateway
    payment is verified, so it must not be offered to another checkout.
    """
    query = db.session.query(db.func.coalesce(db.func.sum(Order.credit_used), 0)).filter(
        Order.user_id == user_id,
        Order.payment_status == PAYMENT_STATUS_UNPAID,
        Order.status != ORDER_STATUS_CANCELLED,
        Order.credit_used > 0,
    )
    return int(query.scalar())


def _apply_status(order: Order, new_status: str, actor: User) -> Order:
    previous = order.status
    order.status = new_status
    order.updated_at = utcnow()
    db.session.commit()
    cache.invalidate(*ORDER_PATTERNS)
    current_app.logger.info(
        "Order %s status %s -> %s by user %s (%s)",
        order.id, previous, new_status, actor.id, actor.role,
    )
    return order


# =============================================================================
# CHECKOUT
# =============================================================================

def create_order(
    user: User,
    items,
    delivery_date: str | None,
    notes: str | None = None,
    use_credit: bool = False,
) -> Order:
    """
    Turn a client cart into an order.

    WHY reconcile first: the client's snapshot may be stale. A stale cart is
    rejected with the same change-set the reconciliation endpoint returns, so
    the client can apply it and resubmit.

    Line prices come from the live product (final price after discount).
    Store credit: credit_used = min(available credit, total) when use_credit,
    where available credit is the balance less the credit already held by the
    user's other unpaid orders. An order fully covered by credit deducts the
    balance now and starts PAID.

    Raises:
        ValidationError: Empty/malformed cart, duplicate lines, bad delivery date
        ConflictError: Cart drifted from live products (payload carries changes)
    """
    lines = parse_cart_lines(items)
    if not lines:
        raise ValidationError("Cart is empty")

    product_ids = [line.product_id for line in lines]
    if len(set(product_ids)) != len(product_ids):
        raise ValidationError("Each product may appear only once in the cart")

    if not delivery_date:
        raise ValidationError("delivery_date is required")
    if not isinstance(delivery_date, str):
        raise ValidationError("delivery_date must be an ISO-8601 date")
    try:
        delivery_at = parse_iso_datetime(delivery_date)
    except ValueError:
        raise ValidationError("delivery_date must be an ISO-8601 date")
    if delivery_at is None:
        raise ValidationError("delivery_date is required")
    if delivery_at.date() < utcnow().date():
        raise ValidationError("delivery_date cannot be in the past")

    reconciliation = reconcile_cart(lines)
    if not reconciliation.valid:
        raise ConflictError("Cart is out of date", payload=reconciliation.to_dict())

    products = load_products(product_ids)
    order_items = []
    total = 0
    for line in lines:
        product = products[line.product_id]
        unit_price = product.final_price
        total += unit_price * line.quantity
        order_items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=line.quantity,
            price=unit_price,
        ))

    available_credit = user.balance - reserved_credit(user.id)
    credit_used = min(available_credit, total) if use_credit and available_credit > 0 else 0
    amount_due = total - credit_used

    order = Order(
        user_id=user.id,
        status=ORDER_STATUS_PENDING,
        payment_status=PAYMENT_STATUS_UNPAID,
        total_price=total,
        credit_used=credit_used,
        amount_due=amount_due,
        delivery_date=delivery_at,
        notes=notes,
        items=order_items,
    )

    if credit_used and amount_due == 0:
        user.balance -= credit_used
        order.payment_status = PAYMENT_STATUS_PAID
        order.payment_method = "credit"
        order.paid_at = utcnow()

    db.session.add(order)
    db.session.commit()
    cache.invalidate(*ORDER_PATTERNS)

    current_app.logger.info(
        "Order %s created for user %s: total=%s credit=%s due=%s",
        order.id, user.id, total, credit_used, amount_due,
    )
    return order


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int, user: User) -> Order:
    """Owner, WORKER or ADMIN may read an order."""
    order = _get_order_or_404(order_id)
    if user.role not in (ROLE_ADMIN, ROLE_WORKER) and order.user_id != user.id:
        raise ForbiddenError("Order does not belong to you")
    return order


def list_orders_for_user(user_id: int) -> list[Order]:
    return db.session.query(Order).filter_by(
        user_id=user_id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_orders(
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Back-office listing with optional status filter and pagination."""
    query = db.session.query(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        query = query.filter(Order.status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    if page is None:
        orders = query.all()
        return {"items": [o.to_dict() for o in orders], "count": len(orders)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    orders = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [o.to_dict() for o in orders],
        "count": len(orders),
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
# TRANSITIONS
# =============================================================================

def set_status(order_id: int, new_status: str, acting_user: User) -> Order:
    """
    Admin status change.

    Raises:
        ForbiddenError: acting user is not ADMIN (order untouched)
        ValidationError: unknown status or transition not allowed
        NotFoundError: order missing
    """
    if acting_user.role != ROLE_ADMIN:
        raise ForbiddenError("Only admins can change order status")

    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")

    order = _get_order_or_404(order_id)
    validate_transition(order.status, new_status)
    return _apply_status(order, new_status, acting_user)


def cancel_order(order_id: int, user: User) -> Order:
    """Customer cancels their own unpaid order while it is still PENDING."""
    order = _get_order_or_404(order_id)
    if order.user_id != user.id:
        raise ForbiddenError("Order does not belong to you")

    if order.status != ORDER_STATUS_PENDING:
        raise ValidationError(f"Only PENDING orders can be cancelled. Order {order_id} is {order.status}")
    if order.payment_status == PAYMENT_STATUS_PAID:
        raise ValidationError("Paid orders cannot be cancelled by the customer")

    return _apply_status(order, ORDER_STATUS_CANCELLED, user)


def mark_delivered(order_id: int, user: User) -> Order:
    """Delivery worker (or admin) confirms hand-over of a SHIPPED order."""
    if user.role not in (ROLE_WORKER, ROLE_ADMIN):
        raise ForbiddenError("Only delivery workers can confirm delivery")

    order = _get_order_or_404(order_id)
    if order.status != ORDER_STATUS_SHIPPED:
        raise ValidationError(f"Only SHIPPED orders can be marked delivered. Order {order_id} is {order.status}")

    return _apply_status(order, ORDER_STATUS_DELIVERED, user)
