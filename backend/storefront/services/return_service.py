"""
Return Request Service

WHY: Order lines are immutable after checkout. A customer who received the
wrong or damaged goods files one return request per order; an admin decides.

LIFECYCLE:
1. Create (REQUESTED) - owning customer, at most one per order
2. Approve or reject  - admin only; both are terminal

Approval only records the decision. Restocking and refunds are handled by
accounting outside this service.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db, cache
from ..cache import ORDER_PATTERNS
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Order, OrderItem, ReturnRequest, ReturnRequestItem, User
from ..models.auth import ROLE_ADMIN, ROLE_WORKER
from ..time_utils import utcnow
from ..validation import coerce_int


# =============================================================================
# RETURN STATUS CONSTANTS
# =============================================================================

RETURN_STATUS_REQUESTED = "REQUESTED"
RETURN_STATUS_APPROVED = "APPROVED"
RETURN_STATUS_REJECTED = "REJECTED"

DECISION_STATUSES = (RETURN_STATUS_APPROVED, RETURN_STATUS_REJECTED)


def _parse_items(items, order: Order) -> list[tuple[OrderItem, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines_by_id = {line.id: line for line in order.items}
    parsed = []
    seen = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if item.get("orderItemId") is None or item.get("quantity") is None:
            raise ValidationError(f"items[{index}] requires orderItemId and quantity")

        order_item_id = coerce_int(item["orderItemId"], f"items[{index}].orderItemId")
        quantity = coerce_int(item["quantity"], f"items[{index}].quantity")

        line = lines_by_id.get(order_item_id)
        if line is None:
            raise ValidationError(f"Order item {order_item_id} does not belong to order {order.id}")
        if order_item_id in seen:
            raise ValidationError(f"Order item {order_item_id} listed more than once")
        if quantity < 1:
            raise ValidationError("Return quantity must be positive")
        if quantity > line.quantity:
            raise ValidationError(
                f"Cannot return {quantity} of order item {order_item_id}. "
                f"Only {line.quantity} were ordered."
            )

        seen.add(order_item_id)
        parsed.append((line, quantity))

    return parsed


# =============================================================================
# RETURN CREATION
# =============================================================================

def create_return_request(order_id: int, user: User, reason: str | None, items) -> ReturnRequest:
    """
    Create a return request (status: REQUESTED).

    Args:
        order_id: Order being returned from
        user: Customer filing the request (must own the order)
        reason: Free-text reason
        items: [{"orderItemId": int, "quantity": int}, ...]

    Raises:
        NotFoundError: order missing
        ForbiddenError: order belongs to someone else
        ConflictError: the order already has a return request (existing one untouched)
        ValidationError: items empty, foreign, duplicated or over the ordered quantity
    """
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")

    if order.user_id != user.id:
        raise ForbiddenError("Order does not belong to you")

    existing = db.session.query(ReturnRequest).filter_by(order_id=order_id).first()
    if existing:
        raise ConflictError("A return request already exists for this order.",
                            payload={"return_request_id": existing.id})

    parsed = _parse_items(items, order)

    return_request = ReturnRequest(
        order_id=order.id,
        status=RETURN_STATUS_REQUESTED,
        reason=reason,
        items=[ReturnRequestItem(order_item_id=line.id, quantity=qty) for line, qty in parsed],
    )
    db.session.add(return_request)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent request for the same order
        db.session.rollback()
        raise ConflictError("A return request already exists for this order.")

    cache.invalidate(*ORDER_PATTERNS)

    current_app.logger.info("Return request %s created for order %s", return_request.id, order.id)
    return return_request


# =============================================================================
# ADMIN DECISION
# =============================================================================

def set_return_status(return_id: int, new_status: str, acting_user: User) -> ReturnRequest:
    """
    Approve or reject a return request (admin action).

    Raises:
        ForbiddenError: acting user is not ADMIN
        ValidationError: status not APPROVED/REJECTED, or request already decided
        NotFoundError: request missing
    """
    if acting_user.role != ROLE_ADMIN:
        raise ForbiddenError("Only admins can decide return requests")

    if new_status not in DECISION_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(DECISION_STATUSES)}")

    return_request = db.session.get(ReturnRequest, return_id)
    if not return_request:
        raise NotFoundError(f"Return request {return_id} not found")

    if return_request.status != RETURN_STATUS_REQUESTED:
        raise ValidationError(
            f"Return request {return_id} was already {return_request.status}"
        )

    return_request.status = new_status
    return_request.decided_by_user_id = acting_user.id
    return_request.updated_at = utcnow()
    db.session.commit()
    cache.invalidate(*ORDER_PATTERNS)

    current_app.logger.info("Return request %s %s by user %s", return_request.id, new_status, acting_user.id)
    return return_request


# =============================================================================
# QUERIES
# =============================================================================

def list_return_requests(status: str | None = None) -> list[ReturnRequest]:
    query = db.session.query(ReturnRequest)
    if status:
        query = query.filter(ReturnRequest.status == status)
    return query.order_by(ReturnRequest.created_at.desc(), ReturnRequest.id.desc()).all()


def get_return_request_for_order(order_id: int, user: User) -> ReturnRequest | None:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    if user.role not in (ROLE_ADMIN, ROLE_WORKER) and order.user_id != user.id:
        raise ForbiddenError("Order does not belong to you")
    return db.session.query(ReturnRequest).filter_by(order_id=order_id).first()
