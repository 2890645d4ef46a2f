# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Order Payment Service

WHY: An order's payment_status moves UNPAID -> PAID only through the
gateway's verified callback (or at checkout when store credit covers the
whole order). The amount sent to the gateway is amount_due, i.e. the total
after store credit.

FLOW:
1. request_payment: owner asks to pay, gateway returns an authority
2. customer pays on the gateway page, gateway redirects with authority + status
3. verify_payment: gateway confirms, order becomes PAID, reserved credit is
   deducted from the user's balance in the same commit
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db, cache
from ..cache import ORDER_PATTERNS
from ..errors import AlreadyPaidError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Order, User
from ..time_utils import utcnow
from . import payment_gateway
from .order_service import ORDER_STATUS_CANCELLED, PAYMENT_STATUS_PAID


GATEWAY_STATUS_OK = "OK"
PAYMENT_METHOD_GATEWAY = "gateway"


def _ensure_credit_available(order: Order) -> None:
    """The balance must still hold the credit this order reserved at checkout."""
    if order.credit_used <= 0:
        return
    balance = order.user.balance
    if balance < order.credit_used:
        current_app.logger.warning(
            "Order %s reserved credit %s but user %s balance is %s",
            order.id, order.credit_used, order.user_id, balance,
        )
        raise ConflictError(
            "Store credit applied to this order is no longer available",
            payload={"credit_used": order.credit_used, "balance": balance},
        )


def request_payment(order_id: int, user: User) -> dict:
    """
    Start a gateway payment for the order's amount_due.

    Raises:
        NotFoundError: order missing
        ForbiddenError: order belongs to someone else
        AlreadyPaidError: order already PAID (order untouched)
        ValidationError: order cancelled or nothing due
        ConflictError: reserved store credit no longer on the balance
        PaymentGatewayError: gateway unavailable or rejected the request
    """
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")

    if order.user_id != user.id:
        raise ForbiddenError("Order does not belong to you")

    if order.payment_status == PAYMENT_STATUS_PAID:
        raise AlreadyPaidError("Order is already paid")

    if order.status == ORDER_STATUS_CANCELLED:
        raise ValidationError("Cannot pay for a cancelled order")

    if order.amount_due <= 0:
        raise ValidationError("Nothing is due on this order")

    _ensure_credit_available(order)

    description = f"Payment for order #{order.id}"
    if order.credit_used > 0:
        description += " (partial, store credit applied)"

    authority, redirect_url = payment_gateway.request_payment(
        order.amount_due,
        description,
        current_app.config["PAYMENT_CALLBACK_URL"],
        metadata={"order_id": str(order.id), "mobile": user.phone},
    )

    order.payment_authority = authority
    order.payment_method = PAYMENT_METHOD_GATEWAY
    order.updated_at = utcnow()
    db.session.commit()

    current_app.logger.info("Payment requested for order %s: amount=%s authority=%s",
                            order.id, order.amount_due, authority)

    return {
        "authority": authority,
        "redirect_url": redirect_url,
        "amount": order.amount_due,
    }


def verify_payment(authority: str, status: str | None, user: User | None = None) -> dict:
    """
    Handle the gateway callback.

    - status != OK: payment cancelled on the gateway page; order untouched, retry allowed
    - already PAID: idempotent success with the stored ref id
    - otherwise verify amount_due with the gateway and mark PAID

    Raises:
        ValidationError: authority missing
        NotFoundError: no order holds this authority
        ForbiddenError: authenticated caller is not the owner
        ConflictError: reserved store credit no longer on the balance (gateway not called)
        PaymentGatewayError: verification failed (order stays UNPAID)
    """
    if not authority:
        raise ValidationError("authority is required")

    order = db.session.query(Order).filter_by(payment_authority=authority).first()
    if not order:
        raise NotFoundError("Order not found for this payment")

    if user is not None and order.user_id != user.id:
        current_app.logger.warning("User %s tried to verify payment of order %s", user.id, order.id)
        raise ForbiddenError("Order does not belong to you")

    if status != GATEWAY_STATUS_OK:
        return {
            "success": False,
            "message": "Payment was cancelled. You can try again.",
            "order_id": order.id,
            "can_retry": True,
        }

    if order.payment_status == PAYMENT_STATUS_PAID:
        return {
            "success": True,
            "message": "Payment already verified",
            "order_id": order.id,
            "ref_id": order.payment_ref_id,
        }

    _ensure_credit_available(order)

    ref_id, card_pan = payment_gateway.verify_payment(authority, order.amount_due)

    order.payment_status = PAYMENT_STATUS_PAID
    order.payment_ref_id = ref_id
    order.paid_at = utcnow()
    order.updated_at = order.paid_at

    # Full-credit orders had their credit deducted at checkout and never reach here
    if order.credit_used > 0 and order.amount_due > 0:
        order.user.balance -= order.credit_used

    db.session.commit()
    cache.invalidate(*ORDER_PATTERNS)

    current_app.logger.info("Order %s paid: ref_id=%s", order.id, ref_id)

    return {
        "success": True,
        "message": "Payment completed",
        "order_id": order.id,
        "ref_id": ref_id,
        "card_pan": card_pan,
    }
