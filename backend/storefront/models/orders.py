from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Customer order created at checkout.

    WHY: Lines are copied from the live product at checkout and never edited
    afterwards; post-delivery adjustments go through a ReturnRequest.

    Money columns are in the smallest currency unit:
    amount_due = total_price - credit_used
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_delivery", "status", "delivery_date"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)

    total_price = db.Column(db.Integer, nullable=False)
    credit_used = db.Column(db.Integer, nullable=False, default=0)
    amount_due = db.Column(db.Integer, nullable=False)

    delivery_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Gateway bookkeeping
    payment_method = db.Column(db.String(32), nullable=True)
    payment_authority = db.Column(db.String(128), nullable=True, unique=True, index=True)
    payment_ref_id = db.Column(db.String(128), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_price": self.total_price,
            "credit_used": self.credit_used,
            "amount_due": self.amount_due,
            "delivery_date": to_utc_z(self.delivery_date),
            "notes": self.notes,
            "payment_method": self.payment_method,
            "payment_ref_id": self.payment_ref_id,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Order line; product name and unit price are snapshots taken at checkout."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
            "line_total": self.price * self.quantity,
        }


class ReturnRequest(db.Model):
    """
    Customer return request; at most one per order.

    LIFECYCLE: REQUESTED -> APPROVED | REJECTED (terminal, admin decision)
    """
    __tablename__ = "return_requests"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_return_requests_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="REQUESTED", index=True)
    reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    order = db.relationship("Order", backref=db.backref("return_request", uselist=False, lazy=True))
    items = db.relationship(
        "ReturnRequestItem",
        backref="return_request",
        lazy=True,
        order_by="ReturnRequestItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_order: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "decided_by_user_id": self.decided_by_user_id,
            "items": [item.to_dict() for item in self.items],
        }
        if include_order and self.order is not None:
            data["order"] = self.order.to_dict(include_items=False)
            data["customer"] = self.order.user.destination_dict() if self.order.user else None
        return data


class ReturnRequestItem(db.Model):
    __tablename__ = "return_request_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_request_id = db.Column(db.Integer, db.ForeignKey("return_requests.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    order_item = db.relationship("OrderItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_item_id": self.order_item_id,
            "product_name": self.order_item.product_name if self.order_item else None,
            "quantity": self.quantity,
        }
