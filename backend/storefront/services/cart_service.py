# Overview: Service-layer operations for cart reconciliation; read-only against the product store.

"""
Cart Reconciliation Service

WHY: Carts live in client storage with price snapshots taken when each item
was added. Before checkout (and on a 60s client poll) the snapshot is diffed
against the live product rows so the client can fix its cart.

DETECTION RULES (per line, independent of other lines):
1. Product deleted           -> REMOVED             (remove)
2. Product unavailable       -> UNAVAILABLE         (remove)
3. Stock is zero             -> OUT_OF_STOCK        (remove)
4. 0 < stock < quantity      -> INSUFFICIENT_STOCK  (update_quantity, newStock)
5. Price or discount differs -> PRICE_CHANGED       (update_price, newPrice, ...)

Rules 1-3 end evaluation for the line. Rules 4 and 5 are checked
independently, so one line can report both.

Never mutates cart or product state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..extensions import db
from ..errors import ValidationError
from ..models import Product
from ..pricing import final_price
from ..validation import coerce_int


# =============================================================================
# CHANGE KINDS AND ACTIONS
# =============================================================================

CHANGE_REMOVED = "REMOVED"
CHANGE_UNAVAILABLE = "UNAVAILABLE"
CHANGE_OUT_OF_STOCK = "OUT_OF_STOCK"
CHANGE_INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
CHANGE_PRICE_CHANGED = "PRICE_CHANGED"

ACTION_REMOVE = "remove"
ACTION_UPDATE_QUANTITY = "update_quantity"
ACTION_UPDATE_PRICE = "update_price"


@dataclass(frozen=True)
class CartLine:
    """Client-held cart line with the price snapshot taken at add-time."""
    product_id: int
    quantity: int
    unit_price: int
    discount_percentage: int = 0


@dataclass(frozen=True)
class ChangeRecord:
    product_id: int
    kind: str
    message: str
    action: str
    product_name: str | None = None
    new_stock: int | None = None
    new_price: int | None = None
    new_discount_percentage: int | None = None
    new_final_price: int | None = None

    def to_dict(self) -> dict:
        data = {
            "productId": self.product_id,
            "kind": self.kind,
            "message": self.message,
            "action": self.action,
        }
        optional = {
            "productName": self.product_name,
            "newStock": self.new_stock,
            "newPrice": self.new_price,
            "newDiscountPercentage": self.new_discount_percentage,
            "newFinalPrice": self.new_final_price,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class ReconciliationResult:
    changes: list[ChangeRecord] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.changes

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "changes": [change.to_dict() for change in self.changes],
        }


# =============================================================================
# INPUT PARSING
# =============================================================================

def _first_present(item: dict, *keys: str):
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def parse_cart_lines(items) -> list[CartLine]:
    """
    Parse the `items` array of a reconciliation or checkout body.

    Each item: {"productId"|"id": int, "quantity": int >= 1,
                "price"|"unitPrice": int >= 0, "discountPercentage": 0..100 (optional)}

    Raises:
        ValidationError: items is not a list or any item is malformed
    """
    if items is None:
        raise ValidationError("items is required")
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")

        raw_id = _first_present(item, "productId", "id")
        raw_quantity = item.get("quantity")
        raw_price = _first_present(item, "price", "unitPrice")
        raw_discount = item.get("discountPercentage")

        if raw_id is None:
            raise ValidationError(f"items[{index}].productId is required")
        if raw_quantity is None:
            raise ValidationError(f"items[{index}].quantity is required")
        if raw_price is None:
            raise ValidationError(f"items[{index}].price is required")

        product_id = coerce_int(raw_id, f"items[{index}].productId")
        quantity = coerce_int(raw_quantity, f"items[{index}].quantity")
        unit_price = coerce_int(raw_price, f"items[{index}].price")
        discount = 0 if raw_discount is None else coerce_int(raw_discount, f"items[{index}].discountPercentage")

        if quantity < 1:
            raise ValidationError(f"items[{index}].quantity must be >= 1")
        if unit_price < 0:
            raise ValidationError(f"items[{index}].price must be >= 0")
        if not 0 <= discount <= 100:
            raise ValidationError(f"items[{index}].discountPercentage must be between 0 and 100")

        lines.append(CartLine(
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            discount_percentage=discount,
        ))

    return lines


# =============================================================================
# RECONCILIATION
# =============================================================================

def check_line(line: CartLine, product: Product | None) -> list[ChangeRecord]:
    """Apply the detection rules to one cart line. Empty list means no drift."""
    if product is None:
        return [ChangeRecord(
            product_id=line.product_id,
            kind=CHANGE_REMOVED,
            message="This product has been removed from the store.",
            action=ACTION_REMOVE,
        )]

    if not product.available:
        return [ChangeRecord(
            product_id=product.id,
            product_name=product.name,
            kind=CHANGE_UNAVAILABLE,
            message=f'"{product.name}" is no longer available.',
            action=ACTION_REMOVE,
        )]

    if product.stock == 0:
        return [ChangeRecord(
            product_id=product.id,
            product_name=product.name,
            kind=CHANGE_OUT_OF_STOCK,
            message=f'"{product.name}" is out of stock.',
            action=ACTION_REMOVE,
            new_stock=0,
        )]

    changes = []

    if product.stock < line.quantity:
        changes.append(ChangeRecord(
            product_id=product.id,
            product_name=product.name,
            kind=CHANGE_INSUFFICIENT_STOCK,
            message=f'Only {product.stock} of "{product.name}" left in stock.',
            action=ACTION_UPDATE_QUANTITY,
            new_stock=product.stock,
        ))

    live_discount = product.discount_percentage or 0
    if line.unit_price != product.price or line.discount_percentage != live_discount:
        new_final = final_price(product.price, live_discount)
        changes.append(ChangeRecord(
            product_id=product.id,
            product_name=product.name,
            kind=CHANGE_PRICE_CHANGED,
            message=f'The price of "{product.name}" has changed (new price: {new_final}).',
            action=ACTION_UPDATE_PRICE,
            new_price=product.price,
            new_discount_percentage=live_discount,
            new_final_price=new_final,
        ))

    return changes


def load_products(product_ids: Iterable[int]) -> dict[int, Product]:
    ids = set(product_ids)
    if not ids:
        return {}
    products = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in products}


def reconcile_cart(lines: list[CartLine]) -> ReconciliationResult:
    """
    Diff cart lines against live products.

    One query for the whole cart; changes come back in cart-line order.
    """
    result = ReconciliationResult()
    if not lines:
        return result

    products = load_products(line.product_id for line in lines)
    for line in lines:
        result.changes.extend(check_line(line, products.get(line.product_id)))

    return result
