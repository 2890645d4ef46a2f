# Overview: Service-layer operations for delivery; ready-for-delivery listing and route exposure.

"""
Delivery Service

Orders become deliverable once an admin CONFIRMS them. The customer's shop
coordinates are the destination; orders of customers without coordinates
cannot be routed and are left out of the listings.

WORKER SLOTS:
Active WORKER accounts ordered by id. Worker N (0-based) drives route N of
the day; workers beyond the number of routes have no route.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Order, User
from ..models.auth import ROLE_WORKER
from ..time_utils import day_bounds
from .order_service import ORDER_STATUS_SHIPPED, READY_FOR_DELIVERY_STATUS
from .route_planner import (
    DeliveryStop,
    Location,
    Route,
    estimate_delivery_date,
    get_delivery_zone,
    plan_routes,
)


def warehouse_location() -> Location:
    return Location(
        current_app.config["WAREHOUSE_LATITUDE"],
        current_app.config["WAREHOUSE_LONGITUDE"],
    )


def _delivery_dict(order: Order) -> dict:
    data = order.to_dict(include_items=True)
    data["destination"] = order.user.destination_dict()
    return data


def _ready_orders(day: date) -> list[Order]:
    start, end = day_bounds(day)
    return (
        db.session.query(Order)
        .join(User, Order.user_id == User.id)
        .filter(
            Order.status == READY_FOR_DELIVERY_STATUS,
            Order.delivery_date >= start,
            Order.delivery_date < end,
            User.latitude.isnot(None),
            User.longitude.isnot(None),
        )
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


def list_ready_for_delivery(day: date) -> list[dict]:
    """Orders ready for delivery on `day`, oldest first, with destination and items."""
    return [_delivery_dict(order) for order in _ready_orders(day)]


def list_worker_orders() -> list[dict]:
    """Orders out for delivery (SHIPPED), earliest delivery date first."""
    orders = (
        db.session.query(Order)
        .filter(Order.status == ORDER_STATUS_SHIPPED)
        .order_by(Order.delivery_date.asc(), Order.id.asc())
        .all()
    )
    return [_delivery_dict(order) for order in orders]


def _worker_slot(worker_id: int) -> int:
    worker = db.session.get(User, worker_id)
    if not worker or not worker.is_active:
        raise NotFoundError(f"Worker {worker_id} not found")
    if worker.role != ROLE_WORKER:
        raise ValidationError(f"User {worker_id} is not a delivery worker")

    worker_ids = [
        row.id for row in
        db.session.query(User.id)
        .filter(User.role == ROLE_WORKER, User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    ]
    return worker_ids.index(worker_id)


def get_routes(day: date, worker_id: int | None = None) -> list[Route] | Route | None:
    """
    Plan the day's routes from the ready-for-delivery orders.

    Returns:
        All routes for the day, or when worker_id is given the route at that
        worker's slot (None when there are fewer routes than workers)

    Raises:
        NotFoundError: worker_id is not an active user
        ValidationError: worker_id is not a WORKER
    """
    stops = [
        DeliveryStop(
            order_id=order.id,
            latitude=order.user.latitude,
            longitude=order.user.longitude,
            shop_name=order.user.shop_name,
            shop_address=order.user.shop_address,
        )
        for order in _ready_orders(day)
    ]
    routes = plan_routes(stops, warehouse_location())

    if worker_id is None:
        return routes

    slot = _worker_slot(worker_id)
    return routes[slot] if slot < len(routes) else None


def delivery_estimate_for(user: User) -> dict:
    """Delivery zone and earliest delivery date for a customer's shop."""
    if not user.has_coordinates:
        raise ValidationError("Shop location is not set")

    warehouse = warehouse_location()
    zone = get_delivery_zone(user.latitude, user.longitude, warehouse)
    estimated = estimate_delivery_date(user.latitude, user.longitude, warehouse)
    return {
        "zone": zone.to_dict(),
        "estimated_delivery_date": estimated.isoformat(),
    }
