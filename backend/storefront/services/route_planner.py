# Overview: Delivery route planning; nearest-neighbour ordering and distance-based delivery zones.

"""
Route Planner

Greedy nearest-neighbour tour starting and ending at the warehouse. Good
enough for a single van with a few dozen stops; not an optimal TSP solver.

ASSUMPTIONS:
- Straight-line (haversine) distance in km
- 30 km/h average city speed
- 5 minutes handling time per stop
- Stops are split into routes of at most MAX_STOPS_PER_ROUTE, in input order

Pure functions: no database or app access. Callers pass the warehouse
coordinate (delivery_service reads it from config).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..time_utils import to_utc_z, utcnow


EARTH_RADIUS_KM = 6371.0
AVERAGE_SPEED_KMH = 30.0
MINUTES_PER_STOP = 5
MAX_STOPS_PER_ROUTE = 15


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class DeliveryStop:
    """One order to drop off."""
    order_id: int
    latitude: float
    longitude: float
    shop_name: str | None = None
    shop_address: str | None = None


@dataclass
class RouteStop:
    sequence: int
    stop: DeliveryStop
    distance_from_previous: float
    estimated_arrival: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "order_id": self.stop.order_id,
            "shop_name": self.stop.shop_name,
            "shop_address": self.stop.shop_address,
            "latitude": self.stop.latitude,
            "longitude": self.stop.longitude,
            "distance_from_previous": round(self.distance_from_previous, 1),
            "estimated_arrival": to_utc_z(self.estimated_arrival),
        }


@dataclass
class Route:
    total_distance: float = 0.0
    total_duration: int = 0  # minutes
    stops: list[RouteStop] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_distance": self.total_distance,
            "total_duration": self.total_duration,
            "stop_count": len(self.stops),
            "stops": [s.to_dict() for s in self.stops],
        }


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _travel_minutes(distance_km: float) -> float:
    return distance_km / AVERAGE_SPEED_KMH * 60


# =============================================================================
# ROUTE OPTIMIZATION
# =============================================================================

def optimize_route(
    stops: list[DeliveryStop],
    warehouse: Location,
    start_time: datetime | None = None,
) -> Route:
    """
    Order stops by repeatedly driving to the nearest unvisited one.

    Total distance includes the return leg to the warehouse. Ties keep
    input order.
    """
    if not stops:
        return Route()

    start_time = start_time or utcnow()
    unvisited = list(stops)
    current = warehouse
    ordered: list[RouteStop] = []
    total_distance = 0.0

    while unvisited:
        nearest_index = 0
        nearest_distance = math.inf
        for index, candidate in enumerate(unvisited):
            distance = haversine_km(current.latitude, current.longitude,
                                    candidate.latitude, candidate.longitude)
            if distance < nearest_distance:
                nearest_index, nearest_distance = index, distance

        nearest = unvisited.pop(nearest_index)
        ordered.append(RouteStop(
            sequence=len(ordered) + 1,
            stop=nearest,
            distance_from_previous=nearest_distance,
        ))
        total_distance += nearest_distance
        current = Location(nearest.latitude, nearest.longitude)

    total_distance += haversine_km(current.latitude, current.longitude,
                                   warehouse.latitude, warehouse.longitude)

    elapsed = 0.0
    for route_stop in ordered:
        elapsed += _travel_minutes(route_stop.distance_from_previous) + MINUTES_PER_STOP
        route_stop.estimated_arrival = start_time + timedelta(minutes=elapsed)

    duration = _travel_minutes(total_distance) + len(ordered) * MINUTES_PER_STOP
    return Route(
        total_distance=round(total_distance, 1),
        total_duration=round(duration),
        stops=ordered,
    )


def plan_routes(
    stops: list[DeliveryStop],
    warehouse: Location,
    start_time: datetime | None = None,
    max_stops: int = MAX_STOPS_PER_ROUTE,
) -> list[Route]:
    """Split stops into batches of max_stops and optimize each batch."""
    return [
        optimize_route(stops[i:i + max_stops], warehouse, start_time)
        for i in range(0, len(stops), max_stops)
    ]


# =============================================================================
# DELIVERY ZONES
# =============================================================================

@dataclass(frozen=True)
class DeliveryZone:
    name: str
    min_distance: float
    max_distance: float
    delivery_fee: int
    estimated_days: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "min_distance": self.min_distance,
            "max_distance": None if math.isinf(self.max_distance) else self.max_distance,
            "delivery_fee": self.delivery_fee,
            "estimated_days": self.estimated_days,
        }


DELIVERY_ZONES = (
    DeliveryZone("Zone 1 - Near", 0, 10, 0, 1),
    DeliveryZone("Zone 2 - Mid", 10, 25, 50000, 1),
    DeliveryZone("Zone 3 - Far", 25, 50, 100000, 2),
    DeliveryZone("Zone 4 - Out of town", 50, math.inf, 200000, 3),
)


def get_delivery_zone(latitude: float, longitude: float, warehouse: Location) -> DeliveryZone:
    distance = haversine_km(warehouse.latitude, warehouse.longitude, latitude, longitude)
    for zone in DELIVERY_ZONES:
        if zone.min_distance <= distance < zone.max_distance:
            return zone
    return DELIVERY_ZONES[-1]


def estimate_delivery_date(
    latitude: float,
    longitude: float,
    warehouse: Location,
    today: date | None = None,
) -> date:
    zone = get_delivery_zone(latitude, longitude, warehouse)
    return (today or utcnow().date()) + timedelta(days=zone.estimated_days)
