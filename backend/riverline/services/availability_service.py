"""
Seat availability per trip occurrence (vessel, route, date, time).

Sold seats are always summed from CONFIRMADA sales, never cached.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..models import Sale, Vessel, Route
from ..models.enums import SaleStatus
from ..validation import ValidationError, NotFoundError, require_int
from riverline.time_utils import parse_travel_date, is_hhmm


@dataclass
class Availability:
    available: bool
    remaining: int
    capacity: int
    sold: int
    requested: int

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "remaining": self.remaining,
            "capacity": self.capacity,
            "sold": self.sold,
            "requested": self.requested,
        }


def sold_seats(vessel_id: int, route_id: int, travel_date: date, travel_time: str) -> int:
    """
    Seats held by CONFIRMADA sales of one occurrence.

    Derived on every call; cancelled and refunded sales drop out immediately.
    The sale write path calls this again after taking the write lock.
    """
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Sale.passenger_count), 0))
        .filter(
            Sale.vessel_id == vessel_id,
            Sale.route_id == route_id,
            Sale.travel_date == travel_date,
            Sale.travel_time == travel_time,
            Sale.status == SaleStatus.CONFIRMADA,
        )
        .scalar()
    )
    return int(total or 0)


def normalize_occurrence(vessel_id, route_id, travel_date, travel_time) -> tuple[int, int, date, str]:
    vessel_id = require_int(vessel_id, "vessel_id", minimum=1)
    route_id = require_int(route_id, "route_id", minimum=1)
    try:
        travel_date = parse_travel_date(travel_date)
    except ValueError:
        raise ValidationError("travel_date must be a valid YYYY-MM-DD date", details={"field": "travel_date"})
    if not is_hhmm(travel_time):
        raise ValidationError("travel_time must use HH:MM format", details={"field": "travel_time"})
    return vessel_id, route_id, travel_date, travel_time


def check_availability(vessel_id, route_id, travel_date, travel_time, requested_count) -> Availability:
    """
    Read-only seat check for one occurrence.

    Not a reservation: create_sale re-checks inside its own transaction.
    """
    vessel_id, route_id, travel_date, travel_time = normalize_occurrence(
        vessel_id, route_id, travel_date, travel_time
    )
    requested = require_int(requested_count, "passenger_count", minimum=1)

    vessel = db.session.get(Vessel, vessel_id)
    if not vessel:
        raise NotFoundError("Vessel not found", details={"vessel_id": vessel_id})
    if not db.session.get(Route, route_id):
        raise NotFoundError("Route not found", details={"route_id": route_id})

    sold = sold_seats(vessel_id, route_id, travel_date, travel_time)
    remaining = max(vessel.capacity - sold, 0)
    return Availability(
        available=requested <= remaining,
        remaining=remaining,
        capacity=vessel.capacity,
        sold=sold,
        requested=requested,
    )
