from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Route, Vessel, BoardingPort, VesselRoute, Sale
from ..models.enums import VesselStatus
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    MAX_PRICE_CENTS,
    MAX_VESSEL_CAPACITY,
    require_text,
    optional_text,
    require_int,
)
from riverline.time_utils import is_hhmm


# date.weekday() order
WEEKDAYS = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
_UNACCENTED = {"miercoles": "miércoles", "sabado": "sábado"}


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def _normalize_days(values) -> list[str]:
    if not isinstance(values, (list, tuple)) or not values:
        raise ValidationError("operating_days must be a non-empty list", details={"field": "operating_days"})
    days = set()
    for value in values:
        name = str(value or "").strip().lower()
        name = _UNACCENTED.get(name, name)
        if name not in WEEKDAYS:
            raise ValidationError(f"Invalid operating day: {value}", details={"field": "operating_days"})
        days.add(name)
    return [d for d in WEEKDAYS if d in days]


def _normalize_times(values) -> list[str]:
    if not isinstance(values, (list, tuple)) or not values:
        raise ValidationError("departure_times must be a non-empty list", details={"field": "departure_times"})
    times = []
    for value in values:
        if not is_hhmm(value):
            raise ValidationError(f"Invalid departure time: {value}", details={"field": "departure_times"})
        if value in times:
            raise ValidationError(f"Duplicate departure time: {value}", details={"field": "departure_times"})
        times.append(value)
    return sorted(times)


def _commit_or_conflict(message: str, code: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message, code=code)


# =============================================================================
# ROUTES
# =============================================================================

def get_route(route_id: int) -> Route:
    route = db.session.get(Route, route_id)
    if not route:
        raise NotFoundError("Route not found", details={"route_id": route_id})
    return route


def _check_route_uniqueness(name: str, origin: str, destination: str, exclude_id: int | None = None) -> None:
    if origin.lower() == destination.lower():
        raise ValidationError("Origin and destination ports must be different", code="SAME_PORTS")

    query = db.session.query(Route)
    if exclude_id is not None:
        query = query.filter(Route.id != exclude_id)

    if query.filter(db.func.lower(Route.name) == name.lower()).first():
        raise ConflictError(f"A route named '{name}' already exists", code="DUPLICATE_ROUTE_NAME")

    if query.filter(
        db.func.lower(Route.origin_port) == origin.lower(),
        db.func.lower(Route.destination_port) == destination.lower(),
    ).first():
        raise ConflictError(
            f"A route from {origin} to {destination} already exists",
            code="DUPLICATE_TRAJECTORY",
        )


def create_route(name, origin_port, destination_port, price_cents, is_active: bool = True) -> Route:
    name = require_text(name, "name", min_length=3)
    origin = require_text(origin_port, "origin_port", min_length=2)
    destination = require_text(destination_port, "destination_port", min_length=2)
    price_cents = require_int(price_cents, "price_cents", minimum=1, maximum=MAX_PRICE_CENTS)

    _check_route_uniqueness(name, origin, destination)

    route = Route(
        name=name,
        origin_port=origin,
        destination_port=destination,
        price_cents=price_cents,
        is_active=bool(is_active),
    )
    db.session.add(route)
    _commit_or_conflict("Route already exists", "DUPLICATE_ROUTE")
    return route


def update_route(route_id: int, **fields) -> Route:
    route = get_route(route_id)

    name = require_text(fields["name"], "name", min_length=3) if "name" in fields else route.name
    origin = (
        require_text(fields["origin_port"], "origin_port", min_length=2)
        if "origin_port" in fields else route.origin_port
    )
    destination = (
        require_text(fields["destination_port"], "destination_port", min_length=2)
        if "destination_port" in fields else route.destination_port
    )
    _check_route_uniqueness(name, origin, destination, exclude_id=route.id)

    route.name = name
    route.origin_port = origin
    route.destination_port = destination
    if "price_cents" in fields:
        route.price_cents = require_int(fields["price_cents"], "price_cents", minimum=1, maximum=MAX_PRICE_CENTS)
    if "is_active" in fields:
        route.is_active = bool(fields["is_active"])

    _commit_or_conflict("Route already exists", "DUPLICATE_ROUTE")
    return route


def deactivate_route(route_id: int) -> Route:
    route = get_route(route_id)
    route.is_active = False
    db.session.commit()
    return route


def delete_route(route_id: int) -> None:
    """Physical delete, only for routes nothing references. Use deactivate_route otherwise."""
    route = get_route(route_id)
    sales = db.session.query(Sale.id).filter(Sale.route_id == route.id).count()
    schedules = db.session.query(VesselRoute.id).filter(VesselRoute.route_id == route.id).count()
    if sales or schedules:
        raise ConflictError(
            "Route has sales or schedule assignments; deactivate it instead",
            code="ROUTE_IN_USE",
            details={"sales": sales, "schedules": schedules},
        )
    db.session.delete(route)
    db.session.commit()


def list_routes(active_only: bool = False) -> list[Route]:
    query = db.session.query(Route)
    if active_only:
        query = query.filter(Route.is_active.is_(True))
    return query.order_by(Route.name.asc()).all()


# =============================================================================
# VESSELS
# =============================================================================

def get_vessel(vessel_id: int) -> Vessel:
    vessel = db.session.get(Vessel, vessel_id)
    if not vessel:
        raise NotFoundError("Vessel not found", details={"vessel_id": vessel_id})
    return vessel


def _parse_vessel_status(value) -> VesselStatus:
    try:
        return VesselStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid vessel status: {value}", details={"field": "status"})


def create_vessel(name, capacity, vessel_type=None, status=VesselStatus.ACTIVA) -> Vessel:
    name = require_text(name, "name", min_length=2)
    capacity = require_int(capacity, "capacity", minimum=1, maximum=MAX_VESSEL_CAPACITY)
    status = _parse_vessel_status(status)

    if db.session.query(Vessel).filter(db.func.lower(Vessel.name) == name.lower()).first():
        raise ConflictError(f"A vessel named '{name}' already exists", code="DUPLICATE_VESSEL_NAME")

    vessel = Vessel(
        name=name,
        capacity=capacity,
        vessel_type=optional_text(vessel_type, "vessel_type", max_length=50),
        status=status,
    )
    db.session.add(vessel)
    _commit_or_conflict("Vessel already exists", "DUPLICATE_VESSEL_NAME")
    return vessel


def update_vessel(vessel_id: int, **fields) -> Vessel:
    vessel = get_vessel(vessel_id)

    if "name" in fields:
        name = require_text(fields["name"], "name", min_length=2)
        clash = db.session.query(Vessel).filter(
            db.func.lower(Vessel.name) == name.lower(),
            Vessel.id != vessel.id,
        ).first()
        if clash:
            raise ConflictError(f"A vessel named '{name}' already exists", code="DUPLICATE_VESSEL_NAME")
        vessel.name = name
    if "capacity" in fields:
        vessel.capacity = require_int(fields["capacity"], "capacity", minimum=1, maximum=MAX_VESSEL_CAPACITY)
    if "vessel_type" in fields:
        vessel.vessel_type = optional_text(fields["vessel_type"], "vessel_type", max_length=50)
    if "status" in fields:
        vessel.status = _parse_vessel_status(fields["status"])

    _commit_or_conflict("Vessel already exists", "DUPLICATE_VESSEL_NAME")
    return vessel


def delete_vessel(vessel_id: int) -> None:
    vessel = get_vessel(vessel_id)
    sales = db.session.query(Sale.id).filter(Sale.vessel_id == vessel.id).count()
    schedules = db.session.query(VesselRoute.id).filter(VesselRoute.vessel_id == vessel.id).count()
    if sales or schedules:
        raise ConflictError(
            "Vessel has sales or schedule assignments",
            code="VESSEL_IN_USE",
            details={"sales": sales, "schedules": schedules},
        )
    db.session.delete(vessel)
    db.session.commit()


def list_vessels(active_only: bool = False) -> list[Vessel]:
    query = db.session.query(Vessel)
    if active_only:
        query = query.filter(Vessel.status == VesselStatus.ACTIVA)
    return query.order_by(Vessel.name.asc()).all()


# =============================================================================
# BOARDING PORTS
# =============================================================================

def get_port(port_id: int) -> BoardingPort:
    port = db.session.get(BoardingPort, port_id)
    if not port:
        raise NotFoundError("Boarding port not found", details={"boarding_port_id": port_id})
    return port


def create_port(name, description=None, address=None, sort_order=0, is_active: bool = True) -> BoardingPort:
    name = require_text(name, "name", min_length=2)
    if db.session.query(BoardingPort).filter(db.func.lower(BoardingPort.name) == name.lower()).first():
        raise ConflictError(f"A boarding port named '{name}' already exists", code="DUPLICATE_PORT_NAME")
    port = BoardingPort(
        name=name,
        description=optional_text(description, "description", max_length=255),
        address=optional_text(address, "address", max_length=255),
        sort_order=require_int(sort_order, "sort_order", minimum=0),
        is_active=bool(is_active),
    )
    db.session.add(port)
    _commit_or_conflict("Boarding port already exists", "DUPLICATE_PORT_NAME")
    return port


def update_port(port_id: int, **fields) -> BoardingPort:
    port = get_port(port_id)
    if "name" in fields:
        name = require_text(fields["name"], "name", min_length=2)
        clash = db.session.query(BoardingPort).filter(
            db.func.lower(BoardingPort.name) == name.lower(),
            BoardingPort.id != port.id,
        ).first()
        if clash:
            raise ConflictError(f"A boarding port named '{name}' already exists", code="DUPLICATE_PORT_NAME")
        port.name = name
    if "description" in fields:
        port.description = optional_text(fields["description"], "description", max_length=255)
    if "address" in fields:
        port.address = optional_text(fields["address"], "address", max_length=255)
    if "sort_order" in fields:
        port.sort_order = require_int(fields["sort_order"], "sort_order", minimum=0)
    if "is_active" in fields:
        port.is_active = bool(fields["is_active"])
    _commit_or_conflict("Boarding port already exists", "DUPLICATE_PORT_NAME")
    return port


def list_ports(active_only: bool = False) -> list[BoardingPort]:
    query = db.session.query(BoardingPort)
    if active_only:
        query = query.filter(BoardingPort.is_active.is_(True))
    return query.order_by(BoardingPort.sort_order.asc(), BoardingPort.name.asc()).all()


# =============================================================================
# SCHEDULES (vessel <-> route assignments)
# =============================================================================

def get_schedule(schedule_id: int) -> VesselRoute:
    schedule = db.session.get(VesselRoute, schedule_id)
    if not schedule:
        raise NotFoundError("Schedule not found", details={"schedule_id": schedule_id})
    return schedule


def _ensure_single_active(vessel_id: int, route_id: int, exclude_id: int | None = None) -> None:
    query = db.session.query(VesselRoute).filter(
        VesselRoute.vessel_id == vessel_id,
        VesselRoute.route_id == route_id,
        VesselRoute.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(VesselRoute.id != exclude_id)
    if query.first():
        raise ConflictError(
            "This vessel already has an active assignment on this route",
            code="DUPLICATE_SCHEDULE",
        )


def create_schedule(vessel_id, route_id, departure_times, operating_days, is_active: bool = True) -> VesselRoute:
    vessel = get_vessel(require_int(vessel_id, "vessel_id", minimum=1))
    route = get_route(require_int(route_id, "route_id", minimum=1))
    times = _normalize_times(departure_times)
    days = _normalize_days(operating_days)

    if is_active:
        _ensure_single_active(vessel.id, route.id)

    schedule = VesselRoute(
        vessel_id=vessel.id,
        route_id=route.id,
        departure_times=times,
        operating_days=days,
        is_active=bool(is_active),
    )
    db.session.add(schedule)
    _commit_or_conflict("This vessel already has an active assignment on this route", "DUPLICATE_SCHEDULE")
    return schedule


def update_schedule(schedule_id: int, **fields) -> VesselRoute:
    schedule = get_schedule(schedule_id)
    if "departure_times" in fields:
        schedule.departure_times = _normalize_times(fields["departure_times"])
    if "operating_days" in fields:
        schedule.operating_days = _normalize_days(fields["operating_days"])
    if "is_active" in fields:
        activate = bool(fields["is_active"])
        if activate and not schedule.is_active:
            _ensure_single_active(schedule.vessel_id, schedule.route_id, exclude_id=schedule.id)
        schedule.is_active = activate
    _commit_or_conflict("This vessel already has an active assignment on this route", "DUPLICATE_SCHEDULE")
    return schedule


def list_schedules(route_id: int | None = None, vessel_id: int | None = None, active_only: bool = False) -> list[VesselRoute]:
    query = db.session.query(VesselRoute)
    if route_id is not None:
        query = query.filter(VesselRoute.route_id == route_id)
    if vessel_id is not None:
        query = query.filter(VesselRoute.vessel_id == vessel_id)
    if active_only:
        query = query.filter(VesselRoute.is_active.is_(True))
    return query.order_by(VesselRoute.id.asc()).all()


def validate_operating_day(vessel_id: int, route_id: int, travel_date: date) -> VesselRoute:
    """
    Return the active schedule of (vessel, route) if it operates on the
    weekday of travel_date. ValidationError otherwise.
    """
    schedule = db.session.query(VesselRoute).filter(
        VesselRoute.vessel_id == vessel_id,
        VesselRoute.route_id == route_id,
        VesselRoute.is_active.is_(True),
    ).first()
    if not schedule:
        raise ValidationError(
            "This vessel has no active assignment on this route",
            code="NO_SCHEDULE",
            details={"vessel_id": vessel_id, "route_id": route_id},
        )

    day = weekday_name(travel_date)
    if day not in (schedule.operating_days or []):
        raise ValidationError(
            f"This vessel does not operate on {day}. Operating days: {', '.join(schedule.operating_days or [])}",
            code="NOT_OPERATING_DAY",
            details={"day": day, "operating_days": list(schedule.operating_days or [])},
        )
    return schedule
