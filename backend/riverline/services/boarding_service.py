"""
Boarding control service.

Operators see the passengers of their own vessel. One control row per sale
and occurrence, created PENDIENTE on first listing, then marked EMBARCADO or
NO_EMBARCADO once.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date

from flask import current_app
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BoardingControl, Sale, Vessel, User
from ..models.enums import BoardingRecordType, BoardingStatus, OperatorStatus, Role, SaleStatus
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    optional_text,
)
from .availability_service import normalize_occurrence
from .concurrency import begin_write, lock_for_update
from .ledger_service import append_sale_event
from riverline.time_utils import business_now, business_today, end_of_travel_day, parse_travel_date, is_hhmm, utcnow


# PENDIENTE is the only state with outgoing transitions
ALLOWED_TRANSITIONS = {
    BoardingStatus.PENDIENTE: {BoardingStatus.EMBARCADO, BoardingStatus.NO_EMBARCADO},
    BoardingStatus.EMBARCADO: set(),
    BoardingStatus.NO_EMBARCADO: set(),
}


def require_active_operator(user: User) -> int:
    """Return the operator's vessel id, or raise ForbiddenError."""
    if not user or user.role != Role.OPERADOR_EMBARCACION:
        raise ForbiddenError("Only vessel operators can manage boarding", code="NOT_OPERATOR")
    if user.operator_status != OperatorStatus.ACTIVO or not user.is_active:
        raise ForbiddenError("Operator is not active", code="OPERATOR_INACTIVE")
    if not user.assigned_vessel_id:
        raise ForbiddenError("Operator has no assigned vessel", code="NO_VESSEL_ASSIGNED")
    return user.assigned_vessel_id


def _occurrence(vessel_id: int, travel_date, travel_time, route_id=None) -> tuple[int, int | None, date, str]:
    if route_id not in (None, ""):
        vessel_id, route_id, travel_date, travel_time = normalize_occurrence(
            vessel_id, route_id, travel_date, travel_time
        )
        return vessel_id, route_id, travel_date, travel_time
    try:
        travel_date = parse_travel_date(travel_date)
    except ValueError:
        raise ValidationError("travel_date must be a valid YYYY-MM-DD date", details={"field": "travel_date"})
    if not is_hhmm(travel_time):
        raise ValidationError("travel_time must use HH:MM format", details={"field": "travel_time"})
    return vessel_id, None, travel_date, travel_time


def _confirmed_sales_query(vessel_id: int, route_id: int | None, travel_date: date, travel_time: str):
    query = db.session.query(Sale).filter(
        Sale.vessel_id == vessel_id,
        Sale.travel_date == travel_date,
        Sale.travel_time == travel_time,
        Sale.status == SaleStatus.CONFIRMADA,
    )
    if route_id is not None:
        query = query.filter(Sale.route_id == route_id)
    return query


def _controls_query(vessel_id: int, route_id: int | None, travel_date: date, travel_time: str):
    query = (
        db.session.query(BoardingControl)
        .join(Sale, BoardingControl.sale_id == Sale.id)
        .filter(
            BoardingControl.vessel_id == vessel_id,
            BoardingControl.travel_date == travel_date,
            BoardingControl.travel_time == travel_time,
            Sale.status == SaleStatus.CONFIRMADA,
        )
    )
    if route_id is not None:
        query = query.filter(BoardingControl.route_id == route_id)
    return query


def _missing_sales(vessel_id: int, route_id: int | None, travel_date: date, travel_time: str) -> list[Sale]:
    sales = _confirmed_sales_query(vessel_id, route_id, travel_date, travel_time).all()
    if not sales:
        return []
    covered = {
        sale_id
        for (sale_id,) in db.session.query(BoardingControl.sale_id).filter(
            BoardingControl.sale_id.in_([s.id for s in sales]),
            BoardingControl.vessel_id == vessel_id,
            BoardingControl.travel_date == travel_date,
            BoardingControl.travel_time == travel_time,
        )
    }
    return [s for s in sales if s.id not in covered]


def _insert_controls(rows: list[dict]) -> int:
    """Insert control rows, skipping any that already exist. Returns the number inserted."""
    dialect = db.engine.dialect.name
    if dialect in ("sqlite", "postgresql"):
        insert = sqlite_insert if dialect == "sqlite" else postgresql_insert
        result = db.session.execute(insert(BoardingControl).values(rows).on_conflict_do_nothing())
        return result.rowcount

    inserted = 0
    for row in rows:
        try:
            with db.session.begin_nested():
                db.session.add(BoardingControl(**row))
        except IntegrityError:
            continue
        inserted += 1
    return inserted


def backfill_controls(operator: User, vessel_id: int, route_id: int | None, travel_date: date, travel_time: str) -> int:
    """
    Create PENDIENTE controls for confirmed sales that have none yet.

    Returns the number of rows inserted by this call. Rows a concurrent
    backfill already inserted are skipped one by one, so the rest of the
    batch still lands.
    """
    if not _missing_sales(vessel_id, route_id, travel_date, travel_time):
        return 0

    try:
        begin_write()
        missing = _missing_sales(vessel_id, route_id, travel_date, travel_time)
        rows = [
            {
                "sale_id": sale.id,
                "operator_id": operator.id,
                "vessel_id": vessel_id,
                "route_id": sale.route_id,
                "travel_date": travel_date,
                "travel_time": travel_time,
                "status": BoardingStatus.PENDIENTE,
                "record_type": BoardingRecordType.EMBARQUE,
            }
            for sale in missing
        ]
        inserted = _insert_controls(rows) if rows else 0
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if inserted < len(rows):
        current_app.logger.info(
            "Boarding backfill for vessel %s %s %s skipped %s rows inserted concurrently",
            vessel_id, travel_date.isoformat(), travel_time, len(rows) - inserted,
        )
    return inserted


def passenger_view(control: BoardingControl) -> dict:
    sale = control.sale
    customer = sale.customer
    return {
        "control": control.to_dict(),
        "sale_id": sale.id,
        "sale_number": sale.sale_number,
        "passenger_count": sale.passenger_count,
        "customer": {
            "dni": customer.dni,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "phone": customer.phone,
        },
        "route_name": sale.route.name if sale.route else None,
        "origin_port": sale.origin_port,
        "destination_port": sale.destination_port,
        "boarding_port": sale.boarding_port.name if sale.boarding_port else None,
        "boarding_time": sale.boarding_time,
    }


def list_passengers(operator: User, travel_date, travel_time, route_id=None) -> list[dict]:
    """
    Boarding list of one occurrence of the operator's vessel.

    Missing controls are backfilled first, then the list is re-queried so
    every confirmed sale appears exactly once.
    """
    vessel_id = require_active_operator(operator)
    vessel_id, route_id, travel_date, travel_time = _occurrence(vessel_id, travel_date, travel_time, route_id)

    backfill_controls(operator, vessel_id, route_id, travel_date, travel_time)

    controls = (
        _controls_query(vessel_id, route_id, travel_date, travel_time)
        .order_by(Sale.id.asc())
        .all()
    )
    return [passenger_view(c) for c in controls]


def set_boarding_state(control_id: int, new_state, operator: User, notes=None) -> BoardingControl:
    """
    PENDIENTE -> EMBARCADO | NO_EMBARCADO. Frozen once the travel day ends.
    """
    vessel_id = require_active_operator(operator)
    try:
        new_state = BoardingStatus(str(new_state or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid boarding state: {new_state}", details={"field": "status"})
    notes = optional_text(notes, "notes")

    try:
        begin_write()

        control = lock_for_update(db.session.query(BoardingControl).filter_by(id=control_id)).first()
        if not control:
            raise NotFoundError("Boarding record not found", details={"control_id": control_id})

        if control.vessel_id != vessel_id:
            raise ForbiddenError(
                "This boarding record belongs to another vessel",
                code="VESSEL_MISMATCH",
            )

        if business_now() > end_of_travel_day(control.travel_date):
            raise ValidationError(
                "Boarding for past trips can no longer be modified",
                code="TRIP_CLOSED",
            )

        current = control.status
        if new_state == current:
            raise ValidationError(
                f"Boarding record is already {current.value}",
                code="SAME_STATE",
            )
        if new_state not in ALLOWED_TRANSITIONS[current]:
            raise ConflictError(
                f"Cannot change boarding state from {current.value} to {new_state.value}",
                code="INVALID_TRANSITION",
                details={"from": current.value, "to": new_state.value},
            )

        if control.sale.status != SaleStatus.CONFIRMADA:
            raise ConflictError(
                f"Sale is {control.sale.status.value}",
                code="SALE_NOT_CONFIRMED",
            )

        control.status = new_state
        control.registered_at = utcnow()
        control.notes = notes
        control.operator_id = operator.id
        db.session.flush()

        append_sale_event(
            sale_id=control.sale_id,
            event_type="boarding.updated",
            actor_user_id=operator.id,
            note=f"{current.value} -> {new_state.value}",
            payload={"control_id": control.id, "from": current.value, "to": new_state.value},
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Boarding control %s set to %s by operator %s", control_id, new_state.value, operator.id
    )
    return control


def _round_pct(part: int, whole: int) -> int:
    """Half-up integer percentage."""
    if not whole:
        return 0
    return (part * 200 + whole) // (2 * whole)


def get_occurrence_stats(operator: User, travel_date, travel_time, route_id=None) -> dict:
    """Aggregation over existing controls of the occurrence; no backfill."""
    vessel_id = require_active_operator(operator)
    vessel_id, route_id, travel_date, travel_time = _occurrence(vessel_id, travel_date, travel_time, route_id)

    vessel = db.session.get(Vessel, vessel_id)
    if not vessel:
        raise NotFoundError("Vessel not found", details={"vessel_id": vessel_id})

    counts = {state: 0 for state in BoardingStatus}
    rows = (
        _controls_query(vessel_id, route_id, travel_date, travel_time)
        .with_entities(BoardingControl.status, db.func.count(BoardingControl.id))
        .group_by(BoardingControl.status)
        .all()
    )
    for status, count in rows:
        counts[BoardingStatus(status)] = int(count)

    total = sum(counts.values())
    boarded = counts[BoardingStatus.EMBARCADO]
    return {
        "vessel_id": vessel.id,
        "vessel_name": vessel.name,
        "travel_date": travel_date.isoformat(),
        "travel_time": travel_time,
        "total": total,
        "boarded": boarded,
        "pending": counts[BoardingStatus.PENDIENTE],
        "not_boarded": counts[BoardingStatus.NO_EMBARCADO],
        "boarded_pct": _round_pct(boarded, total),
        "capacity": vessel.capacity,
        "remaining_capacity": vessel.capacity - boarded,
    }


def list_operator_trips(operator: User) -> list[dict]:
    """
    Upcoming occurrences (today onward) of the operator's vessel with
    passenger totals per boarding state. Sales without a control count as
    pending.
    """
    vessel_id = require_active_operator(operator)
    today = business_today()

    sales = (
        db.session.query(Sale)
        .filter(
            Sale.vessel_id == vessel_id,
            Sale.travel_date >= today,
            Sale.status == SaleStatus.CONFIRMADA,
        )
        .order_by(Sale.travel_date.asc(), Sale.travel_time.asc(), Sale.id.asc())
        .all()
    )
    controls = {}
    if sales:
        for control in db.session.query(BoardingControl).filter(
            BoardingControl.sale_id.in_([s.id for s in sales]),
            BoardingControl.vessel_id == vessel_id,
        ):
            controls[(control.sale_id, control.travel_date, control.travel_time)] = control

    trips: "OrderedDict[tuple[date, str], dict]" = OrderedDict()
    for sale in sales:
        key = (sale.travel_date, sale.travel_time)
        trip = trips.get(key)
        if trip is None:
            trip = trips[key] = {
                "travel_date": sale.travel_date.isoformat(),
                "travel_time": sale.travel_time,
                "routes": [],
                "sales": 0,
                "passengers": 0,
                "boarded": 0,
                "not_boarded": 0,
                "pending": 0,
            }
        route_name = sale.route.name if sale.route else None
        if route_name and route_name not in trip["routes"]:
            trip["routes"].append(route_name)
        trip["sales"] += 1
        trip["passengers"] += sale.passenger_count

        control = controls.get((sale.id, sale.travel_date, sale.travel_time))
        status = control.status if control else BoardingStatus.PENDIENTE
        if status == BoardingStatus.EMBARCADO:
            trip["boarded"] += sale.passenger_count
        elif status == BoardingStatus.NO_EMBARCADO:
            trip["not_boarded"] += sale.passenger_count
        else:
            trip["pending"] += sale.passenger_count

    return list(trips.values())
