"""
Sales service - ticket sales for one trip occurrence.

A sale pins the route price and IGV rate at sale time, consumes seats from
the occurrence and is numbered per business day (V{YYMMDD}-{NNN}).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Sale, Route, Vessel, BoardingPort, User, Customer
from ..models.enums import SaleStatus, PaymentType, PaymentMethod, VesselStatus, Role
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    require_int,
    optional_text,
)
from .availability_service import normalize_occurrence, sold_seats
from .catalog_service import validate_operating_day
from .concurrency import begin_write, lock_for_update
from .customer_service import normalize_customer_input, resolve_or_create_customer
from .document_service import next_sale_number
from .ledger_service import append_sale_event
from . import settings_service
from riverline.time_utils import business_today, is_hhmm


# Maximum booking horizon
MAX_DAYS_AHEAD = 365
# Tolerance when matching split payments against the total
HYBRID_TOLERANCE_CENTS = 1
DEFAULT_BOARDING_LEAD_MINUTES = 30


def compute_tax_cents(subtotal_cents: int, tax_rate_bps: int) -> int:
    """Tax rounded half-up to the cent."""
    return (subtotal_cents * tax_rate_bps + 5_000) // 10_000


def compute_totals(unit_price_cents: int, passenger_count: int, tax_rate_bps: int) -> tuple[int, int, int]:
    """Returns (subtotal_cents, tax_cents, total_cents)."""
    subtotal = unit_price_cents * passenger_count
    tax = compute_tax_cents(subtotal, tax_rate_bps)
    return subtotal, tax, subtotal + tax


def _parse_method(value, field: str = "payment_method") -> PaymentMethod:
    try:
        return PaymentMethod(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid payment method: {value}", code="INVALID_PAYMENT_METHOD", details={"field": field})


def normalize_payment(payment_type, payment_method=None, payment_methods=None) -> tuple[PaymentType, PaymentMethod, list[dict] | None]:
    """
    Shape check of the payment block; amounts are matched to the total later.

    UNICO needs one payment_method. HIBRIDO needs a non-empty payment_methods
    list of {"method", "amount_cents"} with positive amounts.
    """
    try:
        payment_type = PaymentType(str(payment_type or PaymentType.UNICO.value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid payment type: {payment_type}", details={"field": "payment_type"})

    if payment_type == PaymentType.UNICO:
        if not payment_method:
            raise ValidationError("payment_method is required", details={"field": "payment_method"})
        return payment_type, _parse_method(payment_method), None

    if not isinstance(payment_methods, list) or not payment_methods:
        raise ValidationError(
            "Hybrid payments require at least one payment method",
            code="INVALID_HYBRID_PAYMENT",
            details={"field": "payment_methods"},
        )
    splits = []
    for entry in payment_methods:
        if not isinstance(entry, dict) or not entry.get("method"):
            raise ValidationError(
                "Each hybrid payment needs a method and an amount",
                code="INVALID_HYBRID_PAYMENT",
                details={"field": "payment_methods"},
            )
        method = _parse_method(entry.get("method"), field="payment_methods")
        amount = require_int(entry.get("amount_cents"), "amount_cents", minimum=1)
        splits.append({"method": method.value, "amount_cents": amount})
    return payment_type, PaymentMethod(splits[0]["method"]), splits


def _default_boarding_time(travel_time: str) -> str:
    hours, minutes = (int(part) for part in travel_time.split(":"))
    start = datetime(2000, 1, 1, hours, minutes) - timedelta(minutes=DEFAULT_BOARDING_LEAD_MINUTES)
    if start.day != 1:
        return "00:00"
    return start.strftime("%H:%M")


def _check_payment_enabled(payment_method: PaymentMethod, splits: list[dict] | None) -> None:
    methods = [PaymentMethod(s["method"]) for s in splits] if splits else [payment_method]
    for method in methods:
        if not settings_service.is_payment_method_enabled(method):
            raise ValidationError(
                f"Payment method {method.value} is not enabled",
                code="PAYMENT_METHOD_DISABLED",
                details={"method": method.value},
            )


def create_sale(
    *,
    customer: dict,
    route_id,
    vessel_id,
    travel_date,
    travel_time,
    passenger_count,
    seller_id: int,
    boarding_port_id,
    boarding_time=None,
    payment_type=PaymentType.UNICO.value,
    payment_method=None,
    payment_methods=None,
    notes=None,
) -> Sale:
    """
    Sell passenger_count seats of one occurrence.

    The capacity re-check, customer upsert, numbering and insert share one
    write transaction: BEGIN IMMEDIATE on SQLite, a row lock on the vessel
    elsewhere. A shortfall raises ConflictError(INSUFFICIENT_AVAILABILITY).
    No retries.
    """
    vessel_id, route_id, travel_date, travel_time = normalize_occurrence(
        vessel_id, route_id, travel_date, travel_time
    )
    passenger_count = require_int(passenger_count, "passenger_count", minimum=1)
    boarding_port_id = require_int(boarding_port_id, "boarding_port_id", minimum=1)
    if boarding_time in (None, ""):
        boarding_time = _default_boarding_time(travel_time)
    elif not is_hhmm(boarding_time):
        raise ValidationError("boarding_time must use HH:MM format", details={"field": "boarding_time"})
    notes = optional_text(notes, "notes")
    normalize_customer_input(customer)
    payment_type, primary_method, splits = normalize_payment(payment_type, payment_method, payment_methods)

    today = business_today()
    if travel_date < today:
        raise ValidationError("Travel date cannot be in the past", code="TRAVEL_DATE_IN_PAST")
    if travel_date > today + timedelta(days=MAX_DAYS_AHEAD):
        raise ValidationError("Travel date cannot be more than one year ahead", code="TRAVEL_DATE_TOO_FAR")

    try:
        begin_write()

        route = db.session.get(Route, route_id)
        if not route:
            raise NotFoundError("Route not found", details={"route_id": route_id})
        if not route.is_active:
            raise ValidationError("Route is not active", code="ROUTE_INACTIVE")

        vessel = lock_for_update(db.session.query(Vessel).filter_by(id=vessel_id)).first()
        if not vessel:
            raise NotFoundError("Vessel not found", details={"vessel_id": vessel_id})
        if vessel.status != VesselStatus.ACTIVA:
            raise ValidationError(
                f"Vessel is not available for sale (status {vessel.status.value})",
                code="VESSEL_NOT_ACTIVE",
            )

        port = db.session.get(BoardingPort, boarding_port_id)
        if not port or not port.is_active:
            raise NotFoundError("Boarding port not found", details={"boarding_port_id": boarding_port_id})

        schedule = validate_operating_day(vessel.id, route.id, travel_date)
        if travel_time not in (schedule.departure_times or []):
            raise ValidationError(
                f"No departure at {travel_time} for this vessel and route",
                code="INVALID_DEPARTURE_TIME",
                details={"departure_times": list(schedule.departure_times or [])},
            )

        _check_payment_enabled(primary_method, splits)

        tax_rate_bps = settings_service.get_tax_rate_bps()
        subtotal, tax, total = compute_totals(route.price_cents, passenger_count, tax_rate_bps)

        if splits is not None:
            paid = sum(s["amount_cents"] for s in splits)
            if abs(paid - total) > HYBRID_TOLERANCE_CENTS:
                raise ValidationError(
                    "Hybrid payment amounts must add up to the sale total",
                    code="PAYMENT_TOTAL_MISMATCH",
                    details={"total_cents": total, "paid_cents": paid},
                )

        sold = sold_seats(vessel.id, route.id, travel_date, travel_time)
        remaining = vessel.capacity - sold
        if passenger_count > remaining:
            raise ConflictError(
                f"insufficient availability: only {max(remaining, 0)} seats left",
                code="INSUFFICIENT_AVAILABILITY",
                details={"remaining": max(remaining, 0), "requested": passenger_count, "capacity": vessel.capacity},
            )

        customer_row = resolve_or_create_customer(customer)

        sale = Sale(
            sale_number=next_sale_number(today),
            customer_id=customer_row.id,
            route_id=route.id,
            vessel_id=vessel.id,
            seller_id=seller_id,
            boarding_port_id=port.id,
            travel_date=travel_date,
            travel_time=travel_time,
            boarding_time=boarding_time,
            origin_port=route.origin_port,
            destination_port=route.destination_port,
            passenger_count=passenger_count,
            unit_price_cents=route.price_cents,
            subtotal_cents=subtotal,
            tax_rate_bps=tax_rate_bps,
            tax_cents=tax,
            total_cents=total,
            payment_type=payment_type,
            payment_method=primary_method,
            payment_methods=splits,
            status=SaleStatus.CONFIRMADA,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        append_sale_event(
            sale_id=sale.id,
            event_type="sale.created",
            actor_user_id=seller_id,
            note=f"Sale {sale.sale_number} created",
            payload={
                "passenger_count": passenger_count,
                "total_cents": total,
                "travel_date": travel_date.isoformat(),
                "travel_time": travel_time,
            },
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Sale %s created: %s seats on vessel %s route %s %s %s",
        sale.sale_number, passenger_count, vessel_id, route_id, travel_date.isoformat(), travel_time,
    )
    return sale


def _ensure_can_view(sale: Sale, user: User) -> None:
    if user.role == Role.ADMINISTRADOR:
        return
    if user.role == Role.VENDEDOR and sale.seller_id == user.id:
        return
    raise ForbiddenError("You can only view your own sales", code="NOT_SALE_OWNER")


def get_sale(sale_id: int, user: User) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    _ensure_can_view(sale, user)
    return sale


def list_sales(
    user: User,
    *,
    status: str | None = None,
    travel_date: date | None = None,
    vessel_id: int | None = None,
    route_id: int | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Sale], int]:
    """Paginated listing. Sellers only see the sales they made."""
    query = db.session.query(Sale)

    if user.role != Role.ADMINISTRADOR:
        query = query.filter(Sale.seller_id == user.id)
    if status:
        try:
            query = query.filter(Sale.status == SaleStatus(status))
        except ValueError:
            raise ValidationError(f"Invalid status: {status}", details={"field": "status"})
    if travel_date is not None:
        query = query.filter(Sale.travel_date == travel_date)
    if vessel_id is not None:
        query = query.filter(Sale.vessel_id == vessel_id)
    if route_id is not None:
        query = query.filter(Sale.route_id == route_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.join(Customer, Sale.customer_id == Customer.id).filter(
            db.or_(
                Sale.sale_number.ilike(term),
                Customer.dni.ilike(term),
                Customer.first_name.ilike(term),
                Customer.last_name.ilike(term),
            )
        )

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return sales, total
