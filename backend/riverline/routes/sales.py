"""Sales and cancellation API routes."""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service, cancellation_service, ledger_service
from ..decorators import require_auth, require_sales_staff
from ..validation import ServiceError, ValidationError, InternalError, require_int
from riverline.time_utils import parse_travel_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")
cancellations_bp = Blueprint("cancellations", __name__, url_prefix="/api/cancellations")


def _page_args() -> tuple[int, int]:
    page = require_int(request.args.get("page", "1"), "page", minimum=1)
    per_page = require_int(request.args.get("per_page", "20"), "per_page", minimum=1, maximum=100)
    return page, per_page


@sales_bp.post("")
@require_auth
@require_sales_staff
def create_sale_route():
    """
    Sell tickets for one occurrence.

    Body: customer {dni, first_name, last_name, phone?, email?}, route_id,
    vessel_id, boarding_port_id, travel_date, travel_time, boarding_time?,
    passenger_count, payment_type, payment_method | payment_methods, notes?
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.create_sale(
            customer=data.get("customer"),
            route_id=data.get("route_id"),
            vessel_id=data.get("vessel_id"),
            boarding_port_id=data.get("boarding_port_id"),
            travel_date=data.get("travel_date"),
            travel_time=data.get("travel_time"),
            boarding_time=data.get("boarding_time"),
            passenger_count=data.get("passenger_count"),
            payment_type=data.get("payment_type") or "UNICO",
            payment_method=data.get("payment_method"),
            payment_methods=data.get("payment_methods"),
            notes=data.get("notes"),
            seller_id=g.current_user.id,
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@sales_bp.get("")
@require_auth
@require_sales_staff
def list_sales_route():
    try:
        page, per_page = _page_args()
        travel_date = request.args.get("travel_date")
        if travel_date:
            try:
                travel_date = parse_travel_date(travel_date)
            except ValueError:
                raise ValidationError("travel_date must be a valid YYYY-MM-DD date", details={"field": "travel_date"})
        vessel_id = request.args.get("vessel_id")
        route_id = request.args.get("route_id")

        sales, total = sales_service.list_sales(
            g.current_user,
            status=request.args.get("status"),
            travel_date=travel_date or None,
            vessel_id=require_int(vessel_id, "vessel_id", minimum=1) if vessel_id else None,
            route_id=require_int(route_id, "route_id", minimum=1) if route_id else None,
            search=request.args.get("search"),
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "sales": [s.to_dict() for s in sales],
            "total": total,
            "page": page,
            "per_page": per_page,
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_sales_staff
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.current_user)
        cancellation = sale.cancellation
        return jsonify({
            "sale": sale.to_dict(),
            "cancellation": cancellation.to_dict() if cancellation else None,
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>/events")
@require_auth
@require_sales_staff
def sale_events_route(sale_id: int):
    try:
        sales_service.get_sale(sale_id, g.current_user)
        events = ledger_service.list_sale_events(sale_id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
@require_sales_staff
def cancel_sale_route(sale_id: int):
    """
    Void or refund a confirmed sale.

    Body: reason, notes?, cancellation_type (ANULACION | REEMBOLSO),
    refund_amount_cents (REEMBOLSO only)
    """
    try:
        data = request.get_json(silent=True) or {}
        result = cancellation_service.cancel_sale(
            sale_id,
            reason=data.get("reason"),
            notes=data.get("notes"),
            cancellation_type=data.get("cancellation_type") or "ANULACION",
            refund_amount_cents=data.get("refund_amount_cents"),
            acting_user_id=g.current_user.id,
        )
        payload = result.to_dict()
        payload["message"] = (
            f"Sale {result.sale.sale_number} {result.sale.status.value.lower()}; "
            f"{result.seats_released} seat(s) released"
        )
        return jsonify(payload), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@cancellations_bp.get("")
@require_auth
@require_sales_staff
def list_cancellations_route():
    try:
        page, per_page = _page_args()
        items, total = cancellation_service.list_cancellations(
            g.current_user,
            cancellation_type=request.args.get("cancellation_type"),
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "cancellations": [c.to_dict() for c in items],
            "total": total,
            "page": page,
            "per_page": per_page,
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
