from flask import Blueprint, request, jsonify, current_app

from ..services import customer_service
from ..decorators import require_auth, require_admin, require_sales_staff
from ..validation import ServiceError, InternalError, require_int


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_sales_staff
def list_customers_route():
    """Query: search?, nationality?, page?, per_page? (default 10)"""
    try:
        page = require_int(request.args.get("page", "1"), "page", minimum=1)
        per_page = require_int(request.args.get("per_page", "10"), "per_page", minimum=1, maximum=100)
        rows, total = customer_service.list_customers(
            search=request.args.get("search"),
            nationality=request.args.get("nationality"),
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "customers": [dict(c.to_dict(), sales_count=count) for c, count in rows],
            "total": total,
            "page": page,
            "per_page": per_page,
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/dni/<dni>")
@require_auth
@require_sales_staff
def find_by_dni_route(dni: str):
    """Customer look-up for the sale form, with its 5 latest sales."""
    try:
        customer, recent = customer_service.find_customer_by_dni(dni)
        return jsonify({
            "customer": customer.to_dict(),
            "recent_sales": [s.to_dict() for s in recent],
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_sales_staff
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": customer_service.get_customer(customer_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_sales_staff
def update_customer_route(customer_id: int):
    """Body: dni, first_name, last_name, phone?, email?, nationality?, address?"""
    try:
        data = request.get_json(silent=True) or {}
        customer = customer_service.update_customer(customer_id, data)
        return jsonify({"customer": customer.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_admin
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
        return jsonify({"message": "Customer deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
