"""Routes, vessels, boarding ports and schedule assignments."""

from flask import Blueprint, request, jsonify, current_app
from werkzeug.exceptions import HTTPException

from ..extensions import db
from ..services import catalog_service
from ..decorators import require_auth, require_admin
from ..validation import ServiceError, InternalError, require_int


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")

ROUTE_FIELDS = ("name", "origin_port", "destination_port", "price_cents", "is_active")
VESSEL_FIELDS = ("name", "capacity", "vessel_type", "status")
PORT_FIELDS = ("name", "description", "address", "sort_order", "is_active")
SCHEDULE_FIELDS = ("departure_times", "operating_days", "is_active")


def _fields(data: dict, allowed: tuple) -> dict:
    return {k: data[k] for k in allowed if k in data}


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in {"1", "true", "yes"}


def _optional_id(name: str):
    value = request.args.get(name)
    return require_int(value, name, minimum=1) if value else None


@catalog_bp.errorhandler(ServiceError)
def _service_error(e: ServiceError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@catalog_bp.errorhandler(Exception)
def _unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    db.session.rollback()
    current_app.logger.exception("Catalog request failed")
    return jsonify(InternalError("Internal server error").to_dict()), 500


# ---------------------------------------------------------------- routes

@catalog_bp.get("/routes")
@require_auth
def list_routes_route():
    routes = catalog_service.list_routes(active_only=_flag("active"))
    return jsonify({"routes": [r.to_dict() for r in routes]}), 200


@catalog_bp.post("/routes")
@require_auth
@require_admin
def create_route_route():
    data = request.get_json(silent=True) or {}
    route = catalog_service.create_route(
        data.get("name"),
        data.get("origin_port"),
        data.get("destination_port"),
        data.get("price_cents"),
        is_active=data.get("is_active", True),
    )
    return jsonify({"route": route.to_dict()}), 201


@catalog_bp.put("/routes/<int:route_id>")
@require_auth
@require_admin
def update_route_route(route_id: int):
    data = request.get_json(silent=True) or {}
    route = catalog_service.update_route(route_id, **_fields(data, ROUTE_FIELDS))
    return jsonify({"route": route.to_dict()}), 200


@catalog_bp.delete("/routes/<int:route_id>")
@require_auth
@require_admin
def delete_route_route(route_id: int):
    catalog_service.delete_route(route_id)
    return jsonify({"message": "Route deleted"}), 200


# ---------------------------------------------------------------- vessels

@catalog_bp.get("/vessels")
@require_auth
def list_vessels_route():
    vessels = catalog_service.list_vessels(active_only=_flag("active"))
    return jsonify({"vessels": [v.to_dict() for v in vessels]}), 200


@catalog_bp.post("/vessels")
@require_auth
@require_admin
def create_vessel_route():
    data = request.get_json(silent=True) or {}
    vessel = catalog_service.create_vessel(
        data.get("name"),
        data.get("capacity"),
        vessel_type=data.get("vessel_type"),
        status=data.get("status") or "ACTIVA",
    )
    return jsonify({"vessel": vessel.to_dict()}), 201


@catalog_bp.put("/vessels/<int:vessel_id>")
@require_auth
@require_admin
def update_vessel_route(vessel_id: int):
    data = request.get_json(silent=True) or {}
    vessel = catalog_service.update_vessel(vessel_id, **_fields(data, VESSEL_FIELDS))
    return jsonify({"vessel": vessel.to_dict()}), 200


@catalog_bp.delete("/vessels/<int:vessel_id>")
@require_auth
@require_admin
def delete_vessel_route(vessel_id: int):
    catalog_service.delete_vessel(vessel_id)
    return jsonify({"message": "Vessel deleted"}), 200


# ---------------------------------------------------------------- ports

@catalog_bp.get("/ports")
@require_auth
def list_ports_route():
    ports = catalog_service.list_ports(active_only=_flag("active"))
    return jsonify({"ports": [p.to_dict() for p in ports]}), 200


@catalog_bp.post("/ports")
@require_auth
@require_admin
def create_port_route():
    data = request.get_json(silent=True) or {}
    port = catalog_service.create_port(
        data.get("name"),
        description=data.get("description"),
        address=data.get("address"),
        sort_order=data.get("sort_order", 0),
        is_active=data.get("is_active", True),
    )
    return jsonify({"port": port.to_dict()}), 201


@catalog_bp.put("/ports/<int:port_id>")
@require_auth
@require_admin
def update_port_route(port_id: int):
    data = request.get_json(silent=True) or {}
    port = catalog_service.update_port(port_id, **_fields(data, PORT_FIELDS))
    return jsonify({"port": port.to_dict()}), 200


# ---------------------------------------------------------------- schedules

@catalog_bp.get("/schedules")
@require_auth
def list_schedules_route():
    schedules = catalog_service.list_schedules(
        route_id=_optional_id("route_id"),
        vessel_id=_optional_id("vessel_id"),
        active_only=_flag("active"),
    )
    return jsonify({"schedules": [s.to_dict() for s in schedules]}), 200


@catalog_bp.post("/schedules")
@require_auth
@require_admin
def create_schedule_route():
    data = request.get_json(silent=True) or {}
    schedule = catalog_service.create_schedule(
        data.get("vessel_id"),
        data.get("route_id"),
        data.get("departure_times"),
        data.get("operating_days"),
        is_active=data.get("is_active", True),
    )
    return jsonify({"schedule": schedule.to_dict()}), 201


@catalog_bp.put("/schedules/<int:schedule_id>")
@require_auth
@require_admin
def update_schedule_route(schedule_id: int):
    data = request.get_json(silent=True) or {}
    schedule = catalog_service.update_schedule(schedule_id, **_fields(data, SCHEDULE_FIELDS))
    return jsonify({"schedule": schedule.to_dict()}), 200
