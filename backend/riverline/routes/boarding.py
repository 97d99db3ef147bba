"""
Boarding control routes.

Operator-only: every call is scoped to the vessel assigned to the caller.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import boarding_service
from ..decorators import require_auth, require_operator
from ..validation import ServiceError, InternalError


boarding_bp = Blueprint("boarding", __name__, url_prefix="/api/boarding")


@boarding_bp.get("/trips")
@require_auth
@require_operator
def trips_route():
    try:
        return jsonify({"trips": boarding_service.list_operator_trips(g.current_user)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@boarding_bp.get("/<travel_date>/<travel_time>/passengers")
@require_auth
@require_operator
def passengers_route(travel_date: str, travel_time: str):
    try:
        passengers = boarding_service.list_passengers(
            g.current_user,
            travel_date,
            travel_time,
            route_id=request.args.get("route_id"),
        )
        return jsonify({"passengers": passengers, "total": len(passengers)}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list boarding passengers")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@boarding_bp.get("/<travel_date>/<travel_time>/stats")
@require_auth
@require_operator
def stats_route(travel_date: str, travel_time: str):
    try:
        stats = boarding_service.get_occurrence_stats(
            g.current_user,
            travel_date,
            travel_time,
            route_id=request.args.get("route_id"),
        )
        return jsonify(stats), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@boarding_bp.put("/<int:control_id>/state")
@require_auth
@require_operator
def set_state_route(control_id: int):
    """Body: status (EMBARCADO | NO_EMBARCADO), notes?"""
    try:
        data = request.get_json(silent=True) or {}
        control = boarding_service.set_boarding_state(
            control_id,
            data.get("status"),
            g.current_user,
            notes=data.get("notes"),
        )
        return jsonify({"control": control.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update boarding state")
        return jsonify(InternalError("Internal server error").to_dict()), 500
