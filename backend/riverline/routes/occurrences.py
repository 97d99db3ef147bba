from flask import Blueprint, request, jsonify

from ..services import availability_service
from ..decorators import require_auth, require_sales_staff
from ..validation import ServiceError


occurrences_bp = Blueprint("occurrences", __name__, url_prefix="/api/occurrences")


@occurrences_bp.get("/<int:vessel_id>/<int:route_id>/<travel_date>/<travel_time>/availability")
@require_auth
@require_sales_staff
def availability_route(vessel_id: int, route_id: int, travel_date: str, travel_time: str):
    """Seat availability of one occurrence. ?passengers=N (default 1)."""
    try:
        result = availability_service.check_availability(
            vessel_id,
            route_id,
            travel_date,
            travel_time,
            request.args.get("passengers", "1"),
        )
        return jsonify(result.to_dict()), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
