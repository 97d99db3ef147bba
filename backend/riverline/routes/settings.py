from flask import Blueprint, request, jsonify, g

from ..services import settings_service
from ..decorators import require_auth, require_admin
from ..validation import ServiceError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return jsonify({"settings": settings_service.all_settings()}), 200


@settings_bp.put("")
@require_auth
@require_admin
def update_settings_route():
    """Body: {"settings": {key: value, ...}}"""
    try:
        data = request.get_json(silent=True) or {}
        settings_service.set_many(data.get("settings"), user_id=g.current_user.id)
        return jsonify({"settings": settings_service.all_settings()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
