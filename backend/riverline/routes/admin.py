"""
Admin API routes: user accounts and operator-to-vessel assignment.

All endpoints require ADMINISTRADOR.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service, operator_service
from ..decorators import require_auth, require_admin
from ..models.enums import Role
from ..validation import ServiceError, ValidationError, InternalError


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    try:
        role = request.args.get("role")
        if role:
            try:
                role = Role(role)
            except ValueError:
                raise ValidationError(f"Invalid role: {role}", details={"field": "role"})
        users = auth_service.list_users(role=role or None)
        return jsonify({"users": [u.to_dict() for u in users]}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    """Body: username, email, password, role, first_name?, last_name?"""
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or Role.VENDEDOR.value,
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
        )
        return jsonify({"user": user.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@admin_bp.get("/operators")
@require_auth
@require_admin
def list_operators_route():
    operators = operator_service.list_operators()
    return jsonify({"operators": [o.to_dict() for o in operators]}), 200


@admin_bp.put("/operators/<int:operator_id>/vessel")
@require_auth
@require_admin
def assign_vessel_route(operator_id: int):
    """Body: vessel_id"""
    try:
        data = request.get_json(silent=True) or {}
        operator = operator_service.assign_vessel(operator_id, data.get("vessel_id"))
        return jsonify({"operator": operator.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign vessel")
        return jsonify(InternalError("Internal server error").to_dict()), 500


@admin_bp.put("/operators/<int:operator_id>/status")
@require_auth
@require_admin
def operator_status_route(operator_id: int):
    """Body: status (ACTIVO | INACTIVO)"""
    try:
        data = request.get_json(silent=True) or {}
        operator = operator_service.set_operator_status(operator_id, data.get("status"))
        return jsonify({"operator": operator.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update operator status")
        return jsonify(InternalError("Internal server error").to_dict()), 500
