from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .models.enums import Role
from .validation import UnauthenticatedError, ForbiddenError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user and g.session_context. Returns 401 when the header is
    missing, the token is unknown, expired or revoked, or the user has been
    deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify(UnauthenticatedError("Authentication required").to_dict()), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)

        if not context:
            return jsonify(UnauthenticatedError("Invalid or expired token").to_dict()), 401

        g.current_user = context.user
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """Allow only the given roles. Must be stacked below @require_auth."""
    allowed = {Role(r) for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify(UnauthenticatedError("Authentication required").to_dict()), 401

            if g.current_user.role not in allowed:
                err = ForbiddenError(
                    "Permission denied",
                    code="ROLE_NOT_ALLOWED",
                    details={"required_roles": sorted(r.value for r in allowed)},
                )
                return jsonify(err.to_dict()), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


require_admin = require_role(Role.ADMINISTRADOR)
require_sales_staff = require_role(Role.ADMINISTRADOR, Role.VENDEDOR)
require_operator = require_role(Role.OPERADOR_EMBARCACION)
