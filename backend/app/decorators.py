# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, auth_service
from .services.session_service import CallerContext


OUTLET_HEADER = "X-Outlet-Id"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_staff') and hasattr(g, 'caller')


def _selected_outlet_id(staff):
    """
    Outlet chosen by the X-Outlet-Id header.

    Staff assigned to exactly one outlet may omit the header.
    Returns (outlet_id, error_message).
    """
    raw = request.headers.get(OUTLET_HEADER)
    if raw is None:
        outlet_ids = staff.outlet_ids
        if len(outlet_ids) == 1:
            return outlet_ids[0], None
        return None, f"{OUTLET_HEADER} header required"
    try:
        return int(raw), None
    except ValueError:
        return None, f"Invalid {OUTLET_HEADER} header"


def require_auth(f):
    """
    Require authentication and establish the caller context.

    Sets the following Flask g attributes:
    - g.current_staff: The authenticated Staff object
    - g.outlet_id: The outlet selected for this request
    - g.caller: CallerContext passed to the services

    SECURITY: Returns 401 for a missing or invalid token and 403 when the
    selected outlet is not one the staff member may act in.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        staff = session_service.validate_session(token)

        if not staff:
            return jsonify({"error": "Invalid or expired token"}), 401

        outlet_id, error = _selected_outlet_id(staff)
        if error:
            return jsonify({"error": error}), 400

        if not auth_service.can_access_outlet(staff, outlet_id):
            return jsonify({
                "error": "Outlet not assigned to this staff member",
                "code": "AUTHORIZATION_FAILED",
            }), 403

        g.current_staff = staff
        g.outlet_id = outlet_id
        g.caller = CallerContext.for_staff(staff, outlet_id)

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the authenticated staff member to hold one of roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_staff.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "code": "AUTHORIZATION_FAILED",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
