# Overview: Request decorators for API routes: authentication and role gates.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.access_policy import actor_from_user, can_manage_inventory


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'actor')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: Actor(id, role) handed to the services
    - g.token: The plaintext bearer token (used by logout)

    Returns 401 if the Authorization header is missing, or the token is
    invalid, expired, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.actor = actor_from_user(user)
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_manager(f):
    """Require an Admin or Manager actor. Must be applied after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        if not can_manage_inventory(g.actor):
            return jsonify({
                "error": "Access denied: insufficient permissions",
                "code": "ACCESS_DENIED",
            }), 403

        return f(*args, **kwargs)

    return decorated_function
