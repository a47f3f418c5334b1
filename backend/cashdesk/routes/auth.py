# Overview: Flask API routes for terminal sign-in, activity and employee accounts.

"""
Authentication API routes

The terminal holds at most one signed-in employee. There are no bearer
tokens: the session lives in the Terminal wired by create_app(), and every
protected route checks it through @require_auth.

SECURITY FEATURES:
- Unknown code and wrong password give the same 401 answer
- Deactivated accounts and sessions open at another terminal are refused
  with their own messages
- Idle sessions are closed before any protected request is served
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import get_terminal, require_admin, require_auth
from ..models import ROLE_EMPLOYEE
from ..services.auth_service import PasswordValidationError, UserDirectoryError
from ..services.session_service import AccountInactiveError, ConcurrentSessionError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(terminal) -> dict:
    session = terminal.auth.current_session()
    return {
        "user": terminal.auth.current_user.to_dict(),
        "terminal_id": terminal.terminal_id,
        "session": session.to_dict() if session else None,
        "seconds_left": terminal.auth.seconds_left(),
    }


@auth_bp.post("/login")
def login_route():
    """
    Sign an employee in at this terminal.

    Request body: {"code": "E001", "password": "..."}

    Returns:
        200: user, session, seconds_left
        400: missing fields
        401: invalid credentials
        403: account inactive
        409: employee active at another terminal
    """
    try:
        data = request.get_json(silent=True) or {}
        code = (data.get("code") or "").strip()
        password = data.get("password")

        if not code or not password:
            return jsonify({"error": "code and password required"}), 400

        terminal = get_terminal()
        if not terminal.login(code, password):
            return jsonify({"error": "Invalid credentials"}), 401

        return jsonify(_session_payload(terminal)), 200

    except AccountInactiveError as e:
        return jsonify({"error": str(e)}), 403
    except ConcurrentSessionError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    g.terminal.logout()
    return jsonify({"message": "Logged out"}), 200


@auth_bp.post("/activity")
@require_auth
def activity_route():
    """Heartbeat from the UI on keyboard or pointer input."""
    return jsonify({"seconds_left": g.terminal.auth.seconds_left()}), 200


@auth_bp.get("/session")
def session_route():
    """
    Current session of this terminal.

    Runs the idle check, so a UI polling this endpoint learns about an idle
    logout from the response.
    """
    terminal = get_terminal()
    notice = terminal.check_idle()
    if notice is not None:
        return jsonify({"authenticated": False, "idle_logout": notice.to_dict()}), 200
    if not terminal.auth.is_authenticated:
        return jsonify({"authenticated": False, "terminal_id": terminal.terminal_id}), 200
    return jsonify({"authenticated": True, **_session_payload(terminal)}), 200


# =============================================================================
# EMPLOYEE ACCOUNTS (admin)
# =============================================================================

@auth_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    return jsonify({"users": [u.to_dict() for u in g.terminal.users.list_users()]}), 200


@auth_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    """
    Create an employee account.

    Request body: {"code", "name", "password", "role" (optional)}
    """
    try:
        data = request.get_json(silent=True) or {}
        user = g.terminal.users.create_user(
            code=data.get("code", ""),
            name=data.get("name", ""),
            password=data.get("password") or "",
            role=data.get("role") or ROLE_EMPLOYEE,
        )
        return jsonify({"user": user.to_dict()}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except UserDirectoryError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/users/<user_id>/deactivate")
@require_auth
@require_admin
def deactivate_user_route(user_id: str):
    if g.terminal.users.get(user_id) is None:
        return jsonify({"error": "User not found"}), 404
    if user_id == g.current_user.id:
        return jsonify({"error": "Cannot deactivate your own account"}), 400
    user = g.terminal.users.deactivate_user(user_id)
    return jsonify({"user": user.to_dict()}), 200
