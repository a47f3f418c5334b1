# Overview: Request decorators for API routes; terminal session and admin checks.

from functools import wraps
from flask import current_app, g, jsonify


def get_terminal():
    """The Terminal wired by create_app()."""
    return current_app.extensions["cashdesk"]


def require_auth(f):
    """
    Require an employee signed in at this terminal.

    Runs the idle check first, so a request arriving after the timeout is
    refused with the inactivity notice rather than reviving the session.
    Sets g.terminal and g.current_user (a UserView); the request itself
    counts as activity.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        terminal = get_terminal()

        notice = terminal.check_idle()
        if notice is not None:
            return jsonify({"error": notice.message, "idle_logout": notice.to_dict()}), 401

        user = terminal.auth.current_user
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if not user.is_active:
            terminal.logout()
            return jsonify({"error": "Employee account is inactive"}), 401

        terminal.touch()
        g.terminal = terminal
        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the signed-in employee to hold the admin role. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if not user.is_admin:
            return jsonify({"error": "Permission denied", "required_role": "admin"}), 403
        return f(*args, **kwargs)

    return decorated_function
