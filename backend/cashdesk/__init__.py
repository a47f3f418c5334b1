# backend/cashdesk/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db
from .time_utils import utcnow


MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def create_app(config_overrides: dict | None = None, clock=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)

    # Import models so create_all sees the state table
    from . import models  # noqa: F401
    from .services.terminal_service import Terminal

    terminal = Terminal.from_config(app.config, clock=clock or utcnow)
    app.extensions["cashdesk"] = terminal

    with app.app_context():
        db.create_all()
        terminal.load()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.promotions import promotions_bp
    from .routes.cart import cart_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(promotions_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)

    @app.after_request
    def autosave_state(response):
        if (
            app.config.get("AUTOSAVE_STATE")
            and request.method in MUTATING_METHODS
            and response.status_code < 500
        ):
            try:
                terminal.save()
            except Exception:
                app.logger.exception("Failed to save terminal state")
        return response

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
