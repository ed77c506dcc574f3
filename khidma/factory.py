# -*- coding: utf-8 -*-
import os
from pathlib import Path

from flask import Flask, request
from flask_cors import CORS

from khidma.config import Config
from khidma.database import db
from khidma.infra.auth import init_auth
from khidma.middleware.errors import register_error_handlers

# Observability imports
from khidma.services.metrics import init_metrics
from khidma.services.payments import init_payments
from khidma.services.request_context import init_request_context
from khidma.services.structured_logging import init_logging

BASE_DIR = Path(__file__).resolve().parent.parent


def _default_sqlite_url() -> str:
    db_path = BASE_DIR / "instance" / "khidma.db"
    os.makedirs(db_path.parent, exist_ok=True)
    return f"sqlite:///{db_path}"


def _migrate_db(app):
    """Run Alembic migrations to head using the app's DB URL."""
    from alembic import command
    from alembic.config import Config as AlembicConfig

    cfg = AlembicConfig()  # in-memory config, avoid alembic.ini dependency
    cfg.set_main_option("script_location", str(BASE_DIR / "migrations"))
    cfg.set_main_option("sqlalchemy.url", app.config["SQLALCHEMY_DATABASE_URI"])

    try:
        command.upgrade(cfg, "head")
        app.logger.info("Database migrations applied successfully")
    except Exception as e:
        app.logger.error(f"Migration failed: {e}")
        raise


CORS_HEADERS = ["Content-Type", "Authorization", "X-Client-Info", "Apikey"]

# URL prefix -> methods served cross-origin
CORS_PREFIXES = {
    r"/api/*": ["GET", "POST", "OPTIONS"],
    r"/functions/*": ["POST", "OPTIONS"],
}


def _init_cors(app: Flask):
    origins = app.config["CORS_ALLOWED_ORIGINS"]
    CORS(app, resources={
        prefix: {
            "origins": origins,
            "methods": methods,
            "allow_headers": CORS_HEADERS,
            "supports_credentials": False,
            "max_age": 600,
        }
        for prefix, methods in CORS_PREFIXES.items()
    })

    @app.after_request
    def echo_origin(response):
        # The web client is served from several origins; unknown ones get "*"
        origin = request.headers.get("Origin")
        response.headers["Access-Control-Allow-Origin"] = origin if origin in origins else "*"
        response.headers["Access-Control-Allow-Headers"] = ", ".join(CORS_HEADERS)
        return response


def create_app(config_overrides=None, payments=None) -> Flask:
    """
    Build the API application.

    Args:
        config_overrides: values applied on top of the environment config
        payments: payments gateway to use instead of the Stripe one
    """
    app = Flask(__name__)
    app.url_map.strict_slashes = False

    # --- Core config ---
    app.config.from_mapping(Config().as_dict())
    if config_overrides:
        app.config.from_mapping(config_overrides)
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.config["SQLALCHEMY_DATABASE_URI"] = _default_sqlite_url()

    db.init_app(app)

    # --- Bearer tokens and CORS ---
    init_auth(app)
    _init_cors(app)

    # --- Observability ---
    init_request_context(app)
    init_logging(app)
    init_metrics(app)

    # --- Errors and payments ---
    register_error_handlers(app)
    init_payments(app, payments)

    # --- Blueprints ---
    from khidma.routes import health, jobs, orders, stripe_webhooks, subscriptions
    app.register_blueprint(health.health_bp)
    app.register_blueprint(orders.orders_bp)
    app.register_blueprint(subscriptions.subscriptions_bp)
    app.register_blueprint(stripe_webhooks.stripe_webhooks_bp)
    app.register_blueprint(jobs.jobs_bp)

    from khidma.jobs.cli import jobs_cli
    app.cli.add_command(jobs_cli)

    # --- DB init ---
    with app.app_context():
        import khidma.models  # noqa: F401  (register tables on the metadata)

        is_testing = app.config.get("TESTING")
        if is_testing or app.config.get("DB_AUTOCREATE"):
            db.create_all()
        elif app.config.get("DB_MIGRATE_ON_START"):
            _migrate_db(app)

    return app
