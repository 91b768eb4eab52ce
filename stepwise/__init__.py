"""
Stepwise — content engine for a prompt-workflow sharing site.
Flask Application Factory.

Usage:
    from stepwise import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from stepwise.config import config
from stepwise.middleware.actor_context import init_actor_context
from stepwise.middleware.logging_config import configure_logging
from stepwise.middleware.timing import init_request_timing
from stepwise.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request middleware ───────────────────────────────────────────────
    init_request_timing(app)
    init_actor_context(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from stepwise.models import comment as _comment_models  # noqa: F401
    from stepwise.models import profile as _profile_models  # noqa: F401
    from stepwise.models import project as _project_models  # noqa: F401
    from stepwise.models import step as _step_models        # noqa: F401

    db_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        os.makedirs(os.path.dirname(db_uri[len("sqlite:///"):]) or ".", exist_ok=True)

    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from stepwise.blueprints.comment_bp import comment_bp
    from stepwise.blueprints.health_bp import health_bp
    from stepwise.blueprints.import_bp import import_bp
    from stepwise.blueprints.profile_bp import profile_bp
    from stepwise.blueprints.project_bp import project_bp
    from stepwise.blueprints.star_bp import star_bp

    app.register_blueprint(project_bp)
    app.register_blueprint(comment_bp)
    app.register_blueprint(star_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(import_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("recount-counters")
    def recount_counters_cmd():
        """Recompute star/fork/comment counters of every project from child rows."""
        from stepwise.services.counter_sync import heal_all_projects

        stats = heal_all_projects()
        click.echo(f"Recounted {stats['projects']} project(s), {stats['failed_writes']} failed write(s).")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
