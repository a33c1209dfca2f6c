"""formulary: cosmetic formula editing, composition checks and batch scaling."""

import logging
import os
from typing import Any, Mapping

from flask import Flask, jsonify
from sqlalchemy.pool import StaticPool

from .authz import configure_login_manager
from .blueprints_registry import register_blueprints
from .config import ENV_DIAGNOSTICS, normalize_db_url
from .extensions import db, limiter
from .logging_config import configure_logging
from .resilience import register_resilience_handlers

logger = logging.getLogger(__name__)

# Pool arguments that only make sense for server databases
_SERVER_POOL_OPTIONS = ("pool_size", "max_overflow", "pool_recycle")


def create_app(config: Mapping[str, Any] | None = None) -> Flask:
    """Build the formulary app; ``config`` overrides the active profile."""
    app = Flask(__name__)
    os.makedirs(app.instance_path, exist_ok=True)

    _apply_config(app, config or {})
    _tune_sqlite_engine(app)

    db.init_app(app)
    limiter.init_app(app)
    configure_login_manager(app)

    from . import models  # noqa: F401  tables must be known before create_all

    register_blueprints(app)
    _register_health_route(app)
    configure_logging(app)
    register_resilience_handlers(app)

    from .management import register_commands

    register_commands(app)
    logger.debug("formulary app created for %s", app.config["FLASK_ENV"])
    return app


def _apply_config(app: Flask, overrides: Mapping[str, Any]) -> None:
    app.config.from_object("formulary.config.Config")
    app.config.update(overrides)
    if "DATABASE_URL" in overrides:
        app.config["SQLALCHEMY_DATABASE_URI"] = normalize_db_url(overrides["DATABASE_URL"])
    app.config.setdefault("FORMULA_EXPORT_FOLDER", None)
    if not app.config["FORMULA_EXPORT_FOLDER"]:
        app.config["FORMULA_EXPORT_FOLDER"] = os.path.join(app.instance_path, "exports")

    app.config["ENV_DIAGNOSTICS"] = ENV_DIAGNOSTICS
    for warning in ENV_DIAGNOSTICS["warnings"]:
        logger.warning("Config: %s", warning)


def _tune_sqlite_engine(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not uri.startswith("sqlite"):
        return
    options = {
        key: value
        for key, value in (app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {}).items()
        if key not in _SERVER_POOL_OPTIONS
    }
    if uri == "sqlite:///:memory:":
        # One shared connection, otherwise every checkout sees an empty database
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def _register_health_route(app: Flask) -> None:
    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "environment": app.config["ENV_DIAGNOSTICS"]["active"]})
