"""Request teardown and JSON error handlers.

Synopsis:
Rolls back the database session after failed requests and turns formula
store and engine errors into JSON responses.

Glossary:
- Teardown rollback: discarding a half-finished transaction at request end.
- Store error: A FormulaStoreError carrying the HTTP status it should surface as.
"""

from __future__ import annotations

import logging

from flask import jsonify
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

from .extensions import db
from .services.formula_engine import FormulaEngineError, FormulaStoreError

logger = logging.getLogger(__name__)


def register_resilience_handlers(app) -> None:
    """Install global DB rollback and JSON error handlers."""

    @app.teardown_request
    def _rollback_on_error(exc):
        try:
            if exc is not None:
                db.session.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback during teardown failed", exc_info=True)
        finally:
            db.session.remove()

    @app.errorhandler(FormulaStoreError)
    def _store_error_handler(error: FormulaStoreError):
        payload = {"error": str(error)}
        expected = getattr(error, "expected_version", None)
        if expected is not None:
            payload["expected_version"] = expected
            payload["actual_version"] = getattr(error, "actual_version", None)
        return jsonify(payload), error.status_code

    @app.errorhandler(FormulaEngineError)
    def _engine_error_handler(error: FormulaEngineError):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(OperationalError)
    @app.errorhandler(DBAPIError)
    def _db_error_handler(error):
        try:
            db.session.rollback()
        except SQLAlchemyError:
            pass
        logger.error("Database unavailable: %s", error)
        return jsonify({"error": "Service temporarily unavailable. Please try again shortly."}), 503
