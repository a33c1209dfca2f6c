"""Token authentication for the formula API (Flask-Login loaders)."""

from __future__ import annotations

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db, login_manager

BEARER_PREFIX = "bearer "


def configure_login_manager(app):
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    @login_manager.user_loader
    def load_user(user_id):
        from .models import User

        if not str(user_id).isdigit():
            return None
        return _active_or_none(lambda: db.session.get(User, int(user_id)))

    @login_manager.request_loader
    def load_user_from_request(req):
        from .models import User

        token = _request_token(req)
        if token is None:
            return None
        return _active_or_none(lambda: User.query.filter_by(api_token=token).first())


def _active_or_none(lookup):
    try:
        user = lookup()
    except SQLAlchemyError:
        _rollback_safely()
        return None
    return user if user is not None and user.is_active else None


def _request_token(req) -> str | None:
    """Bearer header first, then ``?token=`` for links the browser opens directly."""
    header = req.headers.get("Authorization", "")
    if header[:len(BEARER_PREFIX)].lower() == BEARER_PREFIX and header[len(BEARER_PREFIX):].strip():
        return header[len(BEARER_PREFIX):].strip()
    return req.args.get("token", "").strip() or None


def _rollback_safely() -> None:
    try:
        db.session.rollback()
    except SQLAlchemyError:
        # The connection is already gone; the teardown handler removes the session
        pass
