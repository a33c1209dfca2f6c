"""Extension singletons, bound to the app inside create_app."""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager, current_user
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
login_manager = LoginManager()

FALLBACK_RATE_LIMITS = ("600 per hour", "120 per minute")


def _configured_limits():
    # "a;b" or "a,b" both split into separate limits
    raw = current_app.config.get("RATELIMIT_DEFAULT") or ""
    limits = [part.strip() for part in raw.replace(",", ";").split(";") if part.strip()]
    return limits or list(FALLBACK_RATE_LIMITS)


def _rate_limit_key():
    """Token holders are limited per account, anonymous callers per address."""
    if current_user and current_user.is_authenticated:
        return f"user:{current_user.get_id()}"
    return get_remote_address()


def _default_limit_string():
    return ";".join(_configured_limits())


limiter = Limiter(key_func=_rate_limit_key, default_limits=[_default_limit_string])
