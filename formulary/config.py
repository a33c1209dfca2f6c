"""
Environment-driven configuration for formulary.

``FLASK_ENV`` picks one of the profile classes below; every other setting is
read through :class:`EnvReader`, which falls back to defaults and records a
warning when a variable is malformed instead of failing at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, TypeVar

T = TypeVar("T")

ENVIRONMENT_VARIABLE = "FLASK_ENV"
DEFAULT_ENVIRONMENT = "development"
ENVIRONMENTS = ("development", "testing", "staging", "production")

_BOOL_WORDS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}

_INSTANCE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "instance"))


@dataclass(frozen=True)
class EnvironmentInfo:
    name: str
    source: str
    raw_value: str


class EnvReader:
    """Typed accessors over an environment mapping (``os.environ`` by default)."""

    def __init__(self, data: Mapping[str, str] | None = None):
        self._data = dict(os.environ if data is None else data)
        self.warnings: list[str] = []

    def _lookup(self, key: str) -> str | None:
        # Blank values count as unset
        value = (self._data.get(key) or "").strip()
        return value or None

    def _typed(self, key: str, default: T, kind: str, convert: Callable[[str], T]) -> T:
        value = self._lookup(key)
        if value is None:
            return default
        try:
            return convert(value)
        except ValueError:
            self.warnings.append(f"{key}={value!r} is not a valid {kind}; using {default!r}.")
            return default

    def str(self, key: str, default: str | None = None) -> str | None:
        value = self._lookup(key)
        return default if value is None else value

    def int(self, key: str, default: int = 0) -> int:
        return self._typed(key, default, "integer", int)

    def float(self, key: str, default: float = 0.0) -> float:
        return self._typed(key, default, "number", float)

    def bool(self, key: str, default: bool = False) -> bool:
        def convert(value: str) -> bool:
            try:
                return _BOOL_WORDS[value.lower()]
            except KeyError:
                raise ValueError(value)

        return self._typed(key, default, "boolean", convert)


def normalize_db_url(url: str | None) -> str | None:
    """SQLAlchemy only accepts the ``postgresql://`` scheme."""
    if not url:
        return None
    scheme, sep, rest = url.partition("://")
    if sep and scheme == "postgres":
        return f"postgresql://{rest}"
    return url


def resolve_environment(reader: EnvReader) -> EnvironmentInfo:
    raw_value = reader.str(ENVIRONMENT_VARIABLE, DEFAULT_ENVIRONMENT)
    name = raw_value.strip().lower()
    if name not in ENVIRONMENTS:
        raise RuntimeError(
            f"{ENVIRONMENT_VARIABLE}={raw_value!r} is not recognised; use one of {', '.join(ENVIRONMENTS)}."
        )
    return EnvironmentInfo(name=name, source=ENVIRONMENT_VARIABLE, raw_value=raw_value)


env = EnvReader()
ENV_INFO = resolve_environment(env)


def _database_uri(fallback: str | None = None) -> str | None:
    return normalize_db_url(env.str("DATABASE_URL")) or fallback


class BaseConfig:
    FLASK_ENV = ENV_INFO.name
    SECRET_KEY = env.str("FLASK_SECRET_KEY", "formulary-dev-secret")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = env.str("LOG_LEVEL", "WARNING")
    LOG_REDACT_PII = env.bool("LOG_REDACT_PII", True)

    RATELIMIT_ENABLED = env.bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = env.str("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = env.str("RATELIMIT_DEFAULT", "600 per hour;120 per minute")
    EXPORT_RATE_LIMIT = env.str("EXPORT_RATE_LIMIT", "30 per minute")

    # Remote formula API used by HttpFormulaStore
    FORMULA_API_BASE_URL = env.str("FORMULA_API_BASE_URL")
    FORMULA_API_TOKEN = env.str("FORMULA_API_TOKEN")
    FORMULA_API_TIMEOUT_SECONDS = env.float("FORMULA_API_TIMEOUT_SECONDS", 10.0)
    FORMULA_API_ATOMIC_SAVE = env.bool("FORMULA_API_ATOMIC_SAVE", False)

    # Empty means <instance>/exports, filled in by create_app
    FORMULA_EXPORT_FOLDER = env.str("FORMULA_EXPORT_FOLDER")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_uri("sqlite:///" + os.path.join(_INSTANCE_DIR, "formulary.db"))


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"


class StagingConfig(BaseConfig):
    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_size": 5, "pool_recycle": 1800}


class ProductionConfig(StagingConfig):
    LOG_LEVEL = env.str("LOG_LEVEL", "INFO")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": env.int("SQLALCHEMY_POOL_SIZE", 10),
        "max_overflow": env.int("SQLALCHEMY_MAX_OVERFLOW", 10),
        "pool_recycle": 1800,
    }


PROFILES = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}

Config = PROFILES[ENV_INFO.name]

ENV_DIAGNOSTICS = {
    "active": ENV_INFO.name,
    "source": ENV_INFO.source,
    "warnings": tuple(env.warnings),
}
