"""Logging setup shared by the web app and the CLI commands."""

from __future__ import annotations

import logging
import re

from flask import Flask

VERBOSE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d %(message)s"
COMPACT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

QUIET_LOGGERS = ("werkzeug", "urllib3", "sqlalchemy.engine", "flask_limiter", "weasyprint", "fontTools")

PII_PATTERNS = {
    "email": re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"),
    "bearer": re.compile(r"Bearer\s+[\w\-.=:+/]+", re.IGNORECASE),
    "token": re.compile(r"\b(token|api[_-]?key|secret|password)\s*[:=]\s*([^\s,;&]+)", re.IGNORECASE),
}


def redact(message: str) -> str:
    """Mask emails and credentials in a rendered log message."""
    message = PII_PATTERNS["email"].sub("[REDACTED_EMAIL]", message)
    message = PII_PATTERNS["bearer"].sub("Bearer [REDACTED]", message)
    return PII_PATTERNS["token"].sub(lambda match: f"{match.group(1)}=[REDACTED]", message)


class PiiRedactionFilter(logging.Filter):
    """Formats the record's args up front so redaction sees the final text."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact(rendered)
        record.args = ()
        return True


def configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL") or "INFO").strip().upper())
    if not isinstance(level, int):
        level = logging.INFO

    for name in (None, "formulary"):
        logging.getLogger(name).setLevel(level)
    app.logger.setLevel(level)

    if level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    compact = app.config.get("FLASK_ENV") == "production" and not app.debug
    formatter = logging.Formatter(COMPACT_FORMAT if compact else VERBOSE_FORMAT)
    redact_pii = bool(app.config.get("LOG_REDACT_PII", True))

    for handler in [*logging.getLogger().handlers, *app.logger.handlers]:
        handler.setFormatter(formatter)
        if redact_pii and not any(isinstance(f, PiiRedactionFilter) for f in handler.filters):
            handler.addFilter(PiiRedactionFilter())
