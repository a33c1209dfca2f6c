"""User-facing notifiers for the formula workspace."""

from __future__ import annotations

import logging

from flask import flash

logger = logging.getLogger(__name__)


class FlashNotifier:
    """Queue messages for the next rendered page."""

    def notify_success(self, message: str) -> None:
        flash(message, "success")

    def notify_failure(self, message: str) -> None:
        flash(message, "danger")


class LoggingNotifier:
    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def notify_success(self, message: str) -> None:
        self.log.info(message)

    def notify_failure(self, message: str) -> None:
        self.log.error(message)
