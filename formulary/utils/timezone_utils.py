from __future__ import annotations

from datetime import datetime, timezone as dt_timezone


class TimezoneUtils:
    """Timestamp helpers; all stored timestamps are timezone-aware UTC."""

    @staticmethod
    def utc_now() -> datetime:
        """Return the current UTC timestamp (timezone aware)."""
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def ensure_utc(value: datetime | None) -> datetime | None:
        """Treat naive datetimes (SQLite round-trips) as UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt_timezone.utc)
        return value.astimezone(dt_timezone.utc)

    @staticmethod
    def to_iso(value: datetime | None) -> str | None:
        normalized = TimezoneUtils.ensure_utc(value)
        return normalized.isoformat() if normalized else None

    @staticmethod
    def parse_iso(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return TimezoneUtils.ensure_utc(parsed)
