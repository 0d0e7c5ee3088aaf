"""Helpers for parsing provider token expiry fields."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

# Used when a token response omits `expires_in`; both providers document one hour.
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


def parse_positive_seconds(value: Any) -> float | None:
    """Return a positive numeric duration in seconds when parseable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = float(value)
        return seconds if seconds > 0 else None
    if isinstance(value, str):
        try:
            seconds = float(value.strip())
        except ValueError:
            return None
        return seconds if seconds > 0 else None
    return None


def expires_at_from_payload(
    payload: Mapping[str, Any] | None,
    *,
    now: datetime | None = None,
    default_seconds: float = DEFAULT_TOKEN_LIFETIME_SECONDS,
) -> datetime:
    """Derive `now + expires_in` from an OAuth token payload."""
    issued_at = now or datetime.now(timezone.utc)
    expires_in = parse_positive_seconds(payload.get("expires_in")) if payload else None
    if expires_in is None:
        expires_in = default_seconds
    return issued_at + timedelta(seconds=expires_in)
