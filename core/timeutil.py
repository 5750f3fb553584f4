"""
Time and money helpers shared by the services.

Timestamps are stored as ISO-8601 strings in UTC, always produced by
utc_now_iso() so that lexical order matches chronological order. TTL
attributes (expiresAt) are epoch seconds.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def utc_now_iso() -> str:
    return to_iso(utc_now())


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp; accepts a trailing 'Z'. Naive values are UTC."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def epoch_seconds_from_now(**delta) -> int:
    """Epoch seconds at now + timedelta(**delta), for TTL attributes."""
    return int((utc_now() + timedelta(**delta)).timestamp())


def round2(amount: float) -> float:
    """Round a money amount to 2 decimals, halves away from zero."""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
