"""UTC clock used for every persisted timestamp (orders, offers, ledger, tracking)."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
