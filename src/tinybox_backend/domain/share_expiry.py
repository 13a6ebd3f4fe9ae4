from __future__ import annotations

from datetime import datetime, timedelta, timezone


SHARE_LINK_TTL_SECONDS = 600
SHARE_LINK_TTL = timedelta(seconds=SHARE_LINK_TTL_SECONDS)


def assume_utc(dt: datetime) -> datetime:
    # SQLite may return naive datetimes even when the column was declared with timezone=True.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def calculate_share_expiry(created_at: datetime) -> datetime:
    return assume_utc(created_at) + SHARE_LINK_TTL


def share_expiry_instant(created_at: datetime, *, permanent: bool) -> datetime | None:
    """Instant the share stops resolving, or None when it never does."""
    if permanent:
        return None
    return calculate_share_expiry(created_at)


def is_share_expired(
    created_at: datetime, *, permanent: bool, now: datetime | None = None
) -> bool:
    expiry = share_expiry_instant(created_at, permanent=permanent)
    if expiry is None:
        return False
    current = assume_utc(now) if now is not None else datetime.now(timezone.utc)
    # The boundary instant itself is already expired.
    return current >= expiry
