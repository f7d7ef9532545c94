import hashlib
import secrets
from datetime import datetime, timezone, timedelta


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_opaque_token() -> str:
    """256 bits of randomness, URL-safe. Carries no claims."""
    return secrets.token_urlsafe(32)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def get_expiry_time(minutes: int = 0, days: int = 0) -> datetime:
    return utcnow() + timedelta(minutes=minutes, days=days)


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """A token is dead from the instant it reaches expires_at."""
    now = now or utcnow()
    return now >= as_utc(expires_at)
