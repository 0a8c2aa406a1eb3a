# src/cache/models.py — v1
"""Cache domain models: CacheEntry, CacheLookup."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

LookupStatus = Literal["hit", "miss", "expired", "malformed"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def aware(value: datetime) -> datetime:
    """Return ``value`` unchanged, rejecting naive datetimes."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"expiry {value.isoformat()} has no timezone")
    return value


class CacheEntry(BaseModel):
    """Memoized result of one billed provider call."""

    hash_key: str
    kind: str
    result: dict[str, Any]
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime | None) -> datetime | None:
        return None if v is None else aware(v)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utc_now()) >= self.expires_at


class CacheLookup(BaseModel):
    """Outcome of a cache read. ``value`` is only set on a hit."""

    status: LookupStatus = "miss"
    value: dict[str, Any] | None = None

    @property
    def hit(self) -> bool:
        return self.status == "hit"
