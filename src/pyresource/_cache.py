"""ETag/hash cache interface used for conditional GETs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ETagCache(Protocol):
    """Structural interface of the URL-keyed ETag/hash store.

    The production store is persistent and lives outside this package;
    :class:`MemoryETagCache` is the in-process stand-in.
    """

    def get_etag_with_hash(self, url: str) -> tuple[bytes, str]:
        """Return ``(hash_bytes, etag)`` last stored for *url*, or ``(b"", "")``."""
        ...

    def set_etag_with_hash(self, url: str, hash_bytes: bytes, etag: str) -> None:
        ...


class ETagRecord(BaseModel):
    """What the cache knows about one URL."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hash: bytes
    etag: str = ""
    time: datetime = Field(default_factory=_utcnow)


class MemoryETagCache:
    """In-memory :class:`ETagCache` keyed by URL."""

    def __init__(self) -> None:
        self._records: dict[str, ETagRecord] = {}

    def get_etag_with_hash(self, url: str) -> tuple[bytes, str]:
        record = self._records.get(url)
        if record is None:
            return b"", ""
        return record.hash, record.etag

    def set_etag_with_hash(self, url: str, hash_bytes: bytes, etag: str) -> None:
        self._records[url] = ETagRecord(hash=bytes(hash_bytes), etag=etag)

    def get_record(self, url: str) -> ETagRecord | None:
        return self._records.get(url)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
