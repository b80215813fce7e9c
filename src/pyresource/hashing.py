"""Content hashing for fetched payloads.

A :class:`HashType` is the MD5 digest of a payload's raw bytes.  It is used
to detect caller-visible change independently of HTTP caching, and is the
value stored next to an ETag in the :mod:`pyresource._cache` layer.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

HASH_SIZE = hashlib.md5().digest_size

_ZERO_DIGEST = b"\x00" * HASH_SIZE


@dataclass(frozen=True, slots=True)
class HashType:
    """Fixed-size content digest.

    The zero value (``HashType()``) means "no prior knowledge" and is
    reported as invalid by :meth:`is_valid`.

    Parameters
    ----------
    digest : bytes
        Exactly :data:`HASH_SIZE` raw digest bytes.
    """

    digest: bytes = _ZERO_DIGEST

    def __post_init__(self) -> None:
        if len(self.digest) != HASH_SIZE:
            raise ValueError(f"hash digest must be {HASH_SIZE} bytes, got {len(self.digest)}")

    @classmethod
    def from_bytes(cls, raw: bytes | None) -> HashType:
        """Build a hash from stored bytes; anything of the wrong size yields the zero hash."""
        if raw is None or len(raw) != HASH_SIZE:
            return cls()
        return cls(bytes(raw))

    @classmethod
    def from_hex(cls, text: str) -> HashType:
        """Parse the hex form produced by ``str(hash)``.

        Raises :class:`ValueError` for malformed or wrongly sized input.
        """
        return cls(bytes.fromhex(text.strip()))

    def is_valid(self) -> bool:
        return self.digest != _ZERO_DIGEST

    def equal_bytes(self, raw: bytes | None) -> bool:
        """Compare against a raw digest, ``False`` when *raw* has the wrong size."""
        if raw is None or len(raw) != HASH_SIZE:
            return False
        return self.digest == bytes(raw)

    def to_bytes(self) -> bytes:
        return self.digest

    def __str__(self) -> str:
        return self.digest.hex()


ZERO_HASH = HashType()


def make_hash(data: bytes) -> HashType:
    """Compute the content hash of *data*."""
    return HashType(hashlib.md5(data).digest())
