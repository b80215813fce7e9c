"""Resource vehicles: fetch and store a resource's raw bytes.

Two interchangeable implementations share the :class:`Vehicle` contract:

* :class:`FileVehicle` reads and writes a local file.
* :class:`HTTPVehicle` fetches a URL, issuing a conditional GET
  (``If-None-Match``) when the caller's previous hash still matches the
  ETag cache, and stores fetched content at a local path.

Callers pass the hash of the content they already hold to :meth:`Vehicle.read`.
The returned hash is either the digest of the returned bytes or, when the
server reports ``304 Not Modified``, the caller's hash unchanged (with
``None`` bytes).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import secrets
from collections.abc import Mapping
from enum import StrEnum
from http import HTTPStatus
from pathlib import Path
from typing import Protocol

from multidict import CIMultiDict

from pyresource._cache import ETagCache
from pyresource._constants import (
    DEFAULT_HTTP_TIMEOUT,
    DIR_MODE,
    FILE_MODE,
    FILE_URL_PREFIX,
    HEADER_ETAG,
    HEADER_IF_NONE_MATCH,
)
from pyresource._redact import redact_for_log, redact_url
from pyresource._transport import Transport, normalize_proxy
from pyresource.exceptions import ResourceHTTPStatusError
from pyresource.hashing import HashType, make_hash

_logger = logging.getLogger(__name__)


class VehicleType(StrEnum):
    FILE = "File"
    HTTP = "HTTP"


class Vehicle(Protocol):
    """Capability contract consumed by whatever schedules re-fetches."""

    @property
    def type(self) -> VehicleType:
        ...

    @property
    def path(self) -> str:
        ...

    @property
    def url(self) -> str:
        ...

    @property
    def proxy(self) -> str:
        ...

    async def read(self, old_hash: HashType) -> tuple[bytes | None, HashType]:
        ...

    def write(self, buf: bytes) -> None:
        ...


def safe_write(path: str | os.PathLike[str], buf: bytes) -> None:
    """Write *buf* to *path*, creating missing parent directories.

    The content goes to a sibling temporary file first and then replaces
    the target, so readers see either the old or the new file.  Any
    :class:`OSError` propagates; the temporary file is removed on failure.
    """
    target = Path(path)
    directory = target.parent
    if not directory.exists():
        # Path.mkdir(parents=True) ignores ``mode`` for intermediate directories.
        missing = [p for p in reversed(directory.parents) if not p.exists()]
        for part in (*missing, directory):
            part.mkdir(mode=DIR_MODE, exist_ok=True)

    tmp = directory / f".{target.name}.{secrets.token_hex(4)}.tmp"
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(buf)
        os.replace(tmp, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
    _logger.debug("Wrote %d bytes to %s", len(buf), target)


class FileVehicle:
    """Vehicle over a local file; the prior hash is never consulted."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = os.fspath(path)

    @property
    def type(self) -> VehicleType:
        return VehicleType.FILE

    @property
    def path(self) -> str:
        return self._path

    @property
    def url(self) -> str:
        """Display-only identifier, not a fetch endpoint."""
        return FILE_URL_PREFIX + self._path

    @property
    def proxy(self) -> str:
        return ""

    async def read(self, old_hash: HashType) -> tuple[bytes | None, HashType]:
        loop = asyncio.get_running_loop()
        buf = await loop.run_in_executor(None, Path(self._path).read_bytes)
        _logger.debug("Read %d bytes from %s", len(buf), self._path)
        return buf, make_hash(buf)

    def write(self, buf: bytes) -> None:
        safe_write(self._path, buf)

    def __repr__(self) -> str:
        return f"FileVehicle(path={self._path!r})"


class HTTPVehicle:
    """Vehicle fetching a URL and persisting it at a local path.

    Parameters
    ----------
    url : str
        Resource URL.
    path : str or PathLike
        Local file the fetched content is written to by :meth:`write`.
    proxy : str
        Proxy address; empty for a direct connection.
    header : Mapping or None
        Headers sent with every request.  Copied on construction and never
        modified afterwards.
    timeout : float
        Seconds allowed for one :meth:`read`, body included.
    transport : Transport
        Performs the HTTP request.
    cache : ETagCache
        URL-keyed store of the last known ``(hash, ETag)`` pair.
    """

    def __init__(
        self,
        url: str,
        path: str | os.PathLike[str],
        proxy: str = "",
        header: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        *,
        transport: Transport,
        cache: ETagCache,
    ) -> None:
        self._url = url
        self._path = os.fspath(path)
        self._proxy = proxy
        self._header: CIMultiDict[str] | None = CIMultiDict(header) if header is not None else None
        self._timeout = timeout
        self._transport = transport
        self._cache = cache

    @property
    def type(self) -> VehicleType:
        return VehicleType.HTTP

    @property
    def path(self) -> str:
        return self._path

    @property
    def url(self) -> str:
        return self._url

    @property
    def proxy(self) -> str:
        return self._proxy

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def headers(self) -> CIMultiDict[str] | None:
        """A copy of the configured request headers."""
        return self._header.copy() if self._header is not None else None

    def write(self, buf: bytes) -> None:
        safe_write(self._path, buf)

    def _conditional_headers(self, old_hash: HashType) -> CIMultiDict[str] | None:
        """Headers carrying ``If-None-Match``, or ``None`` if no conditional GET applies."""
        if not old_hash.is_valid():
            return None
        hash_bytes, etag = self._cache.get_etag_with_hash(self._url)
        if not old_hash.equal_bytes(hash_bytes) or not etag:
            return None
        header = CIMultiDict() if self._header is None else self._header.copy()
        header[HEADER_IF_NONE_MATCH] = etag
        return header

    async def read(self, old_hash: HashType) -> tuple[bytes | None, HashType]:
        async with asyncio.timeout(self._timeout):
            header = self._conditional_headers(old_hash)
            conditional = header is not None
            if header is None:
                header = self._header

            _logger.debug(
                "GET %s conditional=%s headers=%s",
                redact_url(self._url),
                conditional,
                redact_for_log(header),
            )
            response = await self._transport.request(self._url, "GET", header, None, self._proxy)
            try:
                if response.status < 200 or response.status > 299:
                    if conditional and response.status == HTTPStatus.NOT_MODIFIED:
                        _logger.debug("%s not modified, keeping hash %s", redact_url(self._url), old_hash)
                        return None, old_hash
                    raise ResourceHTTPStatusError(response.status, response.reason, url=self._url)
                buf = await response.read()
                etag = response.headers.get(HEADER_ETAG) or ""
            finally:
                response.close()

        new_hash = make_hash(buf)
        self._cache.set_etag_with_hash(self._url, new_hash.to_bytes(), etag)
        _logger.debug("Fetched %d bytes from %s (hash=%s etag=%r)", len(buf), redact_url(self._url), new_hash, etag)
        return buf, new_hash

    def __repr__(self) -> str:
        proxy = redact_url(normalize_proxy(self._proxy) or "")
        return f"HTTPVehicle(url={redact_url(self._url)!r}, path={self._path!r}, proxy={proxy!r})"
