"""HTTP transport used by :class:`pyresource.vehicle.HTTPVehicle`."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp
from multidict import CIMultiDict

from pyresource._constants import HEADER_USER_AGENT
from pyresource._redact import redact_url
from pyresource.config import ResourceConfig
from pyresource.exceptions import ResourceBodyReadError, ResourceError, ResourceTransportError

_logger = logging.getLogger(__name__)


class TransportResponse(Protocol):
    """A response whose body has not been read yet."""

    status: int
    reason: str
    headers: Mapping[str, str]

    async def read(self) -> bytes:
        ...

    def close(self) -> None:
        ...


class Transport(Protocol):
    """Structural transport interface used by HTTP vehicles.

    `AiohttpTransport` is the production implementation.
    """

    async def request(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str] | None,
        body: bytes | None,
        proxy: str,
    ) -> TransportResponse:
        ...


def normalize_proxy(proxy: str) -> str | None:
    """Turn a proxy address into the URL form aiohttp expects.

    Empty means a direct connection.  A bare ``host:port`` is treated
    as an HTTP proxy.
    """
    value = proxy.strip()
    if not value:
        return None
    if "://" not in value:
        value = f"http://{value}"
    return value


class _AiohttpResponse:
    """Adapts an :class:`aiohttp.ClientResponse` to :class:`TransportResponse`."""

    def __init__(self, response: aiohttp.ClientResponse, url: str) -> None:
        self._response = response
        self._url = url
        self.status: int = response.status
        self.reason: str = response.reason or ""
        self.headers: Mapping[str, str] = response.headers

    async def read(self) -> bytes:
        try:
            return await self._response.read()
        except aiohttp.ClientError as exc:
            raise ResourceBodyReadError(
                f"Reading body of {redact_url(self._url)} failed: {exc}",
                url=self._url,
            ) from exc

    def close(self) -> None:
        self._response.release()


class AiohttpTransport:
    """:class:`Transport` backed by an :class:`aiohttp.ClientSession`.

    Usage::

        async with AiohttpTransport(config) as transport:
            vehicle = HTTPVehicle(url, path, transport=transport, cache=cache)
            buf, new_hash = await vehicle.read(old_hash)

    A caller-provided session is used as-is and left open on exit.
    """

    def __init__(
        self,
        config: ResourceConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config or ResourceConfig()
        self._external_session = session is not None
        self._http: aiohttp.ClientSession | None = session

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AiohttpTransport:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
            self._http = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise ResourceError("Transport not initialized. Use 'async with AiohttpTransport(...) as transport:'")
        return self._http

    async def request(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str] | None,
        body: bytes | None,
        proxy: str,
    ) -> TransportResponse:
        http = self._require_session()
        request_headers: CIMultiDict[str] = CIMultiDict(headers or {})
        if HEADER_USER_AGENT not in request_headers:
            request_headers[HEADER_USER_AGENT] = self._config.user_agent

        proxy_url = normalize_proxy(proxy)
        _logger.debug("%s %s (proxy=%s)", method, redact_url(url), redact_url(proxy_url or "") or "direct")

        try:
            response = await http.request(
                method,
                url,
                headers=request_headers,
                data=body,
                proxy=proxy_url,
            )
        except aiohttp.ClientError as exc:
            raise ResourceTransportError(
                f"{method} {redact_url(url)} failed: {exc}",
                url=url,
                proxy=proxy,
            ) from exc
        return _AiohttpResponse(response, url)
