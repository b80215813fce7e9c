from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from multidict import CIMultiDict

from pyresource._cache import MemoryETagCache
from pyresource.exceptions import ResourceBodyReadError, ResourceHTTPStatusError, ResourceTransportError
from pyresource.hashing import ZERO_HASH, make_hash
from pyresource.vehicle import HTTPVehicle, VehicleType

URL = "https://example.com/rules.yaml"


@dataclass
class FakeResponse:
    status: int = 200
    reason: str = "OK"
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    read_error: Exception | None = None
    closed: bool = False

    async def read(self) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        return self.body

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeTransport:
    responses: list[FakeResponse] = field(default_factory=list)
    error: Exception | None = None
    delay: float = 0.0
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def request(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str] | None,
        body: bytes | None,
        proxy: str,
    ) -> FakeResponse:
        self.calls.append(
            {
                "url": url,
                "method": method,
                "headers": CIMultiDict(headers) if headers is not None else None,
                "body": body,
                "proxy": proxy,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


class RecordingCache(MemoryETagCache):
    def __init__(self) -> None:
        super().__init__()
        self.gets = 0
        self.sets = 0

    def get_etag_with_hash(self, url: str) -> tuple[bytes, str]:
        self.gets += 1
        return super().get_etag_with_hash(url)

    def set_etag_with_hash(self, url: str, hash_bytes: bytes, etag: str) -> None:
        self.sets += 1
        super().set_etag_with_hash(url, hash_bytes, etag)


def _vehicle(
    transport: FakeTransport,
    cache: MemoryETagCache,
    tmp_path: Path,
    *,
    header: Mapping[str, str] | None = None,
    timeout: float = 5.0,
) -> HTTPVehicle:
    return HTTPVehicle(
        URL,
        tmp_path / "rules.yaml",
        "127.0.0.1:7890",
        header,
        timeout,
        transport=transport,
        cache=cache,
    )


def _sent_headers(transport: FakeTransport, index: int = 0) -> CIMultiDict[str]:
    headers = transport.calls[index]["headers"]
    return headers if headers is not None else CIMultiDict()


@pytest.mark.asyncio
async def test_invalid_hash_issues_unconditional_get(tmp_path: Path) -> None:
    cache = RecordingCache()
    cache.set_etag_with_hash(URL, make_hash(b"old").to_bytes(), '"v1"')
    transport = FakeTransport([FakeResponse(body=b"new", headers={"ETag": '"v2"'})])

    buf, new_hash = await _vehicle(transport, cache, tmp_path).read(ZERO_HASH)

    assert "If-None-Match" not in _sent_headers(transport)
    assert cache.gets == 0
    assert buf == b"new"
    assert new_hash == make_hash(b"new")


@pytest.mark.asyncio
async def test_matching_hash_and_etag_issues_conditional_get(tmp_path: Path) -> None:
    old = make_hash(b"old")
    cache = MemoryETagCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), '"v1"')
    transport = FakeTransport([FakeResponse(status=304, reason="Not Modified")])

    buf, new_hash = await _vehicle(transport, cache, tmp_path).read(old)

    call = transport.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == URL
    assert call["body"] is None
    assert call["proxy"] == "127.0.0.1:7890"
    assert _sent_headers(transport)["If-None-Match"] == '"v1"'
    assert buf is None
    assert new_hash == old


@pytest.mark.asyncio
async def test_not_modified_leaves_cache_untouched(tmp_path: Path) -> None:
    old = make_hash(b"old")
    cache = RecordingCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), '"v1"')
    record_before = cache.get_record(URL)
    transport = FakeTransport([FakeResponse(status=304, reason="Not Modified")])

    await _vehicle(transport, cache, tmp_path).read(old)

    assert cache.sets == 1
    assert cache.get_record(URL) == record_before


@pytest.mark.asyncio
async def test_empty_etag_forces_unconditional_get(tmp_path: Path) -> None:
    old = make_hash(b"old")
    cache = MemoryETagCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), "")
    transport = FakeTransport([FakeResponse(body=b"old")])

    buf, new_hash = await _vehicle(transport, cache, tmp_path).read(old)

    assert "If-None-Match" not in _sent_headers(transport)
    assert buf == b"old"
    assert new_hash == old


@pytest.mark.asyncio
async def test_mismatching_hash_forces_unconditional_get(tmp_path: Path) -> None:
    cache = MemoryETagCache()
    cache.set_etag_with_hash(URL, make_hash(b"cached").to_bytes(), '"v1"')
    transport = FakeTransport([FakeResponse(body=b"fresh", headers={"ETag": '"v2"'})])

    buf, new_hash = await _vehicle(transport, cache, tmp_path).read(make_hash(b"something else"))

    assert "If-None-Match" not in _sent_headers(transport)
    assert buf == b"fresh"
    assert new_hash == make_hash(b"fresh")


@pytest.mark.asyncio
async def test_unknown_url_forces_unconditional_get(tmp_path: Path) -> None:
    transport = FakeTransport([FakeResponse(body=b"fresh")])

    await _vehicle(transport, MemoryETagCache(), tmp_path).read(make_hash(b"old"))

    assert "If-None-Match" not in _sent_headers(transport)


@pytest.mark.asyncio
async def test_304_to_unconditional_request_is_an_error(tmp_path: Path) -> None:
    transport = FakeTransport([FakeResponse(status=304, reason="Not Modified")])

    with pytest.raises(ResourceHTTPStatusError) as exc_info:
        await _vehicle(transport, MemoryETagCache(), tmp_path).read(ZERO_HASH)

    assert exc_info.value.status_code == 304
    assert str(exc_info.value) == "304 Not Modified"


@pytest.mark.asyncio
async def test_success_updates_cache_with_response_etag(tmp_path: Path) -> None:
    old = make_hash(b"old")
    cache = MemoryETagCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), '"v1"')
    response = FakeResponse(body=b"changed", headers={"ETag": '"v2"'})
    transport = FakeTransport([response])

    buf, new_hash = await _vehicle(transport, cache, tmp_path).read(old)

    assert _sent_headers(transport)["If-None-Match"] == '"v1"'
    assert buf == b"changed"
    assert new_hash == make_hash(b"changed")
    assert cache.get_etag_with_hash(URL) == (make_hash(b"changed").to_bytes(), '"v2"')
    assert response.closed


@pytest.mark.asyncio
async def test_success_without_etag_stores_empty_etag(tmp_path: Path) -> None:
    old = make_hash(b"old")
    cache = MemoryETagCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), '"v1"')
    transport = FakeTransport([FakeResponse(status=200, body=b"changed")])

    await _vehicle(transport, cache, tmp_path).read(old)

    assert cache.get_etag_with_hash(URL) == (make_hash(b"changed").to_bytes(), "")


@pytest.mark.asyncio
async def test_any_2xx_counts_as_success(tmp_path: Path) -> None:
    transport = FakeTransport([FakeResponse(status=203, reason="Non-Authoritative Information", body=b"x")])

    buf, new_hash = await _vehicle(transport, MemoryETagCache(), tmp_path).read(ZERO_HASH)

    assert buf == b"x"
    assert new_hash == make_hash(b"x")


@pytest.mark.asyncio
@pytest.mark.parametrize(("status", "reason"), [(404, "Not Found"), (500, "Internal Server Error")])
async def test_error_status_raises_and_leaves_cache_untouched(tmp_path: Path, status: int, reason: str) -> None:
    old = make_hash(b"old")
    cache = RecordingCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), '"v1"')
    response = FakeResponse(status=status, reason=reason, body=b"error page")
    transport = FakeTransport([response])

    with pytest.raises(ResourceHTTPStatusError) as exc_info:
        await _vehicle(transport, cache, tmp_path).read(old)

    assert exc_info.value.status_code == status
    assert str(exc_info.value) == f"{status} {reason}"
    assert exc_info.value.url == URL
    assert cache.sets == 1
    assert cache.get_etag_with_hash(URL) == (old.to_bytes(), '"v1"')
    assert response.closed


@pytest.mark.asyncio
async def test_error_status_without_reason_uses_standard_phrase(tmp_path: Path) -> None:
    transport = FakeTransport([FakeResponse(status=502, reason="")])

    with pytest.raises(ResourceHTTPStatusError, match="502 Bad Gateway"):
        await _vehicle(transport, MemoryETagCache(), tmp_path).read(ZERO_HASH)


@pytest.mark.asyncio
async def test_conditional_get_never_mutates_configured_headers(tmp_path: Path) -> None:
    old = make_hash(b"old")
    cache = MemoryETagCache()
    cache.set_etag_with_hash(URL, old.to_bytes(), '"v1"')
    transport = FakeTransport(
        [
            FakeResponse(status=304, reason="Not Modified"),
            FakeResponse(body=b"fresh"),
        ]
    )
    vehicle = _vehicle(transport, cache, tmp_path, header={"Authorization": "Bearer t", "Accept": "text/yaml"})

    await vehicle.read(old)
    await vehicle.read(ZERO_HASH)

    first, second = _sent_headers(transport, 0), _sent_headers(transport, 1)
    assert first["If-None-Match"] == '"v1"'
    assert first["Authorization"] == "Bearer t"
    assert "If-None-Match" not in second
    assert second["Accept"] == "text/yaml"
    configured = vehicle.headers
    assert configured is not None
    assert "If-None-Match" not in configured


@pytest.mark.asyncio
async def test_transport_error_propagates_as_is(tmp_path: Path) -> None:
    error = ResourceTransportError("connect failed", url=URL, proxy="127.0.0.1:7890")
    cache = RecordingCache()
    transport = FakeTransport(error=error)

    with pytest.raises(ResourceTransportError) as exc_info:
        await _vehicle(transport, cache, tmp_path).read(ZERO_HASH)

    assert exc_info.value is error
    assert cache.sets == 0


@pytest.mark.asyncio
async def test_body_read_error_propagates_and_closes_response(tmp_path: Path) -> None:
    error = ResourceBodyReadError("connection reset", url=URL)
    response = FakeResponse(read_error=error)
    cache = RecordingCache()
    transport = FakeTransport([response])

    with pytest.raises(ResourceBodyReadError) as exc_info:
        await _vehicle(transport, cache, tmp_path).read(ZERO_HASH)

    assert exc_info.value is error
    assert response.closed
    assert cache.sets == 0


@pytest.mark.asyncio
async def test_timeout_aborts_request(tmp_path: Path) -> None:
    cache = RecordingCache()
    transport = FakeTransport([FakeResponse(body=b"late")], delay=1.0)

    with pytest.raises(TimeoutError):
        await _vehicle(transport, cache, tmp_path, timeout=0.05).read(ZERO_HASH)

    assert cache.sets == 0


@pytest.mark.asyncio
async def test_caller_cancellation_aborts_request(tmp_path: Path) -> None:
    transport = FakeTransport([FakeResponse(body=b"late")], delay=1.0)
    task = asyncio.create_task(_vehicle(transport, MemoryETagCache(), tmp_path).read(ZERO_HASH))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_write_targets_local_path(tmp_path: Path) -> None:
    transport = FakeTransport([FakeResponse(body=b"remote content")])
    vehicle = HTTPVehicle(URL, tmp_path / "cache" / "rules.yaml", transport=transport, cache=MemoryETagCache())

    buf, _ = await vehicle.read(ZERO_HASH)
    assert buf is not None
    vehicle.write(buf)

    assert (tmp_path / "cache" / "rules.yaml").read_bytes() == b"remote content"


def test_accessors(tmp_path: Path) -> None:
    vehicle = HTTPVehicle(
        URL,
        tmp_path / "rules.yaml",
        "socks5://127.0.0.1:1080",
        timeout=3.0,
        transport=FakeTransport(),
        cache=MemoryETagCache(),
    )

    assert vehicle.type is VehicleType.HTTP
    assert vehicle.url == URL
    assert vehicle.path == str(tmp_path / "rules.yaml")
    assert vehicle.proxy == "socks5://127.0.0.1:1080"
    assert vehicle.timeout == 3.0
    assert vehicle.headers is None


def test_repr_hides_proxy_password(tmp_path: Path) -> None:
    vehicle = HTTPVehicle(
        URL,
        tmp_path / "rules.yaml",
        "user:s3cret@127.0.0.1:7890",
        transport=FakeTransport(),
        cache=MemoryETagCache(),
    )

    assert "s3cret" not in repr(vehicle)
    assert vehicle.proxy == "user:s3cret@127.0.0.1:7890"
