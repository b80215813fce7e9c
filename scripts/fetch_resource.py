#!/usr/bin/env python3
"""Fetch a resource through a pyresource vehicle.

Reads a URL (``http://`` / ``https://``) or a local path, optionally stores
the content, and reports the content hash.  Pass the hash printed by a
previous run with ``--old-hash`` to exercise the conditional GET; the
in-memory ETag cache lives for one run, so ``--etag`` seeds it.

Usage
-----
::

    python scripts/fetch_resource.py https://example.com/rules.yaml -o rules.yaml
    python scripts/fetch_resource.py ./rules.yaml

Options::

    --output FILE, -o FILE   Write fetched content to FILE
    --proxy ADDR             Proxy address (host:port or URL)
    --header NAME:VALUE      Extra request header (repeatable)
    --timeout SECONDS        Request timeout (default: config / 20s)
    --old-hash HEX           Hash of the content already held
    --etag TAG               ETag last seen together with --old-hash
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyresource import (  # noqa: E402
    ZERO_HASH,
    AiohttpTransport,
    FileVehicle,
    HashType,
    HTTPVehicle,
    MemoryETagCache,
    ResourceConfig,
    ResourceError,
)


def _parse_hash(text: str) -> HashType:
    try:
        return HashType.from_hex(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid hash {text!r}: {exc}") from exc


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise SystemExit(f"invalid header {item!r}, expected NAME:VALUE")
        headers[name.strip()] = value.strip()
    return headers


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch a local or remote resource and print its hash.")
    parser.add_argument("source", help="URL or local file path")
    parser.add_argument("--output", "-o", help="Write fetched content to FILE")
    parser.add_argument("--proxy", default="", help="Proxy address (host:port or URL)")
    parser.add_argument("--header", action="append", default=[], help="Extra header NAME:VALUE")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument("--old-hash", type=_parse_hash, default=ZERO_HASH, help="Hex hash of the content already held")
    parser.add_argument("--etag", default="", help="ETag last seen with --old-hash")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


async def main() -> int:
    args = _build_parser().parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = ResourceConfig.from_env()
    old_hash: HashType = args.old_hash
    output = args.output or ""

    async with AiohttpTransport(config) as transport:
        if args.source.startswith(("http://", "https://")):
            cache = MemoryETagCache()
            if args.etag and old_hash.is_valid():
                cache.set_etag_with_hash(args.source, old_hash.to_bytes(), args.etag)
            vehicle: FileVehicle | HTTPVehicle = HTTPVehicle(
                args.source,
                output,
                args.proxy,
                _parse_headers(args.header) or None,
                args.timeout or config.http_timeout,
                transport=transport,
                cache=cache,
            )
        else:
            vehicle = FileVehicle(args.source)

        try:
            buf, new_hash = await vehicle.read(old_hash)
        except (OSError, TimeoutError, ResourceError) as exc:
            print(f"fetch failed: {exc}", file=sys.stderr)
            return 1

    if buf is None:
        print(f"not modified  {new_hash}")
        return 0

    changed = "unchanged" if new_hash == old_hash else "changed"
    print(f"{changed}  {new_hash}  {len(buf)} bytes  ({vehicle.url})")
    if output:
        FileVehicle(output).write(buf)
        print(f"written to {output}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
