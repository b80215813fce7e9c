"""pyresource - Async fetch/store of local and remote resource files."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyresource")
except PackageNotFoundError:
    __version__ = "0+local"
from pyresource._cache import ETagCache, ETagRecord, MemoryETagCache
from pyresource._transport import AiohttpTransport, Transport, TransportResponse
from pyresource.config import ResourceConfig
from pyresource.exceptions import (
    ResourceBodyReadError,
    ResourceConfigError,
    ResourceError,
    ResourceHTTPStatusError,
    ResourceTransportError,
)
from pyresource.hashing import ZERO_HASH, HashType, make_hash
from pyresource.options import VehicleOptions, build_vehicle, parse_vehicle_options
from pyresource.vehicle import FileVehicle, HTTPVehicle, Vehicle, VehicleType, safe_write

__all__ = [
    "__version__",
    "AiohttpTransport",
    "ETagCache",
    "ETagRecord",
    "FileVehicle",
    "HTTPVehicle",
    "HashType",
    "MemoryETagCache",
    "ResourceBodyReadError",
    "ResourceConfig",
    "ResourceConfigError",
    "ResourceError",
    "ResourceHTTPStatusError",
    "ResourceTransportError",
    "Transport",
    "TransportResponse",
    "Vehicle",
    "VehicleOptions",
    "VehicleType",
    "ZERO_HASH",
    "build_vehicle",
    "make_hash",
    "parse_vehicle_options",
    "safe_write",
]
