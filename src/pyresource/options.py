"""Build vehicles from provider option mappings.

A provider entry in a configuration file looks like::

    {"type": "http", "url": "https://example.com/rules.yaml",
     "path": "./rules/example.yaml", "proxy": "127.0.0.1:7890",
     "header": {"Authorization": ["Bearer ..."]}, "timeout": 10}

:func:`parse_vehicle_options` validates such a mapping and
:func:`build_vehicle` turns it into a :class:`~pyresource.vehicle.FileVehicle`
or :class:`~pyresource.vehicle.HTTPVehicle`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from multidict import CIMultiDict
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pyresource._cache import ETagCache
from pyresource._transport import Transport
from pyresource.config import ResourceConfig
from pyresource.exceptions import ResourceConfigError
from pyresource.vehicle import FileVehicle, HTTPVehicle, Vehicle, VehicleType

_TYPE_ALIASES: dict[str, VehicleType] = {
    "file": VehicleType.FILE,
    "http": VehicleType.HTTP,
}


class VehicleOptions(BaseModel):
    """Validated options for one vehicle."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    type: VehicleType
    path: str = ""
    url: str = ""
    proxy: str = ""
    header: dict[str, list[str]] = Field(default_factory=dict)
    timeout: float | None = Field(default=None, gt=0)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = _TYPE_ALIASES.get(value.strip().lower())
            if normalized is None:
                raise ValueError(f"unsupported vehicle type: {value!r}")
            return normalized
        return value

    @field_validator("header", mode="before")
    @classmethod
    def _wrap_single_values(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {key: [item] if isinstance(item, str) else item for key, item in value.items()}
        return value

    @model_validator(mode="after")
    def _check_required(self) -> VehicleOptions:
        if self.type is VehicleType.FILE and not self.path:
            raise ValueError("file vehicle requires a path")
        if self.type is VehicleType.HTTP and not self.url.startswith(("http://", "https://")):
            raise ValueError(f"http vehicle requires an http(s) url, got {self.url!r}")
        return self

    def header_multidict(self) -> CIMultiDict[str] | None:
        if not self.header:
            return None
        header: CIMultiDict[str] = CIMultiDict()
        for name, values in self.header.items():
            for value in values:
                header.add(name, value)
        return header


def parse_vehicle_options(raw: Mapping[str, Any]) -> VehicleOptions:
    """Validate a raw option mapping, raising :class:`ResourceConfigError` on bad input."""
    try:
        return VehicleOptions.model_validate(dict(raw))
    except ValidationError as exc:
        raise ResourceConfigError(f"invalid vehicle options: {exc}") from exc


def build_vehicle(
    options: VehicleOptions,
    *,
    config: ResourceConfig,
    transport: Transport,
    cache: ETagCache,
    kind: str = "proxies",
) -> Vehicle:
    """Create the vehicle described by *options*.

    Relative paths resolve against ``config.home_dir``.  An HTTP vehicle
    without a path stores its content at ``config.path_by_hash(kind, url)``.
    Paths outside the home directory and ``config.safe_paths`` are refused.
    """
    if options.type is VehicleType.FILE:
        path = config.resolve(options.path)
    elif options.path:
        path = config.resolve(options.path)
    else:
        path = config.path_by_hash(kind, options.url)

    if not config.is_safe_path(path):
        raise ResourceConfigError(f"path is not inside the home directory or safe paths: {path}")

    if options.type is VehicleType.FILE:
        return FileVehicle(path)

    return HTTPVehicle(
        options.url,
        path,
        options.proxy,
        options.header_multidict(),
        options.timeout if options.timeout is not None else config.http_timeout,
        transport=transport,
        cache=cache,
    )
