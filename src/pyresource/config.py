"""Library configuration for pyresource."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pyresource._constants import DEFAULT_HTTP_TIMEOUT
from pyresource.exceptions import ResourceConfigError
from pyresource.hashing import make_hash


def _default_home_dir() -> Path:
    return Path.home() / ".config" / "pyresource"


def _default_user_agent() -> str:
    from pyresource import __version__

    return f"pyresource/{__version__}"


def _env_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ResourceConfigError(f"{name} must be a number, got {value!r}") from exc


def _is_relative_to(path: Path, base: Path) -> bool:
    try:
        path.relative_to(base)
    except ValueError:
        return False
    return True


@dataclasses.dataclass(frozen=True)
class ResourceConfig:
    """Library configuration.

    Parameters
    ----------
    home_dir : Path
        Base directory relative vehicle paths resolve against.  Local
        copies of remote resources are stored below it by default.
    http_timeout : float
        Default timeout in seconds for one HTTP fetch, including the body.
    user_agent : str
        ``User-Agent`` sent when the request headers do not carry one.
    safe_paths : tuple of Path
        Extra directories, besides ``home_dir``, vehicles may write to.
    """

    home_dir: Path = dataclasses.field(default_factory=_default_home_dir)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    user_agent: str = dataclasses.field(default_factory=_default_user_agent)
    safe_paths: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        if self.http_timeout <= 0:
            raise ResourceConfigError(f"http_timeout must be positive, got {self.http_timeout}")

    @classmethod
    def from_env(cls, **overrides: Any) -> ResourceConfig:
        """Create configuration from ``PYRESOURCE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        home_env = env.get("PYRESOURCE_HOME_DIR")
        if home_env:
            config_kwargs["home_dir"] = Path(home_env).expanduser()

        timeout_env = env.get("PYRESOURCE_HTTP_TIMEOUT")
        if timeout_env is not None and "http_timeout" not in overrides:
            config_kwargs["http_timeout"] = _env_float("PYRESOURCE_HTTP_TIMEOUT", timeout_env)

        agent_env = env.get("PYRESOURCE_USER_AGENT")
        if agent_env:
            config_kwargs["user_agent"] = agent_env

        safe_env = env.get("PYRESOURCE_SAFE_PATHS")
        if safe_env:
            config_kwargs["safe_paths"] = tuple(
                Path(item).expanduser() for item in safe_env.split(os.pathsep) if item.strip()
            )

        config_kwargs.update(overrides)
        if "home_dir" in config_kwargs:
            config_kwargs["home_dir"] = Path(config_kwargs["home_dir"])
        if "safe_paths" in config_kwargs:
            config_kwargs["safe_paths"] = tuple(Path(p) for p in config_kwargs["safe_paths"])

        return cls(**config_kwargs)

    def resolve(self, path: str | os.PathLike[str]) -> Path:
        """Return *path* unchanged when absolute, otherwise joined to ``home_dir``."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return self.home_dir / candidate

    def is_safe_path(self, path: str | os.PathLike[str]) -> bool:
        """Whether *path* lies inside ``home_dir`` or one of ``safe_paths``."""
        target = Path(os.path.abspath(self.resolve(path)))
        for base in (self.home_dir, *self.safe_paths):
            if _is_relative_to(target, Path(os.path.abspath(base))):
                return True
        return False

    def path_by_hash(self, prefix: str, name: str) -> Path:
        """Stable storage path for *name* below ``home_dir / prefix``."""
        return self.home_dir / prefix / str(make_hash(name.encode("utf-8")))
