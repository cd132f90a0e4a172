"""
Configuration loading.

Sources, in order:

1. ``.env`` (no environment name) or ``.env.<name>`` from the project root,
   loaded into ``os.environ`` with python-dotenv.
2. ``config/conf.py``: a ``settings`` mapping (evaluated after step 1 so it
   can read the environment).
3. ``config/constants.py``: upper-case names, exposed as ``CONSTANTS``.
4. ``PORT`` (default 3000) and ``root_dir``.

API versions come from ``config/api_versions.py`` (``default`` and
``allowed_versions``), falling back to ``v1.0`` when the file is absent.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, List, Optional

from dotenv import load_dotenv

from .discovery import ProjectLayout, load_module
from .faults import ApiVersionConfigFault, ConfigInvalidFault, EnvironmentMissingFault

logger = logging.getLogger("waypoint.config")

DEFAULT_PORT = 3000
DEFAULT_API_VERSION = "v1.0"


class Settings:
    """
    Read-only namespace over the loaded configuration.

    Enables ``config.mongo.host`` as well as ``config["mongo"]["host"]``.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        object.__setattr__(self, "_data", dict(data or {}))

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)
        if name not in self._data:
            raise AttributeError(f"'Settings' object has no attribute '{name}'")
        return self._wrap(self._data[name])

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Settings are read-only")

    def __getitem__(self, key: str) -> Any:
        return self._wrap(self._data[key])

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._wrap(self._data[key]) if key in self._data else default

    def to_dict(self) -> Dict[str, Any]:
        """Return the underlying data dictionary."""
        return dict(self._data)

    @staticmethod
    def _wrap(value: Any) -> Any:
        return Settings(value) if isinstance(value, dict) else value

    def __repr__(self) -> str:
        return f"Settings({list(self._data)})"


# ============================================================================
# Environment
# ============================================================================

def load_environment(layout: ProjectLayout, env_name: Optional[str] = None) -> Path:
    """
    Load the environment file for ``env_name`` into ``os.environ``.

    Raises:
        EnvironmentMissingFault: The file does not exist
    """
    path = layout.env_file(env_name)
    if not path.is_file():
        raise EnvironmentMissingFault(env_name, str(path))
    load_dotenv(path, override=True)
    logger.debug("Loaded environment from %s", path)
    return path


def parse_port(value: Optional[str]) -> int:
    if value is None or value == "":
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError:
        raise ConfigInvalidFault("PORT", f"'{value}' is not an integer") from None
    if not 0 < port < 65536:
        raise ConfigInvalidFault("PORT", f"{port} is out of range")
    return port


# ============================================================================
# Settings
# ============================================================================

def _load_optional(path: Path) -> Optional[Any]:
    if not path.is_file():
        return None
    return load_module(path, fresh=True)


def load_settings(layout: ProjectLayout) -> Settings:
    """Build the ``config`` object shared with services, controllers and middlewares."""
    data: Dict[str, Any] = {}

    conf = _load_optional(layout.config_file("conf"))
    if conf is not None:
        settings = getattr(conf, "settings", {})
        if not isinstance(settings, dict):
            raise ConfigInvalidFault("settings", "config/conf.py must define a 'settings' dict")
        data.update(settings)

    constants = _load_optional(layout.config_file("constants"))
    if constants is not None:
        data["CONSTANTS"] = {
            key: value
            for key, value in vars(constants).items()
            if key.isupper() and not key.startswith("_")
        }
    else:
        data.setdefault("CONSTANTS", {})

    data["root_dir"] = str(layout.root)
    data["port"] = parse_port(os.environ.get("PORT"))
    return Settings(data)


def load_http_middlewares(layout: ProjectLayout) -> List[Any]:
    """Process-wide middlewares declared in ``config/http.py`` (``middlewares`` list)."""
    http = _load_optional(layout.config_file("http"))
    if http is None:
        return []
    middlewares = getattr(http, "middlewares", [])
    if not isinstance(middlewares, (list, tuple)):
        raise ConfigInvalidFault("middlewares", "config/http.py must define a 'middlewares' list")
    for index, middleware in enumerate(middlewares):
        if not callable(middleware):
            raise ConfigInvalidFault(f"middlewares[{index}]", "entry is not callable")
    return list(middlewares)


# ============================================================================
# API versions
# ============================================================================

@dataclass(frozen=True)
class ApiVersionConfig:
    """Default API version and the set of versions routes may declare."""

    default: str
    allowed_versions: FrozenSet[str]

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ApiVersionConfig":
        """
        Validate a ``{default, allowed_versions}`` declaration.

        Raises:
            ApiVersionConfigFault: A key is missing or ``default`` is not allowed
        """
        default = data.get("default")
        allowed = data.get("allowed_versions")
        if not default or not isinstance(default, str):
            raise ApiVersionConfigFault("'default' is missing")
        if allowed is None:
            raise ApiVersionConfigFault("'allowed_versions' is missing")
        if isinstance(allowed, str) or not all(isinstance(v, str) for v in allowed):
            raise ApiVersionConfigFault("'allowed_versions' must be a list of version strings")
        allowed = frozenset(allowed)
        if default not in allowed:
            raise ApiVersionConfigFault(f"default version '{default}' is not in allowed_versions")
        return cls(default=default, allowed_versions=allowed)

    def is_allowed(self, version: Any) -> bool:
        return isinstance(version, str) and version in self.allowed_versions


def load_api_versions(layout: ProjectLayout) -> ApiVersionConfig:
    module = _load_optional(layout.config_file("api_versions"))
    if module is None:
        return ApiVersionConfig(DEFAULT_API_VERSION, frozenset([DEFAULT_API_VERSION]))
    return ApiVersionConfig.from_mapping({
        "default": getattr(module, "default", None),
        "allowed_versions": getattr(module, "allowed_versions", None),
    })
