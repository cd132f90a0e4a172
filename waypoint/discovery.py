"""
Project discovery - Convention-based capability loading.

A Waypoint project is laid out as::

    <root>/
        .env, .env.<name>
        config/        conf.py, constants.py, api_versions.py, http.py
        services/      <Name>.py      -> async def provide(ctx), depends_on = [...]
        middlewares/   <name>.py      -> middleware(request, next, ctx)
        controllers/   <name>.py      -> routes(ctx), global_middlewares = [...]
        models/        <Name>.py      -> fields = {...}   (code generation input)
        validations/   <Name>Schema.py

Discovery only turns files into explicit registry calls; everything after
that works on the registry. Files are visited in sorted order so the result
never depends on the platform's directory listing order.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Optional, Union

from .faults import InvalidCapabilityFault

logger = logging.getLogger("waypoint.discovery")

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ProjectLayout:
    """Filesystem conventions of a project rooted at ``root``."""

    root: Path

    @classmethod
    def at(cls, root: PathLike) -> "ProjectLayout":
        return cls(Path(root).resolve())

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def services_dir(self) -> Path:
        return self.root / "services"

    @property
    def middlewares_dir(self) -> Path:
        return self.root / "middlewares"

    @property
    def controllers_dir(self) -> Path:
        return self.root / "controllers"

    @property
    def models_dir(self) -> Path:
        return self.root / "models"

    @property
    def validations_dir(self) -> Path:
        return self.root / "validations"

    @property
    def docs_dir(self) -> Path:
        return self.root / "docs"

    @property
    def tests_dir(self) -> Path:
        return self.root / "tests"

    def env_file(self, env_name: Optional[str] = None) -> Path:
        return self.root / (f".env.{env_name}" if env_name else ".env")

    def config_file(self, name: str) -> Path:
        return self.config_dir / f"{name}.py"


def capitalize(name: str) -> str:
    """Upper-case the first character only (``userService`` -> ``UserService``)."""
    return name[:1].upper() + name[1:]


def iter_capability_files(directory: PathLike) -> List[Path]:
    """Eligible ``*.py`` files of a convention directory, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.debug("Directory %s does not exist, nothing to load", directory)
        return []
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix == ".py" and not path.name.startswith("_")
    )


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"waypoint_project_{digest}.{path.stem}"


def load_module(path: PathLike, fresh: bool = False) -> ModuleType:
    """
    Import a project file by path.

    Each file gets a module name derived from its absolute path, so two
    projects with a ``controllers/User.py`` never share a module object.
    ``fresh=True`` re-executes the file (config modules read the
    environment at import time).
    """
    path = Path(path).resolve()
    name = _module_name(path)
    if name in sys.modules and not fresh:
        return sys.modules[name]

    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    logger.debug("Loaded %s from %s", name, path)
    return module


def load_sibling(anchor: PathLike, *parts: str) -> ModuleType:
    """
    Import a file relative to the project root of ``anchor``.

    ``load_sibling(__file__, "validations", "UserSchema")`` from
    ``middlewares/userValidate.py`` loads ``validations/UserSchema.py``.
    """
    root = Path(anchor).resolve().parent.parent
    target = root.joinpath(*parts)
    return load_module(target.with_suffix(".py"))


# ============================================================================
# Registration
# ============================================================================

def register_services(registry: Any, directory: PathLike) -> List[str]:
    """Register every service module of ``directory``; returns the names."""
    names = []
    for path in iter_capability_files(directory):
        name = capitalize(path.stem)
        module = load_module(path)
        provide = getattr(module, "provide", None)
        if not callable(provide):
            raise InvalidCapabilityFault("service", name, "module must define 'provide(ctx)'")
        depends_on = getattr(module, "depends_on", ())
        registry.register_service(name, provide, depends_on=depends_on)
        names.append(name)
    return names


def register_middlewares(registry: Any, directory: PathLike) -> List[str]:
    """Register every middleware module of ``directory``; returns the names."""
    names = []
    for path in iter_capability_files(directory):
        module = load_module(path)
        middleware = getattr(module, "middleware", None)
        if not callable(middleware):
            raise InvalidCapabilityFault("middleware", path.stem, "module must define 'middleware'")
        registry.register_middleware(path.stem, middleware)
        names.append(path.stem)
    return names


def register_controllers(registry: Any, directory: PathLike) -> List[str]:
    """Register every controller module of ``directory``; returns the names."""
    from .controller import ControllerModule

    names = []
    for path in iter_capability_files(directory):
        module = load_module(path)
        registry.register_controller(ControllerModule.from_module(path.stem, module))
        names.append(path.stem)
    return names


def discover(layout: ProjectLayout, registry: Any = None) -> Any:
    """Fill a registry from the project's convention directories."""
    from .registry import CapabilityRegistry

    registry = registry if registry is not None else CapabilityRegistry()
    register_services(registry, layout.services_dir)
    register_middlewares(registry, layout.middlewares_dir)
    register_controllers(registry, layout.controllers_dir)
    logger.debug(
        "Discovered %d services, %d middlewares, %d controllers",
        len(registry.service_names), len(registry.middleware_names), len(registry.controllers),
    )
    return registry


async def load_services(directory: PathLike, config: Any) -> Any:
    """Discover and initialise the services of ``directory``."""
    from .registry import CapabilityRegistry

    registry = CapabilityRegistry()
    register_services(registry, directory)
    return await registry.initialize_services(config)


def load_middlewares(directory: PathLike) -> Dict[str, Any]:
    """Discover the middlewares of ``directory`` as a name -> function map."""
    from .registry import CapabilityRegistry

    registry = CapabilityRegistry()
    register_middlewares(registry, directory)
    return {name: registry.get_middleware(name) for name in registry.middleware_names}
