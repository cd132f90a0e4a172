"""
Waypoint - Convention-driven bootstrap for async JSON APIs.

Discovers services, middlewares and controllers from a project layout,
resolves every controller's declarative route map into a single dispatch
table and serves it over ASGI:

- Registry: explicitly registered, dependency-ordered services
- Routing: method inference, API versioning, named middleware references
- Faults: fatal bootstrap defects vs. request-time JSON envelopes
- Codegen: CRUD scaffolding and OpenAPI documentation from model definitions
"""

__version__ = "1.0.0"

# ============================================================================
# Core
# ============================================================================

from .context import AppContext, ServiceContext, ServiceMap
from .controller import ControllerModule, Route
from .request import Request
from .response import Response
from .registry import CapabilityRegistry
from .config import ApiVersionConfig, Settings
from .middleware import (
    BodyLimitMiddleware,
    BoundMiddleware,
    CompressionMiddleware,
    CORSMiddleware,
    ExceptionMiddleware,
    LoggingMiddleware,
    bind_context,
    compose,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    BadRequestFault,
    BootstrapFault,
    ConflictFault,
    Fault,
    FaultDomain,
    NotFoundFault,
    PayloadTooLargeFault,
    RequestFault,
    ValidationFault,
)

# ============================================================================
# Routing & bootstrap
# ============================================================================

from .routing import CanonicalRoute, Dispatcher, RouterAssembler, RouteResolver
from .asgi import Application
from .bootstrap import Bootstrap, fatal_error, notify_ready, observe_async_failures
from .log import SEPARATOR, configure_logging

__all__ = [
    "__version__",
    "AppContext",
    "ServiceContext",
    "ServiceMap",
    "ControllerModule",
    "Route",
    "Request",
    "Response",
    "CapabilityRegistry",
    "ApiVersionConfig",
    "Settings",
    "BodyLimitMiddleware",
    "BoundMiddleware",
    "CompressionMiddleware",
    "CORSMiddleware",
    "ExceptionMiddleware",
    "LoggingMiddleware",
    "bind_context",
    "compose",
    "BadRequestFault",
    "BootstrapFault",
    "ConflictFault",
    "Fault",
    "FaultDomain",
    "NotFoundFault",
    "PayloadTooLargeFault",
    "RequestFault",
    "ValidationFault",
    "CanonicalRoute",
    "Dispatcher",
    "RouterAssembler",
    "RouteResolver",
    "Application",
    "Bootstrap",
    "fatal_error",
    "notify_ready",
    "observe_async_failures",
    "SEPARATOR",
    "configure_logging",
]
