"""
Waypoint Faults - Typed fault taxonomy.

Two families, deliberately kept apart:

- BootstrapFault: configuration defects found while wiring the server
  (dual/missing HTTP method, unknown API version, missing middleware or
  service, missing environment file, bad version config). Always fatal.
- RequestFault: request-time failures (validation, not found, conflict).
  Rendered as a JSON error envelope, never fatal.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """Fault severity levels."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.REGISTRY = FaultDomain("registry", "Capability registry errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route declaration errors")
FaultDomain.REQUEST = FaultDomain("request", "Request handling errors")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.REGISTRY: Severity.FATAL,
    FaultDomain.ROUTING: Severity.FATAL,
    FaultDomain.REQUEST: Severity.WARN,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "DUAL_HTTP_METHOD")
        message: Human-readable summary
        domain: Fault domain
        severity: Fault severity
        public: Whether the message is safe to expose to clients
        metadata: Additional context data
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        domain: FaultDomain,
        severity: Optional[Severity] = None,
        public: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.domain = domain
        self.severity = severity or DOMAIN_DEFAULTS.get(domain, Severity.ERROR)
        self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"Fault(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )


# ============================================================================
# Bootstrap Faults
# ============================================================================

class BootstrapFault(Fault):
    """Base class for configuration defects detected at boot."""

    domain = FaultDomain.CONFIG

    def __init__(self, code: str, message: str, **metadata: Any):
        super().__init__(
            code=code,
            message=message,
            domain=type(self).domain,
            severity=Severity.FATAL,
            metadata=metadata,
        )


class EnvironmentMissingFault(BootstrapFault):
    """Environment file for the requested environment does not exist."""

    def __init__(self, env_name: Optional[str], path: str):
        if env_name:
            message = f".env.{env_name} environment not provided"
        else:
            message = "Default .env file environment not provided"
        super().__init__("ENV_FILE_MISSING", message, env=env_name, path=path)


class ConfigInvalidFault(BootstrapFault):
    """A configuration value is missing or malformed."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            "CONFIG_INVALID",
            f"Configuration key '{key}' is invalid: {reason}",
            key=key,
            reason=reason,
        )


class ApiVersionConfigFault(BootstrapFault):
    """The API version declaration is incomplete or inconsistent."""

    def __init__(self, reason: str):
        super().__init__(
            "API_VERSION_CONFIG_INVALID",
            f"apiVersion config is invalid please check config/api_versions.py ({reason})",
            reason=reason,
        )


class RegistryFault(BootstrapFault):
    """Base class for capability registry faults."""

    domain = FaultDomain.REGISTRY


class DuplicateCapabilityFault(RegistryFault):
    """Two capabilities of the same kind share a name."""

    def __init__(self, kind: str, name: str):
        super().__init__(
            "DUPLICATE_CAPABILITY",
            f"Duplicate {kind} name: \"{name}\"",
            kind=kind,
            name=name,
        )


class MissingServiceFault(RegistryFault):
    """A service name has no registered provider."""

    def __init__(self, name: str, requested_by: Optional[str] = None):
        where = f" requested by service \"{requested_by}\"" if requested_by else ""
        super().__init__(
            "SERVICE_MISSING",
            f"Invalid service name: \"{name}\"{where}",
            name=name,
            requested_by=requested_by,
        )


class MissingMiddlewareFault(RegistryFault):
    """A middleware name referenced by a controller is not registered."""

    def __init__(self, name: str, controller: str, route_key: Optional[str] = None):
        message = f"Invalid middleware name: \"{name}\" at controllers/{controller}"
        if route_key is not None:
            message += f" at route: \"{route_key}\""
        super().__init__(
            "MIDDLEWARE_MISSING",
            message,
            name=name,
            controller=controller,
            route=route_key,
        )


class InvalidCapabilityFault(RegistryFault):
    """A discovered module does not export what its kind requires."""

    def __init__(self, kind: str, name: str, reason: str):
        super().__init__(
            "INVALID_CAPABILITY",
            f"Invalid {kind} \"{name}\": {reason}",
            kind=kind,
            name=name,
            reason=reason,
        )


class DependencyCycleFault(RegistryFault):
    """Circular dependency between services."""

    def __init__(self, cycle: List[str]):
        super().__init__(
            "DEPENDENCY_CYCLE",
            f"Circular service dependency detected: {' -> '.join(cycle)}",
            cycle=cycle,
        )


class RoutingFault(BootstrapFault):
    """Base class for route declaration faults."""

    domain = FaultDomain.ROUTING


class DualMethodFault(RoutingFault):
    def __init__(self, controller: str, route_key: str):
        super().__init__(
            "DUAL_HTTP_METHOD",
            f"Dual HTTP method definition at controllers/{controller} at route: \"{route_key}\"",
            controller=controller,
            route=route_key,
        )


class InvalidMethodFault(RoutingFault):
    def __init__(self, controller: str, route_key: str, method: Any):
        super().__init__(
            "INVALID_HTTP_METHOD",
            f"Invalid HTTP method: \"{method}\" at controllers/{controller} at route: \"{route_key}\"",
            controller=controller,
            route=route_key,
            method=method,
        )


class InvalidApiVersionFault(RoutingFault):
    def __init__(self, controller: str, route_key: str, version: Any):
        super().__init__(
            "INVALID_API_VERSION",
            f"Invalid api version: \"{version}\" at controllers/{controller} at route: \"{route_key}\"",
            controller=controller,
            route=route_key,
            version=version,
        )


class InvalidRouteFault(RoutingFault):
    """Route descriptor is malformed (bad key, unknown field, no handler)."""

    def __init__(self, controller: str, route_key: str, reason: str):
        super().__init__(
            "INVALID_ROUTE",
            f"Invalid route definition at controllers/{controller} at route: \"{route_key}\": {reason}",
            controller=controller,
            route=route_key,
            reason=reason,
        )


class InvalidControllerFault(RoutingFault):
    """Controller module does not follow the controller contract."""

    def __init__(self, controller: str, reason: str):
        super().__init__(
            "INVALID_CONTROLLER",
            f"Invalid controller at controllers/{controller}: {reason}",
            controller=controller,
            reason=reason,
        )


# ============================================================================
# Request Faults
# ============================================================================

class RequestFault(Fault):
    """
    Request-time fault rendered as ``{success: false, error, details?}``.
    """

    status = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[List[Dict[str, Any]]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(
            code=code or type(self).__name__.upper(),
            message=message,
            domain=FaultDomain.REQUEST,
            public=True,
        )
        self.details = details

    def to_envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequestFault(RequestFault):
    status = 400

    def __init__(self, message: str = "Bad request", **kwargs: Any):
        super().__init__(message, code="BAD_REQUEST", **kwargs)


class ValidationFault(RequestFault):
    status = 400

    def __init__(self, details: List[Dict[str, Any]], message: str = "Validation failed"):
        super().__init__(message, details=details, code="VALIDATION_FAILED")


class NotFoundFault(RequestFault):
    status = 404

    def __init__(self, message: str = "Item not found"):
        super().__init__(message, code="NOT_FOUND")


class ConflictFault(RequestFault):
    status = 409

    def __init__(self, message: str = "Duplicate entry found"):
        super().__init__(message, code="CONFLICT")


class PayloadTooLargeFault(RequestFault):
    status = 413

    def __init__(self, limit: int):
        super().__init__(f"Request body exceeds {limit} bytes", code="PAYLOAD_TOO_LARGE")


__all__ = [
    "Severity",
    "FaultDomain",
    "Fault",
    "BootstrapFault",
    "EnvironmentMissingFault",
    "ConfigInvalidFault",
    "ApiVersionConfigFault",
    "RegistryFault",
    "DuplicateCapabilityFault",
    "MissingServiceFault",
    "MissingMiddlewareFault",
    "InvalidCapabilityFault",
    "DependencyCycleFault",
    "RoutingFault",
    "DualMethodFault",
    "InvalidMethodFault",
    "InvalidApiVersionFault",
    "InvalidRouteFault",
    "InvalidControllerFault",
    "RequestFault",
    "BadRequestFault",
    "ValidationFault",
    "NotFoundFault",
    "ConflictFault",
    "PayloadTooLargeFault",
]
