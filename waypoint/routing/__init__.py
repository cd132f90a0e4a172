"""
Waypoint routing - route resolution, assembly and dispatch.
"""

from .assembler import RouterAssembler
from .methods import HTTP_METHODS, get_valid_http_method, normalize_method_field
from .patterns import PathPattern
from .resolver import CanonicalRoute, DisabledRoute, RouteDescriptor, RouteResolver
from .router import ControllerRouter, Dispatcher, to_response

__all__ = [
    "HTTP_METHODS",
    "get_valid_http_method",
    "normalize_method_field",
    "PathPattern",
    "RouteDescriptor",
    "CanonicalRoute",
    "DisabledRoute",
    "RouteResolver",
    "RouterAssembler",
    "ControllerRouter",
    "Dispatcher",
    "to_response",
]
