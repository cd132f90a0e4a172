"""
HTTP method detection for route keys and descriptor fields.
"""

from __future__ import annotations

import re
from typing import Any, Optional

HTTP_METHODS = (
    "all", "get", "post", "put", "delete",
    "trace", "options", "connect", "patch", "head",
)

# A verb only counts when it is a whole leading token: followed by
# whitespace, the start of the path, or the end of the string.
_LEADING_METHOD = re.compile(
    r"^\s*(" + "|".join(HTTP_METHODS) + r")(?=\s|/|$)",
    re.IGNORECASE,
)


def get_valid_http_method(value: Any) -> Optional[str]:
    """
    Return the lower-cased HTTP verb a route key starts with, or None.

    >>> get_valid_http_method("POST /")
    'post'
    >>> get_valid_http_method("/postpone") is None
    True
    >>> get_valid_http_method("postpone /x") is None
    True
    """
    if not value or not isinstance(value, str):
        return None
    match = _LEADING_METHOD.match(value)
    return match.group(1).lower() if match else None


def normalize_method_field(value: Any) -> Optional[str]:
    """Return the verb named by a descriptor's ``method`` field, or None."""
    if not isinstance(value, str):
        return None
    method = value.strip().lower()
    return method if method in HTTP_METHODS else None
