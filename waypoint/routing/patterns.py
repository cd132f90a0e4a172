"""
Path patterns with ``:name`` parameters.

``/User/v1.0/:id`` matches ``/User/v1.0/42`` and ``/User/v1.0/42/`` with
``{"id": "42"}``. A parameter spans exactly one segment. Literal parts
match case-insensitively (``/user/V1.0/42`` finds the same route); parameter
values keep the case they were sent with.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

_PARAM = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class PathPattern:
    """Compiled route path."""

    path: str
    regex: "re.Pattern[str]"
    params: Tuple[str, ...]

    @classmethod
    def compile(cls, path: str) -> "PathPattern":
        stripped = path.rstrip("/")
        pieces = []
        params = []
        position = 0
        for match in _PARAM.finditer(stripped):
            pieces.append(re.escape(stripped[position:match.start()]))
            pieces.append(f"(?P<{match.group(1)}>[^/]+)")
            params.append(match.group(1))
            position = match.end()
        pieces.append(re.escape(stripped[position:]))
        regex = re.compile("^" + "".join(pieces) + "/?$", re.IGNORECASE)
        return cls(path=path, regex=regex, params=tuple(params))

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Path parameters on a match, ``None`` otherwise."""
        found = self.regex.match(path)
        if found is None:
            return None
        return {name: unquote(value) for name, value in found.groupdict().items()}

    @property
    def openapi_path(self) -> str:
        """``/User/v1.0/:id`` -> ``/User/v1.0/{id}``."""
        return _PARAM.sub(r"{\1}", self.path)


def under_prefix(path: str, prefix: str) -> bool:
    """True when ``path`` equals ``prefix`` or lies below it."""
    path = path.lower()
    prefix = prefix.lower()
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")
