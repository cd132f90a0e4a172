"""
Request - Thin view over an ASGI HTTP scope.

Body is read once and cached; JSON is parsed lazily with orjson.
Path parameters are filled in by the router after a route matches.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qsl

import orjson

from .faults import BadRequestFault, PayloadTooLargeFault


class Request:
    """
    HTTP request wrapper.

    Attributes:
        scope: Raw ASGI scope
        params: Path parameters of the matched route (``/:id`` -> ``{"id": ...}``)
        state: Per-request scratch space shared by middlewares and handler
        validated: Payload accepted by the validation middleware, if any
    """

    __slots__ = (
        "scope", "_receive", "_body", "_json", "_headers", "_query",
        "params", "state", "validated", "body_limit",
    )

    def __init__(
        self,
        scope: Dict[str, Any],
        receive: Optional[Callable] = None,
        *,
        body_limit: Optional[int] = None,
    ):
        self.scope = scope
        self._receive = receive
        self._body: Optional[bytes] = None
        self._json: Any = None
        self._headers: Optional[Dict[str, str]] = None
        self._query: Optional[Dict[str, str]] = None
        self.params: Dict[str, str] = {}
        self.state: Dict[str, Any] = {}
        self.validated: Any = None
        self.body_limit = body_limit

    # ========================================================================
    # Scope accessors
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def query(self) -> Dict[str, str]:
        """Query parameters; the last value wins for repeated names."""
        if self._query is None:
            self._query = dict(parse_qsl(self.query_string, keep_blank_values=True))
        return self._query

    @property
    def headers(self) -> Dict[str, str]:
        """Lower-cased header names."""
        if self._headers is None:
            self._headers = {
                name.decode("latin-1").lower(): value.decode("latin-1")
                for name, value in self.scope.get("headers", [])
            }
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def client(self) -> Optional[tuple]:
        return self.scope.get("client")

    # ========================================================================
    # Body
    # ========================================================================

    async def body(self) -> bytes:
        """Read the full request body (cached)."""
        if self._body is not None:
            return self._body

        if self._receive is None:
            self._body = b""
            return self._body

        chunks = []
        size = 0
        more_body = True
        while more_body:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if self.body_limit is not None and size > self.body_limit:
                raise PayloadTooLargeFault(self.body_limit)
            chunks.append(chunk)
            more_body = message.get("more_body", False)

        self._body = b"".join(chunks)
        return self._body

    async def json(self) -> Any:
        """
        Parse request body as JSON.

        An empty body yields an empty dict, mirroring a JSON body parser
        that leaves ``body`` as ``{}`` when nothing was sent.

        Raises:
            BadRequestFault: If the body is not valid JSON
        """
        if self._json is not None:
            return self._json

        raw = await self.body()
        if not raw.strip():
            self._json = {}
            return self._json

        try:
            self._json = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise BadRequestFault(f"Invalid JSON: {e}")
        return self._json

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
