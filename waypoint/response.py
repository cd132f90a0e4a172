"""
Response - HTTP response with ASGI send support.

Content may be bytes, str, or any JSON-serialisable object (encoded with
orjson). Header names are stored lower-cased.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

import orjson


def _json_default(o: Any) -> Any:
    """Fallback serializer for values orjson does not handle natively."""
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, (set, frozenset)):
        return list(o)
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if hasattr(o, "model_dump"):
        return o.model_dump()
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


class Response:
    """HTTP response."""

    __slots__ = ("status", "_content", "_headers")

    def __init__(
        self,
        content: Any = b"",
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
    ):
        self.status = status
        self._headers: Dict[str, str] = {}
        if headers:
            for key, value in headers.items():
                self._headers[key.lower()] = value

        if isinstance(content, (dict, list)):
            content = orjson.dumps(content, default=_json_default)
            media_type = media_type or "application/json; charset=utf-8"
        elif isinstance(content, str):
            content = content.encode("utf-8")
            media_type = media_type or "text/plain; charset=utf-8"

        self._content: bytes = content
        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = "application/octet-stream"

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create JSON response."""
        return cls(
            content=orjson.dumps(obj, default=_json_default),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def html(cls, content: str, status: int = 200) -> "Response":
        """Create HTML response."""
        return cls(content=content, status=status, media_type="text/html; charset=utf-8")

    @classmethod
    def text(cls, content: str, status: int = 200) -> "Response":
        """Create plain text response."""
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8")

    @classmethod
    def error(
        cls,
        error: str,
        status: int = 500,
        details: Optional[List[Dict[str, Any]]] = None,
    ) -> "Response":
        """Create a ``{success: false, error, details?}`` envelope."""
        body: Dict[str, Any] = {"success": False, "error": error}
        if details is not None:
            body["details"] = details
        return cls.json(body, status=status)

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def body(self) -> bytes:
        return self._content

    @body.setter
    def body(self, value: bytes) -> None:
        self._content = value
        self._headers["content-length"] = str(len(value))

    def json_body(self) -> Any:
        """Decode the body as JSON (used by tests and middlewares)."""
        return orjson.loads(self._content)

    # ========================================================================
    # ASGI
    # ========================================================================

    async def send_asgi(self, send: Callable, *, head: bool = False) -> None:
        """Send response via ASGI."""
        if "content-length" not in self._headers:
            self._headers["content-length"] = str(len(self._content))

        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": [
                (name.encode("latin-1"), str(value).encode("latin-1"))
                for name, value in self._headers.items()
            ],
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head else self._content,
        })

    def __repr__(self) -> str:
        return f"<Response {self.status} {self._headers.get('content-type')}>"
