"""
Shared test fixtures and helpers for the Waypoint test suite.
"""

import logging
import os
import textwrap
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from waypoint.config import ApiVersionConfig, Settings
from waypoint.context import AppContext, ServiceMap
from waypoint.registry import CapabilityRegistry
from waypoint.request import Request

EXAMPLE_ROOT = Path(__file__).resolve().parent.parent / "example"


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or [])
    ]
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8"),
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or a chunk list."""
    if chunks:
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    async def receive():
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return receive


def make_request(method: str = "GET", path: str = "/", body: bytes = b"", **kwargs) -> Request:
    return Request(make_scope(method, path, **kwargs), make_receive(body))


def make_ctx(services: Optional[Dict] = None, config: Optional[Dict] = None) -> AppContext:
    return AppContext(services=ServiceMap(services or {}), config=Settings(config or {}))


def write_files(root: Path, files: Dict[str, str]) -> Path:
    """Write ``{relative_path: source}`` under ``root`` (sources are dedented)."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return root


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def restore_environ():
    """Environment files are loaded into os.environ; undo that after each test."""
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def waypoint_logs(caplog):
    caplog.set_level(logging.INFO, logger="waypoint")
    return caplog


@pytest.fixture
def versions():
    return ApiVersionConfig("v1.0", frozenset(["v1.0", "v2.0"]))


@pytest.fixture
def ctx():
    return make_ctx()


@pytest.fixture
def registry():
    return CapabilityRegistry()


@pytest.fixture
def project(tmp_path):
    """Factory writing a project tree into a fresh directory."""

    def build(files: Dict[str, str], env: str = "PORT=3000\n") -> Path:
        root = tmp_path / "project"
        root.mkdir(exist_ok=True)
        if env is not None:
            (root / ".env").write_text(env, encoding="utf-8")
        return write_files(root, files)

    return build


@pytest.fixture
def example_root():
    return EXAMPLE_ROOT
