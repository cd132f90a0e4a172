"""
Test harness - run a project's test-suite against a live server.

``wp test [ENV]``:

1. binds a private datagram socket and starts ``wp run [ENV]`` with
   ``NOTIFY_SOCKET`` pointing at it;
2. waits for the server's ``READY=1``;
3. runs pytest on the project's ``tests/`` with ``WAYPOINT_BASE_URL`` set;
4. stops the server and returns pytest's exit status.

A server that exits (or never reports ready) before the tests start is a
failure with status 1.
"""

from __future__ import annotations

import logging
import os
import socket
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from dotenv import dotenv_values

from .config import parse_port
from .discovery import ProjectLayout

logger = logging.getLogger("waypoint.harness")

READY_MESSAGE = b"READY=1"


def server_command(layout: ProjectLayout, env_name: Optional[str]) -> List[str]:
    command = [sys.executable, "-m", "waypoint", "run", "--root", str(layout.root)]
    if env_name:
        command.append(env_name)
    return command


def resolve_port(layout: ProjectLayout, env_name: Optional[str]) -> int:
    """Port the server will bind, read from the environment file without loading it."""
    values = {}
    env_file = layout.env_file(env_name)
    if env_file.is_file():
        values = dotenv_values(env_file)
    return parse_port(values.get("PORT") or os.environ.get("PORT"))


def wait_for_ready(sock: socket.socket, process: subprocess.Popen, timeout: float) -> bool:
    """True once ``READY=1`` arrives; False if the server exits or times out first."""
    deadline = time.monotonic() + timeout
    sock.settimeout(0.2)
    while time.monotonic() < deadline:
        if process.poll() is not None:
            return False
        try:
            message = sock.recv(4096)
        except socket.timeout:
            continue
        if READY_MESSAGE in message.split(b"\n"):
            return True
    return False


def stop_server(process: subprocess.Popen, grace: float = 10.0) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.warning("Server did not stop within %.0fs, killing it", grace)
        process.kill()
        process.wait()


def run_tests(
    root: Union[str, Path] = ".",
    env_name: Optional[str] = None,
    pytest_args: Sequence[str] = (),
    *,
    ready_timeout: float = 60.0,
) -> int:
    """Start the server, run pytest against it, stop it; returns the exit status."""
    layout = ProjectLayout.at(root)
    port = resolve_port(layout, env_name)

    with tempfile.TemporaryDirectory(prefix="waypoint-") as tmp:
        address = os.path.join(tmp, "notify.sock")
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            sock.bind(address)

            env = dict(os.environ, NOTIFY_SOCKET=address)
            process = subprocess.Popen(server_command(layout, env_name), env=env, cwd=str(layout.root))
            try:
                if not wait_for_ready(sock, process, ready_timeout):
                    if process.poll() is not None:
                        logger.error("Server exited before tests")
                    else:
                        logger.error("Server did not report ready within %.0fs", ready_timeout)
                    return 1

                logger.info("Server Running")
                test_env = dict(os.environ, WAYPOINT_BASE_URL=f"http://127.0.0.1:{port}")
                command = [sys.executable, "-m", "pytest", str(layout.tests_dir), *pytest_args]
                result = subprocess.run(command, env=test_env, cwd=str(layout.root))
                logger.info("Tests finished")
                return result.returncode
            finally:
                stop_server(process)
