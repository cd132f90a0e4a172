"""
CLI (cli.py) and the live-server test harness (harness.py).
"""

import socket
import subprocess
import sys
from unittest.mock import MagicMock, patch

import orjson
import pytest
from click.testing import CliRunner

from waypoint import __version__
from waypoint.cli import cli
from waypoint.discovery import ProjectLayout
from waypoint.harness import resolve_port, run_tests, server_command, stop_server, wait_for_ready


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_console_handler():
    # CliRunner swaps stdout; keep the console handler off the waypoint logger
    with patch("waypoint.cli.configure_logging") as configure:
        yield configure


# ============================================================================
# Commands
# ============================================================================

class TestCommands:

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_log_level_forwarded(self, runner, example_root, no_console_handler):
        runner.invoke(cli, ["--log-level", "DEBUG", "routes", "--root", str(example_root)])
        no_console_handler.assert_called_once_with("DEBUG")

    def test_routes(self, runner, example_root):
        result = runner.invoke(cli, ["routes", "--root", str(example_root)])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0].split() == ["GET", "/Public/v1.0/test"]
        assert "/Public/v2.0/status" in result.output
        assert "/Public/v1.0/legacy" not in result.output
        post = next(line for line in lines if line.startswith("POST"))
        assert post.split() == ["POST", "/User/v1.0/", "[userValidate]"]

    def test_routes_empty_project(self, runner, project):
        result = runner.invoke(cli, ["routes", "--root", str(project({}))])
        assert result.exit_code == 0
        assert "No routes" in result.output

    def test_routes_fatal(self, runner, project):
        root = project({"controllers/user.py": "def routes(ctx):\n    return {'/': {'handler': print}}\n"})
        result = runner.invoke(cli, ["routes", "--root", str(root)])
        assert result.exit_code == 1

    def test_routes_missing_environment(self, runner, example_root):
        result = runner.invoke(cli, ["routes", "staging", "--root", str(example_root)])
        assert result.exit_code == 1

    def test_generate_crud(self, runner, project):
        root = project({"models/Post.py": "fields = {'title': {'type': 'string', 'required': True}}\n"})
        result = runner.invoke(cli, ["generate", "crud", "--root", str(root)])
        assert result.exit_code == 0, result.output
        assert "created" in result.output
        assert (root / "controllers" / "Post.py").is_file()

        again = runner.invoke(cli, ["generate", "crud", "--root", str(root)])
        assert "created" not in again.output
        assert "exists" in again.output

    def test_generate_crud_bad_model(self, runner, project):
        root = project({"models/Post.py": "fields = {'title': 'uuid'}\n"})
        result = runner.invoke(cli, ["generate", "crud", "--root", str(root)])
        assert result.exit_code == 1

    def test_docs_build(self, runner, project):
        root = project({
            "models/Post.py": "fields = {'title': 'string'}\n",
            "config/api_versions.py": "default = 'v2.0'\nallowed_versions = ['v1.0', 'v2.0']\n",
        })
        result = runner.invoke(cli, ["docs", "build", "--root", str(root)])
        assert result.exit_code == 0, result.output
        swagger = (root / "docs" / "swagger.json").read_text()
        assert "/Post/v2.0/{id}" in swagger
        assert (root / "docs" / "index.html").is_file()

    def test_docs_build_with_malformed_swagger(self, runner, project):
        root = project({
            "models/Post.py": "fields = {'title': 'string'}\n",
            "docs/swagger.json": "{not json",
        })
        result = runner.invoke(cli, ["docs", "build", "--root", str(root)])
        assert result.exit_code == 0, result.output
        swagger = orjson.loads((root / "docs" / "swagger.json").read_bytes())
        assert "/Post/v1.0/" in swagger["paths"]

    def test_docs_build_without_env_file(self, runner, project):
        root = project({"models/Post.py": "fields = {'title': 'string'}\n"}, env=None)
        result = runner.invoke(cli, ["docs", "build", "--root", str(root)])
        assert result.exit_code == 0, result.output

    def test_run_delegates_to_bootstrap(self, runner, example_root):
        with patch("waypoint.cli.Bootstrap") as bootstrap:
            result = runner.invoke(cli, ["run", "test", "--root", str(example_root), "--docs", "--debug"])
        assert result.exit_code == 0, result.output
        args, kwargs = bootstrap.call_args
        assert args == (str(example_root), "test")
        assert kwargs == {"docs": True, "host": "0.0.0.0", "debug": True}
        bootstrap.return_value.run.assert_called_once_with()

    def test_test_command_exit_status(self, runner, example_root):
        with patch("waypoint.harness.run_tests", return_value=3) as run:
            result = runner.invoke(cli, ["test", "test", "--root", str(example_root), "-k", "hello"])
        assert result.exit_code == 3
        assert run.call_args.args[2] == ("-k", "hello")


# ============================================================================
# Harness
# ============================================================================

class TestHarness:

    def test_server_command(self, example_root):
        layout = ProjectLayout.at(example_root)
        assert server_command(layout, "test") == [
            sys.executable, "-m", "waypoint", "run", "--root", str(layout.root), "test",
        ]
        assert server_command(layout, None)[-1] == str(layout.root)

    def test_resolve_port(self, example_root):
        layout = ProjectLayout.at(example_root)
        assert resolve_port(layout, "test") == 3001
        assert resolve_port(layout, None) == 3000

    def test_wait_for_ready(self):
        sender, receiver = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        with sender, receiver:
            process = MagicMock()
            process.poll.return_value = None
            sender.send(b"STATUS=booting\nREADY=1")
            assert wait_for_ready(receiver, process, timeout=1.0) is True

    def test_wait_for_ready_process_exited(self):
        sender, receiver = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        with sender, receiver:
            process = MagicMock()
            process.poll.return_value = 1
            assert wait_for_ready(receiver, process, timeout=1.0) is False

    def test_wait_for_ready_timeout(self):
        sender, receiver = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        with sender, receiver:
            process = MagicMock()
            process.poll.return_value = None
            assert wait_for_ready(receiver, process, timeout=0.3) is False

    def test_stop_server(self):
        process = MagicMock()
        process.poll.return_value = None
        stop_server(process)
        process.terminate.assert_called_once_with()
        process.kill.assert_not_called()

    def test_stop_server_kills_after_grace(self):
        process = MagicMock()
        process.poll.return_value = None
        process.wait.side_effect = [subprocess.TimeoutExpired("wp", 1), 0]
        stop_server(process, grace=0.1)
        process.kill.assert_called_once_with()

    def test_server_exits_before_tests(self, example_root, caplog):
        process = MagicMock()
        process.poll.return_value = 1
        with patch("waypoint.harness.subprocess.Popen", return_value=process), \
                patch("waypoint.harness.subprocess.run") as pytest_run:
            assert run_tests(example_root, "test", ready_timeout=1.0) == 1
        pytest_run.assert_not_called()
        assert "Server exited before tests" in caplog.text

    def test_runs_pytest_with_base_url(self, example_root):
        process = MagicMock()
        process.poll.return_value = None
        completed = MagicMock(returncode=0)
        with patch("waypoint.harness.subprocess.Popen", return_value=process) as popen, \
                patch("waypoint.harness.wait_for_ready", return_value=True), \
                patch("waypoint.harness.subprocess.run", return_value=completed) as pytest_run:
            assert run_tests(example_root, "test", ["-q"]) == 0

        assert "NOTIFY_SOCKET" in popen.call_args.kwargs["env"]
        command = pytest_run.call_args.args[0]
        assert command[1:3] == ["-m", "pytest"]
        assert command[-1] == "-q"
        assert pytest_run.call_args.kwargs["env"]["WAYPOINT_BASE_URL"] == "http://127.0.0.1:3001"
        process.terminate.assert_called_once_with()
