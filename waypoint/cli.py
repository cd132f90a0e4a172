"""
Waypoint CLI - ``wp``.

Commands:
    run       - Bootstrap the project and serve it
    routes    - Print the resolved route table without serving
    generate  - Generate CRUD scaffolding from model definitions
    docs      - Build static API documentation
    test      - Run the project's tests against a live server
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional, Tuple

import click

from . import __version__
from .bootstrap import Bootstrap, fatal_error
from .config import load_api_versions, load_environment, load_settings
from .discovery import ProjectLayout
from .faults import Fault
from .log import configure_logging

root_option = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    show_default=True,
    help="Project root directory",
)


@click.group()
@click.version_option(version=__version__, prog_name="wp")
@click.option("--log-level", default="INFO", show_default=True, help="Logging level")
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """Convention-driven JSON API server."""
    ctx.ensure_object(dict)
    configure_logging(log_level)


@cli.command()
@click.argument("env", required=False)
@root_option
@click.option("--docs", is_flag=True, help="Serve API docs at /api-docs")
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--debug", is_flag=True, help="Include exception text in 500 responses")
def run(env: Optional[str], root: str, docs: bool, host: str, debug: bool) -> None:
    """
    Bootstrap and serve the project.

    ENV selects .env.ENV; without it .env is loaded.
    """
    Bootstrap(root, env, docs=docs, host=host, debug=debug).run()


@cli.command()
@click.argument("env", required=False)
@root_option
def routes(env: Optional[str], root: str) -> None:
    """Print the resolved route table."""
    try:
        app = asyncio.run(Bootstrap(root, env).build())
    except Exception as e:
        fatal_error(e)

    if not app.routes:
        click.echo(click.style("No routes", fg="yellow"))
        return

    width = max(len(route.display_method) for route in app.routes) + 2
    for route in app.routes:
        middlewares = ", ".join(mw.name for mw in route.middlewares)
        line = click.style(route.display_method.ljust(width), fg="green") + route.path
        if middlewares:
            line += click.style(f"  [{middlewares}]", dim=True)
        click.echo(line)


@cli.group()
def generate() -> None:
    """Generate code from model definitions."""


@generate.command("crud")
@root_option
def generate_crud(root: str) -> None:
    """Generate schemas, middlewares, controllers and services for models/."""
    from .codegen import CRUDGenerator

    try:
        result = CRUDGenerator(root).generate()
    except Fault as e:
        fatal_error(e)

    for path in result.written:
        click.echo(click.style("  created  ", fg="green") + str(path))
    for path in result.skipped:
        click.echo(click.style("  exists   ", dim=True) + str(path))


@cli.group()
def docs() -> None:
    """API documentation."""


@docs.command("build")
@click.argument("env", required=False)
@root_option
def docs_build(env: Optional[str], root: str) -> None:
    """Write docs/swagger.json, docs/index.html and docs/README.md."""
    from .codegen import OpenAPIGenerator

    layout = ProjectLayout.at(root)
    try:
        if env or layout.env_file().is_file():
            load_environment(layout, env)
        config = load_settings(layout)
        versions = load_api_versions(layout)
        generator = OpenAPIGenerator(layout, config=config, version=versions.default)
        generator.refresh()
        docs_dir = generator.write_static()
    except Fault as e:
        fatal_error(e)
    click.echo(click.style("Documentation written to ", fg="green") + str(docs_dir))


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("env", required=False)
@root_option
@click.option("--timeout", default=60.0, show_default=True, help="Seconds to wait for the server")
@click.argument("pytest_args", nargs=-1, type=click.UNPROCESSED)
def test(env: Optional[str], root: str, timeout: float, pytest_args: Tuple[str, ...]) -> None:
    """Run tests/ against a live server started with ENV."""
    from .harness import run_tests

    sys.exit(run_tests(root, env, pytest_args, ready_timeout=timeout))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
