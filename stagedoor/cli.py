"""Command-line interface for Stagedoor.

This module defines the CLI commands using Click framework.

Commands:
- serve: Serve the build output directory.
- resolve: Show how a request path would be answered, without a server.
- ls: List the assets in the build output with their cache policies.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from . import __version__

_STATUS_COLORS = {2: "green", 4: "yellow", 5: "red"}


@click.group()
@click.version_option(version=__version__, prog_name="stagedoor")
def cli():
    """Stagedoor static asset server."""


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to serve on (overrides stagedoor.yaml)",
)
@click.option("--host", required=False, help="Interface to bind (overrides stagedoor.yaml)")
@click.option(
    "--dir",
    "output_dir",
    type=click.Path(path_type=Path),
    required=False,
    help="Build output directory to serve",
)
@click.option("--no-watch", is_flag=True, help="Do not reload when the output changes")
def serve(port: int | None, host: str | None, output_dir: Path | None, no_watch: bool):
    """Serve the build output directory."""
    project_root = Path.cwd()
    from .server import AssetServer

    try:
        server = AssetServer(
            project_root,
            http_port=port,
            host=host,
            output_dir=output_dir,
            watch=False if no_watch else None,
        )
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    server.start()


@cli.command()
@click.argument("path")
@click.option("--method", default="GET", show_default=True, help="HTTP method to simulate")
@click.option(
    "--dir",
    "output_dir",
    type=click.Path(path_type=Path),
    required=False,
    help="Build output directory to resolve against",
)
def resolve(path: str, method: str, output_dir: Path | None):
    """Show the response a request PATH would get."""
    from .paths import request_path_from_target
    from .server import build_responder

    config, store = _open_store(output_dir)
    responder = build_responder(store, config)
    request_path = request_path_from_target(path)
    context, response = asyncio.run(responder.describe(request_path, method))

    color = _STATUS_COLORS.get(response.status // 100, "white")
    click.echo(click.style(f"{response.status} {method.upper()} {request_path}", fg=color, bold=True))
    if context.lookup_key is not None:
        click.echo(f"  Key: {context.lookup_key}")
    click.echo("  States: " + " -> ".join(state.name for state in context.trail))
    for name, value in response.headers.items():
        click.echo(f"  {name}: {value}")
    click.echo(f"  Body: {len(response.body)} bytes")


@cli.command(name="ls")
@click.option(
    "--dir",
    "output_dir",
    type=click.Path(path_type=Path),
    required=False,
    help="Build output directory to list",
)
def list_assets(output_dir: Path | None):
    """List assets with their content type and cache policy."""
    from .policies import resolve_cache_control

    _, store = _open_store(output_dir)
    keys = store.keys()
    for key in keys:
        content_type = store.content_type(key)
        click.echo(f"{key}\t{content_type}\t{resolve_cache_control(content_type)}")
    click.echo(f"{len(keys)} assets")


def _open_store(output_dir: Path | None):
    """Load configuration and index the build output directory."""
    from .config import load_config, resolve_output_dir
    from .stores import DirectoryAssetStore

    project_root = Path.cwd()
    config = load_config(project_root)
    target = output_dir or resolve_output_dir(project_root, config)
    try:
        return config, DirectoryAssetStore(target)
    except FileNotFoundError as exc:
        raise click.ClickException(
            f"{exc}. Build the site first or pass --dir."
        ) from None


def main():
    """Entry point for the CLI application."""
    cli()
