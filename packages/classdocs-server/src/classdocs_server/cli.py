"""CLI for classdocs-server."""
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Optional

import click
import uvicorn
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from classdocs_shared.config import load_settings
from classdocs_shared.schemas import ServerSettings

from .bundle.errors import AcquisitionError, ClassDocsError
from .bundle.fetch import fetch_archive
from .bundle.provision import Provisioner
from .bundle.store import BundleStore
from .lookup.index import IndexCell
from .lookup.query import QueryEngine
from .tools import describe_error, render_hits

console = Console()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _settings(ctx: click.Context, **overrides) -> ServerSettings:
    try:
        settings = load_settings(
            ctx.obj["config_file"], log_level=ctx.obj["log_level"], **overrides
        )
    except (ValidationError, ValueError, OSError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    _setup_logging(settings.log_level)
    return settings


def _provision(settings: ServerSettings) -> None:
    fetch = partial(fetch_archive, show_progress=sys.stderr.isatty())
    try:
        report = Provisioner(settings, fetch=fetch).provision()
    except AcquisitionError as e:
        raise click.ClickException(f"Documentation unavailable: {e}") from e

    click.echo(f"Documentation ready ({report.action.value}) in {report.docs_dir}", err=True)
    if report.error:
        click.echo(f"Warning: serving previous bundle, refresh failed: {report.error}", err=True)


def _engine(settings: ServerSettings) -> QueryEngine:
    store = BundleStore(settings.docs_dir)
    return QueryEngine(
        IndexCell(store.index_file), store, max_results=settings.max_search_results
    )


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TOML config file with a [server] table",
)
@click.option("--log-level", default=None, help="Logging level (default from settings)")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path], log_level: Optional[str]):
    """classdocs - API class documentation server."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["log_level"] = log_level.upper() if log_level else None


@cli.command()
@click.option("--docs-dir", type=click.Path(path_type=Path), help="Bundle root directory")
@click.option("--docs-url", help="Bundle archive URL")
@click.option("--host", help="Host to bind to")
@click.option("--port", type=int, help="Port to bind to")
@click.option("--skip-provision", is_flag=True, help="Serve the bundle on disk as is")
@click.pass_context
def serve(ctx, docs_dir, docs_url, host, port, skip_provision):
    """Provision documentation, then start the HTTP server."""
    from .web.app import create_app

    settings = _settings(ctx, docs_dir=docs_dir, docs_url=docs_url, host=host, port=port)
    if not skip_provision:
        _provision(settings)

    app = create_app(settings, _engine(settings))
    click.echo(f"Starting server on http://{settings.host}:{settings.port}", err=True)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


@cli.command()
@click.option("--docs-dir", type=click.Path(path_type=Path), help="Bundle root directory")
@click.option("--docs-url", help="Bundle archive URL")
@click.option("--timeout", type=float, help="Download timeout in seconds")
@click.pass_context
def provision(ctx, docs_dir, docs_url, timeout):
    """Download or refresh the documentation bundle."""
    settings = _settings(ctx, docs_dir=docs_dir, docs_url=docs_url, fetch_timeout=timeout)
    _provision(settings)


@cli.command()
@click.argument("query")
@click.option("--docs-dir", type=click.Path(path_type=Path), help="Bundle root directory")
@click.pass_context
def search(ctx, query, docs_dir):
    """Search class names in the local bundle."""
    settings = _settings(ctx, docs_dir=docs_dir)
    try:
        hits = _engine(settings).search(query)
    except ClassDocsError as e:
        raise click.ClickException(describe_error(e)[1]) from e

    if not hits:
        click.echo(render_hits(hits))
        return

    table = Table(title=f"Classes matching {query.strip()!r}")
    table.add_column("Name")
    table.add_column("Kind")
    for hit in hits:
        table.add_row(hit.name, hit.kind.value)
    console.print(table)


@cli.command()
@click.argument("full_class_name")
@click.option("--docs-dir", type=click.Path(path_type=Path), help="Bundle root directory")
@click.pass_context
def show(ctx, full_class_name, docs_dir):
    """Print the documentation of one class."""
    settings = _settings(ctx, docs_dir=docs_dir)
    try:
        content = _engine(settings).retrieve(full_class_name)
    except ClassDocsError as e:
        raise click.ClickException(describe_error(e)[1]) from e
    click.echo(content, nl=False)


if __name__ == "__main__":
    cli()
