import logging
import shutil
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from routegraph._artifact import (
    ARTIFACT_STORE,
    DEFAULT_DOWNLOAD_PATH,
    DEFAULT_VERSION,
    DOWNLOAD_URL,
    DOWNLOADED_ARTIFACT_PATH,
    PACKAGE,
    ArtifactSettings,
    artifact_routes,
)
from routegraph._distribution import BitSize, Platform
from routegraph._download import DEFAULT_USER_AGENT, ThrottledProgress, TimeoutConfig, log_progress
from routegraph._errors import RouteGraphError
from routegraph._render import render_dot

from .config import ConfigError, RouteGraphConfig, get_config
from .graph_render import render_dependency_tree, render_rule_table

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Routegraph CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


VersionOption = Annotated[str | None, typer.Option("--version", help=f"Version to resolve [default: {DEFAULT_VERSION}]")]
DownloadUrlOption = Annotated[
    str | None,
    typer.Option("--download-url", help=f"Base URL of the archives [default: {DEFAULT_DOWNLOAD_PATH}]"),
]
PlatformOption = Annotated[Platform | None, typer.Option("--platform", help="Override the detected platform")]
BitSizeOption = Annotated[BitSize | None, typer.Option("--bit-size", help="Override the detected bit size")]


def _load_config() -> RouteGraphConfig:
    try:
        return get_config()
    except ConfigError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=2) from e


def _settings(  # noqa: PLR0913
    config: RouteGraphConfig,
    *,
    version: str | None = None,
    download_url: str | None = None,
    user_agent: str | None = None,
    platform: Platform | None = None,
    bit_size: BitSize | None = None,
    connection_timeout: float | None = None,
    read_timeout: float | None = None,
) -> ArtifactSettings:
    """Merge command line options over config values over defaults."""
    timeouts = config.timeout_config or TimeoutConfig.defaults()
    if connection_timeout is not None or read_timeout is not None:
        timeouts = TimeoutConfig(
            connection_timeout=connection_timeout or timeouts.connection_timeout,
            read_timeout=read_timeout or timeouts.read_timeout,
        )
    return ArtifactSettings(
        version=version or config.version or DEFAULT_VERSION,
        download_path=download_url or config.download_url or DEFAULT_DOWNLOAD_PATH,
        user_agent=user_agent or config.user_agent or DEFAULT_USER_AGENT,
        timeout_config=timeouts,
        platform=platform or config.platform,
        bit_size=bit_size or config.bit_size,
    )


def _fail(error: RouteGraphError) -> typer.Exit:
    err_console.print(f"[red]✗ {escape(str(error))}[/red]")
    cause = error.__cause__
    while cause is not None:
        err_console.print(f"  [dim]caused by {escape(type(cause).__name__)}: {escape(str(cause))}[/dim]")
        cause = cause.__cause__
    return typer.Exit(code=1)


@app.command()
def download(  # noqa: PLR0913
    *,
    version: VersionOption = None,
    download_url: DownloadUrlOption = None,
    user_agent: Annotated[str | None, typer.Option("--user-agent", help="User-Agent header for downloads")] = None,
    platform: PlatformOption = None,
    bit_size: BitSizeOption = None,
    connection_timeout: Annotated[
        float | None,
        typer.Option("--connection-timeout", min=0.001, help="Connection timeout in seconds"),
    ] = None,
    read_timeout: Annotated[
        float | None,
        typer.Option("--read-timeout", min=0.001, help="Read timeout in seconds"),
    ] = None,
    copy_to: Annotated[
        Path | None,
        typer.Option("--copy-to", help="Copy the downloaded archive here before the workspace is deleted"),
    ] = None,
) -> None:
    """Download the distribution archive into a temporary workspace."""
    settings = _settings(
        _load_config(),
        version=version,
        download_url=download_url,
        user_agent=user_agent,
        platform=platform,
        bit_size=bit_size,
        connection_timeout=connection_timeout,
        read_timeout=read_timeout,
    )
    routes = artifact_routes(settings, listener=ThrottledProgress(log_progress))

    err_console.print()
    try:
        with routes.open(ARTIFACT_STORE) as workspace_scope:
            err_console.print(f"[cyan]Workspace:[/cyan] {escape(str(workspace_scope.current()))}")
            with workspace_scope.open(DOWNLOADED_ARTIFACT_PATH) as artifact_scope:
                artifact = artifact_scope.current()
                err_console.print(f"[cyan]Package:[/cyan] [bold]{escape(artifact_scope.get(PACKAGE).archive_path)}[/bold]")
                err_console.print(f"[cyan]Artifact:[/cyan] {escape(str(artifact))}")
                if copy_to is not None:
                    copy_to.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copyfile(artifact, copy_to)
                    err_console.print(f"[cyan]Copied to:[/cyan] {escape(str(copy_to))}")
    except RouteGraphError as e:
        raise _fail(e) from e
    except OSError as e:
        err_console.print(f"[red]✗ Could not copy the artifact: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    err_console.print()
    err_console.print("[green]✓ Download complete, workspace released[/green]")
    err_console.print()


@app.command()
def url(
    *,
    version: VersionOption = None,
    download_url: DownloadUrlOption = None,
    platform: PlatformOption = None,
    bit_size: BitSizeOption = None,
) -> None:
    """Print the download URL without downloading anything."""
    settings = _settings(
        _load_config(),
        version=version,
        download_url=download_url,
        platform=platform,
        bit_size=bit_size,
    )
    try:
        with artifact_routes(settings).open(DOWNLOAD_URL) as scope:
            logger.debug("Resolved %s using %s", DOWNLOAD_URL, ", ".join(str(key) for key in scope.owned_keys))
            out_console.print(scope.current(), markup=False, highlight=False, soft_wrap=True)
    except RouteGraphError as e:
        raise _fail(e) from e


@app.command()
def graph(
    *,
    dot: Annotated[bool, typer.Option("--dot", help="Print the graph in Graphviz DOT format")] = False,
) -> None:
    """Show the rules of the artifact route graph."""
    routes = artifact_routes()

    if dot:
        out_console.print(render_dot(routes, name="artifact"), markup=False, highlight=False, soft_wrap=True, end="")
        return

    render_rule_table(routes, out_console)
    out_console.print()
    render_dependency_tree(routes, DOWNLOADED_ARTIFACT_PATH, out_console)

    problems = routes.validate()
    if problems:
        for problem in problems:
            err_console.print(f"[red]✗ {escape(problem)}[/red]")
        raise typer.Exit(code=1)
    out_console.print()
    out_console.print(Panel("[green]✓ Route graph is valid[/green]", border_style="cyan", expand=False))
