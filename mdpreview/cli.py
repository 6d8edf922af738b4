"""CLI entrypoint for the mdpreview server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import ServerConfig, load_config
from .preview_server import PreviewServer, ServerStartError

console = Console()
app = typer.Typer(help="Preview Markdown files in the browser with live reload.")


def _version_callback(value: bool) -> None:
    if not value:
        return
    from . import __version__

    console.print(f"mdpreview {__version__}")
    raise typer.Exit()


@app.command()
def serve(  # noqa: PLR0913
    target: Annotated[
        Path | None,
        typer.Argument(help="Markdown file or directory to preview (defaults to the current directory)."),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", help="Host interface to bind the preview server."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port for the preview server."),
    ] = None,
    theme: Annotated[
        str | None,
        typer.Option("--theme", help="Page theme: light, dark or auto."),
    ] = None,
    bounding_box: Annotated[
        bool | None,
        typer.Option("--bounding-box/--no-bounding-box", help="Draw a box around the document."),
    ] = None,
    browser: Annotated[
        bool | None,
        typer.Option("--browser/--no-browser", help="Open the page in a browser after starting."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a mdpreview.yml configuration file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log requests and file changes."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit."),
    ] = False,
) -> None:
    """Serve a directory, rendering Markdown and reloading on change."""
    _configure_logging(verbose)
    directory, document = _resolve_target(target)

    base = _load(config_path if config_path is not None else directory)
    try:
        config = base.merged(
            host=host,
            port=port,
            theme=theme,
            bounding_box=bounding_box,
            browser=browser,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    server = PreviewServer(config, directory, target=document)
    try:
        server.run(announce=_announce)
    except ServerStartError as exc:
        console.print(f"[bold red]Failed to start preview server[/]: {exc}")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Stopping preview server...[/]")


def _announce(url: str) -> None:
    console.print(f"🚀 Starting server: {url}", soft_wrap=True)
    console.print("[dim]Press Ctrl+C to stop.[/]")


def _resolve_target(target: Path | None) -> tuple[Path, str | None]:
    if target is None:
        return Path.cwd(), None
    if not target.exists():
        raise typer.BadParameter(f"Path not found: {target}")
    if target.is_dir():
        return target, None
    return target.parent, target.name


def _load(path: Path) -> ServerConfig:
    try:
        return load_config(path)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Config file not found: {path}") from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # watchdog is chatty at debug level; keep it quiet unless it has problems.
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
