"""CLI main entry point using Typer."""

import asyncio
import webbrowser
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from stylewatch.compiler.engine import compile_file
from stylewatch.config.models import VALID_OUTPUT_STYLES, CompileResult, ServerConfig, WatchConfig
from stylewatch.config.settings import (
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_OUTPUT_STYLE,
    DEFAULT_PORT,
)
from stylewatch.errors import StylewatchError
from stylewatch.logging import setup_logging
from stylewatch.session import start_session

app = typer.Typer(
    name="stylewatch",
    help="Compile Sass stylesheets and recompile them when they or their imports change",
    add_completion=False,
)

# Status goes to stderr so compiled CSS can be piped from stdout
console = Console(stderr=True)

ENTRY_ARGUMENT = typer.Argument(..., help="Entry stylesheet (.scss, .sass or .css)")
OUTPUT_OPTION = typer.Option(
    None,
    "--output",
    "-o",
    help="File to write compiled CSS to (default: stdout)",
)
STYLE_OPTION = typer.Option(
    DEFAULT_OUTPUT_STYLE,
    "--style",
    "-s",
    help=f"Output style ({'/'.join(VALID_OUTPUT_STYLES)})",
)
INCLUDE_OPTION = typer.Option(
    None,
    "--include-path",
    "-I",
    help="Additional directory to search for imports (repeatable)",
)
LOG_LEVEL_OPTION = typer.Option(
    DEFAULT_LOG_LEVEL,
    "--log-level",
    "--log",
    "-l",
    help="Logging level (DEBUG/INFO/WARNING/ERROR)",
)


def _load_config(
    entry: Path, output: Path | None, style: str, include_paths: list[Path]
) -> WatchConfig:
    """Build and validate a WatchConfig, exiting with the CLI's error codes."""
    if not entry.exists():
        console.print(f"[red]✗[/red] Path not found: {entry}", style="bold")
        raise typer.Exit(code=3)

    config = WatchConfig(
        entry_path=entry.absolute(),
        output_path=output.absolute() if output else None,
        output_style=style,
        include_paths=include_paths,
    )
    try:
        config.validate()
    except ValueError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}", style="bold")
        raise typer.Exit(code=2)
    return config


def _write_output(result: CompileResult, output: Path | None) -> None:
    """Write compiled CSS to ``output``, or stdout when it is None."""
    if output is None:
        typer.echo(result.css, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result.css, encoding="utf-8")


@app.command()
def build(
    entry: Path = ENTRY_ARGUMENT,
    output: Optional[Path] = OUTPUT_OPTION,
    style: str = STYLE_OPTION,
    include_path: Optional[List[Path]] = INCLUDE_OPTION,
) -> None:
    """Compile a stylesheet once."""
    config = _load_config(entry, output, style, include_path or [])

    try:
        result = asyncio.run(compile_file(config.entry_path, config.to_compile_options()))
    except StylewatchError as e:
        console.print(f"[red]✗[/red] {e}", style="bold")
        raise typer.Exit(code=1)
    except OSError as e:
        console.print(f"[red]✗[/red] Error: {e}", style="bold")
        raise typer.Exit(code=1)

    _write_output(result, config.output_path)
    if config.output_path:
        console.print(f"[green]✓[/green] Wrote {config.output_path}")


async def _watch(config: WatchConfig) -> None:
    """Run a session until cancelled, reporting every event."""
    session = start_session(config.entry_path, config.to_compile_options())

    def on_change(path: Path) -> None:
        console.print(f"[cyan]↻[/cyan] Changed: {path}")

    def on_compile(result: CompileResult) -> None:
        _write_output(result, config.output_path)
        target = config.output_path or "stdout"
        console.print(
            f"[green]✓[/green] Compiled {config.entry_path.name} -> {target} "
            f"({len(result.imports)} import(s))"
        )

    def on_error(error: Exception) -> None:
        console.print(f"[red]✗[/red] {error}", style="bold")

    session.on("change", on_change)
    session.on("compile", on_compile)
    session.on("error", on_error)

    try:
        await asyncio.Event().wait()
    finally:
        session.close()
        await session.wait_idle()


@app.command()
def watch(
    entry: Path = ENTRY_ARGUMENT,
    output: Optional[Path] = OUTPUT_OPTION,
    style: str = STYLE_OPTION,
    include_path: Optional[List[Path]] = INCLUDE_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Compile a stylesheet and recompile it whenever it or an import changes."""
    config = _load_config(entry, output, style, include_path or [])
    setup_logging(log_level)

    console.print(f"\n[bold blue]stylewatch[/bold blue] - watching {config.entry_path}\n")
    try:
        asyncio.run(_watch(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")
        raise typer.Exit(code=0)


@app.command()
def serve(
    entry: Path = ENTRY_ARGUMENT,
    port: int = typer.Option(
        DEFAULT_PORT,
        "--port",
        "-p",
        help="Port to bind server (1024-65535)",
        min=1024,
        max=65535,
    ),
    host: str = typer.Option(
        DEFAULT_HOST,
        "--host",
        "-h",
        help="Host to bind server",
    ),
    style: str = STYLE_OPTION,
    no_open: bool = typer.Option(
        False,
        "--no-open",
        help="Don't open browser automatically",
    ),
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Serve the compiled stylesheet with live reload."""
    import uvicorn

    config = ServerConfig(
        entry_path=entry.absolute(),
        host=host,
        port=port,
        output_style=style,
        open_browser=not no_open,
        log_level=log_level,
    )
    if not entry.exists():
        console.print(f"[red]✗[/red] Path not found: {entry}", style="bold")
        raise typer.Exit(code=3)
    try:
        config.validate()
    except ValueError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}", style="bold")
        raise typer.Exit(code=2)

    setup_logging(log_level)
    console.print(f"\n[bold blue]stylewatch[/bold blue] - serving {config.entry_path.name}\n")
    console.print(f"[green]✓[/green] Stylesheet: http://{host}:{port}/style.css")
    console.print(f"[green]✓[/green] Live reload: <script src=\"http://{host}:{port}/livereload.js\">\n")

    if config.open_browser:
        import threading
        import time

        def open_browser_delayed():
            time.sleep(1.5)  # Wait for server to start
            webbrowser.open(f"http://{host}:{port}")

        threading.Thread(target=open_browser_delayed, daemon=True).start()

    from stylewatch.server.app import create_app

    try:
        uvicorn.run(
            create_app(config),
            host=host,
            port=port,
            log_level=log_level.lower(),
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")
        raise typer.Exit(code=0)
    except OSError as e:
        if "address already in use" in str(e).lower():
            console.print(f"[red]✗[/red] Port {port} is already in use", style="bold")
            raise typer.Exit(code=5)
        console.print(f"[red]✗[/red] Error: {e}", style="bold")
        raise typer.Exit(code=1)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
