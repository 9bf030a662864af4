"""
CLI for the m2d-image plugin.

Commands:
- info: Show configuration and cache status
- resolve: Resolve a single image source
- preprocess: Resolve all images of an mdast JSON tree
- clear-cache: Remove all persisted images
"""

import asyncio
import base64
import json
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .config import settings
from .logging import setup_logging

app = typer.Typer(
    name="m2d-image",
    help="Resolve markdown images into DOCX-ready payloads",
)
console = Console()


def _encode_data(value: object) -> str:
    """JSON encoder hook writing image bytes as base64."""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Also write debug logs to this file"
    ),
):
    """m2d-image - image resolution for markdown-to-DOCX conversion."""
    log_level = "DEBUG" if verbose else settings.log_level
    log_file = log_file or settings.log_file
    setup_logging(
        level=log_level,
        json_output=settings.log_json,
        log_file=str(log_file) if log_file else None,
    )
    logger.debug("CLI initialized with log level: {}", log_level)


@app.command()
def info():
    """Show configuration and image cache status."""
    logger.debug("Displaying configuration and status")
    console.print("[bold blue]m2d-image Configuration[/]")

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Scale", str(settings.scale))
    table.add_row("Fallback Image Type", settings.fallback_image_type)
    table.add_row("Max Size (in)", f"{settings.max_w} x {settings.max_h}")
    table.add_row("Placeholder", settings.placeholder or "[yellow]none[/]")
    table.add_row("Cache Enabled", str(settings.cache_enabled))
    table.add_row("Cache Directory", settings.cache_dir)
    table.add_row("Cache Max Age (min)", str(settings.cache_max_age_minutes))
    table.add_row("Fetch Timeout (s)", str(settings.fetch_timeout))

    console.print(table)

    console.print("\n[bold]Image Cache Status[/]")
    if not settings.cache_enabled:
        console.print("Image cache disabled")
        return

    try:
        from .cache import create_image_store

        store = create_image_store("file", cache_dir=settings.cache_path)
        count = asyncio.run(store.count())
        logger.debug("Image cache status: {} entries", count)
        console.print(f"Cached images: {count}")
    except Exception as e:
        logger.error("Error accessing image cache: {}", e)
        console.print(f"[red]Error accessing image cache: {e}[/]")


@app.command()
def resolve(
    src: str = typer.Argument(..., help="Data URL, URL or path of the image"),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write the image bytes here"),
    width: float | None = typer.Option(None, "--width", help="Requested width in pixels"),
    height: float | None = typer.Option(None, "--height", help="Requested height in pixels"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the persistent cache"),
):
    """Resolve a single image source and show the result."""
    from .plugin import image_plugin

    logger.info("Resolving image: {}", src[:60])
    plugin = image_plugin(settings, cache_enabled=settings.cache_enabled and not no_cache)
    node = {"type": "image", "url": src, "data": {"width": width, "height": height}}

    image = asyncio.run(plugin.resolver.resolve(src, node))

    table = Table(title="Resolved Image")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Type", image.type)
    table.add_row("Size", f"{len(image.data)} bytes")
    table.add_row("Width", f"{image.transformation.width:.1f}")
    table.add_row("Height", f"{image.transformation.height:.1f}")
    console.print(table)

    if not image.data:
        console.print("[yellow]Image could not be resolved; placeholder used[/]")

    if out:
        out.write_bytes(image.data)
        logger.debug("Wrote {} bytes to {}", len(image.data), out)
        console.print(f"[green]Saved to {out}[/]")


@app.command()
def preprocess(
    tree: Path = typer.Argument(..., help="mdast JSON file"),
    definitions: Path | None = typer.Option(
        None, "--definitions", "-d", help="JSON file mapping reference identifiers to URLs"
    ),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write the resolved tree here"),
):
    """Resolve all images of an mdast JSON tree."""
    from .plugin import image_plugin, iter_image_nodes

    if not tree.exists():
        logger.error("Tree file not found: {}", tree)
        console.print(f"[red]File not found: {tree}[/]")
        raise typer.Exit(1)

    try:
        root = json.loads(tree.read_text())
        defs = json.loads(definitions.read_text()) if definitions else {}
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot load input: {}", e)
        console.print(f"[red]Cannot load input: {e}[/]")
        raise typer.Exit(1) from e

    plugin = image_plugin(settings)
    with console.status("Resolving images..."):
        asyncio.run(plugin.preprocess(root, {k.upper(): v for k, v in defs.items()}))

    nodes = list(iter_image_nodes(root))
    failed = sum(1 for node in nodes if not node["data"]["data"])
    logger.info("Resolved {} images ({} failed)", len(nodes), failed)
    console.print(
        f"[green]✓ Resolved {len(nodes)} images[/]"
        + (f" [yellow]({failed} failed)[/]" if failed else "")
    )

    if out:
        out.write_text(json.dumps(root, default=_encode_data, indent=2))
        console.print(f"[green]Saved to {out}[/]")


@app.command()
def clear_cache(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove all persisted images from the cache."""
    from .cache import create_image_store

    if not yes and not typer.confirm(f"Clear image cache at {settings.cache_dir}?"):
        raise typer.Exit(0)

    store = create_image_store("file", cache_dir=settings.cache_path)
    removed = asyncio.run(store.clear())
    console.print(f"[green]Removed {removed} cached images[/]")


if __name__ == "__main__":
    app()
