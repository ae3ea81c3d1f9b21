"""CLI for Canvas Builder."""

import asyncio
import os
import sys

import click
from loguru import logger

from canvas_builder.models import CanvasConfig
from canvas_builder.server import run_server


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    logger.remove()  # Remove default handler

    level = "DEBUG" if verbose else "INFO"
    format_str = (
        "<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(sys.stderr, format=format_str, level=level, colorize=True)


@click.command()
@click.option(
    "--host",
    default="0.0.0.0",
    help="Host to bind the web server to",
)
@click.option(
    "--port",
    default=lambda: int(os.environ.get("PORT", "3000")),
    type=int,
    show_default="$PORT or 3000",
    help="Port for the web server",
)
@click.option(
    "--external-host",
    default=None,
    help="Host name used in URLs returned by MCP tools",
)
@click.option(
    "--image-timeout",
    default=5.0,
    type=click.FloatRange(min=0, min_open=True),
    show_default=True,
    help="Seconds allowed to fetch and decode an image",
)
@click.option(
    "--max-upload-mb",
    default=50,
    type=click.IntRange(min=1),
    show_default=True,
    help="Largest accepted request body or image, in MiB",
)
@click.option(
    "--cors-origin",
    default="*",
    show_default=True,
    help="Value of Access-Control-Allow-Origin",
)
@click.option(
    "--mcp",
    is_flag=True,
    help="Also serve MCP tools over stdio",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose logging",
)
def main(
    host: str,
    port: int,
    external_host: str | None,
    image_timeout: float,
    max_upload_mb: int,
    cors_origin: str,
    mcp: bool,
    verbose: bool,
) -> None:
    """Canvas Builder - server-held canvases rendered to PNG and PDF.

    Clients create a canvas, append rectangles, circles, text and images to
    it, then download a PNG preview or a single-page PDF.

    Example:

        canvas-builder --port 3000

        curl -X POST localhost:3000/api/canvas/init \\
             -H 'Content-Type: application/json' \\
             -d '{"width": 800, "height": 600}'
    """
    setup_logging(verbose)

    config = CanvasConfig(
        host=host,
        port=port,
        external_host=external_host,
        image_fetch_timeout=image_timeout,
        max_upload_bytes=max_upload_mb * 1024 * 1024,
        cors_origin=cors_origin,
        mcp_enabled=mcp,
    )

    logger.info(f"Starting Canvas Builder on {host}:{port} (mcp={'on' if mcp else 'off'})")

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
