"""MCP Server - Model Context Protocol tools for canvas sessions."""

import asyncio
import base64
import json
from typing import Any, Sequence

from loguru import logger
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    ImageContent,
    Resource,
    ResourceTemplate,
    TextContent,
    Tool,
)

from canvas_builder.canvas_manager import CanvasManager
from canvas_builder.errors import CanvasError
from canvas_builder.models import CanvasConfig
from canvas_builder.web_server import CanvasWebServer

_SESSION_ID = {"type": "string", "description": "The canvas session ID"}
_COLOR = {"type": "string", "description": "CSS color (default #000000)"}
_IS_FILLED = {"type": "boolean", "description": "Fill the shape (default) or draw a 2px outline"}


def _object(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


class CanvasMCPServer:
    """
    MCP Server for canvas operations.

    Exposes tools for:
    - Creating/deleting canvas sessions
    - Adding rectangles, circles, text and images
    - Previewing a canvas as an image and linking its PDF export
    - Listing sessions and reading their element logs
    """

    def __init__(self, config: CanvasConfig, canvas_manager: CanvasManager | None = None):
        self.config = config
        self.server = Server("canvas-builder")
        self.canvas_manager = canvas_manager or CanvasManager(config)
        self.web_server = CanvasWebServer(config, self.canvas_manager)

        self._register_tools()
        self._register_resources()

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            return [
                Tool(
                    name="canvas_init",
                    description="Create a blank white canvas of the given size (1-5000 px per side)",
                    inputSchema=_object(
                        {
                            "width": {"type": "integer", "description": "Width in pixels"},
                            "height": {"type": "integer", "description": "Height in pixels"},
                        },
                        ["width", "height"],
                    ),
                ),
                Tool(
                    name="canvas_add_rectangle",
                    description="Draw a rectangle; later elements paint over earlier ones",
                    inputSchema=_object(
                        {
                            "session_id": _SESSION_ID,
                            "x": {"type": "number"},
                            "y": {"type": "number"},
                            "width": {"type": "number"},
                            "height": {"type": "number"},
                            "color": _COLOR,
                            "isFilled": _IS_FILLED,
                        },
                        ["session_id", "x", "y", "width", "height"],
                    ),
                ),
                Tool(
                    name="canvas_add_circle",
                    description="Draw a circle centred at (x, y)",
                    inputSchema=_object(
                        {
                            "session_id": _SESSION_ID,
                            "x": {"type": "number"},
                            "y": {"type": "number"},
                            "radius": {"type": "number", "description": "Radius in pixels (at most 10000)"},
                            "color": _COLOR,
                            "isFilled": _IS_FILLED,
                        },
                        ["session_id", "x", "y", "radius"],
                    ),
                ),
                Tool(
                    name="canvas_add_text",
                    description="Draw a line of text with its top at y",
                    inputSchema=_object(
                        {
                            "session_id": _SESSION_ID,
                            "text": {"type": "string"},
                            "x": {"type": "number"},
                            "y": {"type": "number"},
                            "fontSize": {"type": "number", "description": "Pixel size (default 16, at most 1000)"},
                            "fontFamily": {"type": "string", "description": "Font family (default Arial)"},
                            "color": _COLOR,
                            "align": {
                                "type": "string",
                                "enum": ["left", "right", "center", "start", "end"],
                            },
                        },
                        ["session_id", "text", "x", "y"],
                    ),
                ),
                Tool(
                    name="canvas_add_image",
                    description="Fetch an image (http, https or data URL) and draw it into a box",
                    inputSchema=_object(
                        {
                            "session_id": _SESSION_ID,
                            "url": {"type": "string"},
                            "x": {"type": "number"},
                            "y": {"type": "number"},
                            "width": {"type": "number", "description": "Defaults to the image's width"},
                            "height": {"type": "number", "description": "Defaults to the image's height"},
                        },
                        ["session_id", "url", "x", "y"],
                    ),
                ),
                Tool(
                    name="canvas_preview",
                    description="Render the canvas as a PNG image",
                    inputSchema=_object({"session_id": _SESSION_ID}, ["session_id"]),
                ),
                Tool(
                    name="canvas_export",
                    description="Get the download URL of the canvas as a single-page PDF",
                    inputSchema=_object({"session_id": _SESSION_ID}, ["session_id"]),
                ),
                Tool(
                    name="canvas_info",
                    description="Get the canvas size and its ordered list of drawn elements",
                    inputSchema=_object({"session_id": _SESSION_ID}, ["session_id"]),
                ),
                Tool(
                    name="canvas_list",
                    description="List all canvas sessions",
                    inputSchema=_object({}, []),
                ),
                Tool(
                    name="canvas_delete",
                    description="Delete a canvas session",
                    inputSchema=_object({"session_id": _SESSION_ID}, ["session_id"]),
                ),
            ]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> Sequence[TextContent | ImageContent]:
            try:
                if name == "canvas_preview":
                    png = await self.canvas_manager.preview(arguments["session_id"])
                    return [ImageContent(
                        type="image",
                        data=base64.b64encode(png).decode("ascii"),
                        mimeType="image/png",
                    )]
                result = await self._handle_tool_call(name, arguments)
                return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]
            except CanvasError as e:
                logger.warning(f"Tool call failed: {name} - {e.message}")
                return [TextContent(type="text", text=json.dumps({"error": e.message}))]
            except Exception as e:
                logger.error(f"Tool call failed: {name} - {e}")
                return [TextContent(type="text", text=json.dumps({"error": str(e)}))]

    async def _handle_tool_call(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Handle a tool call and return result."""
        fields = {key: value for key, value in arguments.items() if key != "session_id"}

        if name == "canvas_init":
            session = await self.canvas_manager.create_canvas(
                arguments.get("width"), arguments.get("height")
            )
            preview_url, export_url = self.canvas_manager.canvas_urls(session.id)
            return {
                "success": True,
                "session_id": session.id,
                "width": session.width,
                "height": session.height,
                "preview_url": preview_url,
                "export_url": export_url,
            }

        elif name in ("canvas_add_rectangle", "canvas_add_circle", "canvas_add_text"):
            session_id = arguments["session_id"]
            kind = name.removeprefix("canvas_add_")
            element = await self.canvas_manager.add_element(session_id, kind, fields)
            return {
                "success": True,
                "session_id": session_id,
                "element": element.to_wire(),
            }

        elif name == "canvas_add_image":
            session_id = arguments["session_id"]
            element = await self.canvas_manager.add_image(session_id, fields)
            return {
                "success": True,
                "session_id": session_id,
                "element": element.to_wire(),
            }

        elif name == "canvas_export":
            session_id = arguments["session_id"]
            self.canvas_manager.registry.get(session_id)
            _, export_url = self.canvas_manager.canvas_urls(session_id)
            return {
                "success": True,
                "session_id": session_id,
                "export_url": export_url,
            }

        elif name == "canvas_info":
            return {"success": True, **self.canvas_manager.info(arguments["session_id"])}

        elif name == "canvas_list":
            canvases = self.canvas_manager.list_canvases()
            return {
                "success": True,
                "count": len(canvases),
                "canvases": canvases,
            }

        elif name == "canvas_delete":
            session_id = arguments["session_id"]
            await self.canvas_manager.delete_canvas(session_id)
            return {
                "success": True,
                "session_id": session_id,
            }

        else:
            raise ValueError(f"Unknown tool: {name}")

    def _register_resources(self) -> None:
        """Register MCP resources."""

        @self.server.list_resources()
        async def list_resources() -> list[Resource]:
            return [
                Resource(
                    uri=f"canvas://{canvas['id']}/info",
                    name=f"Canvas {canvas['id']} ({canvas['width']}x{canvas['height']})",
                    description=f"Element log of canvas {canvas['id']}",
                    mimeType="application/json",
                )
                for canvas in self.canvas_manager.list_canvases()
            ]

        @self.server.list_resource_templates()
        async def list_resource_templates() -> list[ResourceTemplate]:
            return [
                ResourceTemplate(
                    uriTemplate="canvas://{session_id}/info",
                    name="Canvas Info",
                    description="Size and element log of a canvas session",
                    mimeType="application/json",
                ),
            ]

        @self.server.read_resource()
        async def read_resource(uri: Any) -> str:
            return self.read_resource(str(uri))

    def read_resource(self, uri: str) -> str:
        """Read a ``canvas://{session_id}/info`` resource."""
        if not uri.startswith("canvas://"):
            raise ValueError(f"Invalid resource URI: {uri}")

        parts = uri[len("canvas://"):].split("/")
        if len(parts) != 2 or parts[1] != "info":
            raise ValueError(f"Invalid resource path: {uri}")

        return json.dumps(self.canvas_manager.info(parts[0]), indent=2)

    async def run_stdio(self) -> None:
        """Run the MCP server using stdio transport."""
        # Start web server in background so export URLs resolve
        await self.web_server.start()

        logger.info("Canvas MCP Server starting...")

        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.web_server.stop()
            await self.canvas_manager.close()
            logger.info("Canvas MCP Server stopped")


async def run_http(config: CanvasConfig) -> None:
    """Serve the HTTP API until cancelled."""
    canvas_manager = CanvasManager(config)
    web_server = CanvasWebServer(config, canvas_manager)
    await web_server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await web_server.stop()
        await canvas_manager.close()


async def run_server(config: CanvasConfig) -> None:
    """Run Canvas Builder, with MCP tools over stdio when enabled."""
    if config.mcp_enabled:
        server = CanvasMCPServer(config)
        await server.run_stdio()
    else:
        await run_http(config)
