"""Web Server - HTTP API for canvas sessions."""

import json
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from aiohttp import web
from loguru import logger

from canvas_builder.errors import CanvasError, InvalidField
from canvas_builder.models import ElementType

if TYPE_CHECKING:
    from canvas_builder.canvas_manager import CanvasManager
    from canvas_builder.models import CanvasConfig


API_PREFIX = "/api/canvas"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Map canvas errors to JSON error responses."""
    try:
        return await handler(request)
    except CanvasError as e:
        if e.status >= 500:
            logger.error(f"{request.method} {request.path} failed: {e.message}")
        return web.json_response({"error": e.message}, status=e.status)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception(f"Unhandled error in {request.method} {request.path}")
        return web.json_response({"error": "Something went wrong!"}, status=500)


def cors_middleware(origin: str) -> Any:
    """Allow cross-origin access, exposing the headers file downloads need."""
    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Expose-Headers": "Content-Disposition, Content-Length, Content-Type",
    }

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=headers)
        try:
            response = await handler(request)
        except web.HTTPException as e:
            e.headers.update(headers)
            raise
        response.headers.update(headers)
        return response

    return middleware


async def _read_json(request: web.Request) -> dict[str, Any]:
    if not request.body_exists:
        return {}
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidField("body", "malformed JSON") from None
    if not isinstance(payload, dict):
        raise InvalidField("body", "expected a JSON object")
    return payload


class CanvasWebServer:
    """
    HTTP server for canvas sessions.

    Serves:
    - POST /api/canvas/init - create a session
    - POST /api/canvas/{id}/add/{rectangle,circle,text,image,image-upload}
    - GET  /api/canvas/{id}/preview - PNG snapshot
    - GET  /api/canvas/{id}/export/pdf - PDF download
    - GET  /api/canvas/{id}/info - dimensions and element log
    - DELETE /api/canvas/{id}
    - GET  /api/canvas - list sessions
    - / and /health - health checks
    """

    def __init__(self, config: "CanvasConfig", canvas_manager: "CanvasManager"):
        self.config = config
        self.canvas_manager = canvas_manager
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(
            client_max_size=self.config.max_upload_bytes,
            middlewares=[cors_middleware(self.config.cors_origin), error_middleware],
        )

        # Routes
        app.router.add_get("/", self._handle_health)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get(API_PREFIX, self._handle_list)
        app.router.add_post(f"{API_PREFIX}/init", self._handle_init)
        for kind in (ElementType.RECTANGLE, ElementType.CIRCLE, ElementType.TEXT):
            app.router.add_post(f"{API_PREFIX}/{{session_id}}/add/{kind.value}", self._handle_add_shape)
        app.router.add_post(f"{API_PREFIX}/{{session_id}}/add/image", self._handle_add_image)
        app.router.add_post(f"{API_PREFIX}/{{session_id}}/add/image-upload", self._handle_add_image_upload)
        app.router.add_get(f"{API_PREFIX}/{{session_id}}/preview", self._handle_preview)
        app.router.add_get(f"{API_PREFIX}/{{session_id}}/export/pdf", self._handle_export_pdf)
        app.router.add_get(f"{API_PREFIX}/{{session_id}}/info", self._handle_info)
        app.router.add_delete(f"{API_PREFIX}/{{session_id}}", self._handle_delete)

        return app

    async def start(self) -> None:
        """Start the web server."""
        self._app = self.create_app()
        # Cancel handlers (and pending image fetches) when clients disconnect
        self._runner = web.AppRunner(self._app, handler_cancellation=True)
        await self._runner.setup()

        self._site = web.TCPSite(
            self._runner,
            self.config.host,
            self.config.port,
        )
        await self._site.start()

        logger.info(f"Canvas Web Server started on http://{self.config.host}:{self.config.port}")

    async def stop(self) -> None:
        """Stop the web server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Canvas Web Server stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "ok", "message": "Canvas Builder API is running"})

    async def _handle_list(self, request: web.Request) -> web.Response:
        canvases = self.canvas_manager.list_canvases()
        return web.json_response({"count": len(canvases), "canvases": canvases})

    async def _handle_init(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        session = await self.canvas_manager.create_canvas(body.get("width"), body.get("height"))
        return web.json_response({
            "id": session.id,
            "message": "Canvas initialized successfully",
            "width": session.width,
            "height": session.height,
        })

    async def _handle_add_shape(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        kind = ElementType(request.path.rsplit("/", 1)[-1])
        # Unknown sessions are reported before malformed bodies
        self.canvas_manager.registry.get(session_id)
        body = await _read_json(request)
        element = await self.canvas_manager.add_element(session_id, kind, body)
        return web.json_response({
            "message": f"{kind.value.capitalize()} added successfully",
            "element": element.to_wire(),
        })

    async def _handle_add_image(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        self.canvas_manager.registry.get(session_id)
        body = await _read_json(request)
        element = await self.canvas_manager.add_image(session_id, body)
        return web.json_response({
            "message": "Image added successfully",
            "element": element.to_wire(),
        })

    async def _handle_add_image_upload(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        self.canvas_manager.registry.get(session_id)

        form = await request.post()
        upload = form.get("image")
        data = upload.file.read() if isinstance(upload, web.FileField) else None
        fields = {
            key: value
            for key, value in form.items()
            if key != "image" and isinstance(value, str) and value != ""
        }

        element = await self.canvas_manager.add_image_upload(session_id, data, fields)
        return web.json_response({
            "message": "Image uploaded and added successfully",
            "element": element.to_wire(),
        })

    async def _handle_preview(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        png = await self.canvas_manager.preview(session_id)
        return web.Response(body=png, content_type="image/png")

    async def _handle_export_pdf(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        document = await self.canvas_manager.export_pdf(session_id)
        return web.Response(
            body=document,
            content_type="application/pdf",
            headers={"Content-Disposition": f"attachment; filename=canvas-{session_id}.pdf"},
        )

    async def _handle_info(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        return web.json_response(self.canvas_manager.info(session_id))

    async def _handle_delete(self, request: web.Request) -> web.Response:
        session_id = request.match_info["session_id"]
        await self.canvas_manager.delete_canvas(session_id)
        return web.json_response({"message": "Canvas deleted successfully"})
