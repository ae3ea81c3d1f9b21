"""Canvas Manager - canvas session operations."""

import asyncio
from typing import Any

from loguru import logger
from PIL import Image

from canvas_builder.errors import MissingField, SessionNotFound
from canvas_builder.exporter import encode_png, export_pdf
from canvas_builder.image_loader import ImageLoader
from canvas_builder.models import (
    CanvasConfig,
    Element,
    ElementType,
    ImageRequest,
    resolve_element,
    resolve_image_request,
)
from canvas_builder.rasterizer import draw_element, replay
from canvas_builder.registry import Session, SessionRegistry


def _commit(session: Session, element: Element, source: Image.Image | None = None) -> None:
    """Draw and record one element while holding the session lock."""
    with session.lock:
        if session.closed:
            raise SessionNotFound(session.id)
        draw_element(session.surface, element, source)
        session.elements.append(element)
        if source is not None:
            session.image_sources[len(session.elements) - 1] = source


def _snapshot(session: Session) -> Image.Image:
    with session.lock:
        if session.closed:
            raise SessionNotFound(session.id)
        return session.surface.snapshot()


def _replay(session: Session) -> Image.Image:
    with session.lock:
        if session.closed:
            raise SessionNotFound(session.id)
        entries = session.log_entries()
    surface = replay(session.width, session.height, entries)
    snapshot = surface.snapshot()
    surface.release()
    return snapshot


def _release(session: Session) -> None:
    with session.lock:
        session.closed = True
        session.surface.release()
        session.image_sources.clear()


class CanvasManager:
    """
    Runs every canvas operation against the session registry.

    Responsibilities:
    - Create/delete canvas sessions
    - Resolve, draw and record elements
    - Produce PNG previews and PDF exports
    - Describe sessions and their element logs

    Drawing, snapshotting and encoding run in worker threads; each session's
    lock is held inside the worker so a cancelled request can never release it
    while a primitive is still running. Image sources are loaded before the
    lock is taken.
    """

    def __init__(
        self,
        config: CanvasConfig,
        registry: SessionRegistry | None = None,
        image_loader: ImageLoader | None = None,
    ):
        self.config = config
        self.registry = registry or SessionRegistry()
        self.image_loader = image_loader or ImageLoader(
            timeout=config.image_fetch_timeout,
            max_bytes=config.max_upload_bytes,
        )

    async def close(self) -> None:
        """Release every session and the image loader's HTTP session."""
        for session in self.registry.sessions():
            self.registry.delete(session.id)
            await asyncio.to_thread(_release, session)
        await self.image_loader.close()
        logger.info("Canvas Manager closed")

    def canvas_urls(self, session_id: str) -> tuple[str, str]:
        """Get the HTTP preview and PDF export URLs for a session."""
        host = self.config.external_host or self.config.host
        display_host = "localhost" if host == "0.0.0.0" else host
        base = f"http://{display_host}:{self.config.port}/api/canvas/{session_id}"
        return f"{base}/preview", f"{base}/export/pdf"

    # Lifecycle

    async def create_canvas(self, width: Any, height: Any) -> Session:
        """
        Create a new canvas session.

        Args:
            width: Canvas width in pixels (1-5000)
            height: Canvas height in pixels (1-5000)

        Returns:
            The new session
        """
        return self.registry.create(width, height)

    async def delete_canvas(self, session_id: str) -> None:
        session = self.registry.delete(session_id)
        await asyncio.to_thread(_release, session)

    # Elements

    async def add_element(self, session_id: str, kind: ElementType | str, fields: dict[str, Any]) -> Element:
        """
        Resolve and draw a rectangle, circle or text element.

        Args:
            session_id: Target session ID
            kind: Element type
            fields: Raw caller fields (camelCase or snake_case)

        Returns:
            The resolved element as recorded in the log
        """
        session = self.registry.get(session_id)
        element = resolve_element(kind, fields)
        await asyncio.to_thread(_commit, session, element)
        logger.debug(f"Drew {element.type.value} on {session_id} (#{len(session.elements)})")
        return element

    async def add_rectangle(self, session_id: str, fields: dict[str, Any]) -> Element:
        return await self.add_element(session_id, ElementType.RECTANGLE, fields)

    async def add_circle(self, session_id: str, fields: dict[str, Any]) -> Element:
        return await self.add_element(session_id, ElementType.CIRCLE, fields)

    async def add_text(self, session_id: str, fields: dict[str, Any]) -> Element:
        return await self.add_element(session_id, ElementType.TEXT, fields)

    async def add_image(self, session_id: str, fields: dict[str, Any]) -> Element:
        """Fetch the image at ``fields["url"]`` and composite it."""
        session = self.registry.get(session_id)
        request = resolve_image_request(fields)
        source = await self.image_loader.load_url(request.url)
        return await self._place_image(session, request, source)

    async def add_image_upload(
        self,
        session_id: str,
        data: bytes | None,
        fields: dict[str, Any] | None = None,
    ) -> Element:
        """Decode an uploaded image and composite it (x/y default to 0)."""
        session = self.registry.get(session_id)
        if not data:
            raise MissingField("image")
        request = resolve_image_request(fields or {}, upload=True)
        source = await self.image_loader.load_bytes(data)
        return await self._place_image(session, request, source)

    async def _place_image(self, session: Session, request: ImageRequest, source: Image.Image) -> Element:
        element = request.place(source.size)
        await asyncio.to_thread(_commit, session, element, source)
        logger.debug(
            f"Drew image on {session.id} at ({element.x}, {element.y}) "
            f"{element.width}x{element.height} (#{len(session.elements)})"
        )
        return element

    # Reads

    async def preview(self, session_id: str) -> bytes:
        """Return the current surface as PNG bytes."""
        session = self.registry.get(session_id)
        snapshot = await asyncio.to_thread(_snapshot, session)
        png = await asyncio.to_thread(encode_png, snapshot)
        logger.debug(f"Rendered preview of {session_id} ({len(png)} bytes)")
        return png

    async def export_pdf(self, session_id: str) -> bytes:
        """Return the current surface as a single-page PDF."""
        session = self.registry.get(session_id)
        snapshot = await asyncio.to_thread(_snapshot, session)
        document = await asyncio.to_thread(
            export_pdf,
            snapshot,
            session.width,
            session.height,
            self.config.pdf_title,
            self.config.pdf_author,
            self.config.pdf_creator,
        )
        logger.debug(f"Exported {session_id} to PDF ({len(document)} bytes)")
        return document

    async def replay(self, session_id: str) -> Image.Image:
        """Re-render a session's element log onto a fresh surface and snapshot it."""
        session = self.registry.get(session_id)
        return await asyncio.to_thread(_replay, session)

    def info(self, session_id: str) -> dict[str, Any]:
        """Describe a session and its element log."""
        session = self.registry.get(session_id)
        elements = list(session.elements)
        return {
            "id": session.id,
            "width": session.width,
            "height": session.height,
            "elementCount": len(elements),
            "elements": [element.to_wire() for element in elements],
        }

    def list_canvases(self) -> list[dict[str, Any]]:
        return [
            {
                "id": session.id,
                "width": session.width,
                "height": session.height,
                "elementCount": len(session.elements),
                "createdAt": session.created_at.isoformat(),
            }
            for session in self.registry.sessions()
        ]
