"""Document Exporter - raster snapshots to PNG and single-page PDF."""

import io

from loguru import logger
from PIL import Image
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from canvas_builder.errors import InternalRenderFailure


def encode_png(snapshot: Image.Image) -> bytes:
    """Encode a snapshot as PNG."""
    buffer = io.BytesIO()
    snapshot.save(buffer, format="PNG")
    return buffer.getvalue()


def export_pdf(
    snapshot: Image.Image,
    width: int,
    height: int,
    title: str = "Canvas Export",
    author: str = "Canvas Builder API",
    creator: str = "Canvas Builder API",
) -> bytes:
    """
    Compose a snapshot into a one-page PDF whose page is the canvas size.

    The image exactly covers the page at (0, 0), is embedded losslessly, and
    the document is written in invariant mode so identical snapshots produce
    identical bytes.

    Args:
        snapshot: RGB snapshot of the drawing surface
        width: Page width in points (one point per canvas pixel)
        height: Page height in points
        title: Document title metadata
        author: Document author metadata
        creator: Document creator metadata

    Returns:
        PDF document bytes
    """
    buffer = io.BytesIO()
    try:
        pdf = canvas.Canvas(
            buffer,
            pagesize=(width, height),
            pageCompression=1,
            invariant=1,
        )
        pdf.setTitle(title)
        pdf.setAuthor(author)
        pdf.setCreator(creator)

        pdf.drawImage(
            ImageReader(snapshot),
            0,
            0,
            width=width,
            height=height,
            preserveAspectRatio=False,
        )
        pdf.showPage()
        pdf.save()
    except Exception as e:
        logger.error(f"Failed to compose PDF ({width}x{height}): {e}")
        raise InternalRenderFailure(f"Failed to export PDF: {e}") from e

    return buffer.getvalue()
