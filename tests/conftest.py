"""Shared test fixtures."""

import io
import re
import zlib
from typing import Callable

import pytest
from PIL import Image
from reportlab.lib.rl_accel import asciiBase85Decode

from canvas_builder.canvas_manager import CanvasManager
from canvas_builder.models import CanvasConfig

WHITE = (255, 255, 255)
RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def encode(image: Image.Image, format: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=format)
    return buffer.getvalue()


def decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image.convert("RGB")


@pytest.fixture
def config() -> CanvasConfig:
    return CanvasConfig(host="127.0.0.1", port=3000, image_fetch_timeout=2.0)


@pytest.fixture
def manager(config: CanvasConfig) -> CanvasManager:
    return CanvasManager(config)


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    """Factory for solid-color PNG payloads."""

    def make(size: tuple[int, int] = (10, 10), color: tuple[int, ...] = GREEN) -> bytes:
        mode = "RGBA" if len(color) == 4 else "RGB"
        return encode(Image.new(mode, size, color))

    return make


PDF_IMAGE_PATTERN = re.compile(
    rb"<<(?P<dict>[^>]*?/Subtype /Image[^>]*?)>>\s*stream\r?\n",
)


def pdf_image(document: bytes) -> Image.Image:
    """Decode the single RGB image XObject embedded in a PDF."""
    match = PDF_IMAGE_PATTERN.search(document)
    assert match, "no image XObject in document"
    info = match.group("dict")
    length = int(re.search(rb"/Length (\d+)", info).group(1))
    data = document[match.end():match.end() + length]
    width = int(re.search(rb"/Width (\d+)", info).group(1))
    height = int(re.search(rb"/Height (\d+)", info).group(1))
    assert b"/DeviceRGB" in info
    if b"/ASCII85Decode" in info:
        data = asciiBase85Decode(data)
        if isinstance(data, str):
            data = data.encode("latin-1")
    return Image.frombytes("RGB", (width, height), zlib.decompress(data))
