"""Drawing Surface - Pillow-backed raster target with primitive draw calls.

Every primitive renders into a transparent layer sized to its clipped bounding
box and is then alpha-composited onto the surface in a single step. A primitive
that fails part way therefore never leaves partial pixels behind, and
translucent colors blend with whatever was painted before.

Geometry follows the HTML canvas conventions the API was designed around:

- ``fill_rect(x, y, w, h)`` covers pixels ``x .. x+w-1``; negative sizes
  extend left/up.
- A circle of radius ``r`` covers pixels ``cx-r .. cx+r-1``, ``2r`` across.
- Strokes are centred on the shape edge, so a 2px stroke paints one pixel
  outside and one pixel inside the edge.
- Text is placed with the top of the line at ``y``; ``x`` is the left edge,
  centre or right edge depending on the alignment.
"""

import math
import threading
from functools import lru_cache
from typing import Callable

from PIL import Image, ImageColor, ImageDraw, ImageFont

WHITE = (255, 255, 255, 255)
STROKE_WIDTH = 2

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont
Box = tuple[float, float, float, float]

FALLBACK_FONTS = ("DejaVuSans.ttf",)

# FreeType faces are shared between sessions through the font cache
_font_lock = threading.Lock()


@lru_cache(maxsize=64)
def load_font(family: str, size: float) -> Font:
    """Resolve a font family to a font object at the given pixel size.

    Tries the family as a TrueType file name, then common spellings of it,
    then DejaVuSans, then Pillow's bundled default font.
    """
    candidates = [
        family,
        f"{family}.ttf",
        f"{family.lower()}.ttf",
        f"{family.replace(' ', '')}.ttf",
        *FALLBACK_FONTS,
    ]
    for name in dict.fromkeys(candidates):
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def parse_color(color: str) -> tuple[int, int, int, int]:
    """Parse any CSS color Pillow understands into RGBA."""
    return ImageColor.getcolor(color, "RGBA")


class DrawingSurface:
    """A fixed-size RGBA pixel buffer, pre-filled opaque white."""

    def __init__(self, width: int, height: int):
        self._image = Image.new("RGBA", (width, height), WHITE)
        self._released = False

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    @property
    def size(self) -> tuple[int, int]:
        return self._image.size

    @property
    def released(self) -> bool:
        return self._released

    # Primitives

    def fill_rect(self, x: float, y: float, width: float, height: float, color: str) -> None:
        x0, x1 = sorted((x, x + width))
        y0, y1 = sorted((y, y + height))
        box = self._clamp((x0, y0, max(x0, x1 - 1), max(y0, y1 - 1)), 1)
        ink = parse_color(color)

        def render(layer: Image.Image, dx: int, dy: int) -> None:
            ImageDraw.Draw(layer).rectangle(_shift(box, dx, dy), fill=ink)

        self._paint(box, render)

    def stroke_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        color: str,
        line_width: int = STROKE_WIDTH,
    ) -> None:
        x0, x1 = sorted((x, x + width))
        y0, y1 = sorted((y, y + height))
        half = line_width / 2
        box = self._clamp((x0 - half, y0 - half, x1 + half - 1, y1 + half - 1), line_width)
        ink = parse_color(color)

        def render(layer: Image.Image, dx: int, dy: int) -> None:
            ImageDraw.Draw(layer).rectangle(_shift(box, dx, dy), outline=ink, width=line_width)

        self._paint(box, render)

    def fill_circle(self, cx: float, cy: float, radius: float, color: str) -> None:
        box = _circle_box(cx, cy, radius)
        ink = parse_color(color)

        def render(layer: Image.Image, dx: int, dy: int) -> None:
            ImageDraw.Draw(layer).ellipse(_shift(box, dx, dy), fill=ink)

        self._paint(box, render)

    def stroke_circle(
        self,
        cx: float,
        cy: float,
        radius: float,
        color: str,
        line_width: int = STROKE_WIDTH,
    ) -> None:
        outer = radius + line_width / 2
        box = _circle_box(cx, cy, outer)
        ink = parse_color(color)

        def render(layer: Image.Image, dx: int, dy: int) -> None:
            ImageDraw.Draw(layer).ellipse(_shift(box, dx, dy), outline=ink, width=line_width)

        self._paint(box, render)

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        font: Font,
        color: str,
        align: str = "left",
    ) -> None:
        ink = parse_color(color)
        align = {"start": "left", "end": "right"}.get(align, align)

        with _font_lock:
            measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
            line_width = max(measure.textlength(line, font=font) for line in text.split("\n"))
            if align == "right":
                left = x - line_width
            elif align == "center":
                left = x - line_width / 2
            else:
                left = x
            box = measure.multiline_textbbox((left, y), text, font=font, align=align)

            def render(layer: Image.Image, dx: int, dy: int) -> None:
                ImageDraw.Draw(layer).multiline_text(
                    (left - dx, y - dy), text, font=font, fill=ink, align=align
                )

            self._paint(box, render)

    def composite(self, image: Image.Image, x: float, y: float, width: int, height: int) -> None:
        """Composite an image into the box at (x, y), scaling it to width x height."""
        source = image.convert("RGBA")
        if source.size != (width, height):
            source = source.resize((width, height), Image.Resampling.BILINEAR)
        left, top = round(x), round(y)
        box = (left, top, left + width - 1, top + height - 1)

        def render(layer: Image.Image, dx: int, dy: int) -> None:
            layer.paste(source, (left - dx, top - dy))

        self._paint(box, render)

    # Reads

    def snapshot(self) -> Image.Image:
        """Return an independent RGB copy of the current pixels."""
        return self._image.convert("RGB")

    def getpixel(self, x: int, y: int) -> tuple[int, int, int]:
        return self._image.getpixel((x, y))[:3]

    def release(self) -> None:
        """Free the pixel buffer; the surface must not be drawn on afterwards."""
        self._image.close()
        self._released = True

    def _clamp(self, box: Box, margin: float) -> Box:
        """Limit a rectangle box to the surface grown by ``margin`` on each side.

        Edges clamped to the margin stay off the surface, and Pillow never sees
        coordinates too large for its integer rasterizer.
        """
        x0, y0, x1, y1 = box
        return (
            min(max(x0, -margin), self.width + margin),
            min(max(y0, -margin), self.height + margin),
            min(max(x1, -margin), self.width + margin),
            min(max(y1, -margin), self.height + margin),
        )

    def _paint(self, box: Box, render: Callable[[Image.Image, int, int], None]) -> None:
        """Render into a layer covering ``box`` (inclusive) and composite it in one step."""
        left = max(0, math.floor(box[0]))
        top = max(0, math.floor(box[1]))
        right = min(self.width, math.ceil(box[2]) + 1)
        bottom = min(self.height, math.ceil(box[3]) + 1)
        if left >= right or top >= bottom:
            return  # Entirely off the surface

        layer = Image.new("RGBA", (right - left, bottom - top), (0, 0, 0, 0))
        render(layer, left, top)
        self._image.alpha_composite(layer, dest=(left, top))


def _circle_box(cx: float, cy: float, radius: float) -> Box:
    """Bounding box of a disc spanning ``cx - radius .. cx + radius - 1``."""
    return (
        cx - radius,
        cy - radius,
        max(cx - radius, cx + radius - 1),
        max(cy - radius, cy + radius - 1),
    )


def _shift(box: Box, dx: int, dy: int) -> Box:
    return (box[0] - dx, box[1] - dy, box[2] - dx, box[3] - dy)
