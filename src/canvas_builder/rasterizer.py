"""Rasterizer - applies resolved elements to a Drawing Surface."""

from typing import Iterable

from loguru import logger
from PIL import Image

from canvas_builder.errors import InternalRenderFailure
from canvas_builder.models import (
    CircleElement,
    Element,
    ImageElement,
    RectangleElement,
    TextElement,
)
from canvas_builder.surface import DrawingSurface, load_font


def _draw_rectangle(surface: DrawingSurface, element: RectangleElement) -> None:
    if element.is_filled:
        surface.fill_rect(element.x, element.y, element.width, element.height, element.color)
    else:
        surface.stroke_rect(element.x, element.y, element.width, element.height, element.color)


def _draw_circle(surface: DrawingSurface, element: CircleElement) -> None:
    if element.is_filled:
        surface.fill_circle(element.x, element.y, element.radius, element.color)
    else:
        surface.stroke_circle(element.x, element.y, element.radius, element.color)


def _draw_text(surface: DrawingSurface, element: TextElement) -> None:
    font = load_font(element.font_family, element.font_size)
    surface.draw_text(element.text, element.x, element.y, font, element.color, element.align)


def _draw_image(surface: DrawingSurface, element: ImageElement, source: Image.Image | None) -> None:
    if source is None:
        raise InternalRenderFailure("Image element has no decoded pixels")
    surface.composite(source, element.x, element.y, element.width, element.height)


def draw_element(
    surface: DrawingSurface,
    element: Element,
    source: Image.Image | None = None,
) -> None:
    """
    Paint one element onto the surface.

    Args:
        surface: Target surface, mutated in place
        element: Fully resolved element
        source: Decoded pixels, required for image elements

    Raises:
        InternalRenderFailure: If the drawing library fails unexpectedly
    """
    if not isinstance(element, (RectangleElement, CircleElement, TextElement, ImageElement)):
        raise TypeError(f"Unknown element type: {type(element).__name__}")

    try:
        if isinstance(element, RectangleElement):
            _draw_rectangle(surface, element)
        elif isinstance(element, CircleElement):
            _draw_circle(surface, element)
        elif isinstance(element, TextElement):
            _draw_text(surface, element)
        else:
            _draw_image(surface, element, source)
    except InternalRenderFailure:
        raise
    except Exception as e:
        logger.exception(f"Failed to draw {element.type.value} element")
        raise InternalRenderFailure(f"Failed to draw {element.type.value}: {e}") from e


def replay(
    width: int,
    height: int,
    entries: Iterable[tuple[Element, Image.Image | None]],
) -> DrawingSurface:
    """Render a sequence of elements, in order, onto a fresh white surface."""
    surface = DrawingSurface(width, height)
    for element, source in entries:
        draw_element(surface, element, source)
    return surface
