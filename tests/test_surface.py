"""Tests for the drawing surface primitives."""

import time

from PIL import Image, ImageChops

from canvas_builder.surface import DrawingSurface, load_font, parse_color

WHITE = (255, 255, 255)
RED = (255, 0, 0)
BLUE = (0, 0, 255)


def _ink_bbox(surface: DrawingSurface) -> tuple[int, int, int, int] | None:
    snapshot = surface.snapshot()
    blank = Image.new("RGB", snapshot.size, WHITE)
    return ImageChops.difference(snapshot, blank).getbbox()


def test_new_surface_is_white_with_declared_size() -> None:
    surface = DrawingSurface(40, 30)

    assert surface.size == (40, 30)
    snapshot = surface.snapshot()
    assert snapshot.mode == "RGB"
    assert snapshot.getcolors() == [(1200, WHITE)]


def test_fill_rect_covers_box() -> None:
    surface = DrawingSurface(200, 200)

    surface.fill_rect(50, 50, 100, 80, "#ff0000")

    assert surface.getpixel(50, 50) == RED
    assert surface.getpixel(149, 129) == RED
    assert surface.getpixel(150, 100) == WHITE
    assert surface.getpixel(100, 130) == WHITE
    assert surface.getpixel(49, 49) == WHITE


def test_fill_rect_negative_size_extends_left_and_up() -> None:
    surface = DrawingSurface(200, 200)

    surface.fill_rect(100, 100, -50, -50, "blue")

    assert surface.getpixel(60, 60) == BLUE
    assert surface.getpixel(99, 99) == BLUE
    assert surface.getpixel(100, 100) == WHITE


def test_stroke_rect_straddles_edge_and_leaves_interior() -> None:
    surface = DrawingSurface(200, 200)

    surface.stroke_rect(50, 50, 100, 80, "#0000ff")

    assert surface.getpixel(49, 100) == BLUE
    assert surface.getpixel(50, 100) == BLUE
    assert surface.getpixel(51, 100) == WHITE
    assert surface.getpixel(150, 100) == BLUE
    assert surface.getpixel(100, 130) == BLUE
    assert surface.getpixel(100, 131) == WHITE
    assert surface.getpixel(100, 100) == WHITE


def test_fill_and_stroke_circle() -> None:
    filled = DrawingSurface(100, 100)
    filled.fill_circle(50, 50, 20, "#00ff00")
    assert filled.getpixel(50, 50) == (0, 255, 0)
    assert filled.getpixel(5, 5) == WHITE

    ring = DrawingSurface(100, 100)
    ring.stroke_circle(50, 50, 20, "#00ff00")
    assert ring.getpixel(50, 50) == WHITE
    assert ring.getpixel(50, 30) == (0, 255, 0)
    assert ring.getpixel(30, 50) == (0, 255, 0)


def test_translucent_color_blends_with_existing_pixels() -> None:
    surface = DrawingSurface(20, 20)

    surface.fill_rect(0, 0, 10, 10, "#ff000080")

    red, green, blue = surface.getpixel(5, 5)
    assert red == 255
    assert 120 <= green <= 135
    assert 120 <= blue <= 135
    assert surface.getpixel(15, 15) == WHITE


def test_shapes_off_the_surface_are_clipped() -> None:
    surface = DrawingSurface(50, 50)

    surface.fill_rect(-20, -20, 30, 30, "red")
    surface.fill_rect(100, 100, 10, 10, "blue")

    assert surface.getpixel(0, 0) == RED
    assert surface.getpixel(9, 9) == RED
    assert surface.getpixel(10, 10) == WHITE
    assert _ink_bbox(surface) == (0, 0, 10, 10)


def test_draw_text_is_placed_by_alignment() -> None:
    font = load_font("Arial", 24)

    left = DrawingSurface(300, 60)
    left.draw_text("Hello", 10, 10, font, "#000000", "left")
    bbox = _ink_bbox(left)
    assert bbox is not None
    assert bbox[0] >= 9
    assert bbox[1] >= 9

    right = DrawingSurface(300, 60)
    right.draw_text("Hello", 290, 10, font, "#000000", "right")
    bbox = _ink_bbox(right)
    assert bbox is not None
    assert bbox[2] <= 292
    assert bbox[0] > 150

    center = DrawingSurface(300, 60)
    center.draw_text("Hello", 150, 10, font, "#000000", "center")
    bbox = _ink_bbox(center)
    assert bbox is not None
    assert abs((bbox[0] + bbox[2]) / 2 - 150) < 10


def test_start_and_end_alignment_match_left_and_right() -> None:
    font = load_font("Arial", 20)
    pairs = [("start", "left", 10), ("end", "right", 290)]

    for logical, physical, x in pairs:
        first = DrawingSurface(300, 50)
        second = DrawingSurface(300, 50)
        first.draw_text("Canvas", x, 5, font, "black", logical)
        second.draw_text("Canvas", x, 5, font, "black", physical)
        assert ImageChops.difference(first.snapshot(), second.snapshot()).getbbox() is None


def test_load_font_falls_back_for_unknown_family() -> None:
    font = load_font("No Such Font Family", 18)

    assert font is load_font("No Such Font Family", 18)
    surface = DrawingSurface(200, 40)
    surface.draw_text("fallback", 0, 0, font, "black")
    assert _ink_bbox(surface) is not None


def test_composite_scales_into_box() -> None:
    surface = DrawingSurface(100, 100)
    source = Image.new("RGB", (10, 10), RED)

    surface.composite(source, 20, 20, 40, 40)

    assert surface.getpixel(20, 20) == RED
    assert surface.getpixel(59, 59) == RED
    assert surface.getpixel(60, 60) == WHITE
    assert surface.getpixel(19, 19) == WHITE


def test_composite_clips_at_surface_edge_and_respects_alpha() -> None:
    surface = DrawingSurface(50, 50)
    surface.fill_rect(0, 0, 50, 50, "blue")
    source = Image.new("RGBA", (10, 10), (255, 0, 0, 255))
    source.paste((0, 0, 0, 0), (5, 0, 10, 10))

    surface.composite(source, -2, -2, 10, 10)

    assert surface.getpixel(0, 0) == RED
    assert surface.getpixel(2, 2) == RED
    assert surface.getpixel(4, 4) == BLUE


def test_snapshot_is_independent_of_later_draws() -> None:
    surface = DrawingSurface(10, 10)
    snapshot = surface.snapshot()

    surface.fill_rect(0, 0, 10, 10, "red")

    assert snapshot.getpixel((5, 5)) == WHITE
    assert surface.getpixel(5, 5) == RED


def test_parse_color_accepts_css_forms() -> None:
    assert parse_color("#ff0000") == (255, 0, 0, 255)
    assert parse_color("red") == (255, 0, 0, 255)
    assert parse_color("rgb(0, 0, 255)") == (0, 0, 255, 255)
    assert parse_color("#00ff0080") == (0, 255, 0, 128)


def test_release_marks_surface_released() -> None:
    surface = DrawingSurface(10, 10)

    surface.release()

    assert surface.released


def test_rectangle_far_larger_than_surface_covers_it() -> None:
    surface = DrawingSurface(100, 100)

    surface.fill_rect(-1e10, -1e10, 2e10, 2e10, "red")

    assert surface.snapshot().getcolors() == [(10000, RED)]


def test_stroke_rect_with_huge_extent_keeps_visible_edges() -> None:
    surface = DrawingSurface(100, 100)

    surface.stroke_rect(-1e10, 10, 2e10, 50, "blue")

    assert surface.getpixel(50, 9) == BLUE
    assert surface.getpixel(50, 10) == BLUE
    assert surface.getpixel(50, 60) == BLUE
    assert surface.getpixel(50, 11) == WHITE
    assert surface.getpixel(0, 30) == WHITE
    assert surface.getpixel(99, 30) == WHITE


def test_circle_is_two_radii_across() -> None:
    surface = DrawingSurface(100, 100)

    surface.fill_circle(50, 50, 20, "red")

    assert _ink_bbox(surface) == (30, 30, 70, 70)


def test_largest_circle_renders_promptly() -> None:
    surface = DrawingSurface(100, 100)

    started = time.perf_counter()
    surface.fill_circle(50, 50, 10000, "red")
    surface.stroke_circle(50, 50, 10000, "blue")
    elapsed = time.perf_counter() - started

    assert elapsed < 5
    assert surface.getpixel(50, 50) == RED
