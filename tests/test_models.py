"""Tests for element resolution and defaults."""

import pytest
from pydantic import ValidationError

from canvas_builder.errors import InvalidField, MissingField
from canvas_builder.models import (
    CanvasConfig,
    CircleElement,
    ImageSource,
    RectangleElement,
    TextElement,
    resolve_element,
    resolve_image_request,
)


def test_rectangle_defaults_and_wire_form() -> None:
    element = resolve_element("rectangle", {"x": 50, "y": 50, "width": 100, "height": 80})

    assert isinstance(element, RectangleElement)
    assert element.color == "#000000"
    assert element.is_filled is True
    assert element.to_wire() == {
        "type": "rectangle",
        "x": 50,
        "y": 50,
        "width": 100,
        "height": 80,
        "color": "#000000",
        "isFilled": True,
    }


def test_camel_and_snake_case_fields_are_accepted() -> None:
    camel = resolve_element("circle", {"x": 1, "y": 2, "radius": 3, "isFilled": False})
    snake = resolve_element("circle", {"x": 1, "y": 2, "radius": 3, "is_filled": False})

    assert isinstance(camel, CircleElement)
    assert camel.is_filled is False
    assert camel == snake


def test_explicit_null_takes_the_default() -> None:
    element = resolve_element("rectangle", {"x": 0, "y": 0, "width": 5, "height": 5, "color": None})

    assert element.color == "#000000"


def test_numeric_strings_are_coerced() -> None:
    element = resolve_element("rectangle", {"x": "10", "y": "20.5", "width": 5, "height": 5})

    assert element.x == 10
    assert element.y == 20.5


def test_unknown_keys_are_ignored() -> None:
    element = resolve_element("circle", {"x": 1, "y": 1, "radius": 1, "opacity": 0.5})

    assert "opacity" not in element.to_wire()


@pytest.mark.parametrize(
    "kind, fields, missing",
    [
        ("rectangle", {"x": 0, "y": 0, "width": 10}, "height"),
        ("circle", {"x": 0, "y": 0}, "radius"),
        ("text", {"x": 0, "y": 0}, "text"),
        ("text", {"text": "hi", "y": 0}, "x"),
    ],
)
def test_missing_required_field(kind: str, fields: dict, missing: str) -> None:
    with pytest.raises(MissingField) as excinfo:
        resolve_element(kind, fields)

    assert excinfo.value.field == missing
    assert excinfo.value.status == 400
    assert excinfo.value.message == f"Missing required field: {missing}"


@pytest.mark.parametrize(
    "kind, fields, invalid",
    [
        ("rectangle", {"x": 0, "y": 0, "width": 10, "height": 10, "color": "not-a-color"}, "color"),
        ("rectangle", {"x": 0, "y": 0, "width": 0, "height": 10}, "width"),
        ("rectangle", {"x": "left", "y": 0, "width": 10, "height": 10}, "x"),
        ("circle", {"x": 0, "y": 0, "radius": -4}, "radius"),
        ("circle", {"x": 0, "y": 0, "radius": 0}, "radius"),
        ("circle", {"x": 0, "y": 0, "radius": 1e7}, "radius"),
        ("text", {"text": "", "x": 0, "y": 0}, "text"),
        ("text", {"text": "hi", "x": 0, "y": 0, "align": "justify"}, "align"),
        ("text", {"text": "hi", "x": 0, "y": 0, "fontSize": 0}, "fontSize"),
        ("text", {"text": "hi", "x": 0, "y": 0, "fontSize": 100000}, "fontSize"),
    ],
)
def test_invalid_field(kind: str, fields: dict, invalid: str) -> None:
    with pytest.raises(InvalidField) as excinfo:
        resolve_element(kind, fields)

    assert excinfo.value.field == invalid
    assert excinfo.value.status == 400


def test_negative_rectangle_size_is_allowed() -> None:
    element = resolve_element("rectangle", {"x": 100, "y": 100, "width": -20, "height": -10})

    assert element.width == -20
    assert element.height == -10


def test_text_defaults() -> None:
    element = resolve_element("text", {"text": "Hello", "x": 10, "y": 20})

    assert isinstance(element, TextElement)
    assert element.font_size == 16
    assert element.font_family == "Arial"
    assert element.color == "#000000"
    assert element.align == "left"
    assert element.to_wire()["fontFamily"] == "Arial"


def test_unsupported_shape() -> None:
    with pytest.raises(InvalidField) as excinfo:
        resolve_element("triangle", {"x": 0, "y": 0})

    assert excinfo.value.field == "type"


def test_elements_are_immutable() -> None:
    element = resolve_element("circle", {"x": 1, "y": 1, "radius": 1})

    with pytest.raises(ValidationError):
        element.radius = 5


def test_image_request_requires_url_and_position() -> None:
    with pytest.raises(MissingField) as excinfo:
        resolve_image_request({"x": 0, "y": 0})
    assert excinfo.value.field == "url"

    with pytest.raises(MissingField) as excinfo:
        resolve_image_request({"url": "https://example.com/a.png", "y": 0})
    assert excinfo.value.field == "x"


def test_image_request_rejects_oversized_box() -> None:
    with pytest.raises(InvalidField) as excinfo:
        resolve_image_request({"url": "https://example.com/a.png", "x": 0, "y": 0, "width": 20000})

    assert excinfo.value.field == "width"


def test_image_request_places_at_natural_size_by_default() -> None:
    request = resolve_image_request({"url": "https://example.com/a.png", "x": 5, "y": 6})

    element = request.place((30, 20))

    assert element.source is ImageSource.URL
    assert element.url == "https://example.com/a.png"
    assert (element.width, element.height) == (30, 20)


def test_image_request_scales_only_given_sides() -> None:
    request = resolve_image_request({"url": "https://example.com/a.png", "x": 0, "y": 0, "width": 64.4})

    element = request.place((30, 20))

    assert (element.width, element.height) == (64, 20)


def test_upload_request_defaults_to_origin_and_drops_url() -> None:
    request = resolve_image_request({"url": "https://ignored.example"}, upload=True)

    element = request.place((8, 8))

    assert (element.x, element.y) == (0, 0)
    assert element.source is ImageSource.UPLOAD
    assert "url" not in element.to_wire()


def test_config_reads_port_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8123")

    assert CanvasConfig().port == 8123
    assert CanvasConfig(port=9000).port == 9000


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PORT", raising=False)

    config = CanvasConfig()

    assert config.port == 3000
    assert config.image_fetch_timeout == 5.0
    assert config.max_upload_bytes == 50 * 1024 * 1024
    assert config.pdf_title == "Canvas Export"


def test_size_limits_are_inclusive() -> None:
    circle = resolve_element("circle", {"x": 0, "y": 0, "radius": 10000})
    text = resolve_element("text", {"text": "big", "x": 0, "y": 0, "fontSize": 1000})

    assert circle.radius == 10000
    assert text.font_size == 1000
