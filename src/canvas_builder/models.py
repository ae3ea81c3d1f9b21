"""Data models for Canvas Builder."""

import os
from enum import Enum
from typing import Annotated, Any, Literal, Union

from PIL import ImageColor
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from canvas_builder.errors import InvalidField, MissingField

MAX_DIMENSION = 5000       # Largest accepted canvas side, in pixels
MAX_IMAGE_BOX = 10000      # Largest accepted image draw box side, in pixels
MAX_RADIUS = 10000         # Largest accepted circle radius, in pixels
MAX_FONT_SIZE = 1000       # Largest accepted text size, in pixels
DEFAULT_COLOR = "#000000"

Number = Union[int, float]


class ElementType(str, Enum):
    """Element variants recorded in a session's log."""
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    TEXT = "text"
    IMAGE = "image"


class ImageSource(str, Enum):
    """Where an image element's pixels came from."""
    URL = "url"
    UPLOAD = "upload"


class _Resolved(BaseModel):
    """Base for caller-facing field sets: camelCase on the wire, unknown keys ignored."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "ignore",
        "allow_inf_nan": False,
    }


class _Element(_Resolved):
    """A recorded, fully resolved drawing operation."""
    model_config = {**_Resolved.model_config, "frozen": True}

    @field_validator("color", check_fields=False)
    @classmethod
    def check_color(cls, value: str) -> str:
        try:
            ImageColor.getrgb(value)
        except ValueError:
            raise ValueError(f"unrecognised color {value!r}") from None
        return value

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the camelCase keys clients send."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RectangleElement(_Element):
    type: Literal[ElementType.RECTANGLE] = ElementType.RECTANGLE
    x: Number
    y: Number
    width: Number
    height: Number
    color: str = DEFAULT_COLOR
    is_filled: bool = True

    @field_validator("width", "height")
    @classmethod
    def check_non_zero(cls, value: Number) -> Number:
        if value == 0:
            raise ValueError("must be non-zero")
        return value


class CircleElement(_Element):
    type: Literal[ElementType.CIRCLE] = ElementType.CIRCLE
    x: Number
    y: Number
    radius: Annotated[Number, Field(gt=0, le=MAX_RADIUS)]
    color: str = DEFAULT_COLOR
    is_filled: bool = True


class TextElement(_Element):
    type: Literal[ElementType.TEXT] = ElementType.TEXT
    text: Annotated[str, Field(min_length=1)]
    x: Number
    y: Number
    font_size: Annotated[Number, Field(gt=0, le=MAX_FONT_SIZE)] = 16
    font_family: Annotated[str, Field(min_length=1)] = "Arial"
    color: str = DEFAULT_COLOR
    align: Literal["left", "right", "center", "start", "end"] = "left"


class ImageElement(_Element):
    """Image placement; width/height are always resolved (natural size by default)."""
    type: Literal[ElementType.IMAGE] = ElementType.IMAGE
    source: ImageSource
    url: str | None = None  # Only for URL sources
    x: Number
    y: Number
    width: int
    height: int


Element = Annotated[
    Union[RectangleElement, CircleElement, TextElement, ImageElement],
    Field(discriminator="type"),
]

BoxSide = Annotated[Number, Field(gt=0, le=MAX_IMAGE_BOX)]


class ImageRequest(_Resolved):
    """Placement of an image before its pixels are known.

    URL requests require ``url``, ``x`` and ``y``; uploads default to the origin.
    """
    url: Annotated[str, Field(min_length=1)] | None = None
    x: Number
    y: Number
    width: BoxSide | None = None
    height: BoxSide | None = None

    def place(self, natural_size: tuple[int, int]) -> ImageElement:
        """Resolve the draw box against the decoded image's natural size."""
        natural_width, natural_height = natural_size
        return ImageElement(
            source=ImageSource.URL if self.url else ImageSource.UPLOAD,
            url=self.url,
            x=self.x,
            y=self.y,
            width=max(1, round(self.width)) if self.width else natural_width,
            height=max(1, round(self.height)) if self.height else natural_height,
        )


_SHAPES: dict[ElementType, type[_Element]] = {
    ElementType.RECTANGLE: RectangleElement,
    ElementType.CIRCLE: CircleElement,
    ElementType.TEXT: TextElement,
}


def _validate(model: type[BaseModel], fields: dict[str, Any]) -> Any:
    """Validate a raw field set, mapping pydantic errors onto the canvas taxonomy.

    ``None`` values count as absent so that defaults apply to explicit nulls.
    """
    present = {key: value for key, value in fields.items() if value is not None}
    try:
        return model.model_validate(present)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "body"
        if error["type"] == "missing":
            raise MissingField(field) from None
        raise InvalidField(field, error["msg"]) from None


def resolve_element(kind: ElementType | str, fields: dict[str, Any]) -> _Element:
    """Apply defaults to a raw rectangle/circle/text field set."""
    try:
        model = _SHAPES[ElementType(kind)]
    except (KeyError, ValueError):
        raise InvalidField("type", f"unsupported shape {kind!r}") from None
    return _validate(model, fields)


def resolve_image_request(fields: dict[str, Any], upload: bool = False) -> ImageRequest:
    """Validate an image placement; uploads ignore ``url`` and default x/y to 0."""
    if upload:
        fields = {**fields, "url": None}
        for key in ("x", "y"):
            if fields.get(key) is None:
                fields[key] = 0
    elif not fields.get("url"):
        raise MissingField("url")
    return _validate(ImageRequest, fields)


class CanvasConfig(BaseModel):
    """Configuration for Canvas Builder."""
    host: str = "0.0.0.0"
    port: int = Field(default_factory=lambda: int(os.environ.get("PORT", "3000")))

    # External host for URLs handed out by MCP tools - if None, derived from host
    external_host: str | None = None

    # Image fetch + decode budget, in seconds
    image_fetch_timeout: float = 5.0
    # Bounds request bodies, uploads and downloaded images
    max_upload_bytes: int = 50 * 1024 * 1024

    cors_origin: str = "*"

    # PDF document metadata
    pdf_title: str = "Canvas Export"
    pdf_author: str = "Canvas Builder API"
    pdf_creator: str = "Canvas Builder API"

    # Also serve MCP tools over stdio
    mcp_enabled: bool = False
