"""Canvas Builder - server-held canvases rendered to PNG and PDF."""

__version__ = "0.1.0"

from canvas_builder.canvas_manager import CanvasManager
from canvas_builder.models import CanvasConfig
from canvas_builder.registry import Session, SessionRegistry
from canvas_builder.surface import DrawingSurface

__all__ = [
    "CanvasConfig",
    "CanvasManager",
    "DrawingSurface",
    "Session",
    "SessionRegistry",
]
