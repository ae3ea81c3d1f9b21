"""Session Registry - process-wide mapping of canvas sessions."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger
from PIL import Image

from canvas_builder.errors import InvalidDimensions, SessionNotFound
from canvas_builder.models import MAX_DIMENSION, Element
from canvas_builder.surface import DrawingSurface


@dataclass(eq=False)
class Session:
    """
    A canvas session: fixed dimensions, a surface, and its element log.

    ``lock`` serializes every read and write of ``surface`` and ``elements``.
    """
    id: str
    width: int
    height: int
    surface: DrawingSurface
    elements: list[Element] = field(default_factory=list)
    # Decoded pixels of image elements, keyed by log position, for replay
    image_sources: dict[int, Image.Image] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    closed: bool = False

    def log_entries(self) -> list[tuple[Element, Image.Image | None]]:
        """Pair each logged element with its image pixels, if any."""
        return [(element, self.image_sources.get(index)) for index, element in enumerate(self.elements)]


def _parse_dimension(name: str, value: Any) -> int:
    if value is None or value == "":
        raise InvalidDimensions("Width and height are required")
    if isinstance(value, bool):
        raise InvalidDimensions(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidDimensions(f"{name} must be an integer")
        value = int(value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidDimensions(f"{name} must be an integer") from None
    if number <= 0:
        raise InvalidDimensions("Dimensions must be positive numbers")
    if number > MAX_DIMENSION:
        raise InvalidDimensions(f"Dimensions cannot exceed {MAX_DIMENSION}px")
    return number


class SessionRegistry:
    """
    Owns every live session.

    create/get/delete are atomic with respect to each other, so no caller
    ever observes a half-created or half-deleted entry.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def create(self, width: Any, height: Any) -> Session:
        """
        Create a session with a blank white surface.

        Raises:
            InvalidDimensions: If either side is missing, non-integer,
                non-positive or larger than MAX_DIMENSION
        """
        width = _parse_dimension("width", width)
        height = _parse_dimension("height", height)

        session = Session(
            id=str(uuid.uuid4()),
            width=width,
            height=height,
            surface=DrawingSurface(width, height),
        )
        with self._lock:
            self._sessions[session.id] = session

        logger.info(f"Created canvas session: {session.id} ({width}x{height})")
        return session

    def get(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def delete(self, session_id: str) -> Session:
        """Remove a session and return it so the caller can release its surface."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(session_id)

        logger.info(f"Deleted canvas session: {session_id}")
        return session

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def sessions(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
