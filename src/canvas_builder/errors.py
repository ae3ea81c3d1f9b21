"""Error taxonomy for canvas operations."""


class CanvasError(Exception):
    """Base class for errors reported back to the caller."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidDimensions(CanvasError):
    status = 400


class MissingField(CanvasError):
    status = 400

    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}")
        self.field = field


class InvalidField(CanvasError):
    status = 400

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid value for {field}: {reason}")
        self.field = field
        self.reason = reason


class SessionNotFound(CanvasError):
    status = 404

    def __init__(self, session_id: str):
        super().__init__(f"Canvas not found: {session_id}")
        self.session_id = session_id


class ImageLoadFailure(CanvasError):
    status = 422


class InternalRenderFailure(CanvasError):
    status = 500
