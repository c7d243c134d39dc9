"""Failure taxonomy for the streaming endpoint.

StreamError subclasses carry the HTTP status they resolve to and a short
message that ends up in the JSON body as ``{"message": ...}``.
"""

from typing import Optional


class StreamError(Exception):
    """Base class for errors surfaced at the HTTP boundary"""

    status_code: int = 500
    default_message: str = "Failed to stream audio"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def headers(self) -> dict:
        return {}


class Unauthorized(StreamError):
    status_code = 401
    default_message = "Authentication required"


class ResourceNotFound(StreamError):
    """No catalog entry for the requested id"""

    status_code = 404
    default_message = "Song not found"


class BytesMissing(StreamError):
    """Catalog entry exists but the backing bytes are gone"""

    status_code = 404
    default_message = "Audio file not found"


class MalformedRange(StreamError):
    """Unparseable Range header. Recovered locally, never returned to clients."""

    status_code = 400
    default_message = "Malformed Range header"


class RangeNotSatisfiable(StreamError):
    status_code = 416
    default_message = "Requested range not satisfiable"

    def __init__(self, total_length: int, message: Optional[str] = None):
        self.total_length = total_length
        super().__init__(message)

    def headers(self) -> dict:
        return {"Content-Range": f"bytes */{self.total_length}"}


class StreamIOError(Exception):
    """
    Backing store failed after the response started.

    Neither a StreamError nor an OSError: headers are already on the wire, so
    there is no JSON body to render, and the server must not mistake it for a
    client disconnect. The connection is aborted.
    """

    def __init__(self, message: str = "Failed to read audio data"):
        self.message = message
        super().__init__(message)
