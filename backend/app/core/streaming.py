import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO, Callable, Optional

from fastapi import status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from app.core.errors import MalformedRange, RangeNotSatisfiable, StreamIOError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
AUDIO_CONTENT_TYPE = "audio/mpeg"

# First range of a "bytes=" header: "<start>-" or "<start>-<end>"
_RANGE_SPEC = re.compile(r"^(\d+)\s*-\s*(\d*)$", re.ASCII)


@dataclass(frozen=True)
class MediaResource:
    """A streamable song: where its bytes live and how many there are"""
    id: str
    reference: str
    total_length: int
    content_type: str = AUDIO_CONTENT_TYPE


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte interval [start, end]"""
    start: int
    end: int

    @classmethod
    def full(cls, total_length: int) -> "ByteRange":
        return cls(0, total_length - 1)

    @property
    def length(self) -> int:
        return max(0, self.end - self.start + 1)

    def content_range(self, total_length: int) -> str:
        return f"bytes {self.start}-{self.end}/{total_length}"


def _parse_byte_range(range_header: str, total_length: int) -> ByteRange:
    unit, sep, intervals = range_header.partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise MalformedRange(f"Unsupported range unit in {range_header!r}")

    # Multi-range requests are served as their first range only
    first = intervals.split(",", 1)[0].strip()
    match = _RANGE_SPEC.match(first)
    if not match:
        raise MalformedRange(f"Invalid byte range {first!r}")

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else total_length - 1

    if start >= total_length or start > end:
        raise RangeNotSatisfiable(
            total_length,
            f"Requested range {start}-{end} not satisfiable for {total_length} bytes",
        )

    return ByteRange(start, min(end, total_length - 1))


def parse_range_header(range_header: Optional[str], total_length: int) -> Optional[ByteRange]:
    """
    Parse a Range header against a resource of total_length bytes.

    Returns None when the whole resource should be sent: either no header
    was given or it could not be parsed. Raises RangeNotSatisfiable when the
    header is well formed but falls outside the resource.
    """
    if not range_header:
        return None

    try:
        return _parse_byte_range(range_header, total_length)
    except MalformedRange as e:
        logger.debug(f"Ignoring malformed Range header, sending full content: {e}")
        return None


class StreamSession:
    """
    Read cursor over one byte interval of a backing store, scoped to a single
    response.

    The handle is opened on the first pull, read in bounded chunks and closed
    exactly once, whichever way the response ends.
    """

    def __init__(
        self,
        opener: Callable[[], BinaryIO],
        byte_range: ByteRange,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        label: str = "",
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._opener = opener
        self.byte_range = byte_range
        self.chunk_size = chunk_size
        self.label = label
        self.bytes_sent = 0
        self._handle: Optional[BinaryIO] = None
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def opened(self) -> bool:
        return self._handle is not None

    def _open(self) -> BinaryIO:
        handle = self._opener()
        try:
            handle.seek(self.byte_range.start)
        except Exception:
            handle.close()
            raise
        self._handle = handle
        return handle

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the interval's bytes. Single use."""
        if self._started or self._closed:
            raise RuntimeError("StreamSession can only be consumed once")
        self._started = True

        try:
            remaining = self.byte_range.length
            if remaining == 0:
                return

            handle = await run_in_threadpool(self._open)
            while remaining > 0:
                data = await run_in_threadpool(handle.read, min(self.chunk_size, remaining))
                if not data:
                    raise StreamIOError(
                        f"Backing store for {self.label or 'resource'} ended "
                        f"{remaining} bytes short of the declared length"
                    )
                remaining -= len(data)
                self.bytes_sent += len(data)
                yield data
        except StreamIOError:
            logger.error(f"Stream for {self.label} aborted after {self.bytes_sent} bytes")
            raise
        except OSError as e:
            logger.error(f"Read failed while streaming {self.label}: {e}")
            raise StreamIOError(str(e)) from e
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.close()
        except OSError as e:
            logger.warning(f"Error closing stream handle for {self.label}: {e}")


class MediaStreamResponse(StreamingResponse):
    """StreamingResponse that releases its StreamSession on every exit path,
    including client disconnects mid-body."""

    def __init__(self, session: StreamSession, status_code: int, headers: dict):
        self.session = session
        super().__init__(session.chunks(), status_code=status_code, headers=headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()
            self.session.close()
            if self.session.bytes_sent < self.session.byte_range.length:
                logger.info(
                    f"Stream for {self.session.label} ended early: "
                    f"{self.session.bytes_sent}/{self.session.byte_range.length} bytes sent"
                )


def media_stream_response(
    resource: MediaResource,
    opener: Callable[[], BinaryIO],
    range_header: Optional[str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> MediaStreamResponse:
    """
    Create a full (200) or partial (206) streaming response for resource.
    """
    total = resource.total_length
    byte_range = parse_range_header(range_header, total)

    if byte_range is None:
        session = StreamSession(opener, ByteRange.full(total), chunk_size, label=resource.id)
        headers = {
            "Content-Length": str(total),
            "Content-Type": resource.content_type,
        }
        return MediaStreamResponse(session, status.HTTP_200_OK, headers)

    session = StreamSession(opener, byte_range, chunk_size, label=resource.id)
    headers = {
        "Content-Range": byte_range.content_range(total),
        "Accept-Ranges": "bytes",
        "Content-Length": str(byte_range.length),
        "Content-Type": resource.content_type,
    }
    return MediaStreamResponse(session, status.HTTP_206_PARTIAL_CONTENT, headers)
