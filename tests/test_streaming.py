"""Unit tests for range parsing and stream sessions"""
import asyncio
import io

import pytest

from app.core.errors import RangeNotSatisfiable, StreamIOError
from app.core.streaming import (
    ByteRange,
    MediaResource,
    MediaStreamResponse,
    StreamSession,
    media_stream_response,
    parse_range_header,
)
from conftest import AUDIO_BYTES


class TrackedBytesIO(io.BytesIO):
    """BytesIO that counts close() calls"""

    def __init__(self, data):
        super().__init__(data)
        self.close_count = 0

    def close(self):
        self.close_count += 1
        super().close()


class FailingReader(TrackedBytesIO):
    def read(self, size=-1):
        raise OSError("disk went away")


class Opener:
    """Callable opener that remembers the handles it produced"""

    def __init__(self, data=AUDIO_BYTES, handle_cls=TrackedBytesIO):
        self.data = data
        self.handle_cls = handle_cls
        self.handles = []

    def __call__(self):
        handle = self.handle_cls(self.data)
        self.handles.append(handle)
        return handle


async def collect(session):
    return [chunk async for chunk in session.chunks()]


class TestParseRangeHeader:
    """Range header parsing"""

    def test_absent_header_means_full(self):
        assert parse_range_header(None, 1000) is None
        assert parse_range_header("", 1000) is None

    def test_closed_range(self):
        assert parse_range_header("bytes=200-299", 1000) == ByteRange(200, 299)

    def test_open_ended_range(self):
        assert parse_range_header("bytes=900-", 1000) == ByteRange(900, 999)

    def test_whitespace_and_case_tolerated(self):
        assert parse_range_header("Bytes= 5 - 9 ", 1000) == ByteRange(5, 9)

    @pytest.mark.parametrize("header", [
        "bytes=abc-def",
        "bytes=-500",
        "bytes=10",
        "bytes=1.5-2",
        "bytes=+1-2",
        "items=0-1",
        "garbage",
    ])
    def test_malformed_is_ignored(self, header):
        assert parse_range_header(header, 1000) is None

    def test_first_range_wins(self):
        assert parse_range_header("bytes=10-19,50-59", 1000) == ByteRange(10, 19)

    def test_end_clamped_to_last_byte(self):
        assert parse_range_header("bytes=990-2000", 1000) == ByteRange(990, 999)

    @pytest.mark.parametrize("header", ["bytes=1000-", "bytes=1000-1001", "bytes=20-10"])
    def test_unsatisfiable(self, header):
        with pytest.raises(RangeNotSatisfiable) as exc_info:
            parse_range_header(header, 1000)

        assert exc_info.value.status_code == 416
        assert exc_info.value.headers() == {"Content-Range": "bytes */1000"}

    def test_byte_range_helpers(self):
        byte_range = ByteRange(200, 299)
        assert byte_range.length == 100
        assert byte_range.content_range(1000) == "bytes 200-299/1000"
        assert ByteRange.full(0).length == 0


class TestStreamSession:
    """Chunked reads and handle lifecycle"""

    @pytest.mark.asyncio
    async def test_reads_exact_slice_in_bounded_chunks(self):
        opener = Opener()
        session = StreamSession(opener, ByteRange(100, 399), chunk_size=64)

        chunks = await collect(session)

        assert b"".join(chunks) == AUDIO_BYTES[100:400]
        assert all(len(c) <= 64 for c in chunks)
        assert session.bytes_sent == 300

    @pytest.mark.asyncio
    async def test_never_reads_past_declared_end(self):
        opener = Opener(data=AUDIO_BYTES + b"trailing")
        session = StreamSession(opener, ByteRange.full(len(AUDIO_BYTES)), chunk_size=333)

        chunks = await collect(session)

        assert b"".join(chunks) == AUDIO_BYTES

    @pytest.mark.asyncio
    async def test_handle_opened_lazily(self):
        opener = Opener()
        session = StreamSession(opener, ByteRange(0, 9))
        iterator = session.chunks()

        assert opener.handles == []
        assert not session.opened

        await iterator.__anext__()
        assert len(opener.handles) == 1
        await iterator.aclose()

    @pytest.mark.asyncio
    async def test_closed_once_after_completion(self):
        opener = Opener()
        session = StreamSession(opener, ByteRange(0, 99), chunk_size=10)

        await collect(session)
        session.close()

        assert session.closed
        assert opener.handles[0].close_count == 1

    @pytest.mark.asyncio
    async def test_closed_once_when_abandoned(self):
        opener = Opener()
        session = StreamSession(opener, ByteRange(0, 999), chunk_size=10)
        iterator = session.chunks()

        await iterator.__anext__()
        await iterator.aclose()
        session.close()

        assert session.closed
        assert session.bytes_sent == 10
        assert opener.handles[0].close_count == 1

    @pytest.mark.asyncio
    async def test_short_backing_store_is_fatal(self):
        opener = Opener(data=AUDIO_BYTES[:50])
        session = StreamSession(opener, ByteRange(0, 99), chunk_size=32)

        with pytest.raises(StreamIOError):
            await collect(session)

        assert opener.handles[0].close_count == 1

    @pytest.mark.asyncio
    async def test_read_error_becomes_stream_io_error(self):
        opener = Opener(handle_cls=FailingReader)
        session = StreamSession(opener, ByteRange(0, 99))

        with pytest.raises(StreamIOError, match="disk went away"):
            await collect(session)

        assert session.closed
        assert opener.handles[0].close_count == 1

    @pytest.mark.asyncio
    async def test_empty_range_never_opens(self):
        opener = Opener(data=b"")
        session = StreamSession(opener, ByteRange.full(0))

        assert await collect(session) == []
        assert opener.handles == []
        assert session.closed

    @pytest.mark.asyncio
    async def test_session_is_single_use(self):
        session = StreamSession(Opener(), ByteRange(0, 9))
        await collect(session)

        with pytest.raises(RuntimeError):
            await collect(session)

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            StreamSession(Opener(), ByteRange(0, 9), chunk_size=0)


class TestMediaStreamResponse:
    """Response construction and release on every exit path"""

    resource = MediaResource(id="song-1", reference="song.mp3", total_length=len(AUDIO_BYTES))

    def test_full_response_headers(self):
        response = media_stream_response(self.resource, Opener(), None)

        assert response.status_code == 200
        assert response.headers["content-length"] == "1000"
        assert response.headers["content-type"] == "audio/mpeg"
        assert "content-range" not in response.headers

    def test_partial_response_headers(self):
        response = media_stream_response(self.resource, Opener(), "bytes=200-299")

        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 200-299/1000"
        assert response.headers["accept-ranges"] == "bytes"
        assert response.headers["content-length"] == "100"

    def test_unsatisfiable_raises_before_opening(self):
        opener = Opener()

        with pytest.raises(RangeNotSatisfiable):
            media_stream_response(self.resource, opener, "bytes=5000-")

        assert opener.handles == []

    @pytest.mark.asyncio
    async def test_released_after_successful_send(self):
        opener = Opener()
        response = media_stream_response(self.resource, opener, "bytes=0-499", chunk_size=100)
        sent = []

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            sent.append(message)

        await response({"type": "http"}, receive, send)

        body = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
        assert body == AUDIO_BYTES[:500]
        assert response.session.closed
        assert opener.handles[0].close_count == 1

    @pytest.mark.asyncio
    async def test_released_when_send_fails_mid_stream(self):
        opener = Opener()
        response = media_stream_response(self.resource, opener, None, chunk_size=100)
        bodies = []

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            if message["type"] == "http.response.body":
                bodies.append(message)
                if len(bodies) == 2:
                    raise OSError("connection reset by peer")

        with pytest.raises(Exception):
            await response({"type": "http"}, receive, send)

        assert isinstance(response, MediaStreamResponse)
        assert response.session.closed
        assert response.session.bytes_sent < len(AUDIO_BYTES)
        assert all(h.close_count == 1 for h in opener.handles)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("spec_version", ["2.0", "2.4"])
    @pytest.mark.parametrize("opener", [
        Opener(data=AUDIO_BYTES[:10]),
        Opener(handle_cls=FailingReader),
    ], ids=["short-store", "read-error"])
    async def test_storage_failure_is_not_a_client_disconnect(self, spec_version, opener):
        from starlette.requests import ClientDisconnect

        opener.handles.clear()
        response = media_stream_response(self.resource, opener, None, chunk_size=100)

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            pass

        scope = {"type": "http", "asgi": {"version": "3.0", "spec_version": spec_version}}
        with pytest.raises(StreamIOError) as exc_info:
            await response(scope, receive, send)

        assert not isinstance(exc_info.value, (OSError, ClientDisconnect))
        assert response.session.closed
        assert all(h.close_count == 1 for h in opener.handles)

    @pytest.mark.asyncio
    async def test_released_on_client_disconnect(self):
        opener = Opener()
        response = media_stream_response(self.resource, opener, None, chunk_size=10)

        async def receive():
            return {"type": "http.disconnect"}

        async def send(message):
            await asyncio.sleep(0.01)

        await response({"type": "http"}, receive, send)

        assert response.session.closed
        assert response.session.bytes_sent < len(AUDIO_BYTES)
        assert all(h.close_count == 1 for h in opener.handles)
