"""API routes for song streaming"""

from fastapi import APIRouter, Depends, Header, Path
from typing import Optional
import logging

from app.core.errors import StreamError
from app.core.security import AuthVerdict, get_auth_verdict
from app.services.stream_service import RangeStreamHandler, get_stream_handler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])


def _stream(
    resource_id: str,
    range_header: Optional[str],
    verdict: AuthVerdict,
    handler: RangeStreamHandler,
):
    try:
        return handler.handle(resource_id, range_header, verdict)
    except StreamError:
        raise
    except Exception as e:
        logger.error(f"Streaming error for {resource_id}: {e}")
        raise StreamError() from e


@router.get("/resources/{resource_id}/stream")
def stream_resource(
    resource_id: str = Path(...),
    range: Optional[str] = Header(None),
    verdict: AuthVerdict = Depends(get_auth_verdict),
    handler: RangeStreamHandler = Depends(get_stream_handler),
):
    """
    Stream song audio with Range support (required for seeking).

    No Range header returns the whole file with 200; a single
    ``bytes=<start>-[<end>]`` range returns 206 with that slice.
    """
    return _stream(resource_id, range, verdict, handler)


@router.get("/api/songs/{song_id}/stream")
def stream_song(
    song_id: str = Path(...),
    range: Optional[str] = Header(None),
    verdict: AuthVerdict = Depends(get_auth_verdict),
    handler: RangeStreamHandler = Depends(get_stream_handler),
):
    """Player-facing alias of /resources/{id}/stream"""
    return _stream(song_id, range, verdict, handler)
