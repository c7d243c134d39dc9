import logging
from functools import partial
from typing import Optional

from app.core.config import settings
from app.core.errors import BytesMissing, ResourceNotFound, Unauthorized
from app.core.security import AuthVerdict
from app.core.streaming import MediaResource, MediaStreamResponse, media_stream_response
from app.services.media_store import MediaStore, get_media_store
from app.services.song_catalog import SongCatalog, get_song_catalog

logger = logging.getLogger(__name__)


class RangeStreamHandler:
    """
    Serves song bytes over HTTP with single byte-range support.

    Stateless between requests: each call resolves the song, validates the
    range and hands back a response owning its own read cursor. Songs are
    assumed immutable while streamed; deleting one mid-stream is not guarded.
    """

    def __init__(
        self,
        catalog: SongCatalog,
        store: MediaStore,
        chunk_size: Optional[int] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.chunk_size = chunk_size or settings.stream_chunk_size

    def resolve(self, resource_id: str) -> MediaResource:
        resource = self.catalog.lookup_resource(resource_id)
        if resource is None:
            logger.info(f"Stream requested for unknown song {resource_id}")
            raise ResourceNotFound()

        if not self.store.exists(resource.reference):
            logger.warning(
                f"Song {resource_id} is in the catalog but its bytes are missing "
                f"(reference: {resource.reference})"
            )
            raise BytesMissing()

        # The catalog length stays authoritative; a short file fails mid-stream
        try:
            stored_size = self.store.size(resource.reference)
        except OSError as e:
            logger.warning(f"Could not read stored size of song {resource_id}: {e}")
        else:
            if stored_size != resource.total_length:
                logger.warning(
                    f"Song {resource_id} size mismatch: catalog says "
                    f"{resource.total_length} bytes, store has {stored_size}"
                )

        return resource

    def handle(
        self,
        resource_id: str,
        range_header: Optional[str],
        verdict: AuthVerdict,
    ) -> MediaStreamResponse:
        """
        Build the streaming response for one request.

        Args:
            resource_id: Song id from the URL
            range_header: Raw Range header value, if any
            verdict: Authorization verdict produced upstream

        Raises:
            Unauthorized: verdict is negative
            ResourceNotFound: no such song
            BytesMissing: song known but its audio file is gone
            RangeNotSatisfiable: range starts past the end or is inverted
        """
        if not verdict.authenticated:
            raise Unauthorized()

        resource = self.resolve(resource_id)
        response = media_stream_response(
            resource,
            partial(self.store.open, resource.reference),
            range_header,
            chunk_size=self.chunk_size,
        )
        logger.debug(
            f"Streaming {resource_id} to {verdict.subject}: "
            f"{response.status_code} {response.session.byte_range}"
        )
        return response


# Singleton lazy initialization
_stream_handler = None

def get_stream_handler() -> RangeStreamHandler:
    global _stream_handler
    if _stream_handler is None:
        _stream_handler = RangeStreamHandler(get_song_catalog(), get_media_store())
    return _stream_handler
