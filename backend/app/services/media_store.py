"""Storage access for song bytes.

The stream handler only talks to a MediaStore, so the upload directory can
be swapped for an in-memory store (tests) or any other blob backend.
"""

import io
import logging
import os
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Protocol, runtime_checkable

from app.core.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class MediaStore(Protocol):
    """Read access to backing bytes, keyed by an opaque reference"""

    def exists(self, reference: str) -> bool: ...

    def size(self, reference: str) -> int: ...

    def open(self, reference: str) -> BinaryIO: ...

    def put(self, reference: str, data: bytes) -> object: ...

    def delete(self, reference: str) -> bool: ...


class LocalMediaStore:
    """Files in a single directory on disk (the upload directory)"""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else settings.get_upload_path()
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, reference: str) -> Path:
        """
        Resolve a reference to a file under root.

        Only the basename is used, so references carrying directories
        (including "..") can never point outside the upload directory.
        """
        name = os.path.basename(reference.replace("\\", "/"))
        if not name or name in (".", ".."):
            raise ValueError(f"Invalid media reference: {reference!r}")
        return self.root / name

    def exists(self, reference: str) -> bool:
        try:
            return self.path_for(reference).is_file()
        except ValueError:
            return False

    def size(self, reference: str) -> int:
        return self.path_for(reference).stat().st_size

    def open(self, reference: str) -> BinaryIO:
        return open(self.path_for(reference), "rb")

    def put(self, reference: str, data: bytes) -> Path:
        path = self.path_for(reference)
        path.write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes at {path}")
        return path

    def delete(self, reference: str) -> bool:
        try:
            path = self.path_for(reference)
        except ValueError:
            return False
        if not path.is_file():
            return False
        path.unlink()
        return True


class InMemoryMediaStore:
    """Dict-backed store; each open() gets an independent cursor"""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None):
        self._blobs: Dict[str, bytes] = dict(blobs or {})

    def exists(self, reference: str) -> bool:
        return reference in self._blobs

    def size(self, reference: str) -> int:
        return len(self._blobs[reference])

    def open(self, reference: str) -> BinaryIO:
        try:
            return io.BytesIO(self._blobs[reference])
        except KeyError:
            raise FileNotFoundError(reference) from None

    def put(self, reference: str, data: bytes) -> None:
        self._blobs[reference] = bytes(data)

    def delete(self, reference: str) -> bool:
        return self._blobs.pop(reference, None) is not None


# Singleton lazy initialization
_media_store = None

def get_media_store() -> MediaStore:
    global _media_store
    if _media_store is None:
        _media_store = LocalMediaStore()
    return _media_store
