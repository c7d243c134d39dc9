import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from app.core.config import settings
from app.core.streaming import AUDIO_CONTENT_TYPE, MediaResource

logger = logging.getLogger(__name__)


@dataclass
class Song:
    """Catalog entry for an uploaded song"""
    id: str
    title: str
    artist: str
    file_path: str
    file_size: int
    duration: int = 0
    uploaded_by: str = "system"
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_dict(cls, data: Dict) -> "Song":
        return cls(
            id=data["id"],
            title=data.get("title", "Untitled"),
            artist=data.get("artist", "Unknown Artist"),
            file_path=data["file_path"],
            file_size=int(data.get("file_size", 0)),
            duration=int(data.get("duration", 0)),
            uploaded_by=data.get("uploaded_by", "system"),
            created_at=data.get("created_at") or datetime.now().isoformat(),
        )

    def to_dict(self) -> Dict:
        return asdict(self)

    def to_media_resource(self) -> MediaResource:
        return MediaResource(
            id=self.id,
            reference=self.file_path,
            total_length=self.file_size,
            content_type=AUDIO_CONTENT_TYPE,
        )


class SongCatalog:
    """JSON-file catalog of songs, the lookup side of the stream endpoint"""

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = Path(data_dir) if data_dir else settings.get_data_path()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.catalog_file = self.data_dir / "songs.json"

        if not self.catalog_file.exists():
            self._save_catalog({"songs": []})

    def _load_catalog(self) -> Dict:
        """Load catalog from JSON file"""
        try:
            if not self.catalog_file.exists():
                return {"songs": []}
            with open(self.catalog_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load song catalog: {e}")
            return {"songs": []}

    def _save_catalog(self, catalog: Dict) -> None:
        """Save catalog to JSON file"""
        with open(self.catalog_file, 'w', encoding='utf-8') as f:
            json.dump(catalog, f, indent=2, ensure_ascii=False)

    def add_song(
        self,
        title: str,
        artist: str,
        file_path: str,
        file_size: int,
        duration: int = 0,
        uploaded_by: str = "system",
        song_id: Optional[str] = None,
    ) -> Song:
        """
        Register a song whose bytes are already in the media store.

        Args:
            title: Song title
            artist: Artist name
            file_path: Media store reference for the audio bytes
            file_size: Byte length, authoritative for streaming
            duration: Length in seconds, if known
            uploaded_by: Uploader identifier
            song_id: Explicit id, generated when omitted

        Returns:
            The stored Song
        """
        if file_size < 0:
            raise ValueError("file_size must be non-negative")

        song = Song(
            id=song_id or uuid.uuid4().hex,
            title=title,
            artist=artist,
            file_path=file_path,
            file_size=file_size,
            duration=duration,
            uploaded_by=uploaded_by,
        )

        catalog = self._load_catalog()
        catalog["songs"] = [s for s in catalog["songs"] if s.get("id") != song.id]
        # Recent first
        catalog["songs"].insert(0, song.to_dict())
        self._save_catalog(catalog)

        logger.info(f"Song {song.id} added to catalog ({song.artist} - {song.title})")
        return song

    def get_song(self, song_id: str) -> Optional[Song]:
        catalog = self._load_catalog()
        entry = next((s for s in catalog["songs"] if s.get("id") == song_id), None)
        if entry is None:
            return None
        return Song.from_dict(entry)

    def list_songs(self) -> List[Song]:
        catalog = self._load_catalog()
        return [Song.from_dict(s) for s in catalog.get("songs", [])]

    def remove_song(self, song_id: str) -> bool:
        catalog = self._load_catalog()
        remaining = [s for s in catalog["songs"] if s.get("id") != song_id]
        if len(remaining) == len(catalog["songs"]):
            return False
        catalog["songs"] = remaining
        self._save_catalog(catalog)
        logger.info(f"Song {song_id} removed from catalog")
        return True

    def lookup_resource(self, song_id: str) -> Optional[MediaResource]:
        """Resolve a song id to its streamable resource, None if unknown"""
        song = self.get_song(song_id)
        return song.to_media_resource() if song else None


# Singleton lazy initialization
_song_catalog = None

def get_song_catalog() -> SongCatalog:
    global _song_catalog
    if _song_catalog is None:
        _song_catalog = SongCatalog()
    return _song_catalog
