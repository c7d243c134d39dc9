"""Pytest configuration for SongStream tests"""

import sys
from pathlib import Path
import pytest

# Add backend to path for imports
backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

TEST_SECRET = "songstream-test-secret-0123456789abcdef"

# 1000 bytes whose values repeat only every 251 bytes, so slices are distinguishable
AUDIO_BYTES = bytes(i % 251 for i in range(1000))


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Point uploads and catalog at a temp dir and sign tokens with TEST_SECRET"""
    from app.core.config import settings

    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "session_secret", TEST_SECRET)
    yield tmp_path


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances between tests"""
    yield

    import app.services.media_store as store_mod
    import app.services.song_catalog as catalog_mod
    import app.services.stream_service as stream_mod

    store_mod._media_store = None
    catalog_mod._song_catalog = None
    stream_mod._stream_handler = None


@pytest.fixture
def client():
    """Create FastAPI test client"""
    from app.main import app
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture
def auth_headers():
    from app.core.security import generate_token
    return {"Authorization": f"Bearer {generate_token('user-1')}"}


@pytest.fixture
def song():
    """A 1000-byte song stored on disk and registered in the catalog"""
    from app.services.media_store import get_media_store
    from app.services.song_catalog import get_song_catalog

    get_media_store().put("1700000000000-42.mp3", AUDIO_BYTES)
    return get_song_catalog().add_song(
        title="Test Song",
        artist="Test Artist",
        file_path="1700000000000-42.mp3",
        file_size=len(AUDIO_BYTES),
        duration=3,
    )
