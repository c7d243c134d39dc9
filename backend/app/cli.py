"""
SongStream CLI - Management commands for the song catalog.

Usage:
    python -m app.cli [COMMAND] [OPTIONS]

Commands:
    add-song     Copy an MP3 into the upload directory and register it
    list-songs   Show the catalog
    remove-song  Drop a song from the catalog and delete its file
    issue-token  Issue a session token for the stream endpoint
    serve        Run the API server
"""

import typer
import logging
import random
import time
from pathlib import Path
from typing import Optional

from app.core.config import settings

app = typer.Typer(
    name="songstream",
    help="SongStream management commands"
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)

ALLOWED_EXTENSIONS = {".mp3"}


def make_stored_name(original: str) -> str:
    """Unique file name for an upload: <millis>-<random><ext>"""
    suffix = Path(original).suffix.lower()
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"


@app.command()
def add_song(
    path: str = typer.Argument(
        ...,
        help="Path to the MP3 file"
    ),
    title: str = typer.Option(
        ...,
        "--title", "-t",
        help="Song title"
    ),
    artist: str = typer.Option(
        ...,
        "--artist", "-a",
        help="Artist name"
    ),
    duration: int = typer.Option(
        0,
        "--duration", "-d",
        help="Duration in seconds"
    ),
    uploaded_by: str = typer.Option(
        "system",
        "--uploaded-by",
        help="Uploader identifier"
    )
):
    """
    Register an MP3 file in the catalog.

    The file is copied into the upload directory under a unique name and
    its byte length is recorded as the streaming length.
    """
    from app.services.media_store import get_media_store
    from app.services.song_catalog import get_song_catalog

    source = Path(path)
    if not source.is_file():
        typer.echo(f"File not found: {path}", err=True)
        raise typer.Exit(1)

    if source.suffix.lower() not in ALLOWED_EXTENSIONS:
        typer.echo("Only MP3 files are allowed", err=True)
        raise typer.Exit(1)

    size = source.stat().st_size
    if size > settings.max_upload_size:
        typer.echo(
            f"File too large: {size} bytes (limit {settings.max_upload_size})",
            err=True
        )
        raise typer.Exit(1)

    if not title.strip() or not artist.strip():
        typer.echo("Song title and artist name are required", err=True)
        raise typer.Exit(1)

    stored_name = make_stored_name(source.name)
    store = get_media_store()
    store.put(stored_name, source.read_bytes())

    song = get_song_catalog().add_song(
        title=title.strip(),
        artist=artist.strip(),
        file_path=stored_name,
        file_size=size,
        duration=duration,
        uploaded_by=uploaded_by
    )

    typer.echo(f"Added {song.artist} - {song.title}")
    typer.echo(f"   Id: {song.id}")
    typer.echo(f"   File: {stored_name} ({size} bytes)")


@app.command()
def list_songs(
    json_output: bool = typer.Option(
        False,
        "--json", "-j",
        help="Output as JSON"
    )
):
    """List songs in the catalog, newest first."""
    import json
    from app.services.song_catalog import get_song_catalog

    songs = get_song_catalog().list_songs()

    if json_output:
        typer.echo(json.dumps([s.to_dict() for s in songs], ensure_ascii=False, indent=2))
        return

    if not songs:
        typer.echo("Catalog is empty")
        return

    for song in songs:
        typer.echo(f"{song.id}  {song.artist} - {song.title}  ({song.file_size} bytes)")


@app.command()
def remove_song(
    song_id: str = typer.Argument(
        ...,
        help="Song id"
    )
):
    """Remove a song from the catalog and delete its audio file."""
    from app.services.media_store import get_media_store
    from app.services.song_catalog import get_song_catalog

    catalog = get_song_catalog()
    song = catalog.get_song(song_id)
    if song is None:
        typer.echo(f"Song not found: {song_id}", err=True)
        raise typer.Exit(1)

    catalog.remove_song(song_id)
    if not get_media_store().delete(song.file_path):
        typer.echo(f"Audio file already missing: {song.file_path}", err=True)

    typer.echo(f"Removed {song.artist} - {song.title}")


@app.command()
def issue_token(
    user_id: str = typer.Argument(
        ...,
        help="User id placed in the userId claim"
    ),
    role: str = typer.Option(
        "user",
        "--role", "-r",
        help="Role claim (user or admin)"
    ),
    days: Optional[int] = typer.Option(
        None,
        "--days",
        help="Lifetime in days (default: TOKEN_TTL_DAYS)"
    )
):
    """Issue a session token accepted by the stream endpoint."""
    from datetime import timedelta
    from app.core.security import generate_token

    if role not in ("user", "admin"):
        typer.echo("Role must be 'user' or 'admin'", err=True)
        raise typer.Exit(1)

    try:
        token = generate_token(
            user_id,
            role=role,
            ttl=timedelta(days=days) if days is not None else None
        )
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    typer.echo(token)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes")
):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload
    )


if __name__ == "__main__":
    app()
