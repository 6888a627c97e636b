"""
conftest.py
-----------
Shared pytest fixtures for ComicSeed tests.

Provides fixtures for:
- Temporary directories and export files
- SQLite database setup and teardown
- Sample raw export records
- Real image bytes built with Pillow
- A local aiohttp server serving those images
"""
import asyncio
import json
import threading
import pytest
from collections import Counter
from io import BytesIO
from pathlib import Path
from tempfile import TemporaryDirectory

from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from comicseed.core.config import SeedConfig
from comicseed.database.manager import SeedDB


# ----- Path Fixtures -----

@pytest.fixture
def tmp_dir():
    """Create a temporary directory for test file operations."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def source_dir(tmp_dir):
    """Directory receiving JSON export files."""
    path = tmp_dir / "seed-source"
    path.mkdir()
    return path


@pytest.fixture
def write_source(source_dir):
    """Write a list of records as a JSON export file."""

    def _write(name, records):
        path = source_dir / name
        path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def seed_config(tmp_dir, source_dir):
    """Configuration pointing every directory into the temporary tree."""
    return SeedConfig(
        data_dir=source_dir,
        report_dir=tmp_dir / "reports",
        storage_dir=tmp_dir / "public",
    )


# ----- Database Fixtures -----

@pytest.fixture
def test_db_path(tmp_dir):
    """Path for the test SQLite database."""
    return tmp_dir / "test_comicseed.db"


@pytest.fixture
def test_db(test_db_path):
    """Fresh SeedDB with the catalog schema created."""
    db = SeedDB(db_path=test_db_path)
    yield db
    db.dispose()


@pytest.fixture
def db_session(test_db):
    """Session on the test database, closed after the test."""
    session = test_db.get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ----- Sample Record Fixtures -----

@pytest.fixture
def raw_comic():
    """One fully-populated raw comic record."""
    return {
        "title": "Hero Saga",
        "slug": "hero-saga",
        "description": "A hero rises.",
        "coverImage": "/images/hero-saga.webp",
        "status": "Ongoing",
        "publicationDate": "2023-05-01T00:00:00Z",
        "rating": "8.7",
        "views": 1200,
        "author": {"name": "Jane Doe", "slug": "jane-doe"},
        "artist": "John Roe",
        "type": {"name": "Manhwa"},
        "genres": ["Action", {"name": "Fantasy"}],
    }


@pytest.fixture
def raw_comics():
    """Three raw comics by two authors."""
    return [
        {
            "title": "Hero Saga",
            "slug": "hero-saga",
            "author": "Jane Doe",
            "artist": "John Roe",
            "type": "Manhwa",
            "genres": ["Action", "Fantasy"],
            "coverImage": "/images/hero-saga.webp",
        },
        {
            "title": "Moon Garden",
            "slug": "moon-garden-1a2b3c4d",
            "author": {"name": "jane-doe"},
            "type": "Manga",
            "genres": [{"name": "Romance"}],
            "coverImage": "/images/moon-garden.webp",
        },
        {
            "title": "Iron Tide",
            "slug": "iron-tide",
            "authorName": "Max Kane",
            "genres": ["action"],
            "coverImage": "/images/iron-tide.webp",
        },
    ]


@pytest.fixture
def raw_chapters():
    """Chapters citing their comics by slug and by title."""
    return [
        {"comicslug": "hero-saga", "chaptername": "Chapter 1", "url": "https://example.test/hs/1"},
        {"comicslug": "hero-saga", "chaptername": "Chapter 2"},
        {"comictitle": "Moon Garden", "chapterNumber": 1},
        {"comicslug": "moon-garden", "chaptername": "Chapter 2"},
    ]


@pytest.fixture
def raw_users():
    """Two users, one without id."""
    return [
        {"id": "u-1", "email": "ada@example.com", "name": "Ada", "role": "admin"},
        {"email": "Bob@Example.com"},
    ]


# ----- Image Fixtures -----

def make_png(color=(255, 0, 0), size=(4, 4)):
    """PNG bytes of a solid-color image."""
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    """Bytes of a small red PNG."""
    return make_png()


@pytest.fixture
def other_png_bytes():
    """Bytes of a small blue PNG (different content)."""
    return make_png(color=(0, 0, 255))


# ----- Image Server Fixture -----

class ImageServer:
    """
    aiohttp test server running on its own event loop thread.

    Routes:
        /red.png, /red-copy.png   identical PNG bytes
        /blue.png                 different PNG bytes
        /page.html                text/html body
        /huge.png                 PNG header followed by 64 KiB of padding
        /broken.png               image/png content type, undecodable body
        anything else             404

    Attributes:
        hits: Request count per path
    """

    def __init__(self, red: bytes, blue: bytes) -> None:
        self.hits: Counter = Counter()
        self.bodies = {
            "/red.png": (red, "image/png"),
            "/red-copy.png": (red, "image/png"),
            "/blue.png": (blue, "image/png"),
            "/page.html": (b"<html><body>not an image</body></html>", "text/html"),
            "/huge.png": (red + b"\0" * 65536, "image/png"),
            "/broken.png": (b"definitely not a png", "image/png"),
        }
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self.server: TestServer = None

    async def _handle(self, request: web.Request) -> web.Response:
        self.hits[request.path] += 1
        if request.path not in self.bodies:
            raise web.HTTPNotFound()
        body, content_type = self.bodies[request.path]
        return web.Response(body=body, content_type=content_type)

    def _run(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout=10)

    def start(self) -> None:
        self.thread.start()

        async def _start():
            app = web.Application()
            app.router.add_get("/{name}", self._handle)
            self.server = TestServer(app)
            await self.server.start_server()

        self._run(_start())

    def stop(self) -> None:
        self._run(self.server.close())
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=10)
        self.loop.close()

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))


@pytest.fixture
def image_server(png_bytes, other_png_bytes):
    """Local HTTP server serving test images."""
    server = ImageServer(png_bytes, other_png_bytes)
    server.start()
    yield server
    server.stop()
