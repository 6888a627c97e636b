#!/usr/bin/env python3
"""
image_downloader.py
-------------------
Concurrent image downloads into blob storage.

Remote image URLs referenced by export records (covers, gallery images,
chapter pages, avatars, portraits) are fetched with aiohttp in fixed-size
concurrent groups: each group is awaited completely before the next one
starts, which bounds the number of open connections. A failing download
never cancels its siblings; it is recorded as a DownloadError and the
asset kind's placeholder reference is used instead.

Checks before a payload is accepted:
    - HTTP status below 400
    - ``Content-Type`` is ``image/<allowed format>``
    - URL extension (when it names an image format) is allowed
    - ``Content-Length`` and actual body within the size limit
    - Bytes decode as an image (Pillow ``verify``)

Stored files are registered with the ImageDeduplicator, which replaces
byte-identical copies with links to the first stored file.

Usage:
    downloader = ImageDownloader(storage, config, deduplicator, logger)
    requests = [ImageRequest(url, downloader.storage_key("comic", slug, url), "comic")]
    stored = downloader.download_many(requests, phase="comics")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import asyncio
import io
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

# --- Third party imports ---
import aiohttp
from aiohttp import ClientTimeout
from PIL import Image

# --- Local imports ---
from comicseed.core.config import SeedConfig
from comicseed.core.exceptions import DownloadError, RecordError
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.pipeline.image_deduplicator import ImageDeduplicator
from comicseed.pipeline.storage import BlobStorage

DEFAULT_EXTENSION = "webp"

# Extensions that name an image format (allowed or not)
_IMAGE_EXTENSIONS = {
    "avif", "bmp", "gif", "heic", "ico", "jpeg", "jpg", "png", "svg", "tif", "tiff", "webp",
}

_STREAM_CHUNK = 64 * 1024


def is_remote(url: Optional[str]) -> bool:
    """Whether a reference is an http(s) URL rather than a local asset path."""
    return bool(url) and urlparse(url).scheme in ("http", "https")  # type: ignore[arg-type]


def url_extension(url: str) -> Optional[str]:
    """Lowercased file extension of a URL path, if any."""
    suffix = PurePosixPath(urlparse(url).path).suffix
    return suffix[1:].lower() if suffix else None


@dataclass
class ImageRequest:
    """
    One image to fetch.

    Attributes:
        url: Source reference (remote URL, local path or None)
        key: Storage key the image is written under
        kind: Asset kind, selects the placeholder ('comic', 'chapter', ...)
    """

    url: Optional[str]
    key: str
    kind: str


@dataclass
class DownloadStats:
    """Download counters of one run."""

    downloaded: int = 0
    existing: int = 0
    cached: int = 0
    failed: int = 0
    deduplicated: int = 0
    placeholders: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "downloaded": self.downloaded,
            "existing": self.existing,
            "cached": self.cached,
            "failed": self.failed,
            "deduplicated": self.deduplicated,
            "placeholders": self.placeholders,
        }


class ImageDownloader:
    """
    Downloads images into blob storage in bounded concurrent groups.

    Attributes:
        storage: Blob storage provider receiving the bytes
        config: Seed configuration (limits, formats, placeholders)
        deduplicator: Optional content deduplicator for stored files
        logger: Optional SeedLogger
        enabled: When False nothing is fetched and references pass through
        stats: Counters of this run
        errors: One RecordError per failed download
    """

    def __init__(
        self,
        storage: BlobStorage,
        config: SeedConfig,
        deduplicator: Optional[ImageDeduplicator] = None,
        logger: Optional[SeedLogger] = None,
        enabled: bool = True,
    ) -> None:
        self.storage = storage
        self.config = config
        self.deduplicator = deduplicator
        self.logger = logger
        self.enabled = enabled
        self.session_timeout = ClientTimeout(total=config.request_timeout)
        self.allowed_formats = {f.lower() for f in config.allowed_image_formats}
        self.stats = DownloadStats()
        self.errors: List[RecordError] = []
        # URL → stored reference, so one URL is fetched once per run
        self._url_cache: Dict[str, str] = {}

    def storage_key(self, kind: str, stem: str, url: Optional[str] = None) -> str:
        """
        Storage key of an asset: ``<kind directory>/<stem>.<ext>``.

        The extension comes from the URL when it names an image format,
        else ``webp``.
        """
        directory = self.config.image_dirs.get(kind, kind)
        ext = url_extension(url) if url else None
        if ext not in _IMAGE_EXTENSIONS:
            ext = DEFAULT_EXTENSION
        return f"{directory.strip('/')}/{stem}.{ext}"

    # ---- Public API ----

    def download_many(
        self, requests: Sequence[ImageRequest], phase: str = "images"
    ) -> List[str]:
        """
        Synchronous wrapper around ``download_all``.

        Returns:
            One stored reference per request, in request order
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.download_all(requests, phase))

        # Called from inside an event loop: run ours on a worker thread
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(asyncio.run, self.download_all(requests, phase))
            return future.result()

    async def download_all(
        self, requests: Sequence[ImageRequest], phase: str = "images"
    ) -> List[str]:
        """
        Fetch every remote request, group by group.

        Empty references become the kind's placeholder; local references
        pass through unchanged; a URL already fetched this run reuses its
        stored reference.

        Args:
            requests: Images to fetch
            phase: Phase name recorded on errors

        Returns:
            One stored reference (or placeholder) per request, in order
        """
        results: List[Optional[str]] = [None] * len(requests)
        pending: Dict[str, List[int]] = {}

        for index, request in enumerate(requests):
            if not request.url:
                results[index] = self._placeholder(request.kind)
            elif not self.enabled or not is_remote(request.url):
                results[index] = request.url
            elif request.url in self._url_cache:
                self.stats.cached += 1
                results[index] = self._url_cache[request.url]
            else:
                pending.setdefault(request.url, []).append(index)

        if pending:
            await self._download_pending(requests, pending, results, phase)

        return [r if r is not None else "" for r in results]

    async def _download_pending(
        self,
        requests: Sequence[ImageRequest],
        pending: Dict[str, List[int]],
        results: List[Optional[str]],
        phase: str,
    ) -> None:
        log = safe_logger(self.logger)
        urls = list(pending)
        size = self.config.download_concurrency

        async with aiohttp.ClientSession(timeout=self.session_timeout) as session:
            for start in range(0, len(urls), size):
                group = urls[start : start + size]
                outcomes = await asyncio.gather(
                    *(self._store(session, requests[pending[url][0]]) for url in group),
                    return_exceptions=True,
                )
                for url, outcome in zip(group, outcomes):
                    indexes = pending[url]
                    if isinstance(outcome, BaseException):
                        if not isinstance(outcome, Exception):
                            raise outcome
                        self._record_failure(url, outcome, phase)
                        for i in indexes:
                            results[i] = self._placeholder(requests[i].kind)
                        continue
                    self._url_cache[url] = outcome
                    for i in indexes:
                        results[i] = outcome
                log.log_debug(
                    "download_group_complete",
                    {"phase": phase, "group": start // size, "urls": len(group)},
                )

        log.log_operation("downloads_complete", {"phase": phase, **self.stats.to_dict()})

    # ---- Single download ----

    async def _store(self, session: aiohttp.ClientSession, request: ImageRequest) -> str:
        """Fetch one image and write it to storage; returns its reference."""
        if self.storage.exists(request.key):
            self.stats.existing += 1
            self._register(request.key)
            return self.storage.url_for(request.key)

        data = await self.fetch(session, request.url)  # type: ignore[arg-type]
        uploaded = self.storage.upload(data, request.key, {"kind": request.kind})
        if not uploaded.ok:
            raise DownloadError(request.url, f"storage upload failed: {uploaded.error}")  # type: ignore[arg-type]

        self.stats.downloaded += 1
        self._register(request.key)
        return uploaded.url  # type: ignore[return-value]

    async def fetch(self, session: aiohttp.ClientSession, url: str) -> bytes:
        """
        Download and check one image payload.

        Args:
            session: Open aiohttp session
            url: Remote image URL

        Returns:
            Image bytes

        Raises:
            DownloadError: On network failure, error status, disallowed
                type or extension, oversized or undecodable payload
        """
        ext = url_extension(url)
        if ext in _IMAGE_EXTENSIONS and ext not in self.allowed_formats:
            raise DownloadError(url, f"disallowed image extension: .{ext}")

        limit = self.config.max_image_size_bytes
        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise DownloadError(url, f"HTTP {response.status}")

                content_type = response.headers.get("Content-Type", "")
                self._check_content_type(url, content_type)

                if response.content_length is not None and response.content_length > limit:
                    raise DownloadError(
                        url, f"payload too large: {response.content_length} bytes (limit {limit})"
                    )

                buffer = bytearray()
                async for chunk in response.content.iter_chunked(_STREAM_CHUNK):
                    buffer.extend(chunk)
                    if len(buffer) > limit:
                        raise DownloadError(url, f"payload exceeds {limit} bytes")
        except asyncio.TimeoutError as e:
            raise DownloadError(url, "request timed out") from e
        except aiohttp.ClientError as e:
            raise DownloadError(url, f"{type(e).__name__}: {e}") from e

        if not buffer:
            raise DownloadError(url, "empty response")

        data = bytes(buffer)
        if self.config.verify_images:
            self._verify(url, data)
        return data

    def _check_content_type(self, url: str, content_type: str) -> None:
        mime = content_type.split(";")[0].strip().lower()
        if not mime.startswith("image/"):
            raise DownloadError(url, f"invalid content type: {content_type or 'missing'}")
        subtype = mime.split("/", 1)[1]
        if subtype not in self.allowed_formats:
            raise DownloadError(url, f"disallowed image type: {mime}")

    @staticmethod
    def _verify(url: str, data: bytes) -> None:
        """Decode the bytes with Pillow."""
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
        except (OSError, SyntaxError, ValueError) as e:
            raise DownloadError(url, f"invalid image data: {e}") from e

    # ---- Bookkeeping ----

    def _register(self, key: str) -> None:
        """Hand a stored file to the deduplicator (local providers only)."""
        if self.deduplicator is None:
            return
        path = self.storage.local_path(key)
        if path is None:
            return
        outcome = self.deduplicator.process(path)
        if outcome.is_duplicate:
            self.stats.deduplicated += 1

    def _placeholder(self, kind: str) -> str:
        self.stats.placeholders += 1
        return self.config.placeholder_for(kind)

    def _record_failure(self, url: str, error: Exception, phase: str) -> None:
        if not isinstance(error, DownloadError):
            error = DownloadError(url, f"{type(error).__name__}: {error}")
        self.stats.failed += 1
        self.errors.append(RecordError.from_exception(phase, error, url))
        safe_logger(self.logger).log_warning(
            "Image download failed, using placeholder",
            {"phase": phase, "url": url, "reason": error.reason},
        )

    def summary(self) -> Dict[str, Any]:
        """Counters plus the number of recorded errors."""
        return {**self.stats.to_dict(), "errors": len(self.errors)}
