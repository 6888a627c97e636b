#!/usr/bin/env python3
"""
storage.py
----------
Blob storage used to persist downloaded images.

The pipeline only needs ``upload``/``exists`` from a provider; any object
following the BlobStorage protocol (local filesystem, object store, CDN)
can be passed in. LocalFileStorage writes under a public web root and
returns web-root-relative URLs such as ``/comics/covers/hero-saga.webp``.

Providers that expose a local path for a key (``local_path``) get their
files content-deduplicated; remote providers skip that step.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union


@dataclass
class UploadResult:
    """Outcome of an upload: a public URL or an error message."""

    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.url is not None and self.error is None


class BlobStorage(Protocol):
    """Interface of a blob storage provider."""

    def upload(
        self, data: bytes, key: str, options: Optional[Dict[str, Any]] = None
    ) -> UploadResult: ...

    def exists(self, key: str) -> bool: ...

    def url_for(self, key: str) -> str: ...

    def local_path(self, key: str) -> Optional[Path]: ...


class LocalFileStorage:
    """
    Filesystem storage rooted at a public directory.

    Attributes:
        root: Directory served as the web root
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        # normpath collapses ".." without following symlinks
        path = Path(os.path.normpath((self.root / key.lstrip("/")).absolute()))
        root = Path(os.path.normpath(self.root.absolute()))
        if root != path and root not in path.parents:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    def upload(
        self, data: bytes, key: str, options: Optional[Dict[str, Any]] = None
    ) -> UploadResult:
        """
        Write bytes under the root (atomically, via a temporary file).

        Args:
            data: File content
            key: Relative storage key
            options: Ignored by this provider

        Returns:
            UploadResult with the web-root-relative URL, or the OS error
        """
        try:
            path = self._path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            temp = path.with_name(f".{path.name}.part")
            temp.write_bytes(data)
            os.replace(temp, path)
        except (OSError, ValueError) as e:
            return UploadResult(error=str(e))
        return UploadResult(url=self.url_for(key))

    def exists(self, key: str) -> bool:
        """Whether a file is stored under the key."""
        return self._path(key).is_file()

    def url_for(self, key: str) -> str:
        """Public URL of a key."""
        return "/" + key.lstrip("/")

    def local_path(self, key: str) -> Optional[Path]:
        """Filesystem path of a key."""
        return self._path(key)
