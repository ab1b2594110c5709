"""Object storage for briefs, original images and rendered versions.

Keys are ``{project_id}/{name}``; rendered images are versioned per attempt
(``{project_id}/{item_id}_edited_v{n}.jpg``) so earlier attempts are kept.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote

from creative_backend.core.errors import StorageError

BRIEFS_BUCKET = "project-briefs"
ORIGINALS_BUCKET = "original-images"
EDITED_BUCKET = "edited-images"


class ObjectStorage(Protocol):
    """Contract for durable object storage."""

    async def upload(self, bucket: str, key: str, payload: bytes, content_type: str) -> str:
        """Store ``payload`` and return a publicly retrievable URL."""


def _safe_key(key: str) -> PurePosixPath:
    path = PurePosixPath(key)
    if path.is_absolute() or ".." in path.parts or not path.parts:
        raise StorageError(f"invalid storage key: {key!r}")
    return path


def edited_image_key(project_id: str, item_id: str, attempt: int) -> str:
    return f"{project_id}/{item_id}_edited_v{attempt}.jpg"


class InMemoryObjectStorage:
    """Keeps objects in a dict; used by tests and local runs without a disk root."""

    def __init__(self, base_url: str = "memory://") -> None:
        # keep the "//" of a bare scheme such as "memory://"
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}

    async def upload(self, bucket: str, key: str, payload: bytes, content_type: str) -> str:
        safe = _safe_key(key)
        self.objects[(bucket, str(safe))] = (payload, content_type)
        return f"{self._base_url}{bucket}/{quote(str(safe))}"


def _base_root() -> Path:
    env_root = os.getenv("STORAGE_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "storage"


class LocalObjectStorage:
    """Writes objects below a directory root, one folder per bucket."""

    def __init__(self, root: Path | None = None, public_base_url: str | None = None) -> None:
        self._root = root or _base_root()
        base = public_base_url or os.getenv("STORAGE_PUBLIC_URL") or self._root.as_uri()
        self._public_base_url = base.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _write(self, target: Path, payload: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)

    async def upload(self, bucket: str, key: str, payload: bytes, content_type: str) -> str:
        safe = _safe_key(key)
        target = self._root / bucket / Path(*safe.parts)
        try:
            await asyncio.to_thread(self._write, target, payload)
        except OSError as exc:
            raise StorageError(f"Failed to upload {bucket}/{key}: {exc}") from exc
        return f"{self._public_base_url}/{bucket}/{quote(str(safe))}"


__all__ = [
    "BRIEFS_BUCKET",
    "EDITED_BUCKET",
    "InMemoryObjectStorage",
    "LocalObjectStorage",
    "ORIGINALS_BUCKET",
    "ObjectStorage",
    "edited_image_key",
]
