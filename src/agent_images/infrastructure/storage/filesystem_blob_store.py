"""Local filesystem blob store with single-use upload handles and signed downloads."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import os
import re
import time
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import BinaryIO, TypeVar
from uuid import uuid4

from agent_images.application.ports.blob_store_port import (
    BlobMetadata,
    BlobStoreError,
    BlobStorePort,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_BLOB_ID_PATTERN = re.compile(r"^[0-9a-f]{64}$")
_UPLOAD_HANDLE_PATTERN = re.compile(r"^[0-9a-f]{32}$")
DOWNLOAD_CHUNK_BYTES = 64 * 1024


class FilesystemBlobStore(BlobStorePort):
    """Content-addressed blob store rooted at one local directory.

    Blobs are stored under their sha256 hex digest with a json metadata sidecar.
    Upload handles are marker files claimed by an atomic rename, so each handle
    accepts at most one write. Download references are HMAC-signed and expire.
    """

    def __init__(
        self,
        *,
        root: str | Path,
        signing_secret: str,
        download_ttl_seconds: int = 300,
        timeout_seconds: float = 5.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._root = Path(root)
        self._pending_dir = self._root / "pending"
        self._blobs_dir = self._root / "blobs"
        self._secret = signing_secret.encode("utf-8")
        self._download_ttl_seconds = download_ttl_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock or time.time

    async def create_upload_handle(self) -> str:
        """Create a pending marker and return its handle."""

        handle = uuid4().hex
        await self._run("create_upload_handle", self._create_upload_handle_sync, handle)
        return handle

    async def write(self, *, upload_handle: str, body: bytes, content_type: str) -> str:
        """Claim the handle, store bytes under their digest and return the blob id."""

        if not _UPLOAD_HANDLE_PATTERN.match(upload_handle):
            raise BlobStoreError("write received a malformed upload handle")
        blob_id = await self._run(
            "write",
            self._write_sync,
            upload_handle,
            body,
            content_type,
        )
        logger.info("blob_written blob_id=%s size=%s", blob_id, len(body))
        return blob_id

    async def get_metadata(self, *, blob_id: str) -> BlobMetadata | None:
        """Return stored blob metadata, or None for unknown ids."""

        if not _BLOB_ID_PATTERN.match(blob_id):
            return None
        return await self._run("get_metadata", self._get_metadata_sync, blob_id)

    async def create_download_reference(self, *, blob_id: str) -> str | None:
        """Return a signed reference valid for the configured ttl."""

        metadata = await self.get_metadata(blob_id=blob_id)
        if metadata is None:
            return None
        expires_at = int(self._clock()) + self._download_ttl_seconds
        signature = self._sign(blob_id=blob_id, expires_at=expires_at)
        return f"{blob_id}.{expires_at}.{signature}"

    async def open_download(self, *, reference: str) -> AsyncIterator[bytes]:
        """Verify a signed reference and return a chunk stream over the blob file."""

        blob_id = self._verify_reference(reference)
        handle = await self._run("open_download", self._open_blob_sync, blob_id)
        return self._iter_chunks(handle)

    async def _iter_chunks(self, handle: BinaryIO) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await asyncio.to_thread(handle.read, DOWNLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                yield chunk
        finally:
            handle.close()

    def _verify_reference(self, reference: str) -> str:
        parts = reference.split(".")
        if len(parts) != 3:
            raise BlobStoreError("download reference is malformed")
        blob_id, raw_expires_at, signature = parts
        if not _BLOB_ID_PATTERN.match(blob_id) or not raw_expires_at.isdigit():
            raise BlobStoreError("download reference is malformed")

        expires_at = int(raw_expires_at)
        expected = self._sign(blob_id=blob_id, expires_at=expires_at)
        if not hmac.compare_digest(expected, signature):
            raise BlobStoreError("download reference signature mismatch")
        if expires_at < int(self._clock()):
            raise BlobStoreError("download reference has expired")
        return blob_id

    def _sign(self, *, blob_id: str, expires_at: int) -> str:
        message = f"{blob_id}.{expires_at}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def _run(self, operation: str, func: Callable[..., _T], *args: object) -> _T:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self._timeout_seconds,
            )
        except BlobStoreError:
            raise
        except TimeoutError as error:
            raise BlobStoreError(f"{operation} timed out") from error
        except OSError as error:
            raise BlobStoreError(f"{operation} failed: {error}") from error

    def _create_upload_handle_sync(self, handle: str) -> None:
        self._pending_dir.mkdir(parents=True, exist_ok=True)
        (self._pending_dir / handle).touch(exist_ok=False)

    def _write_sync(self, handle: str, body: bytes, content_type: str) -> str:
        marker = self._pending_dir / handle
        claimed = self._pending_dir / f"{handle}.claimed"
        try:
            os.rename(marker, claimed)
        except FileNotFoundError as error:
            raise BlobStoreError("upload handle is unknown or already used") from error

        try:
            blob_id = hashlib.sha256(body).hexdigest()
            self._blobs_dir.mkdir(parents=True, exist_ok=True)
            blob_path = self._blobs_dir / blob_id
            if not blob_path.exists():
                _atomic_write(blob_path, body)
            sidecar = {"size": len(body), "contentType": content_type}
            _atomic_write(
                self._blobs_dir / f"{blob_id}.json",
                json.dumps(sidecar).encode("utf-8"),
            )
        finally:
            claimed.unlink(missing_ok=True)
        return blob_id

    def _get_metadata_sync(self, blob_id: str) -> BlobMetadata | None:
        blob_path = self._blobs_dir / blob_id
        if not blob_path.is_file():
            return None
        content_type: str | None = None
        sidecar_path = self._blobs_dir / f"{blob_id}.json"
        if sidecar_path.is_file():
            try:
                sidecar = json.loads(sidecar_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("blob_metadata_sidecar_invalid blob_id=%s", blob_id)
                sidecar = {}
            raw_content_type = sidecar.get("contentType") if isinstance(sidecar, dict) else None
            if isinstance(raw_content_type, str):
                content_type = raw_content_type
        return BlobMetadata(
            blob_id=blob_id,
            size=blob_path.stat().st_size,
            content_type=content_type,
        )

    def _open_blob_sync(self, blob_id: str) -> BinaryIO:
        blob_path = self._blobs_dir / blob_id
        try:
            return blob_path.open("rb")
        except FileNotFoundError as error:
            raise BlobStoreError("download reference points to a missing blob") from error


def _atomic_write(path: Path, payload: bytes) -> None:
    temp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    temp_path.write_bytes(payload)
    os.replace(temp_path, path)
