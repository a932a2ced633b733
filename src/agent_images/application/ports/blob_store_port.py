"""Port for the external content-addressable blob store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class BlobMetadata:
    """Metadata reported by the blob store for one written blob."""

    blob_id: str
    size: int
    content_type: str | None


class BlobStoreError(RuntimeError):
    """Raised when the blob store is unreachable or answers unexpectedly."""


class BlobStorePort(Protocol):
    """Blob store contract used by admission and public resolution."""

    async def create_upload_handle(self) -> str:
        """Return a single-use handle that accepts one blob write."""

    async def write(self, *, upload_handle: str, body: bytes, content_type: str) -> str:
        """Write bytes against an upload handle and return the stored blob id."""

    async def get_metadata(self, *, blob_id: str) -> BlobMetadata | None:
        """Return metadata for a stored blob, or None when the store cannot locate it."""

    async def create_download_reference(self, *, blob_id: str) -> str | None:
        """Return a fresh time-bounded download reference, or None for unknown blobs."""

    async def open_download(self, *, reference: str) -> AsyncIterator[bytes]:
        """Open a download reference and return its byte chunk stream.

        Failures to reach the blob are raised here, before any chunk is consumed.
        """
