"""Resolve public image identifiers to streamable blob bytes."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from agent_images.application.ports.blob_store_port import BlobStorePort
from agent_images.application.services.image_catalog_service import ImageCatalogService
from agent_images.domain.upload_rules import sanitize_file_name

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, s-maxage=31536000, immutable"


class ImageNotFoundError(LookupError):
    """Raised when a public image id cannot be resolved."""

    def __init__(self, *, public_id: str) -> None:
        super().__init__("Image not found")
        self.public_id = public_id


@dataclass(frozen=True)
class ResolvedImage:
    """Anonymous download view of one image."""

    chunks: AsyncIterator[bytes]
    content_type: str
    byte_size: int
    suggested_file_name: str


class PublicImageResolverService:
    """Map public ids to fresh blob downloads without exposing blob handles."""

    def __init__(self, *, catalog: ImageCatalogService, blob_store: BlobStorePort) -> None:
        self._catalog = catalog
        self._blob_store = blob_store

    async def resolve(self, *, public_id: str) -> ResolvedImage:
        """Return a byte stream and response metadata for one public image."""

        image = await self._catalog.get_by_public_id(public_id=public_id)
        if image is None:
            raise ImageNotFoundError(public_id=public_id)

        reference = await self._blob_store.create_download_reference(blob_id=image.blob_id)
        if reference is None:
            logger.warning("public_image_blob_unavailable image_id=%s", public_id)
            raise ImageNotFoundError(public_id=public_id)

        chunks = await self._blob_store.open_download(reference=reference)
        return ResolvedImage(
            chunks=chunks,
            content_type=image.content_type,
            byte_size=image.byte_size,
            suggested_file_name=sanitize_file_name(image.original_file_name),
        )
