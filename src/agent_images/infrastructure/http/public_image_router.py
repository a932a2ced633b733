"""FastAPI router serving public images by opaque id."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from agent_images.application.ports.blob_store_port import BlobStoreError
from agent_images.application.services.public_resolver_service import (
    IMMUTABLE_CACHE_CONTROL,
    ImageNotFoundError,
    PublicImageResolverService,
)

logger = logging.getLogger(__name__)


def build_public_image_router(*, resolver: PublicImageResolverService) -> APIRouter:
    """Build router exposing anonymous `GET /i/{image_id}` downloads."""

    router = APIRouter(tags=["public-images"])

    @router.get("/i/{image_id}")
    async def get_public_image(image_id: str) -> StreamingResponse:
        try:
            resolved = await resolver.resolve(public_id=image_id)
        except ImageNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except BlobStoreError as exc:
            logger.warning("public_image_blob_store_failure image_id=%s error=%s", image_id, exc)
            raise HTTPException(status_code=502, detail="Unable to load image") from exc

        return StreamingResponse(
            resolved.chunks,
            media_type=resolved.content_type,
            headers={
                "Content-Length": str(resolved.byte_size),
                "Content-Disposition": f'inline; filename="{resolved.suggested_file_name}"',
                "Cache-Control": IMMUTABLE_CACHE_CONTROL,
            },
        )

    return router
