"""FastAPI router for session-authenticated token and image management."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request, Response

from agent_images.application.dto.upload_models import (
    CliTokenIssueRequest,
    CliTokenIssueResponse,
    CliTokenListItem,
    CliTokenListResponse,
    ImageListItem,
    ImageListResponse,
)
from agent_images.application.services.image_catalog_service import (
    MAX_LIST_LIMIT,
    ImageCatalogService,
)
from agent_images.application.services.token_registry_service import (
    CliTokenNotFoundError,
    CliTokenOwnershipError,
    TokenRegistryService,
)
from agent_images.infrastructure.http.auth_guard import (
    SESSION_TOKEN_HEADER,
    InvalidAuthTokenError,
    MissingAuthTokenError,
    SessionAuthGuard,
)


def build_dashboard_router(
    *,
    token_registry: TokenRegistryService,
    catalog: ImageCatalogService,
    auth_guard: SessionAuthGuard,
) -> APIRouter:
    """Build router exposing token management and image listing endpoints."""

    router = APIRouter(tags=["dashboard"])

    def _require_user_id(request: Request) -> str:
        try:
            return auth_guard.require_user_id(
                session_token=request.headers.get(SESSION_TOKEN_HEADER)
            )
        except MissingAuthTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except InvalidAuthTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc

    @router.get("/api/cli-tokens", response_model=CliTokenListResponse)
    async def list_tokens(request: Request) -> CliTokenListResponse:
        user_id = _require_user_id(request)
        summaries = await token_registry.list_for_user(user_id=user_id)
        return CliTokenListResponse(
            items=[
                CliTokenListItem(
                    token_id=summary.token_id,
                    label=summary.label,
                    token_preview=summary.token_preview,
                    created_at=summary.created_at,
                    last_used_at=summary.last_used_at,
                    revoked_at=summary.revoked_at,
                )
                for summary in summaries
            ]
        )

    @router.post("/api/cli-tokens", response_model=CliTokenIssueResponse)
    async def issue_token(
        request: Request,
        payload: CliTokenIssueRequest | None = None,
    ) -> CliTokenIssueResponse:
        user_id = _require_user_id(request)
        issued = await token_registry.issue(
            user_id=user_id,
            label=None if payload is None else payload.label,
        )
        return CliTokenIssueResponse(
            token=issued.token,
            token_id=issued.token_id,
            label=issued.label,
        )

    @router.post("/api/cli-tokens/{token_id}/revoke", status_code=204)
    async def revoke_token(request: Request, token_id: UUID) -> Response:
        user_id = _require_user_id(request)
        try:
            await token_registry.revoke(token_id=token_id, requesting_user_id=user_id)
        except CliTokenNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except CliTokenOwnershipError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        return Response(status_code=204)

    @router.get("/api/images", response_model=ImageListResponse)
    async def list_images(
        request: Request,
        limit: int = Query(default=MAX_LIST_LIMIT, ge=1),
    ) -> ImageListResponse:
        user_id = _require_user_id(request)
        summaries = await catalog.list_for_user(user_id=user_id, limit=limit)
        return ImageListResponse(
            items=[
                ImageListItem(
                    image_id=summary.public_id,
                    created_at=summary.created_at,
                    agent_name=summary.agent_name,
                    original_file_name=summary.original_file_name,
                    content_type=summary.content_type,
                    byte_size=summary.byte_size,
                    markdown_alt=summary.markdown_alt,
                    image_path=summary.image_path,
                    markdown=summary.markdown,
                )
                for summary in summaries
            ]
        )

    return router
