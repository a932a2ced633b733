"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter


def build_health_router() -> APIRouter:
    """Build router exposing `GET /healthz`."""

    router = APIRouter(tags=["health"])

    @router.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    return router
