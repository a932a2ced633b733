"""agent-images API entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from agent_images.application.ports.blob_store_port import BlobStorePort
from agent_images.application.ports.identity_provider_port import IdentityProviderPort
from agent_images.application.services.admission_service import UploadAdmissionService
from agent_images.application.services.image_catalog_service import ImageCatalogService
from agent_images.application.services.public_resolver_service import (
    PublicImageResolverService,
)
from agent_images.application.services.token_registry_service import TokenRegistryService
from agent_images.application.services.upload_intent_service import UploadIntentService
from agent_images.config.settings import Settings, load_settings
from agent_images.infrastructure.db.cli_token_repository import SqlAlchemyCliTokenRepository
from agent_images.infrastructure.db.image_repository import SqlAlchemyImageRepository
from agent_images.infrastructure.db.session import create_session_factory
from agent_images.infrastructure.db.upload_intent_repository import (
    SqlAlchemyUploadIntentRepository,
)
from agent_images.infrastructure.http.auth_guard import SessionAuthGuard
from agent_images.infrastructure.http.dashboard_router import build_dashboard_router
from agent_images.infrastructure.http.health_router import build_health_router
from agent_images.infrastructure.http.public_image_router import build_public_image_router
from agent_images.infrastructure.http.upload_router import build_upload_router
from agent_images.infrastructure.identity.signed_session import SignedSessionIdentityProvider
from agent_images.infrastructure.logging import configure_logging
from agent_images.infrastructure.security.token_service import CliTokenService
from agent_images.infrastructure.storage.filesystem_blob_store import FilesystemBlobStore
from agent_images.infrastructure.storage.http_blob_store import HttpBlobStoreClient

API_HOST = "0.0.0.0"
API_PORT = 8000
logger = logging.getLogger(__name__)


def build_blob_store(settings: Settings) -> BlobStorePort:
    """Build the blob store adapter selected by `BLOB_STORE_MODE`."""

    if settings.blob_store_mode == "http":
        if settings.blob_store_url is None:
            raise ValueError("BLOB_STORE_URL is required when BLOB_STORE_MODE=http")
        return HttpBlobStoreClient(
            base_url=str(settings.blob_store_url),
            api_key=settings.blob_store_api_key,
            timeout_seconds=settings.blob_store_timeout_seconds,
        )

    return FilesystemBlobStore(
        root=settings.blob_store_root,
        signing_secret=settings.session_signing_secret,
        download_ttl_seconds=settings.blob_download_url_ttl_seconds,
        timeout_seconds=settings.blob_store_timeout_seconds,
    )


def create_app(
    *,
    database_url: str | None = None,
    blob_store: BlobStorePort | None = None,
    identity_provider: IdentityProviderPort | None = None,
    token_registry: TokenRegistryService | None = None,
    public_base_url: str | None = None,
) -> FastAPI:
    """Create FastAPI app for CLI uploads, public images and dashboard routes."""

    settings = None
    if database_url is None or blob_store is None or identity_provider is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if database_url is None:
            database_url = settings.database_url
        if blob_store is None:
            blob_store = build_blob_store(settings)
        if identity_provider is None:
            identity_provider = SignedSessionIdentityProvider(
                signing_secret=settings.session_signing_secret,
            )
        if public_base_url is None and settings.public_base_url is not None:
            public_base_url = str(settings.public_base_url)

    assert database_url is not None
    assert blob_store is not None
    assert identity_provider is not None

    session_factory = create_session_factory(database_url)
    if token_registry is None:
        token_registry = TokenRegistryService(
            tokens=SqlAlchemyCliTokenRepository(session_factory),
            token_codec=CliTokenService(),
        )
    catalog = ImageCatalogService(images=SqlAlchemyImageRepository(session_factory))
    upload_intents = UploadIntentService(
        token_registry=token_registry,
        intents=SqlAlchemyUploadIntentRepository(session_factory),
        blob_store=blob_store,
    )

    app = FastAPI(title="agent-images")
    app.include_router(build_health_router())
    app.include_router(
        build_upload_router(
            admission_service=UploadAdmissionService(
                upload_intents=upload_intents,
                blob_store=blob_store,
            ),
            public_base_url=public_base_url,
        )
    )
    app.include_router(
        build_public_image_router(
            resolver=PublicImageResolverService(catalog=catalog, blob_store=blob_store),
        )
    )
    app.include_router(
        build_dashboard_router(
            token_registry=token_registry,
            catalog=catalog,
            auth_guard=SessionAuthGuard(identity_provider=identity_provider),
        )
    )
    logger.info("api_app_created blob_store=%s", type(blob_store).__name__)
    return app


def build_runtime_app(
    *,
    database_url: str | None = None,
    blob_store: BlobStorePort | None = None,
    identity_provider: IdentityProviderPort | None = None,
) -> FastAPI:
    """Build runtime FastAPI application from environment settings."""

    return create_app(
        database_url=database_url,
        blob_store=blob_store,
        identity_provider=identity_provider,
    )


def run_asgi_server(*, host: str = API_HOST, port: int = API_PORT) -> None:
    """Run the API as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run the API runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
