"""Upload intent ledger: reserve single-use upload slots and promote them to images.

`open` validates declared metadata and binds it to a blob store upload handle.
`close` re-authenticates, checks the intent guards and atomically consumes the
intent while appending the image record. The consumption stamp is a
compare-and-set, so concurrent closes on one intent yield exactly one image.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from agent_images.application.ports.blob_store_port import BlobStorePort
from agent_images.application.ports.image_repository_port import ImageCreateInput, ImageRecord
from agent_images.application.ports.upload_intent_repository_port import (
    UploadIntentCreateInput,
    UploadIntentRepositoryPort,
)
from agent_images.application.services.image_catalog_service import (
    generate_public_image_id,
    with_fresh_public_id,
)
from agent_images.application.services.token_registry_service import TokenRegistryService
from agent_images.domain.upload_rules import (
    UPLOAD_INTENT_TTL,
    DeclaredUpload,
    validate_declared_upload,
)

logger = logging.getLogger(__name__)


class UploadIntentStateError(ValueError):
    """Base class for intent lifecycle failures that require a new intent."""


class UploadIntentNotFoundError(UploadIntentStateError, LookupError):
    """Raised when an intent id does not exist."""

    def __init__(self, *, intent_id: UUID) -> None:
        super().__init__("Upload intent was not found.")
        self.intent_id = intent_id


class UploadIntentTokenMismatchError(UploadIntentStateError):
    """Raised when an intent is finalized with a token other than its issuer."""

    def __init__(self) -> None:
        super().__init__("Upload intent does not match this token.")


class UploadIntentAlreadyConsumedError(UploadIntentStateError):
    """Raised when an intent was already finalized."""

    def __init__(self) -> None:
        super().__init__("Upload intent has already been finalized.")


class UploadIntentExpiredError(UploadIntentStateError):
    """Raised when an intent is older than its time-to-live."""

    def __init__(self) -> None:
        super().__init__("Upload intent expired. Please upload again.")


class BlobMissingError(UploadIntentStateError):
    """Raised when the blob named at finalize cannot be located in the store."""

    def __init__(self, *, blob_id: str) -> None:
        super().__init__("Uploaded file could not be located in storage.")
        self.blob_id = blob_id


@dataclass(frozen=True)
class OpenedUploadIntent:
    """Result of reserving one upload slot."""

    intent_id: UUID
    upload_handle: str
    markdown_alt: str


@dataclass(frozen=True)
class FinalizedUpload:
    """Result of promoting one intent into the image catalog."""

    image_id: str
    markdown_alt: str
    content_type: str
    byte_size: int


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class UploadIntentService:
    """Open and close upload intents for authenticated CLI tokens."""

    def __init__(
        self,
        *,
        token_registry: TokenRegistryService,
        intents: UploadIntentRepositoryPort,
        blob_store: BlobStorePort,
        id_factory: Callable[[], str] | None = None,
        now: Callable[[], datetime] | None = None,
        intent_ttl: timedelta = UPLOAD_INTENT_TTL,
    ) -> None:
        self._token_registry = token_registry
        self._intents = intents
        self._blob_store = blob_store
        self._id_factory = id_factory or generate_public_image_id
        self._now = now or _utc_now
        self._intent_ttl = intent_ttl

    async def open(self, *, token: str, declared: DeclaredUpload) -> OpenedUploadIntent:
        """Validate declared metadata, reserve an upload handle and persist the intent."""

        active_token = await self._token_registry.authenticate(token=token)
        validated = validate_declared_upload(declared)

        upload_handle = await self._blob_store.create_upload_handle()
        intent = await self._intents.create_intent(
            UploadIntentCreateInput(
                intent_id=uuid4(),
                token_id=active_token.token_id,
                user_id=active_token.user_id,
                agent_name=validated.agent_name,
                original_file_name=validated.original_file_name,
                content_type=validated.content_type,
                byte_size=validated.byte_size,
                markdown_alt=validated.markdown_alt,
                created_at=self._now(),
            )
        )
        logger.info(
            "upload_intent_opened intent_id=%s token_id=%s agent_name=%s byte_size=%s",
            intent.intent_id,
            active_token.token_id,
            intent.agent_name,
            intent.byte_size,
        )
        return OpenedUploadIntent(
            intent_id=intent.intent_id,
            upload_handle=upload_handle,
            markdown_alt=intent.markdown_alt,
        )

    async def close(self, *, token: str, intent_id: UUID, blob_id: str) -> FinalizedUpload:
        """Promote a written blob into a public image exactly once per intent."""

        active_token = await self._token_registry.authenticate(token=token)

        intent = await self._intents.get_by_id(intent_id=intent_id)
        if intent is None:
            raise UploadIntentNotFoundError(intent_id=intent_id)
        if intent.token_id != active_token.token_id:
            raise UploadIntentTokenMismatchError()
        if intent.is_consumed:
            raise UploadIntentAlreadyConsumedError()

        now = self._now()
        if now - intent.created_at > self._intent_ttl:
            logger.info("upload_intent_expired intent_id=%s", intent_id)
            raise UploadIntentExpiredError()

        metadata = await self._blob_store.get_metadata(blob_id=blob_id)
        if metadata is None:
            raise BlobMissingError(blob_id=blob_id)

        async def _publish(public_id: str) -> ImageRecord | None:
            return await self._intents.consume_and_publish(
                intent_id=intent.intent_id,
                token_id=active_token.token_id,
                image=ImageCreateInput(
                    public_id=public_id,
                    blob_id=blob_id,
                    owner_user_id=intent.user_id,
                    agent_name=intent.agent_name,
                    original_file_name=intent.original_file_name,
                    content_type=intent.content_type,
                    byte_size=intent.byte_size,
                    markdown_alt=intent.markdown_alt,
                    created_at=now,
                    intent_id=intent.intent_id,
                ),
                consumed_at=now,
            )

        image = await with_fresh_public_id(_publish, id_factory=self._id_factory)
        if image is None:
            logger.info("upload_intent_finalize_lost_race intent_id=%s", intent_id)
            raise UploadIntentAlreadyConsumedError()

        logger.info(
            "upload_intent_finalized intent_id=%s image_id=%s blob_id=%s stored_size=%s",
            intent_id,
            image.public_id,
            blob_id,
            metadata.size,
        )
        return FinalizedUpload(
            image_id=image.public_id,
            markdown_alt=image.markdown_alt,
            content_type=image.content_type,
            byte_size=image.byte_size,
        )
