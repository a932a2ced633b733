"""Two-phase upload admission: open intent, transfer bytes, finalize."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from agent_images.application.ports.blob_store_port import BlobStorePort
from agent_images.application.services.upload_intent_service import UploadIntentService
from agent_images.domain.admission_status import AdmissionStatus, assert_transition
from agent_images.domain.upload_rules import (
    DeclaredUpload,
    build_markdown_image,
    public_image_path,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadSubmission:
    """One received upload request: declared metadata plus the payload bytes."""

    declared: DeclaredUpload
    body: bytes


@dataclass(frozen=True)
class AdmissionResult:
    """Public URL and markdown for a finalized upload."""

    image_id: str
    image_url: str
    markdown: str
    agent_name: str


class _AdmissionAttempt:
    """Track one upload attempt through the admission state machine."""

    def __init__(self) -> None:
        self.status = AdmissionStatus.RECEIVED

    def advance(self, to_status: AdmissionStatus) -> None:
        assert_transition(self.status, to_status)
        self.status = to_status


class UploadAdmissionService:
    """Wire token auth, intent ledger and blob transfer into one request flow."""

    def __init__(
        self,
        *,
        upload_intents: UploadIntentService,
        blob_store: BlobStorePort,
    ) -> None:
        self._upload_intents = upload_intents
        self._blob_store = blob_store

    async def admit(
        self,
        *,
        token: str,
        submission: UploadSubmission,
        request_origin: str,
    ) -> AdmissionResult:
        """Run the full admission sequence and return the public embed data."""

        attempt = _AdmissionAttempt()
        try:
            opened = await self._upload_intents.open(token=token, declared=submission.declared)
            attempt.advance(AdmissionStatus.VALIDATED)
            attempt.advance(AdmissionStatus.INTENT_OPEN)

            blob_id = await self._blob_store.write(
                upload_handle=opened.upload_handle,
                body=submission.body,
                content_type=submission.declared.content_type,
            )
            attempt.advance(AdmissionStatus.BYTES_TRANSFERRED)

            finalized = await self._upload_intents.close(
                token=token,
                intent_id=opened.intent_id,
                blob_id=blob_id,
            )
            attempt.advance(AdmissionStatus.FINALIZED)
        except Exception as error:
            logger.info(
                "upload_admission_rejected status=%s error_type=%s",
                attempt.status.value,
                type(error).__name__,
            )
            attempt.advance(AdmissionStatus.REJECTED)
            raise

        image_url = f"{request_origin.rstrip('/')}{public_image_path(finalized.image_id)}"
        agent_name = submission.declared.agent_name.strip()
        logger.info(
            "upload_admission_finalized image_id=%s agent_name=%s",
            finalized.image_id,
            agent_name,
        )
        return AdmissionResult(
            image_id=finalized.image_id,
            image_url=image_url,
            markdown=build_markdown_image(
                alt_text=finalized.markdown_alt or submission.declared.original_file_name,
                url=image_url,
            ),
            agent_name=agent_name,
        )
