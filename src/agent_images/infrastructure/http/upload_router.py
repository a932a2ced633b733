"""FastAPI router for the CLI upload endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile

from agent_images.application.dto.upload_models import UploadFormFields, UploadResponse
from agent_images.application.ports.blob_store_port import BlobStoreError
from agent_images.application.services.admission_service import (
    UploadAdmissionService,
    UploadSubmission,
)
from agent_images.application.services.token_registry_service import (
    InvalidCliTokenError,
    RevokedCliTokenError,
)
from agent_images.application.services.upload_intent_service import UploadIntentStateError
from agent_images.domain.upload_rules import (
    MAX_IMAGE_BYTES,
    DeclaredUpload,
    UploadValidationError,
    validate_declared_upload,
)
from agent_images.infrastructure.http.auth_guard import (
    InvalidAuthTokenError,
    MissingAuthTokenError,
    extract_bearer_token,
)

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"


def resolve_request_origin(request: Request, *, public_base_url: str | None = None) -> str:
    """Return the externally visible origin used to build public image URLs."""

    if public_base_url:
        return public_base_url.rstrip("/")

    forwarded_proto = request.headers.get("x-forwarded-proto")
    forwarded_host = request.headers.get("x-forwarded-host")
    scheme = _first_header_value(forwarded_proto) or request.url.scheme
    host = (
        _first_header_value(forwarded_host)
        or request.headers.get("host")
        or request.url.netloc
    )
    return f"{scheme}://{host}"


def _first_header_value(value: str | None) -> str | None:
    if value is None:
        return None
    first = value.split(",")[0].strip()
    return first or None


def _form_error_detail(error: ValidationError) -> str:
    for issue in error.errors():
        location = issue.get("loc", ())
        field = str(location[0]) if location else "form"
        if issue.get("type") == "missing":
            return f"Form field `{field}` is required."
        message = str(issue.get("msg", "invalid value"))
        return message.removeprefix("Value error, ")
    return "Invalid upload form."


def build_upload_router(
    *,
    admission_service: UploadAdmissionService,
    public_base_url: str | None = None,
) -> APIRouter:
    """Build router exposing the bearer-authenticated multipart upload endpoint."""

    router = APIRouter(tags=["upload"])

    @router.post("/api/cli/upload", response_model=UploadResponse)
    async def upload_image(request: Request) -> UploadResponse:
        try:
            token = extract_bearer_token(request.headers.get("authorization"))
        except MissingAuthTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except InvalidAuthTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc

        try:
            form = await request.form()
        except Exception as exc:  # noqa: BLE001
            raise HTTPException(status_code=400, detail="Expected multipart form data.") from exc

        try:
            submission = await _read_submission(form)
        finally:
            await form.close()

        try:
            result = await admission_service.admit(
                token=token,
                submission=submission,
                request_origin=resolve_request_origin(request, public_base_url=public_base_url),
            )
        except InvalidCliTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except RevokedCliTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except UploadValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UploadIntentStateError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except BlobStoreError as exc:
            logger.warning("upload_blob_store_failure error=%s", exc)
            raise HTTPException(status_code=502, detail="Blob store is unavailable.") from exc

        return UploadResponse(
            image_id=result.image_id,
            image_url=result.image_url,
            markdown=result.markdown,
            agent_name=result.agent_name,
        )

    return router


async def _read_submission(form: FormData) -> UploadSubmission:
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise HTTPException(status_code=400, detail="Form field `file` is required.")

    raw_fields: dict[str, object] = {}
    for name in ("agentName", "alt"):
        value = form.get(name)
        if value is not None:
            raw_fields[name] = value
    try:
        fields = UploadFormFields.model_validate(raw_fields)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_form_error_detail(exc)) from exc

    def _declare(byte_size: int) -> DeclaredUpload:
        return DeclaredUpload(
            agent_name=fields.agent_name,
            original_file_name=upload.filename or "",
            content_type=upload.content_type or DEFAULT_UPLOAD_CONTENT_TYPE,
            byte_size=byte_size,
            markdown_alt=fields.alt,
        )

    # Reject on the multipart part size before loading the payload.
    if upload.size is not None:
        try:
            validate_declared_upload(_declare(upload.size))
        except UploadValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    # Bounded read; anything past the limit fails validation during admission.
    body = await upload.read(MAX_IMAGE_BYTES + 1)
    return UploadSubmission(declared=_declare(len(body)), body=body)
