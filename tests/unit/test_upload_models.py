from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from agent_images.application.dto.upload_models import (
    CliTokenIssueResponse,
    UploadFormFields,
    UploadResponse,
)


def test_upload_form_fields_accept_camel_case_and_trim_agent_name() -> None:
    fields = UploadFormFields.model_validate({"agentName": "  codex-agent ", "alt": "Login"})

    assert fields.agent_name == "codex-agent"
    assert fields.alt == "Login"


def test_blank_alt_becomes_none() -> None:
    fields = UploadFormFields.model_validate({"agentName": "codex-agent", "alt": "   "})

    assert fields.alt is None


@pytest.mark.parametrize("payload", [{}, {"agentName": "   "}, {"agentName": "a", "extra": "x"}])
def test_invalid_upload_form_fields_are_rejected(payload: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        UploadFormFields.model_validate(payload)


def test_responses_serialize_with_camel_case_names() -> None:
    upload = UploadResponse(
        image_id="img-1",
        image_url="https://images.example/i/img-1",
        markdown="![shot](https://images.example/i/img-1)",
        agent_name="codex-agent",
    )
    token_id = uuid4()
    issued = CliTokenIssueResponse(token="ghimg_x", token_id=token_id, label="laptop")

    assert upload.model_dump(by_alias=True) == {
        "imageId": "img-1",
        "imageUrl": "https://images.example/i/img-1",
        "markdown": "![shot](https://images.example/i/img-1)",
        "agentName": "codex-agent",
    }
    assert issued.model_dump(by_alias=True, mode="json")["tokenId"] == str(token_id)
