from __future__ import annotations

import pytest

from agent_images.domain.upload_rules import (
    MAX_IMAGE_BYTES,
    DeclaredUpload,
    UploadValidationError,
    build_markdown_image,
    default_alt_from_file_name,
    escape_markdown_text,
    public_image_path,
    resolve_markdown_alt,
    sanitize_file_name,
    validate_declared_upload,
)


def _declared(**overrides: object) -> DeclaredUpload:
    values: dict[str, object] = {
        "agent_name": "codex-agent",
        "original_file_name": "screenshot.png",
        "content_type": "image/png",
        "byte_size": 2048,
        "markdown_alt": None,
    }
    values.update(overrides)
    return DeclaredUpload(**values)  # type: ignore[arg-type]


def test_validate_trims_names_and_derives_alt_from_file_name() -> None:
    validated = validate_declared_upload(
        _declared(agent_name="  codex-agent ", original_file_name=" diagram.final.png ")
    )

    assert validated.agent_name == "codex-agent"
    assert validated.original_file_name == "diagram.final.png"
    assert validated.markdown_alt == "diagram.final"


def test_validate_keeps_trimmed_caller_alt() -> None:
    validated = validate_declared_upload(_declared(markdown_alt="  Login page  "))

    assert validated.markdown_alt == "Login page"


@pytest.mark.parametrize("content_type", ["application/pdf", "text/plain", "IMAGE/PNG", ""])
def test_validate_rejects_non_image_content_types(content_type: str) -> None:
    with pytest.raises(UploadValidationError, match="Only image uploads are supported."):
        validate_declared_upload(_declared(content_type=content_type))


@pytest.mark.parametrize("byte_size", [0, -1, MAX_IMAGE_BYTES + 1])
def test_validate_rejects_out_of_range_sizes(byte_size: int) -> None:
    with pytest.raises(UploadValidationError, match="Image size must be between"):
        validate_declared_upload(_declared(byte_size=byte_size))


def test_validate_accepts_boundary_sizes() -> None:
    assert validate_declared_upload(_declared(byte_size=1)).byte_size == 1
    assert validate_declared_upload(_declared(byte_size=MAX_IMAGE_BYTES)).byte_size == (
        MAX_IMAGE_BYTES
    )


def test_validate_rejects_blank_agent_name() -> None:
    with pytest.raises(UploadValidationError, match="Agent name is required."):
        validate_declared_upload(_declared(agent_name="   "))


def test_validate_rejects_blank_file_name() -> None:
    with pytest.raises(UploadValidationError, match="Original file name is required."):
        validate_declared_upload(_declared(original_file_name=" "))


def test_default_alt_falls_back_when_name_is_only_an_extension() -> None:
    assert default_alt_from_file_name(".png") == "Uploaded image"
    assert default_alt_from_file_name("README") == "README"


def test_blank_caller_alt_uses_file_name_default() -> None:
    assert resolve_markdown_alt(markdown_alt="   ", original_file_name="shot.jpeg") == "shot"


def test_escape_markdown_text_escapes_brackets_and_backslashes() -> None:
    assert escape_markdown_text("[agent] notes\\done") == "\\[agent\\] notes\\\\done"


def test_build_markdown_image_escapes_alt_text() -> None:
    markdown = build_markdown_image(alt_text="a]b", url="https://img.example/i/abc")

    assert markdown == "![a\\]b](https://img.example/i/abc)"


def test_public_image_path_prefixes_identifier() -> None:
    assert public_image_path("abc-123") == "/i/abc-123"


def test_sanitize_file_name_replaces_unsafe_characters() -> None:
    assert sanitize_file_name('my "shot" (1).png') == "my__shot___1_.png"
    assert sanitize_file_name("ok-name_1.png") == "ok-name_1.png"
