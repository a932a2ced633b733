from __future__ import annotations

import hashlib
import re

from agent_images.infrastructure.security.token_service import CliTokenService


def test_generated_tokens_use_prefix_and_48_hex_chars() -> None:
    service = CliTokenService()

    token = service.generate_token()

    assert re.fullmatch(r"ghimg_[0-9a-f]{48}", token)
    assert service.generate_token() != token


def test_hash_is_sha256_hex_of_full_plaintext() -> None:
    service = CliTokenService()
    token = "ghimg_" + "ab" * 24

    assert service.hash_token(token) == hashlib.sha256(token.encode("utf-8")).hexdigest()
    assert service.hash_token(token) != token


def test_preview_keeps_first_ten_and_last_four_characters() -> None:
    token = "ghimg_0123456789abcdef0123456789abcdef0123456789abcdef"
    service = CliTokenService(token_factory=lambda: token)

    generated = service.generate_token()

    assert len(generated) == 54
    assert service.preview_token(generated) == "ghimg_0123...cdef"
