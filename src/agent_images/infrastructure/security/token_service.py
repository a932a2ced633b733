"""CLI bearer token generation, hashing and preview helpers."""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable

from agent_images.application.ports.token_codec_port import TokenCodecPort

CLI_TOKEN_PREFIX = "ghimg_"
CLI_TOKEN_RANDOM_BYTES = 24
_PREVIEW_HEAD_CHARS = 10
_PREVIEW_TAIL_CHARS = 4


def _generate_cli_token() -> str:
    return f"{CLI_TOKEN_PREFIX}{secrets.token_hex(CLI_TOKEN_RANDOM_BYTES)}"


class CliTokenService(TokenCodecPort):
    """Issue opaque CLI tokens and derive their stored hash and preview."""

    def __init__(self, *, token_factory: Callable[[], str] | None = None) -> None:
        self._token_factory = token_factory or _generate_cli_token

    def generate_token(self) -> str:
        """Return one new plaintext token."""

        return self._token_factory()

    def hash_token(self, token: str) -> str:
        """Return SHA-256 hex digest used for persisted token lookup."""

        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def preview_token(self, token: str) -> str:
        """Return a non-reversible preview: head and tail of the plaintext."""

        return f"{token[:_PREVIEW_HEAD_CHARS]}...{token[-_PREVIEW_TAIL_CHARS:]}"
