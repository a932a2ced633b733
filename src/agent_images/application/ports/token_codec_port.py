"""Port for CLI token generation and one-way hashing."""

from __future__ import annotations

from typing import Protocol


class TokenCodecPort(Protocol):
    """CLI token secret/hash/preview contract."""

    def generate_token(self) -> str:
        """Return one new high-entropy plaintext token."""

    def hash_token(self, token: str) -> str:
        """Return the deterministic one-way hash used for lookup."""

    def preview_token(self, token: str) -> str:
        """Return a non-secret display preview of the plaintext."""
