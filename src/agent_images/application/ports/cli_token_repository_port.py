"""Port for CLI bearer token persistence operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class CliTokenCreateInput:
    """Input payload for inserting one hashed CLI token record."""

    token_id: UUID
    user_id: str
    label: str
    token_hash: str
    token_preview: str
    created_at: datetime


@dataclass(frozen=True)
class CliTokenRecord:
    """Persisted CLI token model."""

    token_id: UUID
    user_id: str
    label: str
    token_hash: str
    token_preview: str
    created_at: datetime
    last_used_at: datetime | None
    revoked_at: datetime | None

    @property
    def is_revoked(self) -> bool:
        """Return whether the token was revoked by its owner."""

        return self.revoked_at is not None


class CliTokenRepositoryPort(Protocol):
    """CLI token persistence contract."""

    async def create_token(self, payload: CliTokenCreateInput) -> CliTokenRecord:
        """Persist a new token row; raise TokenHashCollisionError on duplicate hash."""

    async def get_by_id(self, *, token_id: UUID) -> CliTokenRecord | None:
        """Return token by id, including revoked tokens."""

    async def get_by_hash(self, *, token_hash: str) -> CliTokenRecord | None:
        """Return token by hash, including revoked tokens."""

    async def list_for_user(self, *, user_id: str) -> list[CliTokenRecord]:
        """Return all tokens owned by one user, most recent first."""

    async def mark_revoked(self, *, token_id: UUID, revoked_at: datetime) -> bool:
        """Stamp revocation time once; return False when already revoked."""

    async def touch_last_used(self, *, token_id: UUID, used_at: datetime) -> None:
        """Stamp last usage time for one token."""


class TokenHashCollisionError(ValueError):
    """Raised when a generated token hash already exists."""
