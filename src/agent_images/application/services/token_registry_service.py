"""Application service issuing, authenticating and revoking CLI bearer tokens."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4

from agent_images.application.ports.cli_token_repository_port import (
    CliTokenCreateInput,
    CliTokenRecord,
    CliTokenRepositoryPort,
)
from agent_images.application.ports.token_codec_port import TokenCodecPort

logger = logging.getLogger(__name__)


class InvalidCliTokenError(PermissionError):
    """Raised when a presented CLI token does not match any issued token."""

    def __init__(self) -> None:
        super().__init__("Invalid CLI token.")


class RevokedCliTokenError(PermissionError):
    """Raised when a presented CLI token was revoked by its owner."""

    def __init__(self) -> None:
        super().__init__("CLI token has been revoked.")


class CliTokenNotFoundError(LookupError):
    """Raised when a token targeted by a management action does not exist."""

    def __init__(self, *, token_id: UUID) -> None:
        super().__init__("Token was not found.")
        self.token_id = token_id


class CliTokenOwnershipError(PermissionError):
    """Raised when a user tries to manage a token owned by someone else."""

    def __init__(self) -> None:
        super().__init__("You can only revoke your own CLI tokens.")


@dataclass(frozen=True)
class IssuedCliToken:
    """Freshly issued token; the plaintext is returned exactly once."""

    token: str
    token_id: UUID
    label: str


@dataclass(frozen=True)
class CliTokenSummary:
    """Token listing entry without the stored hash."""

    token_id: UUID
    label: str
    token_preview: str
    created_at: datetime
    last_used_at: datetime | None
    revoked_at: datetime | None


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def default_token_label(now: datetime) -> str:
    """Return the label used when a user leaves the label blank."""

    return f"CLI token {now.date().isoformat()}"


class TokenRegistryService:
    """Own the CLI token lifecycle for one human account at a time."""

    def __init__(
        self,
        *,
        tokens: CliTokenRepositoryPort,
        token_codec: TokenCodecPort,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._tokens = tokens
        self._token_codec = token_codec
        self._now = now or _utc_now

    async def issue(self, *, user_id: str, label: str | None = None) -> IssuedCliToken:
        """Create and persist a new token, returning the plaintext once."""

        now = self._now()
        resolved_label = (label or "").strip() or default_token_label(now)
        token = self._token_codec.generate_token()
        record = await self._tokens.create_token(
            CliTokenCreateInput(
                token_id=uuid4(),
                user_id=user_id,
                label=resolved_label,
                token_hash=self._token_codec.hash_token(token),
                token_preview=self._token_codec.preview_token(token),
                created_at=now,
            )
        )
        logger.info(
            "cli_token_issued token_id=%s user_id=%s preview=%s",
            record.token_id,
            user_id,
            record.token_preview,
        )
        return IssuedCliToken(token=token, token_id=record.token_id, label=record.label)

    async def revoke(self, *, token_id: UUID, requesting_user_id: str) -> None:
        """Revoke one owned token; revoking twice is a no-op."""

        record = await self._tokens.get_by_id(token_id=token_id)
        if record is None:
            raise CliTokenNotFoundError(token_id=token_id)
        if record.user_id != requesting_user_id:
            raise CliTokenOwnershipError()

        changed = await self._tokens.mark_revoked(token_id=token_id, revoked_at=self._now())
        logger.info(
            "cli_token_revoked token_id=%s user_id=%s changed=%s",
            token_id,
            requesting_user_id,
            changed,
        )

    async def authenticate(self, *, token: str) -> CliTokenRecord:
        """Resolve an active token by hash and stamp its last usage."""

        record = await self._tokens.get_by_hash(token_hash=self._token_codec.hash_token(token))
        if record is None:
            raise InvalidCliTokenError()
        if record.is_revoked:
            logger.info("cli_token_rejected_revoked token_id=%s", record.token_id)
            raise RevokedCliTokenError()

        used_at = self._now()
        await self._tokens.touch_last_used(token_id=record.token_id, used_at=used_at)
        return CliTokenRecord(
            token_id=record.token_id,
            user_id=record.user_id,
            label=record.label,
            token_hash=record.token_hash,
            token_preview=record.token_preview,
            created_at=record.created_at,
            last_used_at=used_at,
            revoked_at=record.revoked_at,
        )

    async def list_for_user(self, *, user_id: str) -> list[CliTokenSummary]:
        """Return token summaries for one user, most recent first."""

        records = await self._tokens.list_for_user(user_id=user_id)
        return [
            CliTokenSummary(
                token_id=record.token_id,
                label=record.label,
                token_preview=record.token_preview,
                created_at=record.created_at,
                last_used_at=record.last_used_at,
                revoked_at=record.revoked_at,
            )
            for record in records
        ]
