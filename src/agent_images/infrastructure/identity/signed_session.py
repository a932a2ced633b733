"""HMAC-signed session tokens standing in for the external identity provider."""

from __future__ import annotations

import hashlib
import hmac

from agent_images.application.ports.identity_provider_port import IdentityProviderPort


class SignedSessionIdentityProvider(IdentityProviderPort):
    """Resolve `<user id>.<hmac-sha256 hex>` session tokens to user ids."""

    def __init__(self, *, signing_secret: str) -> None:
        self._secret = signing_secret.encode("utf-8")

    def issue_session_token(self, user_id: str) -> str:
        """Mint a session token for one user id."""

        if not user_id or "." in user_id:
            raise ValueError("user id must be non-empty and must not contain '.'")
        return f"{user_id}.{self._sign(user_id)}"

    def resolve_user_id(self, *, session_token: str | None) -> str | None:
        """Return the signed user id, or None for missing or tampered tokens."""

        if session_token is None:
            return None
        user_id, separator, signature = session_token.strip().rpartition(".")
        if not separator or not user_id or not signature:
            return None
        if not hmac.compare_digest(self._sign(user_id), signature):
            return None
        return user_id

    def _sign(self, user_id: str) -> str:
        return hmac.new(self._secret, user_id.encode("utf-8"), hashlib.sha256).hexdigest()
