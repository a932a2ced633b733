"""Auth header parsing and session guard helpers for HTTP endpoints."""

from __future__ import annotations

from agent_images.application.ports.identity_provider_port import IdentityProviderPort

SESSION_TOKEN_HEADER = "x-session-token"


class MissingAuthTokenError(PermissionError):
    """Raised when a bearer or session token is required but not provided."""


class InvalidAuthTokenError(PermissionError):
    """Raised when a token header is malformed or does not resolve to a caller."""


def extract_bearer_token(authorization_header: str | None) -> str:
    """Extract opaque token from standard `Authorization: Bearer <token>` header."""

    if authorization_header is None or not authorization_header.strip():
        raise MissingAuthTokenError("Missing bearer token.")

    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise InvalidAuthTokenError("Invalid bearer token header.")

    return parts[1]


class SessionAuthGuard:
    """Resolve the signed-in human behind dashboard calls."""

    def __init__(self, *, identity_provider: IdentityProviderPort) -> None:
        self._identity_provider = identity_provider

    def require_user_id(self, *, session_token: str | None) -> str:
        """Return the session's user id or raise an auth error."""

        if session_token is None or not session_token.strip():
            raise MissingAuthTokenError("Missing session token.")

        user_id = self._identity_provider.resolve_user_id(session_token=session_token)
        if user_id is None:
            raise InvalidAuthTokenError("Invalid or expired session.")
        return user_id
