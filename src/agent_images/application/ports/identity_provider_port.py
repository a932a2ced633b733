"""Port for resolving human users from identity provider sessions."""

from __future__ import annotations

from typing import Protocol


class IdentityProviderPort(Protocol):
    """Identity provider contract for dashboard session calls."""

    def resolve_user_id(self, *, session_token: str | None) -> str | None:
        """Return the stable user identifier for a valid session, else None."""
