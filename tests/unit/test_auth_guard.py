from __future__ import annotations

import pytest

from agent_images.infrastructure.http.auth_guard import (
    InvalidAuthTokenError,
    MissingAuthTokenError,
    SessionAuthGuard,
    extract_bearer_token,
)
from agent_images.infrastructure.identity.signed_session import SignedSessionIdentityProvider


def test_extract_bearer_token_accepts_case_insensitive_scheme() -> None:
    assert extract_bearer_token("Bearer ghimg_abc") == "ghimg_abc"
    assert extract_bearer_token("  bearer ghimg_abc  ") == "ghimg_abc"


@pytest.mark.parametrize("header", [None, "", "   "])
def test_extract_bearer_token_requires_header(header: str | None) -> None:
    with pytest.raises(MissingAuthTokenError):
        extract_bearer_token(header)


@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer a b", "ghimg_abc"])
def test_extract_bearer_token_rejects_malformed_headers(header: str) -> None:
    with pytest.raises(InvalidAuthTokenError):
        extract_bearer_token(header)


def test_session_guard_resolves_signed_session() -> None:
    provider = SignedSessionIdentityProvider(signing_secret="secret")
    guard = SessionAuthGuard(identity_provider=provider)

    user_id = guard.require_user_id(session_token=provider.issue_session_token("user-7"))

    assert user_id == "user-7"


def test_session_guard_distinguishes_missing_and_invalid_sessions() -> None:
    guard = SessionAuthGuard(
        identity_provider=SignedSessionIdentityProvider(signing_secret="secret")
    )

    with pytest.raises(MissingAuthTokenError):
        guard.require_user_id(session_token=None)
    with pytest.raises(InvalidAuthTokenError):
        guard.require_user_id(session_token="user-7.deadbeef")
