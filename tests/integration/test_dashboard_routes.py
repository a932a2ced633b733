from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from alembic.config import Config
from fastapi.testclient import TestClient

from alembic import command
from apps.api.main import create_app
from agent_images.infrastructure.identity.signed_session import SignedSessionIdentityProvider
from agent_images.infrastructure.storage.filesystem_blob_store import FilesystemBlobStore

SESSION_SECRET = "session-secret"
IDENTITY = SignedSessionIdentityProvider(signing_secret=SESSION_SECRET)


def _upgrade_head(tmp_path: Path, filename: str) -> str:
    db_path = tmp_path / filename
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", f"sqlite+pysqlite:///{db_path}")
    command.upgrade(alembic_config, "head")
    return f"sqlite+aiosqlite:///{db_path}"


def _build_client(tmp_path: Path) -> TestClient:
    app = create_app(
        database_url=_upgrade_head(tmp_path, "dashboard.db"),
        blob_store=FilesystemBlobStore(root=tmp_path / "blobs", signing_secret="blob-secret"),
        identity_provider=IDENTITY,
    )
    return TestClient(app)


def _session(user_id: str) -> dict[str, str]:
    return {"x-session-token": IDENTITY.issue_session_token(user_id)}


def test_healthz_reports_ok(tmp_path: Path) -> None:
    with _build_client(tmp_path) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_dashboard_routes_require_valid_session(tmp_path: Path) -> None:
    with _build_client(tmp_path) as client:
        missing = client.get("/api/cli-tokens")
        forged = client.get("/api/cli-tokens", headers={"x-session-token": "user-1.bad"})
        images = client.get("/api/images")

    assert (missing.status_code, missing.json()) == (401, {"detail": "Missing session token."})
    assert (forged.status_code, forged.json()) == (401, {"detail": "Invalid or expired session."})
    assert images.status_code == 401


def test_issue_and_list_tokens_never_exposes_hash(tmp_path: Path) -> None:
    with _build_client(tmp_path) as client:
        issued = client.post("/api/cli-tokens", headers=_session("user-1"), json={"label": "ci"})
        default_labeled = client.post("/api/cli-tokens", headers=_session("user-1"))
        client.post("/api/cli-tokens", headers=_session("user-2"), json={})
        listed = client.get("/api/cli-tokens", headers=_session("user-1"))

    issued_body = issued.json()
    assert issued.status_code == 200
    assert set(issued_body) == {"token", "tokenId", "label"}
    assert issued_body["token"].startswith("ghimg_")
    assert issued_body["label"] == "ci"
    assert default_labeled.json()["label"].startswith("CLI token ")

    items = listed.json()["items"]
    assert len(items) == 2
    first = next(item for item in items if item["tokenId"] == issued_body["tokenId"])
    token = issued_body["token"]
    assert first["tokenPreview"] == f"{token[:10]}...{token[-4:]}"
    assert first["revokedAt"] is None
    assert "tokenHash" not in first
    assert token not in listed.text


def test_revoke_enforces_ownership_and_is_idempotent(tmp_path: Path) -> None:
    with _build_client(tmp_path) as client:
        issued = client.post("/api/cli-tokens", headers=_session("user-1"), json={}).json()
        path = f"/api/cli-tokens/{issued['tokenId']}/revoke"

        foreign = client.post(path, headers=_session("user-2"))
        first = client.post(path, headers=_session("user-1"))
        first_listing = client.get("/api/cli-tokens", headers=_session("user-1")).json()
        second = client.post(path, headers=_session("user-1"))
        second_listing = client.get("/api/cli-tokens", headers=_session("user-1")).json()
        unknown = client.post(f"/api/cli-tokens/{uuid4()}/revoke", headers=_session("user-1"))

    assert foreign.status_code == 403
    assert (first.status_code, second.status_code) == (204, 204)
    first_revoked_at = first_listing["items"][0]["revokedAt"]
    assert first_revoked_at is not None
    assert second_listing["items"][0]["revokedAt"] == first_revoked_at
    assert (unknown.status_code, unknown.json()) == (404, {"detail": "Token was not found."})


def test_image_listing_is_scoped_newest_first_and_limited(tmp_path: Path) -> None:
    with _build_client(tmp_path) as client:
        issued = client.post("/api/cli-tokens", headers=_session("user-1"), json={}).json()
        uploaded_ids = []
        for name in ("first.png", "second.png", "third.png"):
            response = client.post(
                "/api/cli/upload",
                headers={"Authorization": f"Bearer {issued['token']}"},
                files={"file": (name, b"\x89PNG" + name.encode(), "image/png")},
                data={"agentName": "codex-agent"},
            )
            uploaded_ids.append(response.json()["imageId"])

        own = client.get("/api/images", headers=_session("user-1")).json()["items"]
        limited = client.get("/api/images?limit=2", headers=_session("user-1")).json()["items"]
        foreign = client.get("/api/images", headers=_session("user-2")).json()["items"]

    assert {item["imageId"] for item in own} == set(uploaded_ids)
    assert len(limited) == 2
    assert foreign == []
    third = next(item for item in own if item["originalFileName"] == "third.png")
    assert third["imagePath"] == f"/i/{third['imageId']}"
    assert third["markdown"] == f"![third]({third['imagePath']})"
