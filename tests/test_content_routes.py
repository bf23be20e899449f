"""
API tests for the content loader and content pack routes.
"""
import json

import pytest
from fastapi.testclient import TestClient

from contentpacks.core.auth_dependency import get_db
from contentpacks.core.content_dependency import get_content_pack_repository
from contentpacks.core.security import create_access_token
from contentpacks.db.models.user import User
from contentpacks.main import app
from contentpacks.repositories.sql_repository import SqlContentPackRepository
from contentpacks.services.idempotency_store import InMemoryIdempotencyStore, get_idempotency_store
from conftest import make_pack_document


@pytest.fixture
def client(session_factory):
    repository = SqlContentPackRepository(session_factory)
    store = InMemoryIdempotencyStore()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_content_pack_repository] = lambda: repository
    app.dependency_overrides[get_idempotency_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_user(session_factory, email: str, entitlement_level: str = "FREE", role: str = "user") -> User:
    db = session_factory()
    try:
        user = User(email=email, full_name="Test User", entitlement_level=entitlement_level, role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    finally:
        db.close()


def auth_headers(email: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': email})}"}


@pytest.fixture
def admin_headers(session_factory):
    create_user(session_factory, "admin@example.com", entitlement_level="PRO")
    return auth_headers("admin@example.com")


def upload(client, headers, document, path="/content/upload"):
    return client.post(
        path,
        headers=headers,
        files={"file": ("pack.json", json.dumps(document).encode("utf-8"), "application/json")},
    )


def test_upload_rejects_pack_without_questions(client, admin_headers):
    document = make_pack_document()
    document["content"]["questions"] = []

    response = upload(client, admin_headers, document)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "BAD_REQUEST"
    assert body["message"].startswith("Validation failed:")
    assert "content.questions" in body["message"]
    assert "timestamp" in body


def test_upload_activate_and_list(client, admin_headers):
    response = upload(client, admin_headers, make_pack_document())
    assert response.status_code == 200
    uploaded = response.json()
    assert uploaded["valid"] is True
    assert uploaded["name"] == "Behavioral Interview Basics"
    assert uploaded["performance"]["target_met"] is True

    response = client.post("/content/activate", headers=admin_headers, json={"packId": uploaded["id"]})
    assert response.status_code == 200
    assert response.json() == {"activeId": uploaded["id"]}

    response = client.get("/content/list", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["activeId"] == uploaded["id"]
    assert [pack["id"] for pack in body["packs"]] == [uploaded["id"]]
    assert body["packs"][0]["is_active"] is True


def test_activate_with_idempotency_key(client, admin_headers):
    first = upload(client, admin_headers, make_pack_document()).json()["id"]
    second = upload(client, admin_headers, make_pack_document()).json()["id"]
    headers = dict(admin_headers, **{"Idempotency-Key": "activate-once"})

    assert client.post("/content/activate", headers=headers, json={"packId": first}).json() == {"activeId": first}
    replay = client.post("/content/activate", headers=headers, json={"packId": second})

    assert replay.status_code == 200
    assert replay.json() == {"activeId": first}


def test_activate_requires_pack_id(client, admin_headers):
    response = client.post("/content/activate", headers=admin_headers, json={})

    assert response.status_code == 400
    assert response.json()["error"] == "BAD_REQUEST"


def test_activate_unknown_pack(client, admin_headers):
    response = client.post("/content/activate", headers=admin_headers, json={"packId": "missing"})

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_rollback_unknown_backup(client, admin_headers):
    response = client.post("/content/rollback", headers=admin_headers, json={"backupId": "backup_missing_1"})

    assert response.status_code == 404
    assert response.json()["message"] == "Backup not found"


def test_rollback_restores_previous_pack(client, admin_headers, session_factory):
    first = upload(client, admin_headers, make_pack_document()).json()["id"]
    second = upload(client, admin_headers, make_pack_document()).json()["id"]
    client.post("/content/activate", headers=admin_headers, json={"packId": first})
    client.post("/content/activate", headers=admin_headers, json={"packId": second})

    from contentpacks.db.models.content_pack import ContentPackBackup
    db = session_factory()
    try:
        backup_id = db.query(ContentPackBackup).filter(ContentPackBackup.pack_id == first).one().id
    finally:
        db.close()

    response = client.post("/content/rollback", headers=admin_headers, json={"backupId": backup_id})

    assert response.status_code == 200
    assert response.json() == {"activeId": first}


def test_upload_invalid_json(client, admin_headers):
    response = client.post(
        "/content/upload",
        headers=admin_headers,
        files={"file": ("pack.json", b"{broken", "application/json")},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid JSON file"


def test_upload_rejects_wrong_file_type(client, admin_headers):
    response = client.post(
        "/content/upload",
        headers=admin_headers,
        files={"file": ("pack.txt", b"{}", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid file type: text/plain")


def test_requires_authentication(client):
    response = client.get("/content/list")

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


def test_rejects_invalid_token(client):
    response = client.get("/content/list", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_free_user_is_forbidden(client, session_factory):
    create_user(session_factory, "free@example.com")

    response = client.get("/content/list", headers=auth_headers("free@example.com"))

    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"


def test_admin_role_allowed_without_pro(client, session_factory):
    create_user(session_factory, "editor@example.com", role="content_admin")

    response = client.get("/content/list", headers=auth_headers("editor@example.com"))

    assert response.status_code == 200
    assert response.json() == {"activeId": None, "packs": []}


def test_validate_unknown_pack(client, admin_headers):
    response = client.post("/content-packs/does-not-exist/validate", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_create_keeps_invalid_pack(client, admin_headers):
    document = make_pack_document()
    document["content"]["questions"][0]["tips"] = ["javascript:alert(1)"]

    response = upload(client, admin_headers, document, path="/content-packs")

    assert response.status_code == 201
    body = response.json()
    assert body["data"]["status"] == "invalid"
    assert body["validation"]["is_valid"] is False
    assert body["validation"]["errors"][0]["path"] == "content.questions[0].tips[0]"


def test_content_pack_lifecycle(client, admin_headers):
    created = upload(client, admin_headers, make_pack_document(), path="/content-packs").json()
    pack_id = created["data"]["id"]
    assert created["data"]["status"] == "valid"

    response = client.get("/content-packs", headers=admin_headers, params={"status": "valid"})
    assert response.status_code == 200
    listing = response.json()
    assert listing["pagination"] == {"limit": 20, "offset": 0, "total": 1, "has_more": False}
    assert listing["data"][0]["question_count"] == 4

    response = client.post(f"/content-packs/{pack_id}/validate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_valid"] is True

    response = client.post(f"/content-packs/{pack_id}/activate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "active"

    response = client.get("/content-packs/active", headers=admin_headers)
    assert response.json()["data"]["id"] == pack_id

    response = client.get(f"/content-packs/{pack_id}", headers=admin_headers)
    assert response.json()["data"]["is_active"] is True


def test_activate_invalid_pack_via_content_packs(client, admin_headers):
    document = make_pack_document()
    document["content"]["questions"] = []
    pack_id = upload(client, admin_headers, document, path="/content-packs").json()["data"]["id"]

    response = client.post(f"/content-packs/{pack_id}/activate", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_PACK"


def test_list_rejects_out_of_range_limit(client, admin_headers):
    response = client.get("/content-packs", headers=admin_headers, params={"limit": 500})

    assert response.status_code == 400


def test_active_pack_defaults_to_built_in_pack(client, admin_headers):
    response = client.get("/content-packs/active", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["is_fallback"] is True
    assert body["data"]["id"] == "fallback-content-pack"
    assert body["data"]["uploaded_by"] == "system"

    pack_id = upload(client, admin_headers, make_pack_document(), path="/content-packs").json()["data"]["id"]
    client.post(f"/content-packs/{pack_id}/activate", headers=admin_headers)

    body = client.get("/content-packs/active", headers=admin_headers).json()
    assert body["is_fallback"] is False
    assert body["data"]["id"] == pack_id


def test_health_reports_fallback_pack(client, admin_headers):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["fallback"] == {"is_active": True, "pack_id": "fallback-content-pack"}

    pack_id = upload(client, admin_headers, make_pack_document(), path="/content-packs").json()["data"]["id"]
    client.post(f"/content-packs/{pack_id}/activate", headers=admin_headers)

    assert client.get("/health").json()["fallback"] == {"is_active": False, "pack_id": pack_id}
