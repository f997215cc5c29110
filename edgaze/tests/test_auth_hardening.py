import uuid

from edgaze.models import AdminRole


def _mint_token(client, user_id="dev-user") -> str:
    r = client.post("/auth/token", json={"user_id": user_id})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def _remaining_url() -> str:
    return f"/api/flow/run/remaining?workflowId={uuid.uuid4()}"


def test_missing_authorization_header_401(client):
    r = client.get(_remaining_url())
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing Authorization token"


def test_wrong_scheme_401(client):
    token = _mint_token(client)
    r = client.get(_remaining_url(), headers={"Authorization": f"Basic {token}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing Authorization token"


def test_garbled_bearer_token_401(client):
    r = client.get(_remaining_url(), headers={"Authorization": "Bearer not-a-real-token"})
    assert r.status_code == 401
    assert r.json()["detail"]


def test_token_signed_with_other_secret_401(client):
    import jwt

    forged = jwt.encode({"sub": "intruder"}, "another-secret-that-is-long-enough-0000", algorithm="HS256")
    r = client.get(_remaining_url(), headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


def test_valid_token_accepted(client):
    token = _mint_token(client)
    r = client.get(_remaining_url(), headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text


def test_token_endpoint_hidden_outside_dev(client, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    r = client.post("/auth/token", json={"user_id": "someone"})
    assert r.status_code == 404


def test_session_cookie_accepted_where_allowed(client, db):
    db.add(AdminRole(user_id="cookie-admin"))
    db.commit()

    token = _mint_token(client, "cookie-admin")
    r = client.get("/api/admin/token-limits", headers={"Cookie": f"sb-access-token={token}"})
    assert r.status_code == 200, r.text


def test_session_cookie_ignored_on_bearer_only_endpoint(client):
    token = _mint_token(client, "cookie-user")
    r = client.get(_remaining_url(), headers={"Cookie": f"sb-access-token={token}"})
    assert r.status_code == 401


def test_invalid_bearer_treated_as_anonymous_on_demo_check(client):
    r = client.post(
        "/api/demo-runs/check",
        json={"workflowId": str(uuid.uuid4()), "deviceFingerprint": "fp-0123456789"},
        headers={"Authorization": "Bearer garbage"},
    )
    assert r.status_code == 200
    assert r.json()["allowed"] is True
