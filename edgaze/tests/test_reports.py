import uuid

from edgaze.models import Prompt, Report, Workflow


def _auth_headers(client, user_id: str) -> dict:
    resp = client.post("/auth/token", json={"user_id": user_id})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _submit(client, headers, target_type, target_id, reason="spam"):
    return client.post(
        "/api/reports/submit",
        headers=headers,
        json={"target_type": target_type, "target_id": target_id, "reason": reason},
    )


def test_submit_report(client, db):
    headers = _auth_headers(client, "reporter-1")
    target_id = str(uuid.uuid4())

    r = client.post(
        "/api/reports/submit",
        headers=headers,
        json={"target_type": "comment", "target_id": target_id, "reason": "abuse", "details": "rude"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["ok"] is True

    report = db.query(Report).filter(Report.id == body["report_id"]).one()
    assert report.reporter_id == "reporter-1"
    assert report.status == "open"
    assert report.details == "rude"


def test_duplicate_report_409(client):
    headers = _auth_headers(client, "reporter-dup")
    target_id = str(uuid.uuid4())

    assert _submit(client, headers, "user", target_id).status_code == 201

    r = _submit(client, headers, "user", target_id, reason="another reason")
    assert r.status_code == 409
    assert r.json()["detail"] == "You have already reported this item"


def test_invalid_payload_400(client):
    headers = _auth_headers(client, "reporter-bad")

    r = _submit(client, headers, "listing", str(uuid.uuid4()))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid target_type"

    r = _submit(client, headers, "prompt", "")
    assert r.status_code == 400

    r = _submit(client, headers, "prompt", str(uuid.uuid4()), reason="")
    assert r.status_code == 400


def test_requires_token(client):
    r = client.post(
        "/api/reports/submit",
        json={"target_type": "prompt", "target_id": "x", "reason": "spam"},
    )
    assert r.status_code == 401


def test_public_workflow_unlisted_after_three_reports(client, db):
    workflow_id = str(uuid.uuid4())
    db.add(Workflow(id=workflow_id, owner_id="creator", title="Flow", visibility="public", is_published=True))
    db.commit()

    for n in range(2):
        assert _submit(client, _auth_headers(client, f"reporter-{n}"), "workflow", workflow_id).status_code == 201

    db.expire_all()
    assert db.get(Workflow, workflow_id).visibility == "public"

    assert _submit(client, _auth_headers(client, "reporter-2"), "workflow", workflow_id).status_code == 201

    db.expire_all()
    assert db.get(Workflow, workflow_id).visibility == "unlisted"


def test_private_prompt_stays_private(client, db):
    prompt_id = str(uuid.uuid4())
    db.add(Prompt(id=prompt_id, owner_id="creator", title="Prompt", visibility="private"))
    db.commit()

    for n in range(3):
        assert _submit(client, _auth_headers(client, f"reporter-p{n}"), "prompt", prompt_id).status_code == 201

    db.expire_all()
    assert db.get(Prompt, prompt_id).visibility == "private"


def test_resolved_reports_do_not_count(client, db):
    prompt_id = str(uuid.uuid4())
    db.add(Prompt(id=prompt_id, owner_id="creator", title="Prompt", visibility="public"))
    for n in range(2):
        db.add(Report(reporter_id=f"old-{n}", target_type="prompt", target_id=prompt_id, reason="spam", status="dismissed"))
    db.commit()

    assert _submit(client, _auth_headers(client, "reporter-new"), "prompt", prompt_id).status_code == 201

    db.expire_all()
    assert db.get(Prompt, prompt_id).visibility == "public"
