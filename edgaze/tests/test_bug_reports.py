import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from starlette.datastructures import UploadFile

from edgaze.core.errors import InvalidInput
from edgaze.main import app
from edgaze.models import BugReport, BugReportAttachment
from edgaze.services import bug_reports
from edgaze.services.rate_limit import RateLimiter
from edgaze.services.storage import IStorageBackend, StorageError, get_storage

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32

_BOUNDARY = "edgaze-test-boundary"


def _fields(**overrides):
    fields = {
        "category": "broken_flow",
        "feature_area": "workflow_builder",
        "device_type": "desktop",
        "browser": "firefox",
        "severity": "blocking",
        "summary": "Run button does nothing",
        "steps_to_reproduce": "Open a workflow and press Run twice",
        "expected_behavior": "The run starts",
        "actual_behavior": "Nothing happens",
        "current_url": "https://edgaze.ai/builder",
    }
    fields.update(overrides)
    return fields


def _multipart(fields, files=()):
    parts = []
    for name, value in fields.items():
        parts.append(
            f'--{_BOUNDARY}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'.encode()
        )
    for filename, content_type, data in files:
        head = (
            f'--{_BOUNDARY}\r\nContent-Disposition: form-data; name="files"; filename="{filename}"\r\n'
            f"Content-Type: {content_type}\r\n\r\n"
        )
        parts.append(head.encode() + data + b"\r\n")
    parts.append(f"--{_BOUNDARY}--\r\n".encode())
    return b"".join(parts)


def _post(client, fields, files=(), headers=None):
    all_headers = {"Content-Type": f"multipart/form-data; boundary={_BOUNDARY}"}
    all_headers.update(headers or {})
    return client.post("/api/bugs", content=_multipart(fields, files), headers=all_headers)


class _FailingStorage(IStorageBackend):
    def upload(self, bucket, path, data, content_type=None):
        raise StorageError("bucket unavailable")

    def exists(self, bucket, path):
        return False


class _MemoryStorage(IStorageBackend):
    def __init__(self):
        self.objects = {}

    def upload(self, bucket, path, data, content_type=None):
        self.objects[(bucket, path)] = data

    def exists(self, bucket, path):
        return (bucket, path) in self.objects


def test_anonymous_report_without_attachments(client, db):
    r = _post(client, _fields())
    assert r.status_code == 200, r.text
    body = r.json()
    assert set(body) == {"id"}

    report = db.query(BugReport).filter(BugReport.id == body["id"]).one()
    assert report.reporter_id is None
    assert report.tags == ["blocking", "creator"]
    assert report.summary == "Run button does nothing"
    assert report.allow_follow_up is False


def test_signed_in_reporter_is_recorded(client, db):
    token = client.post("/auth/token", json={"user_id": "bug-reporter"}).json()["access_token"]
    r = _post(client, _fields(feature_area="purchases", severity="minor"), headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text

    report = db.query(BugReport).filter(BugReport.id == r.json()["id"]).one()
    assert report.reporter_id == "bug-reporter"
    assert report.tags == ["buyer"]


def test_attachment_is_stored_and_recorded(client, db):
    r = _post(client, _fields(), files=[("screen shot.png", "image/png", PNG)])
    assert r.status_code == 200, r.text
    report_id = r.json()["id"]

    attachment = db.query(BugReportAttachment).filter(BugReportAttachment.bug_report_id == report_id).one()
    assert attachment.storage_bucket == bug_reports.BUCKET
    assert attachment.storage_path.startswith("bug_reports/")
    assert f"/{report_id}/" in attachment.storage_path
    assert attachment.storage_path.endswith(".png-screen_shot.png")
    assert attachment.file_size_bytes == len(PNG)
    assert attachment.mime_type == "image/png"
    assert client.app.state.storage.exists(bug_reports.BUCKET, attachment.storage_path)


def test_mismatched_image_rejected_before_any_write(client, db):
    r = _post(client, _fields(), files=[("fake.png", "image/png", JPEG)])
    assert r.status_code == 400
    assert r.json()["detail"] == "Attachment content does not match declared image type"
    assert db.query(BugReport).count() == 0


def test_attachment_rules(client, db):
    r = _post(client, _fields(), files=[("notes.txt", "text/plain", b"hello")])
    assert r.status_code == 400
    assert r.json()["detail"] == "Attachments must be images/videos"

    r = _post(client, _fields(), files=[(f"{n}.png", "image/png", PNG) for n in range(4)])
    assert r.status_code == 400
    assert r.json()["detail"] == "Max 3 attachments"

    assert db.query(BugReport).count() == 0


def test_storage_failure_keeps_report_with_warning(client, db):
    app.dependency_overrides[get_storage] = lambda: _FailingStorage()

    r = _post(client, _fields(), files=[("clip.mp4", "video/mp4", b"\x00\x00\x00\x18ftypmp42")])
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["warning"] == "Bug saved, but attachment upload failed: bucket unavailable"

    assert db.query(BugReport).filter(BugReport.id == body["id"]).count() == 1
    assert db.query(BugReportAttachment).count() == 0


@pytest.mark.parametrize("overrides,detail", [
    ({"category": "other"}, "Invalid category"),
    ({"feature_area": ""}, "Invalid feature_area"),
    ({"device_type": "tablet"}, "Invalid device_type"),
    ({"browser": "opera"}, "Invalid browser"),
    ({"severity": "critical"}, "Invalid severity"),
    ({"summary": "  hi  "}, "Summary too short"),
    ({"steps_to_reproduce": "click"}, "Steps to reproduce too short"),
    ({"expected_behavior": " "}, "Expected behavior required"),
    ({"actual_behavior": "x"}, "Actual behavior required"),
    ({"allow_follow_up": "true", "reporter_contact": "me"}, "Contact required for follow-up"),
])
def test_field_validation(client, db, overrides, detail):
    r = _post(client, _fields(**overrides))
    assert r.status_code == 400
    assert r.json()["detail"] == detail
    assert db.query(BugReport).count() == 0


def test_non_multipart_rejected(client):
    r = client.post("/api/bugs", json=_fields())
    assert r.status_code == 400


def test_rate_limited_per_ip(client):
    client.app.state.bug_report_limiter = RateLimiter(FakeAsyncRedis(server=FakeServer()), max_requests=1)
    headers = {"x-forwarded-for": "192.0.2.10"}

    assert _post(client, _fields(), headers=headers).status_code == 200

    r = _post(client, _fields(), headers=headers)
    assert r.status_code == 429
    assert r.json()["detail"] == "Too many requests. Try again later."

    assert _post(client, _fields(), headers={"x-forwarded-for": "192.0.2.11"}).status_code == 200


def test_repeat_reporter_tag(db):
    storage = _MemoryStorage()
    form = _fields(severity="minor", feature_area="other", allow_follow_up="true", reporter_contact="qa@example.com")

    outcomes = [
        bug_reports.create_bug_report(db, storage, bug_reports.parse_bug_report(form, []))
        for _ in range(3)
    ]

    tags = [db.get(BugReport, o.id).tags for o in outcomes]
    assert tags == [[], [], ["repeat_reporter"]]


def test_contact_dropped_without_follow_up():
    report_input = bug_reports.parse_bug_report(_fields(reporter_contact="qa@example.com"), [])
    assert report_input.reporter_contact == ""
    assert report_input.allow_follow_up is False


def test_text_is_normalised_and_truncated():
    report_input = bug_reports.parse_bug_report(
        _fields(summary="  " + "s" * 300 + "  ", steps_to_reproduce="line one\r\nline two"),
        [],
    )
    assert len(report_input.summary) == 180
    assert report_input.steps_to_reproduce == "line one\nline two"


def test_oversized_attachment_rejected():
    big = bug_reports.Attachment("big.mp4", "video/mp4", b"\x00" * (bug_reports.MAX_FILE_BYTES + 1))
    with pytest.raises(InvalidInput) as exc:
        bug_reports.validate_attachments([big])
    assert exc.value.message == "Max 20MB per file"


def test_safe_filename():
    assert bug_reports.safe_filename("../my report (1).png") == ".._my_report__1_.png"


def _track_reads(monkeypatch):
    reads = []
    original = UploadFile.read

    async def read(self, size=-1):
        reads.append(self.filename)
        return await original(self, size)

    monkeypatch.setattr(UploadFile, "read", read)
    return reads


def test_surplus_attachments_rejected_before_reading(client, db, monkeypatch):
    reads = _track_reads(monkeypatch)
    storage = _MemoryStorage()
    app.dependency_overrides[get_storage] = lambda: storage

    r = _post(client, _fields(), files=[(f"{n}.png", "image/png", PNG) for n in range(4)])
    assert r.status_code == 400
    assert r.json()["detail"] == "Max 3 attachments"
    assert reads == []
    assert storage.objects == {}
    assert db.query(BugReport).count() == 0

    r = _post(client, _fields(), files=[("ok.png", "image/png", PNG)])
    assert r.status_code == 200, r.text
    assert reads == ["ok.png"]
    assert len(storage.objects) == 1


def test_oversized_upload_rejected_before_reading(client, db, monkeypatch):
    reads = _track_reads(monkeypatch)
    monkeypatch.setattr(bug_reports, "MAX_FILE_BYTES", len(PNG) - 1)

    r = _post(client, _fields(), files=[("big.png", "image/png", PNG)])
    assert r.status_code == 400
    assert r.json()["detail"] == "Max 20MB per file"
    assert reads == []
    assert db.query(BugReport).count() == 0


def test_field_errors_reported_before_attachment_errors(client):
    r = _post(client, _fields(category="other"), files=[(f"{n}.png", "image/png", PNG) for n in range(4)])
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid category"


def test_upload_limits_from_headers():
    bug_reports.check_upload_limits([("image/png", 10), ("video/mp4", bug_reports.MAX_FILE_BYTES)])

    with pytest.raises(InvalidInput) as exc:
        bug_reports.check_upload_limits([("application/pdf", 10)])
    assert exc.value.message == "Attachments must be images/videos"

    with pytest.raises(InvalidInput) as exc:
        bug_reports.check_upload_limits([("image/png", 1)] * 4)
    assert exc.value.message == "Max 3 attachments"
