import io
import json

import pytest
from fastapi import HTTPException, UploadFile
from fastapi.testclient import TestClient

from app.api.v1.work_proposals import _read
from app.core.config import get_settings
from app.core.security import issue_token
from app.db.session import build_session_factory, get_db
from app.main import app
from app.models.audit_log import AuditLogRecord
from app.models.enums import UserRole
from app.policies.rbac import CurrentUser
from app.services.object_store import get_object_store
from app.tests.factories import ENGINEER, proposal_payload


def _auth(user_id, role):
    token = issue_token(CurrentUser(id=user_id, role=UserRole(role), display_name=user_id.title()))
    return {"Authorization": f"Bearer {token}"}


DEPT = _auth("dept-1", "DEPARTMENT_USER")
ENG = _auth(ENGINEER, "ENGINEER")
OTHER_ENG = _auth("eng-2", "ENGINEER")
TECH = _auth("tech-1", "TECHNICAL_APPROVER")
ADMIN_APPROVER = _auth("admin-approver-1", "ADMINISTRATIVE_APPROVER")
WO = _auth("wo-1", "WORK_ORDER_MANAGER")
ADMIN = _auth("admin-1", "ADMIN")
VIEWER = _auth("viewer-1", "VIEWER")


@pytest.fixture
def client(engine, object_store):
    TestingSession = build_session_factory(engine)

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_object_store] = lambda: object_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def proposal_id(client):
    r = client.post("/api/v1/work-proposals", json=proposal_payload(), headers=DEPT)
    assert r.status_code == 201, r.text
    pid = r.json()["id"]

    r = client.post(
        f"/api/v1/work-proposals/{pid}/technical-approval",
        data={"action": "approve", "approvalNumber": "TA-1"},
        headers=TECH,
    )
    assert r.status_code == 200, r.text
    r = client.post(
        f"/api/v1/work-proposals/{pid}/administrative-approval",
        data={"action": "approve", "approvalNumber": "AA-1", "approvedAmount": "1400000", "govtDistrictAS": "District"},
        headers=ADMIN_APPROVER,
    )
    assert r.status_code == 200, r.text
    r = client.post(
        f"/api/v1/work-proposals/{pid}/work-order",
        data={
            "workOrderNumber": "WO-API-1",
            "dateOfWorkOrder": "2026-09-01T00:00:00Z",
            "contractorOrGramPanchayat": "Shree Infra",
        },
        headers=WO,
    )
    assert r.status_code == 201, r.text
    return pid


def _append(client, pid, headers=ENG, desc="Base course laid", files=None, installments=None):
    data = {
        "desc": desc,
        "expenditureAmount": "250000",
        "installments": json.dumps(installments or [{"installmentNo": 1, "amount": "250000", "date": "2026-09-10"}]),
    }
    return client.post(f"/api/v1/work-proposals/{pid}/progress", data=data, files=files, headers=headers)


def test_health(client):
    r = client.get("/api/v1/health", headers={"X-Request-Id": "rid-1"})

    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers["X-Request-Id"] == "rid-1"


def test_requires_token(client, proposal_id):
    r = client.get(f"/api/v1/work-proposals/{proposal_id}")

    assert r.status_code in (401, 403)


def test_bad_token(client, proposal_id):
    r = client.get(f"/api/v1/work-proposals/{proposal_id}", headers={"Authorization": "Bearer nope"})

    assert r.status_code == 401


def test_role_gate(client, proposal_id):
    r = client.post("/api/v1/work-proposals", json=proposal_payload(), headers=VIEWER)

    assert r.status_code == 403


def test_append_with_files_and_view(client, proposal_id, object_store):
    files = [
        ("document", ("mb.pdf", b"%PDF", "application/pdf")),
        ("images", ("a.jpg", b"aaaa", "image/jpeg")),
        ("images", ("b.jpg", b"bbbb", "image/jpeg")),
    ]
    r = _append(client, proposal_id, files=files)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["lastUpdatedBy"] == ENGINEER
    assert body["progressDocuments"]["mimeType"] == "application/pdf"
    assert len(body["progressImages"]) == 2
    assert len(object_store.objects) == 3

    r = client.get(f"/api/v1/work-proposals/{proposal_id}?entry=1", headers=VIEWER)
    assert r.status_code == 200
    detail = r.json()
    assert detail["selectedEntry"] == "1"
    assert detail["totalEntries"] == 1
    assert detail["proposal"]["workProgress"][0]["desc"] == "Base course laid"
    assert [i["caption"] for i in detail["images"]] == ["Work Progress image 2-1", "Work Progress image 2-2"]


def test_out_of_range_selector_falls_back_to_all(client, proposal_id):
    _append(client, proposal_id, desc="one")
    _append(client, proposal_id, desc="two")

    r = client.get(f"/api/v1/work-proposals/{proposal_id}?entry=7", headers=VIEWER)

    assert r.status_code == 200
    assert r.json()["selectedEntry"] == "all"
    assert [e["desc"] for e in r.json()["proposal"]["workProgress"]] == ["one", "two"]


def test_append_by_non_appointed_engineer(client, proposal_id, object_store):
    r = _append(client, proposal_id, headers=OTHER_ENG, files=[("images", ("a.jpg", b"a", "image/jpeg"))])

    assert r.status_code == 403
    assert r.json()["detail"]["kind"] == "forbidden"
    assert object_store.objects == {}


def test_admin_is_not_the_appointed_engineer(client, proposal_id):
    r = _append(client, proposal_id, headers=ADMIN)

    assert r.status_code == 403


def test_malformed_installments_json(client, proposal_id):
    r = client.post(
        f"/api/v1/work-proposals/{proposal_id}/progress",
        data={"desc": "x", "installments": "[{oops"},
        headers=ENG,
    )

    assert r.status_code == 422
    assert r.json()["detail"]["fields"] == ["installments"]


def test_negative_amount_rejected(client, proposal_id):
    r = client.post(
        f"/api/v1/work-proposals/{proposal_id}/progress",
        data={"desc": "x", "expenditureAmount": "-5"},
        headers=ENG,
    )

    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "validation_error"


def test_delete_entry_and_list(client, proposal_id):
    a = _append(client, proposal_id, desc="a").json()
    b = _append(client, proposal_id, desc="b").json()

    r = client.delete(f"/api/v1/work-proposals/{proposal_id}/progress/{a['id']}", headers=ENG)
    assert r.status_code == 204

    r = client.get(f"/api/v1/work-proposals/{proposal_id}/progress", headers=VIEWER)
    entries = r.json()["entries"]
    assert [e["id"] for e in entries[1:]] == [b["id"]]
    assert entries[0]["role"] == "anchor"

    r = client.delete(f"/api/v1/work-proposals/{proposal_id}/progress/{a['id']}", headers=ENG)
    assert r.status_code == 404


def test_status_update(client, proposal_id):
    r = client.patch(
        f"/api/v1/work-proposals/{proposal_id}/status", json={"currentStatus": "Work In Progress"}, headers=ENG,
    )
    assert r.status_code == 200
    assert r.json()["currentStatus"] == "Work In Progress"

    r = client.patch(
        f"/api/v1/work-proposals/{proposal_id}/status", json={"currentStatus": "Finished"}, headers=ENG,
    )
    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "invalid_argument"


def test_mutations_are_audited(client, proposal_id, engine):
    _append(client, proposal_id)

    session = build_session_factory(engine)()
    try:
        actions = [row.action for row in session.query(AuditLogRecord).order_by(AuditLogRecord.created_at)]
    finally:
        session.close()

    assert "PROPOSAL_CREATED" in actions
    assert "WORK_ORDER_CREATED" in actions
    assert "PROGRESS_APPENDED" in actions


def test_unknown_proposal(client):
    r = client.get("/api/v1/work-proposals/not-a-uuid", headers=VIEWER)
    assert r.status_code == 404

    r = client.get("/api/v1/work-proposals/00000000-0000-0000-0000-000000000000/images", headers=VIEWER)
    assert r.status_code == 404


def test_audit_log_is_admin_only(client, proposal_id):
    _append(client, proposal_id)

    r = client.get(f"/api/v1/work-proposals/{proposal_id}/audit", headers=ENG)
    assert r.status_code == 403

    r = client.get(f"/api/v1/work-proposals/{proposal_id}/audit", headers=ADMIN)
    assert r.status_code == 200
    records = r.json()["records"]
    assert records[-1]["action"] == "PROGRESS_APPENDED"
    assert records[-1]["actorUserId"] == ENGINEER
    assert len(records[-1]["payloadHash"]) == 64


def test_audit_log_unknown_id_uses_workflow_error_handler(client):
    r = client.get("/api/v1/work-proposals/not-a-uuid/audit", headers=ADMIN)

    assert r.status_code == 404
    assert r.json()["detail"] == {"kind": "not_found", "message": "Work proposal not found."}


def test_oversized_upload_rejected_before_reading_it_all(client, proposal_id, object_store, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 8)

    r = _append(client, proposal_id, files=[("document", ("mb.pdf", b"%" * 4096, "application/pdf"))])

    assert r.status_code == 422
    assert r.json()["detail"]["fields"] == ["document"]
    assert object_store.objects == {}


def test_too_many_images_rejected(client, proposal_id, object_store):
    limit = get_settings().max_images_per_upload
    files = [("images", (f"{i}.jpg", b"x", "image/jpeg")) for i in range(limit + 1)]

    r = _append(client, proposal_id, files=files)

    assert r.status_code == 422
    assert r.json()["detail"]["fields"] == ["images"]
    assert object_store.objects == {}


class _CountingStream(io.BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.bytes_read = 0

    def read(self, size=-1):
        chunk = super().read(size)
        self.bytes_read += len(chunk)
        return chunk


def test_read_stops_one_byte_past_the_limit():
    stream = _CountingStream(b"x" * 10_000)
    part = UploadFile(file=stream, filename="big.jpg")

    with pytest.raises(HTTPException) as exc:
        _read(part, "images", 100)

    assert exc.value.status_code == 422
    assert stream.bytes_read == 101


def test_status_reset_to_same_value_is_not_audited(client, proposal_id, engine):
    for _ in range(2):
        r = client.patch(
            f"/api/v1/work-proposals/{proposal_id}/status", json={"currentStatus": "Work In Progress"}, headers=ENG,
        )
        assert r.status_code == 200

    session = build_session_factory(engine)()
    try:
        actions = [row.action for row in session.query(AuditLogRecord)]
    finally:
        session.close()

    assert actions.count("STATUS_SET") == 1
