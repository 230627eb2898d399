import io

import pytest

from campussync.extensions import db
from campussync.models import AuditLog, Certificate, Notification, Organization, VerifiableCredential
from campussync.services import credentials, ocr
from campussync.services.credentials import IssuanceError


@pytest.fixture
def student_id(make_user):
    return make_user("sam@northfield.edu", full_name="Sam Student")


@pytest.fixture
def student(student_id, login):
    return login("sam@northfield.edu")


@pytest.fixture
def faculty(make_user, login):
    make_user("fay@northfield.edu", role="faculty")
    return login("fay@northfield.edu")


def _create(client, **fields):
    body = {"title": "Machine Learning", "institution": "Coursera", "date_issued": "2024-05-01"}
    body.update(fields)
    resp = client.post("/api/certificates/create", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _token(app, owner_id, confidence, method):
    with app.test_request_context():
        auto = method != "manual_review" and confidence >= 0.9
        return ocr.sign_extraction(owner_id, "file:///tmp/cert.png", {
            "confidence": confidence, "verification_method": method, "auto_approved": auto,
        })


def test_create_defaults_and_ignores_client_trust_fields(app, student):
    body = _create(student, title="", auto_approved=True, verification_method="qr_verified",
                   confidence_score=1.0)
    cert = body["data"]
    assert cert["title"] == "Untitled Certificate"
    assert cert["verification_status"] == "pending"
    assert cert["auto_approved"] is False
    assert cert["verification_method"] == "manual_review"
    assert cert["confidence_score"] is None
    assert body["credential"] is None


def test_create_rejects_bad_date(student):
    resp = student.post("/api/certificates/create", json={"title": "X", "date_issued": "05/01/2024"})
    assert resp.status_code == 400


def test_create_with_auto_approved_token_issues(app, student, student_id):
    token = _token(app, student_id, 0.97, "qr_verified")
    body = _create(student, extraction_token=token)
    cert = body["data"]
    assert cert["verification_status"] == "verified"
    assert cert["auto_approved"] is True
    assert cert["file_url"] == "file:///tmp/cert.png"
    assert body["credential"]["credentialSubject"]["certificateId"] == str(cert["id"])


def test_token_of_another_user_is_rejected(app, student, make_user):
    other = make_user("ola@northfield.edu")
    resp = student.post("/api/certificates/create",
                        json={"title": "X", "extraction_token": _token(app, other, 0.99, "qr_verified")})
    assert resp.status_code == 400


def test_pending_queue(app, student, student_id, faculty):
    manual = _create(student, title="Manual one")["data"]["id"]
    _create(student, title="Auto one", extraction_token=_token(app, student_id, 0.95, "logo_match"))
    low = _create(student, title="Low confidence",
                  extraction_token=_token(app, student_id, 0.6, "template_match"))["data"]["id"]

    data = faculty.get("/api/certificates/pending").get_json()["data"]
    assert [c["id"] for c in data] == [low, manual]
    # students are not reviewers
    assert student.get("/api/certificates/pending").status_code == 403
    mine = student.get("/api/certificates/mine").get_json()["data"]
    assert len(mine) == 3


def test_approve_issues_credential(app, student, student_id, faculty):
    cid = _create(student)["data"]["id"]
    resp = faculty.post("/api/certificates/approve", json={"certificateId": cid, "status": "approved"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["data"]["verification_status"] == "verified"
    vc = body["credential"]
    assert vc["type"] == ["VerifiableCredential", "AchievementCredential"]
    assert vc["id"].startswith("urn:uuid:")
    assert vc["issuer"] == "did:web:example.org"
    assert vc["proof"]["type"] == "JsonWebSignature2020"
    assert vc["proof"]["verificationMethod"] == "did:web:example.org#keys-1"
    assert vc["credentialSubject"] == {
        "id": f"user:{student_id}", "certificateId": str(cid), "title": "Machine Learning",
        "institution": "Coursera", "dateIssued": "2024-05-01", "description": None,
    }

    again = faculty.post("/api/certificates/approve", json={"certificateId": cid, "status": "rejected"})
    assert again.status_code == 409

    with app.app_context():
        row = VerifiableCredential.query.one()
        assert row.user_id == student_id
        assert AuditLog.query.filter_by(action="manual_approve").count() == 1
        assert Notification.query.filter_by(type="certificate_verified").count() == 1


def test_issuance_failure_leaves_certificate_verified(app, monkeypatch, student, faculty):
    cid = _create(student)["data"]["id"]

    def boom(subject):
        raise IssuanceError("key unavailable")

    monkeypatch.setattr("campussync.services.credentials.sign_credential", boom)
    resp = faculty.post("/api/certificates/approve", json={"certificateId": cid, "status": "approved"})
    assert resp.status_code == 502
    assert resp.get_json()["error"] == "Certificate approved but credential issuance failed: key unavailable"
    with app.app_context():
        assert db.session.get(Certificate, cid).verification_status == "verified"
        assert VerifiableCredential.query.count() == 0

    monkeypatch.undo()
    # manual retry, then idempotent
    first = faculty.post("/api/certificates/issue", json={"certificateId": cid})
    assert first.status_code == 201
    second = student.post("/api/certificates/issue", json={"certificateId": cid})
    assert second.status_code == 200
    assert second.get_json()["created"] is False
    assert second.get_json()["data"]["id"] == first.get_json()["data"]["id"]


def test_issue_rules(make_user, login, student, faculty):
    cid = _create(student)["data"]["id"]
    resp = student.post("/api/certificates/issue", json={"certificateId": cid})
    assert resp.status_code == 409

    faculty.post("/api/certificates/approve", json={"certificateId": cid, "status": "approved"})
    make_user("ola@northfield.edu")
    assert login("ola@northfield.edu").post("/api/certificates/issue",
                                            json={"certificateId": cid}).status_code == 403


def test_reject(app, student, faculty):
    cid = _create(student)["data"]["id"]
    resp = faculty.post("/api/certificates/approve",
                        json={"certificateId": cid, "status": "rejected", "reason": "Blurry scan"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["verification_status"] == "rejected"
    assert resp.get_json()["credential"] is None
    with app.app_context():
        assert db.session.get(Certificate, cid).review_notes == "Blurry scan"


def test_batch_reports_each_id(app, monkeypatch, student, faculty):
    a = _create(student, title="A")["data"]["id"]
    b = _create(student, title="B")["data"]["id"]
    c = _create(student, title="C")["data"]["id"]
    faculty.post("/api/certificates/approve", json={"certificateId": b, "status": "rejected"})

    real_sign = credentials.sign_credential

    def flaky(subject):
        if subject["title"] == "C":
            raise IssuanceError("HSM timeout")
        return real_sign(subject)

    monkeypatch.setattr("campussync.services.credentials.sign_credential", flaky)
    resp = faculty.post("/api/certificates/batch-approve",
                        json={"certificateIds": [a, b, c, 999], "status": "approved", "reason": "term review"})
    assert resp.status_code == 200
    body = resp.get_json()
    by_id = {r["id"]: r for r in body["results"]}
    assert by_id[a]["ok"] and by_id[a]["issued"] and by_id[a]["status"] == "verified"
    assert not by_id[b]["ok"] and by_id[b]["error"] == "Certificate already reviewed"
    assert by_id[c]["ok"] and not by_id[c]["issued"]
    assert "HSM timeout" in by_id[c]["issue_error"]
    assert by_id[999] == {"id": 999, "ok": False, "issued": False, "issue_error": None,
                          "error": "Certificate not found"}
    assert (body["succeeded"], body["failed"]) == (2, 2)

    with app.app_context():
        row = AuditLog.query.filter_by(action="batch_certificate_review").one()
        assert row.details["succeeded"] == [a, c]


def test_batch_validation(faculty):
    assert faculty.post("/api/certificates/batch-approve",
                        json={"certificateIds": [], "status": "approved"}).status_code == 400
    assert faculty.post("/api/certificates/batch-approve",
                        json={"certificateIds": [1], "status": "maybe"}).status_code == 400
    assert faculty.post("/api/certificates/batch-approve",
                        json={"certificateIds": ["1"], "status": "approved"}).status_code == 400


def test_delete(app, make_user, login, admin_client, student, faculty):
    cid = _create(student)["data"]["id"]
    faculty.post("/api/certificates/approve", json={"certificateId": cid, "status": "approved"})

    make_user("ola@northfield.edu")
    assert login("ola@northfield.edu").delete("/api/certificates/delete",
                                              json={"certificateId": cid}).status_code == 403
    # faculty review but do not delete
    assert faculty.delete("/api/certificates/delete", json={"certificateId": cid}).status_code == 403

    assert student.delete("/api/certificates/delete", json={"certificateId": cid}).status_code == 200
    with app.app_context():
        assert db.session.get(Certificate, cid) is None
        assert VerifiableCredential.query.one().certificate_id is None

    other = _create(student)["data"]["id"]
    assert admin_client.delete("/api/certificates/delete", json={"certificateId": other}).status_code == 200
    assert student.delete("/api/certificates/delete", json={"certificateId": other}).status_code == 404


def test_ocr_with_client_text(app, student):
    text = ("Coursera\nCertificate of Completion\nThis is to certify that Sam Student has successfully "
            "completed the Deep Learning Specialization course\nIssued on March 3, 2024\n")
    resp = student.post("/api/certificates/ocr", data={
        "file": (io.BytesIO(b"%PNG fake"), "my cert.png"),
        "rawText": text,
    }, content_type="multipart/form-data")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["publicUrl"].startswith("file://") and body["publicUrl"].endswith("_my_cert.png")
    assert body["ocr"]["date_issued"] == "2024-03-03"
    assert body["ocr"]["recipient"] == "Sam Student"
    assert body["ocr"]["verification_method"] == "manual_review"
    assert body["ocr"]["auto_approved"] is False

    created = _create(student, extraction_token=body["extraction_token"])["data"]
    assert created["file_url"] == body["publicUrl"]
    assert created["verification_status"] == "pending"


def test_ocr_gemini_uses_extractor(app, monkeypatch, student):
    seen = {}

    def fake_extract(data, mime_type="image/jpeg"):
        seen["data"] = data
        return ocr.normalize({"title": "AWS Cloud Practitioner", "institution": "Amazon",
                              "date_issued": "2023-11-20", "confidence": 0.96,
                              "signals": {"qr_code": True}})

    monkeypatch.setattr("campussync.services.ocr.extract_with_gemini", fake_extract)
    resp = student.post("/api/certificates/ocr-gemini", data={
        "file": (io.BytesIO(b"image-bytes"), "aws.jpg"),
    }, content_type="multipart/form-data")
    assert resp.status_code == 200
    body = resp.get_json()
    assert seen["data"] == b"image-bytes"
    assert body["ocr"]["verification_method"] == "qr_verified"
    assert body["ocr"]["auto_approved"] is True

    created = _create(student, extraction_token=body["extraction_token"])
    assert created["data"]["verification_status"] == "verified"
    assert created["credential"] is not None


def test_ocr_gemini_requires_file(student):
    assert student.post("/api/certificates/ocr-gemini", data={},
                        content_type="multipart/form-data").status_code == 400


def test_ocr_gemini_without_key_is_upstream_error(student):
    resp = student.post("/api/certificates/ocr-gemini", data={
        "file": (io.BytesIO(b"image-bytes"), "aws.jpg"),
    }, content_type="multipart/form-data")
    assert resp.status_code == 502


def test_approval_history(app, make_user, login, student, faculty):
    a = _create(student, title="A")["data"]["id"]
    b = _create(student, title="B")["data"]["id"]
    c = _create(student, title="C")["data"]["id"]
    faculty.post("/api/certificates/approve", json={"certificateId": a, "status": "approved"})
    faculty.post("/api/certificates/approve",
                 json={"certificateId": b, "status": "rejected", "reason": "Blurry scan"})
    faculty.post("/api/certificates/batch-approve", json={"certificateIds": [c], "status": "approved"})

    resp = faculty.get("/api/certificates/approval-history")
    assert resp.status_code == 200
    body = resp.get_json()
    assert [(h["action"], h["certificate_id"]) for h in body["data"]] == [
        ("batch_certificate_review", None),
        ("manual_approve", c),
        ("manual_reject", b),
        ("manual_approve", a),
    ]
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 4, "total_pages": 1}

    rejected = body["data"][2]
    assert rejected["certificate"]["title"] == "B"
    assert rejected["certificate"]["student_name"] == "Sam Student"
    assert rejected["certificate"]["verification_status"] == "rejected"
    assert rejected["reviewer_role"] == "faculty"
    assert rejected["details"] == {"reason": "Blurry scan"}
    assert body["data"][0]["certificate"] is None
    assert body["data"][0]["details"]["succeeded"] == [c]

    second = faculty.get("/api/certificates/approval-history?page=2&limit=3").get_json()
    assert [h["certificate_id"] for h in second["data"]] == [a]
    assert second["pagination"]["total_pages"] == 2
    assert faculty.get("/api/certificates/approval-history?limit=500").get_json()["pagination"]["limit"] == 100
    assert faculty.get("/api/certificates/approval-history?page=x").status_code == 400

    assert student.get("/api/certificates/approval-history").status_code == 403

    with app.app_context():
        other = Organization(name="Eastlake College", slug="eastlake")
        db.session.add(other)
        db.session.commit()
        other_id = other.id
    make_user("eli@eastlake.edu", role="faculty", org_id=other_id)
    outsider = login("eli@eastlake.edu").get("/api/certificates/approval-history").get_json()
    assert outsider["data"] == []
    assert outsider["pagination"]["total"] == 0
