from campussync.extensions import db
from campussync.jobs.notify import notify_user, render
from campussync.models import AuditLog, Certificate, Notification, Organization


def test_super_admin_creates_organization(app, make_user, login):
    make_user("root@campussync.org", role="admin", super_admin=True, primary_admin=True)
    c = login("root@campussync.org")
    resp = c.post("/api/organizations", json={"name": "Harbor College", "slug": "harbor-college",
                                               "type": "college"})
    assert resp.status_code == 201
    body = resp.get_json()["data"]
    assert body["slug"] == "harbor-college"
    assert body["member_count"] == 0

    dup = c.post("/api/organizations", json={"name": "Harbor College", "slug": "harbor"})
    assert dup.status_code == 409

    bad = c.post("/api/organizations", json={"name": "Bad", "slug": "Bad Slug"})
    assert bad.status_code == 400

    with app.app_context():
        assert AuditLog.query.filter_by(action="organization_create").count() == 1
    # super admins see every organization
    assert len(c.get("/api/organizations").get_json()["data"]) == 2


def test_org_admin_is_scoped(app, admin_client):
    with app.app_context():
        other = Organization(name="Elsewhere Institute", slug="elsewhere", type="school")
        db.session.add(other)
        db.session.commit()
        other_id = other.id

    assert admin_client.post("/api/organizations", json={"name": "X", "slug": "x"}).status_code == 403
    listed = admin_client.get("/api/organizations").get_json()["data"]
    assert [o["slug"] for o in listed] == ["northfield"]
    assert listed[0]["member_count"] == 1
    assert admin_client.get(f"/api/organizations/{other_id}").status_code == 404


def test_dashboard_counts(app, org, make_user, admin_id, admin_client):
    sid = make_user("sam@northfield.edu")
    make_user("fay@northfield.edu", role="faculty")
    with app.app_context():
        db.session.add_all([
            Certificate(student_id=sid, organization_id=org, title="A", verification_status="pending"),
            Certificate(student_id=sid, organization_id=org, title="B", verification_status="pending",
                        auto_approved=True),
            Certificate(student_id=sid, organization_id=org, title="C", verification_status="verified"),
        ])
        db.session.commit()

    data = admin_client.get("/api/admin/dashboard").get_json()
    assert data["pending"]["certificates"] == 1
    assert data["pending"]["role_requests"] == 0
    assert data["users_by_role"] == {"admin": 1, "faculty": 1, "student": 1}
    assert data["certificates_by_status"] == {"pending": 2, "verified": 1}


def test_dashboard_requires_admin(make_user, login):
    make_user("sam@northfield.edu")
    assert login("sam@northfield.edu").get("/api/admin/dashboard").status_code == 403


def test_render_fills_missing_keys():
    subject, body = render("certificate_rejected", {"name": "Sam", "title": "Robotics", "notes": None})
    assert subject == "Certificate rejected: Robotics"
    assert "Hello Sam" in body
    assert "None" not in body


def test_render_escapes_user_text_in_body():
    subject, body = render("certificate_rejected", {
        "name": "Sam", "title": "<img src=x onerror=alert(1)>", "notes": "Use the \"official\" scan & retry",
    })
    assert subject == "Certificate rejected: <img src=x onerror=alert(1)>"
    assert "<img" not in body
    assert "&lt;img src=x onerror=alert(1)&gt;" in body
    assert "&amp; retry" in body
    # template markup itself is untouched
    assert "<b>" in body


def test_notify_without_mail_provider(app, make_user):
    sid = make_user("sam@northfield.edu", full_name="Sam Student")
    with app.app_context():
        nid = notify_user(sid, "role_request_approved", {"role": "faculty"})
        n = db.session.get(Notification, nid)
        assert n.sent_to == "sam@northfield.edu"
        assert "faculty" in n.body
        assert n.sent_at is None
        assert notify_user(9999, "role_request_approved") is None
