from campussync.extensions import db
from campussync.models import AuditLog, Notification, Organization, RoleRequest, User


def _request(client, role="faculty", **extra):
    return client.post("/api/role-requests", json={"requested_role": role, **extra})


def test_student_creates_request(app, make_user, login):
    make_user("sam@northfield.edu")
    c = login("sam@northfield.edu")
    resp = _request(c, metadata={"department": "Physics"})
    assert resp.status_code == 201
    body = resp.get_json()["data"]
    assert body["status"] == "pending"
    assert body["metadata"] == {"department": "Physics"}

    # duplicate pending request for the same role
    assert _request(c).status_code == 409
    assert _request(c, role="superuser").status_code == 400

    mine = c.get("/api/role-requests/mine").get_json()["data"]
    assert len(mine) == 1


def test_list_filters_and_enrichment(app, make_user, login, admin_client):
    for i in range(3):
        make_user(f"s{i}@northfield.edu", full_name=f"Student {i}")
        _request(login(f"s{i}@northfield.edu"), role="recruiter" if i == 2 else "faculty")

    data = admin_client.get("/api/admin/role-requests").get_json()["data"]
    assert [d["requester_email"] for d in data] == ["s2@northfield.edu", "s1@northfield.edu", "s0@northfield.edu"]
    assert data[0]["requester_name"] == "Student 2"

    only_faculty = admin_client.get("/api/admin/role-requests?requested_role=faculty").get_json()["data"]
    assert {d["requested_role"] for d in only_faculty} == {"faculty"}

    page = admin_client.get("/api/admin/role-requests?limit=1&offset=1").get_json()["data"]
    assert len(page) == 1 and page[0]["requester_email"] == "s1@northfield.edu"

    assert admin_client.get("/api/admin/role-requests/count").get_json()["count"] == 3
    assert admin_client.get("/api/admin/role-requests?status=bogus").status_code == 400


def test_limit_is_capped(app, make_user, login, admin_client):
    make_user("sam@northfield.edu")
    _request(login("sam@northfield.edu"))
    resp = admin_client.get("/api/admin/role-requests?limit=5000")
    assert resp.status_code == 200
    assert len(resp.get_json()["data"]) == 1


def test_approve_grants_role_once(app, make_user, login, admin_client, admin_id):
    uid = make_user("sam@northfield.edu")
    rid = _request(login("sam@northfield.edu")).get_json()["data"]["id"]

    resp = admin_client.post(f"/api/admin/role-requests/{rid}/approve", json={"notes": "Welcome aboard"})
    assert resp.status_code == 200
    body = resp.get_json()["data"]
    assert body["status"] == "approved"
    assert body["reviewed_by"] == admin_id
    assert body["reviewed_at"] is not None

    # second transition is rejected, whichever direction
    again = admin_client.post(f"/api/admin/role-requests/{rid}/approve")
    assert again.status_code == 409
    assert again.get_json()["error"] == "Already processed"
    assert admin_client.post(f"/api/admin/role-requests/{rid}/deny").status_code == 409

    with app.app_context():
        assert db.session.get(User, uid).role == "faculty"
        assert db.session.get(RoleRequest, rid).status == "approved"
        actions = {a.action for a in AuditLog.query.all()}
        assert {"role_approve", "role_request_grant"} <= actions
        # no redis in tests: the notification job ran inline
        assert Notification.query.filter_by(user_id=uid, type="role_request_approved").count() == 1


def test_deny_keeps_role(app, make_user, login, admin_client):
    uid = make_user("sam@northfield.edu")
    rid = _request(login("sam@northfield.edu"), role="admin").get_json()["data"]["id"]

    resp = admin_client.post(f"/api/admin/role-requests/{rid}/deny", json={"notes": "Not eligible"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "rejected"
    with app.app_context():
        assert db.session.get(User, uid).role == "student"
        assert AuditLog.query.filter_by(action="role_deny").count() == 1


def test_unknown_request_is_404(admin_client):
    assert admin_client.post("/api/admin/role-requests/999/approve").status_code == 404


def test_other_org_requests_are_invisible(app, make_user, login, admin_client):
    with app.app_context():
        other = Organization(name="Eastlake College", slug="eastlake")
        db.session.add(other)
        db.session.commit()
        other_id = other.id
    make_user("ext@eastlake.edu", org_id=other_id)
    rid = _request(login("ext@eastlake.edu")).get_json()["data"]["id"]

    assert admin_client.get("/api/admin/role-requests").get_json()["data"] == []
    assert admin_client.post(f"/api/admin/role-requests/{rid}/approve").status_code == 404


def test_non_admin_cannot_review(client, make_user, login):
    make_user("sam@northfield.edu")
    c = login("sam@northfield.edu")
    assert c.get("/api/admin/role-requests").status_code == 403
    resp = client.get("/api/admin/role-requests")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Unauthorized"
