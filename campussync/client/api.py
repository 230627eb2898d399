"""Thin HTTP client for the CampusSync JSON API.

Non-2xx responses raise ``ApiError`` carrying the server's ``error`` message
and status. Nothing is retried.
"""
import requests

from ..errors import ApiError, NetworkError


class CampusSyncClient:
    def __init__(self, base_url, session=None, timeout=30):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = self.session.request(method, f"{self.base_url}{path}", **kwargs)
        except requests.RequestException as e:
            raise NetworkError(str(e) or "Network error")
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not 200 <= resp.status_code < 300:
            extra = dict(body) if isinstance(body, dict) else {}
            message = extra.pop("error", None)
            raise ApiError(message or resp.reason or f"HTTP {resp.status_code}",
                           status_code=resp.status_code, payload=extra)
        return body

    # auth
    def login(self, email, password):
        return self._request("POST", "/auth/login", json={"email": email, "password": password})

    def logout(self):
        return self._request("POST", "/auth/logout")

    def me(self):
        return self._request("GET", "/auth/me")["user"]

    # role requests
    def list_role_requests(self, status="pending", requested_role=None, limit=20, offset=0):
        params = {"status": status, "limit": limit, "offset": offset}
        if requested_role:
            params["requested_role"] = requested_role
        return self._request("GET", "/api/admin/role-requests", params=params)["data"]

    def count_role_requests(self):
        return self._request("GET", "/api/admin/role-requests/count")["count"]

    def approve_role_request(self, request_id, notes=None):
        return self._request("POST", f"/api/admin/role-requests/{request_id}/approve",
                             json={"notes": notes} if notes else {})["data"]

    def deny_role_request(self, request_id, notes=None):
        return self._request("POST", f"/api/admin/role-requests/{request_id}/deny",
                             json={"notes": notes} if notes else {})["data"]

    # roles
    def list_roles(self, role=None):
        return self._request("GET", "/api/admin/roles", params={"role": role} if role else None)["data"]

    def request_role_change(self, user_id, new_role):
        return self._request("POST", "/api/admin/roles/change",
                             json={"user_id": user_id, "new_role": new_role})["data"]

    def confirm_role_change(self, token, reason=None):
        body = {"token": token}
        if reason:
            body["reason"] = reason
        return self._request("POST", "/api/admin/roles/change/confirm", json=body)["data"]

    # faculty approvals
    def list_faculty_approvals(self, status="pending", role="all"):
        return self._request("GET", "/api/admin/faculty-approvals",
                             params={"status": status, "role": role})["data"]

    def decide_faculty_approval(self, user_id, organization_id, approval_status, notes=None):
        body = {"user_id": user_id, "approval_status": approval_status}
        if organization_id is not None:
            body["organization_id"] = organization_id
        if notes:
            body["notes"] = notes
        return self._request("POST", "/api/admin/faculty-approvals", json=body)["data"]

    # certificates
    def pending_certificates(self):
        return self._request("GET", "/api/certificates/pending")["data"]

    def review_certificate(self, certificate_id, status, reason=None):
        body = {"certificateId": certificate_id, "status": status}
        if reason:
            body["reason"] = reason
        return self._request("POST", "/api/certificates/approve", json=body)

    def approval_history(self, page=1, limit=20):
        return self._request("GET", "/api/certificates/approval-history",
                             params={"page": page, "limit": limit})

    def batch_review(self, certificate_ids, status, reason=None):
        return self._request("POST", "/api/certificates/batch-approve",
                             json={"certificateIds": list(certificate_ids), "status": status,
                                   "reason": reason})

    def issue_certificate(self, certificate_id):
        return self._request("POST", "/api/certificates/issue",
                             json={"certificateId": certificate_id})

    def verify_credential(self, jws):
        return self._request("POST", "/api/credentials/verify", json={"jws": jws})
