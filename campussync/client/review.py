"""Review-console state kept outside any UI.

Each queue owns its item list, the ids currently being actioned, and the last
error message. After a mutation the local list is patched at once and then
replaced wholesale by a refetch: the last fetch wins.
"""
from ..errors import ApiError
from ..services.role_guard import DEMOTION_REASON_MESSAGE, requires_reason, validate_reason


class _Queue:
    def __init__(self, client):
        self.client = client
        self.items = []
        self.actioning = set()
        self.error = None

    def _fetch(self):
        raise NotImplementedError

    def refresh(self):
        try:
            self.items = self._fetch()
        except ApiError as e:
            self.error = e.message
            return False
        return True

    def dismiss_error(self):
        self.error = None

    def _drop(self, item_id):
        self.items = [i for i in self.items if i.get("id") != item_id]

    def _act(self, item_id, call):
        """Run ``call`` unless this id is already in flight. Returns True on success."""
        if item_id in self.actioning:
            return False
        self.actioning.add(item_id)
        try:
            call()
        except ApiError as e:
            self.error = e.message
            return False
        finally:
            self.actioning.discard(item_id)
        self.error = None
        self._drop(item_id)
        self.refresh()
        return True


class RoleRequestQueue(_Queue):
    def __init__(self, client, status="pending", requested_role=None):
        super().__init__(client)
        self.status = status
        self.requested_role = requested_role

    def _fetch(self):
        return self.client.list_role_requests(status=self.status, requested_role=self.requested_role)

    def approve(self, request_id, notes=None):
        return self._act(request_id, lambda: self.client.approve_role_request(request_id, notes))

    def deny(self, request_id, notes=None):
        return self._act(request_id, lambda: self.client.deny_role_request(request_id, notes))


class CertificateQueue(_Queue):
    """Pending certificates plus a selection set for batch review."""

    def __init__(self, client):
        super().__init__(client)
        self.selected = set()
        self.batch_actioning = False
        self.last_results = []
        # verified on the server but still without a credential
        self.needs_issue = set()

    def _fetch(self):
        return self.client.pending_certificates()

    def refresh(self):
        ok = super().refresh()
        if ok:
            # selection never points at rows that left the queue
            present = {i.get("id") for i in self.items}
            self.selected &= present
        return ok

    def toggle(self, certificate_id):
        if certificate_id in self.selected:
            self.selected.discard(certificate_id)
        else:
            self.selected.add(certificate_id)

    def select_all(self):
        self.selected = {i.get("id") for i in self.items}

    def clear_selection(self):
        self.selected = set()

    def approve(self, certificate_id):
        """Approve one certificate. A 502 means it was verified but issuance failed."""
        if certificate_id in self.actioning:
            return False
        self.actioning.add(certificate_id)
        try:
            self.client.review_certificate(certificate_id, "approved")
        except ApiError as e:
            self.error = e.message
            if e.status_code == 502:
                self.needs_issue.add(certificate_id)
                self._drop(certificate_id)
                self.refresh()
            return False
        finally:
            self.actioning.discard(certificate_id)
        self.error = None
        self._drop(certificate_id)
        self.refresh()
        return True

    def retry_issue(self, certificate_id):
        if certificate_id in self.actioning:
            return False
        self.actioning.add(certificate_id)
        try:
            self.client.issue_certificate(certificate_id)
        except ApiError as e:
            self.error = e.message
            return False
        finally:
            self.actioning.discard(certificate_id)
        self.needs_issue.discard(certificate_id)
        self.error = None
        return True

    def reject(self, certificate_id, reason=None):
        return self._act(certificate_id,
                         lambda: self.client.review_certificate(certificate_id, "rejected", reason))

    def _batch(self, status, reason=None):
        if self.batch_actioning or not self.selected:
            return False
        self.batch_actioning = True
        ids = sorted(self.selected)
        try:
            resp = self.client.batch_review(ids, status, reason)
        except ApiError as e:
            # selection is kept so the user can retry
            self.error = e.message
            return False
        finally:
            self.batch_actioning = False

        self.last_results = resp.get("results", [])
        done = {r["id"] for r in self.last_results if r.get("ok")}
        failed = [r for r in self.last_results if not r.get("ok")]
        self.selected -= done
        self.items = [i for i in self.items if i.get("id") not in done]
        issue_errors = [r for r in self.last_results if r.get("issue_error")]
        self.needs_issue |= {r["id"] for r in issue_errors}
        if failed:
            self.error = f"{len(failed)} of {len(ids)} certificates could not be updated: {failed[0].get('error')}"
        elif issue_errors:
            self.error = f"Certificate approved but credential issuance failed: {issue_errors[0]['issue_error']}"
        else:
            self.error = None
        self.refresh()
        return not failed

    def batch_approve(self):
        return self._batch("approved")

    def batch_reject(self, reason=None):
        return self._batch("rejected", reason)


class RoleChangeDialog:
    """Two-phase role change: request a token, collect a reason if needed, confirm."""

    def __init__(self, client):
        self.client = client
        self.pending = None
        self.error = None
        self.busy = False

    def start(self, user_id, new_role):
        if self.busy:
            return None
        self.busy = True
        try:
            self.pending = self.client.request_role_change(user_id, new_role)
            self.error = None
        except ApiError as e:
            self.pending = None
            self.error = e.message
        finally:
            self.busy = False
        return self.pending

    @property
    def needs_reason(self):
        return bool(self.pending and self.pending.get("requires_reason"))

    def confirm(self, reason=None):
        if self.pending is None or self.busy:
            return None
        # checked locally so a short reason never reaches the server
        if requires_reason(self.pending["current_role"], self.pending["new_role"]) and not validate_reason(reason):
            self.error = DEMOTION_REASON_MESSAGE
            return None
        self.busy = True
        try:
            result = self.client.confirm_role_change(self.pending["token"], reason)
        except ApiError as e:
            self.error = e.message
            return None
        finally:
            self.busy = False
        self.pending = None
        self.error = None
        return result

    def cancel(self):
        self.pending = None
        self.error = None
