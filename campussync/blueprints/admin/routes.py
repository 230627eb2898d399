from flask import jsonify, request
from flask_login import login_required, current_user
from sqlalchemy import func
from . import bp
from .forms import (FacultyDecisionForm, ReviewNotesForm, RoleAssignForm, RoleChangeConfirmForm,
                    RoleChangeRequestForm, RoleRemoveForm)
from ...extensions import db
from ...models.certificate import Certificate
from ...models.faculty_approval import FacultyApproval
from ...models.role_assignment import RoleAssignment
from ...models.user import User
from ...services import faculty_approvals, role_requests, roles
from ...utils.decorators import admin_required


# --- role requests ---

@bp.get("/role-requests")
@login_required
@admin_required
def list_role_requests():
    items = role_requests.list_requests(
        current_user,
        status=request.args.get("status", "pending"),
        requested_role=request.args.get("requested_role") or None,
        limit=request.args.get("limit", 20),
        offset=request.args.get("offset", 0),
    )
    return jsonify({"data": items})


@bp.get("/role-requests/count")
@login_required
@admin_required
def count_role_requests():
    return jsonify({"count": role_requests.count_pending(current_user)})


@bp.post("/role-requests/<int:request_id>/approve")
@login_required
@admin_required
def approve_role_request(request_id):
    form = ReviewNotesForm().validate_or_raise()
    rr = role_requests.approve(current_user, request_id, notes=form.notes.data or None)
    return jsonify({"data": rr.to_dict()})


@bp.post("/role-requests/<int:request_id>/deny")
@login_required
@admin_required
def deny_role_request(request_id):
    form = ReviewNotesForm().validate_or_raise()
    rr = role_requests.deny(current_user, request_id, notes=form.notes.data or None)
    return jsonify({"data": rr.to_dict()})


# --- roles ---

@bp.get("/roles")
@login_required
@admin_required
def list_roles():
    return jsonify({"data": roles.list_assignments(current_user, role=request.args.get("role") or None)})


@bp.post("/roles")
@login_required
@admin_required
def assign_role():
    form = RoleAssignForm().validate_or_raise()
    change = roles.assign_role(current_user, form.user_id.data, form.role.data, reason=form.reason.data)
    return jsonify({"data": change})


@bp.delete("/roles")
@login_required
@admin_required
def remove_role():
    form = RoleRemoveForm().validate_or_raise()
    change = roles.remove_role(current_user, form.user_id.data, reason=form.reason.data)
    return jsonify({"data": change})


@bp.post("/roles/change")
@login_required
@admin_required
def request_role_change():
    form = RoleChangeRequestForm().validate_or_raise()
    return jsonify({"data": roles.request_change(current_user, form.user_id.data, form.new_role.data)})


@bp.post("/roles/change/confirm")
@login_required
@admin_required
def confirm_role_change():
    form = RoleChangeConfirmForm().validate_or_raise()
    change = roles.confirm_change(current_user, form.token.data, reason=form.reason.data)
    return jsonify({"data": change})


# --- faculty / recruiter approvals ---

@bp.get("/faculty-approvals")
@login_required
@admin_required
def list_faculty_approvals():
    items = faculty_approvals.list_approvals(current_user,
                                             status=request.args.get("status", "pending"),
                                             role=request.args.get("role", "all"))
    return jsonify({"data": items})


@bp.post("/faculty-approvals")
@login_required
@admin_required
def decide_faculty_approval():
    form = FacultyDecisionForm().validate_or_raise()
    row = faculty_approvals.decide(current_user, form.user_id.data, form.organization_id.data,
                                   form.approval_status.data, notes=form.notes.data or None)
    return jsonify({"data": row.to_dict()})


# --- dashboard ---

@bp.get("/dashboard")
@login_required
@admin_required
def dashboard():
    org_id = None if current_user.is_super_admin else current_user.org_id

    def scoped(q, column):
        return q if org_id is None else q.filter(column == org_id)

    role_rows = scoped(
        db.session.query(func.coalesce(RoleAssignment.role, "student"), func.count(User.id))
        .select_from(User).outerjoin(RoleAssignment, RoleAssignment.user_id == User.id),
        User.org_id,
    ).group_by(func.coalesce(RoleAssignment.role, "student")).all()

    cert_rows = scoped(
        db.session.query(Certificate.verification_status, func.count(Certificate.id)),
        Certificate.organization_id,
    ).group_by(Certificate.verification_status).all()

    pending_certs = scoped(
        Certificate.query.filter(Certificate.verification_status == "pending",
                                 Certificate.auto_approved.is_(False)),
        Certificate.organization_id,
    ).count()
    pending_approvals = scoped(FacultyApproval.query.filter_by(approval_status="pending"),
                               FacultyApproval.organization_id).count()

    return jsonify({
        "pending": {
            "role_requests": role_requests.count_pending(current_user),
            "faculty_approvals": pending_approvals,
            "certificates": pending_certs,
        },
        "users_by_role": {r: n for r, n in role_rows},
        "certificates_by_status": {s: n for s, n in cert_rows},
    })
