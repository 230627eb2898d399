from flask import current_app, jsonify
from flask_login import login_required, current_user
from sqlalchemy import func
from . import bp
from .forms import OrganizationForm
from ...errors import Conflict, NotFound
from ...extensions import db
from ...models.certificate import Certificate
from ...models.organization import Organization
from ...models.user import User
from ...services import audit
from ...utils.decorators import super_admin_required


def _with_counts(org):
    row = org.to_dict()
    row["member_count"] = User.query.filter_by(org_id=org.id).count()
    row["certificate_count"] = Certificate.query.filter_by(organization_id=org.id).count()
    return row


@bp.get("")
@login_required
def list_organizations():
    q = Organization.query
    if not current_user.is_super_admin:
        q = q.filter(Organization.id == current_user.org_id)
    return jsonify({"data": [_with_counts(o) for o in q.order_by(func.lower(Organization.name)).all()]})


@bp.post("")
@login_required
@super_admin_required
def create_organization():
    form = OrganizationForm().validate_or_raise()
    exists = Organization.query.filter((Organization.slug == form.slug.data) |
                                       (Organization.name == form.name.data)).first()
    if exists:
        raise Conflict("Organization name or slug already in use")
    org = Organization(name=form.name.data.strip(), slug=form.slug.data, type=form.type.data,
                       contact_email=form.contact_email.data or None,
                       contact_phone=form.contact_phone.data or None,
                       is_active=True, is_verified=True)
    db.session.add(org)
    db.session.flush()
    audit.record("organization_create", actor_id=current_user.id, target_id=org.id,
                 organization_id=org.id, details={"slug": org.slug})
    db.session.commit()
    current_app.logger.info('organization %s (%s) created by %s', org.id, org.slug, current_user.id)
    return jsonify({"data": _with_counts(org)}), 201


@bp.get("/<int:org_id>")
@login_required
def get_organization(org_id):
    org = db.session.get(Organization, org_id)
    if org is None or (not current_user.is_super_admin and current_user.org_id != org.id):
        raise NotFound("Organization not found")
    return jsonify({"data": _with_counts(org)})
