"""initial schema

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, unique=True),
        sa.Column('slug', sa.String(120), nullable=False, unique=True),
        sa.Column('type', sa.String(40)),
        sa.Column('contact_email', sa.String(255)),
        sa.Column('contact_phone', sa.String(40)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(160)),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('email_confirmed_at', sa.DateTime()),
        *_timestamps(),
    )
    op.create_index('ix_users_org_id', 'users', ['org_id'])

    op.create_table(
        'role_assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='student'),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_primary_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('assigned_by', sa.Integer(), sa.ForeignKey('users.id')),
        *_timestamps(),
    )
    op.create_index('ix_role_assignments_role', 'role_assignments', ['role'])
    op.create_index('ix_role_assignments_organization_id', 'role_assignments', ['organization_id'])

    op.create_table(
        'role_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('requested_role', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('metadata', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('reviewed_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('review_notes', sa.Text()),
    )
    op.create_index('ix_role_requests_user_id', 'role_requests', ['user_id'])
    op.create_index('ix_role_requests_status', 'role_requests', ['status'])
    op.create_index('ix_role_requests_organization_id', 'role_requests', ['organization_id'])

    op.create_table(
        'faculty_approvals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('approval_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('approval_notes', sa.Text()),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_faculty_approvals_user_org'),
    )
    op.create_index('ix_faculty_approvals_user_id', 'faculty_approvals', ['user_id'])
    op.create_index('ix_faculty_approvals_approval_status', 'faculty_approvals', ['approval_status'])
    op.create_index('ix_faculty_approvals_organization_id', 'faculty_approvals', ['organization_id'])

    op.create_table(
        'certificates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('institution', sa.String(255), nullable=False, server_default=''),
        sa.Column('date_issued', sa.Date()),
        sa.Column('description', sa.Text()),
        sa.Column('recipient', sa.String(160)),
        sa.Column('file_url', sa.String(512)),
        sa.Column('verification_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('confidence_score', sa.Float()),
        sa.Column('auto_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_method', sa.String(30), server_default='manual_review'),
        sa.Column('reviewed_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('review_notes', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_certificates_student_id', 'certificates', ['student_id'])
    op.create_index('ix_certificates_verification_status', 'certificates', ['verification_status'])
    op.create_index('ix_certificates_organization_id', 'certificates', ['organization_id'])

    op.create_table(
        'verifiable_credentials',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('certificate_id', sa.Integer(), sa.ForeignKey('certificates.id')),
        sa.Column('issuer', sa.String(255), nullable=False),
        sa.Column('issuance_date', sa.String(40), nullable=False),
        sa.Column('credential', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('revoked_at', sa.DateTime()),
        sa.Column('revocation_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_verifiable_credentials_user_id', 'verifiable_credentials', ['user_id'])
    op.create_index('ix_verifiable_credentials_certificate_id', 'verifiable_credentials', ['certificate_id'])
    op.create_index('uq_verifiable_credentials_active_certificate', 'verifiable_credentials', ['certificate_id'],
                    unique=True, sqlite_where=sa.text("status = 'active'"),
                    postgresql_where=sa.text("status = 'active'"))

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('actor_id', sa.Integer()),
        sa.Column('user_id', sa.Integer()),
        sa.Column('action', sa.String(60), nullable=False),
        sa.Column('target_id', sa.String(255)),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('type', sa.String(50)),
        sa.Column('sent_to', sa.String(255)),
        sa.Column('subject', sa.String(255)),
        sa.Column('body', sa.Text()),
        sa.Column('provider_message_id', sa.String(255)),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    for name in ('notifications', 'audit_logs', 'verifiable_credentials', 'certificates',
                 'faculty_approvals', 'role_requests', 'role_assignments', 'users', 'organizations'):
        op.drop_table(name)
