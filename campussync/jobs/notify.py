from ..extensions import db
from ..services.mail import send_email
from ..models.notification import Notification
from ..models.user import User
from flask import current_app
from markupsafe import escape
from datetime import datetime

# kind -> (subject, body). Bodies are formatted with the job context.
TEMPLATES = {
    "role_request_approved": (
        "Your role request was approved",
        "<p>Hello {name},</p><p>Your request for the <b>{role}</b> role has been approved.</p>",
    ),
    "role_request_denied": (
        "Your role request was not approved",
        "<p>Hello {name},</p><p>Your request for the <b>{role}</b> role was not approved.</p><p>{notes}</p>",
    ),
    "faculty_approved": (
        "Your {role} account was approved",
        "<p>Hello {name},</p><p>Your {role} account has been approved. You can now sign in.</p>",
    ),
    "faculty_denied": (
        "Your {role} account request was declined",
        "<p>Hello {name},</p><p>Your {role} account request was declined.</p><p>{notes}</p>",
    ),
    "certificate_verified": (
        "Certificate approved: {title}",
        "<p>Hello {name},</p><p>Your certificate <b>{title}</b> has been verified.</p>",
    ),
    "certificate_rejected": (
        "Certificate rejected: {title}",
        "<p>Hello {name},</p><p>Your certificate <b>{title}</b> was rejected.</p><p>{notes}</p>",
    ),
}


def render(kind, context):
    """Subject is plain text; values in the HTML body are escaped."""
    subject, body = TEMPLATES[kind]
    ctx = {"name": "", "role": "", "title": "", "notes": ""}
    ctx.update({k: ("" if v is None else v) for k, v in (context or {}).items()})
    html_ctx = {k: escape(v) for k, v in ctx.items()}
    return subject.format(**ctx), body.format(**html_ctx)


def notify_user(user_id: int, kind: str, context: dict = None):
    user = db.session.get(User, user_id)
    if user is None:
        current_app.logger.warning('notify_user: user %s not found, skipping %s', user_id, kind)
        return None
    ctx = {"name": user.display_name}
    ctx.update(context or {})
    subject, body = render(kind, ctx)
    status, headers = send_email(user.email, subject, body)
    n = Notification(user_id=user.id, type=kind, sent_to=user.email, subject=subject,
                     body=body, provider_message_id=str(headers or ""),
                     sent_at=datetime.utcnow() if status else None)
    db.session.add(n); db.session.commit()
    return n.id


def queue_notification(user_id: int, kind: str, context: dict = None):
    """Best-effort: a failure to queue never fails the caller."""
    from ..extensions import rq
    try:
        rq.enqueue(notify_user, user_id, kind, context or {}, job_timeout=120)
    except Exception:
        current_app.logger.exception('failed to queue %s notification for user %s', kind, user_id)
