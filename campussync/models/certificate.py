from ..extensions import db
from .base import OrgScopedMixin, TimestampMixin

VERIFICATION_STATUSES = ("pending", "verified", "rejected")
VERIFICATION_METHODS = ("qr_verified", "logo_match", "template_match", "manual_review")


class Certificate(db.Model, OrgScopedMixin, TimestampMixin):
    __tablename__ = "certificates"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # user-edited fields
    title = db.Column(db.String(255), nullable=False)
    institution = db.Column(db.String(255), nullable=False, default="")
    date_issued = db.Column(db.Date)
    description = db.Column(db.Text)
    recipient = db.Column(db.String(160))
    file_url = db.Column(db.String(512))

    # pending -> verified | rejected
    verification_status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # written once from the extraction response
    confidence_score = db.Column(db.Float)
    auto_approved = db.Column(db.Boolean, nullable=False, default=False)
    verification_method = db.Column(db.String(30), default="manual_review")

    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.Text)

    student = db.relationship("User", foreign_keys=[student_id])

    def credential_subject(self):
        return {
            "id": f"user:{self.student_id}",
            "certificateId": str(self.id),
            "title": self.title,
            "institution": self.institution,
            "dateIssued": self.date_issued.isoformat() if self.date_issued else None,
            "description": self.description,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "organization_id": self.organization_id,
            "title": self.title,
            "institution": self.institution,
            "date_issued": self.date_issued.isoformat() if self.date_issued else None,
            "description": self.description,
            "recipient": self.recipient,
            "file_url": self.file_url,
            "verification_status": self.verification_status,
            "confidence_score": self.confidence_score,
            "auto_approved": self.auto_approved,
            "verification_method": self.verification_method,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_notes": self.review_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Certificate id={self.id} status={self.verification_status!r}>"
