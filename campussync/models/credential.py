from ..extensions import db


class VerifiableCredential(db.Model):
    __tablename__ = "verifiable_credentials"
    # at most one active credential per certificate
    __table_args__ = (
        db.Index("uq_verifiable_credentials_active_certificate", "certificate_id", unique=True,
                 sqlite_where=db.text("status = 'active'"),
                 postgresql_where=db.text("status = 'active'")),
    )

    id = db.Column(db.String(64), primary_key=True)  # urn:uuid:...
    # owner of the certificate, not the issuing reviewer
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    certificate_id = db.Column(db.Integer, db.ForeignKey("certificates.id"), index=True)
    issuer = db.Column(db.String(255), nullable=False)
    issuance_date = db.Column(db.String(40), nullable=False)
    credential = db.Column(db.JSON, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")  # active/revoked
    revoked_at = db.Column(db.DateTime)
    revocation_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "certificate_id": self.certificate_id,
            "issuer": self.issuer,
            "issuance_date": self.issuance_date,
            "status": self.status,
            "credential": self.credential,
        }
