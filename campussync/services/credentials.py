"""W3C verifiable credentials signed as compact JWS with PyJWT."""
import time
import uuid
from datetime import datetime, timezone

import jwt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, NotFound, UpstreamError, ValidationError
from ..extensions import db
from ..models.credential import VerifiableCredential
from ..models.user import User
from . import audit

VC_CONTEXT = [
    "https://www.w3.org/2018/credentials/v1",
    {"AchievementCredential": "https://purl.imsglobal.org/pec/v1"},
]
VC_TYPE = ["VerifiableCredential", "AchievementCredential"]


class IssuanceError(UpstreamError):
    pass


def issuer_did():
    return current_app.config.get("VC_ISSUER_DID") or "did:web:example.org"


def verification_method():
    return (current_app.config.get("VC_VERIFICATION_METHOD")
            or f"{issuer_did()}#{current_app.config.get('VC_KEY_ID') or 'keys-1'}")


def _signing_key():
    key = current_app.config.get("VC_SIGNING_KEY")
    if not key:
        raise IssuanceError("VC signing key is not configured")
    return key


def _verify_key():
    alg = current_app.config.get("VC_SIGNING_ALG", "ES256")
    if alg.startswith("HS"):
        return _signing_key()
    return current_app.config.get("VC_VERIFY_KEY") or _signing_key()


def sign_credential(subject: dict) -> dict:
    """Build the unsigned VC for ``subject`` and attach a JsonWebSignature2020 proof."""
    issued = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    vc = {
        "@context": VC_CONTEXT,
        "type": VC_TYPE,
        "issuer": issuer_did(),
        "issuanceDate": issued,
        "id": f"urn:uuid:{uuid.uuid4()}",
        "credentialSubject": subject,
    }
    alg = current_app.config.get("VC_SIGNING_ALG", "ES256")
    try:
        token = jwt.encode({"vc": vc, "iss": issuer_did(), "iat": int(time.time())},
                           _signing_key(), algorithm=alg,
                           headers={"kid": verification_method()})
    except IssuanceError:
        raise
    except Exception as e:
        current_app.logger.exception('credential signing failed')
        raise IssuanceError(f"Signing failed: {e}")

    signed = dict(vc)
    signed["proof"] = {
        "type": "JsonWebSignature2020",
        "created": issued,
        "proofPurpose": "assertionMethod",
        "verificationMethod": verification_method(),
        "jws": token,
    }
    return signed


def active_for_certificate(certificate_id):
    return (VerifiableCredential.query
            .filter_by(certificate_id=certificate_id, status="active")
            .order_by(VerifiableCredential.created_at.desc())
            .first())


def issue_for_certificate(certificate, actor_id=None):
    """Issue (or return the already active) credential for a verified certificate."""
    existing = active_for_certificate(certificate.id)
    if existing is not None:
        return existing, False

    vc = sign_credential(certificate.credential_subject())
    row = VerifiableCredential(id=vc["id"], user_id=certificate.student_id,
                               certificate_id=certificate.id, issuer=vc["issuer"],
                               issuance_date=vc["issuanceDate"], credential=vc, status="active")
    db.session.add(row)
    audit.record("credential_issue", actor_id=actor_id, user_id=certificate.student_id,
                 target_id=row.id, organization_id=certificate.organization_id,
                 details={"certificate_id": certificate.id})
    certificate_id = certificate.id
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent issue for the same certificate committed first
        db.session.rollback()
        existing = active_for_certificate(certificate_id)
        if existing is None:
            raise
        current_app.logger.info('credential for certificate %s already issued concurrently', certificate_id)
        return existing, False
    current_app.logger.info('credential %s issued for certificate %s', row.id, certificate.id)
    return row, True


def verify_credential(token: str) -> dict:
    if not token:
        raise ValidationError("jws is required")
    alg = current_app.config.get("VC_SIGNING_ALG", "ES256")
    try:
        claims = jwt.decode(token, _verify_key(), algorithms=[alg],
                            issuer=issuer_did(), options={"require": ["iat", "iss"]})
    except jwt.InvalidTokenError as e:
        return {"valid": False, "error": str(e)}

    vc = claims.get("vc") or {}
    row = db.session.get(VerifiableCredential, vc.get("id")) if vc.get("id") else None
    if row is not None and row.status == "revoked":
        return {"valid": False, "error": "Credential has been revoked", "credential": vc,
                "revoked_at": row.revoked_at.isoformat() if row.revoked_at else None}
    return {"valid": True, "credential": vc, "issuer": claims.get("iss")}


def revoke(actor, credential_id, reason=None):
    row = db.session.get(VerifiableCredential, credential_id)
    if row is None:
        raise NotFound("Credential not found")
    owner = db.session.get(User, row.user_id)
    if not actor.is_super_admin and (owner is None or owner.org_id != actor.org_id):
        raise NotFound("Credential not found")
    if row.status == "revoked":
        raise Conflict("Credential already revoked")
    row.status = "revoked"
    row.revoked_at = datetime.utcnow()
    row.revocation_reason = reason
    audit.record("credential_revoke", actor_id=actor.id, user_id=row.user_id, target_id=row.id,
                 details={"reason": reason})
    db.session.commit()
    current_app.logger.info('credential %s revoked by %s', row.id, actor.id)
    return row
