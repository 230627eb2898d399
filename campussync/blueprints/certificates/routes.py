from flask import current_app, jsonify, request
from flask_login import login_required, current_user
from . import bp
from .forms import CertificateForm, CertificateIdForm, ReviewForm
from ...errors import ValidationError
from ...services import certificates, ocr, storage
from ...utils.decorators import role_required

REVIEWERS = certificates.REVIEWER_ROLES


@bp.get("/pending")
@login_required
@role_required(*REVIEWERS)
def pending():
    return jsonify({"data": [c.to_dict() for c in certificates.list_pending(current_user)]})


@bp.get("/mine")
@login_required
def mine():
    return jsonify({"data": [c.to_dict() for c in certificates.list_mine(current_user)]})


@bp.get("/approval-history")
@login_required
@role_required(*REVIEWERS)
def approval_history():
    return jsonify(certificates.approval_history(current_user,
                                                 page=request.args.get("page", 1),
                                                 limit=request.args.get("limit", 20)))


@bp.post("/approve")
@login_required
@role_required(*REVIEWERS)
def approve():
    """Single review. Approval also issues the credential."""
    form = ReviewForm().validate_or_raise()
    cert, credential = certificates.review(current_user, form.certificateId.data,
                                           form.status.data, form.reason.data or None)
    return jsonify({
        "data": cert.to_dict(),
        "credential": credential.credential if credential is not None else None,
    })


@bp.post("/batch-approve")
@login_required
@role_required(*REVIEWERS)
def batch_approve():
    body = request.get_json(silent=True) or {}
    ids = body.get("certificateIds")
    if isinstance(ids, list) and not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
        raise ValidationError("certificateIds must be integers")
    results = certificates.batch_review(current_user, ids, body.get("status"), body.get("reason"))
    return jsonify({
        "results": results,
        "succeeded": sum(1 for r in results if r["ok"]),
        "failed": sum(1 for r in results if not r["ok"]),
    })


@bp.post("/issue")
@login_required
def issue():
    form = CertificateIdForm().validate_or_raise()
    row, created = certificates.issue(current_user, form.certificateId.data)
    return jsonify({"data": row.to_dict(), "created": created}), 201 if created else 200


@bp.post("/create")
@login_required
def create():
    form = CertificateForm().validate_or_raise()
    cert, credential = certificates.create(current_user, {
        "title": form.title.data,
        "institution": form.institution.data,
        "date_issued": form.date_issued.data,
        "description": form.description.data,
        "recipient": form.recipient.data,
    }, extraction_token=form.extraction_token.data or None)
    return jsonify({
        "data": cert.to_dict(),
        "credential": credential.credential if credential is not None else None,
    }), 201


@bp.delete("/delete")
@login_required
def delete():
    form = CertificateIdForm().validate_or_raise()
    certificates.delete(current_user, form.certificateId.data)
    return jsonify({"ok": True})


def _store_upload():
    f = request.files.get("file")
    if f is None or not f.filename:
        return None, None, None
    data = f.read()
    f.stream.seek(0)
    url = storage.save_file(f, storage.build_key(current_user.id, f.filename))
    current_app.logger.info('certificate upload stored %s (%d bytes)', url, len(data))
    return url, data, f.mimetype


def _extraction_response(url, result):
    return jsonify({
        "publicUrl": url,
        "ocr": result,
        "extraction_token": ocr.sign_extraction(current_user.id, url, result),
    })


@bp.post("/ocr-gemini")
@login_required
def ocr_gemini():
    url, data, mimetype = _store_upload()
    if url is None:
        raise ValidationError("No file uploaded")
    return _extraction_response(url, ocr.extract_with_gemini(data, mimetype))


@bp.post("/ocr")
@login_required
def ocr_text():
    """Prefer client OCR text; fall back to Gemini when it is missing or too short."""
    raw_text = request.form.get("rawText") or ""
    url, data, mimetype = _store_upload()
    if ocr.has_enough_text(raw_text):
        result = ocr.extract_from_text(raw_text, request.form.get("ocrConfidence"))
    elif data is not None:
        result = ocr.extract_with_gemini(data, mimetype)
    else:
        raise ValidationError("Missing file or rawText")
    return _extraction_response(url, result)
