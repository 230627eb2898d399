"""Certificate field extraction.

Two extractors feed the same normalized shape: Gemini (google-genai) for
uploaded images and PDFs, and a pattern extractor for OCR text the client
already has. ``classify`` turns the service's signals into the verification
method and auto-approval flag that are stored once at creation.
"""
import json
import math
import re
from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app
from google import genai
from google.genai import types
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..errors import UpstreamError, ValidationError

EXTRACTION_FIELDS = ("title", "institution", "date_issued", "description", "recipient",
                     "certificate_id", "confidence", "raw_text", "verification_method", "auto_approved")
TOKEN_SALT = "certificate-extraction"
MIN_RAW_TEXT = 10
QR_CONFIDENCE = 0.99

GEMINI_PROMPT = """Extract certificate information as JSON:

{
  "title": "certificate title/course name",
  "institution": "issuing organization",
  "recipient": "recipient name",
  "date_issued": "YYYY-MM-DD format",
  "certificate_id": "certificate or credential number if printed, else empty",
  "description": "2-3 sentences covering: purpose, project/course details, duration, achievements, skills, grades",
  "raw_text": "all visible text",
  "confidence": 0.95,
  "signals": {"qr_code": false, "logo": false, "template": false}
}

Set signals.qr_code when a verification QR code is visible, signals.logo when the
issuer's logo is clearly present and signals.template when the layout matches a
known issuer template. Extract all text accurately. Return only valid JSON, no markdown."""

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def clamp_confidence(value) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v):
        return 0.0
    return max(0.0, min(1.0, v))


def classify(confidence, signals=None, threshold=None):
    """Return (confidence, verification_method, auto_approved)."""
    signals = signals or {}
    if threshold is None:
        threshold = current_app.config.get("AUTO_APPROVE_THRESHOLD", 0.9)
    confidence = clamp_confidence(confidence)
    if signals.get("qr_code") or signals.get("qr_verified"):
        method = "qr_verified"
        confidence = max(confidence, QR_CONFIDENCE)
    elif signals.get("logo") or signals.get("logo_match"):
        method = "logo_match"
    elif signals.get("template") or signals.get("template_match"):
        method = "template_match"
    else:
        method = "manual_review"
    auto = method != "manual_review" and confidence >= threshold
    return confidence, method, auto


def normalize(raw: Dict[str, Any], raw_text: Optional[str] = None) -> Dict[str, Any]:
    """Reduce an extractor response to the fixed field set."""
    raw = raw or {}
    confidence, method, auto = classify(raw.get("confidence"), raw.get("signals"))
    date = raw.get("date_issued") or ""
    return {
        "title": (raw.get("title") or "").strip(),
        "institution": (raw.get("institution") or "").strip(),
        "date_issued": (normalize_date(date) or "") if date else "",
        "description": (raw.get("description") or "").strip(),
        "recipient": (raw.get("recipient") or "").strip(),
        "certificate_id": (raw.get("certificate_id") or "").strip(),
        "confidence": confidence,
        "raw_text": raw.get("raw_text") or raw_text or "",
        "verification_method": method,
        "auto_approved": auto,
    }


def parse_model_json(text: str) -> Dict[str, Any]:
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise UpstreamError("Failed to parse JSON from extraction response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Failed to parse JSON from extraction response: {e}")


def extract_with_gemini(data: bytes, mime_type: str = "image/jpeg") -> Dict[str, Any]:
    api_key = current_app.config.get("GEMINI_API_KEY")
    if not api_key:
        current_app.logger.warning('GEMINI_API_KEY not set; extraction unavailable')
        raise UpstreamError("Extraction service is not configured")
    model = current_app.config.get("GEMINI_MODEL", "gemini-2.5-flash")
    try:
        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=model,
            contents=[
                types.Part.from_bytes(data=data, mime_type=mime_type or "image/jpeg"),
                GEMINI_PROMPT,
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                temperature=0.1,
                max_output_tokens=2048,
            ),
        )
        text = response.text
    except Exception as e:
        current_app.logger.exception('Gemini extraction failed')
        raise UpstreamError(f"Extraction failed: {e}")
    current_app.logger.info('Gemini extraction received (%d chars)', len(text or ""))
    return normalize(parse_model_json(text))


# --- pattern extraction over OCR text ---------------------------------------

_TITLE_PATTERNS = [
    r"Certificate\s+of\s+(.+?)(?:\n|\bin\b|\bfrom\b|\bissued\b)",
    r"Certificate\s+in\s+(.+?)(?:\n|\bfrom\b|\bissued\b)",
    r"This\s+(?:is\s+to\s+)?certif(?:y|ies)\s+that\s+.+?\s+has\s+(?:successfully\s+)?completed\s+(?:the\s+)?(.+?)(?:\n|\bcourse\b|\bprogram\b|\bin\b)",
    r"(?:Award|Diploma|Degree)\s+(?:of|in)\s+(.+?)(?:\n|\bfrom\b|\bissued\b)",
    r"(?:successful\s+)?completion\s+of\s+(?:the\s+)?(.+?)(?:\n|\bcourse\b|\bprogram\b|\bin\b)",
    r"(?:has\s+)?(?:successfully\s+)?(?:completed|finished|passed)\s+(?:the\s+)?(.+?)(?:\n|\bcourse\b|\bprogram\b|\bwith\b)",
    r"participated\s+in\s+(?:the\s+)?(.+?)(?:\n|\bprogram\b|\bcourse\b)",
    r"(?:course|program|certification|training|workshop):\s*([A-Z][^.\n]+)",
    r"\"([^\"]+)\"",
]
_TITLE_SKIP = ("the following", "given this day", "under the seal", "hereby present",
               "upon recommendation", "this certificate", "to certify that")

_INSTITUTION_PATTERNS = [
    r"(?:from|by|at|issued\s+by)\s+([A-Z][^,\n.]{3,80}?(?:University|College|Institute|School|Academy|Foundation|Organization|Corporation|Company))",
    r"^([A-Z][A-Z\s&-]{3,60}(?:UNIVERSITY|COLLEGE|INSTITUTE|SCHOOL|ACADEMY|FOUNDATION))",
    r"\b(University\s+of\s+[A-Z]\w+(?:\s+[A-Z]\w+)?)",
    r"\b(Coursera|edX|Udemy|NPTEL|Khan\s+Academy|Udacity)\b",
    r"([A-Z][^,\n.]{3,50}(?:University|College|Institute|School|Academy))",
]
_INSTITUTION_KEYWORDS = ("university", "college", "institute", "school", "academy", "foundation",
                         "organization", "corporation", "company", "coursera", "edx", "udemy",
                         "nptel", "udacity")

_DATE_PATTERNS = [
    r"(\d{4}-\d{1,2}-\d{1,2})",
    r"(\d{1,2}[/-]\d{1,2}[/-]\d{4})",
    r"(\d{4}/\d{1,2}/\d{1,2})",
    r"((?:January|February|March|April|May|June|July|August|September|October|November|December|"
    r"Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4})",
    r"(\d{1,2}(?:st|nd|rd|th)?\s+(?:day\s+of\s+)?(?:January|February|March|April|May|June|July|"
    r"August|September|October|November|December|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec),?\s+\d{4})",
]

_RECIPIENT_PATTERNS = [
    r"present(?:ed)?\s+(?:this\s+certificate\s+)?to\s*\n?\s*([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2})",
    r"This\s+is\s+to\s+certify\s+that\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2})",
    r"awarded\s+to\s*\n?\s*([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2})",
]

_CERT_ID_PATTERN = r"(?:Certificate|Credential|Cert\.?)\s*(?:ID|No\.?|Number|#)\s*[:#]?\s*([A-Z0-9][A-Z0-9-]{3,})"


def _clean(value: str) -> str:
    value = re.sub(r"\s+", " ", value).strip()
    return value.strip(" -•·,.")


def _first_match(patterns, text, flags=re.IGNORECASE, accept=None):
    for pattern in patterns:
        m = re.search(pattern, text, flags)
        if m and m.group(1):
            candidate = _clean(m.group(1))
            if accept is None or accept(candidate):
                return candidate
    return None


def _valid_title(title):
    if not title or len(title) < 3 or len(title) > 100:
        return False
    alpha = sum(c.isalpha() for c in title)
    if alpha / len(title) < 0.5:
        return False
    lower = title.lower()
    return not any(p in lower for p in _TITLE_SKIP)


def _valid_institution(name):
    if not name or len(name) < 5 or len(name) > 100:
        return False
    lower = name.lower()
    return any(k in lower for k in _INSTITUTION_KEYWORDS)


def normalize_date(value: str) -> Optional[str]:
    """Best-effort conversion to YYYY-MM-DD. Ambiguous a/b/yyyy reads as month first unless a > 12."""
    if not value:
        return None
    value = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", value.strip(), flags=re.IGNORECASE)
    value = re.sub(r"\bday\s+of\s+", "", value, flags=re.IGNORECASE)
    value = value.replace(",", "").replace(".", "")
    value = re.sub(r"\bSept\b", "Sep", value, flags=re.IGNORECASE)
    value = re.sub(r"\s+", " ", value)

    m = re.fullmatch(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})", value)
    if m:
        a, b, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        month, day = (b, a) if a > 12 else (a, b)
        try:
            return datetime(year, month, day).strftime("%Y-%m-%d")
        except ValueError:
            return None

    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%B %d %Y", "%b %d %Y", "%d %B %Y", "%d %b %Y"):
        try:
            return datetime.strptime(value, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None


def _extract_date(text):
    for pattern in _DATE_PATTERNS:
        for m in re.finditer(pattern, text, re.IGNORECASE):
            normalized = normalize_date(m.group(1))
            if normalized:
                return normalized
    return None


def _extract_description(text):
    lines = [l.strip() for l in text.splitlines() if len(l.strip()) > 20]
    return max(lines, key=len) if lines else None


def extract_from_text(text: str, ocr_confidence=None) -> Dict[str, Any]:
    """Pattern extraction for certificates whose text is already known."""
    text = text or ""
    fields = {
        "title": _first_match(_TITLE_PATTERNS, text, accept=_valid_title),
        "institution": _first_match(_INSTITUTION_PATTERNS, text, flags=re.IGNORECASE | re.MULTILINE,
                                    accept=_valid_institution),
        "date_issued": _extract_date(text),
        "description": _extract_description(text),
        "recipient": _first_match(_RECIPIENT_PATTERNS, text, flags=0),
        "certificate_id": _first_match([_CERT_ID_PATTERN], text),
    }
    found = sum(1 for k in ("title", "institution", "date_issued", "recipient") if fields[k])
    # pattern matches never reach auto-approval: no verification signals
    confidence = clamp_confidence(ocr_confidence) if ocr_confidence not in (None, "") else 0.3 + 0.1 * found
    raw = {k: v or "" for k, v in fields.items()}
    raw["confidence"] = confidence
    raw["raw_text"] = text
    return normalize(raw)


def has_enough_text(text) -> bool:
    return bool(text) and len(text.strip()) >= MIN_RAW_TEXT


# --- extraction tokens -------------------------------------------------------

def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def sign_extraction(owner_id, file_url, ocr: Dict[str, Any]) -> str:
    """Seal the fields the client must not be able to set itself."""
    return _serializer().dumps({
        "owner_id": owner_id,
        "file_url": file_url,
        "confidence": ocr.get("confidence"),
        "verification_method": ocr.get("verification_method", "manual_review"),
        "auto_approved": bool(ocr.get("auto_approved")),
    })


def load_extraction(token: str, owner_id) -> Dict[str, Any]:
    max_age = current_app.config.get("EXTRACTION_TOKEN_MAX_AGE", 86400)
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise ValidationError("Extraction token expired, upload the file again")
    except BadSignature:
        raise ValidationError("Invalid extraction token")
    if payload.get("owner_id") != owner_id:
        raise ValidationError("Invalid extraction token")
    return payload
