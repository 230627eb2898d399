import pytest

from campussync.errors import UpstreamError, ValidationError
from campussync.services import ocr

SAMPLE = """NORTHFIELD UNIVERSITY
Certificate of Excellence
This is to certify that Priya Raman has successfully completed the Advanced Data Structures course
from Northfield University with distinction.
Certificate ID: NFU-2024-00871
Date: 15/06/2024
"""


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.mark.parametrize("value,expected", [
    (1.7, 1.0), (-0.2, 0.0), ("0.42", 0.42), (None, 0.0), ("n/a", 0.0), (float("nan"), 0.0),
])
def test_clamp_confidence(value, expected):
    assert ocr.clamp_confidence(value) == expected


@pytest.mark.parametrize("confidence,signals,method,auto", [
    (0.5, {"qr_code": True}, "qr_verified", True),
    (0.95, {"logo": True}, "logo_match", True),
    (0.85, {"logo": True}, "logo_match", False),
    (0.9, {"template": True}, "template_match", True),
    (0.99, {}, "manual_review", False),
    (0.99, None, "manual_review", False),
])
def test_classify(ctx, confidence, signals, method, auto):
    conf, got_method, got_auto = ocr.classify(confidence, signals)
    assert (got_method, got_auto) == (method, auto)
    if method == "qr_verified":
        assert conf == ocr.QR_CONFIDENCE


def test_threshold_comes_from_config(app):
    app.config["AUTO_APPROVE_THRESHOLD"] = 0.8
    with app.app_context():
        assert ocr.classify(0.85, {"logo": True})[2] is True


def test_parse_model_json_tolerates_fences():
    text = 'Here you go:\n```json\n{"title": "Cloud Basics", "confidence": 0.8}\n```'
    assert ocr.parse_model_json(text) == {"title": "Cloud Basics", "confidence": 0.8}


@pytest.mark.parametrize("text", ["", "no json here", "{not: valid json}"])
def test_parse_model_json_errors(text):
    with pytest.raises(UpstreamError):
        ocr.parse_model_json(text)


def test_normalize_fixed_fields(ctx):
    out = ocr.normalize({"title": " Cloud Basics ", "confidence": 3, "date_issued": "March 3, 2024",
                         "unexpected": "dropped"})
    assert set(out) == set(ocr.EXTRACTION_FIELDS)
    assert out["title"] == "Cloud Basics"
    assert out["confidence"] == 1.0
    assert out["date_issued"] == "2024-03-03"
    assert out["verification_method"] == "manual_review"


@pytest.mark.parametrize("raw,expected", [
    ("2024-6-5", "2024-06-05"),
    ("15/06/2024", "2024-06-15"),
    ("06/15/2024", "2024-06-15"),
    ("June 15, 2024", "2024-06-15"),
    ("15th June 2024", "2024-06-15"),
    ("3rd day of March, 2023", "2023-03-03"),
    ("Sept 9, 2022", "2022-09-09"),
    ("31/02/2024", None),
    ("yesterday", None),
])
def test_normalize_date(raw, expected):
    assert ocr.normalize_date(raw) == expected


def test_extract_from_text(ctx):
    out = ocr.extract_from_text(SAMPLE)
    assert out["title"] == "Excellence"
    assert out["institution"].lower() == "northfield university"
    assert out["recipient"] == "Priya Raman"
    assert out["date_issued"] == "2024-06-15"
    assert out["certificate_id"] == "NFU-2024-00871"
    assert "Advanced Data Structures" in out["description"]
    assert out["raw_text"] == SAMPLE
    # text extraction never auto-approves
    assert out["verification_method"] == "manual_review"
    assert out["auto_approved"] is False
    assert 0 < out["confidence"] < 0.9


def test_extract_from_text_uses_ocr_confidence(ctx):
    assert ocr.extract_from_text(SAMPLE, "0.73")["confidence"] == 0.73


def test_extract_with_gemini(ctx, app, monkeypatch):
    app.config["GEMINI_API_KEY"] = "test-key"
    calls = {}

    class FakeModels:
        def generate_content(self, model, contents, config):
            calls["model"] = model
            calls["contents"] = contents

            class R:
                text = '{"title": "Data Science", "institution": "edX", "confidence": 0.93, ' \
                       '"signals": {"template": true}, "raw_text": "edX Data Science"}'
            return R()

    class FakeClient:
        def __init__(self, api_key):
            calls["api_key"] = api_key
            self.models = FakeModels()

    monkeypatch.setattr(ocr.genai, "Client", FakeClient)
    out = ocr.extract_with_gemini(b"img", "image/png")
    assert calls["api_key"] == "test-key"
    assert calls["model"] == app.config["GEMINI_MODEL"]
    assert calls["contents"][1] == ocr.GEMINI_PROMPT
    assert out["title"] == "Data Science"
    assert out["verification_method"] == "template_match"
    assert out["auto_approved"] is True


def test_extract_with_gemini_failure(ctx, app, monkeypatch):
    app.config["GEMINI_API_KEY"] = "test-key"

    class Broken:
        def __init__(self, api_key):
            raise RuntimeError("quota exceeded")

    monkeypatch.setattr(ocr.genai, "Client", Broken)
    with pytest.raises(UpstreamError) as exc:
        ocr.extract_with_gemini(b"img")
    assert "quota exceeded" in exc.value.message


def test_extraction_token_roundtrip(ctx):
    token = ocr.sign_extraction(7, "s3://certificates/7/x.png",
                                {"confidence": 0.95, "verification_method": "logo_match", "auto_approved": True})
    sealed = ocr.load_extraction(token, 7)
    assert sealed["auto_approved"] is True
    assert sealed["file_url"] == "s3://certificates/7/x.png"
    with pytest.raises(ValidationError):
        ocr.load_extraction(token, 8)
    with pytest.raises(ValidationError):
        ocr.load_extraction(token[:-2], 7)
