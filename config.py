import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///campussync.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@example.com")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "CampusSync")
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_DIR = os.getenv("LOCAL_STORAGE_DIR", "./storage")
    S3_ENDPOINT = os.getenv("S3_ENDPOINT")
    S3_REGION = os.getenv("S3_REGION")
    S3_BUCKET = os.getenv("S3_BUCKET", "certificates")
    S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")
    S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")
    # unset by default: the 10MB upload limit is guidance for clients only
    MAX_CONTENT_LENGTH = int(os.environ["MAX_UPLOAD_BYTES"]) if os.getenv("MAX_UPLOAD_BYTES") else None

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    AUTO_APPROVE_THRESHOLD = float(os.getenv("AUTO_APPROVE_THRESHOLD", "0.9"))
    EXTRACTION_TOKEN_MAX_AGE = int(os.getenv("EXTRACTION_TOKEN_MAX_AGE", "86400"))

    VC_ISSUER_DID = os.getenv("VC_ISSUER_DID", "did:web:example.org")
    VC_VERIFICATION_METHOD = os.getenv("VC_VERIFICATION_METHOD")  # defaults to <did>#keys-1
    VC_SIGNING_KEY = os.getenv("VC_SIGNING_KEY")  # PEM private key (or shared secret for HS*)
    VC_VERIFY_KEY = os.getenv("VC_VERIFY_KEY")  # PEM public key; unused for HS*
    VC_SIGNING_ALG = os.getenv("VC_SIGNING_ALG", "ES256")
    VC_KEY_ID = os.getenv("VC_KEY_ID", "keys-1")

    ROLE_CHANGE_TOKEN_MAX_AGE = int(os.getenv("ROLE_CHANGE_TOKEN_MAX_AGE", "600"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    REDIS_URL = None
    SENDGRID_API_KEY = None
    GEMINI_API_KEY = None
    STORAGE_BACKEND = "local"
    VC_SIGNING_KEY = "test-signing-key-with-enough-length-for-hs256"
    VC_SIGNING_ALG = "HS256"
