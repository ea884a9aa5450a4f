import math
import os
from dotenv import load_dotenv

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return float(default)


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return int(default)


def exchange_rate_from_env(default=4100.0):
    """KHR per USD from USD_TO_KHR, then EXCHANGE_RATE_KHR. Unparseable or nonpositive values are skipped."""
    for name in ("USD_TO_KHR", "EXCHANGE_RATE_KHR"):
        value = os.environ.get(name, "").strip()
        if not value:
            continue
        try:
            rate = float(value)
        except ValueError:
            continue
        if math.isfinite(rate) and rate > 0:
            return rate
    return default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///" + os.path.join(basedir, "..", "teaching_contracts.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Blob storage root for signature images and rendered PDFs
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(basedir, "..", "uploads"))

    # Financials
    USD_TO_KHR = exchange_rate_from_env()

    # Signature intake
    SIGNATURE_MAX_BYTES = _env_int("SIGNATURE_MAX_BYTES", 10 * 1024 * 1024)
    SIGNATURE_CAS_RETRIES = _env_int("SIGNATURE_CAS_RETRIES", 3)
    # Request ceiling sits above the signature ceiling; intake enforces the latter.
    MAX_CONTENT_LENGTH = SIGNATURE_MAX_BYTES * 2

    # Document rendering
    RENDER_TIMEOUT_SECONDS = _env_float("RENDER_TIMEOUT_SECONDS", 30)
    RENDER_WORKERS = _env_int("RENDER_WORKERS", 2)
    CONTRACT_LOGO_PATH = os.environ.get("CONTRACT_LOGO_PATH", "")

    # Listing
    CONTRACTS_PER_PAGE = 10
    CONTRACTS_MAX_PER_PAGE = 100

    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    SIGNATURE_RATE_LIMIT = os.environ.get("SIGNATURE_RATE_LIMIT", "30 per minute")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RATELIMIT_ENABLED = False
    RENDER_TIMEOUT_SECONDS = 5
