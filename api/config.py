"""
Environment-aware configuration.
Secrets, token lifetimes, cookie flags, sandbox limits and the default
generative-AI key all come from the environment (.env is read if present).
"""
import os
import sys
import tempfile
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()  # Read .env if present

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///tutor.db")
    # Comma-separated list of front-end origins allowed to send credentials
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # jwt configurations; access and refresh tokens use distinct secrets
    ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", os.getenv("SECRET_KEY", DEV_ACCESS_SECRET))
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", DEV_REFRESH_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=_int("ACCESS_TOKEN_EXPIRES_SECONDS", 15 * 60))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=_int("REFRESH_TOKEN_EXPIRES_SECONDS", 7 * 24 * 3600))
    ROTATE_REFRESH_ON_REFRESH = _flag("ROTATE_REFRESH_ON_REFRESH", "false")
    REVOKE_REFRESH_ON_LOGOUT = _flag("REVOKE_REFRESH_ON_LOGOUT", "true")

    COOKIE_SECURE = _flag("COOKIE_SECURE", "true")
    COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "None")

    # Generative AI
    GENERATIVE_API_KEY = os.getenv("GENERATIVE_API_KEY") or None
    ALLOW_DEFAULT_API_KEY = _flag("ALLOW_DEFAULT_API_KEY", "true")
    GEMINI_MODEL_NAME = os.getenv("GEMINI_MODEL_NAME", "gemini-1.5-flash")

    # Execution sandbox
    SANDBOX_DIR = os.getenv("SANDBOX_DIR", os.path.join(os.getcwd(), "temp"))
    SANDBOX_PYTHON = os.getenv("SANDBOX_PYTHON", "python3")
    SANDBOX_TIMEOUT_SECONDS = float(os.getenv("SANDBOX_TIMEOUT_SECONDS", "10"))
    SANDBOX_CPU_SECONDS = _int("SANDBOX_CPU_SECONDS", 5)
    SANDBOX_MEMORY_BYTES = _int("SANDBOX_MEMORY_BYTES", 256 * 1024 * 1024)
    SANDBOX_MAX_OUTPUT_CHARS = _int("SANDBOX_MAX_OUTPUT_CHARS", 64 * 1024)
    SANDBOX_MAX_CONCURRENCY = _int("SANDBOX_MAX_CONCURRENCY", 0)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    COOKIE_SECURE = _flag("COOKIE_SECURE", "false")
    COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "Lax")


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "production"


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite://"
    ACCESS_TOKEN_SECRET = "test-access-secret"
    REFRESH_TOKEN_SECRET = "test-refresh-secret"
    COOKIE_SECURE = False
    COOKIE_SAMESITE = "Lax"
    GENERATIVE_API_KEY = None
    ALLOW_DEFAULT_API_KEY = True
    ROTATE_REFRESH_ON_REFRESH = False
    REVOKE_REFRESH_ON_LOGOUT = True
    SANDBOX_DIR = os.path.join(tempfile.gettempdir(), "tutor-sandbox-tests")
    SANDBOX_PYTHON = sys.executable
    SANDBOX_TIMEOUT_SECONDS = 10.0
    SANDBOX_CPU_SECONDS = 0
    SANDBOX_MEMORY_BYTES = 0
    SANDBOX_MAX_CONCURRENCY = 0


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Refuse configurations that would break token separation."""
    if config["ACCESS_TOKEN_SECRET"] == config["REFRESH_TOKEN_SECRET"]:
        raise RuntimeError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
    if config.get("APP_ENV", "dev").lower() in ("prod", "production") and (
        config["ACCESS_TOKEN_SECRET"] == DEV_ACCESS_SECRET
        or config["REFRESH_TOKEN_SECRET"] == DEV_REFRESH_SECRET
    ):
        raise RuntimeError("Set ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET in production")
