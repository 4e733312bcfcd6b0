# admitbot/config.py
"""Environment-driven settings. `.env` is loaded once, here."""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv(override=False)

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


# Database -------------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./admitbot.db")
DB_ECHO = _env_bool("DB_ECHO", False)


# Sessions -------------------------------------------------------------------
_DEV_JWT_SECRET = "dev-only-admitbot-secret-change-me"
JWT_SECRET = os.getenv("JWT_SECRET") or _DEV_JWT_SECRET
if JWT_SECRET == _DEV_JWT_SECRET:
    logger.warning("JWT_SECRET is not set; using the development secret")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)

COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


# LLM provider (any OpenAI-compatible chat-completions API) ----------------
LLM_API_KEY = os.getenv("GROQ_API_KEY") or os.getenv("LLM_API_KEY")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1")
LLM_MODEL = os.getenv("LLM_MODEL", "mixtral-8x7b-32768")


# Mail -----------------------------------------------------------------------
MAIL_HOST = os.getenv("MAIL_HOST")
MAIL_PORT = _env_int("MAIL_PORT", 587)
MAIL_USER = os.getenv("MAIL_USER")
MAIL_PASS = os.getenv("MAIL_PASS")
MAIL_FROM = os.getenv("MAIL_FROM") or MAIL_USER or "no-reply@studentguide.ai"
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "StudentGuideAI - Educational Assistant")
MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)


# OTP / chat -----------------------------------------------------------------
OTP_TTL_MINUTES = _env_int("OTP_TTL_MINUTES", 5)
OTP_LENGTH = _env_int("OTP_LENGTH", 6)
CHAT_HISTORY_LIMIT = _env_int("CHAT_HISTORY_LIMIT", 50)


# HTTP -----------------------------------------------------------------------
_local_dev_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
]
ALLOWED_CORS_ORIGINS = list(
    dict.fromkeys([*_split_csv(os.getenv("ALLOWED_CORS_ORIGINS")), *_local_dev_origins])
)

PORT = _env_int("PORT", 5000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
