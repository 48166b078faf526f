# Runtime configuration - environment driven, every setting optional
"""
Centralized configuration for the result service.

Values are read from the environment on each call so tests can
monkeypatch them; main.py loads a .env file (python-dotenv) before
the app is imported.
"""

import os
import sys
from typing import List, Optional

from loguru import logger

DEFAULT_CORS_PROXY_URL = "https://api.allorigins.win/raw?url="
DEFAULT_SOURCE_TIMEOUT_SECONDS = 15.0
DEFAULT_PREFETCH_DELAY_SECONDS = 0.3
DEFAULT_MEMORY_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_DURABLE_CACHE_TTL_SECONDS = 30 * 24 * 60 * 60

OCR_MODES = ("auto", "gemini", "tesseract")


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    if value < 0:
        logger.warning(f"Negative {name}={raw!r}, using default {default}")
        return default
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_cors_proxy_url() -> str:
    return os.getenv("CORS_PROXY_URL", DEFAULT_CORS_PROXY_URL)


def get_source_timeout() -> float:
    timeout = _get_float("SOURCE_TIMEOUT_SECONDS", DEFAULT_SOURCE_TIMEOUT_SECONDS)
    # zero would mean "no timeout" to some callers; never allow it
    return timeout if timeout > 0 else DEFAULT_SOURCE_TIMEOUT_SECONDS


def get_prefetch_delay() -> float:
    return _get_float("PREFETCH_DELAY_SECONDS", DEFAULT_PREFETCH_DELAY_SECONDS)


def get_memory_cache_ttl() -> int:
    return int(_get_float("MEMORY_CACHE_TTL_SECONDS", DEFAULT_MEMORY_CACHE_TTL_SECONDS))


def get_durable_cache_ttl() -> int:
    return int(_get_float("DURABLE_CACHE_TTL_SECONDS", DEFAULT_DURABLE_CACHE_TTL_SECONDS))


def get_redis_url() -> Optional[str]:
    return os.getenv("REDIS_URL") or None


def get_gemini_api_key() -> Optional[str]:
    return os.getenv("GEMINI_API_KEY") or None


def get_ocr_default_mode() -> str:
    mode = os.getenv("OCR_DEFAULT_MODE", "auto").strip().lower()
    if mode not in OCR_MODES:
        logger.warning(f"Unknown OCR_DEFAULT_MODE={mode!r}, using 'auto'")
        return "auto"
    return mode


def get_tesseract_cmd() -> Optional[str]:
    return os.getenv("TESSERACT_CMD") or None


def is_prefetch_schedule_enabled() -> bool:
    return _get_bool("PREFETCH_SCHEDULE_ENABLED", False)


def get_prefetch_schedule_regions() -> List[str]:
    raw = os.getenv("PREFETCH_SCHEDULE_REGIONS", "south,central,north")
    return [r.strip().lower() for r in raw.split(",") if r.strip()]


def get_cors_allow_origins() -> List[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def configure_logging() -> None:
    """Replace loguru's default sink with one at LOG_LEVEL."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger.remove()
    try:
        logger.add(sys.stderr, level=level)
    except ValueError:
        logger.add(sys.stderr, level="INFO")
        logger.warning(f"Unknown LOG_LEVEL={level!r}, using INFO")
