"""Environment-driven settings for the duplicate checker.

Values are read once (after python-dotenv has loaded any `.env` file) and
passed explicitly to the components that need them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from dupcheck.error_handling import ConfigurationError


DEFAULT_RECORD_STORE_PATH = Path(__file__).parent / "data" / "seed_records.json"


@dataclass(frozen=True)
class Settings:
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    oracle_timeout_seconds: float = 5.0
    oracle_retry_attempts: int = 1
    semantic_duplicate_threshold: float = 0.7
    keyword_duplicate_threshold: float = 0.5
    record_store_path: Path = DEFAULT_RECORD_STORE_PATH
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_json: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8000"]
    )
    rate_limit_requests: int = 50
    rate_limit_window_seconds: int = 60
    tls_enabled: bool = False
    tls_cert_path: Optional[str] = None
    tls_key_path: Optional[str] = None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")


def load_settings() -> Settings:
    """Build Settings from the process environment.

    Raises:
        ConfigurationError: If a numeric setting cannot be parsed or is out of range
    """
    load_dotenv()

    timeout = _env_float("ORACLE_TIMEOUT_SECONDS", 5.0)
    if timeout <= 0:
        raise ConfigurationError("ORACLE_TIMEOUT_SECONDS must be positive")

    attempts = _env_int("ORACLE_RETRY_ATTEMPTS", 1)
    if attempts < 1:
        raise ConfigurationError("ORACLE_RETRY_ATTEMPTS must be at least 1")

    semantic_threshold = _env_float("SEMANTIC_DUPLICATE_THRESHOLD", 0.7)
    keyword_threshold = _env_float("KEYWORD_DUPLICATE_THRESHOLD", 0.5)
    for name, value in (
        ("SEMANTIC_DUPLICATE_THRESHOLD", semantic_threshold),
        ("KEYWORD_DUPLICATE_THRESHOLD", keyword_threshold),
    ):
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")

    rate_limit_requests = _env_int("RATE_LIMIT_REQUESTS", 50)
    rate_limit_window = _env_int("RATE_LIMIT_WINDOW", 60)
    for name, value in (
        ("RATE_LIMIT_REQUESTS", rate_limit_requests),
        ("RATE_LIMIT_WINDOW", rate_limit_window),
    ):
        if value < 1:
            raise ConfigurationError(f"{name} must be at least 1, got {value}")

    store_path = os.getenv("RECORD_STORE_PATH", "").strip()
    cors = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8000")

    return Settings(
        google_api_key=os.getenv("GOOGLE_API_KEY", "").strip() or None,
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash").strip(),
        oracle_timeout_seconds=timeout,
        oracle_retry_attempts=attempts,
        semantic_duplicate_threshold=semantic_threshold,
        keyword_duplicate_threshold=keyword_threshold,
        record_store_path=Path(store_path) if store_path else DEFAULT_RECORD_STORE_PATH,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_dir=os.getenv("LOG_DIR", "logs"),
        log_json=_env_bool("LOG_JSON"),
        api_host=os.getenv("API_HOST", "0.0.0.0"),
        api_port=_env_int("API_PORT", 8000),
        api_reload=_env_bool("API_RELOAD"),
        cors_origins=[origin.strip() for origin in cors.split(",") if origin.strip()],
        rate_limit_requests=rate_limit_requests,
        rate_limit_window_seconds=rate_limit_window,
        tls_enabled=_env_bool("TLS_ENABLED"),
        tls_cert_path=os.getenv("TLS_CERT_PATH", "").strip() or None,
        tls_key_path=os.getenv("TLS_KEY_PATH", "").strip() or None,
    )
