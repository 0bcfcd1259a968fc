"""Security checks for the API process: settings validation, response headers, TLS."""

import os
import re
from typing import Dict, List, Optional

from msgspec import Struct

from dupcheck.config import Settings
from dupcheck.error_handling import ConfigurationError


PLACEHOLDER_API_KEYS = frozenset({
    "your_gemini_api_key_here",
    "your_api_key_here",
    "placeholder",
    "test_key",
    "demo_key",
})

# Google API keys are "AIza" followed by 35 URL-safe characters
GOOGLE_KEY_PATTERN = re.compile(r"^AIza[A-Za-z0-9_-]{35}$")
GENERIC_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{20,}$")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
}


class SecurityReport(Struct):
    """Outcome of validating the process settings before serving traffic."""
    errors: List[str] = []
    warnings: List[str] = []

    @property
    def valid(self) -> bool:
        return not self.errors


def is_plausible_api_key(api_key: Optional[str]) -> bool:
    """True for keys shaped like a real Gemini key; placeholders never pass."""
    if not api_key or api_key.lower() in PLACEHOLDER_API_KEYS:
        return False
    return bool(GOOGLE_KEY_PATTERN.match(api_key) or GENERIC_KEY_PATTERN.match(api_key))


def validate_environment_security(settings: Settings) -> SecurityReport:
    """Check the loaded settings for unsafe or broken values.

    A missing Gemini key is a warning: semantic checks then run on keyword
    similarity. A malformed key or unusable TLS files are errors.
    """
    report = SecurityReport()

    if settings.google_api_key is None:
        report.warnings.append(
            "GOOGLE_API_KEY is not set. Semantic duplicate checks will use keyword similarity only."
        )
    elif not is_plausible_api_key(settings.google_api_key):
        report.errors.append("GOOGLE_API_KEY has invalid format or is a placeholder")

    if "*" in settings.cors_origins:
        report.warnings.append("CORS_ORIGINS includes wildcard (*). This is insecure for production.")
    elif not settings.cors_origins:
        report.warnings.append("CORS_ORIGINS is empty; browsers cannot call the API")

    try:
        if get_tls_config(settings) is None:
            report.warnings.append("TLS is not enabled. HTTPS should be used in production.")
    except ConfigurationError as e:
        report.errors.append(str(e))

    if settings.log_level == "DEBUG":
        report.warnings.append(
            "LOG_LEVEL is DEBUG; oracle prompts and record details will be logged."
        )

    return report


def get_security_headers() -> Dict[str, str]:
    return dict(SECURITY_HEADERS)


def get_tls_config(settings: Settings) -> Optional[Dict[str, str]]:
    """Certificate and key paths for uvicorn, or None when TLS is off.

    Raises:
        ConfigurationError: If TLS is enabled without readable certificate and key files
    """
    if not settings.tls_enabled:
        return None

    if not settings.tls_cert_path or not settings.tls_key_path:
        raise ConfigurationError("TLS_ENABLED is true but TLS_CERT_PATH/TLS_KEY_PATH are not set")

    for name, path in (("certificate", settings.tls_cert_path), ("key", settings.tls_key_path)):
        if not os.path.isfile(path):
            raise ConfigurationError(f"TLS {name} not found: {path}")

    return {"certfile": settings.tls_cert_path, "keyfile": settings.tls_key_path}
