"""
Centralized client settings using Pydantic.

All environment variables are read once and validated.
Use this instead of scattered os.getenv() calls throughout the codebase.
"""

from functools import lru_cache
from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """OCR backend connection, polling and logging configuration."""

    OCR_API_BASE_URL: str = "http://localhost:8000"
    OCR_API_KEY: Optional[SecretStr] = None
    OCR_API_KEY_HEADER: str = "x-api-key"
    OCR_VERIFY_SSL: bool = True

    OCR_REQUEST_TIMEOUT_SECONDS: float = 30.0
    OCR_UPLOAD_TIMEOUT_SECONDS: float = 300.0

    OCR_POLL_INTERVAL_SECONDS: float = 5.0
    OCR_POLL_MAX_ATTEMPTS: int = 120
    OCR_BATCH_POLL_INTERVAL_SECONDS: float = 5.0
    OCR_BATCH_POLL_MAX_ATTEMPTS: int = 120
    OCR_POLL_MAX_ELAPSED_SECONDS: Optional[float] = None

    OCR_MAX_FILE_SIZE_MB: int = 100
    OCR_MAX_CONCURRENT_UPLOADS: int = 1
    OCR_PROGRESS_TICK_SECONDS: float = 1.0

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}

    @property
    def api_key(self) -> Optional[str]:
        """Plain API key value, or None when not configured."""
        if self.OCR_API_KEY is None:
            return None
        value = self.OCR_API_KEY.get_secret_value().strip()
        return value or None


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    return ClientSettings()
