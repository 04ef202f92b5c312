import functools
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

MB = 1024 * 1024


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (and a local .env file)."""

    google_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0

    # remote | pattern | fallback | auto
    detector: str = "auto"
    pii_config_path: str | None = None

    max_files_per_request: int = 5
    max_file_size: int = 10 * MB
    max_request_size: int = 10 * MB
    file_timeout_seconds: float = 90.0

    allowed_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:8000", "http://127.0.0.1:8000"]
    )
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", defaults.gemini_model),
            gemini_api_base=os.getenv("GEMINI_API_BASE", defaults.gemini_api_base),
            gemini_timeout_seconds=float(
                os.getenv("GEMINI_TIMEOUT_SECONDS", defaults.gemini_timeout_seconds)
            ),
            detector=os.getenv("PII_DETECTOR", defaults.detector).strip().lower(),
            pii_config_path=os.getenv("PII_CONFIG_PATH") or None,
            max_files_per_request=int(
                os.getenv("MAX_FILES_PER_REQUEST", defaults.max_files_per_request)
            ),
            max_file_size=int(os.getenv("MAX_FILE_SIZE", defaults.max_file_size)),
            max_request_size=int(os.getenv("MAX_REQUEST_SIZE", defaults.max_request_size)),
            file_timeout_seconds=float(
                os.getenv("FILE_TIMEOUT_SECONDS", defaults.file_timeout_seconds)
            ),
            allowed_origins=_split_origins(
                os.getenv("ALLOWED_ORIGINS", ",".join(defaults.allowed_origins))
            ),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings. Call ``get_settings.cache_clear()`` in tests."""
    return Settings.from_env()
