# Runtime configuration - read once from the environment (and an optional .env file)
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _split_origins(raw: str):
    # '*' means any origin, otherwise a comma separated list
    if raw.strip() == "*":
        return "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 3005
    downloads_dir: str = os.path.join(BASE_DIR, "downloads")
    public_dir: str = os.path.join(BASE_DIR, "public")
    debug: bool = False
    environment: str = "development"
    cors_origins: object = "*"
    log_dir: str = ""
    extraction_timeout: int = 3 * 60
    extraction_workers: int = 4
    cleanup_interval: int = 15 * 60
    file_retention: int = 60 * 60
    rate_limit_max: int = 50
    rate_limit_window: int = 15 * 60
    shutdown_grace: int = 10

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, loading .env first."""
        load_dotenv(find_dotenv(usecwd=True))
        defaults = cls()
        return cls(
            host=os.environ.get("HOST", defaults.host),
            port=_env_int("PORT", defaults.port),
            downloads_dir=os.environ.get("DOWNLOADS_DIR") or defaults.downloads_dir,
            public_dir=os.environ.get("PUBLIC_DIR") or defaults.public_dir,
            debug=_env_flag("DEBUG"),
            environment=os.environ.get("FLASK_ENV") or os.environ.get("NODE_ENV") or defaults.environment,
            cors_origins=_split_origins(os.environ.get("FRONTEND_URL", "*")),
            log_dir=os.environ.get("LOG_DIR", ""),
            extraction_timeout=_env_int("EXTRACTION_TIMEOUT", defaults.extraction_timeout),
            extraction_workers=_env_int("EXTRACTION_WORKERS", defaults.extraction_workers),
            cleanup_interval=_env_int("CLEANUP_INTERVAL", defaults.cleanup_interval),
            file_retention=_env_int("FILE_RETENTION", defaults.file_retention),
            rate_limit_max=_env_int("RATE_LIMIT_MAX", defaults.rate_limit_max),
            rate_limit_window=_env_int("RATE_LIMIT_WINDOW", defaults.rate_limit_window),
            shutdown_grace=_env_int("SHUTDOWN_GRACE", defaults.shutdown_grace),
        )
