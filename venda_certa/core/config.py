import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env(key: str, default=None):
    v = os.getenv(key)
    return v if v not in (None, "", "None") else default


def _env_int(key: str, default: int) -> int:
    try:
        return int(_env(key, default))
    except (TypeError, ValueError):
        return default


def _env_list(key: str, default: str) -> List[str]:
    raw = _env(key, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class Settings:
    """Runtime configuration read from the environment (and ``.env`` if present)."""

    database_url: str = field(
        default_factory=lambda: _env("DATABASE_URL", "sqlite:///./venda_certa.db")
    )
    environment: str = field(default_factory=lambda: _env("ENVIRONMENT", "development"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    jwt_secret: str = field(default_factory=lambda: _env("JWT_SECRET", "dev-please-change-me-venda-certa-jwt"))
    jwt_algorithm: str = field(default_factory=lambda: _env("JWT_ALGORITHM", "HS256"))
    default_page_size: int = field(default_factory=lambda: _env_int("DEFAULT_PAGE_SIZE", 10))
    max_page_size: int = field(default_factory=lambda: _env_int("MAX_PAGE_SIZE", 100))
    cors_origins: List[str] = field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
