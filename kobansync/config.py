from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PRODUCT_LOCK_TTL,
    DEFAULT_REQUEST_ATTEMPTS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_DELAY,
)


class KobanSettings(BaseModel):
    """Koban API credentials and payload defaults."""

    api_url: str = ""
    api_key: str = ""
    user_key: str = ""
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_attempts: int = DEFAULT_REQUEST_ATTEMPTS
    backoff_base: float = DEFAULT_BACKOFF_BASE

    invoice_prefix: str = "WC-"
    payment_prefix: str = "WC-PAY-"
    product_prefix: str = "WC-"
    payment_mode_code: str = "CB"
    assigned_to_fullname: str = ""
    third_status_code: str = "C"
    default_third_type_code: str = "Particuliers (Autre)"
    country_third_type_codes: Dict[str, str] = Field(
        default_factory=lambda: {"FR": "Particuliers (France)"}
    )
    vat_rate: float = 20.0

    pdf_dir: Path = Path("protected-pdfs")


class RedisConfig(BaseModel):
    """Configuration for Redis backed queue and locks."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Job queue configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class WorkflowSettings(BaseModel):
    """Driver level retry policy."""

    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: int = DEFAULT_RETRY_DELAY
    product_lock_ttl: int = DEFAULT_PRODUCT_LOCK_TTL


class KobanSyncConfig(BaseModel):
    """Top-level configuration model."""

    koban: KobanSettings = KobanSettings()
    transport: TransportConfig = TransportConfig()
    workflow: WorkflowSettings = WorkflowSettings()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> KobanSyncConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to KOBANSYNC_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("KOBANSYNC_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = KobanSyncConfig(**data)
    else:
        config = KobanSyncConfig()

    if api_url := os.getenv("KOBAN_API_URL"):
        config.koban.api_url = api_url
    if api_key := os.getenv("KOBAN_API_KEY"):
        config.koban.api_key = api_key
    if user_key := os.getenv("KOBAN_USER_KEY"):
        config.koban.user_key = user_key

    env_db_url = os.getenv("KOBANSYNC_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
