"""Application configuration using Pydantic Settings v2.

Loads configuration from environment variables with .env file support and
an optional YAML file (``config.yaml`` or the path in ``LOGVAULT_CONFIG``).
Nested YAML sections are flattened, so ``syslog: {port: 514}`` sets
``syslog_port`` and matches the ``SYSLOG_PORT`` environment variable.
"""

from __future__ import annotations

import functools
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal
from urllib.parse import quote

import yaml
from pydantic import field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "LOGVAULT_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into ``section_key`` names."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        else:
            flat[name.lower()] = value
    return flat


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML config file."""
    with path.open("r") as fh:
        return yaml.safe_load(fh) or {}


class YamlFileSettingsSource(PydanticBaseSettingsSource):
    """Settings source reading a (possibly nested) YAML config file.

    A missing file is not an error; any other read or parse failure is.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: str | None = None) -> None:
        super().__init__(settings_cls)
        self.path = Path(path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Values are resolved in bulk by __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        data = _load_yaml(self.path)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {self.path} must contain a mapping")
        flat = _flatten(data)
        known = self.settings_cls.model_fields
        unknown = sorted(k for k in flat if k not in known)
        if unknown:
            logger.warning("Ignoring unknown config keys in %s: %s", self.path, ", ".join(unknown))
        return {k: v for k, v in flat.items() if k in known}


class Settings(BaseSettings):
    """LogVault application settings.

    Configuration is loaded from environment variables, a .env file in the
    working directory, and finally the YAML config file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────
    app_name: str = "LogVault"
    debug: bool = False
    log_level: str = "INFO"

    # ── Syslog listener ──────────────────────────────────────────
    syslog_host: str = "0.0.0.0"  # noqa: S104 - listens on all interfaces by default  # nosec B104
    syslog_port: int = 514
    syslog_protocol: Literal["udp", "tcp", "both"] = "udp"
    syslog_format: Literal["rfc5424", "rfc3164", "automatic"] = "automatic"
    syslog_tag_precedence: Literal["structured", "legacy"] = "structured"
    syslog_queue_size: int = 10000

    # ── Redis ────────────────────────────────────────────────────
    redis_address: str = "localhost:6379"
    redis_password: str = ""
    redis_db: int = 0
    redis_url: str | None = None

    # ── Web ──────────────────────────────────────────────────────
    web_host: str = "0.0.0.0"  # noqa: S104  # nosec B104
    web_port: int = 8080
    web_secret: str = ""
    web_static_dir: str = "static"
    session_expiry_hours: int = 24
    session_sweep_interval_seconds: int = 300
    cookie_secure: bool = False
    cors_origins: list[str] = []

    # ── API auth ─────────────────────────────────────────────────
    api_bearer_token: str = ""

    # ── External notification ────────────────────────────────────
    external_api_enabled: bool = False
    external_api_url: str = ""
    external_api_method: str = "POST"
    external_api_bearer_token: str = ""
    external_api_trigger_tag: str = "ALARM"  # Comma-separated list
    external_api_timeout_seconds: float = 10.0
    external_api_verify_tls: bool = False
    external_api_worker_count: int = 4
    external_api_queue_size: int = 1000

    # ── Classification ───────────────────────────────────────────
    insights_tag: str = "INSIGHTS"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlFileSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        """Parse CORS origins from JSON string, comma list or list."""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, list):
            return [str(item) for item in v]
        return []

    @field_validator("external_api_method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        method = v.strip().upper()
        if not method:
            raise ValueError("external_api_method must not be empty")
        return method

    @field_validator("syslog_queue_size", "external_api_worker_count", "external_api_queue_size")
    @classmethod
    def require_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @model_validator(mode="after")
    def build_derived_urls(self) -> Settings:
        """Build redis_url from address, password and db if not set."""
        if not self.redis_url:
            auth = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
            self.redis_url = f"redis://{auth}{self.redis_address}/{self.redis_db}"
        return self


@functools.lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""
    return Settings()
