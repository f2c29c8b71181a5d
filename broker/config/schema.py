# ==============================
# Config Schemas (Pydantic)
# ==============================
"""
Pydantic settings models for toolbroker.

Notes:
- Keep these schemas stable: integrations and gateways depend on them.
- No env reads here. No file IO here. Pure types + defaults.
- loader.py builds a single Settings object with precedence merging.
- Missing credentials are valid configuration: the matching backend is
  simply unconfigured at runtime.

Precedence (implemented in loader.py):
startup overrides > env > .env > secrets/secrets.yaml > configs/*.yaml > defaults
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_NEON_BASE_URL = "https://console.neon.tech/api/v2"


# ==============================
# App Settings
# ==============================


class PathsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repo_root: str = Field(default=".", description="Repo root (relative or absolute)")
    configs_dir: str = Field(default="configs", description="Configs directory")
    secrets_dir: str = Field(default="secrets", description="Secrets directory")


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="toolbroker")
    env: str = Field(default="local", description="Environment name (local/stage/prod)")
    debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==============================
# Backend Settings
# ==============================


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: Optional[str] = Field(default=None, description="redis:// or rediss:// connection string")
    page_size: int = Field(default=100, description="SCAN COUNT hint per page")
    list_limit: int = Field(default=100, description="Default cap for list_keys")
    socket_timeout: Optional[float] = Field(default=10.0)

    @field_validator("page_size", "list_limit")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v


class NeonConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: Optional[str] = Field(default=None, description="Resolved via loader from env/secrets only")
    base_url: str = Field(default=DEFAULT_NEON_BASE_URL)
    timeout_seconds: float = Field(default=30.0)


# ==============================
# Logging Settings
# ==============================


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    level: str = Field(default="INFO")
    redact: bool = Field(default=True)
    redact_patterns: List[str] = Field(default_factory=list)
    json_lines: bool = Field(default=True, alias="json", description="JSON lines on stderr")


# ==============================
# Integrations Settings
# ==============================


class IntegrationsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: List[str] = Field(
        default_factory=lambda: ["store", "neon"],
        description="Integration packs to register, in catalog order",
    )


# ==============================
# Secrets Settings
# ==============================


class SecretsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    # Common secret surfaces. Keep optional; loader fills.
    redis_url: Optional[str] = Field(default=None)
    neon_api_key: Optional[str] = Field(default=None)


# ==============================
# Top-Level Settings
# ==============================


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    app: AppConfig = Field(default_factory=AppConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    neon: NeonConfig = Field(default_factory=NeonConfig)
    integrations: IntegrationsConfig = Field(default_factory=IntegrationsConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)

    def repo_root_path(self) -> Path:
        return Path(self.app.paths.repo_root).expanduser().resolve()
