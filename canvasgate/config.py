from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnomalyThresholds(BaseModel):
    requests_per_hour: int = Field(default=100, ge=1)
    exports_per_hour: int = Field(default=10, ge=1)
    cost_per_day: float = Field(default=50.0, gt=0)
    failed_auth_attempts: int = Field(default=5, ge=1)
    concurrent_sessions: int = Field(default=3, ge=1)


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CANVASGATE_", extra="ignore")

    app_name: str = "canvasgate"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_json: bool = True
    config_path: str = "config.yaml"

    encryption_key: str | None = None
    previous_encryption_keys: list[str] = Field(default_factory=list)
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    operator_ids: list[str] = Field(default_factory=list)
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Process-wide fallback credentials
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    google_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    upstream_timeout: float = 60.0

    redis_url: str | None = None
    complete_rate_limit: int = 50
    stream_rate_limit: int = 30
    rate_limit_window_ms: int = 60_000

    default_provider: str = "openai"
    default_model: str = "gpt-4o"
    default_temperature: float = 0.7
    default_max_tokens: int = 4000
    hard_max_tokens: int = 600

    stream_persist_min_chunks: int = 5
    stream_persist_interval_ms: int = 500

    metrics_retention_hours: int = 24
    activity_retention_hours: int = 24
    anomaly_thresholds: AnomalyThresholds = Field(default_factory=AnomalyThresholds)

    @field_validator("allowed_origins", "operator_ids", mode="before")
    @classmethod
    def split_csv(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.startswith("["):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def fallback_key(self, provider: str) -> str | None:
        return {
            "openai": self.openai_api_key or os.getenv("OPENAI_API_KEY"),
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }.get(provider)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "GatewaySettings":
        overrides = load_yaml_config(path).get("gateway_settings") or {}
        return cls(**overrides)


def _resolve_env_token(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("os.environ/"):
        env_name = value.split("/", 1)[1]
        return os.getenv(env_name)
    if isinstance(value, dict):
        return {k: _resolve_env_token(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_token(v) for v in value]
    return value


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    cfg_path = Path(path)
    if not cfg_path.exists():
        return {}

    data = yaml.safe_load(cfg_path.read_text()) or {}
    return _resolve_env_token(data)


@lru_cache
def get_settings() -> GatewaySettings:
    settings = GatewaySettings()
    if Path(settings.config_path).exists():
        return GatewaySettings.from_yaml(settings.config_path)
    return settings
