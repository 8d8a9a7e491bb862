"""Typed configuration models for courier runtime settings."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "courier" / "courier.yaml"


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "courier"
    environment: str = "dev"


class BreakerSettings(BaseModel):
    """Circuit breaker thresholds applied to every protected dependency."""

    failure_threshold: int = Field(default=5, gt=0)
    open_duration_seconds: float = Field(default=30.0, ge=0)
    probe_cooldown_seconds: float = Field(default=60.0, gt=0)


class RetrySettings(BaseModel):
    """Default retry policy for outbound calls."""

    max_attempts: int = Field(default=3, gt=0)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)
    exponential_backoff: bool = True
    jitter: bool = True

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> RetrySettings:
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self


class CollectorSettings(BaseModel):
    """Rolling error history bounds."""

    max_errors: int = Field(default=100, gt=0)
    recent_window_minutes: float = Field(default=10.0, gt=0)


class ResilienceSettings(BaseModel):
    """Resilience subtree: breaker, retry, and error collector."""

    breaker: BreakerSettings = Field(default_factory=BreakerSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    collector: CollectorSettings = Field(default_factory=CollectorSettings)


class ServiceEndpointSettings(BaseModel):
    """Connection settings for one external dependency."""

    base_url: str
    timeout_seconds: float = Field(default=30.0, gt=0)
    headers: dict[str, str] = Field(default_factory=dict)
    retry: RetrySettings | None = None


class CourierSettings(BaseSettings):
    """Root runtime settings resolved from init/env/yaml/defaults sources."""

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    resilience: ResilienceSettings = Field(default_factory=ResilienceSettings)
    services: dict[str, ServiceEndpointSettings] = Field(default_factory=dict)

    _config_path: ClassVar[Path] = DEFAULT_CONFIG_PATH

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Apply precedence: init > env > yaml > model defaults."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=cls._config_path,
                yaml_file_encoding="utf-8",
            ),
        )

    def service(self, name: str) -> ServiceEndpointSettings:
        """Return one configured dependency, raising ``KeyError`` when absent."""
        try:
            return self.services[name]
        except KeyError:
            raise KeyError(f"services.{name} is not configured") from None
