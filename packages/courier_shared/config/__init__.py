"""Public API for courier configuration."""

from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    BreakerSettings,
    CollectorSettings,
    CourierSettings,
    LoggingSettings,
    ResilienceSettings,
    RetrySettings,
    ServiceEndpointSettings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "BreakerSettings",
    "CollectorSettings",
    "CourierSettings",
    "LoggingSettings",
    "ResilienceSettings",
    "RetrySettings",
    "ServiceEndpointSettings",
    "load_settings",
]
