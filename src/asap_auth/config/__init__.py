"""Configuration management utilities."""

from .settings import BaseUrlMappingConfig, ServiceSettings, SigningSettings, load_settings

__all__ = [
    "BaseUrlMappingConfig",
    "SigningSettings",
    "ServiceSettings",
    "load_settings",
]
