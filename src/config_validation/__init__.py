"""Configuration validation utilities."""

from .validator import CONFIG_SCHEMA, ConfigurationValidator

__all__ = ["CONFIG_SCHEMA", "ConfigurationValidator"]
