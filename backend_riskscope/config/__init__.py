"""
Configuration management for Backend RiskScope.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for service configuration.
"""

from backend_riskscope.config.settings import Settings, get_settings, reset_settings  # noqa: F401

__all__ = ["Settings", "get_settings", "reset_settings"]
