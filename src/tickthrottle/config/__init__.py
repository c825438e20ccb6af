"""
Configuration module for tickthrottle

Provides unified configuration loading from:
1. config/config.yaml (master configuration)
2. .env file (deployment values such as the task path)
3. Environment variables (override)
"""

from .loader import (
    Config,
    ListenerSettings,
    StorageSettings,
    TaskSettings,
    ThrottleSettings,
    load_config,
    reset_config_cache,
)

__all__ = [
    "load_config",
    "reset_config_cache",
    "Config",
    "ListenerSettings",
    "ThrottleSettings",
    "StorageSettings",
    "TaskSettings",
]
