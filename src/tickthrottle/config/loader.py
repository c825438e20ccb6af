"""
Configuration Loader for tickthrottle

Loads configuration from YAML file with environment variable interpolation.
Follows Fast Fail principle - crashes immediately if config is invalid.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONFIG_PATH = "config/config.yaml"
CONFIG_PATH_ENV_VAR = "TICKTHROTTLE_CONFIG"

TICK_EVENTS = ("TICK_5", "TICK_60", "TICK_3600")
STORAGE_BACKENDS = ("shared_memory", "memory")


class Config(BaseModel):
    """
    Master configuration model for tickthrottle

    Wraps the raw YAML dictionary. Typed views of the listener settings are
    built from it with ListenerSettings.from_config().
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    # Raw config data (loaded from YAML)
    _raw_config: Dict[str, Any] = {}

    def __init__(self, **data):
        """Initialize with raw config data"""
        super().__init__(**data)
        self._raw_config = data

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get nested config value using dot notation

        Example:
            config.get('throttle.ticks_per_period')  # Returns 10
            config.get('task.command')  # Returns ['php', 'bin/console', ...]

        Args:
            key_path: Dot-separated path to config key
            default: Default value if key not found

        Returns:
            Config value or default
        """
        keys = key_path.split('.')
        value = self._raw_config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_required(self, key_path: str) -> Any:
        """
        Get required config value - raises error if missing

        Raises:
            ValueError: If key not found
        """
        value = self.get(key_path)
        if value is None:
            raise ValueError(f"Required config key not found: {key_path}")
        return value


class ThrottleSettings(BaseModel):
    """Period, cap and cycle lengths plus the counter slot identities"""

    ticks_per_period: int = Field(gt=0)
    max_executions: int = Field(gt=0)
    periods_in_cycle: int = Field(gt=0)
    tick_slot: int = Field(default=2, ge=0)
    execution_slot: int = Field(default=3, ge=0)

    @property
    def tick_slot_size(self) -> int:
        """Bytes needed to hold the largest tick count"""
        return len(str(self.ticks_per_period))

    @property
    def execution_slot_size(self) -> int:
        """Bytes needed to hold the largest execution count"""
        return len(str(self.periods_in_cycle))


class StorageSettings(BaseModel):
    backend: str = "shared_memory"
    name_prefix: str = "tickthrottle"

    @field_validator('backend')
    @classmethod
    def _check_backend(cls, value: str) -> str:
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"storage.backend must be one of {list(STORAGE_BACKENDS)}")
        return value


class TaskSettings(BaseModel):
    command: List[str]
    env_var: str = "APP_ENV"
    cwd: Optional[str] = None

    @field_validator('command')
    @classmethod
    def _check_command(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("task.command must be a non-empty list")
        return value


class ListenerSettings(BaseModel):
    """Everything the listener needs, validated and typed"""

    tick_event: str = "TICK_5"
    throttle: ThrottleSettings
    storage: StorageSettings
    task: TaskSettings

    @classmethod
    def from_config(cls, config: Config) -> "ListenerSettings":
        return cls(
            tick_event=config.get('listener.tick_event', 'TICK_5'),
            throttle=ThrottleSettings(
                ticks_per_period=config.get_required('throttle.ticks_per_period'),
                max_executions=config.get_required('throttle.max_executions'),
                periods_in_cycle=config.get_required('throttle.periods_in_cycle'),
                tick_slot=config.get('storage.tick_slot', 2),
                execution_slot=config.get('storage.execution_slot', 3),
            ),
            storage=StorageSettings(**(config.get('storage') or {})),
            task=TaskSettings(**config.get_required('task')),
        )


def _interpolate_env_vars(config_str: str) -> str:
    """
    Replace ${VAR_NAME} placeholders with environment variables

    Supports:
    - ${VAR_NAME} - Required, crashes if missing
    - ${VAR_NAME:-} - Optional, empty string if missing
    - ${VAR_NAME:-default} - Optional, uses default if missing

    Raises:
        ValueError: If required env var is missing
    """
    # Pattern matches: ${VAR} or ${VAR:-} or ${VAR:-default}
    pattern = re.compile(r'\$\{(\w+)(:-([^}]*))?\}')

    def replacer(match):
        var_name = match.group(1)
        has_default = match.group(2) is not None
        default_value = match.group(3) if match.group(3) else ""

        value = os.getenv(var_name)

        if value is None:
            if has_default:
                return default_value
            else:
                raise ValueError(
                    f"Environment variable '{var_name}' is required but not set. "
                    f"Check your .env file or environment."
                )

        return value

    return pattern.sub(replacer, config_str)


# Global config cache to avoid duplicate loads
_cached_config: Config | None = None


def reset_config_cache() -> None:
    """Drop the cached config so the next load_config() reads the file again"""
    global _cached_config
    _cached_config = None


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Explicit path, then $TICKTHROTTLE_CONFIG, then config/config.yaml"""
    if config_path is not None:
        return Path(config_path)
    return Path(os.getenv(CONFIG_PATH_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_config(config_path: str | Path | None = None) -> Config:
    """
    Load tickthrottle configuration from YAML file (cached)

    Process:
    1. Return cached config if available
    2. Load .env file (if exists)
    3. Read YAML config
    4. Interpolate environment variables (${VAR})
    5. Parse and validate YAML
    6. Cache and return Config object

    Args:
        config_path: Path to YAML config file (see resolve_config_path)

    Returns:
        Config object with loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid or env vars missing
        yaml.YAMLError: If YAML parsing fails
    """
    global _cached_config

    if _cached_config is not None:
        return _cached_config

    # 1. Load .env file (if exists)
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    # 2. Read YAML config
    config_path = resolve_config_path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            f"Expected location: {config_path.absolute()}"
        )

    with open(config_path, 'r', encoding='utf-8') as f:
        config_str = f.read()

    # 3. Interpolate environment variables
    try:
        config_str = _interpolate_env_vars(config_str)
    except ValueError as e:
        raise ValueError(
            f"Failed to interpolate environment variables in {config_path}: {e}"
        ) from e

    # 4. Parse YAML
    try:
        config_dict = yaml.safe_load(config_str)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(
            f"Failed to parse YAML config {config_path}: {e}"
        ) from e

    if not isinstance(config_dict, dict):
        raise ValueError(
            f"Config file {config_path} must contain a YAML dictionary, "
            f"got {type(config_dict)}"
        )

    # 5. Create Config object
    config = Config(**config_dict)

    # 6. Validate critical settings (Fast Fail)
    _validate_config(config)

    _cached_config = config

    return config


def _validate_config(config: Config) -> None:
    """
    Validate critical configuration settings

    Raises ValueError if any critical settings are invalid, so a broken
    config stops the listener before it answers READY.

    Raises:
        ValueError: If validation fails
    """
    for key in ('ticks_per_period', 'max_executions', 'periods_in_cycle'):
        value = config.get(f'throttle.{key}')
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(
                f"throttle.{key} must be a positive integer, got {value!r}"
            )

    tick_event = config.get('listener.tick_event', 'TICK_5')
    if tick_event not in TICK_EVENTS:
        raise ValueError(
            f"listener.tick_event must be one of {list(TICK_EVENTS)}, got '{tick_event}'"
        )

    tick_slot = config.get('storage.tick_slot', 2)
    execution_slot = config.get('storage.execution_slot', 3)
    if tick_slot == execution_slot:
        raise ValueError(
            f"storage.tick_slot and storage.execution_slot must differ, both are {tick_slot}"
        )

    backend = config.get('storage.backend', 'shared_memory')
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"storage.backend must be one of {list(STORAGE_BACKENDS)}, got '{backend}'"
        )

    command = config.get('task.command')
    if not command or not isinstance(command, list):
        raise ValueError("task.command must be a non-empty list")
