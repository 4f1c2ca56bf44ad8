"""
Engine Configuration

This module provides the configuration system for the question engine.
Settings come from defaults, an optional YAML or JSON file, and environment
variables (including a ``.env`` file), in increasing order of priority.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from qengine.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """Database configuration"""
    url: str = Field(default="sqlite:///./qengine.db")
    echo: bool = Field(default=False)
    pool_size: int = Field(default=5)

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite"""
        return self.url.startswith("sqlite")


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field(default="INFO")
    use_json: bool = Field(default=False)
    file_path: Optional[str] = Field(default=None)

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class EngineConfig(BaseModel):
    """Question engine behaviour settings"""
    default_behaviour: str = Field(default="deferredfeedback")
    mark_decimal_places: int = Field(default=2)
    usage_id_length: int = Field(default=10)
    default_user_id: Optional[str] = Field(default=None)

    @field_validator('mark_decimal_places')
    @classmethod
    def validate_decimal_places(cls, v):
        """Validate the number of decimal places used to format marks"""
        if not 0 <= v <= 7:
            raise ValueError(f"Decimal places must be between 0 and 7, got {v}")
        return v

    @field_validator('usage_id_length')
    @classmethod
    def validate_usage_id_length(cls, v):
        """Validate the length of temporary usage ids"""
        if v < 4:
            raise ValueError(f"Usage id length must be at least 4, got {v}")
        return v


class EnvironmentConfig(BaseModel):
    """Environment configuration"""
    env: str = Field(default="development")
    testing: bool = Field(default=False)

    @field_validator('env')
    @classmethod
    def validate_env(cls, v):
        """Validate environment"""
        valid_envs = ['development', 'testing', 'staging', 'production']
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()


class AppConfig(BaseModel):
    """Main configuration"""
    app_name: str = Field(default="qengine")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)

    @property
    def is_testing(self) -> bool:
        """Check if environment is testing"""
        return self.environment.env == "testing" or self.environment.testing

    @property
    def is_production(self) -> bool:
        """Check if environment is production"""
        return self.environment.env == "production"


# Environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "QENGINE_DATABASE_URL": ("database", "url"),
    "QENGINE_DATABASE_ECHO": ("database", "echo"),
    "QENGINE_DATABASE_POOL_SIZE": ("database", "pool_size"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_JSON": ("logging", "use_json"),
    "LOG_FILE": ("logging", "file_path"),
    "QENGINE_DEFAULT_BEHAVIOUR": ("engine", "default_behaviour"),
    "QENGINE_MARK_DECIMAL_PLACES": ("engine", "mark_decimal_places"),
    "QENGINE_USAGE_ID_LENGTH": ("engine", "usage_id_length"),
    "QENGINE_DEFAULT_USER_ID": ("engine", "default_user_id"),
    "ENV": ("environment", "env"),
    "TESTING": ("environment", "testing"),
}


class ConfigLoader:
    """
    Configuration loader for the engine.

    Loads configuration from:
    1. Default values
    2. Config file
    3. Environment variables (highest priority)
    """

    def __init__(self, config_path: Optional[str] = None, env_file: Optional[str] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
            env_file: Path to a dotenv file; the default search is used when None
        """
        self.config_path = config_path or os.environ.get("QENGINE_CONFIG_PATH")
        self.env_file = env_file
        self._config = None

    def load(self) -> AppConfig:
        """
        Load configuration from all sources.

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If the merged values fail validation
        """
        if self._config is not None:
            return self._config

        config_data: Dict[str, Any] = {}
        if self.config_path:
            config_data = self._load_from_file(self.config_path)

        load_dotenv(self.env_file)
        self._apply_env_overrides(config_data)

        try:
            self._config = AppConfig(**config_data)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        return self._config

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            path: Path to config file

        Returns:
            Loaded configuration dictionary
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        try:
            if path.suffix.lower() in ['.yaml', '.yml']:
                with open(path, 'r') as f:
                    return yaml.safe_load(f) or {}
            elif path.suffix.lower() == '.json':
                with open(path, 'r') as f:
                    return json.load(f)
            else:
                logger.warning(f"Unsupported config file format: {path.suffix}")
                return {}
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Error loading config file {path}: {e}") from e

    @staticmethod
    def _apply_env_overrides(config_data: Dict[str, Any]) -> None:
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            config_data.setdefault(section, {})[key] = value


config_loader = ConfigLoader()
config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the loaded configuration, loading it on first use.

    Returns:
        Loaded configuration
    """
    global config
    if config is None:
        config = config_loader.load()
    return config


def reload_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Reload the configuration.

    Args:
        config_path: Path to config file

    Returns:
        Reloaded configuration
    """
    global config_loader, config
    config_loader = ConfigLoader(config_path)
    config = config_loader.load()
    return config
