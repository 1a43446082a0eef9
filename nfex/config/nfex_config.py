"""
NFeX Configuration Management

This module provides configuration management for NFeX.
"""

import copy
import logging
from typing import Dict, Any, Optional
from pathlib import Path

import yaml

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'default_config.yaml'


class NFeXConfig:
    """
    Manages system-wide configuration for NFeX

    This class follows the singleton pattern to ensure only one configuration instance exists.
    It manages system-wide settings like database connection and logging.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, 'initialized'):
            self.config: Dict[str, Any] = self._load_defaults()

            # Load user configuration from file if it exists
            self.config_file = Path.home() / '.nfex' / 'config.yaml'
            if self.config_file.exists():
                self._load_config()

            self.initialized = True

    @staticmethod
    def _load_defaults() -> Dict[str, Any]:
        with open(DEFAULT_CONFIG_PATH, 'r') as f:
            return yaml.safe_load(f)

    @classmethod
    def from_file(cls, config_path: str) -> 'NFeXConfig':
        """Load configuration from file on top of the packaged defaults

        Args:
            config_path: Path to configuration file

        Returns:
            NFeXConfig instance
        """
        instance = cls()
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load configuration from {config_path}: {str(e)}")
            raise
        instance.config = instance._load_defaults()
        instance._update_config_recursive(instance.config, file_config)
        instance._validate_config()
        return instance

    @classmethod
    def reset(cls) -> 'NFeXConfig':
        """Drop any runtime overrides and reload the packaged defaults"""
        instance = cls()
        instance.config = instance._load_defaults()
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value

        Args:
            key: Configuration key (dot notation)
            default: Default value if key not found

        Returns:
            Configuration value
        """
        try:
            value = self.config
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value

        Args:
            key: Configuration key (dot notation)
            value: Configuration value
        """
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def _load_config(self) -> None:
        """Load configuration from the user configuration file"""
        try:
            with open(self.config_file, 'r') as f:
                file_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RuntimeError(f"Invalid YAML in configuration file: {str(e)}")
        if file_config is None:
            raise RuntimeError("Configuration file is empty")

        self._update_config_recursive(self.config, file_config)
        logger.info(f"Configuration loaded from {self.config_file}")
        self._validate_config()

    def _validate_config(self) -> None:
        """Validate configuration structure and values"""
        if not isinstance(self.config, dict):
            raise RuntimeError("Configuration must be a dictionary")

        for section in ['database', 'logging']:
            if section not in self.config:
                raise RuntimeError(f"Missing required configuration section: {section}")

        db_config = self.config['database']
        if 'type' not in db_config:
            raise RuntimeError("Database type not specified")

        db_type = db_config['type']
        if db_type not in ['sqlite', 'postgresql', 'postgres']:
            raise RuntimeError(f"Unsupported database type: {db_type}")

        if db_type == 'sqlite':
            if not db_config.get('path'):
                raise RuntimeError("SQLite database path not specified")
        else:
            postgres_config = db_config.get('postgres', {})
            for field in ['host', 'port', 'database', 'user']:
                if field not in postgres_config:
                    raise RuntimeError(f"PostgreSQL {field} not specified")

    def _update_config_recursive(self, base: Dict[str, Any], update: Dict[str, Any]) -> None:
        """Update configuration recursively"""
        for key, value in update.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._update_config_recursive(base[key], value)
            else:
                base[key] = value

    def get_database_config(self) -> Dict[str, Any]:
        """Get database configuration"""
        return self.config.get('database', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration"""
        return self.config.get('logging', {})

    def validate(self) -> bool:
        """Validate configuration"""
        try:
            self._validate_config()
            return True
        except RuntimeError as e:
            logger.error(f"Configuration validation failed: {str(e)}")
            return False

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration"""
        return copy.deepcopy(self.config)
