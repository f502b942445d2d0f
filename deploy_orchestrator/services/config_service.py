"""Configuration loading service"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Any, Union

import yaml

from ..api.exceptions import ConfigError
from ..constants import LOG_TAG, DEFAULT_CONFIG_FILE, ENV_CONFIG_PATH
from ..models.config import OrchestratorConfig

logger = logging.getLogger(__name__)


def resolve_config_path(path: Union[str, Path, None] = None) -> Path:
    """Explicit path, then the environment variable, then the default file name"""
    return Path(path or os.environ.get(ENV_CONFIG_PATH) or DEFAULT_CONFIG_FILE)


class ConfigService:
    """Service for loading orchestrator configuration"""

    def __init__(self, config_path: Union[str, Path, None] = None):
        """Initialize config service

        Args:
            config_path: YAML configuration file
        """
        self.config_path = resolve_config_path(config_path)
        self._config: Optional[OrchestratorConfig] = None

    @property
    def config(self) -> OrchestratorConfig:
        """Get current configuration (lazy load)"""
        if self._config is None:
            self.load_config()
        return self._config

    def load_config(self) -> OrchestratorConfig:
        """Load configuration from file

        Returns:
            Loaded configuration

        Raises:
            ConfigError: If the file is missing or not valid YAML
        """
        if not self.config_path.exists():
            raise ConfigError(f"Configuration file not found: {self.config_path}")

        # Expand environment variables in the file
        with open(self.config_path, 'r') as f:
            content = f.read()

        content = os.path.expandvars(content)

        self._config = self.parse(content)
        logger.debug(f"{LOG_TAG} Configuration loaded path={self.config_path} apps={len(self._config.apps)}")
        return self._config

    @staticmethod
    def parse(content: str) -> OrchestratorConfig:
        """Parse YAML text into configuration"""
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML configuration: {e}")

        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

        try:
            return OrchestratorConfig.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid configuration: {e}")

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> OrchestratorConfig:
        return OrchestratorConfig.from_dict(data)
