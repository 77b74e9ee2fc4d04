"""Configuration service - YAML-backed settings with dependency injection.

This service provides a class-based interface with configurable paths.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from agentkb.app_utils.config_schema import AgentKBConfig
from agentkb.app_utils.paths import get_config_file

logger = logging.getLogger(__name__)


class ConfigService:
    """Service for managing agentkb configuration."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize config service.

        Args:
            config_file: Path to config file. Defaults to ~/.agentkb/config.yaml
        """
        if config_file is None:
            config_file = get_config_file()
        self.config_file = Path(config_file)
        self.config_dir = self.config_file.parent

    def load(self) -> AgentKBConfig:
        """Load configuration with environment overrides applied.

        Creates default config if file doesn't exist.
        """
        return self._load_file().apply_env_overrides()

    def _load_file(self) -> AgentKBConfig:
        if not self.config_file.exists():
            config = AgentKBConfig.create_default()
            self.save(config)
            return config

        try:
            with open(self.config_file, "r") as f:
                data = yaml.safe_load(f) or {}
            return AgentKBConfig.from_dict(data)
        except (yaml.YAMLError, IOError, KeyError, TypeError) as e:
            logger.warning(
                "Could not read %s (%s); using defaults", self.config_file, e
            )
            return AgentKBConfig.create_default()

    def save(self, config: AgentKBConfig) -> None:
        """Save configuration to YAML file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            yaml.safe_dump(
                config.to_dict(), f, default_flow_style=False, sort_keys=False
            )

    def update(self, **kwargs: Any) -> AgentKBConfig:
        """Update specific config values.

        Supports nested updates using prefixed keys:
        - api_*: Updates service connection config
        - sync_*: Updates sync config
        - training_*: Updates training config
        - notifications_*: Updates notification config

        Examples:
            service.update(api_base_url="https://kb.example.com/api/")
            service.update(sync_debounce_seconds=1.0)
        """
        config = self._load_file()

        sections = {
            "api_": config.api,
            "sync_": config.sync,
            "training_": config.training,
            "notifications_": config.notifications,
        }

        for key, value in kwargs.items():
            for prefix, section in sections.items():
                if key.startswith(prefix):
                    attr_name = key.replace(prefix, "", 1)
                    if hasattr(section, attr_name):
                        setattr(section, attr_name, value)
                    else:
                        logger.warning(
                            "Config key '%s' matched prefix '%s' but attribute "
                            "'%s' not found on %s",
                            key,
                            prefix,
                            attr_name,
                            type(section).__name__,
                        )
                    break
            else:
                logger.warning("Unknown config key ignored: '%s'", key)

        self.save(config)
        return config.apply_env_overrides()
