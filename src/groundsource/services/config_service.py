"""Configuration service: loads and saves the YAML config file."""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from groundsource.app_utils.config_schema import GroundSourceConfig
from groundsource.app_utils.paths import get_user_data_dir
from groundsource.core.citations import CitationStyle
from groundsource.core.errors import ValidationError

logger = logging.getLogger(__name__)


class ConfigService:
    """Service for managing GroundSource configuration."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize config service.

        Args:
            config_file: Path to config file. Defaults to ~/.groundsource/config.yaml
        """
        if config_file is None:
            self.config_dir = get_user_data_dir()
            self.config_file = self.config_dir / "config.yaml"
        else:
            self.config_file = Path(config_file)
            self.config_dir = self.config_file.parent

    def load(self) -> GroundSourceConfig:
        """Load configuration from YAML file.

        Creates default config if file doesn't exist.

        Returns:
            GroundSourceConfig instance.
        """
        if not self.config_file.exists():
            config = GroundSourceConfig.create_default()
            self.save(config)
            return config

        try:
            with open(self.config_file, "r") as f:
                data = yaml.safe_load(f) or {}
            return GroundSourceConfig.from_dict(data)
        except (yaml.YAMLError, IOError, KeyError, ValueError, ValidationError) as e:
            logger.warning(f"Could not read {self.config_file}, using defaults: {e}")
            return GroundSourceConfig.create_default()

    def save(self, config: GroundSourceConfig) -> None:
        """Save configuration to YAML file.

        Args:
            config: GroundSourceConfig to save.
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            yaml.safe_dump(
                config.to_dict(), f, default_flow_style=False, sort_keys=False
            )

    def update(self, **kwargs: Any) -> GroundSourceConfig:
        """Update specific config values.

        Supports nested updates using prefixed keys:
        - pipeline_*: Updates pipeline options
        - citations_*: Updates citation options
        - search_*: Updates search config
        - ollama_*: Updates ollama config
        - cache_*: Updates cache config

        Args:
            **kwargs: Config values to update.

        Returns:
            Updated GroundSourceConfig.

        Examples:
            service.update(ollama_base_url="http://192.168.1.100:11434")
            service.update(pipeline_max_concurrent_requests=10)
        """
        config = self.load()

        # Map of prefix -> config section for dispatching updates
        sections = {
            "pipeline_": config.pipeline,
            "citations_": config.citations,
            "search_": config.search,
            "ollama_": config.ollama,
            "cache_": config.cache,
        }

        for key, value in kwargs.items():
            updated = False
            for prefix, section in sections.items():
                if key.startswith(prefix):
                    attr_name = key.replace(prefix, "", 1)
                    if hasattr(section, attr_name):
                        if prefix == "citations_" and attr_name == "style":
                            value = CitationStyle(value)
                        setattr(section, attr_name, value)
                        updated = True
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
            if not updated:
                logger.warning("Unknown config key ignored: '%s'", key)

        config.pipeline.validate()
        self.save(config)
        return config
