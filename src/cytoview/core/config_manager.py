"""
ConfigManager - Configuration file management

Loads and provides access to 2 YAML configuration files:
1. settings.yaml - Global settings (loading dtype, CSV separator, range policy)
2. transforms.yaml - Default parameters for named transforms
"""

import yaml
from pathlib import Path
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manager for all configuration files.

    Loads configuration from YAML files and provides access to
    configuration values. Missing or unreadable files fall back to empty
    configuration, so built-in defaults apply.

    Args:
        config_path: Path to configuration directory (default: 'config')

    Attributes:
        _settings_config: Configuration from settings.yaml
        _transforms_config: Configuration from transforms.yaml
    """

    def __init__(self, config_path: str = 'config'):
        """Initialize ConfigManager and load all config files.

        Args:
            config_path: Path to configuration directory
        """
        self._config_path = Path(config_path)

        # Load all config files (with graceful fallback to empty dict)
        self._settings_config = self._load_yaml('settings.yaml')
        self._transforms_config = self._load_yaml('transforms.yaml')

    def _load_yaml(self, filename: str) -> Dict[str, Any]:
        """Load a YAML file, returning empty dict if not found.

        Args:
            filename: Name of YAML file to load

        Returns:
            Dictionary of configuration values, or empty dict if file not found
        """
        file_path = self._config_path / filename
        if not file_path.exists():
            logger.warning(f"Config file not found: {file_path}. Using empty config.")
            return {}

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
                return config if config is not None else {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading {file_path}: {e}. Using empty config.")
            return {}

    def get_transform_config(self, transform_name: str) -> Dict[str, Any]:
        """Get default parameters for a named transform.

        Args:
            transform_name: Name of the transform (e.g., 'arcsinh')

        Returns:
            Dictionary of parameter defaults (e.g., {'cofactor': 150})

        Note: Returns empty dict if the transform is not configured
        """
        config = self._transforms_config.get(transform_name, {})
        return dict(config) if config else {}

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a global setting from settings.yaml.

        Args:
            key: Setting key (supports nested keys with dot notation)
            default: Default value if setting not found

        Returns:
            Setting value, or default if not found

        Examples:
            >>> cm.get_setting('loading.dtype', 'float64')
            'float64'
        """
        # Support nested keys like "loading.dtype"
        keys = key.split('.')
        value = self._settings_config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def list_transforms(self) -> list:
        """List all transform names configured in transforms.yaml."""
        return list(self._transforms_config.keys())

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"ConfigManager("
            f"path={self._config_path}, "
            f"transforms={len(self._transforms_config)})"
        )
