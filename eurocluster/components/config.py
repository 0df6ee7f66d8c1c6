"""
Configuration management for eurocluster.

This module provides functionality for managing configuration,
including loading from environment variables, files and default values.
"""

import os
import json
import logging
import threading
from typing import Dict, Optional, Any
from copy import deepcopy
import yaml

# Set up logging
logger = logging.getLogger(__name__)

LOG_LEVELS = ('debug', 'info', 'warning', 'error', 'critical')


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def env_int(name: str, default: int) -> int:
    """
    Read an integer environment variable, keeping the default when it
    is unset or unparseable.
    """
    value = to_int(os.environ.get(name))
    if value is None:
        if name in os.environ:
            logger.warning(f"Ignoring non-integer value for {name}: {os.environ[name]!r}")
        return default
    return value


class Config:
    """
    Configuration for clustering runs.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._lock = threading.RLock()
        self._config = {}
        self._initialized = False

        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from all sources.

        Defaults are overlaid with environment variables, then with
        the overrides, then inferred values are filled in.

        Args:
            overrides: Optional configuration overrides
        """
        with self._lock:
            config = self._get_defaults()
            config = self._apply_env_vars(config)

            if overrides:
                config = self._apply_overrides(config, overrides)

            config = self._apply_inferred_values(config)
            self._validate(config)

            self._config = config
            self._initialized = True

            logger.info("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Input table
            'data': {
                'label-column': None,   # first column when unset
                'columns': None         # all other columns when unset
            },

            # Standardization
            'scaler': {
                'ddof': 1,
                'on-constant': 'raise'  # 'raise' or 'drop'
            },

            # K-means
            'kmeans': {
                'k': None,              # chosen from the scan when unset
                'restarts': 25,
                'max-iters': 100,
                'seed': 42,
                'workers': 1
            },

            # Choice of K
            'selection': {
                'k-min': 1,
                'k-max': 10,
                'gap-refs': 50,
                'gap-seed': 123,
                'gap-restarts': None    # kmeans.restarts when unset
            },

            # Logging
            'logging': {
                'level': 'warning'
            }
        }

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variables to configuration.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        # Input table
        if 'LABEL_COLUMN' in os.environ:
            config['data']['label-column'] = os.environ['LABEL_COLUMN']

        # Standardization
        config['scaler']['ddof'] = env_int('SCALER_DDOF', config['scaler']['ddof'])
        config['scaler']['on-constant'] = os.environ.get(
            'SCALER_ON_CONSTANT', config['scaler']['on-constant']).lower()

        # K-means
        if 'KMEANS_K' in os.environ:
            config['kmeans']['k'] = to_int(os.environ['KMEANS_K'])
        config['kmeans']['restarts'] = env_int('KMEANS_RESTARTS', config['kmeans']['restarts'])
        config['kmeans']['max-iters'] = env_int('KMEANS_MAX_ITERS', config['kmeans']['max-iters'])
        config['kmeans']['seed'] = env_int('KMEANS_SEED', config['kmeans']['seed'])
        config['kmeans']['workers'] = env_int('KMEANS_WORKERS', config['kmeans']['workers'])

        # Choice of K
        config['selection']['k-min'] = env_int('SELECTION_K_MIN', config['selection']['k-min'])
        config['selection']['k-max'] = env_int('SELECTION_K_MAX', config['selection']['k-max'])
        config['selection']['gap-refs'] = env_int('GAP_REFS', config['selection']['gap-refs'])
        config['selection']['gap-seed'] = env_int('GAP_SEED', config['selection']['gap-seed'])
        if 'GAP_RESTARTS' in os.environ:
            config['selection']['gap-restarts'] = to_int(os.environ['GAP_RESTARTS'])

        # Logging
        config['logging']['level'] = os.environ.get('LOG_LEVEL', config['logging']['level']).lower()

        return config

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        def deep_update(d, u):
            for k, v in u.items():
                if isinstance(v, dict) and k in d and isinstance(d[k], dict):
                    d[k] = deep_update(d[k], v)
                else:
                    d[k] = v
            return d

        return deep_update(config, overrides)

    def _apply_inferred_values(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply inferred configuration values.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        if config['selection'].get('gap-restarts') is None:
            config['selection']['gap-restarts'] = config['kmeans']['restarts']

        return config

    def _validate(self, config: Dict[str, Any]) -> None:
        """
        Reject settings that no clustering run could use.

        Raises:
            ValueError: On an invalid setting
        """
        selection = config['selection']
        if selection['k-min'] > selection['k-max']:
            raise ValueError(
                f"selection.k-min ({selection['k-min']}) exceeds selection.k-max ({selection['k-max']})"
            )
        if config['scaler']['on-constant'] not in ('raise', 'drop'):
            raise ValueError(f"Unknown scaler.on-constant policy: {config['scaler']['on-constant']}")
        level = config['logging']['level']
        if not isinstance(level, str) or level.lower() not in LOG_LEVELS:
            raise ValueError(f"Unknown logging.level: {level!r} (expected one of {', '.join(LOG_LEVELS)})")

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        value = self._config

        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        with self._lock:
            if not self._initialized:
                self.load_config()

            components = path.split('.')
            config = self._config

            for component in components[:-1]:
                if component not in config:
                    config[component] = {}
                config = config[component]

            config[components[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a JSON or YAML file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration overrides from a JSON or YAML file.

        Args:
            filepath: Path to load configuration from
        """
        self.load_config(load_config_file(filepath))


def load_config_file(filepath: str) -> Dict[str, Any]:
    """
    Read a JSON or YAML configuration file.

    Args:
        filepath: Path to configuration file

    Returns:
        Configuration dictionary
    """
    if filepath.endswith('.json'):
        with open(filepath, 'r') as f:
            return json.load(f)
    elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
        with open(filepath, 'r') as f:
            return yaml.safe_load(f) or {}
    else:
        raise ValueError(f"Unsupported configuration file format: {filepath}")


class ConfigManager:
    """
    Singleton manager for configuration.
    """

    _instance = None
    _lock = threading.RLock()

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Get the configuration instance.

        Args:
            overrides: Optional configuration overrides

        Returns:
            Config instance
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = Config(overrides)
            elif overrides:
                cls._instance.load_config(overrides)

            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance."""
        with cls._lock:
            cls._instance = None
