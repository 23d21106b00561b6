import copy
import logging

import yaml

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 3000,
            "debug": False,
        },
        "storage": {
            "path": "client-logs.txt",
        },
        "schema": {
            "path": None,
        },
        "query": {
            "top_pages": 10,
            "recent_errors": 10,
        },
        "logging": {
            "level": "INFO",
        },
    }

    def __init__(self, config_path=None, overrides=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                pass
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        if overrides:
            self._config = self._deep_merge(self._config, overrides)

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
