"""Configuration manager — YAML file merged over defaults, then env overrides."""

import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _parse_optional_int(value: str):
    value = value.strip().lower()
    if value in ("", "none", "null", "0"):
        return None
    return int(value)


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "stream": {
            "url": "http://localhost:2022/logs",
            "reconnect": True,
            "base_delay": 1.0,
            "max_delay": 30.0,
            "max_attempts": 0,
            "connect_timeout": 5.0,
        },
        "buffer": {
            "max_entries": 50000,
        },
        "hierarchy": {
            "strategy": "parent",
        },
        "scheduler": {
            "tick_interval": 0.05,
            "max_delay": 0.5,
        },
        "formatter": {
            "title": "{message}",
            "subtitle": "{meta.pkg}.{meta.fn}",
        },
        "dashboard": {
            "enabled": True,
            "host": "127.0.0.1",
            "port": 8080,
        },
        "logging": {
            "level": "INFO",
        },
    }

    # env var -> (section, key, parser)
    ENV_OVERRIDES = {
        "LOGTREE_URL": ("stream", "url", str),
        "LOGTREE_RECONNECT": ("stream", "reconnect", _parse_bool),
        "LOGTREE_MAX_ENTRIES": ("buffer", "max_entries", _parse_optional_int),
        "LOGTREE_STRATEGY": ("hierarchy", "strategy", str),
        "DASHBOARD_ENABLED": ("dashboard", "enabled", _parse_bool),
        "DASHBOARD_PORT": ("dashboard", "port", int),
        "LOG_LEVEL": ("logging", "level", str),
    }

    def __init__(self, config_path=None, environ=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                logger.info("Config file %s not found, using defaults", config_path)
            except yaml.YAMLError as exc:
                logger.warning("Invalid YAML in %s, using defaults: %s", config_path, exc)

        self._apply_env(os.environ if environ is None else environ)
        self._normalize()

    def _normalize(self):
        # 0 and null both mean an unbounded buffer
        buffer = self._config.setdefault("buffer", {})
        if not buffer.get("max_entries"):
            buffer["max_entries"] = None

    def _apply_env(self, environ):
        for var, (section, key, parse) in self.ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None:
                continue
            try:
                self._config.setdefault(section, {})[key] = parse(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", var, raw)

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

    def set(self, section, key, value):
        """Override a single value, e.g. from a command-line flag."""
        self._config.setdefault(section, {})[key] = value

    def as_dict(self) -> dict:
        return copy.deepcopy(self._config)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
