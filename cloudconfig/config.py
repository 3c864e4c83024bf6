"""
load the config from config.yaml and .env
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

import structlog

from .errors import MergeError
from .fetcher import CHAINED_CLOUD_CONFIG_URL, FRONTED_CLOUD_CONFIG_URL
from .poller import CLOUD_CONFIG_POLL_INTERVAL

logger = structlog.get_logger(__name__)

# Environment variable -> nested settings key
ENV_OVERRIDES = {
    'CLOUD_CONFIG_URL': ('cloud_config', 'url'),
    'FRONTED_CLOUD_CONFIG_URL': ('cloud_config', 'fronted_url'),
    'CLOUD_CONFIG_POLL_INTERVAL': ('cloud_config', 'poll_interval'),
    'CLOUD_CONFIG_STICKY': ('cloud_config', 'sticky'),
    'USER_ID': ('user', 'id'),
    'PRO_TOKEN': ('user', 'token'),
    'FETCHER_TIMEOUT': ('fetcher', 'timeout'),
    'LOG_LEVEL': ('logging', 'level'),
}


def convert_env_value(value: str):
    """'true'/'false' become bools, numbers become int or float, the rest stays a string."""
    if value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


class Config:
    """Settings for the poller: config.yaml first, environment variables on top.

    Args:
        config_path: Path to the YAML file. Defaults to config.yaml in the
            current working directory.
    """

    def __init__(self, config_path: str = None):
        self.config_path = Path(config_path) if config_path else Path.cwd() / "config.yaml"
        self._config = self._load()

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                settings = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        for env_var, (section, key) in ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            if not isinstance(settings.get(section), dict):
                settings[section] = {}
            settings[section][key] = convert_env_value(env_value)
        return settings

    def get(self, *keys, default=None):
        """Walk nested keys, e.g. get('cloud_config', 'url'); default if any is missing."""
        current = self._config
        for key in keys:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    @property
    def cloud_config(self) -> Dict[str, Any]:
        """Get cloud config polling configuration."""
        return self.get('cloud_config', default={})

    @property
    def user(self) -> Dict[str, Any]:
        """Get user identity configuration."""
        return self.get('user', default={})

    @property
    def fetcher(self) -> Dict[str, Any]:
        """Get HTTP fetcher configuration."""
        return self.get('fetcher', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})

    @property
    def cloud_config_url(self) -> str:
        return self.get('cloud_config', 'url', default=CHAINED_CLOUD_CONFIG_URL) or ''

    @property
    def fronted_cloud_config_url(self) -> str:
        return self.get('cloud_config', 'fronted_url', default=FRONTED_CLOUD_CONFIG_URL) or ''

    @property
    def poll_interval(self) -> float:
        return float(self.get('cloud_config', 'poll_interval', default=CLOUD_CONFIG_POLL_INTERVAL))

    @property
    def sticky(self) -> bool:
        return bool(self.get('cloud_config', 'sticky', default=False))


class LiveConfig:
    """In-memory holder for the latest cloud config document.

    Keeps the raw bytes as fetched; merging them into typed settings is
    left to whoever reads `raw`.
    """

    def __init__(self, cloud_config_url: str = '', fronted_cloud_config_url: str = ''):
        self.cloud_config_url = cloud_config_url
        self.fronted_cloud_config_url = fronted_cloud_config_url
        self.raw: Optional[bytes] = None
        self.revision = 0

    @classmethod
    def from_settings(cls, settings: Config) -> "LiveConfig":
        return cls(settings.cloud_config_url, settings.fronted_cloud_config_url)

    def update_from_bytes(self, raw: bytes) -> None:
        if not isinstance(raw, (bytes, bytearray)):
            raise MergeError(f"expected bytes, got {type(raw).__name__}")
        self.raw = bytes(raw)
        self.revision += 1
        logger.info("cloud_config_updated", revision=self.revision, size=len(self.raw))
