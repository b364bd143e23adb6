"""YAML configuration for SliceScribe."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .settings import (
    FinalizeSettings,
    Preferences,
    VoiceActivitySettings,
    capture_constraints_from_config,
)

logger = logging.getLogger(__name__)

# (section, key) pairs holding filesystem paths
_PATH_KEYS = (
    ('google_cloud', 'credentials_path'),
    ('storage', 'data_directory'),
    ('logging', 'file_path'),
    ('vocabulary', 'path'),
)


def read_yaml_mapping(path: Path) -> Dict[str, Any]:
    """Parse a YAML file that must contain a non-empty mapping.

    Raises:
        ValueError: If the file is empty, malformed or not a mapping
    """
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"{path} is not valid YAML: {e}") from e

    if data is None or data == {}:
        raise ValueError(f"{path} is empty")
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


class SliceScribeConfig:
    """Dot-addressable view over a YAML settings tree.

    Relative paths under the keys in ``_PATH_KEYS`` are anchored to the
    directory of the config file, so the app can be launched from anywhere.
    """

    def __init__(self, config_path: str):
        self.config_file = Path(config_path)
        if not self.config_file.is_file():
            raise FileNotFoundError(f"No configuration at {self.config_file}")

        logger.info(f"Reading configuration {self.config_file}")
        self.config = read_yaml_mapping(self.config_file)
        self._anchor_paths()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[str] = None) -> "SliceScribeConfig":
        """Build a configuration from an in-memory mapping."""
        instance = cls.__new__(cls)
        instance.config_file = Path(base_dir or os.getcwd()) / "slicescribe.yaml"
        instance.config = dict(data)
        instance._anchor_paths()
        return instance

    def _anchor_paths(self) -> None:
        base = self.config_file.parent
        for section, key in _PATH_KEYS:
            block = self.config.get(section)
            if not isinstance(block, dict):
                continue
            raw = block.get(key)
            if raw and not os.path.isabs(raw):
                block[key] = str(base / raw)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up ``a.b.c``; ``default`` if any segment is missing."""
        node: Any = self.config
        for part in key_path.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key_path: str, value: Any) -> None:
        *parents, leaf = key_path.split('.')
        node = self.config
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
        logger.debug(f"Config override {key_path} = {value!r}")

    def get_google_credentials_path(self) -> str:
        """Absolute path of the service-account JSON.

        Raises:
            ValueError: If no path is configured
            FileNotFoundError: If the file does not exist
        """
        configured = self.get('google_cloud.credentials_path')
        if not configured:
            raise ValueError("google_cloud.credentials_path is not set")
        credentials = Path(configured)
        if not credentials.is_file():
            raise FileNotFoundError(f"Google credentials not found at {credentials}")
        return str(credentials.resolve())

    def get_data_directory(self) -> str:
        return str(Path(self.get('storage.data_directory', 'data')).resolve())

    def get_secret(self, key_path: str, env_default: str) -> Optional[str]:
        """Read a secret from the environment variable named at ``key_path``."""
        return os.environ.get(self.get(key_path, env_default))


__all__ = [
    'SliceScribeConfig',
    'Preferences',
    'VoiceActivitySettings',
    'FinalizeSettings',
    'capture_constraints_from_config',
    'read_yaml_mapping',
]
