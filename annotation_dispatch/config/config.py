# annotation_dispatch/config/config.py
"""Layered settings: built-in defaults overridden by an optional YAML file."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from . import defaults

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'ANNOTATION_DISPATCH_CONFIG'
CONFIG_FILENAME = 'config.yml'


def search_path() -> List[Path]:
    """Places looked at, in order, when no config file is named explicitly."""
    return [
        defaults.PROJECT_ROOT / CONFIG_FILENAME,
        defaults.PROJECT_ROOT / 'config' / CONFIG_FILENAME,
        Path.cwd() / CONFIG_FILENAME,
        Path.home() / '.annotation_dispatch' / CONFIG_FILENAME,
    ]


def merge_settings(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively apply override onto base in place; nested sections are merged."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge_settings(current, value)
        else:
            base[key] = value
    return base


class Config:
    """Settings for dispatch, logging and paths.

    The file is taken from config_file, else from $ANNOTATION_DISPATCH_CONFIG,
    else from the first existing entry of search_path() when discover is set.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None, discover: bool = True):
        self.settings: Dict[str, Any] = {
            'dispatch': copy.deepcopy(defaults.DISPATCH),
            'logging': copy.deepcopy(defaults.LOGGING),
            'paths': copy.deepcopy(defaults.PATHS),
        }
        self.source: Optional[Path] = None

        if config_file is None and discover:
            config_file = os.environ.get(CONFIG_ENV_VAR) or self._discover()

        if config_file is None:
            logger.debug("Using built-in defaults")
            return

        path = Path(config_file)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        merge_settings(self.settings, self._read(path))
        self.source = path
        logger.debug(f"Settings loaded from {path}")

    @staticmethod
    def _discover() -> Optional[Path]:
        return next((path for path in search_path() if path.is_file()), None)

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        with open(path, 'r') as handle:
            loaded = yaml.safe_load(handle)
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ValueError(
                f"Config file {path} must contain a mapping, got {type(loaded).__name__}"
            )
        return loaded

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as 'dispatch.fork'."""
        node: Any = self.settings
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    @property
    def dispatch(self) -> Dict[str, Any]:
        return self.settings['dispatch']

    @property
    def logging(self) -> Dict[str, Any]:
        return self.settings['logging']

    @property
    def paths(self) -> Dict[str, Any]:
        return self.settings['paths']


# Global configuration instance
config = Config()
