"""
Configuration loading.
"""

from pathlib import Path
from typing import Dict, Union

import yaml

from cone_steering.errors import ConfigurationError


def load_config(path: Union[str, Path]) -> Dict:
    """
    Load a YAML configuration file.

    Args:
        path: Path to YAML file

    Returns:
        Nested configuration dictionary
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")

    return config
