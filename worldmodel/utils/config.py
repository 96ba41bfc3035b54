# worldmodel/utils/config.py

import copy
import math
import os
import logging
import yaml
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TRACKER_CONFIG = {
    'frame_id': 'map',                 # canonical frame of the model
    'project_objects': False,          # project percepts to the next obstacle
    'default_distance': 1.0,           # range assumed for image percepts (m)
    'distance_variance': 1.0,          # radial variance of default covariance (m^2)
    'angle_variance': 5.0 * math.pi / 180.0,  # tangential variance factor (rad)
    'min_height': -999.9,              # allowed height above sensor (m)
    'max_height': 999.9,
    'verification_services': [],       # verifier names, in calling order
    'confirmation_support': 100.0,     # support added per CONFIRM vote
    'service_timeout': 1.0,            # bounded wait for external services (s)
    'transform_timeout': 1.0,          # bounded wait for transforms (s)
}

DEFAULT_PIPELINE_CONFIG = {
    'workers': 4,
}


def parse_service_list(value: Union[str, List[str], None]) -> List[str]:
    """Split a comma separated service list; empty entries are dropped."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [name.strip() for name in value if name and name.strip()]


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to YAML file, or None for defaults only

    Returns:
        Dictionary with 'tracker', 'fusion', 'pipeline', 'logging' and
        'transforms' sections, merged over the defaults
    """
    data = {}
    if config_path:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from: {config_path}")

    config = {
        'tracker': {**copy.deepcopy(DEFAULT_TRACKER_CONFIG), **(data.get('tracker') or {})},
        'fusion': dict(data.get('fusion') or {}),
        'pipeline': {**DEFAULT_PIPELINE_CONFIG, **(data.get('pipeline') or {})},
        'logging': dict(data.get('logging') or {}),
        'transforms': list(data.get('transforms') or []),
    }
    config['tracker']['verification_services'] = parse_service_list(
        config['tracker']['verification_services'])

    return config
