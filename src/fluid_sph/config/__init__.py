"""
Configuration module: YAML/JSON loading of the simulation parameter set.
"""

from fluid_sph.config.loaders import (
    load_config,
    save_config,
    config_from_dict,
    flatten_config,
)

__all__ = [
    'load_config',
    'save_config',
    'config_from_dict',
    'flatten_config',
]
