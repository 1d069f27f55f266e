"""
Configuration loaders for YAML and JSON files.

Configuration files group parameters into sections for readability; the
sections are flattened onto SimulationConfig fields (snake_case names or
the camelCase aliases used by the parameter panel) before validation.
"""

from typing import Dict, Any, Union
from pathlib import Path
import yaml
import json

from fluid_sph.core.simulation import SimulationConfig


# Sections written by save_config, in order, with the fields each one holds
CONFIG_SECTIONS = {
    'simulation': [
        'particle_count', 'particle_size', 'spawn_min', 'spawn_max',
        'time_step', 'log_interval',
    ],
    'sph': [
        'smoothing_length', 'particle_mass', 'rest_density', 'gas_constant',
        'viscosity', 'viscosity_mode', 'surface_tension', 'pressure_scale',
        'density_floor',
    ],
    'integration': [
        'gravity', 'gravity_scale', 'sub_steps', 'max_velocity',
    ],
    'collisions': [
        'damping', 'boundary_damping', 'box_min', 'box_max',
        'collision_threshold', 'ground_friction', 'perturbation_probability',
        'perturbation_strength', 'plan_limit', 'grid_size',
        'grid_line_collisions', 'obstacle_radius',
    ],
    'interaction': [
        'interaction_radius', 'interaction_force', 'interaction_dispersion',
    ],
    'sources': [
        'source_rate', 'source_jitter',
    ],
    'fields': [
        'wave_amplitude', 'wave_frequency', 'wave_number',
        'whirlpool_strength', 'field_interval',
    ],
    'misc': [
        'random_seed', 'verbose',
    ],
}

# Vector fields stored as lists in files, tuples on the model
_VECTOR_FIELDS = ('spawn_min', 'spawn_max', 'box_min', 'box_max')


def load_config(filename: Union[str, Path], **overrides) -> SimulationConfig:
    """
    Load simulation configuration from YAML or JSON file.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)
    **overrides : keyword arguments
        Override specific config values (e.g., particle_count=2000)

    Returns
    -------
    config : SimulationConfig
        Validated simulation configuration

    Raises
    ------
    FileNotFoundError
        If configuration file does not exist
    ValueError
        If file format is unsupported or config is invalid

    Examples
    --------
    >>> config = load_config("fountain.yaml")
    >>> config = load_config("config.yaml", viscosity=0.2, verbose=False)
    """
    filepath = Path(filename)

    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    # Determine file type and load
    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        config_dict = load_yaml(filepath)
    elif suffix == '.json':
        config_dict = load_json(filepath)
    else:
        raise ValueError(
            f"Unsupported config file format: {suffix}. "
            "Use .yaml, .yml, or .json"
        )

    flat_config = flatten_config(config_dict)
    flat_config.update(overrides)

    try:
        config = SimulationConfig(**flat_config)
    except Exception as e:
        raise ValueError(
            f"Configuration validation failed for {filepath}: {e}"
        ) from e

    return config


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """Load YAML configuration file (an empty file gives an empty dict)."""
    with open(filepath, 'r') as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        config_dict = {}

    return config_dict


def load_json(filepath: Path) -> Dict[str, Any]:
    """Load JSON configuration file."""
    with open(filepath, 'r') as f:
        config_dict = json.load(f)

    return config_dict


def flatten_config(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten nested configuration dictionary.

    Converts nested structures like:
        {'sph': {'smoothing_length': 0.5}, 'collisions': {'boxMin': [-4, 0, -4]}}
    to:
        {'smoothing_length': 0.5, 'boxMin': [-4, 0, -4]}

    Keys are kept as written so pydantic resolves either spelling. Sections
    not in CONFIG_SECTIONS are flattened the same way.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Nested configuration dictionary

    Returns
    -------
    flat_dict : Dict[str, Any]
        Flattened configuration dictionary
    """
    flat = {}

    for key, value in config_dict.items():
        if isinstance(value, dict):
            flat.update(flatten_config(value))
        else:
            flat[key] = value

    return flat


def save_config(config: SimulationConfig, filename: Union[str, Path]) -> None:
    """
    Save SimulationConfig to a sectioned YAML or JSON file.

    Parameters
    ----------
    config : SimulationConfig
        Configuration to save
    filename : str or Path
        Output file path (.yaml, .yml or .json)
    """
    filepath = Path(filename)
    config_dict = config.model_dump()

    organized = {}
    for section, names in CONFIG_SECTIONS.items():
        organized[section] = {}
        for name in names:
            value = config_dict[name]
            if name in _VECTOR_FIELDS:
                value = [float(v) for v in value]
            organized[section][name] = value

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.safe_dump(organized, f, default_flow_style=False, sort_keys=False)
    elif suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(organized, f, indent=2)
    else:
        raise ValueError(f"Unsupported output format: {suffix}. Use .yaml or .json")


def config_from_dict(config_dict: Dict[str, Any]) -> SimulationConfig:
    """
    Create SimulationConfig from dictionary (helper for programmatic use).

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Nested or flat configuration dictionary

    Returns
    -------
    config : SimulationConfig
        Validated configuration
    """
    flat = flatten_config(config_dict)
    return SimulationConfig(**flat)
