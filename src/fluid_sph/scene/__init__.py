"""
Scene module: emitters, periodic force fields, pointer interaction and scenario presets.
"""

from fluid_sph.scene.sources import Source, SourceManager
from fluid_sph.scene.force_fields import (
    WaveField,
    WhirlpoolField,
    FieldScheduler,
)
from fluid_sph.scene.interaction import InteractionForceField
from fluid_sph.scene.scenarios import (
    SCENARIOS,
    DEFAULT_SCENARIO,
    ScenarioPreset,
    SourceSpec,
    ScenarioController,
)

__all__ = [
    "Source",
    "SourceManager",
    "WaveField",
    "WhirlpoolField",
    "FieldScheduler",
    "InteractionForceField",
    "SCENARIOS",
    "DEFAULT_SCENARIO",
    "ScenarioPreset",
    "SourceSpec",
    "ScenarioController",
]
