"""
Named simulation presets.

A scenario is a frozen bundle of parameter overrides, sphere obstacles,
emitters, periodic force fields and an initial fill fraction of the particle
block. Loading one wipes the previous scenario's state (obstacles, both
emitter pools, registered fields), restores the baseline values of every
parameter some preset overrides, then applies exactly one preset.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from fluid_sph.core.interfaces import ForceField
from fluid_sph.integration.collisions import Obstacle
from fluid_sph.scene.force_fields import WaveField, WhirlpoolField

Vec3 = Tuple[float, float, float]

DEFAULT_SCENARIO = "default"


@dataclass(frozen=True)
class SourceSpec:
    """Emitter template: position, rate (particles/s), optional velocity."""
    position: Vec3
    rate: float
    velocity: Optional[Vec3] = None


@dataclass(frozen=True)
class ScenarioPreset:
    """
    Scenario definition.

    Attributes
    ----------
    name : str
        Preset identifier.
    overrides : Mapping[str, Any]
        SimulationConfig field values applied on load.
    obstacles : Tuple[Obstacle, ...]
        Spheres added on load.
    sources : Tuple[SourceSpec, ...]
        Scenario-owned emitters added on load.
    fields : Tuple[Callable[[], ForceField], ...]
        Factories for the periodic fields registered on load.
    fill_fraction : float
        Fraction of ``particle_count`` placed in the initial block; the rest
        of the capacity is left for the emitters.
    """
    name: str
    overrides: Mapping[str, Any] = field(default_factory=dict)
    obstacles: Tuple[Obstacle, ...] = ()
    sources: Tuple[SourceSpec, ...] = ()
    fields: Tuple[Callable[[], ForceField], ...] = ()
    fill_fraction: float = 1.0


def _rain_sources() -> Tuple[SourceSpec, ...]:
    grid = (-3.0, -1.0, 1.0, 3.0)
    return tuple(
        SourceSpec(position=(x, 4.8, z), rate=6.0, velocity=(0.0, -1.0, 0.0))
        for x in grid for z in grid
    )


SCENARIOS: Dict[str, ScenarioPreset] = {
    "default": ScenarioPreset(name="default"),
    "waterfall": ScenarioPreset(
        name="waterfall",
        overrides={"viscosity": 0.05, "surface_tension": 0.05},
        obstacles=(
            Obstacle(center=(-1.5, 2.5, 0.0), radius=0.8),
            Obstacle(center=(0.5, 1.2, 0.3), radius=0.6),
        ),
        sources=(
            SourceSpec(position=(-3.5, 4.5, 0.0), rate=40.0, velocity=(2.0, 0.0, 0.0)),
        ),
        fill_fraction=0.3,
    ),
    "lake": ScenarioPreset(
        name="lake",
        overrides={"viscosity": 0.3, "viscosity_mode": "laplacian"},
        obstacles=(
            Obstacle(center=(0.0, 0.0, 0.0), radius=1.0),
            Obstacle(center=(2.5, 0.0, -1.5), radius=0.6),
            Obstacle(center=(-2.5, 0.0, 1.5), radius=0.7),
        ),
        fill_fraction=1.0,
    ),
    "waves": ScenarioPreset(
        name="waves",
        overrides={"viscosity": 0.05},
        fields=(WaveField,),
        fill_fraction=1.0,
    ),
    "fountain": ScenarioPreset(
        name="fountain",
        overrides={"viscosity": 0.08, "surface_tension": 0.2},
        obstacles=(Obstacle(center=(0.0, 0.0, 0.0), radius=0.4),),
        sources=(
            SourceSpec(position=(0.0, 0.5, 0.0), rate=60.0, velocity=(0.0, 8.0, 0.0)),
        ),
        fill_fraction=0.25,
    ),
    "rain": ScenarioPreset(
        name="rain",
        overrides={"surface_tension": 0.02, "gravity_scale": 1.5},
        sources=_rain_sources(),
        fill_fraction=0.1,
    ),
    "whirlpool": ScenarioPreset(
        name="whirlpool",
        overrides={"gravity_scale": 2.5, "surface_tension": 0.05},
        fields=(WhirlpoolField,),
        fill_fraction=1.0,
    ),
}


class ScenarioController:
    """
    Swaps scenario presets on a simulation.

    Attributes
    ----------
    active : str
        Name of the active scenario.
    baseline : Dict[str, Any]
        Values of every overridable parameter captured at construction;
        restored before each preset is applied.
    presets : Dict[str, ScenarioPreset]
        Known presets.
    """

    def __init__(self, config: Any, presets: Optional[Dict[str, ScenarioPreset]] = None):
        self.presets = dict(SCENARIOS if presets is None else presets)
        self.active = DEFAULT_SCENARIO
        overridable = sorted({key for preset in self.presets.values() for key in preset.overrides})
        self.baseline: Dict[str, Any] = {key: getattr(config, key) for key in overridable}

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self.presets)

    def resolve(self, name: str) -> ScenarioPreset:
        """Preset for ``name``, or the default preset when unrecognized."""
        return self.presets.get(name, self.presets[DEFAULT_SCENARIO])

    def load(self, simulation: Any, name: str) -> ScenarioPreset:
        """
        Activate a scenario on ``simulation``.

        Clears obstacles, both emitter pools and registered fields, restores
        baseline parameters, applies the preset overrides, re-initializes
        the particle block and registers the preset's obstacles, emitters
        and fields.

        Returns
        -------
        preset : ScenarioPreset
            The preset actually loaded (default on unknown names).
        """
        preset = self.resolve(name)
        config = simulation.config

        simulation.obstacle_collider.clear()
        simulation.source_manager.clear()
        simulation.field_scheduler.clear()

        # Plain assignment skips set_parameter side effects; kernels are synced
        # below and initialize() rewrites the gravity accelerations.
        for key, value in self.baseline.items():
            setattr(config, key, value)
        for key, value in preset.overrides.items():
            setattr(config, key, value)
        simulation.sph_solver.sync_kernels(config)

        simulation.initialize(int(round(preset.fill_fraction * config.particle_count)))

        now = simulation.state.time
        for obstacle in preset.obstacles:
            simulation.obstacle_collider.add(obstacle)
        for spec in preset.sources:
            simulation.source_manager.add_scenario_source(
                spec.position, spec.rate, now, velocity=spec.velocity
            )
        for factory in preset.fields:
            simulation.field_scheduler.register(
                factory(), preset.name, now, config.field_interval
            )

        self.active = preset.name
        return preset
