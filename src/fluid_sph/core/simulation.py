"""
Simulation orchestrator for the interactive SPH fluid core.

This module implements the FluidSimulation class that coordinates the
physics components once per animation frame, following the "system +
component" pattern:
- FluidSimulation owns the particle arena, the live parameter set and the
  scene state (obstacles, emitters, scenario fields)
- Solver, integrator and colliders are separate components driven in a
  fixed order every step
- External collaborators (renderer, input picking, UI panels) talk to the
  core only through the public operations below
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import warnings
import numpy as np
import numpy.typing as npt
import time as time_module
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from pydantic.alias_generators import to_camel

from fluid_sph.core.interfaces import Collider
from fluid_sph.sph import (
    ParticleState,
    KernelSet,
    SpatialHashGrid,
    SPHSolver,
)
from fluid_sph.integration import (
    SubSteppedEulerIntegrator,
    Obstacle,
    BoundingBoxCollider,
    GroundPlaneCollider,
    SphereObstacleCollider,
    GridLineCollider,
)
from fluid_sph.scene import (
    Source,
    SourceManager,
    FieldScheduler,
    InteractionForceField,
    ScenarioController,
    DEFAULT_SCENARIO,
)


NDArrayFloat = npt.NDArray[np.float32]
Vec3 = Tuple[float, float, float]


class SimulationConfig(BaseModel):
    """
    Live parameter set for the fluid core with Pydantic validation.

    Every field is addressable by its snake_case name or by its camelCase
    alias (``particleCount``, ``smoothingLength``, ...), which is how the
    parameter panel names them.

    Physics scalars are deliberately not range-checked: a zero or negative
    smoothing length or rest density only triggers a warning and is the
    caller's responsibility. Structural fields (particle_count, sub_steps,
    box bounds, viscosity_mode) are validated.

    Attributes
    ----------
    particle_count : int
        Particle capacity; changing it triggers a full reset.
    gravity, gravity_scale : float
        Gravity magnitude and the multiplier applied when accelerations are
        reset (scenario presets may use a stronger pull).
    smoothing_length : float
        Kernel support h and spatial hash cell size.
    particle_mass, rest_density, gas_constant : float
        Density summation and Tait equation-of-state parameters.
    viscosity, surface_tension, pressure_scale : float
        Pair-force coefficients.
    time_step, sub_steps, max_velocity : float, int, float
        Frame length, integrator sub-steps per frame and velocity limit.
    damping, boundary_damping : float
        Collision restitution; boundary_damping (box only) falls back to
        damping when None.
    """

    # Population
    particle_count: int = Field(default=1000, ge=0, description="Particle capacity")
    particle_size: float = Field(default=0.1, description="Point size used by the renderer")
    spawn_min: Vec3 = Field(default=(-1.0, 0.0, -1.0), description="Initial block lower corner")
    spawn_max: Vec3 = Field(default=(1.0, 5.0, 1.0), description="Initial block upper corner")

    # Gravity
    gravity: float = Field(default=9.81, description="Gravity magnitude (acts along -y)")
    gravity_scale: float = Field(default=1.0, description="Multiplier on gravity at force reset")

    # SPH parameters
    smoothing_length: float = Field(default=0.5, description="Kernel support radius h")
    particle_mass: float = Field(default=1.0, description="Mass of every particle")
    rest_density: float = Field(default=40.0, description="Tait rest density ρ0")
    gas_constant: float = Field(default=2.0, description="Tait stiffness k")
    viscosity: float = Field(default=0.1, description="Viscosity coefficient μ")
    viscosity_mode: str = Field(default="linear", description="'linear' or 'laplacian' viscosity weighting")
    surface_tension: float = Field(default=0.1, description="Cohesion coefficient σ")
    pressure_scale: float = Field(default=3.0, description="Empirical pressure force multiplier")
    density_floor: float = Field(default=1e-3, description="Floor on densities used as divisors")

    # Integration
    time_step: float = Field(default=0.016, description="Frame length in simulation seconds")
    sub_steps: int = Field(default=2, ge=2, description="Integrator sub-steps per frame")
    max_velocity: float = Field(default=10.0, description="Velocity magnitude limit")

    # Collisions
    damping: float = Field(default=0.5, description="Restitution for ground and obstacles")
    boundary_damping: Optional[float] = Field(default=None, description="Bounding box restitution")
    box_min: Vec3 = Field(default=(-5.0, -5.0, -5.0), description="Bounding box lower corner")
    box_max: Vec3 = Field(default=(5.0, 5.0, 5.0), description="Bounding box upper corner")
    collision_threshold: float = Field(default=0.1, description="Ground contact distance")
    ground_friction: float = Field(default=0.99, description="Horizontal velocity factor on ground contact")
    perturbation_probability: float = Field(default=0.05, description="Chance of a random ground kick")
    perturbation_strength: float = Field(default=0.1, description="Width of the random ground kick")
    plan_limit: float = Field(default=5.0, description="Horizontal |x|, |z| limit")
    grid_size: float = Field(default=1.0, description="Reference grid spacing")
    grid_line_collisions: bool = Field(default=False, description="Collide against grid lines")
    obstacle_radius: float = Field(default=0.5, description="Radius of pointer-placed obstacles")

    # Pointer interaction
    interaction_radius: float = Field(default=1.0, description="Impulse radius")
    interaction_force: float = Field(default=5.0, description="Impulse strength (positive pushes away)")
    interaction_dispersion: float = Field(default=0.1, description="Random scatter of the impulse")

    # Emitters
    source_rate: float = Field(default=10.0, description="Particles per second of user sources")
    source_jitter: float = Field(default=0.1, description="Spawn offset amplitude")

    # Scenario force fields
    wave_amplitude: float = Field(default=0.2, description="Wave velocity amplitude")
    wave_frequency: float = Field(default=2.0, description="Wave angular frequency")
    wave_number: float = Field(default=1.0, description="Wave spatial frequency k")
    whirlpool_strength: float = Field(default=0.3, description="Whirlpool tangential strength")
    field_interval: float = Field(default=0.05, ge=0.0, description="Field cadence in simulation seconds")

    # Misc
    random_seed: Optional[int] = Field(default=42, description="Random seed for reproducibility")
    verbose: bool = Field(default=True, description="Enable verbose logging")
    log_interval: int = Field(default=60, ge=1, description="Steps between progress logs in run()")

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",  # Raise error on unknown fields
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator('viscosity_mode')
    @classmethod
    def validate_viscosity_mode(cls, v: str) -> str:
        """Validate viscosity weighting."""
        valid_modes = ["linear", "laplacian"]
        if v not in valid_modes:
            raise ValueError(f"viscosity_mode must be one of {valid_modes}, got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_configuration_consistency(self):
        """
        Cross-field checks.

        Inverted boxes are rejected; degenerate physics values only warn.
        """
        if any(lo >= hi for lo, hi in zip(self.box_min, self.box_max)):
            raise ValueError(
                f"box_min {self.box_min} must be below box_max {self.box_max} on every axis"
            )

        if self.smoothing_length <= 0.0:
            warnings.warn(
                f"smoothing_length={self.smoothing_length} is not positive; "
                "kernel constants will be inf/nan."
            )

        if self.rest_density <= 0.0:
            warnings.warn(
                f"rest_density={self.rest_density} is not positive; pressures will be inf/nan."
            )

        if self.damping > 1.0:
            warnings.warn(
                f"damping={self.damping} > 1 makes collisions add energy."
            )

        return self

    @classmethod
    def parameter_names(cls) -> Dict[str, str]:
        """Map every accepted name (field name and camelCase alias) to its field."""
        names = {}
        for field_name in cls.model_fields:
            names[field_name] = field_name
            names[to_camel(field_name)] = field_name
        return names


@dataclass
class SimulationState:
    """
    Current state of the simulation clock and per-phase timings.
    """
    time: float = 0.0
    step: int = 0
    dt: float = 0.016
    scenario: str = DEFAULT_SCENARIO
    n_spawned: int = 0

    # Timing diagnostics (wall-clock seconds of the last step)
    timing_neighbours: float = 0.0
    timing_density: float = 0.0
    timing_forces: float = 0.0
    timing_sources: float = 0.0
    timing_fields: float = 0.0
    timing_integration: float = 0.0
    timing_total: float = 0.0

    wall_time_start: float = field(default_factory=time_module.time)
    wall_time_elapsed: float = 0.0


class FluidSimulation:
    """
    Main orchestrator of the SPH fluid core.

    One ``step()`` runs to completion per animation frame:
        neighbours → density/pressure → forces → emitters → scenario fields
        → sub-stepped integration with collisions → clock → frame callback

    Parameter changes, obstacles, emitters, interaction impulses and
    scenario switches are applied between steps by the caller.

    Usage:
        >>> sim = FluidSimulation(SimulationConfig(particle_count=500))
        >>> sim.load_scenario("fountain")
        >>> for _ in range(60):
        ...     buffer = sim.step()
        >>> sim.set_parameter("viscosity", 0.2)
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        scenario: Optional[str] = None,
        frame_callback: Optional[Callable[[NDArrayFloat], None]] = None,
    ):
        """
        Initialize simulation.

        Parameters
        ----------
        config : Optional[SimulationConfig]
            Parameter set. If None, uses defaults.
        scenario : Optional[str]
            Scenario to load; if None, a plain block of ``particle_count``
            particles is created with no obstacles or emitters.
        frame_callback : Optional[Callable]
            Called after each step with the flat position buffer
            (the rendering collaborator's hook).
        """
        self.config = config or SimulationConfig()
        self.state = SimulationState(dt=self.config.time_step)
        self.rng = np.random.default_rng(self.config.random_seed)
        self.frame_callback = frame_callback

        # Physics components
        self.particles = ParticleState(self.config.particle_count)
        self.kernels = KernelSet(self.config.smoothing_length)
        self.grid = SpatialHashGrid()
        self.sph_solver = SPHSolver(self.kernels, self.grid)
        self.integrator = SubSteppedEulerIntegrator()

        # Collision policies, in resolution order
        self.obstacle_collider = SphereObstacleCollider()
        self.colliders: List[Collider] = [
            BoundingBoxCollider(),
            GroundPlaneCollider(),
            self.obstacle_collider,
            GridLineCollider(),
        ]

        # Scene
        self.source_manager = SourceManager()
        self.field_scheduler = FieldScheduler()
        self.interaction = InteractionForceField()
        self.scenarios = ScenarioController(self.config)

        if scenario is None:
            self.initialize()
        else:
            self.load_scenario(scenario)

        self._log(f"Initialized fluid simulation")
        self._log(f"  Particles: {self.particles.n_active}/{self.particles.capacity}")
        self._log(f"  Smoothing length: {self.kernels.h}")
        self._log(f"  Scenario: {self.scenarios.active}")

    def _log(self, message: str):
        """Log message if verbose."""
        if self.config.verbose:
            print(f"[{self.state.time:.4f}] {message}")

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def initialize(self, count: Optional[int] = None) -> int:
        """
        Fill the particle block.

        Places ``count`` particles (capacity when None, clipped to it)
        uniformly at random in ``[spawn_min, spawn_max]`` with zero velocity
        and gravity acceleration. The arena is reallocated first if
        ``particle_count`` changed.

        Returns
        -------
        n : int
            Number of active particles.
        """
        capacity = self.config.particle_count
        if self.particles.capacity != capacity:
            self.particles.resize(capacity)

        n = capacity if count is None else min(max(int(count), 0), capacity)
        lo = np.asarray(self.config.spawn_min, dtype=np.float64)
        hi = np.asarray(self.config.spawn_max, dtype=np.float64)
        positions = lo + self.rng.random((n, 3)) * (hi - lo)

        accelerations = np.zeros((n, 3), dtype=np.float32)
        accelerations[:, 1] = -self.config.gravity * self.config.gravity_scale

        self.particles.fill_block(positions, accelerations=accelerations)
        self.integrator.reset()
        return self.particles.n_active

    def reset_simulation(self) -> None:
        """
        Restart the particle block.

        Restores the active count to ``particle_count`` with all velocities
        zero and clears every obstacle. Emitters and scenario fields are kept;
        emitter schedules restart at the current time.
        """
        self.obstacle_collider.clear()
        self.source_manager.restart(self.state.time)
        n = self.initialize()
        self._log(f"Simulation reset: {n} particles")

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self, dt: Optional[float] = None) -> NDArrayFloat:
        """
        Advance the simulation by one frame.

        Parameters
        ----------
        dt : Optional[float]
            Frame length; ``config.time_step`` when None.

        Returns
        -------
        buffer : NDArrayFloat, shape (3 * n_active,)
            Refreshed flat position buffer.
        """
        dt = self.config.time_step if dt is None else float(dt)
        t0_total = time_module.time()

        # 1. Neighbour search
        t0 = time_module.time()
        self.sph_solver.update_neighbours(self.particles, self.config)
        self.state.timing_neighbours = time_module.time() - t0

        # 2. Density and pressure
        t0 = time_module.time()
        self.sph_solver.compute_density_pressure(self.particles, self.config)
        self.state.timing_density = time_module.time() - t0

        # 3. Accelerations
        t0 = time_module.time()
        self.sph_solver.compute_forces(self.particles, self.config)
        self.state.timing_forces = time_module.time() - t0

        now = self.state.time + dt

        # 4. Emitters
        t0 = time_module.time()
        n_spawned = self.source_manager.update(self.particles, now, self.config, self.rng)
        self.state.n_spawned += n_spawned
        self.state.timing_sources = time_module.time() - t0

        # 5. Scenario fields on the logical clock
        t0 = time_module.time()
        self.field_scheduler.tick(self.particles, now, self.config, self.scenarios.active)
        self.state.timing_fields = time_module.time() - t0

        # 6. Sub-stepped integration and collisions
        t0 = time_module.time()
        self.integrator.step(self.particles, dt, self.config, self.colliders, self.rng)
        self.state.timing_integration = time_module.time() - t0

        self.state.time = now
        self.state.dt = dt
        self.state.step += 1
        self.state.timing_total = time_module.time() - t0_total
        self.state.wall_time_elapsed = time_module.time() - self.state.wall_time_start

        buffer = self.get_position_buffer()
        if self.frame_callback is not None:
            self.frame_callback(buffer)
        return buffer

    def run(self, n_steps: int, dt: Optional[float] = None) -> SimulationState:
        """
        Advance ``n_steps`` frames, logging progress every ``log_interval`` steps.
        """
        for _ in range(int(n_steps)):
            self.step(dt)

            if self.state.step % self.config.log_interval == 0:
                diag = self.compute_diagnostics()
                self._log(
                    f"Step {self.state.step}: N={diag['n_active']}, "
                    f"E_kin={diag['kinetic_energy']:.3e}, "
                    f"v_max={diag['max_speed']:.3f}, "
                    f"<rho>={diag['mean_density']:.3f}, "
                    f"step time={self.state.timing_total * 1e3:.2f} ms"
                )
        return self.state

    def get_position_buffer(self) -> NDArrayFloat:
        """Flat view of ``3 * n_active`` positions for drawing."""
        return self.particles.position_buffer()

    # ------------------------------------------------------------------
    # Scene editing
    # ------------------------------------------------------------------

    def add_obstacle(self, point, radius: Optional[float] = None) -> Obstacle:
        """Place a static sphere at a world-space point (``obstacle_radius`` by default)."""
        radius = self.config.obstacle_radius if radius is None else radius
        obstacle = self.obstacle_collider.add(Obstacle(center=tuple(np.asarray(point, dtype=np.float64)), radius=radius))
        self._log(f"Obstacle added at {obstacle.center} (r={obstacle.radius})")
        return obstacle

    def add_source(self, point, rate: Optional[float] = None, velocity=None) -> Source:
        """Place a user emitter at a world-space point (``source_rate`` by default)."""
        rate = self.config.source_rate if rate is None else rate
        source = self.source_manager.add_source(point, rate, self.state.time, velocity=velocity)
        self._log(f"Source added at {tuple(source.position)} ({source.rate} particles/s)")
        return source

    def clear_sources(self) -> None:
        """Remove every user emitter (scenario emitters are kept)."""
        self.source_manager.clear_user_sources()

    def apply_interaction_force(
        self,
        point,
        radius: Optional[float] = None,
        strength: Optional[float] = None
    ) -> int:
        """
        Kick particles near a world-space point.

        Returns
        -------
        n_affected : int
            Number of particles within the radius.
        """
        radius = self.config.interaction_radius if radius is None else radius
        strength = self.config.interaction_force if strength is None else strength
        return self.interaction.apply(
            self.particles,
            point,
            radius,
            strength,
            dispersion=self.config.interaction_dispersion,
            rng=self.rng,
        )

    @property
    def obstacles(self) -> List[Obstacle]:
        return list(self.obstacle_collider.obstacles)

    @property
    def sources(self) -> List[Source]:
        return list(self.source_manager.sources)

    @property
    def scenario_sources(self) -> List[Source]:
        return list(self.source_manager.scenario_sources)

    # ------------------------------------------------------------------
    # Parameters and scenarios
    # ------------------------------------------------------------------

    def set_parameter(self, name: str, value: Any) -> None:
        """
        Change one named parameter.

        Accepts field names and camelCase aliases. Side effects:
        - particle_count: full reset with arena reallocation
        - smoothing_length: kernel constants recomputed
        - gravity, gravity_scale: y-component of every acceleration rewritten
        - source_rate: applied to every user emitter
        - random_seed: random generator reseeded

        Raises
        ------
        ValueError
            If the name is unknown or the value fails validation.
        """
        names = SimulationConfig.parameter_names()
        if name not in names:
            raise ValueError(f"Unknown parameter '{name}'")
        field_name = names[name]

        previous = getattr(self.config, field_name)
        try:
            setattr(self.config, field_name, value)
        except ValueError:
            # Cross-field checks run after the new value is written
            self.config.__dict__[field_name] = previous
            raise
        value = getattr(self.config, field_name)

        if field_name == "particle_count":
            self.reset_simulation()
        elif field_name == "smoothing_length":
            self.kernels.set_smoothing_length(value)
        elif field_name in ("gravity", "gravity_scale"):
            self.particles.accelerations[:, 1] = -self.config.gravity * self.config.gravity_scale
        elif field_name == "source_rate":
            self.source_manager.set_rate(value)
        elif field_name == "random_seed":
            self.rng = np.random.default_rng(value)

        self._log(f"Parameter {field_name} = {value!r}")

    def load_scenario(self, name: str) -> str:
        """
        Activate a named scenario.

        Unknown names fall back to ``default``.

        Returns
        -------
        name : str
            The scenario actually loaded.
        """
        if name not in self.scenarios.presets:
            self._log(f"Unknown scenario '{name}', falling back to '{DEFAULT_SCENARIO}'")

        preset = self.scenarios.load(self, name)
        self.state.scenario = preset.name
        self._log(
            f"Scenario '{preset.name}' loaded: {self.particles.n_active} particles, "
            f"{len(preset.obstacles)} obstacles, {len(preset.sources)} sources, "
            f"{len(preset.fields)} fields"
        )
        return preset.name

    @property
    def active_scenario(self) -> str:
        return self.scenarios.active

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def compute_diagnostics(self) -> Dict[str, float]:
        """
        Summary of the current particle state.

        Returns
        -------
        diagnostics : Dict[str, float]
            Active count, kinetic energy, maximum speed, density and
            neighbour statistics, scene object counts.
        """
        particles = self.particles
        n = particles.n_active
        return {
            'time': float(self.state.time),
            'n_active': int(n),
            'capacity': int(particles.capacity),
            'kinetic_energy': particles.kinetic_energy(self.config.particle_mass),
            'max_speed': particles.max_speed(),
            'mean_density': float(np.mean(particles.density)) if n else 0.0,
            'max_pressure': float(np.max(particles.pressure)) if n else 0.0,
            'mean_neighbours': float(np.mean(particles.neighbour_counts)) if n else 0.0,
            'n_obstacles': len(self.obstacle_collider.obstacles),
            'n_sources': len(self.source_manager.all_sources),
        }

    def __repr__(self) -> str:
        return (
            f"FluidSimulation(scenario='{self.scenarios.active}', "
            f"particles={self.particles!r}, t={self.state.time:.3f})"
        )
