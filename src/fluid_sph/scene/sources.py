"""
Particle emitters.

Sources spawn particles on the simulation's own clock: a source with rate R
emits one particle per elapsed interval 1/R, catching up when a frame spans
several intervals, so a source active for T seconds emits floor(T R)
particles regardless of the frame length. Spawning into a full particle
arena is a silent no-op.
"""

from dataclasses import dataclass
from typing import Any, List, Optional
import numpy as np

from fluid_sph.core.interfaces import NDArrayFloat
from fluid_sph.sph.particles import ParticleState

# Tolerance on the emission schedule against clock round-off
SPAWN_EPSILON = 1e-9


@dataclass
class Source:
    """
    Particle emitter.

    Attributes
    ----------
    position : NDArrayFloat, shape (3,)
        Emission point.
    rate : float
        Particles per second; non-positive rates never emit.
    last_spawn : float
        Simulation time of the last scheduled emission.
    velocity : NDArrayFloat, shape (3,), optional
        Initial velocity of emitted particles (zero when None).
    """
    position: NDArrayFloat
    rate: float
    last_spawn: float = 0.0
    velocity: Optional[NDArrayFloat] = None

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float32).reshape(3)
        if self.velocity is not None:
            self.velocity = np.asarray(self.velocity, dtype=np.float32).reshape(3)
        self.rate = float(self.rate)


class SourceManager:
    """
    Owns the user and scenario emitter pools and spawns their particles.

    Attributes
    ----------
    sources : List[Source]
        User-added emitters.
    scenario_sources : List[Source]
        Emitters owned by the active scenario, replaced wholesale on load.
    """

    def __init__(self):
        self.sources: List[Source] = []
        self.scenario_sources: List[Source] = []

    @property
    def all_sources(self) -> List[Source]:
        return self.sources + self.scenario_sources

    def add_source(self, position, rate: float, now: float, velocity=None) -> Source:
        """Register a user emitter whose schedule starts at ``now``."""
        source = Source(position=position, rate=rate, last_spawn=now, velocity=velocity)
        self.sources.append(source)
        return source

    def add_scenario_source(self, position, rate: float, now: float, velocity=None) -> Source:
        """Register a scenario-owned emitter whose schedule starts at ``now``."""
        source = Source(position=position, rate=rate, last_spawn=now, velocity=velocity)
        self.scenario_sources.append(source)
        return source

    def clear_user_sources(self) -> None:
        self.sources.clear()

    def clear(self) -> None:
        """Drop both pools."""
        self.sources.clear()
        self.scenario_sources.clear()

    def set_rate(self, rate: float) -> None:
        """Apply a new emission rate to every user source."""
        for source in self.sources:
            source.rate = float(rate)

    def restart(self, now: float) -> None:
        """Restart every schedule at ``now`` (no catch-up burst)."""
        for source in self.all_sources:
            source.last_spawn = now

    def update(
        self,
        particles: ParticleState,
        now: float,
        config: Any,
        rng: np.random.Generator
    ) -> int:
        """
        Emit every particle due up to simulation time ``now``.

        Each particle is placed at the source position plus a jitter of
        ±``source_jitter``/2 on x and z and +``source_jitter`` on y, with
        the source velocity (or zero), gravity acceleration, zero density
        and pressure, and an empty neighbour set.

        Returns
        -------
        n_spawned : int
            Particles actually appended (excludes those dropped at capacity).
        """
        jitter = float(config.source_jitter)
        gravity = np.array(
            [0.0, -float(config.gravity) * float(config.gravity_scale), 0.0],
            dtype=np.float32
        )

        n_spawned = 0
        for source in self.all_sources:
            if source.rate <= 0.0:
                continue
            interval = 1.0 / source.rate

            while now - source.last_spawn >= interval - SPAWN_EPSILON:
                source.last_spawn += interval
                offset = np.array(
                    [(rng.random() - 0.5) * jitter, jitter, (rng.random() - 0.5) * jitter],
                    dtype=np.float32
                )
                if particles.append(source.position + offset, source.velocity, gravity):
                    n_spawned += 1

        return n_spawned
