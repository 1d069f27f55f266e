"""
Sub-stepped semi-implicit (symplectic) Euler integrator.

Each frame of length dt is split into ``sub_steps`` equal sub-steps:
    v ← v + a Δt'
    v ← v × min(1, v_max / |v|)
    x ← x + v Δt'
followed by the collision policies in their fixed order. Accelerations are
evaluated once per frame; sub-stepping only refines the drift and the
collision response, which keeps fast particles from tunnelling through the
ground threshold or obstacles. A last clamp after the final sub-step keeps
every speed within v_max at the end of the frame.
"""

from typing import Any, Sequence
import numpy as np

from fluid_sph.core.interfaces import Collider, TimeIntegrator, NDArrayFloat


def clamp_velocities(velocities: NDArrayFloat, max_velocity: float) -> int:
    """
    Rescale every velocity whose magnitude exceeds ``max_velocity``.

    Returns
    -------
    n_clamped : int
        Number of particles rescaled.
    """
    speed = np.linalg.norm(velocities, axis=1)
    too_fast = speed > max_velocity
    n_clamped = int(np.count_nonzero(too_fast))
    if n_clamped:
        scale = max_velocity / speed[too_fast]
        velocities[too_fast] *= scale[:, np.newaxis].astype(np.float32)
    return n_clamped


class SubSteppedEulerIntegrator(TimeIntegrator):
    """
    Semi-implicit Euler with velocity limiting and collision resolution.

    Attributes
    ----------
    n_clamped : int
        Number of velocity clamps applied during the last frame.
    """

    def __init__(self):
        self.n_clamped = 0

    def step(
        self,
        particles: Any,
        dt: float,
        config: Any,
        colliders: Sequence[Collider],
        rng: np.random.Generator
    ) -> None:
        """
        Advance particle positions and velocities by one frame.

        Parameters
        ----------
        particles : ParticleState
            Particle arena with accelerations already evaluated.
        dt : float
            Frame duration.
        config : SimulationConfig
            Uses ``sub_steps``, ``max_velocity`` and whatever the colliders read.
        colliders : Sequence[Collider]
            Applied in order after every drift.
        rng : np.random.Generator
            Passed through to the colliders.

        Notes
        -----
        Modifies particles.positions and particles.velocities in place.
        """
        sub_steps = max(int(config.sub_steps), 1)
        sub_dt = np.float32(dt / sub_steps)
        max_velocity = float(config.max_velocity)

        positions = particles.positions
        velocities = particles.velocities
        accelerations = particles.accelerations

        self.n_clamped = 0
        for _ in range(sub_steps):
            # 1. Kick
            velocities += accelerations * sub_dt

            # 2. Velocity limit
            self.n_clamped += clamp_velocities(velocities, max_velocity)

            # 3. Drift
            positions += velocities * sub_dt

            # 4. Collisions
            for collider in colliders:
                collider.resolve(positions, velocities, config, rng)

        # Ground kicks can push a particle past the limit after the last clamp
        self.n_clamped += clamp_velocities(velocities, max_velocity)

    def reset(self) -> None:
        """Reset per-frame counters."""
        self.n_clamped = 0
