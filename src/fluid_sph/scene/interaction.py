"""
Pointer-driven interaction impulses.

The input layer hands the core a world-space point; every particle within
the interaction radius receives an instantaneous velocity kick. The kick is
not integrated over dt, so the fluid answers on the very next frame.
"""

from typing import Optional
import numpy as np

from fluid_sph.core.interfaces import NDArrayFloat
from fluid_sph.sph.particles import ParticleState


class InteractionForceField:
    """
    Radial velocity impulse around a point.

    For a particle at distance d < radius from the centre:
        v += strength × (1 − d / radius) × (p − c) / d
    Positive strength pushes particles away from the centre, negative
    strength pulls them in. An optional random dispersion, scaled by the
    same linear falloff, scatters the kicked particles.
    """

    def apply(
        self,
        particles: ParticleState,
        center: NDArrayFloat,
        radius: float,
        strength: float,
        dispersion: float = 0.0,
        rng: Optional[np.random.Generator] = None
    ) -> int:
        """
        Apply the impulse.

        Parameters
        ----------
        particles : ParticleState
            Particle arena; velocities are modified in place.
        center : NDArrayFloat, shape (3,)
            World-space interaction point.
        radius : float
            Influence radius; a non-positive radius affects nothing.
        strength : float
            Impulse magnitude at the centre.
        dispersion : float, optional
            Amplitude of the random scatter (default 0).
        rng : np.random.Generator, optional
            Random source for the scatter.

        Returns
        -------
        n_affected : int
            Number of particles inside the radius.
        """
        if particles.n_active == 0 or radius <= 0.0:
            return 0

        center = np.asarray(center, dtype=np.float64).reshape(3)
        offset = particles.positions.astype(np.float64) - center
        dist = np.linalg.norm(offset, axis=1)
        inside = dist < radius
        n_affected = int(np.count_nonzero(inside))
        if n_affected == 0:
            return 0

        d = dist[inside][:, np.newaxis]
        falloff = 1.0 - d / radius
        # Particles sitting on the centre get no radial direction
        direction = np.where(d > 1e-12, offset[inside] / np.maximum(d, 1e-12), 0.0)
        impulse = direction * strength * falloff

        if dispersion > 0.0:
            if rng is None:
                rng = np.random.default_rng()
            impulse += (rng.random((n_affected, 3)) - 0.5) * dispersion * falloff

        particles.velocities[inside] += impulse.astype(np.float32)
        return n_affected
