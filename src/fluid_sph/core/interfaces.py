"""
Abstract base classes defining interfaces for pluggable fluid-core modules.

The orchestrator only talks to integrators, colliders and force fields
through these contracts, so alternative collision policies or integration
schemes can be swapped in without touching the step loop.
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence
import numpy as np
import numpy.typing as npt


# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float32]


class Collider(ABC):
    """
    Abstract base class for static collision policies.

    Implementations: BoundingBoxCollider, GroundPlaneCollider,
    SphereObstacleCollider, GridLineCollider.
    """

    @abstractmethod
    def resolve(
        self,
        positions: NDArrayFloat,
        velocities: NDArrayFloat,
        config: Any,
        rng: np.random.Generator
    ) -> None:
        """
        Resolve collisions in place.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 3)
            Particle positions, modified in place.
        velocities : NDArrayFloat, shape (N, 3)
            Particle velocities, modified in place.
        config : SimulationConfig
            Live parameter set (damping, thresholds, limits).
        rng : np.random.Generator
            Random source for symmetry-breaking perturbations.
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return human-readable collider name."""
        pass


class TimeIntegrator(ABC):
    """
    Abstract base class for time integration schemes.

    Implementations: SubSteppedEulerIntegrator.
    """

    @abstractmethod
    def step(
        self,
        particles: Any,
        dt: float,
        config: Any,
        colliders: Sequence[Collider],
        rng: np.random.Generator
    ) -> None:
        """
        Advance particle state by one frame.

        Parameters
        ----------
        particles : ParticleState
            Particle arena; positions and velocities are updated in place.
        dt : float
            Frame duration in simulation seconds.
        config : SimulationConfig
            Live parameter set.
        colliders : Sequence[Collider]
            Collision policies, applied in the given order after each drift.
        rng : np.random.Generator
            Random source handed to the colliders.
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset any integrator-internal state."""
        pass


class ForceField(ABC):
    """
    Abstract base class for global velocity perturbations.

    Implementations: WaveField, WhirlpoolField.
    """

    @abstractmethod
    def apply(self, particles: Any, time: float, config: Any) -> None:
        """
        Perturb particle velocities in place.

        Parameters
        ----------
        particles : ParticleState
            Particle arena.
        time : float
            Simulation clock in seconds.
        config : SimulationConfig
            Live parameter set (amplitudes, strengths).
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return human-readable field name."""
        pass
