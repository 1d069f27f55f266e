"""
Particle state storage for the SPH fluid core.

This module implements the ParticleState class: a structure-of-arrays arena
preallocated to the configured capacity, with an active-count cursor. New
particles are appended by moving the cursor; nothing is reallocated until the
capacity itself changes.
"""

from typing import Optional
import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]


class ParticleState:
    """
    Container for per-particle fluid quantities.

    All arrays are float32 and allocated once for ``capacity`` particles.
    The public attributes are views of the first ``n_active`` rows, so every
    per-particle array always has the same length.

    Attributes
    ----------
    capacity : int
        Maximum number of particles the arena can hold.
    n_active : int
        Number of live particles (``0 <= n_active <= capacity``).
    positions : NDArrayFloat, shape (n_active, 3)
        Cartesian coordinates (x, y, z).
    velocities : NDArrayFloat, shape (n_active, 3)
        Velocity components.
    accelerations : NDArrayFloat, shape (n_active, 3)
        Accelerations from the last force evaluation.
    density : NDArrayFloat, shape (n_active,)
        SPH density summation.
    pressure : NDArrayFloat, shape (n_active,)
        Tait pressure (negative when under-dense).
    neighbour_counts : NDArray[int32], shape (n_active,)
        Size of each particle's neighbour set from the last search.
    """

    def __init__(self, capacity: int):
        """
        Initialize an empty particle arena.

        Parameters
        ----------
        capacity : int
            Number of particle slots to allocate.
        """
        self.capacity = 0
        self.n_active = 0
        self._allocate(capacity)

    def _allocate(self, capacity: int) -> None:
        capacity = max(int(capacity), 0)
        self.capacity = capacity
        self.n_active = 0
        self._positions = np.zeros((capacity, 3), dtype=np.float32)
        self._velocities = np.zeros((capacity, 3), dtype=np.float32)
        self._accelerations = np.zeros((capacity, 3), dtype=np.float32)
        self._density = np.zeros(capacity, dtype=np.float32)
        self._pressure = np.zeros(capacity, dtype=np.float32)
        self._neighbour_counts = np.zeros(capacity, dtype=np.int32)

    @property
    def positions(self) -> NDArrayFloat:
        """Active particle positions (view)."""
        return self._positions[:self.n_active]

    @property
    def velocities(self) -> NDArrayFloat:
        """Active particle velocities (view)."""
        return self._velocities[:self.n_active]

    @property
    def accelerations(self) -> NDArrayFloat:
        """Active particle accelerations (view)."""
        return self._accelerations[:self.n_active]

    @property
    def density(self) -> NDArrayFloat:
        """Active particle densities (view)."""
        return self._density[:self.n_active]

    @property
    def pressure(self) -> NDArrayFloat:
        """Active particle pressures (view)."""
        return self._pressure[:self.n_active]

    @property
    def neighbour_counts(self) -> npt.NDArray[np.int32]:
        """Neighbour-set sizes from the last search (view)."""
        return self._neighbour_counts[:self.n_active]

    @property
    def is_full(self) -> bool:
        return self.n_active >= self.capacity

    def resize(self, capacity: int) -> None:
        """Reallocate the arena for a new capacity, dropping all particles."""
        self._allocate(capacity)

    def clear(self) -> None:
        """Drop all particles without reallocating."""
        self.n_active = 0

    def fill_block(
        self,
        positions: NDArrayFloat,
        velocities: Optional[NDArrayFloat] = None,
        accelerations: Optional[NDArrayFloat] = None
    ) -> int:
        """
        Replace the arena contents with a block of particles.

        Parameters
        ----------
        positions : NDArrayFloat, shape (M, 3)
            Initial positions. Rows beyond the capacity are ignored.
        velocities : NDArrayFloat, shape (M, 3), optional
            Initial velocities. If None, initialized to zeros.
        accelerations : NDArrayFloat, shape (M, 3), optional
            Initial accelerations. If None, initialized to zeros.

        Returns
        -------
        n : int
            Number of particles actually stored.
        """
        positions = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
        n = min(positions.shape[0], self.capacity)

        self.n_active = n
        self._positions[:n] = positions[:n]
        self._velocities[:n] = 0.0 if velocities is None else np.asarray(velocities)[:n]
        self._accelerations[:n] = 0.0 if accelerations is None else np.asarray(accelerations)[:n]
        self._density[:n] = 0.0
        self._pressure[:n] = 0.0
        self._neighbour_counts[:n] = 0
        return n

    def append(
        self,
        position: NDArrayFloat,
        velocity: Optional[NDArrayFloat] = None,
        acceleration: Optional[NDArrayFloat] = None
    ) -> bool:
        """
        Append one particle with zero density, zero pressure and no neighbours.

        Returns
        -------
        appended : bool
            False when the arena is already at capacity (nothing is stored).
        """
        if self.is_full:
            return False

        i = self.n_active
        self._positions[i] = position
        self._velocities[i] = 0.0 if velocity is None else velocity
        self._accelerations[i] = 0.0 if acceleration is None else acceleration
        self._density[i] = 0.0
        self._pressure[i] = 0.0
        self._neighbour_counts[i] = 0
        self.n_active = i + 1
        return True

    def position_buffer(self) -> NDArrayFloat:
        """Flat view of ``3 * n_active`` floats (x0, y0, z0, x1, ...) for drawing."""
        return self._positions[:self.n_active].reshape(-1)

    def kinetic_energy(self, particle_mass: float) -> float:
        """
        Compute total kinetic energy of the active particles.

        Returns
        -------
        E_kin : float
            Total kinetic energy: ∑ (1/2) m v².
        """
        v_squared = np.sum(self.velocities.astype(np.float64)**2, axis=1)
        return float(0.5 * particle_mass * np.sum(v_squared))

    def max_speed(self) -> float:
        """Largest velocity magnitude among active particles (0 when empty)."""
        if self.n_active == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.velocities, axis=1)))

    def center_of_mass(self) -> NDArrayFloat:
        """
        Compute center of mass position (equal-mass particles).

        Returns
        -------
        r_com : NDArrayFloat, shape (3,)
            Mean position, zeros when empty.
        """
        if self.n_active == 0:
            return np.zeros(3, dtype=np.float32)
        return np.mean(self.positions, axis=0).astype(np.float32)

    def __repr__(self) -> str:
        return (
            f"ParticleState(n_active={self.n_active}, "
            f"capacity={self.capacity})"
        )
