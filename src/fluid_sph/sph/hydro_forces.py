"""
SPH density, pressure and force evaluation.

This module implements the interactive-rate SPH force model:
- Poly6 density summation with self-contribution
- Tait equation of state (exponent 7), negative pressure allowed
- Pressure, viscosity and cohesion pair forces

Pair forces are accumulated one-sided: particle i sums the contribution of
each neighbour j without applying the opposite contribution to j in the
same pass. Newton's third law holds only to the extent that the neighbour
relation is symmetric, which the exact-distance filter of the spatial hash
guarantees.
"""

from typing import Any, Tuple
import numpy as np
import numpy.typing as npt
from numba import njit

from fluid_sph.sph.kernels import KernelSet
from fluid_sph.sph.particles import ParticleState
from fluid_sph.sph.spatial_hash import SpatialHashGrid

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]

TAIT_EXPONENT = 7.0
MIN_PAIR_DISTANCE = 1e-12
COHESION_RANGE = 0.9


@njit(fastmath=True, error_model="numpy")
def _compute_density_pressure_numba(
    positions, neighbour_indices, neighbour_offsets,
    mass, h2, poly6_coef, W_self, rest_density, gas_constant,
    density, pressure
):
    """Numba implementation of density summation and Tait pressure."""
    N = positions.shape[0]

    for i in range(N):
        pos_i_x = positions[i, 0]
        pos_i_y = positions[i, 1]
        pos_i_z = positions[i, 2]

        rho = W_self
        for k in range(neighbour_offsets[i], neighbour_offsets[i + 1]):
            j = neighbour_indices[k]

            dx = pos_i_x - positions[j, 0]
            dy = pos_i_y - positions[j, 1]
            dz = pos_i_z - positions[j, 2]
            r2 = dx*dx + dy*dy + dz*dz

            if r2 < h2:
                diff = h2 - r2
                rho += poly6_coef * diff * diff * diff

        rho *= mass
        density[i] = rho
        pressure[i] = gas_constant * ((rho / rest_density)**TAIT_EXPONENT - 1.0)


@njit(fastmath=True, error_model="numpy")
def _compute_forces_numba(
    positions, velocities, density, pressure,
    neighbour_indices, neighbour_offsets,
    mass, h, gravity_y, viscosity, surface_tension,
    pressure_scale, density_floor, visc_lap_coef, use_laplacian,
    accel
):
    """Numba implementation of one-sided pair accumulation."""
    N = positions.shape[0]
    cohesion_cutoff = COHESION_RANGE * h

    for i in range(N):
        pos_i_x = positions[i, 0]
        pos_i_y = positions[i, 1]
        pos_i_z = positions[i, 2]
        vel_i_x = velocities[i, 0]
        vel_i_y = velocities[i, 1]
        vel_i_z = velocities[i, 2]
        P_i = pressure[i]

        ax = 0.0
        ay = gravity_y
        az = 0.0

        for k in range(neighbour_offsets[i], neighbour_offsets[i + 1]):
            j = neighbour_indices[k]

            dx = pos_i_x - positions[j, 0]
            dy = pos_i_y - positions[j, 1]
            dz = pos_i_z - positions[j, 2]
            dist = np.sqrt(dx*dx + dy*dy + dz*dz)

            if dist < MIN_PAIR_DISTANCE or dist >= h:
                continue

            rx = dx / dist
            ry = dy / dist
            rz = dz / dist
            rho_j = density_floor
            if density[j] > density_floor:
                rho_j = density[j]
            falloff = (h - dist) / h

            # Pressure: pushes i away from j when the pair is over-dense
            f_press = pressure_scale * mass * (P_i + pressure[j]) / (2.0 * rho_j) * falloff * falloff
            ax += f_press * rx
            ay += f_press * ry
            az += f_press * rz

            # Viscosity: relaxes i towards j's velocity
            if use_laplacian:
                f_visc = viscosity * mass / rho_j * visc_lap_coef * (h - dist)
            else:
                f_visc = viscosity * mass / rho_j * (h - dist)
            ax += f_visc * (velocities[j, 0] - vel_i_x)
            ay += f_visc * (velocities[j, 1] - vel_i_y)
            az += f_visc * (velocities[j, 2] - vel_i_z)

            # Cohesion: pulls i towards close neighbours
            if dist < cohesion_cutoff:
                q = 1.0 - dist / h
                f_coh = -mass * surface_tension * q * q
                ax += f_coh * rx
                ay += f_coh * ry
                az += f_coh * rz

        accel[i, 0] = ax
        accel[i, 1] = ay
        accel[i, 2] = az


class SPHSolver:
    """
    Density, pressure and acceleration evaluation over a spatial hash.

    Attributes
    ----------
    kernels : KernelSet
        Kernel constants for the current smoothing length.
    grid : SpatialHashGrid
        Neighbour index rebuilt every frame.
    neighbour_indices, neighbour_offsets : NDArray[int64]
        CSR neighbour lists from the last search. Stale lists are never
        reused across frames; ``update_neighbours`` must run first.
    """

    def __init__(self, kernels: KernelSet, grid: SpatialHashGrid = None):
        self.kernels = kernels
        self.grid = grid if grid is not None else SpatialHashGrid()
        self.neighbour_indices = np.zeros(0, dtype=np.int64)
        self.neighbour_offsets = np.zeros(1, dtype=np.int64)

    def sync_kernels(self, config: Any) -> None:
        """Recompute kernel constants if the configured smoothing length moved."""
        if self.kernels.h != float(config.smoothing_length):
            self.kernels.set_smoothing_length(config.smoothing_length)

    def update_neighbours(self, particles: ParticleState, config: Any) -> Tuple[npt.NDArray[np.int64], npt.NDArray[np.int64]]:
        """
        Rebuild the grid with cell size h and refresh every neighbour set.

        Returns
        -------
        indices, offsets : NDArray[int64]
            CSR neighbour lists.
        """
        self.sync_kernels(config)
        h = self.kernels.h

        self.grid.rebuild(particles.positions, h)
        indices, offsets = self.grid.build_neighbour_lists(h)

        particles.neighbour_counts[:] = np.diff(offsets)
        self.neighbour_indices = indices
        self.neighbour_offsets = offsets
        return indices, offsets

    def _check_fresh(self, particles: ParticleState) -> None:
        if len(self.neighbour_offsets) != particles.n_active + 1:
            raise RuntimeError(
                "Neighbour lists are stale: call update_neighbours() after "
                "the particle population changes"
            )

    def compute_density_pressure(self, particles: ParticleState, config: Any) -> None:
        """
        Compute SPH density and Tait pressure for every active particle.

        Implements:
            ρ_i = m (W(0, h) + ∑_j W(|r_i − r_j|, h))
            P_i = k ((ρ_i / ρ_0)⁷ − 1)
        """
        self._check_fresh(particles)
        _compute_density_pressure_numba(
            particles.positions,
            self.neighbour_indices,
            self.neighbour_offsets,
            float(config.particle_mass),
            self.kernels.h2,
            self.kernels.poly6_coef,
            self.kernels.self_density(),
            float(config.rest_density),
            float(config.gas_constant),
            particles.density,
            particles.pressure,
        )

    def compute_forces(self, particles: ParticleState, config: Any) -> None:
        """
        Reset accelerations to gravity and accumulate pair forces.

        For each neighbour pair with separation r = r_i − r_j, d = |r|
        (pairs with d < 1e-12 are skipped):
        - pressure: s m (P_i + P_j) / (2 max(ρ_j, ε)) ((h − d)/h)² along r̂
        - viscosity: μ m / max(ρ_j, ε) (h − d) (v_j − v_i), or with the
          Laplacian kernel 45/(π h⁶)(h − d) when ``viscosity_mode`` is
          "laplacian"
        - cohesion (d < 0.9 h): −m σ (1 − d/h)² along r̂
        """
        self._check_fresh(particles)
        _compute_forces_numba(
            particles.positions,
            particles.velocities,
            particles.density,
            particles.pressure,
            self.neighbour_indices,
            self.neighbour_offsets,
            float(config.particle_mass),
            self.kernels.h,
            -float(config.gravity) * float(config.gravity_scale),
            float(config.viscosity),
            float(config.surface_tension),
            float(config.pressure_scale),
            float(config.density_floor),
            self.kernels.visc_lap_coef,
            config.viscosity_mode == "laplacian",
            particles.accelerations,
        )
