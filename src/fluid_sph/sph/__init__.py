"""
SPH module: particles, kernels, spatial hashing, and density/force evaluation.
"""

from .particles import ParticleState
from .kernels import KernelSet
from .spatial_hash import SpatialHashGrid
from .hydro_forces import SPHSolver

__all__ = [
    # Particle storage
    "ParticleState",

    # Kernels
    "KernelSet",

    # Neighbour search
    "SpatialHashGrid",

    # Density, pressure and forces
    "SPHSolver",
]
