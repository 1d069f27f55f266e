"""
fluid-sph: interactive Smoothed Particle Hydrodynamics fluid core.

A real-time weakly compressible SPH solver for a few thousand particles in a
bounded box, with static sphere obstacles, particle emitters, pointer
impulses, periodic scenario force fields and live parameter editing.
"""

__version__ = "1.0.0"
__author__ = "fluid-sph Dev Team"

# Core imports for convenience
from fluid_sph.core.interfaces import (
    Collider,
    TimeIntegrator,
    ForceField,
)
from fluid_sph.core.simulation import (
    FluidSimulation,
    SimulationConfig,
    SimulationState,
)

__all__ = [
    "Collider",
    "TimeIntegrator",
    "ForceField",
    "FluidSimulation",
    "SimulationConfig",
    "SimulationState",
]
