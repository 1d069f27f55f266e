"""
Core module: abstract component interfaces.

The simulation orchestrator lives in ``fluid_sph.core.simulation`` and is
re-exported from the package root; it is not imported here because every
component module depends on these interfaces.
"""

from fluid_sph.core.interfaces import (
    NDArrayFloat,
    Collider,
    TimeIntegrator,
    ForceField,
)

__all__ = [
    "NDArrayFloat",
    "Collider",
    "TimeIntegrator",
    "ForceField",
]
