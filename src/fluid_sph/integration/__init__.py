"""
Integration module: time integration and collision policies.
"""

from fluid_sph.integration.euler import SubSteppedEulerIntegrator, clamp_velocities
from fluid_sph.integration.collisions import (
    Obstacle,
    BoundingBoxCollider,
    GroundPlaneCollider,
    SphereObstacleCollider,
    GridLineCollider,
)

__all__ = [
    "SubSteppedEulerIntegrator",
    "clamp_velocities",
    "Obstacle",
    "BoundingBoxCollider",
    "GroundPlaneCollider",
    "SphereObstacleCollider",
    "GridLineCollider",
]
