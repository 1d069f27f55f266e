"""
Collision policies against static geometry.

Each policy resolves all particles at once (vectorised numpy) and is applied
after every drift sub-step in a fixed order: bounding box, ground plane,
sphere obstacles, then the optional grid lines.
"""

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple
import numpy as np

from fluid_sph.core.interfaces import Collider, NDArrayFloat

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class Obstacle:
    """
    Static sphere obstacle.

    Attributes
    ----------
    center : Vec3
        Sphere centre in world coordinates.
    radius : float
        Sphere radius, strictly positive.
    """
    center: Vec3
    radius: float

    def __post_init__(self):
        center = tuple(float(c) for c in np.asarray(self.center, dtype=np.float64).reshape(3))
        object.__setattr__(self, 'center', center)
        object.__setattr__(self, 'radius', float(self.radius))
        if not self.radius > 0.0:
            raise ValueError(f"Obstacle radius must be positive, got {self.radius}")


def contain_in_box(positions: NDArrayFloat, velocities: NDArrayFloat, config: Any) -> None:
    """
    Clamp positions onto ``[box_min, box_max]`` and turn escaping velocities inward.

    Velocity components on a clamped axis are scaled by ``boundary_damping``
    (``damping`` when the former is unset). Works in place on any row subset.
    """
    lo = np.asarray(config.box_min, dtype=positions.dtype)
    hi = np.asarray(config.box_max, dtype=positions.dtype)
    damping = config.boundary_damping if config.boundary_damping is not None else config.damping

    below = positions < lo
    above = positions > hi
    if not (below.any() or above.any()):
        return

    np.clip(positions, lo, hi, out=positions)
    speed = np.abs(velocities) * damping
    velocities[:] = np.where(below, speed, np.where(above, -speed, velocities))


class BoundingBoxCollider(Collider):
    """
    Axis-aligned box that keeps particles inside ``[box_min, box_max]``.

    Per axis, a particle beyond a bound is clamped onto it and its velocity
    on that axis is turned back inward, scaled by ``boundary_damping``
    (``damping`` when the former is unset).
    """

    @property
    def name(self) -> str:
        return "bounding_box"

    def resolve(self, positions: NDArrayFloat, velocities: NDArrayFloat, config: Any, rng: np.random.Generator) -> None:
        contain_in_box(positions, velocities, config)


class GroundPlaneCollider(Collider):
    """
    Fixed horizontal plane y = 0 with friction and plan limits.

    A particle within ``collision_threshold`` of the plane and moving down is
    put on the plane, its vertical velocity reflected and damped, and its
    horizontal velocity scaled by ``ground_friction``. With probability
    ``perturbation_probability`` a bounded random horizontal kick breaks the
    symmetry of stacked particles. Independently, ``|x|`` and ``|z|`` are
    limited to ``plan_limit`` with a damped velocity inversion.

    The plane never follows any rotated plane shown by the UI.
    """

    @property
    def name(self) -> str:
        return "ground_plane"

    def resolve(self, positions: NDArrayFloat, velocities: NDArrayFloat, config: Any, rng: np.random.Generator) -> None:
        damping = config.damping

        hit = (np.abs(positions[:, 1]) < config.collision_threshold) & (velocities[:, 1] < 0.0)
        if hit.any():
            positions[hit, 1] = 0.0
            velocities[hit, 1] = np.abs(velocities[hit, 1]) * damping
            velocities[hit, 0] *= config.ground_friction
            velocities[hit, 2] *= config.ground_friction

            if config.perturbation_probability > 0.0:
                kick = hit & (rng.random(positions.shape[0]) < config.perturbation_probability)
                n_kick = int(np.count_nonzero(kick))
                if n_kick:
                    strength = config.perturbation_strength
                    velocities[kick, 0] += (rng.random(n_kick) - 0.5) * strength
                    velocities[kick, 2] += (rng.random(n_kick) - 0.5) * strength

        limit = config.plan_limit
        for axis in (0, 2):
            over = np.abs(positions[:, axis]) > limit
            if over.any():
                positions[over, axis] = np.sign(positions[over, axis]) * limit
                velocities[over, axis] *= -damping


class SphereObstacleCollider(Collider):
    """
    Mirror-reflection collisions against static spheres.

    A particle inside a sphere is projected onto its surface along the
    outward normal and its velocity reflected about that normal, scaled by
    ``damping``. A particle exactly at the centre is pushed out along +y.
    Projected positions are kept inside the bounding box.

    Attributes
    ----------
    obstacles : List[Obstacle]
        Registered spheres; cleared en masse on reset and scenario change.
    """

    def __init__(self, obstacles: Sequence[Obstacle] = ()):
        self.obstacles: List[Obstacle] = list(obstacles)

    @property
    def name(self) -> str:
        return "sphere_obstacles"

    def add(self, obstacle: Obstacle) -> Obstacle:
        self.obstacles.append(obstacle)
        return obstacle

    def clear(self) -> None:
        self.obstacles.clear()

    def resolve(self, positions: NDArrayFloat, velocities: NDArrayFloat, config: Any, rng: np.random.Generator) -> None:
        damping = config.damping
        up = np.array([0.0, 1.0, 0.0])

        for obstacle in self.obstacles:
            center = np.asarray(obstacle.center, dtype=np.float64)
            offset = positions.astype(np.float64) - center
            dist = np.linalg.norm(offset, axis=1)
            inside = dist < obstacle.radius
            if not inside.any():
                continue

            d = dist[inside][:, np.newaxis]
            normal = np.where(d > 1e-12, offset[inside] / np.maximum(d, 1e-12), up)

            projected = center + normal * obstacle.radius

            v = velocities[inside].astype(np.float64)
            v_n = np.sum(v * normal, axis=1, keepdims=True)
            reflected = (v - 2.0 * v_n * normal) * damping

            # A sphere overlapping a wall must not project particles out of the box
            contain_in_box(projected, reflected, config)
            positions[inside] = projected
            velocities[inside] = reflected


class GridLineCollider(Collider):
    """
    Collisions against the vertical lines of the ``grid_size`` lattice.

    A particle closer than ``collision_threshold`` to the nearest lattice
    line on x (or z) has that velocity component inverted and damped and is
    pushed to ``collision_threshold`` on its own side of the line. Opt-in via
    ``grid_line_collisions``.
    """

    @property
    def name(self) -> str:
        return "grid_lines"

    def resolve(self, positions: NDArrayFloat, velocities: NDArrayFloat, config: Any, rng: np.random.Generator) -> None:
        if not config.grid_line_collisions or config.grid_size <= 0.0:
            return

        spacing = config.grid_size
        threshold = config.collision_threshold
        for axis in (0, 2):
            coord = positions[:, axis]
            line = np.round(coord / spacing) * spacing
            near = np.abs(coord - line) < threshold
            if near.any():
                side = np.where(coord[near] < line[near], -threshold, threshold)
                velocities[near, axis] *= -config.damping
                positions[near, axis] = line[near] + side
