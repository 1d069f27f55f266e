"""Tests for the sub-stepped integrator and the collision policies."""

import numpy as np
import pytest

from fluid_sph.core.simulation import SimulationConfig
from fluid_sph.sph import ParticleState
from fluid_sph.integration import (
    SubSteppedEulerIntegrator,
    clamp_velocities,
    Obstacle,
    BoundingBoxCollider,
    GroundPlaneCollider,
    SphereObstacleCollider,
    GridLineCollider,
)


@pytest.fixture
def config():
    return SimulationConfig(verbose=False, perturbation_probability=0.0)


@pytest.fixture
def rng():
    return np.random.default_rng(3)


def as_arrays(positions, velocities):
    return (
        np.array(positions, dtype=np.float32).reshape(-1, 3),
        np.array(velocities, dtype=np.float32).reshape(-1, 3),
    )


class TestVelocityClamp:

    def test_clamp_rescales_fast_particles_only(self):
        velocities = np.array([[30.0, 40.0, 0.0], [1.0, 0.0, 0.0]], dtype=np.float32)

        n = clamp_velocities(velocities, 10.0)

        assert n == 1
        np.testing.assert_allclose(velocities[0], [6.0, 8.0, 0.0], rtol=1e-6)
        np.testing.assert_array_equal(velocities[1], [1.0, 0.0, 0.0])

    def test_step_respects_max_velocity(self, config, rng):
        particles = ParticleState(50)
        particles.fill_block(
            rng.uniform(-4.0, 4.0, size=(50, 3)),
            velocities=rng.normal(0.0, 50.0, size=(50, 3)),
            accelerations=rng.normal(0.0, 1e4, size=(50, 3)),
        )
        colliders = [BoundingBoxCollider(), GroundPlaneCollider()]

        SubSteppedEulerIntegrator().step(particles, 0.016, config, colliders, rng)

        speed = np.linalg.norm(particles.velocities, axis=1)
        assert np.all(speed <= config.max_velocity * (1.0 + 1e-5))

    def test_ground_kicks_do_not_break_the_limit(self, rng):
        config = SimulationConfig(verbose=False, perturbation_probability=1.0, perturbation_strength=5.0)
        particles = ParticleState(20)
        particles.fill_block(
            np.column_stack([np.linspace(-1, 1, 20), np.full(20, 0.05), np.zeros(20)]),
            velocities=np.tile([9.0, -4.0, 0.0], (20, 1)),
        )

        SubSteppedEulerIntegrator().step(particles, 0.001, config, [GroundPlaneCollider()], rng)

        speed = np.linalg.norm(particles.velocities, axis=1)
        assert np.all(speed <= config.max_velocity * (1.0 + 1e-5))


class TestSemiImplicitEuler:

    def test_free_fall_two_sub_steps(self, config, rng):
        particles = ParticleState(1)
        particles.fill_block([[0.0, 3.0, 0.0]], accelerations=[[0.0, -10.0, 0.0]])

        SubSteppedEulerIntegrator().step(particles, 0.1, config, [], rng)

        # v: -0.5 then -1.0; y: 3 - 0.025 - 0.05
        np.testing.assert_allclose(particles.velocities[0], [0.0, -1.0, 0.0], rtol=1e-6)
        np.testing.assert_allclose(particles.positions[0], [0.0, 2.925, 0.0], rtol=1e-6)

    def test_more_sub_steps_refine_drift(self, rng):
        config = SimulationConfig(verbose=False, sub_steps=4)
        particles = ParticleState(1)
        particles.fill_block([[0.0, 3.0, 0.0]], accelerations=[[0.0, -10.0, 0.0]])

        SubSteppedEulerIntegrator().step(particles, 0.1, config, [], rng)

        # Sub-step 0.025: y = 3 - 0.025² × 10 × (1 + 2 + 3 + 4)
        assert np.isclose(particles.positions[0, 1], 3.0 - 0.0625, rtol=1e-6)

    def test_colliders_run_in_order(self, config, rng):
        calls = []

        class Recorder(BoundingBoxCollider):
            def __init__(self, label):
                self.label = label

            def resolve(self, positions, velocities, config, rng):
                calls.append(self.label)

        particles = ParticleState(1)
        particles.fill_block([[0.0, 1.0, 0.0]])

        SubSteppedEulerIntegrator().step(
            particles, 0.016, config, [Recorder("box"), Recorder("ground"), Recorder("obstacles")], rng
        )

        assert calls == ["box", "ground", "obstacles"] * config.sub_steps


class TestBoundingBox:

    def test_particle_outside_is_clamped_and_turned_inward(self, config, rng):
        positions, velocities = as_arrays([[6.0, 0.0, -7.0]], [[2.0, 0.0, -4.0]])

        BoundingBoxCollider().resolve(positions, velocities, config, rng)

        np.testing.assert_allclose(positions[0], [5.0, 0.0, -5.0])
        # boundary_damping unset falls back to damping
        np.testing.assert_allclose(velocities[0], [-2.0 * config.damping, 0.0, 4.0 * config.damping])

    def test_boundary_damping_overrides_damping(self, rng):
        config = SimulationConfig(verbose=False, boundary_damping=0.9, damping=0.1)
        positions, velocities = as_arrays([[0.0, -5.5, 0.0]], [[0.0, -1.0, 0.0]])

        BoundingBoxCollider().resolve(positions, velocities, config, rng)

        assert np.isclose(positions[0, 1], -5.0)
        assert np.isclose(velocities[0, 1], 0.9)

    def test_particles_stay_inside_box_over_many_steps(self, config, rng):
        particles = ParticleState(200)
        particles.fill_block(
            rng.uniform(-4.5, 4.5, size=(200, 3)),
            velocities=rng.normal(0.0, 8.0, size=(200, 3)),
            accelerations=np.tile([0.0, -9.81, 0.0], (200, 1)),
        )
        integrator = SubSteppedEulerIntegrator()
        colliders = [BoundingBoxCollider(), GroundPlaneCollider(), SphereObstacleCollider()]

        for _ in range(200):
            integrator.step(particles, 0.016, config, colliders, rng)

        lo = np.array(config.box_min) - 1e-5
        hi = np.array(config.box_max) + 1e-5
        assert np.all(particles.positions >= lo)
        assert np.all(particles.positions <= hi)


class TestGroundPlane:

    def test_falling_particle_bounces_with_friction(self, config, rng):
        positions, velocities = as_arrays([[1.0, 0.05, 0.0]], [[2.0, -3.0, 1.0]])

        GroundPlaneCollider().resolve(positions, velocities, config, rng)

        assert positions[0, 1] == 0.0
        assert np.isclose(velocities[0, 1], 3.0 * config.damping)
        assert np.isclose(velocities[0, 0], 2.0 * config.ground_friction)
        assert np.isclose(velocities[0, 2], 1.0 * config.ground_friction)

    def test_rising_particle_is_left_alone(self, config, rng):
        positions, velocities = as_arrays([[0.0, 0.05, 0.0]], [[0.0, 1.0, 0.0]])

        GroundPlaneCollider().resolve(positions, velocities, config, rng)

        assert np.isclose(positions[0, 1], 0.05)
        assert velocities[0, 1] == 1.0

    def test_plan_limits_invert_horizontal_velocity(self, rng):
        config = SimulationConfig(verbose=False, plan_limit=3.0, perturbation_probability=0.0)
        positions, velocities = as_arrays([[3.5, 2.0, -4.0]], [[1.0, 0.0, -2.0]])

        GroundPlaneCollider().resolve(positions, velocities, config, rng)

        np.testing.assert_allclose(positions[0], [3.0, 2.0, -3.0])
        np.testing.assert_allclose(velocities[0], [-config.damping, 0.0, 2.0 * config.damping])

    def test_perturbation_kick_is_bounded(self, rng):
        config = SimulationConfig(verbose=False, perturbation_probability=1.0, perturbation_strength=0.2,
                                  ground_friction=1.0)
        positions, velocities = as_arrays(np.tile([0.0, 0.01, 0.0], (100, 1)), np.tile([0.0, -1.0, 0.0], (100, 1)))

        GroundPlaneCollider().resolve(positions, velocities, config, rng)

        assert np.any(velocities[:, 0] != 0.0)
        assert np.all(np.abs(velocities[:, [0, 2]]) <= 0.1 + 1e-6)


class TestSphereObstacles:

    def test_obstacle_requires_positive_radius(self):
        with pytest.raises(ValueError, match="radius"):
            Obstacle(center=(0.0, 0.0, 0.0), radius=0.0)
        with pytest.raises(ValueError):
            Obstacle(center=(0.0, 0.0, 0.0), radius=-1.0)

    def test_particle_inside_is_projected_and_reflected(self, config, rng):
        collider = SphereObstacleCollider([Obstacle(center=(0.0, 1.0, 0.0), radius=1.0)])
        positions, velocities = as_arrays([[0.5, 1.0, 0.0]], [[-1.0, 0.0, 0.5]])

        collider.resolve(positions, velocities, config, rng)

        np.testing.assert_allclose(positions[0], [1.0, 1.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(velocities[0], [config.damping, 0.0, 0.5 * config.damping], atol=1e-6)

    def test_particle_at_centre_is_pushed_up(self, config, rng):
        collider = SphereObstacleCollider([Obstacle(center=(1.0, 1.0, 1.0), radius=0.5)])
        positions, velocities = as_arrays([[1.0, 1.0, 1.0]], [[0.0, 0.0, 0.0]])

        collider.resolve(positions, velocities, config, rng)

        np.testing.assert_allclose(positions[0], [1.0, 1.5, 1.0])
        assert np.all(np.isfinite(velocities))

    def test_projection_onto_sphere_straddling_wall_stays_in_box(self, config, rng):
        collider = SphereObstacleCollider([Obstacle(center=(4.8, 2.0, 0.0), radius=0.5)])
        positions, velocities = as_arrays([[4.9, 2.0, 0.0]], [[-1.0, 0.0, 0.0]])

        collider.resolve(positions, velocities, config, rng)

        np.testing.assert_allclose(positions[0], [5.0, 2.0, 0.0], atol=1e-6)
        # Reflected outward by the sphere, then turned back in by the wall
        np.testing.assert_allclose(velocities[0], [-config.damping**2, 0.0, 0.0], atol=1e-6)

    def test_outside_particles_untouched_and_clear(self, config, rng):
        collider = SphereObstacleCollider()
        collider.add(Obstacle(center=(0.0, 0.0, 0.0), radius=1.0))
        positions, velocities = as_arrays([[2.0, 0.0, 0.0]], [[-1.0, 0.0, 0.0]])

        collider.resolve(positions, velocities, config, rng)
        np.testing.assert_array_equal(positions[0], [2.0, 0.0, 0.0])

        collider.clear()
        assert collider.obstacles == []


class TestGridLines:

    def test_disabled_by_default(self, config, rng):
        positions, velocities = as_arrays([[1.02, 0.5, 0.0]], [[1.0, 0.0, 0.0]])

        GridLineCollider().resolve(positions, velocities, config, rng)

        assert np.isclose(positions[0, 0], 1.02)

    def test_particle_near_line_is_pushed_off(self, rng):
        config = SimulationConfig(verbose=False, grid_line_collisions=True, grid_size=1.0,
                                  collision_threshold=0.1)
        positions, velocities = as_arrays([[1.02, 0.5, 0.5]], [[-1.0, 0.0, 0.0]])

        GridLineCollider().resolve(positions, velocities, config, rng)

        assert np.isclose(positions[0, 0], 1.1)
        assert np.isclose(velocities[0, 0], config.damping)
        # z = 0.5 is half a cell from the nearest line
        assert np.isclose(positions[0, 2], 0.5)
