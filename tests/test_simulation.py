"""
Tests for the FluidSimulation orchestrator.

Validates:
- Step pipeline output (position buffer, frame callback, clock)
- Stability of a settling block (finite, inside the box, speed limit)
- Scene editing (obstacles, sources, interaction impulses)
- Live parameter changes and their side effects
- Reset semantics
"""

import numpy as np
import pytest
from pydantic import ValidationError

from fluid_sph import FluidSimulation, SimulationConfig


def make_sim(**kwargs):
    kwargs.setdefault("particle_count", 300)
    kwargs.setdefault("verbose", False)
    return FluidSimulation(SimulationConfig(**kwargs))


class TestInitialization:

    def test_block_fills_capacity_inside_spawn_box(self):
        sim = make_sim()
        particles = sim.particles

        assert particles.n_active == 300
        assert particles.capacity == 300
        assert np.all(particles.positions >= np.array(sim.config.spawn_min) - 1e-6)
        assert np.all(particles.positions <= np.array(sim.config.spawn_max) + 1e-6)
        np.testing.assert_array_equal(particles.velocities, 0.0)
        np.testing.assert_allclose(particles.accelerations[:, 1], -sim.config.gravity, rtol=1e-6)

    def test_initialize_partial_count(self):
        sim = make_sim()

        assert sim.initialize(120) == 120
        assert sim.initialize(10_000) == 300
        assert sim.initialize(-3) == 0

    def test_no_obstacles_or_sources_without_scenario(self):
        sim = make_sim()

        assert sim.obstacles == []
        assert sim.sources == []
        assert sim.active_scenario == "default"

    def test_initial_scenario_argument(self):
        sim = FluidSimulation(SimulationConfig(particle_count=100, verbose=False), scenario="lake")

        assert sim.active_scenario == "lake"
        assert len(sim.obstacles) == 3


class TestStep:

    def test_step_returns_flat_position_buffer(self):
        sim = make_sim()

        buffer = sim.step()

        assert buffer.shape == (3 * sim.particles.n_active,)
        np.testing.assert_array_equal(buffer, sim.particles.positions.ravel())
        np.testing.assert_array_equal(sim.get_position_buffer(), buffer)

    def test_clock_and_frame_callback(self):
        frames = []
        sim = FluidSimulation(
            SimulationConfig(particle_count=50, verbose=False),
            frame_callback=lambda buffer: frames.append(buffer.copy()),
        )

        sim.step(0.01)
        sim.step()

        assert len(frames) == 2
        assert frames[-1].shape == (150,)
        assert sim.state.step == 2
        assert np.isclose(sim.state.time, 0.01 + sim.config.time_step)

    def test_settling_block_stays_finite_bounded_and_limited(self):
        sim = make_sim(particle_count=400)

        for _ in range(150):
            sim.step()

        positions = sim.particles.positions
        assert np.all(np.isfinite(positions))
        assert np.all(np.isfinite(sim.particles.velocities))
        assert np.all(positions >= np.array(sim.config.box_min) - 1e-5)
        assert np.all(positions <= np.array(sim.config.box_max) + 1e-5)
        speed = np.linalg.norm(sim.particles.velocities, axis=1)
        assert np.all(speed <= sim.config.max_velocity * (1.0 + 1e-5))

        # The block has fallen towards the ground
        assert sim.particles.center_of_mass()[1] < 2.5

    def test_arrays_keep_identical_length_while_emitting(self):
        sim = make_sim(particle_count=400)
        sim.initialize(100)
        sim.add_source([0.0, 3.0, 0.0], rate=100.0)

        for _ in range(20):
            sim.step()
            n = sim.particles.n_active
            assert sim.particles.velocities.shape == (n, 3)
            assert sim.particles.accelerations.shape == (n, 3)
            assert sim.particles.density.shape == (n,)
            assert sim.particles.pressure.shape == (n,)
            assert sim.particles.neighbour_counts.shape == (n,)

        assert sim.particles.n_active > 100

    def test_same_seed_is_reproducible(self):
        a = make_sim(particle_count=150)
        b = make_sim(particle_count=150)

        for _ in range(20):
            buffer_a = a.step()
            buffer_b = b.step()

        np.testing.assert_array_equal(buffer_a, buffer_b)

    def test_empty_population(self):
        sim = make_sim(particle_count=0)

        buffer = sim.step()

        assert buffer.shape == (0,)
        assert sim.compute_diagnostics()['n_active'] == 0

    def test_run_advances_clock(self):
        sim = make_sim(particle_count=100, log_interval=5)

        state = sim.run(10, dt=0.02)

        assert state.step == 10
        assert np.isclose(state.time, 0.2)
        assert state.timing_total >= 0.0


class TestSceneEditing:

    def test_add_obstacle_uses_configured_radius(self):
        sim = make_sim(obstacle_radius=0.75)

        first = sim.add_obstacle([0.0, 1.0, 0.0])
        second = sim.add_obstacle(np.array([1.0, 1.0, 1.0]), radius=0.3)

        assert first.radius == 0.75
        assert first.center == (0.0, 1.0, 0.0)
        assert second.radius == 0.3
        assert len(sim.obstacles) == 2

    def test_add_obstacle_rejects_non_positive_radius(self):
        sim = make_sim()

        with pytest.raises(ValueError):
            sim.add_obstacle([0.0, 1.0, 0.0], radius=0.0)

    def test_obstacle_pushes_particles_out(self):
        sim = make_sim()
        sim.add_obstacle([0.0, 2.5, 0.0], radius=0.6)

        sim.step()

        dist = np.linalg.norm(sim.particles.positions - np.array([0.0, 2.5, 0.0]), axis=1)
        assert np.all(dist >= 0.6 - 1e-4)

    def test_obstacle_straddling_a_wall_keeps_particles_in_box(self):
        sim = make_sim(particle_count=1)
        sim.particles.positions[0] = [4.9, 2.0, 0.0]
        sim.add_obstacle([4.8, 2.0, 0.0], radius=0.5)

        for _ in range(3):
            sim.step()

        assert np.all(sim.particles.positions <= np.array(sim.config.box_max) + 1e-5)
        assert np.all(sim.particles.positions >= np.array(sim.config.box_min) - 1e-5)

    def test_add_and_clear_sources(self):
        sim = make_sim(source_rate=12.0)
        sim.load_scenario("fountain")

        source = sim.add_source([1.0, 2.0, 1.0])
        assert source.rate == 12.0
        assert len(sim.sources) == 1

        sim.clear_sources()

        assert sim.sources == []
        assert len(sim.scenario_sources) == 1

    def test_interaction_force_kicks_nearby_particles(self):
        sim = make_sim()
        centre = sim.particles.center_of_mass()

        n = sim.apply_interaction_force(centre, radius=1.0, strength=3.0)

        assert n > 0
        assert np.count_nonzero(np.linalg.norm(sim.particles.velocities, axis=1)) >= n - 1


class TestParameters:

    def test_camel_case_and_snake_case_names(self):
        sim = make_sim()

        sim.set_parameter("smoothingLength", 0.4)
        assert sim.config.smoothing_length == 0.4
        assert sim.kernels.h == 0.4

        sim.set_parameter("surface_tension", 0.3)
        assert sim.config.surface_tension == 0.3

    def test_unknown_parameter_raises(self):
        sim = make_sim()

        with pytest.raises(ValueError, match="Unknown parameter"):
            sim.set_parameter("warpFactor", 9)

    def test_invalid_value_raises(self):
        sim = make_sim()

        with pytest.raises(ValidationError):
            sim.set_parameter("particleCount", -1)
        with pytest.raises(ValidationError):
            sim.set_parameter("subSteps", 1)

    def test_rejected_value_leaves_config_unchanged(self):
        sim = make_sim()

        with pytest.raises(ValueError, match="box_min"):
            sim.set_parameter("box_min", (6.0, -5.0, -5.0))
        assert sim.config.box_min == (-5.0, -5.0, -5.0)

        with pytest.raises(ValidationError):
            sim.set_parameter("subSteps", 1)
        assert sim.config.sub_steps == 2

        sim.step()
        assert np.all(np.isfinite(sim.particles.positions))

    def test_particle_count_change_resets_population(self):
        sim = make_sim()
        sim.step()

        sim.set_parameter("particleCount", 120)

        assert sim.particles.capacity == 120
        assert sim.particles.n_active == 120
        np.testing.assert_array_equal(sim.particles.velocities, 0.0)

    def test_gravity_change_rewrites_accelerations(self):
        sim = make_sim()

        sim.set_parameter("gravity", 3.0)
        np.testing.assert_allclose(sim.particles.accelerations[:, 1], -3.0)

        sim.set_parameter("gravityScale", 2.0)
        np.testing.assert_allclose(sim.particles.accelerations[:, 1], -6.0)

    def test_source_rate_change_applies_to_user_sources(self):
        sim = make_sim()
        sim.add_source([0.0, 2.0, 0.0])
        sim.add_source([1.0, 2.0, 0.0], rate=3.0)

        sim.set_parameter("sourceRate", 25.0)

        assert [source.rate for source in sim.sources] == [25.0, 25.0]

    def test_degenerate_smoothing_length_warns_but_is_accepted(self):
        sim = make_sim()

        with pytest.warns(UserWarning, match="smoothing_length"):
            sim.set_parameter("smoothingLength", 0.0)

        assert sim.config.smoothing_length == 0.0
        assert sim.kernels.h == 0.0

    def test_parameter_changes_are_logged(self, capsys):
        sim = make_sim(verbose=True)
        capsys.readouterr()

        sim.set_parameter("viscosity", 0.25)

        out = capsys.readouterr().out
        assert "Parameter viscosity = 0.25" in out


class TestReset:

    def test_reset_restores_block_clears_obstacles_keeps_sources(self):
        sim = make_sim()
        sim.add_obstacle([0.0, 1.0, 0.0])
        sim.add_source([0.0, 3.0, 0.0])
        for _ in range(5):
            sim.step()

        sim.reset_simulation()

        assert sim.particles.n_active == sim.config.particle_count
        np.testing.assert_array_equal(sim.particles.velocities, 0.0)
        assert sim.obstacles == []
        assert len(sim.sources) == 1

    def test_reset_after_emitting_drops_spawned_particles(self):
        sim = make_sim(particle_count=200)
        sim.initialize(50)
        sim.add_source([0.0, 3.0, 0.0], rate=200.0)
        for _ in range(10):
            sim.step()
        assert sim.particles.n_active > 50

        sim.reset_simulation()

        assert sim.particles.n_active == 200


def test_diagnostics_report():
    sim = make_sim(particle_count=100)
    sim.step()

    diag = sim.compute_diagnostics()

    assert diag['n_active'] == 100
    assert diag['capacity'] == 100
    assert diag['mean_density'] > 0.0
    assert diag['kinetic_energy'] >= 0.0
    assert diag['n_obstacles'] == 0
    assert diag['n_sources'] == 0
    assert "FluidSimulation" in repr(sim)
