"""Tests for particle emitters on the simulation clock."""

import math

import numpy as np
import pytest

from fluid_sph.core.simulation import SimulationConfig
from fluid_sph.sph import ParticleState
from fluid_sph.scene import SourceManager


@pytest.fixture
def config():
    return SimulationConfig(verbose=False, source_jitter=0.1)


def run_source(manager, particles, config, dt, n_steps, rng):
    now = 0.0
    spawned = 0
    for _ in range(n_steps):
        now += dt
        spawned += manager.update(particles, now, config, rng)
    return spawned, now


@pytest.mark.parametrize("rate, dt, n_steps", [
    (10.0, 0.016, 60),
    (7.0, 0.03, 40),
    (33.0, 0.011, 100),
    (190.0, 0.016, 30),   # several particles per frame
    (0.5, 0.1, 45),
])
def test_source_emits_floor_of_rate_times_time(config, rate, dt, n_steps):
    rng = np.random.default_rng(0)
    particles = ParticleState(10000)
    manager = SourceManager()
    manager.add_source([0.0, 2.0, 0.0], rate, now=0.0)

    spawned, elapsed = run_source(manager, particles, config, dt, n_steps, rng)

    assert spawned == math.floor(elapsed * rate)
    assert particles.n_active == spawned


def test_spawned_particles_are_initialised(config):
    rng = np.random.default_rng(1)
    particles = ParticleState(100)
    manager = SourceManager()
    manager.add_source([1.0, 2.0, 3.0], 50.0, now=0.0, velocity=[0.0, 4.0, 0.0])

    manager.update(particles, 0.2, config, rng)

    assert particles.n_active == 10
    offset = particles.positions - np.array([1.0, 2.0, 3.0], dtype=np.float32)
    assert np.all(np.abs(offset[:, [0, 2]]) <= 0.05 + 1e-6)
    np.testing.assert_allclose(offset[:, 1], 0.1, rtol=1e-5)
    np.testing.assert_allclose(particles.velocities, np.tile([0.0, 4.0, 0.0], (10, 1)))
    np.testing.assert_allclose(particles.accelerations[:, 1], -config.gravity, rtol=1e-6)
    np.testing.assert_array_equal(particles.density, 0.0)
    np.testing.assert_array_equal(particles.pressure, 0.0)
    np.testing.assert_array_equal(particles.neighbour_counts, 0)


def test_spawning_into_full_arena_is_silent(config):
    rng = np.random.default_rng(2)
    particles = ParticleState(5)
    manager = SourceManager()
    manager.add_source([0.0, 1.0, 0.0], 100.0, now=0.0)

    spawned = manager.update(particles, 1.0, config, rng)

    assert spawned == 5
    assert particles.n_active == 5
    assert manager.update(particles, 2.0, config, rng) == 0
    assert particles.n_active == 5


def test_non_positive_rate_never_emits(config):
    rng = np.random.default_rng(3)
    particles = ParticleState(10)
    manager = SourceManager()
    manager.add_source([0.0, 1.0, 0.0], 0.0, now=0.0)
    manager.add_source([0.0, 1.0, 0.0], -5.0, now=0.0)

    assert manager.update(particles, 10.0, config, rng) == 0


def test_user_and_scenario_pools(config):
    manager = SourceManager()
    manager.add_source([0.0, 0.0, 0.0], 1.0, now=0.0)
    manager.add_scenario_source([1.0, 0.0, 0.0], 2.0, now=0.0)

    assert len(manager.all_sources) == 2

    manager.set_rate(9.0)
    assert manager.sources[0].rate == 9.0
    assert manager.scenario_sources[0].rate == 2.0

    manager.clear_user_sources()
    assert manager.sources == []
    assert len(manager.scenario_sources) == 1

    manager.clear()
    assert manager.all_sources == []


def test_restart_prevents_catch_up_burst(config):
    rng = np.random.default_rng(4)
    particles = ParticleState(1000)
    manager = SourceManager()
    manager.add_source([0.0, 1.0, 0.0], 10.0, now=0.0)

    manager.restart(5.0)

    assert manager.update(particles, 5.05, config, rng) == 0
    assert manager.update(particles, 5.1, config, rng) == 1
