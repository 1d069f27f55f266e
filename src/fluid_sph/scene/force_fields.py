"""
Periodic global force fields and their scheduler.

Scenario fields perturb particle velocities on a fixed cadence. They are
registered on the simulation's logical clock and ticked once per step, so
their cadence follows simulated time rather than wall-clock time and runs
are reproducible.
"""

from dataclasses import dataclass
from typing import Any, List, Tuple
import numpy as np

from fluid_sph.core.interfaces import ForceField
from fluid_sph.sph.particles import ParticleState

# Particles closer than this to the whirlpool axis are left alone
WHIRLPOOL_MIN_RADIUS = 0.1


class WaveField(ForceField):
    """
    Standing-wave vertical perturbation.

        v_y += sin(t f + x k) × cos(t f + z k) × A

    with A = ``wave_amplitude``, f = ``wave_frequency``, k = ``wave_number``.
    """

    @property
    def name(self) -> str:
        return "wave"

    def apply(self, particles: ParticleState, time: float, config: Any) -> None:
        if particles.n_active == 0:
            return
        phase = time * config.wave_frequency
        k = config.wave_number
        x = particles.positions[:, 0].astype(np.float64)
        z = particles.positions[:, 2].astype(np.float64)
        particles.velocities[:, 1] += (
            np.sin(phase + x * k) * np.cos(phase + z * k) * config.wave_amplitude
        ).astype(np.float32)


class WhirlpoolField(ForceField):
    """
    Tangential swirl around a vertical axis.

    A particle at planar distance d > 0.1 from the axis receives a velocity
    increment of magnitude ``whirlpool_strength / max(1, d)`` perpendicular
    to its horizontal radius vector (counter-clockwise seen from +y).

    Parameters
    ----------
    center : Tuple[float, float, float]
        A point on the swirl axis; only x and z are used.
    """

    def __init__(self, center: Tuple[float, float, float] = (0.0, 0.0, 0.0)):
        self.center = tuple(float(c) for c in center)

    @property
    def name(self) -> str:
        return "whirlpool"

    def apply(self, particles: ParticleState, time: float, config: Any) -> None:
        if particles.n_active == 0:
            return
        dx = particles.positions[:, 0].astype(np.float64) - self.center[0]
        dz = particles.positions[:, 2].astype(np.float64) - self.center[2]
        d = np.hypot(dx, dz)

        mask = d > WHIRLPOOL_MIN_RADIUS
        if not mask.any():
            return

        d_m = d[mask]
        magnitude = config.whirlpool_strength / np.maximum(1.0, d_m)
        # Unit tangent (-dz, dx) / d is perpendicular to the radius (dx, dz)
        particles.velocities[mask, 0] += (-dz[mask] / d_m * magnitude).astype(np.float32)
        particles.velocities[mask, 2] += (dx[mask] / d_m * magnitude).astype(np.float32)


@dataclass
class ScheduledField:
    """A field registered on the logical clock."""
    field: ForceField
    owner: str
    interval: float
    next_fire: float


class FieldScheduler:
    """
    Fires registered force fields on the simulation clock.

    ``tick`` is called once per step. A field fires at most once per tick,
    only when its owning scenario is still the active one and its next
    firing time has been reached; the firing time then advances by whole
    intervals past ``now``.
    """

    def __init__(self):
        self.entries: List[ScheduledField] = []

    def register(self, field: ForceField, owner: str, now: float, interval: float) -> ScheduledField:
        entry = ScheduledField(field=field, owner=owner, interval=float(interval), next_fire=now)
        self.entries.append(entry)
        return entry

    def clear(self) -> None:
        """Deregister every field."""
        self.entries.clear()

    @property
    def fields(self) -> List[ForceField]:
        return [entry.field for entry in self.entries]

    def tick(self, particles: ParticleState, now: float, config: Any, active_owner: str) -> int:
        """
        Apply every due field.

        Returns
        -------
        n_fired : int
            Number of fields applied during this tick.
        """
        n_fired = 0
        for entry in self.entries:
            if entry.owner != active_owner:
                continue
            if now + 1e-9 < entry.next_fire:
                continue

            entry.field.apply(particles, now, config)
            n_fired += 1

            if entry.interval > 0.0:
                while entry.next_fire <= now + 1e-9:
                    entry.next_fire += entry.interval
            else:
                entry.next_fire = now
        return n_fired
