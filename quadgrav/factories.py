"""
Initial Condition Factories

Body distributions used by the simulation driver and the tests. The solver
itself never creates bodies; these only build BodySystem instances.
"""

import numpy as np

from .constants import ConfigurationError, SimulationParameters
from .particles import Body, BodySystem
from .quadtree import Boundary


def domain_boundary(domain_size: float) -> Boundary:
    """Square root boundary [0, domain_size)²."""
    return Boundary(0.0, 0.0, domain_size)


def rotating_disc(n_bodies: int, domain_size: float = 800.0, seed: int = 42,
                  body_mass: float = 1.0, speed: float = 1.0) -> BodySystem:
    """
    Bodies on integer grid points of the domain, rotating about its center.

    Positions are uniform integers in [0, domain_size) and each velocity is
    tangential with magnitude `speed`, pointing a quarter turn clockwise from
    the direction toward the center.
    """
    if domain_size < 1:
        raise ConfigurationError(f"rotating_disc needs domain_size >= 1 for its integer grid, got {domain_size!r}")

    rng = np.random.default_rng(seed)
    positions = rng.integers(0, int(domain_size), size=(n_bodies, 2)).astype(np.float64)

    center = domain_size / 2.0
    angle = np.arctan2(center - positions[:, 1], center - positions[:, 0]) - np.pi / 2
    velocities = speed * np.column_stack([np.cos(angle), np.sin(angle)])

    return BodySystem(
        Body(body_mass, positions[i], velocities[i], body_id=i) for i in range(n_bodies)
    )


def uniform_square(n_bodies: int, boundary: Boundary, seed: int = 42,
                   body_mass: float = 1.0) -> BodySystem:
    """Bodies at rest, uniformly distributed inside `boundary`."""
    rng = np.random.default_rng(seed)
    positions = rng.uniform(0.0, 1.0, size=(n_bodies, 2)) * boundary.size
    positions += np.array([boundary.left, boundary.top])
    # uniform() is half-open but the shift can round onto the far edge
    positions = np.array([boundary.clamp(p) for p in positions]).reshape(-1, 2)

    return BodySystem.from_arrays(positions, masses=np.full(n_bodies, body_mass))


def create_bodies(sim_params: SimulationParameters) -> BodySystem:
    """Build the initial BodySystem described by SimulationParameters."""
    if sim_params.initial_conditions == 'uniform':
        return uniform_square(sim_params.n_bodies, domain_boundary(sim_params.domain_size),
                              seed=sim_params.seed, body_mass=sim_params.body_mass)
    return rotating_disc(sim_params.n_bodies, domain_size=sim_params.domain_size,
                         seed=sim_params.seed, body_mass=sim_params.body_mass,
                         speed=sim_params.initial_speed)
