"""
Solver Constants and Parameters
Default Barnes-Hut settings and the explicit configuration passed into each step
"""

import math
import numbers
from enum import Enum


class ConfigurationError(ValueError):
    """Raised when solver parameters or body data are invalid."""


class BoundaryError(ValueError):
    """Raised when a body lies outside the root boundary under BoundaryPolicy.RAISE."""


class BoundaryPolicy(Enum):
    DROP = "drop"
    CLAMP = "clamp"
    RAISE = "raise"


class SolverDefaults:
    """Reference values for a 800x800 point-mass simulation"""

    THETA = 0.5  # Admissibility threshold (width/distance)
    GRAVITY_CONSTANT = 0.1
    TIME_STEP = 1.0
    SOFTENING = 15.0  # Added in quadrature to separations

    # Depth cap for subdivision; leaves at this depth merge bodies into a bucket
    MAX_DEPTH = 32
    MAX_DEPTH_LIMIT = 256  # Traversals recurse once per level

    # Original driver domain
    DOMAIN_SIZE = 800.0
    N_BODIES = 16000


class SolverConfig:
    """Parameters threaded through tree construction, force evaluation and integration"""

    def __init__(self, theta: float = SolverDefaults.THETA,
                 gravity_constant: float = SolverDefaults.GRAVITY_CONSTANT,
                 time_step: float = SolverDefaults.TIME_STEP,
                 softening: float = SolverDefaults.SOFTENING,
                 max_depth: int = SolverDefaults.MAX_DEPTH,
                 boundary_policy: BoundaryPolicy = BoundaryPolicy.DROP):
        """
        Initialize solver configuration.

        Args:
            theta: Opening threshold. 0.0 descends to every leaf (exact),
                   0.5 is the standard trade-off, larger is faster/coarser.
            gravity_constant: G used in F = G*M*m/(d² + ε²)
            time_step: Integration step dt
            softening: Softening length ε (>= 0)
            max_depth: Maximum subdivision depth (root is depth 0)
            boundary_policy: What to do with bodies outside the root boundary
                             (BoundaryPolicy member or its string value)
        """
        self.theta = theta
        self.gravity_constant = gravity_constant
        self.time_step = time_step
        self.softening = softening
        self.max_depth = max_depth
        try:
            self.boundary_policy = BoundaryPolicy(boundary_policy)
        except ValueError as exc:
            raise ConfigurationError(f"unknown boundary policy {boundary_policy!r}") from exc

        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if any parameter would produce NaNs or unbounded trees."""
        if math.isnan(self.theta) or self.theta < 0:
            raise ConfigurationError(f"theta must be a non-negative number, got {self.theta!r}")
        if not math.isfinite(self.gravity_constant):
            raise ConfigurationError(f"gravity_constant must be finite, got {self.gravity_constant!r}")
        if not math.isfinite(self.time_step):
            raise ConfigurationError(f"time_step must be finite, got {self.time_step!r}")
        if not math.isfinite(self.softening) or self.softening < 0:
            raise ConfigurationError(f"softening must be finite and >= 0, got {self.softening!r}")
        if (isinstance(self.max_depth, bool) or not isinstance(self.max_depth, numbers.Integral)
                or not 1 <= self.max_depth <= SolverDefaults.MAX_DEPTH_LIMIT):
            raise ConfigurationError(f"max_depth must be an integer in [1, {SolverDefaults.MAX_DEPTH_LIMIT}], "
                                     f"got {self.max_depth!r}")

    def replace(self, **overrides) -> 'SolverConfig':
        """Return a copy with some parameters overridden."""
        params = {
            'theta': self.theta,
            'gravity_constant': self.gravity_constant,
            'time_step': self.time_step,
            'softening': self.softening,
            'max_depth': self.max_depth,
            'boundary_policy': self.boundary_policy,
        }
        params.update(overrides)
        return SolverConfig(**params)

    def __repr__(self):
        return (f"SolverConfig(theta={self.theta}, gravity_constant={self.gravity_constant}, "
                f"time_step={self.time_step}, softening={self.softening}, "
                f"max_depth={self.max_depth}, boundary_policy={self.boundary_policy.value!r})")

    def __str__(self):
        return (f"Solver Parameters:\n"
                f"  θ = {self.theta}\n"
                f"  G = {self.gravity_constant}\n"
                f"  dt = {self.time_step}\n"
                f"  ε = {self.softening}\n"
                f"  Max depth = {self.max_depth}\n"
                f"  Boundary policy = {self.boundary_policy.value}")


class SimulationParameters:
    """Parameters for running a headless simulation"""

    def __init__(self, n_bodies: int = 2000, domain_size: float = SolverDefaults.DOMAIN_SIZE,
                 seed: int = 42, n_steps: int = 100, body_mass: float = 1.0,
                 initial_speed: float = 1.0, initial_conditions: str = 'disc'):
        """
        Initialize simulation parameters.

        Args:
            n_bodies: Number of bodies
            domain_size: Side of the square domain [0, size)²
            seed: Random seed for initial conditions
            n_steps: Number of steps to run
            body_mass: Mass of every body
            initial_speed: Tangential speed around the domain center
            initial_conditions: 'disc' (rotating around the center) or 'uniform' (at rest)
        """
        self.n_bodies = n_bodies
        self.domain_size = domain_size
        self.seed = seed
        self.n_steps = n_steps
        self.body_mass = body_mass
        self.initial_speed = initial_speed
        self.initial_conditions = initial_conditions

        self.validate()

    def validate(self) -> None:
        if self.n_bodies < 0:
            raise ConfigurationError(f"n_bodies must be >= 0, got {self.n_bodies!r}")
        if not math.isfinite(self.domain_size) or self.domain_size <= 0:
            raise ConfigurationError(f"domain_size must be finite and > 0, got {self.domain_size!r}")
        if self.n_steps < 0:
            raise ConfigurationError(f"n_steps must be >= 0, got {self.n_steps!r}")
        if not math.isfinite(self.body_mass) or self.body_mass <= 0:
            raise ConfigurationError(f"body_mass must be finite and > 0, got {self.body_mass!r}")
        if self.initial_conditions not in ('disc', 'uniform'):
            raise ConfigurationError(f"unknown initial conditions {self.initial_conditions!r}")
        if self.initial_conditions == 'disc' and self.domain_size < 1:
            raise ConfigurationError(f"disc initial conditions place bodies on integer grid points, "
                                     f"domain_size must be >= 1, got {self.domain_size!r}")

    def __str__(self):
        return (f"Simulation Parameters:\n"
                f"  Bodies = {self.n_bodies}\n"
                f"  Domain = [0, {self.domain_size})²\n"
                f"  Seed = {self.seed}\n"
                f"  Steps = {self.n_steps}\n"
                f"  Body mass = {self.body_mass}\n"
                f"  Initial conditions = {self.initial_conditions} (speed {self.initial_speed})")
