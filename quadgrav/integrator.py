"""
Step Integration
Builds a fresh quadtree each step, evaluates accelerations and advances bodies
with semi-implicit (symplectic) Euler
"""

from typing import Dict, List, Optional, Sequence, Union
import math
import numpy as np
from tqdm import tqdm

from .constants import BoundaryError, BoundaryPolicy, ConfigurationError, SolverConfig
from .forces import ForceEvaluator, direct_accelerations
from .particles import Body, BodySystem
from .quadtree import Boundary, QuadTree

FORCE_METHODS = ('auto', 'tree', 'numba', 'direct')

# 'auto' switches to the compiled arena tree at this many bodies
NUMBA_THRESHOLD = 1000


class StepReport:
    """What happened during one call to advance()"""

    def __init__(self, n_bodies: int = 0, n_dropped: int = 0, n_clamped: int = 0,
                 n_merged: int = 0, max_depth_reached: int = 0, n_nodes: int = 0,
                 method: str = 'tree'):
        self.n_bodies = n_bodies
        self.n_dropped = n_dropped
        self.n_clamped = n_clamped
        self.n_merged = n_merged
        self.max_depth_reached = max_depth_reached
        self.n_nodes = n_nodes
        self.method = method

    @property
    def n_inserted(self) -> int:
        return self.n_bodies - self.n_dropped

    def __repr__(self):
        return (f"StepReport(method={self.method!r}, n_bodies={self.n_bodies}, "
                f"n_dropped={self.n_dropped}, n_clamped={self.n_clamped}, n_merged={self.n_merged}, "
                f"max_depth_reached={self.max_depth_reached}, n_nodes={self.n_nodes})")


def integrate_body(position: np.ndarray, velocity: np.ndarray,
                   acceleration: np.ndarray, time_step: float) -> None:
    """Kick then drift in place: v += a·dt, then x += v·dt."""
    velocity += acceleration * time_step
    position += velocity * time_step


def validate_bodies(bodies: Sequence[Body]) -> None:
    """Raise ConfigurationError for non-positive masses or non-finite state."""
    for i, body in enumerate(bodies):
        if not math.isfinite(body.mass) or body.mass <= 0:
            raise ConfigurationError(f"body {i} has invalid mass {body.mass!r}")
        if not (np.all(np.isfinite(body.pos)) and np.all(np.isfinite(body.vel))):
            raise ConfigurationError(f"body {i} has non-finite position or velocity")


def apply_boundary_policy(bodies: Sequence[Body], boundary: Boundary,
                          policy: BoundaryPolicy) -> int:
    """
    Enforce the out-of-boundary policy before insertion.

    DROP leaves bodies untouched (they are counted after the build), CLAMP
    moves them onto the nearest point inside, RAISE refuses the step.

    Returns:
        Number of bodies clamped
    """
    n_clamped = 0
    for i, body in enumerate(bodies):
        if boundary.contains(body.pos):
            continue
        if policy is BoundaryPolicy.RAISE:
            raise BoundaryError(f"body {i} at {body.pos} is outside {boundary}")
        if policy is BoundaryPolicy.CLAMP:
            body.pos[:] = boundary.clamp(body.pos)
            n_clamped += 1
    return n_clamped


def resolve_force_method(method: str, n_bodies: int) -> str:
    if method not in FORCE_METHODS:
        raise ConfigurationError(f"unknown force method {method!r}, expected one of {FORCE_METHODS}")
    if method == 'auto':
        return 'numba' if n_bodies >= NUMBA_THRESHOLD else 'tree'
    return method


def compute_accelerations(positions: np.ndarray, masses: np.ndarray, boundary: Boundary,
                          config: SolverConfig, method: str = 'tree',
                          workers: Optional[int] = None):
    """
    Accelerations on every body from a tree built over `positions`.

    Args:
        positions: (N, 2) start-of-step positions
        masses: (N,) masses
        boundary: Root boundary; bodies outside it are sources of nothing
        config: Solver configuration
        method: 'tree', 'numba', 'direct' or 'auto'
        workers: Thread count for the 'tree' method

    Returns:
        (accelerations (N, 2), StepReport without clamping info)
    """
    n_bodies = len(positions)
    method = resolve_force_method(method, n_bodies)

    if method == 'direct':
        inside = np.array([boundary.contains(p) for p in positions], dtype=bool).reshape(-1)
        # Outside bodies still feel the others but act on nobody
        source_masses = np.where(inside, masses, 0.0)
        accelerations = direct_accelerations(positions, source_masses, config)
        report = StepReport(n_bodies=n_bodies, n_dropped=int(np.sum(~inside)), method=method)
        return accelerations, report

    if method == 'numba':
        from .quadtree_numba import NumbaQuadTree

        tree = NumbaQuadTree(boundary, config)
        tree.build_tree(positions, masses)
        accelerations = tree.calculate_all_accelerations()
    else:
        tree = QuadTree(boundary, config)
        tree.build_tree(positions, masses)
        accelerations = ForceEvaluator(config).calculate_all_accelerations(tree, workers=workers)

    report = StepReport(n_bodies=n_bodies, n_dropped=len(tree.dropped), n_merged=tree.n_merged,
                        max_depth_reached=tree.max_depth_reached, n_nodes=tree.n_nodes,
                        method=method)
    return accelerations, report


def advance(bodies: Union[BodySystem, Sequence[Body]], boundary: Boundary,
            config: Optional[SolverConfig] = None, method: str = 'tree',
            workers: Optional[int] = None) -> StepReport:
    """
    Advance every body by one time step, in place.

    All accelerations are computed from start-of-step positions before any
    body moves; the tree is discarded on return.

    Args:
        bodies: BodySystem or sequence of Body
        boundary: Square root boundary
        config: Solver configuration (defaults to SolverConfig())
        method: 'tree', 'numba', 'direct' or 'auto'
        workers: Thread count for the 'tree' method (None = serial)

    Returns:
        StepReport describing dropped/clamped/merged bodies and tree shape
    """
    config = config if config is not None else SolverConfig()
    config.validate()
    if workers is not None and (isinstance(workers, bool) or int(workers) != workers or workers < 1):
        raise ConfigurationError(f"workers must be a positive integer, got {workers!r}")

    body_list = bodies.bodies if isinstance(bodies, BodySystem) else list(bodies)
    validate_bodies(body_list)
    n_clamped = apply_boundary_policy(body_list, boundary, config.boundary_policy)

    positions = np.array([b.pos for b in body_list], dtype=np.float64).reshape(-1, 2)
    masses = np.array([b.mass for b in body_list], dtype=np.float64)

    accelerations, report = compute_accelerations(positions, masses, boundary, config,
                                                  method=method, workers=workers)
    report.n_clamped = n_clamped

    for body, acc in zip(body_list, accelerations):
        body.acc = acc.copy()
        integrate_body(body.pos, body.vel, body.acc, config.time_step)

    return report


class Integrator:
    """Base class binding a BodySystem to a boundary and solver configuration"""

    def __init__(self, bodies: BodySystem, boundary: Boundary, config: Optional[SolverConfig] = None,
                 force_method: str = 'auto', workers: Optional[int] = None, verbose: bool = True):
        """
        Initialize integrator.

        Args:
            force_method: 'auto' (numba for N>=1000, tree otherwise), 'tree' for the
                          Python quadtree, 'numba' for the compiled arena quadtree,
                          'direct' for exact O(N²) summation
            workers: Threads used by the 'tree' force method
        """
        self.bodies = bodies
        self.boundary = boundary
        self.config = config if config is not None else SolverConfig()
        self.force_method = force_method
        self.workers = workers
        self.verbose = verbose

        self._active_force_method = resolve_force_method(force_method, len(bodies))

        # History tracking
        self.time_history = []
        self.energy_history = []
        self.reports: List[StepReport] = []

        if self.verbose:
            print(f"[Integrator] Force method: {self._active_force_method} (N={len(bodies)})")
            print(f"[Integrator] θ={self.config.theta}, G={self.config.gravity_constant}, "
                  f"dt={self.config.time_step}, ε={self.config.softening}")

    def calculate_accelerations(self) -> np.ndarray:
        """
        Accelerations at the current positions, without moving anything.

        Returns accelerations array with shape (N, 2).
        """
        accelerations, _ = compute_accelerations(
            self.bodies.get_positions(), self.bodies.get_masses(), self.boundary, self.config,
            method=self._active_force_method, workers=self.workers
        )
        return accelerations

    def total_energy(self) -> float:
        """Kinetic plus softened potential energy."""
        return self.bodies.kinetic_energy() + self.potential_energy()

    def potential_energy(self) -> float:
        """
        Pairwise potential energy consistent with the softened kernel.

        The force G M m r / (√(r²+ε²) (r²+2ε²)) integrates to
        U(r) = -(G M m / ε) · arctan(ε / √(r²+ε²)), which tends to -G M m / r as ε → 0.
        """
        positions = self.bodies.get_positions()
        masses = self.bodies.get_masses()
        G = self.config.gravity_constant
        eps = self.config.softening

        r_vec = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
        r = np.sqrt(np.sum(r_vec**2, axis=2))
        mass_products = masses[:, np.newaxis] * masses[np.newaxis, :]

        iu = np.triu_indices(len(masses), k=1)
        r, mass_products = r[iu], mass_products[iu]
        if eps > 0:
            PE = -G * mass_products / eps * np.arctan(eps / np.sqrt(r**2 + eps**2))
        else:
            PE = -G * mass_products / np.where(r > 0, r, np.inf)

        return float(np.sum(PE))


class SymplecticEulerIntegrator(Integrator):
    """
    Semi-implicit Euler (kick, then drift with the new velocity).
    First-order symplectic; energy error stays bounded for small dt
    """

    def step(self) -> StepReport:
        """Take one step and advance the system clock."""
        report = advance(self.bodies, self.boundary, self.config,
                         method=self._active_force_method, workers=self.workers)
        self.bodies.time += self.config.time_step
        self.reports.append(report)
        return report

    def evolve(self, n_steps: int, save_interval: int = 10, track_energy: bool = False) -> List[Dict]:
        """Run n_steps, saving snapshots every save_interval steps."""
        snapshots = [self._save_snapshot()]

        if self.verbose:
            print(f"Running symplectic Euler integration...")
            print(f"  dt = {self.config.time_step}")
            print(f"  Total steps = {n_steps}")
            print(f"  Save interval = {save_interval}")

        for step in tqdm(range(n_steps), desc="Integrating", unit="step", disable=not self.verbose):
            self.step()

            if (step + 1) % save_interval == 0:
                snapshots.append(self._save_snapshot())

            if track_energy and (step + 1) % max(1, n_steps // 10) == 0:
                self.time_history.append(self.bodies.time)
                self.energy_history.append(self.total_energy())

        if self.verbose:
            print(f"Integration complete. Time = {self.bodies.time:.3f}")

        return snapshots

    def _save_snapshot(self) -> Dict:
        """Save current state."""
        return {
            'time': self.bodies.time,
            'positions': self.bodies.get_positions().copy(),
            'velocities': self.bodies.get_velocities().copy(),
            'accelerations': self.bodies.get_accelerations().copy(),
        }
