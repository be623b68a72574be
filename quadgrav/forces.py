"""
Gravitational accelerations from an aggregated quadtree (Barnes-Hut) or by
direct O(N²) summation.

Both paths share one softened kernel. For a body at p with mass m and a
source of mass M at c:

    d = sqrt(|c - p|² + ε²)
    F = G M m / (d² + ε²)
    a = (c - p) / d * F / m

A tree node is used as a single source when it is a leaf or when
node_width / d < theta; otherwise its four children are visited in order.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional
import math
import numpy as np

from .constants import ConfigurationError, SolverConfig
from .quadtree import QuadNode, QuadTree


class ForceEvaluator:
    """
    Read-only Barnes-Hut traversal.

    Self-interaction is excluded by identity: the traversal tracks the
    queried body's insertion path, and the leaf at the end of that path
    contributes only its other bodies (none unless it is a depth-cap
    bucket). Admissible internal nodes act with their full aggregate, the
    body's own mass included. Bodies that were not inserted (outside the
    boundary) still feel the tree but have no path through it.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config if config is not None else SolverConfig()

    def acceleration(self, tree: QuadTree, index: int) -> np.ndarray:
        """
        Acceleration on body `index` from every other body in the tree.

        Args:
            tree: Built and aggregated QuadTree
            index: Body index into the tree's position/mass snapshot

        Returns:
            Acceleration vector (2,)
        """
        acc = np.zeros(2)
        pos = tree.positions[index]
        self._accumulate(tree.root, index, float(pos[0]), float(pos[1]),
                         float(tree.masses[index]), bool(tree.inserted[index]), acc)
        return acc

    def accumulate_acceleration(self, tree: QuadTree, index: int, velocity: np.ndarray) -> np.ndarray:
        """Add this step's acceleration times time_step to `velocity` in place; returns the acceleration."""
        acc = self.acceleration(tree, index)
        velocity += acc * self.config.time_step
        return acc

    def _accumulate(self, node: QuadNode, index: int, px: float, py: float, mass: float,
                    on_path: bool, acc: np.ndarray) -> None:
        total_mass = node.total_mass
        cx = float(node.center_of_mass[0])
        cy = float(node.center_of_mass[1])

        if on_path and node.children is None:
            # The body's own leaf; a depth-cap bucket keeps its other bodies
            rest = total_mass - mass
            if rest <= 0.0:
                return
            cx = (cx * total_mass - px * mass) / rest
            cy = (cy * total_mass - py * mass) / rest
            total_mass = rest
        elif total_mass <= 0.0:
            return

        dx = cx - px
        dy = cy - py
        eps2 = self.config.softening * self.config.softening
        distance = math.sqrt(dx * dx + dy * dy + eps2)

        if node.children is None or (distance > 0.0 and node.boundary.size / distance < self.config.theta):
            if distance == 0.0:
                return
            force = self.config.gravity_constant * total_mass * mass / (distance * distance + eps2)
            scale = force / mass / distance
            acc[0] += dx * scale
            acc[1] += dy * scale
        else:
            own_quadrant = node.boundary.quadrant_index((px, py)) if on_path else -1
            for q, child in enumerate(node.children):
                self._accumulate(child, index, px, py, mass, q == own_quadrant, acc)

    def calculate_all_accelerations(self, tree: QuadTree, workers: Optional[int] = None) -> np.ndarray:
        """
        Accelerations on every body in the tree snapshot.

        With workers > 1 the bodies are split into disjoint contiguous chunks
        evaluated on a thread pool; each chunk writes only its own rows, and
        the pool is joined before returning.

        Returns:
            Accelerations array, shape (N, 2)
        """
        N = len(tree.positions)
        accelerations = np.zeros((N, 2))

        def evaluate(indices):
            for i in indices:
                accelerations[i] = self.acceleration(tree, i)

        if workers is None or workers <= 1 or N < 2:
            evaluate(range(N))
            return accelerations

        chunks = [c for c in np.array_split(np.arange(N), min(workers, N)) if len(c)]
        with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
            for future in [executor.submit(evaluate, chunk) for chunk in chunks]:
                future.result()

        return accelerations


def direct_accelerations(positions: np.ndarray, masses: np.ndarray,
                         config: Optional[SolverConfig] = None) -> np.ndarray:
    """
    Exact pairwise accelerations with the same softened kernel as the tree.

    Vectorized with NumPy broadcasting; O(N²) memory, so meant for small N
    and for checking the tree approximation.

    Returns:
        Accelerations array, shape (N, 2)
    """
    config = config if config is not None else SolverConfig()
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    masses = np.asarray(masses, dtype=np.float64).reshape(-1)
    if len(positions) != len(masses):
        raise ConfigurationError(f"{len(positions)} positions but {len(masses)} masses")

    eps2 = config.softening**2

    # r_vec[i, j] points from body i to body j, shape (N, N, 2)
    r_vec = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
    distance = np.sqrt(np.sum(r_vec**2, axis=2) + eps2)  # Shape: (N, N)

    # Self-interaction (and coincident points with zero softening) contribute nothing
    np.fill_diagonal(distance, np.inf)
    distance = np.where(distance == 0.0, np.inf, distance)

    # F/m_i = G m_j / (d² + ε²), directed along r_vec / d
    a_mag = config.gravity_constant * masses[np.newaxis, :] / (distance**2 + eps2)  # Shape: (N, N)
    a_vec = a_mag[:, :, np.newaxis] * (r_vec / distance[:, :, np.newaxis])

    return np.sum(a_vec, axis=1)
