"""
Barnes-Hut quadtree for O(N log N) gravitational force approximation in 2D.

The quadtree recursively splits a square domain into four equal quadrants.
Each leaf holds at most one body (except at the depth cap, where coincident
bodies are merged into one bucket), and each internal node carries the total
mass and center of mass of everything below it. Distant subtrees can then be
treated as single point masses during force evaluation (see forces.py).

A tree lives for exactly one step: it copies positions and masses at build
time and is discarded once forces have been computed.
"""

import math
from typing import Iterator, List, Optional
import numpy as np

from .constants import ConfigurationError, SolverConfig


class Boundary:
    """
    Axis-aligned square region [left, left + size) × [top, top + size).

    Containment is half-open so the four quadrants partition their parent
    exactly; a position on the right or bottom edge of the root is outside.
    """

    def __init__(self, left: float, top: float, size: float):
        if not (math.isfinite(left) and math.isfinite(top)):
            raise ConfigurationError(f"boundary origin must be finite, got ({left!r}, {top!r})")
        if not math.isfinite(size) or size <= 0:
            raise ConfigurationError(f"boundary size must be finite and > 0, got {size!r}")
        self.left = float(left)
        self.top = float(top)
        self.size = float(size)

    @property
    def right(self) -> float:
        return self.left + self.size

    @property
    def bottom(self) -> float:
        return self.top + self.size

    @property
    def center(self) -> np.ndarray:
        half = self.size / 2.0
        return np.array([self.left + half, self.top + half])

    def contains(self, position) -> bool:
        x, y = position[0], position[1]
        return (self.left <= x < self.left + self.size) and (self.top <= y < self.top + self.size)

    def quadrant_index(self, position) -> int:
        """
        Quadrant a position falls into.

        Quadrant numbering (y grows downward):
        0: top-left  1: top-right  2: bottom-left  3: bottom-right
        """
        half = self.size / 2.0
        quadrant = 0
        if position[0] >= self.left + half:
            quadrant |= 1
        if position[1] >= self.top + half:
            quadrant |= 2
        return quadrant

    def quadrant(self, quadrant: int) -> 'Boundary':
        half = self.size / 2.0
        left = self.left + half if quadrant & 1 else self.left
        top = self.top + half if quadrant & 2 else self.top
        return Boundary(left, top, half)

    def clamp(self, position) -> np.ndarray:
        """Nearest point inside the half-open region."""
        x = min(max(float(position[0]), self.left), math.nextafter(self.right, self.left))
        y = min(max(float(position[1]), self.top), math.nextafter(self.bottom, self.top))
        return np.array([x, y])

    def __eq__(self, other):
        if not isinstance(other, Boundary):
            return NotImplemented
        return (self.left, self.top, self.size) == (other.left, other.top, other.size)

    def __repr__(self):
        return f"Boundary(left={self.left}, top={self.top}, size={self.size})"


class QuadNode:
    """
    Single node of the quadtree.

    Each node is either:
    - An empty leaf (no bodies, no children)
    - An occupied leaf (bodies set; more than one only at the depth cap)
    - Internal with exactly 4 children in quadrant order

    Attributes:
        boundary: Square region covered by this node
        depth: Distance from the root (root = 0)
        total_mass: Total mass below this node (after aggregation)
        center_of_mass: Mass-weighted mean position (after aggregation)
        bodies: Indices of bodies stored in this leaf
        children: List of 4 child nodes (internal) or None (leaf)
    """

    def __init__(self, boundary: Boundary, depth: int = 0):
        self.boundary = boundary
        self.depth = depth

        self.total_mass = 0.0
        self.center_of_mass = np.zeros(2)

        self.bodies: List[int] = []
        self.children: Optional[List['QuadNode']] = None

    def is_leaf(self) -> bool:
        return self.children is None

    def is_empty(self) -> bool:
        return self.children is None and not self.bodies

    @property
    def body(self) -> Optional[int]:
        """Index of the (first) body stored in this leaf, or None."""
        return self.bodies[0] if self.bodies else None

    def subdivide(self) -> None:
        self.children = [QuadNode(self.boundary.quadrant(q), self.depth + 1) for q in range(4)]

    def __repr__(self):
        kind = 'leaf' if self.is_leaf() else 'internal'
        return (f"QuadNode({kind}, depth={self.depth}, {self.boundary}, "
                f"total_mass={self.total_mass:.3g}, bodies={self.bodies})")


class QuadTree:
    """
    Barnes-Hut quadtree built fresh for one step.

    Usage:
        tree = QuadTree(Boundary(0, 0, 800), config)
        tree.build_tree(positions, masses)   # insertion + mass aggregation
        acc = ForceEvaluator(config).acceleration(tree, i)

    Attributes:
        root: Root node spanning the domain boundary
        positions: Snapshot of body positions (N, 2) taken at build time
        masses: Snapshot of body masses (N,)
        inserted: Per-body flag, False for bodies outside the boundary
        n_nodes: Number of allocated nodes
        n_merged: Bodies stored in a depth-cap bucket beyond its first occupant
        max_depth_reached: Depth of the deepest node
    """

    def __init__(self, boundary: Boundary, config: Optional[SolverConfig] = None):
        self.boundary = boundary
        self.config = config if config is not None else SolverConfig()
        self.max_depth = self.config.max_depth

        self.root = QuadNode(boundary)
        self.positions: Optional[np.ndarray] = None
        self.masses: Optional[np.ndarray] = None
        self.inserted: Optional[np.ndarray] = None

        self.n_nodes = 1
        self.n_merged = 0
        self.max_depth_reached = 0

    @property
    def dropped(self) -> np.ndarray:
        """Indices of bodies that were outside the root boundary."""
        return np.flatnonzero(~self.inserted)

    def build_tree(self, positions: np.ndarray, masses: np.ndarray) -> None:
        """
        Insert every body and aggregate masses.

        Args:
            positions: Body positions, shape (N, 2)
            masses: Body masses, shape (N,)
        """
        self.positions = np.array(positions, dtype=np.float64).reshape(-1, 2)
        self.masses = np.array(masses, dtype=np.float64).reshape(-1)
        self.inserted = np.zeros(len(self.positions), dtype=bool)

        for i in range(len(self.positions)):
            self.insert(i)

        self.compute_mass_distribution()

    def insert(self, index: int) -> bool:
        """
        Place body `index` into the tree.

        Bodies outside the root boundary are not inserted and contribute no
        mass; the caller sees them through `inserted` / `dropped`.

        Returns:
            True if the body was stored in a leaf
        """
        pos = self.positions[index]
        if not self.root.boundary.contains(pos):
            return False

        node = self.root
        while True:
            if node.is_leaf():
                if not node.bodies:
                    node.bodies.append(index)
                    break

                if node.depth >= self.max_depth:
                    # Depth cap: merge into this leaf instead of splitting forever
                    node.bodies.append(index)
                    self.n_merged += 1
                    break

                # Occupied leaf: split and push the stored body one level down
                existing = node.bodies.pop()
                node.subdivide()
                self.n_nodes += 4
                self.max_depth_reached = max(self.max_depth_reached, node.depth + 1)

                q_old = node.boundary.quadrant_index(self.positions[existing])
                node.children[q_old].bodies.append(existing)

            node = node.children[node.boundary.quadrant_index(pos)]

        self.inserted[index] = True
        return True

    def compute_mass_distribution(self) -> None:
        """Compute total mass and center of mass of every node (post-order)."""
        aggregate_mass(self.root, self.positions, self.masses)

    def iter_nodes(self) -> Iterator[QuadNode]:
        """Depth-first pre-order iteration over all nodes."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            if node.children is not None:
                stack.extend(reversed(node.children))

    def leaves(self) -> Iterator[QuadNode]:
        return (node for node in self.iter_nodes() if node.is_leaf())

    def __repr__(self):
        return (f"QuadTree({self.boundary}, n_nodes={self.n_nodes}, "
                f"max_depth_reached={self.max_depth_reached}, n_merged={self.n_merged})")


def aggregate_mass(node: QuadNode, positions: np.ndarray, masses: np.ndarray) -> None:
    """
    Post-order pass computing each node's total mass and center of mass.

    Leaves take their bodies' mass-weighted mean (exactly the body's position
    for a single occupant). Internal nodes sum their four children in fixed
    order; a zero-mass node keeps its center at the origin rather than NaN.
    """
    if node.is_leaf():
        if len(node.bodies) == 1:
            i = node.bodies[0]
            node.total_mass = float(masses[i])
            node.center_of_mass = positions[i].copy()
        elif node.bodies:
            total = 0.0
            weighted = np.zeros(2)
            for i in node.bodies:
                total += masses[i]
                weighted += positions[i] * masses[i]
            node.total_mass = float(total)
            if total > 0:
                node.center_of_mass = weighted / total
        return

    total = 0.0
    weighted = np.zeros(2)
    for child in node.children:
        aggregate_mass(child, positions, masses)
        total += child.total_mass
        weighted += child.center_of_mass * child.total_mass

    node.total_mass = total
    node.center_of_mass = weighted / total if total > 0 else np.zeros(2)
