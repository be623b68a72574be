"""
Numba JIT-compiled Barnes-Hut quadtree stored as a flat node arena.

Same semantics as quadtree.py / forces.py, laid out for compiled code:
nodes live in parallel arrays addressed by index, children are 4 indices
(-1 if absent), and bodies sharing a depth-cap leaf form a linked list via
body_next. Children are always allocated after their parent, so one reverse
sweep over the arena aggregates masses bottom-up. Force evaluation runs in
parallel over bodies with a private explicit stack per body.
"""

from typing import Optional
import numpy as np
from numba import jit, prange

from .constants import SolverConfig
from .quadtree import Boundary


@jit(nopython=True, cache=True)
def _quadrant_index(x, y, left, top, half):
    """Return quadrant (0=TL, 1=TR, 2=BL, 3=BR) of (x, y) inside a node."""
    q = 0
    if x >= left + half:
        q |= 1
    if y >= top + half:
        q |= 2
    return q


@jit(nopython=True, cache=True)
def build_quadtree(positions, left, top, size, max_depth, max_nodes):
    """
    Insert all bodies into a fresh node arena.

    Each node stores:
        - left, top, size: square region [left, left+size) x [top, top+size)
        - depth: distance from the root
        - children (4,): child indices, -1 for a leaf
        - head/tail: first/last body of the leaf's body list, -1 if empty
        - count: number of bodies stored in the leaf

    Returns flat arrays plus (n_nodes, n_merged, max_depth_reached).
    n_nodes is -1 when max_nodes was too small.
    """
    N = len(positions)

    node_left = np.zeros(max_nodes, dtype=np.float64)
    node_top = np.zeros(max_nodes, dtype=np.float64)
    node_size = np.zeros(max_nodes, dtype=np.float64)
    node_depth = np.zeros(max_nodes, dtype=np.int32)
    node_children = np.full((max_nodes, 4), -1, dtype=np.int32)
    node_head = np.full(max_nodes, -1, dtype=np.int32)
    node_tail = np.full(max_nodes, -1, dtype=np.int32)
    node_count = np.zeros(max_nodes, dtype=np.int32)
    body_next = np.full(N, -1, dtype=np.int32)
    inserted = np.zeros(N, dtype=np.bool_)

    node_left[0] = left
    node_top[0] = top
    node_size[0] = size
    n_nodes = 1
    n_merged = 0
    max_depth_reached = 0

    for p in range(N):
        x = positions[p, 0]
        y = positions[p, 1]
        if not (left <= x < left + size and top <= y < top + size):
            continue

        current = 0
        while True:
            if node_children[current, 0] == -1:
                if node_count[current] == 0:
                    node_head[current] = p
                    node_tail[current] = p
                    node_count[current] = 1
                    break

                if node_depth[current] >= max_depth:
                    # Depth cap: append to this leaf's body list
                    body_next[node_tail[current]] = p
                    node_tail[current] = p
                    node_count[current] += 1
                    n_merged += 1
                    break

                if n_nodes + 4 > max_nodes:
                    return (node_left, node_top, node_size, node_depth, node_children,
                            node_head, body_next, inserted, -1, n_merged, max_depth_reached)

                # Split the occupied leaf into 4 quadrants
                half = node_size[current] / 2.0
                for q in range(4):
                    child = n_nodes + q
                    node_left[child] = node_left[current] + half if q & 1 else node_left[current]
                    node_top[child] = node_top[current] + half if q & 2 else node_top[current]
                    node_size[child] = half
                    node_depth[child] = node_depth[current] + 1
                    node_children[current, q] = child
                n_nodes += 4
                if node_depth[current] + 1 > max_depth_reached:
                    max_depth_reached = node_depth[current] + 1

                # Push the stored body one level down
                existing = node_head[current]
                node_head[current] = -1
                node_tail[current] = -1
                node_count[current] = 0
                q_old = _quadrant_index(positions[existing, 0], positions[existing, 1],
                                        node_left[current], node_top[current], half)
                child = node_children[current, q_old]
                node_head[child] = existing
                node_tail[child] = existing
                node_count[child] = 1

            half = node_size[current] / 2.0
            q = _quadrant_index(x, y, node_left[current], node_top[current], half)
            current = node_children[current, q]

        inserted[p] = True

    return (node_left, node_top, node_size, node_depth, node_children,
            node_head, body_next, inserted, n_nodes, n_merged, max_depth_reached)


@jit(nopython=True, cache=True)
def aggregate_quadtree(positions, masses, n_nodes, node_children, node_head, body_next):
    """
    Compute node masses and centers of mass in one reverse sweep.

    Returns:
        (node_mass (n_nodes,), node_com (n_nodes, 2))
    """
    node_mass = np.zeros(n_nodes, dtype=np.float64)
    node_com = np.zeros((n_nodes, 2), dtype=np.float64)

    for k in range(n_nodes - 1, -1, -1):
        if node_children[k, 0] == -1:
            b = node_head[k]
            if b == -1:
                continue
            if body_next[b] == -1:
                node_mass[k] = masses[b]
                node_com[k, 0] = positions[b, 0]
                node_com[k, 1] = positions[b, 1]
                continue
            total = 0.0
            wx = 0.0
            wy = 0.0
            while b != -1:
                total += masses[b]
                wx += positions[b, 0] * masses[b]
                wy += positions[b, 1] * masses[b]
                b = body_next[b]
            node_mass[k] = total
            if total > 0.0:
                node_com[k, 0] = wx / total
                node_com[k, 1] = wy / total
        else:
            total = 0.0
            wx = 0.0
            wy = 0.0
            for q in range(4):
                c = node_children[k, q]
                total += node_mass[c]
                wx += node_com[c, 0] * node_mass[c]
                wy += node_com[c, 1] * node_mass[c]
            node_mass[k] = total
            if total > 0.0:
                node_com[k, 0] = wx / total
                node_com[k, 1] = wy / total

    return node_mass, node_com


@jit(nopython=True, cache=True, parallel=True)
def calculate_forces_quadtree(positions, masses, inserted, theta, G, softening, max_depth,
                              node_left, node_top, node_size, node_children,
                              node_mass, node_com):
    """
    Barnes-Hut accelerations for every body.

    For each body, walk the tree depth-first in quadrant order. The leaf at
    the end of the body's insertion path has the body's own mass removed. A
    node is used as one point mass, with its full aggregate, if it is a leaf
    or size/distance < theta; otherwise its children are pushed.

    Returns:
        (N, 2) accelerations
    """
    N = len(positions)
    accelerations = np.zeros((N, 2), dtype=np.float64)
    eps2 = softening * softening
    stack_size = 4 * (max_depth + 2)

    for i in prange(N):
        px = positions[i, 0]
        py = positions[i, 1]
        m = masses[i]
        ax = 0.0
        ay = 0.0

        stack_node = np.empty(stack_size, dtype=np.int32)
        stack_path = np.empty(stack_size, dtype=np.bool_)
        stack_node[0] = 0
        stack_path[0] = inserted[i]
        stack_top = 1

        while stack_top > 0:
            stack_top -= 1
            node = stack_node[stack_top]
            on_path = stack_path[stack_top]

            total_mass = node_mass[node]
            cx = node_com[node, 0]
            cy = node_com[node, 1]

            if on_path and node_children[node, 0] == -1:
                # Own leaf: only the other bodies of a bucket remain
                rest = total_mass - m
                if rest <= 0.0:
                    continue
                cx = (cx * total_mass - px * m) / rest
                cy = (cy * total_mass - py * m) / rest
                total_mass = rest
            elif total_mass <= 0.0:
                continue

            dx = cx - px
            dy = cy - py
            distance = np.sqrt(dx * dx + dy * dy + eps2)

            if node_children[node, 0] == -1 or (distance > 0.0 and node_size[node] / distance < theta):
                if distance == 0.0:
                    continue
                force = G * total_mass * m / (distance * distance + eps2)
                scale = force / m / distance
                ax += dx * scale
                ay += dy * scale
            else:
                own = -1
                if on_path:
                    own = _quadrant_index(px, py, node_left[node], node_top[node], node_size[node] / 2.0)
                # Push in reverse so children are visited in quadrant order
                for q in range(3, -1, -1):
                    stack_node[stack_top] = node_children[node, q]
                    stack_path[stack_top] = q == own
                    stack_top += 1

        accelerations[i, 0] = ax
        accelerations[i, 1] = ay

    return accelerations


class NumbaQuadTree:
    """
    Barnes-Hut quadtree solver using Numba JIT compilation.

    Drop-in alternative to QuadTree + ForceEvaluator for large N:
        tree = NumbaQuadTree(Boundary(0, 0, 800), config)
        tree.build_tree(positions, masses)
        accelerations = tree.calculate_all_accelerations()
    """

    def __init__(self, boundary: Boundary, config: Optional[SolverConfig] = None):
        self.boundary = boundary
        self.config = config if config is not None else SolverConfig()

        self.positions: Optional[np.ndarray] = None
        self.masses: Optional[np.ndarray] = None
        self.inserted: Optional[np.ndarray] = None
        self.n_nodes = 0
        self.n_merged = 0
        self.max_depth_reached = 0

        self._arena = None
        self.node_mass: Optional[np.ndarray] = None
        self.node_com: Optional[np.ndarray] = None

    @property
    def dropped(self) -> np.ndarray:
        return np.flatnonzero(~self.inserted)

    @property
    def total_mass(self) -> float:
        return float(self.node_mass[0])

    @property
    def center_of_mass(self) -> np.ndarray:
        return self.node_com[0].copy()

    def build_tree(self, positions: np.ndarray, masses: np.ndarray) -> None:
        """Build the node arena and aggregate masses."""
        self.positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 2)
        self.masses = np.ascontiguousarray(masses, dtype=np.float64).reshape(-1)

        # Typically ~2N nodes; doubled on overflow (deep splits around close pairs)
        max_nodes = max(64, len(self.positions) * 4 + 1)
        while True:
            arena = build_quadtree(self.positions, self.boundary.left, self.boundary.top,
                                   self.boundary.size, self.config.max_depth, max_nodes)
            if arena[8] >= 0:
                break
            max_nodes *= 2

        (node_left, node_top, node_size, node_depth, node_children,
         node_head, body_next, inserted, n_nodes, n_merged, max_depth_reached) = arena

        self._arena = arena
        self.inserted = inserted
        self.n_nodes = n_nodes
        self.n_merged = n_merged
        self.max_depth_reached = max_depth_reached

        self.node_mass, self.node_com = aggregate_quadtree(
            self.positions, self.masses, n_nodes, node_children, node_head, body_next
        )

    def calculate_all_accelerations(self) -> np.ndarray:
        """
        Calculate accelerations using parallel tree traversal.

        Returns:
            (N, 2) accelerations
        """
        node_left, node_top, node_size, _, node_children = self._arena[:5]
        return calculate_forces_quadtree(
            self.positions, self.masses, self.inserted,
            float(self.config.theta), float(self.config.gravity_constant),
            float(self.config.softening), int(self.config.max_depth),
            node_left, node_top, node_size, node_children,
            self.node_mass, self.node_com
        )
