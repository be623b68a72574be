"""
Body Structures
Point masses owned by the external driver and mutated in place by the solver
"""

from typing import Iterable, Iterator, List, Optional, Tuple
import numpy as np


class Body:
    """A single point mass with 2D position and velocity"""

    def __init__(self, mass: float, position, velocity=(0.0, 0.0), body_id: int = 0):
        """Initialize a body; position/velocity are copied into float64 arrays of shape (2,)."""
        self.mass = float(mass)
        self.pos = np.array(position, dtype=np.float64).reshape(2)
        self.vel = np.array(velocity, dtype=np.float64).reshape(2)
        self.id = body_id
        self.acc = np.zeros(2, dtype=np.float64)  # Last applied acceleration

    @property
    def position(self) -> np.ndarray:
        return self.pos

    @property
    def velocity(self) -> np.ndarray:
        return self.vel

    def __repr__(self):
        return f"Body(id={self.id}, mass={self.mass:.3g}, pos={self.pos}, vel={self.vel})"


class BodySystem:
    """Ordered collection of bodies; the index of a body is its identity within a step"""

    def __init__(self, bodies: Optional[Iterable[Body]] = None):
        self.bodies: List[Body] = list(bodies) if bodies is not None else []
        self.time = 0.0

    @classmethod
    def from_arrays(cls, positions, velocities=None, masses=None) -> 'BodySystem':
        """
        Build a system from arrays.

        Args:
            positions: (N, 2) positions
            velocities: (N, 2) velocities (default: zeros)
            masses: (N,) masses (default: ones)
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        n = len(positions)
        velocities = np.zeros((n, 2)) if velocities is None else np.asarray(velocities, dtype=np.float64)
        masses = np.ones(n) if masses is None else np.asarray(masses, dtype=np.float64)

        return cls(Body(masses[i], positions[i], velocities[i], body_id=i) for i in range(n))

    def get_positions(self) -> np.ndarray:
        """Get all body positions as (N, 2) array."""
        return np.array([b.pos for b in self.bodies], dtype=np.float64).reshape(-1, 2)

    def get_velocities(self) -> np.ndarray:
        """Get all body velocities as (N, 2) array."""
        return np.array([b.vel for b in self.bodies], dtype=np.float64).reshape(-1, 2)

    def get_masses(self) -> np.ndarray:
        """Get all body masses as (N,) array."""
        return np.array([b.mass for b in self.bodies], dtype=np.float64)

    def get_accelerations(self) -> np.ndarray:
        """Get the last applied accelerations as (N, 2) array."""
        return np.array([b.acc for b in self.bodies], dtype=np.float64).reshape(-1, 2)

    def set_positions(self, positions: np.ndarray) -> None:
        for body, pos in zip(self.bodies, positions):
            body.pos[:] = pos

    def set_velocities(self, velocities: np.ndarray) -> None:
        for body, vel in zip(self.bodies, velocities):
            body.vel[:] = vel

    def kinetic_energy(self) -> float:
        """Calculate total kinetic energy."""
        KE = 0.0
        for body in self.bodies:
            KE += 0.5 * body.mass * float(np.dot(body.vel, body.vel))
        return KE

    def total_momentum(self) -> np.ndarray:
        """Total linear momentum Σ m v as a (2,) array."""
        if not self.bodies:
            return np.zeros(2)
        return np.sum(self.get_velocities() * self.get_masses()[:, np.newaxis], axis=0)

    def center_of_mass(self) -> np.ndarray:
        """Mass-weighted mean position (zeros for an empty or massless system)."""
        masses = self.get_masses()
        total = np.sum(masses)
        if total <= 0:
            return np.zeros(2)
        return np.sum(self.get_positions() * masses[:, np.newaxis], axis=0) / total

    @staticmethod
    def calculate_system_size(positions: np.ndarray) -> Tuple[float, float]:
        """
        Characteristic size of a body distribution.

        Returns (rms_radius, max_radius) measured from the unweighted centroid.
        """
        centroid = np.mean(positions, axis=0)
        r = np.linalg.norm(positions - centroid, axis=1)
        return float(np.sqrt(np.mean(r**2))), float(np.max(r))

    def __len__(self):
        return len(self.bodies)

    def __iter__(self) -> Iterator[Body]:
        return iter(self.bodies)

    def __getitem__(self, index: int) -> Body:
        return self.bodies[index]

    def __repr__(self):
        return f"BodySystem(n={len(self.bodies)}, t={self.time:.3g})"
