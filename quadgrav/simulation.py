"""
Main Simulation Runner
Owns the bodies, calls the solver once per step and reports statistics
"""

from typing import Dict, List, Optional
import time
import numpy as np

from .constants import SimulationParameters, SolverConfig
from .factories import create_bodies, domain_boundary
from .integrator import StepReport, SymplecticEulerIntegrator
from .particles import BodySystem
from .quadtree import Boundary


class Simulation:
    """Headless driver: builds initial conditions and runs the step loop"""

    def __init__(self, sim_params: SimulationParameters, config: Optional[SolverConfig] = None,
                 force_method: str = 'auto', workers: Optional[int] = None,
                 bodies: Optional[BodySystem] = None, boundary: Optional[Boundary] = None,
                 verbose: bool = True):
        """
        Initialize simulation.

        If bodies/boundary are not given they are generated from sim_params.

        Args:
            force_method: 'auto', 'tree', 'numba' or 'direct'
            workers: Threads for the 'tree' force method
        """
        self.sim_params = sim_params
        self.config = config if config is not None else SolverConfig()
        self.verbose = verbose

        self.boundary = boundary if boundary is not None else domain_boundary(sim_params.domain_size)
        if bodies is None:
            if verbose:
                print(f"Initializing {sim_params.n_bodies} bodies ({sim_params.initial_conditions}) "
                      f"in {self.boundary}...")
            bodies = create_bodies(sim_params)
        self.bodies = bodies

        self.integrator = SymplecticEulerIntegrator(
            self.bodies, self.boundary, self.config,
            force_method=force_method, workers=workers, verbose=verbose
        )

        self.snapshots: List[Dict] = []
        self.step_times_s: List[float] = []

    def step(self) -> StepReport:
        """Advance one step, timing it and warning about dropped bodies."""
        t0 = time.perf_counter()
        report = self.integrator.step()
        self.step_times_s.append(time.perf_counter() - t0)

        if self.verbose and report.n_dropped:
            print(f"[Simulation] WARNING: {report.n_dropped} bodies outside {self.boundary} "
                  f"were left out of the tree at t={self.bodies.time - self.config.time_step:.3f}")
        return report

    def run(self, n_steps: Optional[int] = None, save_interval: int = 10) -> List[Dict]:
        """Run the simulation and return snapshots."""
        n_steps = self.sim_params.n_steps if n_steps is None else n_steps

        if self.verbose:
            print("\n" + "=" * 60)
            print("RUNNING BARNES-HUT SIMULATION")
            print("=" * 60)
            print(self.sim_params)
            print(self.config)
            print("=" * 60 + "\n")

        self.snapshots = [self.integrator._save_snapshot()]
        for step in range(n_steps):
            self.step()
            if (step + 1) % save_interval == 0:
                self.snapshots.append(self.integrator._save_snapshot())

        if self.verbose:
            self.print_statistics()

        return self.snapshots

    def statistics(self) -> Dict:
        """Throughput and tree statistics over all steps run so far."""
        reports = self.integrator.reports
        times = np.array(self.step_times_s)
        rms_radius, max_radius = (BodySystem.calculate_system_size(self.bodies.get_positions())
                                  if len(self.bodies) else (0.0, 0.0))
        return {
            'n_steps': len(reports),
            'steps_per_s_last': float(1.0 / times[-1]) if len(times) and times[-1] > 0 else 0.0,
            'steps_per_s_mean': float(len(times) / np.sum(times)) if len(times) and np.sum(times) > 0 else 0.0,
            'total_dropped': int(sum(r.n_dropped for r in reports)),
            'total_clamped': int(sum(r.n_clamped for r in reports)),
            'max_merged': int(max((r.n_merged for r in reports), default=0)),
            'max_depth_reached': int(max((r.max_depth_reached for r in reports), default=0)),
            'rms_radius': rms_radius,
            'max_radius': max_radius,
        }

    def print_statistics(self) -> None:
        stats = self.statistics()
        print(f"\n[Simulation] {stats['n_steps']} steps, "
              f"{stats['steps_per_s_last']:.2f} steps/s ({stats['steps_per_s_mean']:.2f} avg)")
        print(f"[Simulation] Max tree depth: {stats['max_depth_reached']}, "
              f"max merged bodies: {stats['max_merged']}")
        print(f"[Simulation] Dropped: {stats['total_dropped']}, clamped: {stats['total_clamped']}")
        print(f"[Simulation] RMS radius: {stats['rms_radius']:.2f}, max radius: {stats['max_radius']:.2f}")
