"""
Tests for the headless simulation driver.
"""

import numpy as np
import pytest
from quadgrav.constants import SimulationParameters, SolverConfig
from quadgrav.particles import BodySystem
from quadgrav.quadtree import Boundary
from quadgrav.simulation import Simulation


class TestSimulationRun:
    """Run short simulations end to end"""

    def test_run_returns_snapshots(self):
        params = SimulationParameters(n_bodies=100, n_steps=6, seed=1)
        sim = Simulation(params, force_method='tree', verbose=False)
        snapshots = sim.run(save_interval=3)

        assert len(snapshots) == 3
        assert snapshots[-1]['time'] == pytest.approx(6.0)
        assert snapshots[-1]['positions'].shape == (100, 2)
        assert len(sim.step_times_s) == 6

    def test_same_seed_same_trajectory(self):
        params = SimulationParameters(n_bodies=80, n_steps=5, seed=11)
        final = []
        for _ in range(2):
            sim = Simulation(params, force_method='tree', verbose=False)
            sim.run()
            final.append(sim.bodies.get_positions())

        np.testing.assert_array_equal(final[0], final[1])

    def test_statistics(self):
        params = SimulationParameters(n_bodies=60, n_steps=4)
        sim = Simulation(params, SolverConfig(theta=0.7), force_method='tree', verbose=False)
        sim.run()
        stats = sim.statistics()

        assert stats['n_steps'] == 4
        assert stats['steps_per_s_mean'] > 0.0
        assert stats['total_dropped'] >= 0
        assert stats['max_depth_reached'] >= 1
        assert stats['rms_radius'] > 0.0

    def test_custom_bodies_and_boundary(self):
        bodies = BodySystem.from_arrays([[5.0, 5.0], [15.0, 5.0]])
        boundary = Boundary(0.0, 0.0, 20.0)
        sim = Simulation(SimulationParameters(n_bodies=2, n_steps=1), SolverConfig(softening=1.0),
                         bodies=bodies, boundary=boundary, verbose=False)
        report = sim.step()

        assert report.n_dropped == 0
        assert sim.bodies is bodies
        assert bodies[0].pos[0] > 5.0

    def test_escaping_body_is_counted(self, capsys):
        bodies = BodySystem.from_arrays([[5.0, 5.0], [19.5, 5.0]], velocities=[[0.0, 0.0], [5.0, 0.0]])
        sim = Simulation(SimulationParameters(n_bodies=2, n_steps=2), SolverConfig(),
                         force_method='tree', bodies=bodies, boundary=Boundary(0.0, 0.0, 20.0))
        sim.run()

        assert sim.statistics()['total_dropped'] == 1
        assert "WARNING" in capsys.readouterr().out

    def test_numba_method(self):
        params = SimulationParameters(n_bodies=200, n_steps=2, initial_conditions='uniform')
        sim = Simulation(params, force_method='numba', verbose=False)
        sim.run()

        assert sim.integrator.reports[-1].method == 'numba'
        assert np.all(np.isfinite(sim.bodies.get_positions()))
