"""
Unit tests for solver configuration and simulation parameters.
"""

import unittest
import numpy as np
from quadgrav.constants import (
    BoundaryPolicy,
    ConfigurationError,
    SimulationParameters,
    SolverConfig,
    SolverDefaults,
)


class TestSolverConfig(unittest.TestCase):
    """Test SolverConfig defaults and validation"""

    def test_defaults(self):
        config = SolverConfig()
        self.assertEqual(config.theta, 0.5)
        self.assertEqual(config.gravity_constant, 0.1)
        self.assertEqual(config.time_step, 1.0)
        self.assertEqual(config.softening, 15.0)
        self.assertEqual(config.max_depth, SolverDefaults.MAX_DEPTH)
        self.assertIs(config.boundary_policy, BoundaryPolicy.DROP)

    def test_theta_zero_is_allowed(self):
        """theta = 0 means exact summation, not an error"""
        config = SolverConfig(theta=0.0)
        self.assertEqual(config.theta, 0.0)

    def test_negative_theta_rejected(self):
        with self.assertRaises(ConfigurationError):
            SolverConfig(theta=-0.1)

    def test_nan_theta_rejected(self):
        with self.assertRaises(ConfigurationError):
            SolverConfig(theta=float('nan'))

    def test_negative_softening_rejected(self):
        with self.assertRaises(ConfigurationError):
            SolverConfig(softening=-1.0)

    def test_zero_softening_allowed(self):
        self.assertEqual(SolverConfig(softening=0.0).softening, 0.0)

    def test_non_finite_parameters_rejected(self):
        with self.assertRaises(ConfigurationError):
            SolverConfig(gravity_constant=np.inf)
        with self.assertRaises(ConfigurationError):
            SolverConfig(time_step=float('nan'))
        with self.assertRaises(ConfigurationError):
            SolverConfig(softening=np.inf)

    def test_max_depth_range(self):
        with self.assertRaises(ConfigurationError):
            SolverConfig(max_depth=0)
        with self.assertRaises(ConfigurationError):
            SolverConfig(max_depth=SolverDefaults.MAX_DEPTH_LIMIT + 1)
        with self.assertRaises(ConfigurationError):
            SolverConfig(max_depth=2.5)
        with self.assertRaises(ConfigurationError):
            SolverConfig(max_depth=True)
        self.assertEqual(SolverConfig(max_depth=SolverDefaults.MAX_DEPTH_LIMIT).max_depth,
                         SolverDefaults.MAX_DEPTH_LIMIT)

    def test_boundary_policy_from_string(self):
        self.assertIs(SolverConfig(boundary_policy='clamp').boundary_policy, BoundaryPolicy.CLAMP)
        self.assertIs(SolverConfig(boundary_policy='raise').boundary_policy, BoundaryPolicy.RAISE)

    def test_unknown_boundary_policy(self):
        with self.assertRaises(ConfigurationError):
            SolverConfig(boundary_policy='wrap')

    def test_configuration_error_is_value_error(self):
        with self.assertRaises(ValueError):
            SolverConfig(theta=-1.0)

    def test_replace_returns_new_validated_config(self):
        config = SolverConfig()
        exact = config.replace(theta=0.0, softening=0.0)

        self.assertEqual(exact.theta, 0.0)
        self.assertEqual(exact.softening, 0.0)
        self.assertEqual(config.theta, 0.5)
        self.assertEqual(exact.gravity_constant, config.gravity_constant)

        with self.assertRaises(ConfigurationError):
            config.replace(theta=-2.0)

    def test_str_lists_parameters(self):
        text = str(SolverConfig(theta=0.7))
        self.assertIn("θ = 0.7", text)
        self.assertIn("Boundary policy = drop", text)


class TestSimulationParameters(unittest.TestCase):
    """Test SimulationParameters validation"""

    def test_defaults(self):
        params = SimulationParameters()
        self.assertEqual(params.n_bodies, 2000)
        self.assertEqual(params.domain_size, 800.0)
        self.assertEqual(params.initial_conditions, 'disc')

    def test_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            SimulationParameters(n_bodies=-1)
        with self.assertRaises(ConfigurationError):
            SimulationParameters(domain_size=0.0)
        with self.assertRaises(ConfigurationError):
            SimulationParameters(body_mass=0.0)
        with self.assertRaises(ConfigurationError):
            SimulationParameters(initial_conditions='spiral')

    def test_zero_bodies_allowed(self):
        self.assertEqual(SimulationParameters(n_bodies=0).n_bodies, 0)

    def test_disc_needs_unit_domain(self):
        """Disc positions are integer grid points, so the domain must hold at least one"""
        with self.assertRaises(ConfigurationError):
            SimulationParameters(n_bodies=10, domain_size=0.5)
        params = SimulationParameters(n_bodies=10, domain_size=0.5, initial_conditions='uniform')
        self.assertEqual(params.domain_size, 0.5)


if __name__ == '__main__':
    unittest.main()
