"""
Unit tests for CLI argument parsing module.
"""

import unittest
import argparse
from quadgrav.cli import add_common_arguments, parse_arguments, args_to_config, args_to_sim_params
from quadgrav.constants import BoundaryPolicy, ConfigurationError, SimulationParameters, SolverConfig


class TestAddCommonArguments(unittest.TestCase):
    """Test add_common_arguments function"""

    def test_adds_all_expected_arguments(self):
        parser = argparse.ArgumentParser()
        add_common_arguments(parser)
        args = parser.parse_args([])

        for name in ('bodies', 'domain_size', 'seed', 'n_steps', 'mass', 'speed', 'initial',
                     'theta', 'G', 'dt', 'softening', 'max_depth', 'boundary_policy',
                     'method', 'workers'):
            self.assertTrue(hasattr(args, name), name)

    def test_default_values(self):
        parser = argparse.ArgumentParser()
        add_common_arguments(parser)
        args = parser.parse_args([])

        self.assertEqual(args.bodies, 2000)
        self.assertEqual(args.theta, 0.5)
        self.assertEqual(args.G, 0.1)
        self.assertEqual(args.dt, 1.0)
        self.assertEqual(args.softening, 15.0)
        self.assertEqual(args.boundary_policy, 'drop')
        self.assertEqual(args.method, 'auto')
        self.assertIsNone(args.workers)

    def test_invalid_choice_exits(self):
        parser = argparse.ArgumentParser()
        add_common_arguments(parser)
        with self.assertRaises(SystemExit):
            parser.parse_args(['--boundary-policy', 'wrap'])


class TestParseArguments(unittest.TestCase):
    """Test parse_arguments function"""

    def test_output_dir_and_plot(self):
        args = parse_arguments(argv=['--output-dir', '/tmp/out', '--plot'])
        self.assertEqual(args.output_dir, '/tmp/out')
        self.assertTrue(args.plot)

    def test_without_output_dir(self):
        args = parse_arguments(add_output_dir=False, argv=[])
        self.assertFalse(hasattr(args, 'output_dir'))

    def test_custom_values(self):
        args = parse_arguments(argv=['--bodies', '500', '--theta', '0', '--workers', '4',
                                     '--method', 'tree', '--initial', 'uniform'])
        self.assertEqual(args.bodies, 500)
        self.assertEqual(args.theta, 0.0)
        self.assertEqual(args.workers, 4)
        self.assertEqual(args.method, 'tree')


class TestArgsConversion(unittest.TestCase):
    """Test conversion to parameter objects"""

    def test_args_to_config(self):
        args = parse_arguments(argv=['--theta', '0.8', '--softening', '0', '--max-depth', '12',
                                     '--boundary-policy', 'clamp'])
        config = args_to_config(args)

        self.assertIsInstance(config, SolverConfig)
        self.assertEqual(config.theta, 0.8)
        self.assertEqual(config.softening, 0.0)
        self.assertEqual(config.max_depth, 12)
        self.assertIs(config.boundary_policy, BoundaryPolicy.CLAMP)

    def test_args_to_config_validates(self):
        args = parse_arguments(argv=['--theta', '-1'])
        with self.assertRaises(ConfigurationError):
            args_to_config(args)

    def test_args_to_sim_params(self):
        args = parse_arguments(argv=['--bodies', '64', '--seed', '7', '--n-steps', '3',
                                     '--mass', '2', '--speed', '0.5'])
        params = args_to_sim_params(args)

        self.assertIsInstance(params, SimulationParameters)
        self.assertEqual(params.n_bodies, 64)
        self.assertEqual(params.seed, 7)
        self.assertEqual(params.n_steps, 3)
        self.assertEqual(params.body_mass, 2.0)
        self.assertEqual(params.initial_speed, 0.5)


if __name__ == '__main__':
    unittest.main()
