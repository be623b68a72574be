"""
Command-line interface utilities for Barnes-Hut simulations.
Provides shared argument parsing for run_simulation.py.
"""

import argparse
from .constants import SimulationParameters, SolverConfig, SolverDefaults, BoundaryPolicy
from .integrator import FORCE_METHODS


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add simulation and solver arguments.

    Arguments added:
    - --bodies, --domain-size, --seed, --n-steps, --mass, --speed, --initial
    - --theta, --G, --dt, --softening, --max-depth, --boundary-policy
    - --method, --workers
    """
    # Simulation setup
    parser.add_argument('--bodies', type=int, default=2000,
                        help='Number of bodies')
    parser.add_argument('--domain-size', type=float, default=SolverDefaults.DOMAIN_SIZE,
                        help='Side of the square domain')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed for reproducibility')
    parser.add_argument('--n-steps', type=int, default=100,
                        help='Number of simulation steps')
    parser.add_argument('--mass', type=float, default=1.0,
                        help='Mass of every body')
    parser.add_argument('--speed', type=float, default=1.0,
                        help='Initial tangential speed around the domain center')
    parser.add_argument('--initial', choices=['disc', 'uniform'], default='disc',
                        help='Initial conditions')

    # Solver parameters
    parser.add_argument('--theta', type=float, default=SolverDefaults.THETA,
                        help='Barnes-Hut opening threshold (0 = exact)')
    parser.add_argument('--G', type=float, default=SolverDefaults.GRAVITY_CONSTANT,
                        help='Gravitational constant')
    parser.add_argument('--dt', type=float, default=SolverDefaults.TIME_STEP,
                        help='Time step')
    parser.add_argument('--softening', type=float, default=SolverDefaults.SOFTENING,
                        help='Softening length')
    parser.add_argument('--max-depth', type=int, default=SolverDefaults.MAX_DEPTH,
                        help='Maximum quadtree depth before coincident bodies are merged')
    parser.add_argument('--boundary-policy', choices=[p.value for p in BoundaryPolicy],
                        default=BoundaryPolicy.DROP.value,
                        help='Handling of bodies outside the domain')

    # Execution
    parser.add_argument('--method', choices=list(FORCE_METHODS), default='auto',
                        help='Force method (auto = numba for >=1000 bodies)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Threads for the tree force method')


def parse_arguments(description: str = 'Run Barnes-Hut N-body Simulation',
                    add_output_dir: bool = True, argv=None) -> argparse.Namespace:
    """
    Create parser with common arguments and parse command line.

    Args:
        description: Help text description for the parser
        add_output_dir: If True, adds --output-dir and --plot arguments
        argv: Argument list (default: sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    if add_output_dir:
        parser.add_argument('--output-dir', type=str, default='./results',
                            help='Output directory for plots')
        parser.add_argument('--plot', action='store_true',
                            help='Save a plot of the final state with tree cells')

    add_common_arguments(parser)

    return parser.parse_args(argv)


def args_to_config(args: argparse.Namespace) -> SolverConfig:
    """Convert parsed arguments to a validated SolverConfig."""
    return SolverConfig(
        theta=args.theta,
        gravity_constant=args.G,
        time_step=args.dt,
        softening=args.softening,
        max_depth=args.max_depth,
        boundary_policy=args.boundary_policy
    )


def args_to_sim_params(args: argparse.Namespace) -> SimulationParameters:
    """Convert parsed arguments to SimulationParameters."""
    return SimulationParameters(
        n_bodies=args.bodies,
        domain_size=args.domain_size,
        seed=args.seed,
        n_steps=args.n_steps,
        body_mass=args.mass,
        initial_speed=args.speed,
        initial_conditions=args.initial
    )
