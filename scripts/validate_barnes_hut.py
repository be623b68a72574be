"""
Validation script to compare direct and Barnes-Hut accelerations.

For a range of theta values reports:
- Per-body relative acceleration errors against direct summation
- Timing of the object tree, the Numba arena tree and the direct method
"""

import argparse
import sys
import os
import time
import numpy as np

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quadgrav.constants import SolverConfig
from quadgrav.factories import domain_boundary, rotating_disc
from quadgrav.forces import ForceEvaluator, direct_accelerations
from quadgrav.quadtree import QuadTree
from quadgrav.quadtree_numba import NumbaQuadTree


def relative_errors(a_approx, a_exact):
    """Per-body |a_approx - a_exact| / |a_exact|, skipping bodies with no net force."""
    exact_mag = np.linalg.norm(a_exact, axis=1)
    mask = exact_mag > 1e-20
    return np.linalg.norm(a_approx - a_exact, axis=1)[mask] / exact_mag[mask]


def compare_force_fields(N, theta, seed=42, workers=None):
    """
    Compare direct vs Barnes-Hut accelerations on the rotating disc.

    Returns:
        Dictionary with error statistics and timing
    """
    print(f"\n{'='*70}")
    print(f"Force Field Comparison: N={N}, theta={theta}")
    print(f"{'='*70}")

    config = SolverConfig(theta=theta)
    boundary = domain_boundary(800.0)
    bodies = rotating_disc(N, seed=seed)
    positions = bodies.get_positions()
    masses = bodies.get_masses()

    t0 = time.perf_counter()
    a_direct = direct_accelerations(positions, masses, config)
    t_direct = time.perf_counter() - t0
    print(f"  Direct method:   {t_direct*1000:.2f} ms")

    t0 = time.perf_counter()
    tree = QuadTree(boundary, config)
    tree.build_tree(positions, masses)
    a_tree = ForceEvaluator(config).calculate_all_accelerations(tree, workers=workers)
    t_tree = time.perf_counter() - t0
    print(f"  Object tree:     {t_tree*1000:.2f} ms  ({tree.n_nodes} nodes, depth {tree.max_depth_reached})")

    numba_tree = NumbaQuadTree(boundary, config)
    # First call compiles
    numba_tree.build_tree(positions, masses)
    numba_tree.calculate_all_accelerations()
    t0 = time.perf_counter()
    numba_tree.build_tree(positions, masses)
    a_numba = numba_tree.calculate_all_accelerations()
    t_numba = time.perf_counter() - t0
    print(f"  Numba tree:      {t_numba*1000:.2f} ms")

    errors = relative_errors(a_tree, a_direct)
    rms_error = float(np.sqrt(np.mean(errors**2)))
    max_error = float(np.max(errors))
    median_error = float(np.median(errors))
    numba_mismatch = float(np.max(np.abs(a_numba - a_tree)))

    print(f"\nAccuracy Statistics:")
    print(f"  Median relative error: {median_error:.4f} ({median_error*100:.2f}%)")
    print(f"  RMS relative error:    {rms_error:.4f} ({rms_error*100:.2f}%)")
    print(f"  Max relative error:    {max_error:.4f} ({max_error*100:.2f}%)")
    print(f"  Numba vs object tree:  {numba_mismatch:.3e}")

    return {
        'N': N,
        'theta': theta,
        'rms_error': rms_error,
        'max_error': max_error,
        'median_error': median_error,
        'numba_mismatch': numba_mismatch,
        't_direct': t_direct,
        't_tree': t_tree,
        't_numba': t_numba,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Compare Barnes-Hut against direct summation',
                                     formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser.add_argument('--bodies', type=int, default=1000, help='Number of bodies')
    parser.add_argument('--thetas', type=float, nargs='+', default=[0.0, 0.3, 0.5, 0.8, 1.0],
                        help='Opening thresholds to test')
    parser.add_argument('--workers', type=int, default=None, help='Threads for the object tree')
    args = parser.parse_args()

    results = [compare_force_fields(args.bodies, theta, workers=args.workers) for theta in args.thetas]

    print(f"\n{'='*70}")
    print(f"{'theta':>6} {'rms err':>10} {'max err':>10} {'direct ms':>10} {'tree ms':>10} {'numba ms':>10}")
    for r in results:
        print(f"{r['theta']:>6.2f} {r['rms_error']:>10.2e} {r['max_error']:>10.2e} "
              f"{r['t_direct']*1000:>10.1f} {r['t_tree']*1000:>10.1f} {r['t_numba']*1000:>10.1f}")
