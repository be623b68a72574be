#!/usr/bin/env python3
"""
Barnes-Hut N-body Simulation
Main script to run a 2D quadtree gravity simulation with configurable parameters.
"""

import os
import matplotlib
matplotlib.use('Agg')

from quadgrav.cli import parse_arguments, args_to_config, args_to_sim_params
from quadgrav.quadtree import QuadTree
from quadgrav.simulation import Simulation
from quadgrav.visualization import generate_output_filename, plot_snapshot, plot_speed_distribution


def run_simulation(output_dir, sim_params, config, force_method='auto', workers=None, plot=False):
    """
    Run the simulation and optionally save plots of the final state.

    Returns:
        (sim, snapshots)
    """
    sim = Simulation(sim_params, config, force_method=force_method, workers=workers)
    snapshots = sim.run(save_interval=max(1, sim_params.n_steps // 10))

    if plot:
        os.makedirs(output_dir, exist_ok=True)
        tree = QuadTree(sim.boundary, config)
        tree.build_tree(sim.bodies.get_positions(), sim.bodies.get_masses())

        plot_snapshot(snapshots[-1], sim.boundary, tree=tree,
                      save_path=generate_output_filename('snapshot', sim_params, config,
                                                         output_dir=output_dir))
        plot_speed_distribution(snapshots[-1],
                                save_path=generate_output_filename('speeds', sim_params, config,
                                                                   output_dir=output_dir))

    return sim, snapshots


if __name__ == "__main__":
    args = parse_arguments()

    sim_params = args_to_sim_params(args)
    config = args_to_config(args)

    if args.plot:
        print(f"Output directory: {os.path.abspath(args.output_dir)}\n")

    sim, snapshots = run_simulation(args.output_dir, sim_params, config,
                                    force_method=args.method, workers=args.workers,
                                    plot=args.plot)

    stats = sim.statistics()
    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"Bodies:          {len(sim.bodies)}")
    print(f"Steps:           {stats['n_steps']}  (t = {sim.bodies.time:.2f})")
    print(f"Throughput:      {stats['steps_per_s_mean']:.2f} steps/s")
    print(f"RMS radius:      {stats['rms_radius']:.2f}")
    if stats['total_dropped']:
        print(f"  WARNING: {stats['total_dropped']} body-steps fell outside the domain")

    print("\nSimulation complete!")
