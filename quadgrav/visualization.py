"""
Visualization Tools
Plot body snapshots, quadtree cells and animations of simulation results
"""

import os
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
from matplotlib.patches import Rectangle

from .quadtree import Boundary, QuadTree

BACKGROUND_COLOR = (10 / 255, 10 / 255, 10 / 255)
BODY_COLOR = (128 / 255, 148 / 255, 148 / 255)


def _style_axes(ax, boundary: Boundary):
    ax.set_facecolor(BACKGROUND_COLOR)
    ax.set_xlim(boundary.left, boundary.right)
    # Screen convention: y grows downward
    ax.set_ylim(boundary.bottom, boundary.top)
    ax.set_aspect('equal')


def draw_tree_cells(ax, tree: QuadTree, color='#3a5a5a', linewidth=0.4, occupied_only=True):
    """
    Draw the boundaries of the tree's leaves.

    Parameters:
    -----------
    ax : matplotlib Axes
    tree : QuadTree
        Built tree
    occupied_only : bool
        Skip empty leaves

    Returns the number of rectangles drawn.
    """
    n_drawn = 0
    for leaf in tree.leaves():
        if occupied_only and not leaf.bodies:
            continue
        b = leaf.boundary
        ax.add_patch(Rectangle((b.left, b.top), b.size, b.size, fill=False,
                               edgecolor=color, linewidth=linewidth))
        n_drawn += 1
    return n_drawn


def plot_snapshot(snapshot, boundary: Boundary, tree: QuadTree = None, save_path=None):
    """
    Plot body positions at a given snapshot

    Parameters:
    -----------
    snapshot : dict
        Snapshot containing 'positions' and 'time'
    boundary : Boundary
        Domain to show
    tree : QuadTree, optional
        Tree whose occupied leaves are outlined
    save_path : str, optional
        Path to save figure
    """
    positions = snapshot['positions']

    fig, ax = plt.subplots(figsize=(8, 8))
    _style_axes(ax, boundary)

    if tree is not None:
        draw_tree_cells(ax, tree)

    ax.scatter(positions[:, 0], positions[:, 1], s=1, c=[BODY_COLOR], marker='.', linewidths=0)
    ax.set_title(f"t = {snapshot['time']:.2f}  (N = {len(positions)})", fontsize=13)

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved snapshot plot to {save_path}")

    return fig


def plot_speed_distribution(snapshot, n_bins=30, save_path=None):
    """
    Plot the distribution of body speeds

    Parameters:
    -----------
    snapshot : dict
        Snapshot containing velocities
    save_path : str, optional
        Path to save figure
    """
    speeds = np.linalg.norm(snapshot['velocities'], axis=1)

    fig, ax = plt.subplots(figsize=(7, 5))
    ax.hist(speeds, bins=n_bins, color='steelblue', alpha=0.7, edgecolor='black')
    ax.set_xlabel('Speed', fontsize=12)
    ax.set_ylabel('Number of Bodies', fontsize=12)
    ax.set_title('Speed Distribution', fontsize=13, fontweight='bold')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved speed plot to {save_path}")

    return fig


def create_animation(snapshots, boundary: Boundary, output_path='bodies.gif', fps=10):
    """
    Create animated GIF of body evolution

    Parameters:
    -----------
    snapshots : list
        List of snapshot dictionaries
    boundary : Boundary
        Domain to show
    output_path : str
        GIF file to write
    fps : int
        Frames per second
    """
    fig, ax = plt.subplots(figsize=(8, 8))
    _style_axes(ax, boundary)
    scatter = ax.scatter([], [], s=1, c=[BODY_COLOR], marker='.', linewidths=0)
    title = ax.set_title('')

    def update(frame):
        snapshot = snapshots[frame]
        scatter.set_offsets(snapshot['positions'])
        title.set_text(f"t = {snapshot['time']:.2f}")
        return scatter, title

    anim = FuncAnimation(fig, update, frames=len(snapshots), interval=1000 / fps, blit=False)
    anim.save(output_path, writer=PillowWriter(fps=fps))
    plt.close(fig)
    print(f"Saved animation to {output_path}")

    return output_path


def generate_output_filename(prefix, sim_params, config, ext='png', output_dir='.'):
    """
    Generate a descriptive filename from run parameters.

    Example: snapshot_N2000_steps100_theta0.5_seed42.png
    """
    filename = (f"{prefix}_N{sim_params.n_bodies}_steps{sim_params.n_steps}"
                f"_theta{config.theta}_seed{sim_params.seed}.{ext}")
    return os.path.join(output_dir, filename)
