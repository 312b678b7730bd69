"""
Plotting utilities for inspecting a marching squares frame.
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import PathPatch


def _prepare_axes(ax, grid):
    if ax is None:
        fig, ax = plt.subplots(1, 1, figsize=(8, 8))
    pad = 1.0 / grid.resolution
    # Outer ring of border samples
    ax.set_xlim([-pad, (grid.cols - 2) * pad])
    # Rows grow downwards
    ax.set_ylim([(grid.rows - 2) * pad, -pad])
    ax.set_aspect('equal')
    return ax


def _save(filename):
    if filename:
        plt.savefig(filename, dpi=150, bbox_inches='tight')
        print(f"Saved: {filename}")


def plot_sample_mask(grid, ax=None, filename=None):
    """
    Draw every above-threshold sample as a filled square.

    Parameters:
    -----------
    grid : SampleGrid
        Grid after a threshold pass
    ax : matplotlib Axes, optional
    filename : str, optional
        Output filename
    """
    ax = _prepare_axes(ax, grid)
    X, Y = grid.meshgrid()
    h = 1.0 / grid.resolution
    ax.pcolormesh(
        np.append(X[0], X[0, -1] + h) - 0.5 * h,
        np.append(Y[:, 0], Y[-1, 0] + h) - 0.5 * h,
        grid.above.astype(float),
        cmap='Greys', vmin=0.0, vmax=1.0, shading='flat',
    )
    ax.set_title('Samples above threshold', fontsize=12, fontweight='bold')
    _save(filename)
    return ax


def plot_classification(grid, ax=None, filename=None, annotate=True):
    """Overlay cell boundaries with each cell's classification code."""
    ax = _prepare_axes(ax, grid)
    X, Y = grid.meshgrid()
    ax.plot(X, Y, color='0.7', linewidth=0.5)
    ax.plot(X.T, Y.T, color='0.7', linewidth=0.5)
    if annotate:
        h = 0.5 / grid.resolution
        codes = grid.classification
        for row in range(grid.rows - 1):
            for col in range(grid.cols - 1):
                code = int(codes[row, col])
                if code in (0, 15):
                    continue
                ax.text(X[row, col] + h, Y[row, col] + h, str(code),
                        ha='center', va='center', fontsize=6, color='tab:blue')
    ax.set_title('Cell classification', fontsize=12, fontweight='bold')
    _save(filename)
    return ax


def plot_segments(segments, grid, ax=None, filename=None):
    """Wireframe of raw per-cell segments."""
    ax = _prepare_axes(ax, grid)
    for a, b in segments:
        ax.plot([a[0], b[0]], [a[1], b[1]], 'k-', linewidth=1)
    ax.set_title(f'{len(segments)} segments', fontsize=12, fontweight='bold')
    _save(filename)
    return ax


def plot_filled_path(path, grid, ax=None, filename=None, show_endpoints=True):
    """
    Fill the assembled path and mark where open subpaths start and end.

    Green dots mark subpath starts, red dots the ends of open subpaths.
    """
    ax = _prepare_axes(ax, grid)
    patch = PathPatch(path.to_matplotlib(), facecolor='tab:orange', edgecolor='black',
                      linewidth=1, alpha=0.8)
    ax.add_patch(patch)
    if show_endpoints:
        for subpath in path.contours:
            xs, ys = zip(*subpath.points)
            ax.plot(xs[0], ys[0], 'go', markersize=4)
            if not subpath.closed:
                ax.plot(xs[-1], ys[-1], 'ro', markersize=4)
    ax.set_title('Assembled path', fontsize=12, fontweight='bold')
    _save(filename)
    return ax


def plot_frame(engine, result, filename='marching_squares_frame.png'):
    """Four-panel overview of one pipeline run."""
    fig, axes = plt.subplots(2, 2, figsize=(12, 12))
    axes = axes.flatten()

    plot_sample_mask(engine.grid, ax=axes[0])
    plot_classification(engine.grid, ax=axes[1], annotate=engine.grid.size <= 2500)
    plot_segments(result.segments, engine.grid, ax=axes[2])
    plot_filled_path(result.path, engine.grid, ax=axes[3])

    plt.tight_layout()
    _save(filename)
    return fig
