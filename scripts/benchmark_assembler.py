import os, sys, time
import numpy as np

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from marching_squares import MarchingSquares
from contour_utils import assemble_path, enclosing_bounds, get_contour_statistics
from reporting_utils import (banner, print_grid_overview, print_contour_summary,
                             print_frame_timing, print_completion)


def blob_values(X, Y, balls):
    G = np.zeros_like(X)
    for cx, cy, r in balls:
        G += r * r / np.maximum((X - cx) ** 2 + (Y - cy) ** 2, 1e-12)
    return G


def random_balls(n, width, height, seed=0):
    rng = np.random.default_rng(seed)
    return [(rng.uniform(0, width), rng.uniform(0, height), rng.uniform(4.0, 12.0))
            for _ in range(n)]


def run_benchmark(width=320, height=240, resolution=1.0, n_balls=12, repeats=3):
    engine = MarchingSquares(width=width, height=height, resolution=resolution)
    X, Y = engine.grid.meshgrid()
    G = blob_values(X, Y, random_balls(n_balls, width, height))

    banner("Assembler benchmark")
    print_grid_overview(engine)
    result = engine.run(values=G)
    print_frame_timing(result.timings)
    print_contour_summary({**get_contour_statistics(result.path), 'subpaths': []})

    bounds = enclosing_bounds(width, height, resolution)
    segments = list(result.segments)
    times = {}
    paths = {}
    for method in ('greedy', 'bucketed'):
        t0 = time.time()
        for _ in range(repeats):
            paths[method] = assemble_path(segments, bounds=bounds, method=method)
        times[method] = (time.time() - t0) / repeats

    same = paths['greedy'].command_list() == paths['bucketed'].command_list()
    speedup = times['greedy'] / max(times['bucketed'], 1e-9)
    print(f"\n{len(segments)} segments: greedy={times['greedy']:.4f}s, "
          f"bucketed={times['bucketed']:.4f}s, speedup={speedup:.1f}x, identical={same}")
    print_completion("Benchmark finished.")


if __name__ == '__main__':
    run_benchmark()
