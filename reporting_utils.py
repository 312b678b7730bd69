"""
Reporting utilities to consolidate repeated print statements across tests
and scripts.

Each helper prints a focused section. Keep arguments simple and flexible.
"""

from typing import Dict, Optional
import numpy as np


def banner(title: str) -> None:
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def sub_banner(title: str) -> None:
    print("\n" + "-" * 80)
    print(title)
    print("-" * 80)


def print_grid_overview(engine, title: Optional[str] = None) -> None:
    if title:
        banner(title)
    sub_banner("Grid")
    print(f"  Domain: [0, {engine.width}] x [0, {engine.height}]")
    print(f"  Resolution: {engine.resolution} samples per unit")
    print(f"  Grid: {engine.rows} rows x {engine.cols} cols = {engine.rows * engine.cols} samples")
    print(f"  Threshold: {engine.threshold}")
    print(f"  Outline edges: {engine.outline_edges}")
    print(f"  Assembler: {engine.assembler} (tolerance = {engine.tolerance})")


def print_field_stats(values: np.ndarray, threshold: float) -> None:
    sub_banner("Field statistics")
    print(f"  min = {np.nanmin(values):.6f}")
    print(f"  max = {np.nanmax(values):.6f}")
    print(f"  samples >= threshold: {int(np.count_nonzero(values >= threshold))} / {values.size}")


def print_contour_summary(stats: Dict) -> None:
    sub_banner("Contours")
    print(f"  Subpaths: {stats['num_subpaths']} "
          f"({stats['num_closed']} closed, {stats['num_open']} open)")
    print(f"  Segments: {stats['num_segments']}")
    print(f"  Total length: {stats['total_length']:.6f}")
    for i, s in enumerate(stats.get('subpaths', [])):
        state = 'closed' if s['closed'] else 'open'
        print(f"    Subpath {i + 1}: {len(s['points'])} points, length={s['length']:.6f}, {state}")


def print_frame_timing(timings: Dict[str, float]) -> None:
    sub_banner("Frame timing")
    total = sum(timings.values())
    for stage, elapsed in timings.items():
        print(f"  {stage:<10} {elapsed * 1000:9.3f} ms")
    print(f"  {'total':<10} {total * 1000:9.3f} ms")


def print_completion(message: str = "Done.") -> None:
    print("\n" + "=" * 80)
    print(message)
    print("=" * 80 + "\n")
