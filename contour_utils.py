"""
Utility functions for assembling contour segments into paths.

Marching squares produces an unordered soup of two-point segments. The
helpers here stitch them into polylines by shared endpoints, add the
enclosing rectangle used for even-odd filling, and measure the result.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from matplotlib.path import Path as MplPath

from sampling_grid import grid_shape

Point = Tuple[float, float]
Segment = Tuple[Point, Point]

ASSEMBLY_METHODS = ('greedy', 'bucketed')

# Smallest positive matching distance; below it bin keys overflow
MIN_TOLERANCE = float(np.finfo(float).eps)


@dataclass
class Subpath:
    """One move-to followed by line-tos through points[1:]."""
    points: List[Point]
    closed: bool = False

    def length(self) -> float:
        if len(self.points) < 2:
            return 0.0
        xy = np.asarray(self.points, dtype=float)
        return float(np.hypot(*np.diff(xy, axis=0).T).sum())


class ContourPath:
    """
    Assembled path: contour subpaths in emission order, optionally followed
    by the enclosing rectangle.
    """

    def __init__(self, subpaths: List[Subpath], has_enclosing_rect: bool = False):
        self.subpaths = subpaths
        self.has_enclosing_rect = has_enclosing_rect

    def __len__(self):
        return len(self.subpaths)

    def __iter__(self):
        return iter(self.subpaths)

    def __eq__(self, other):
        if not isinstance(other, ContourPath):
            return NotImplemented
        return (self.has_enclosing_rect == other.has_enclosing_rect
                and self.subpaths == other.subpaths)

    def __repr__(self):
        return (f"ContourPath({len(self.contours)} contours, "
                f"enclosing_rect={self.has_enclosing_rect})")

    @property
    def contours(self) -> List[Subpath]:
        """Subpaths without the enclosing rectangle."""
        if self.has_enclosing_rect:
            return self.subpaths[:-1]
        return self.subpaths

    def commands(self) -> Iterator[Tuple]:
        """Yield ('M', (x, y)) and ('L', (x, y)) drawing commands."""
        for subpath in self.subpaths:
            yield ('M', subpath.points[0])
            for p in subpath.points[1:]:
                yield ('L', p)

    def command_list(self) -> List[Tuple]:
        return list(self.commands())

    def to_matplotlib(self) -> MplPath:
        """Compound matplotlib path with MOVETO/LINETO codes."""
        vertices = []
        codes = []
        for op, p in self.commands():
            vertices.append(p)
            codes.append(MplPath.MOVETO if op == 'M' else MplPath.LINETO)
        if not vertices:
            return MplPath(np.empty((0, 2)))
        return MplPath(np.asarray(vertices, dtype=float), codes)


def validate_tolerance(tolerance):
    """Raise ValueError unless tolerance is 0 or a finite number >= MIN_TOLERANCE."""
    if not np.isfinite(tolerance) or tolerance < 0:
        raise ValueError(f"tolerance must be a finite number >= 0, got {tolerance}")
    if 0 < tolerance < MIN_TOLERANCE:
        raise ValueError(f"tolerance must be 0 or at least {MIN_TOLERANCE}, got {tolerance}")


def _same_point(p: Point, q: Point, tolerance: float = 0.0) -> bool:
    if tolerance <= 0.0:
        return p == q
    return math.hypot(p[0] - q[0], p[1] - q[1]) <= tolerance


def find_matching(line: Segment, lines: Sequence[Segment], tolerance: float = 0.0):
    """
    Find the first segment in lines sharing an endpoint with line.

    Returns:
    --------
    (index, start, joint, end) or None
        start is the dangling end of line, joint the shared point and end
        the dangling end of the matched segment
    """
    a, b = line
    for i, (oa, ob) in enumerate(lines):
        if _same_point(a, oa, tolerance):
            return i, b, oa, ob
        if _same_point(a, ob, tolerance):
            return i, b, ob, oa
        if _same_point(b, oa, tolerance):
            return i, a, oa, ob
        if _same_point(b, ob, tolerance):
            return i, a, ob, oa
    return None


def find_next(point: Point, lines: Sequence[Segment], tolerance: float = 0.0):
    """First segment in lines touching point; returns (index, other_end) or None."""
    for i, (oa, ob) in enumerate(lines):
        if _same_point(point, oa, tolerance):
            return i, ob
        if _same_point(point, ob, tolerance):
            return i, oa
    return None


def _assemble_greedy(segments: Sequence[Segment], tolerance: float) -> List[Subpath]:
    pool = list(segments)
    subpaths = []
    while pool:
        line = pool.pop(0)
        match = find_matching(line, pool, tolerance)
        if match is None:
            subpaths.append(Subpath([line[0], line[1]], closed=False))
            continue

        index, start, joint, end = match
        pool.pop(index)
        points = [start, joint, end]
        while True:
            nxt = find_next(end, pool, tolerance)
            if nxt is None:
                break
            index, end = nxt
            pool.pop(index)
            points.append(end)
        subpaths.append(Subpath(points, closed=_same_point(points[0], points[-1], tolerance)))
    return subpaths


class _EndpointIndex:
    """
    Multimap from endpoint to segment indices.

    Exact mode keys by the point itself. With a tolerance, points are
    binned into square cells of that size and the 3x3 neighborhood is
    searched, then filtered by distance.
    """

    def __init__(self, segments: Sequence[Segment], tolerance: float):
        self.segments = segments
        self.tolerance = tolerance
        self.alive = [True] * len(segments)
        self.buckets: Dict[Tuple, List[int]] = defaultdict(list)
        for i, (a, b) in enumerate(segments):
            self.buckets[self._key(a)].append(i)
            if self._key(b) != self._key(a):
                self.buckets[self._key(b)].append(i)

    def _key(self, p: Point) -> Tuple:
        if self.tolerance <= 0.0:
            return p
        return (math.floor(p[0] / self.tolerance), math.floor(p[1] / self.tolerance))

    def _neighbor_keys(self, p: Point):
        key = self._key(p)
        if self.tolerance <= 0.0:
            return [key]
        kx, ky = key
        return [(kx + dx, ky + dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)]

    def first_touching(self, points: Sequence[Point]) -> Optional[int]:
        """Lowest live segment index with an endpoint matching any of points."""
        best = None
        for p in points:
            for key in self._neighbor_keys(p):
                for i in self.buckets.get(key, ()):
                    if not self.alive[i] or (best is not None and i >= best):
                        continue
                    oa, ob = self.segments[i]
                    if _same_point(p, oa, self.tolerance) or _same_point(p, ob, self.tolerance):
                        best = i
        return best

    def remove(self, i: int):
        self.alive[i] = False


def _assemble_bucketed(segments: Sequence[Segment], tolerance: float) -> List[Subpath]:
    # Same emission order as _assemble_greedy: the pool is always scanned
    # by ascending original index.
    index = _EndpointIndex(segments, tolerance)
    subpaths = []
    for first in range(len(segments)):
        if not index.alive[first]:
            continue
        index.remove(first)
        line = segments[first]

        i = index.first_touching(line)
        if i is None:
            subpaths.append(Subpath([line[0], line[1]], closed=False))
            continue
        _, start, joint, end = find_matching(line, [segments[i]], tolerance)
        index.remove(i)
        points = [start, joint, end]
        while True:
            i = index.first_touching((end,))
            if i is None:
                break
            _, end = find_next(end, [segments[i]], tolerance)
            index.remove(i)
            points.append(end)
        subpaths.append(Subpath(points, closed=_same_point(points[0], points[-1], tolerance)))
    return subpaths


def enclosing_bounds(width, height, resolution):
    """
    (x, y, w, h) of the rectangle that flips even-odd parity over the padded domain.

    The rectangle spans the outer ring of samples, from the first border
    sample at -1/resolution to the last one at (cols - 2)/resolution, so it
    coincides with the loop traced around the border under outline_edges.
    """
    rows, cols = grid_shape(width, height, resolution)
    pad = 1.0 / resolution
    return (-pad, -pad, (cols - 1) * pad, (rows - 1) * pad)


def enclosing_rect(bounds) -> Subpath:
    x, y, w, h = (float(v) for v in bounds)
    points = [(x, y), (x + w, y), (x + w, y + h), (x, y + h), (x, y)]
    return Subpath(points, closed=True)


def assemble_path(segments: Sequence[Segment], bounds=None, tolerance: float = 0.0,
                  method: str = 'greedy') -> ContourPath:
    """
    Stitch segments into subpaths by shared endpoints.

    Parameters:
    -----------
    segments : sequence of ((x, y), (x, y))
        Unordered segment soup; the first remaining segment starts each subpath
    bounds : (x, y, w, h), optional
        If given, the enclosing rectangle is appended as the last subpath
    tolerance : float
        Endpoint matching distance; 0 (default) is exact equality
    method : str
        'greedy' (list scan) or 'bucketed' (endpoint multimap). Both
        produce the same subpaths in the same order.

    Returns:
    --------
    path : ContourPath
    """
    validate_tolerance(tolerance)
    if method == 'greedy':
        subpaths = _assemble_greedy(segments, tolerance)
    elif method == 'bucketed':
        subpaths = _assemble_bucketed(list(segments), tolerance)
    else:
        raise ValueError(f"method must be one of {ASSEMBLY_METHODS}, got {method!r}")

    if bounds is not None:
        subpaths.append(enclosing_rect(bounds))
    return ContourPath(subpaths, has_enclosing_rect=bounds is not None)


def compute_contour_length(contour) -> float:
    """
    Total length of a ContourPath (enclosing rectangle excluded) or of a
    plain list of segments.

    Example:
    --------
    >>> compute_contour_length([((0, 0), (3, 4))])
    5.0
    """
    if isinstance(contour, ContourPath):
        return float(sum(s.length() for s in contour.contours))
    if len(contour) == 0:
        return 0.0
    xy = np.asarray(contour, dtype=float)
    return float(np.hypot(xy[:, 1, 0] - xy[:, 0, 0], xy[:, 1, 1] - xy[:, 0, 1]).sum())


def get_contour_statistics(path: ContourPath) -> Dict:
    """
    Summary numbers for an assembled path.

    Returns:
    --------
    stats : dict
        Dictionary containing:
            - 'num_subpaths': int (enclosing rectangle excluded)
            - 'num_closed': int
            - 'num_open': int
            - 'num_segments': int
            - 'total_length': float
            - 'subpaths': list of dicts with 'points', 'closed', 'length'
    """
    contours = path.contours
    num_closed = sum(1 for c in contours if c.closed)
    return {
        'num_subpaths': len(contours),
        'num_closed': num_closed,
        'num_open': len(contours) - num_closed,
        'num_segments': sum(len(c.points) - 1 for c in contours),
        'total_length': compute_contour_length(path),
        'subpaths': [
            {'points': c.points, 'closed': c.closed, 'length': c.length()}
            for c in contours
        ],
    }
