"""
Marching Squares over a padded sample grid.

Turns a sampled scalar field into a binary above/below-threshold mask, a
4-bit code per cell, per-cell contour segments placed by linear
interpolation, and finally an assembled path ready for fill rendering.
The whole pipeline is rerun from scratch for every frame.
"""

import math
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Tuple

import numpy as np

from sampling_grid import SampleGrid
from contour_utils import (ContourPath, assemble_path, enclosing_bounds, validate_tolerance,
                           ASSEMBLY_METHODS)


class Compass(IntEnum):
    """Cell edges; also the row index into a cell's (4, 2) point array."""
    N = 0
    E = 1
    S = 2
    W = 3


N, E, S, W = Compass.N, Compass.E, Compass.S, Compass.W

# Corner bits: SW=1, SE=2, NE=4, NW=8
SW_BIT, SE_BIT, NE_BIT, NW_BIT = 1, 2, 4, 8

# Classification code -> edges crossed by the contour, taken pairwise.
# Saddles (5 and 10) always split into two separate segments.
CLASSIFICATION_TABLE = (
    (),             # ..  ..
    (W, S),         # ..  #.
    (E, S),         # ..  .#
    (W, E),         # ..  ##
    (N, E),         # .#  ..
    (N, W, S, E),   # .#  #.
    (N, S),         # .#  .#
    (N, W),         # .#  ##
    (N, W),         # #.  ..
    (N, S),         # #.  #.
    (N, E, S, W),   # #.  .#
    (N, E),         # #.  ##
    (E, W),         # ##  ..
    (E, S),         # ##  #.
    (S, W),         # ##  .#
    (),             # ##  ##
)

_TABLE_LENGTHS = np.array([len(entry) for entry in CLASSIFICATION_TABLE])


def lerp(in_lo, in_hi, out_lo, out_hi, value):
    """
    Map value from [in_lo, in_hi] onto [out_lo, out_hi].

    Works elementwise on arrays. A zero-width input range maps to the
    middle of the output range instead of producing NaN/inf.
    """
    in_lo = np.asarray(in_lo, dtype=float)
    in_hi = np.asarray(in_hi, dtype=float)
    denom = in_hi - in_lo
    with np.errstate(invalid='ignore', divide='ignore'):
        t = np.where(denom != 0, (value - in_lo) / np.where(denom != 0, denom, 1.0), 0.5)
    return out_lo + t * (out_hi - out_lo)


def classify_corners(nw, ne, sw, se):
    """4-bit code from the four corner flags (bool or 0/1, scalars or arrays)."""
    nw, ne, sw, se = (np.asarray(f, dtype=np.uint8) for f in (nw, ne, sw, se))
    code = sw | (se << 1) | (ne << 2) | (nw << 3)
    return int(code) if code.ndim == 0 else code


def edge_fractions(code, nw, ne, sw, se, threshold):
    """
    Threshold crossing position along each cell edge.

    Parameters:
    -----------
    code : int or ndarray
        Cell classification(s)
    nw, ne, sw, se : float or ndarray
        Corner values, broadcastable against code
    threshold : float
        Iso-value

    Returns:
    --------
    fractions : ndarray (..., 4)
        Fraction along N, E, S, W (N/S measured from the west corner,
        E/W from the north corner), clipped to [0, 1]. Edges whose two
        corners share the same above/below status get 0.5.
    """
    code = np.asarray(code, dtype=np.int64)
    nw_up = (code & NW_BIT) != 0
    ne_up = (code & NE_BIT) != 0
    sw_up = (code & SW_BIT) != 0
    se_up = (code & SE_BIT) != 0

    def _fraction(same, a, b):
        return np.where(same, 0.5, np.clip(lerp(a, b, 0.0, 1.0, threshold), 0.0, 1.0))

    f_n = _fraction(ne_up == nw_up, nw, ne)
    f_e = _fraction(se_up == ne_up, ne, se)
    f_s = _fraction(se_up == sw_up, sw, se)
    f_w = _fraction(sw_up == nw_up, nw, sw)
    return np.stack(np.broadcast_arrays(f_n, f_e, f_s, f_w), axis=-1)


def compass_points(fractions, row, col, resolution):
    """
    Domain-space points of the four edge crossings of cell(s) (row, col).

    Returns:
    --------
    points : ndarray (..., 4, 2)
        (x, y) for N, E, S, W
    """
    fractions = np.asarray(fractions, dtype=float)
    r0 = np.asarray(row, dtype=float) - 1.0
    c0 = np.asarray(col, dtype=float) - 1.0

    points = np.empty(fractions.shape + (2,))
    points[..., N, 0] = c0 + fractions[..., N]
    points[..., N, 1] = r0
    points[..., E, 0] = c0 + 1.0
    points[..., E, 1] = r0 + fractions[..., E]
    points[..., S, 0] = c0 + fractions[..., S]
    points[..., S, 1] = r0 + 1.0
    points[..., W, 0] = c0
    points[..., W, 1] = r0 + fractions[..., W]
    return points / resolution


def _table_entry(code):
    if not 0 <= code < len(CLASSIFICATION_TABLE):
        raise ValueError(f"classification must be in 0..15, got {code}")
    return CLASSIFICATION_TABLE[code]


def _segments_from_points(code, points):
    """
    Pair up the table's edge labels into segments.

    Returns None when a referenced point is not finite; the cell then
    contributes nothing.
    """
    labels = _table_entry(code)
    segments = []
    for k in range(0, len(labels), 2):
        a = points[labels[k]]
        b = points[labels[k + 1]]
        if not all(math.isfinite(v) for v in (a[0], a[1], b[0], b[1])):
            return None
        segments.append(((float(a[0]), float(a[1])), (float(b[0]), float(b[1]))))
    return segments


def cell_segments(nw, ne, sw, se, threshold, row=1, col=1, resolution=1.0):
    """
    Contour segments of a single cell given its corner values.

    Returns:
    --------
    segments : list of ((x, y), (x, y))
        Zero, one or two segments in domain coordinates
    """
    code = classify_corners(nw >= threshold, ne >= threshold, sw >= threshold, se >= threshold)
    fractions = edge_fractions(code, nw, ne, sw, se, threshold)
    points = compass_points(fractions, row, col, resolution).tolist()
    return _segments_from_points(code, points) or []


def threshold_pass(grid, threshold, outline_edges=True):
    """
    Set the above-threshold flag of every sample.

    With outline_edges, samples on the outer ring are forced to the
    threshold and flagged above it, so the contour always closes inside
    the padded domain.
    """
    values = grid.values
    above = grid.above
    with np.errstate(invalid='ignore'):
        above[:, :] = values >= threshold
    if outline_edges:
        for ring in (np.s_[0, :], np.s_[-1, :], np.s_[:, 0], np.s_[:, -1]):
            values[ring] = threshold
            above[ring] = True


def classification_pass(grid):
    """
    Classify every cell; the sample at a cell's NW corner stores the code.

    Samples in the last row and last column have no cell and keep their
    previous classification.
    """
    flags = grid.above.astype(np.uint8)
    grid.classification[:-1, :-1] = classify_corners(
        flags[:-1, :-1], flags[:-1, 1:], flags[1:, :-1], flags[1:, 1:])


def extract_segments(grid, threshold):
    """
    Contour segments of every cell, in row-major cell order.

    Returns:
    --------
    segments : list of ((x, y), (x, y))
    skipped : list of (row, col)
        Cells dropped because a crossing point was not finite
    """
    values = grid.values
    codes = grid.classification[:-1, :-1]

    active = _TABLE_LENGTHS[codes] > 0
    rows, cols = np.nonzero(active)
    if rows.size == 0:
        return [], []

    cell_codes = codes[rows, cols]
    fractions = edge_fractions(
        cell_codes,
        values[rows, cols], values[rows, cols + 1],
        values[rows + 1, cols], values[rows + 1, cols + 1],
        threshold,
    )
    points = compass_points(fractions, rows, cols, grid.resolution)

    segments = []
    skipped = []
    for row, col, code, cell_points in zip(rows.tolist(), cols.tolist(),
                                           cell_codes.tolist(), points.tolist()):
        cell = _segments_from_points(code, cell_points)
        if cell is None:
            skipped.append((row, col))
            continue
        segments.extend(cell)
    return segments, skipped


def _read_only(a):
    a = np.array(a)
    a.setflags(write=False)
    return a


@dataclass
class FrameResult:
    """Snapshot of one pipeline run."""
    values: np.ndarray
    above: np.ndarray
    classification: np.ndarray
    segments: Tuple
    path: ContourPath
    skipped_cells: Tuple = ()
    timings: Dict[str, float] = field(default_factory=dict)


class MarchingSquares:
    """
    Marching Squares engine over a resizable padded grid.

    Per frame the host writes samples (sample_field / set_values), then
    calls calculate_samples, calculate_classifications and render_path,
    or simply run() which does all of it.

    Setting width, height or resolution regenerates the grid. Setting
    threshold or outline_edges does not.
    """

    def __init__(self, width=100, height=100, resolution=1.0, threshold=1.0,
                 outline_edges=True, tolerance=0.0, assembler='greedy', verbose=False):
        """
        Parameters:
        -----------
        width, height : float
            Domain extent in domain units
        resolution : float
            Samples per domain unit (> 0)
        threshold : float
            Field cutoff; samples >= threshold are inside
        outline_edges : bool
            Force the outer sample ring above threshold
        tolerance : float
            Endpoint matching distance for path assembly; 0 means exact
        assembler : str
            'greedy' or 'bucketed'
        verbose : bool
            Print notices about skipped cells
        """
        self.grid = SampleGrid(width, height, resolution)
        self.threshold = threshold
        self.outline_edges = outline_edges
        self.tolerance = tolerance
        self.assembler = assembler
        self.verbose = verbose
        self.skipped_cells = []

    # Configuration

    @property
    def width(self):
        return self.grid.width

    @width.setter
    def width(self, value):
        self.grid.resize(value, self.grid.height, self.grid.resolution)

    @property
    def height(self):
        return self.grid.height

    @height.setter
    def height(self, value):
        self.grid.resize(self.grid.width, value, self.grid.resolution)

    @property
    def resolution(self):
        return self.grid.resolution

    @resolution.setter
    def resolution(self, value):
        self.grid.resize(self.grid.width, self.grid.height, value)

    def resize(self, width, height, resolution=None):
        """Change the domain (and optionally the resolution) with one reallocation."""
        if resolution is None:
            resolution = self.grid.resolution
        self.grid.resize(width, height, resolution)

    @property
    def threshold(self):
        return self._threshold

    @threshold.setter
    def threshold(self, value):
        if not np.isfinite(value):
            raise ValueError(f"threshold must be finite, got {value}")
        self._threshold = float(value)

    @property
    def tolerance(self):
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value):
        validate_tolerance(value)
        self._tolerance = float(value)

    @property
    def assembler(self):
        return self._assembler

    @assembler.setter
    def assembler(self, value):
        if value not in ASSEMBLY_METHODS:
            raise ValueError(f"assembler must be one of {ASSEMBLY_METHODS}, got {value!r}")
        self._assembler = value

    # Grid access

    @property
    def rows(self):
        return self.grid.rows

    @property
    def cols(self):
        return self.grid.cols

    @property
    def samples(self):
        return self.grid.samples

    def sample_at(self, row, col):
        return self.grid.sample_at(row, col)

    def row_col(self, index):
        return self.grid.row_col(index)

    def point_for_index(self, index):
        return self.grid.point_for_index(index)

    # Pipeline stages

    def clear_samples(self):
        self.grid.clear()

    def sample_field(self, field):
        """Evaluate field((x, y)) at every sample point."""
        self.grid.sample(field)

    def set_values(self, G):
        self.grid.set_values(G)

    def calculate_samples(self):
        threshold_pass(self.grid, self.threshold, self.outline_edges)

    def calculate_classifications(self):
        classification_pass(self.grid)

    def calculate_lines(self):
        """Segments of all cells, in row-major cell order."""
        segments, skipped = extract_segments(self.grid, self.threshold)
        self.skipped_cells = skipped
        if skipped and self.verbose:
            print(f"Skipped {len(skipped)} cell(s) with unresolved crossing points, "
                  f"first at (row, col) = {skipped[0]}")
        return segments

    def render_path(self, lines=None):
        """Assemble segments (computed if not given) into a fillable path."""
        if lines is None:
            lines = self.calculate_lines()
        return assemble_path(
            lines,
            bounds=enclosing_bounds(self.width, self.height, self.resolution),
            tolerance=self.tolerance,
            method=self.assembler,
        )

    def run(self, field=None, values=None):
        """
        Run the full pipeline once.

        Parameters:
        -----------
        field : callable, optional
            Point-wise evaluator field((x, y)) -> float
        values : ndarray (rows, cols), optional
            Field already evaluated on grid.meshgrid(); ignored if field is given.
            With neither, the current sample values are used.

        Returns:
        --------
        result : FrameResult
        """
        timings = {}
        t0 = time.time()
        if field is not None:
            self.sample_field(field)
        elif values is not None:
            self.set_values(values)
        t1 = time.time()
        timings['sample'] = t1 - t0

        self.calculate_samples()
        self.calculate_classifications()
        t2 = time.time()
        timings['classify'] = t2 - t1

        lines = self.calculate_lines()
        t3 = time.time()
        timings['extract'] = t3 - t2

        path = self.render_path(lines)
        timings['assemble'] = time.time() - t3

        return FrameResult(
            values=_read_only(self.grid.values),
            above=_read_only(self.grid.above),
            classification=_read_only(self.grid.classification),
            segments=tuple(lines),
            path=path,
            skipped_cells=tuple(self.skipped_cells),
            timings=timings,
        )
