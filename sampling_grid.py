"""
Row-major sample grid over a padded rectangular domain.

The grid holds one record per sample point in a flat numpy structured array.
A one-sample border surrounds the domain on every side so that a contour
touching the domain edge can still be closed.
"""

import math

import numpy as np


# One packed record per sample
SAMPLE_DTYPE = np.dtype([
    ('value', np.float64),
    ('above', np.bool_),
    ('classification', np.uint8),
])


def validate_domain(width, height, resolution):
    """
    Check a domain extent and resolution before they reach the grid.

    Raises:
    -------
    ValueError
        If resolution is not a positive finite number, or if width/height
        are negative or non-finite.
    """
    for name, value in (('width', width), ('height', height)):
        if not np.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")
    if not np.isfinite(resolution) or resolution <= 0:
        raise ValueError(f"resolution must be a positive finite number, got {resolution}")


def grid_shape(width, height, resolution):
    """
    Number of sample rows and columns for a domain.

    One extra sample reaches the far edge of the domain and two more add
    the border on both sides, so the result is never smaller than (3, 3).
    """
    rows = int(math.floor(height * resolution)) + 1 + 2
    cols = int(math.floor(width * resolution)) + 1 + 2
    return rows, cols


class SampleGrid:
    """
    Flat, C-contiguous grid of samples addressed by index = row * cols + col.

    Attributes:
    -----------
    width, height : float
        Domain extent in domain units
    resolution : float
        Samples per domain unit
    rows, cols : int
        Grid dimensions including the border
    samples : ndarray (rows * cols,)
        Structured array with fields 'value', 'above', 'classification'
    """

    def __init__(self, width=100, height=100, resolution=1.0):
        self.samples = np.zeros(0, dtype=SAMPLE_DTYPE)
        self.rows = 0
        self.cols = 0
        self.resize(width, height, resolution)

    def resize(self, width, height, resolution):
        """
        Recompute rows/cols and grow or truncate the sample array.

        Existing records are kept by flat index (no spatial remapping);
        new records start zeroed. Callers are expected to resample after
        a resize.
        """
        validate_domain(width, height, resolution)
        self.width = width
        self.height = height
        self.resolution = float(resolution)
        self.rows, self.cols = grid_shape(width, height, self.resolution)

        count = self.rows * self.cols
        if count != self.samples.size:
            resized = np.zeros(count, dtype=SAMPLE_DTYPE)
            keep = min(count, self.samples.size)
            resized[:keep] = self.samples[:keep]
            self.samples = resized

    @property
    def shape(self):
        return self.rows, self.cols

    @property
    def size(self):
        return self.samples.size

    @property
    def values(self):
        """Writable (rows, cols) view of the sample values."""
        return self.samples['value'].reshape(self.rows, self.cols)

    @property
    def above(self):
        """Writable (rows, cols) view of the above-threshold flags."""
        return self.samples['above'].reshape(self.rows, self.cols)

    @property
    def classification(self):
        """Writable (rows, cols) view of the 4-bit cell codes."""
        return self.samples['classification'].reshape(self.rows, self.cols)

    def clear(self):
        """Reset values and above-threshold flags; classifications are kept."""
        self.samples['value'] = 0.0
        self.samples['above'] = False

    def index(self, row, col):
        return row * self.cols + col

    def row_col(self, index):
        return index // self.cols, index % self.cols

    def sample_at(self, row, col):
        return self.samples[self.index(row, col)]

    def point(self, row, col):
        """Domain coordinates of sample (row, col); -1 undoes the border."""
        return ((col - 1) / self.resolution, (row - 1) / self.resolution)

    def point_for_index(self, index):
        return self.point(*self.row_col(index))

    def meshgrid(self):
        """
        Domain coordinates of every sample.

        Returns:
        --------
        X, Y : ndarray (rows, cols)
            X varies along columns, Y along rows
        """
        x = (np.arange(self.cols) - 1) / self.resolution
        y = (np.arange(self.rows) - 1) / self.resolution
        return np.meshgrid(x, y)

    def set_values(self, G):
        """Store a field already evaluated on meshgrid() coordinates."""
        G = np.asarray(G, dtype=float)
        if G.shape != (self.rows, self.cols):
            raise ValueError(f"values must have shape {(self.rows, self.cols)}, got {G.shape}")
        self.values[:, :] = G

    def sample(self, field):
        """
        Evaluate field((x, y)) once per sample in row-major order.

        Parameters:
        -----------
        field : callable
            Maps a domain point (x, y) to a scalar
        """
        values = self.samples['value']
        for i in range(self.samples.size):
            values[i] = float(field(self.point_for_index(i)))
