import os, sys
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import numpy as np
import pytest
from matplotlib.path import Path as MplPath

from contour_utils import (Subpath, ContourPath, assemble_path, find_matching, find_next,
                           enclosing_bounds, enclosing_rect, compute_contour_length,
                           get_contour_statistics, MIN_TOLERANCE)

BOUNDS = enclosing_bounds(10, 10, 1.0)


def square_segments():
    p0, p1, p2, p3 = (0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)
    return [(p0, p1), (p2, p1), (p2, p3), (p0, p3)]


def test_closed_square_assembles_into_one_subpath():
    path = assemble_path(square_segments(), bounds=BOUNDS)
    assert len(path) == 2
    square, rect = path.subpaths
    assert square.closed
    assert square.points == [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.0, 0.0)]
    commands = path.command_list()
    assert [op for op, _ in commands[:5]] == ['M', 'L', 'L', 'L', 'L']
    assert rect == enclosing_rect(BOUNDS)


def test_unconnected_segments_stay_separate_and_open():
    segments = [((0.0, 0.0), (1.0, 0.0)), ((5.0, 5.0), (6.0, 5.0))]
    path = assemble_path(segments, bounds=BOUNDS)
    assert len(path) == 3
    first, second = path.contours
    assert first.points == [(0.0, 0.0), (1.0, 0.0)] and not first.closed
    assert second.points == [(5.0, 5.0), (6.0, 5.0)] and not second.closed
    ops = [op for op, _ in path.commands()]
    assert ops[:4] == ['M', 'L', 'M', 'L']


def test_open_chain_starts_at_dangling_end_of_first_segment():
    # First segment matches on its 'a' end, so the chain starts from 'b'
    segments = [((1.0, 0.0), (0.0, 0.0)), ((1.0, 0.0), (2.0, 0.0)), ((2.0, 0.0), (3.0, 1.0))]
    path = assemble_path(segments)
    assert not path.has_enclosing_rect
    (chain,) = path.subpaths
    assert chain.points == [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (3.0, 1.0)]
    assert not chain.closed


def test_chain_growing_from_middle_stops_at_dangling_end():
    # Starting in the middle only one direction is followed; the rest
    # becomes a second subpath
    segments = [((1.0, 0.0), (2.0, 0.0)), ((0.0, 0.0), (1.0, 0.0)), ((2.0, 0.0), (3.0, 0.0))]
    path = assemble_path(segments)
    assert [s.points for s in path.subpaths] == [
        [(2.0, 0.0), (1.0, 0.0), (0.0, 0.0)],
        [(2.0, 0.0), (3.0, 0.0)],
    ]


def test_exact_matching_keeps_drifted_endpoints_apart():
    eps = 1e-12
    segments = [((0.0, 0.0), (1.0, 0.0)), ((1.0 + eps, 0.0), (2.0, 0.0))]
    exact = assemble_path(segments)
    assert len(exact) == 2
    tolerant = assemble_path(segments, tolerance=1e-9)
    assert len(tolerant) == 1
    assert tolerant.subpaths[0].points == [(0.0, 0.0), (1.0 + eps, 0.0), (2.0, 0.0)]


def test_tolerant_closure():
    segments = [((0.0, 0.0), (1.0, 0.0)), ((1.0, 0.0), (0.5, 1.0)), ((0.5, 1.0), (1e-10, 0.0))]
    assert not assemble_path(segments).subpaths[0].closed
    assert assemble_path(segments, tolerance=1e-6).subpaths[0].closed


def test_find_matching_combinations():
    line = ((0.0, 0.0), (1.0, 0.0))
    assert find_matching(line, [((0.0, 0.0), (0.0, 1.0))]) == (0, (1.0, 0.0), (0.0, 0.0), (0.0, 1.0))
    assert find_matching(line, [((0.0, 1.0), (0.0, 0.0))]) == (0, (1.0, 0.0), (0.0, 0.0), (0.0, 1.0))
    assert find_matching(line, [((1.0, 0.0), (2.0, 0.0))]) == (0, (0.0, 0.0), (1.0, 0.0), (2.0, 0.0))
    assert find_matching(line, [((2.0, 0.0), (1.0, 0.0))]) == (0, (0.0, 0.0), (1.0, 0.0), (2.0, 0.0))
    assert find_matching(line, [((5.0, 5.0), (6.0, 6.0))]) is None
    assert find_next((1.0, 0.0), [((9.0, 9.0), (8.0, 8.0)), ((2.0, 0.0), (1.0, 0.0))]) == (1, (2.0, 0.0))


def test_empty_segments_give_only_rectangle():
    path = assemble_path([], bounds=BOUNDS)
    assert len(path) == 1
    assert path.contours == []
    assert compute_contour_length(path) == 0.0


def test_enclosing_rect_geometry():
    # 63 x 103 samples; the far border samples sit at x = 50.5, y = 30.5
    bounds = enclosing_bounds(50, 30, 2.0)
    assert bounds == (-0.5, -0.5, 51.0, 31.0)
    rect = enclosing_rect(bounds)
    assert rect.closed
    assert rect.points == [(-0.5, -0.5), (50.5, -0.5), (50.5, 30.5), (-0.5, 30.5), (-0.5, -0.5)]


def test_enclosing_bounds_reach_last_border_sample():
    # floor(7.3 * 1.5) = 10 interior steps, plus one border sample each side
    x, y, w, h = enclosing_bounds(7.3, 4.0, 1.5)
    assert np.isclose(x + w, 11 / 1.5)
    assert np.isclose(y + h, 7 / 1.5)


def test_unknown_method_and_bad_tolerance():
    with pytest.raises(ValueError):
        assemble_path(square_segments(), method='quadtree')
    with pytest.raises(ValueError):
        assemble_path(square_segments(), tolerance=-1.0)


@pytest.mark.parametrize("method", ["greedy", "bucketed"])
@pytest.mark.parametrize("tolerance", [5e-324, 1e-300, MIN_TOLERANCE / 2])
def test_tolerance_below_machine_epsilon_is_rejected(method, tolerance):
    with pytest.raises(ValueError):
        assemble_path(square_segments(), tolerance=tolerance, method=method)


@pytest.mark.parametrize("method", ["greedy", "bucketed"])
def test_smallest_tolerance_still_assembles(method):
    path = assemble_path(square_segments(), tolerance=MIN_TOLERANCE, method=method)
    assert len(path) == 1
    assert path.subpaths[0].closed


def random_contour_soup(seed, n_loops=6):
    """Shuffled, randomly oriented segments of several loops and open chains."""
    rng = np.random.default_rng(seed)
    segments = []
    for k in range(n_loops):
        n = int(rng.integers(3, 12))
        cx, cy = rng.uniform(0, 100, size=2)
        theta = np.sort(rng.uniform(0, 2 * np.pi, n))
        pts = [(float(cx + 3 * np.cos(t)), float(cy + 3 * np.sin(t))) for t in theta]
        closed = k % 2 == 0
        count = n if closed else n - 1
        for i in range(count):
            a, b = pts[i], pts[(i + 1) % n]
            segments.append((a, b) if rng.random() < 0.5 else (b, a))
    order = rng.permutation(len(segments))
    return [segments[i] for i in order]


@pytest.mark.parametrize("seed", range(5))
@pytest.mark.parametrize("tolerance", [0.0, 1e-9])
def test_bucketed_matches_greedy(seed, tolerance):
    segments = random_contour_soup(seed)
    greedy = assemble_path(segments, bounds=BOUNDS, tolerance=tolerance, method='greedy')
    bucketed = assemble_path(segments, bounds=BOUNDS, tolerance=tolerance, method='bucketed')
    assert greedy.command_list() == bucketed.command_list()
    assert [s.closed for s in greedy] == [s.closed for s in bucketed]


def test_every_segment_is_used_once():
    segments = random_contour_soup(11)
    path = assemble_path(segments)
    stats = get_contour_statistics(path)
    assert stats['num_segments'] == len(segments)
    assert compute_contour_length(path) == pytest.approx(compute_contour_length(segments))


def test_statistics_for_square():
    path = assemble_path(square_segments(), bounds=BOUNDS)
    stats = get_contour_statistics(path)
    assert stats['num_subpaths'] == 1
    assert stats['num_closed'] == 1
    assert stats['num_open'] == 0
    assert stats['num_segments'] == 4
    assert stats['total_length'] == pytest.approx(4.0)


def test_to_matplotlib_codes():
    path = assemble_path(square_segments(), bounds=BOUNDS)
    mpl = path.to_matplotlib()
    assert isinstance(mpl, MplPath)
    assert len(mpl.vertices) == 10
    assert list(mpl.codes) == [MplPath.MOVETO] + [MplPath.LINETO] * 4 + [MplPath.MOVETO] + [MplPath.LINETO] * 4
    # Without the rectangle the square alone contains its centre
    assert ContourPath(path.contours).to_matplotlib().contains_point((0.5, 0.5))


def test_subpath_length():
    assert Subpath([(0.0, 0.0), (3.0, 4.0), (3.0, 5.0)]).length() == pytest.approx(6.0)
    assert Subpath([(1.0, 1.0)]).length() == 0.0


if __name__ == "__main__":
    test_closed_square_assembles_into_one_subpath()
    test_unconnected_segments_stay_separate_and_open()
    test_bucketed_matches_greedy(0, 0.0)
    print("contour assembly tests passed")
