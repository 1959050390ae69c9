import math

import numpy as np
import pytest

from pitgeo.map_engine.entities import SnapResult, Vertex
from pitgeo.map_engine.spatial_index import GridSpatialIndex, suggest_cell_size


def _index(points, cell_size=10.0):
    idx = GridSpatialIndex(cell_size)
    idx.build([Vertex(x, y) for x, y in points])
    return idx


def _brute_force(xy, qx, qy, max_distance):
    d2 = (xy[:, 0] - qx) ** 2 + (xy[:, 1] - qy) ** 2
    within = d2 <= max_distance * max_distance
    if not within.any():
        return None
    d2 = np.where(within, d2, np.inf)
    i = int(np.argmin(d2))
    return i, math.sqrt(d2[i])


def test_query_at_vertex_returns_zero_distance():
    idx = _index([(10.0, 10.0)])
    assert idx.query_nearest(10.0, 10.0, 2.0) == SnapResult(Vertex(10.0, 10.0), 0.0)


def test_query_within_threshold():
    res = _index([(10.0, 10.0)]).query_nearest(11.5, 10.0, 2.0)
    assert res.vertex == Vertex(10.0, 10.0)
    assert res.distance == pytest.approx(1.5)


def test_query_beyond_threshold_returns_none():
    assert _index([(10.0, 10.0)]).query_nearest(12.5, 10.0, 2.0) is None


def test_nearer_of_two_vertices_wins():
    res = _index([(10.0, 10.0), (12.0, 10.0)]).query_nearest(10.5, 10.0, 2.0)
    assert res.vertex == Vertex(10.0, 10.0)


def test_distance_equal_to_threshold_matches():
    res = _index([(10.0, 10.0)]).query_nearest(12.0, 10.0, 2.0)
    assert res is not None
    assert res.distance == 2.0


def test_match_in_neighbouring_cell():
    # vertex just across a cell edge from the query
    res = _index([(9.9, 0.5)], cell_size=1.0).query_nearest(10.1, 0.5, 0.5)
    assert res.vertex == Vertex(9.9, 0.5)


def test_empty_index_returns_none():
    idx = GridSpatialIndex()
    assert len(idx) == 0
    assert idx.query_nearest(0.0, 0.0, 100.0) is None
    idx.build([])
    assert idx.query_nearest(0.0, 0.0, 100.0) is None


@pytest.mark.parametrize('max_distance', [-1.0, float('nan')])
def test_invalid_max_distance_returns_none(max_distance):
    assert _index([(0.0, 0.0)]).query_nearest(0.0, 0.0, max_distance) is None


@pytest.mark.parametrize('cell_size', [0.0, -5.0, float('inf'), float('nan')])
def test_invalid_cell_size_raises(cell_size):
    with pytest.raises(ValueError):
        GridSpatialIndex(cell_size)


def test_tie_resolves_to_construction_order_across_cells():
    a, b = Vertex(2.5, 0.5), Vertex(-1.5, 0.5)
    idx = GridSpatialIndex(1.0)
    idx.build([a, b])
    assert idx.query_nearest(0.5, 0.5, 5.0).vertex == a
    idx.build([b, a])
    assert idx.query_nearest(0.5, 0.5, 5.0).vertex == b


def test_tie_resolves_to_construction_order_within_cell():
    first, second = Vertex(1.0, 1.0, 0.0), Vertex(1.0, 1.0, 1.0)
    idx = GridSpatialIndex(5.0)
    idx.build([first, second])
    assert idx.query_nearest(0.0, 0.0, 5.0).vertex.z == 0.0
    idx.build([second, first])
    assert idx.query_nearest(0.0, 0.0, 5.0).vertex.z == 1.0


def test_rebuild_replaces_previous_vertices():
    idx = _index([(0.0, 0.0)])
    idx.build([Vertex(50.0, 50.0)])
    assert len(idx) == 1
    assert idx.query_nearest(0.0, 0.0, 1.0) is None
    assert idx.query_nearest(50.0, 50.0, 1.0) is not None


def test_far_query_with_large_radius():
    res = _index([(0.0, 0.0)], cell_size=5.0).query_nearest(1.0e4, 1.0e4, 1.0e5)
    assert res.distance == pytest.approx(math.hypot(1.0e4, 1.0e4))


def test_query_far_outside_grid_skips_empty_rings():
    idx = _index([(0.3, 0.4)], cell_size=1.0)
    rings = []
    ring_cells = idx._ring_cells

    def counting(qcx, qcy, r):
        rings.append(r)
        return ring_cells(qcx, qcy, r)

    idx._ring_cells = counting
    res = idx.query_nearest(2.0e6, 0.0, math.inf)
    assert res.vertex == Vertex(0.3, 0.4)
    assert res.distance == pytest.approx(math.hypot(2.0e6 - 0.3, 0.4))
    assert len(rings) <= 2
    assert rings[0] == 2_000_000


def test_negative_coordinates():
    idx = _index([(-0.5, -0.5), (0.5, 0.5)], cell_size=1.0)
    assert idx.query_nearest(-0.4, -0.4, 1.0).vertex == Vertex(-0.5, -0.5)


@pytest.mark.parametrize('cell_size, max_distance', [(1.0, 0.5), (3.0, 5.0), (10.0, 2.0), (0.25, 20.0)])
def test_matches_brute_force_on_random_points(cell_size, max_distance):
    rng = np.random.default_rng(42)
    xy = rng.uniform(0.0, 100.0, size=(2000, 2))
    idx = GridSpatialIndex(cell_size)
    idx.build([Vertex(float(x), float(y)) for x, y in xy])

    queries = rng.uniform(-10.0, 110.0, size=(300, 2))
    for qx, qy in queries:
        expected = _brute_force(xy, qx, qy, max_distance)
        got = idx.query_nearest(float(qx), float(qy), max_distance)
        if expected is None:
            assert got is None
        else:
            i, dist = expected
            assert got is not None
            assert got.vertex == Vertex(float(xy[i, 0]), float(xy[i, 1]))
            assert got.distance == pytest.approx(dist)


@pytest.mark.slow
def test_large_point_set():
    rng = np.random.default_rng(7)
    xy = rng.uniform(0.0, 2000.0, size=(100_000, 2))
    idx = GridSpatialIndex(5.0)
    idx.build([Vertex(float(x), float(y)) for x, y in xy])
    assert len(idx) == 100_000
    assert idx.cell_count <= 400 * 400

    for qx, qy in rng.uniform(0.0, 2000.0, size=(50, 2)):
        expected = _brute_force(xy, qx, qy, 2.0)
        got = idx.query_nearest(float(qx), float(qy), 2.0)
        if expected is None:
            assert got is None
        else:
            assert got.distance == pytest.approx(expected[1])


def test_suggest_cell_size_regular_grid():
    pts = [Vertex(float(x), float(y)) for x in range(0, 20, 2) for y in range(0, 20, 2)]
    assert suggest_cell_size(pts) == pytest.approx(2.0)


def test_suggest_cell_size_falls_back_to_default():
    assert suggest_cell_size([]) == 5.0
    assert suggest_cell_size([Vertex(1.0, 1.0)]) == 5.0
    assert suggest_cell_size([Vertex(1.0, 1.0), Vertex(1.0, 1.0)], default=3.0) == 3.0
