import pytest

from pitgeo.map_engine.entities import GeometryModel, Line, Point, Vertex
from pitgeo.map_engine.snap import SnapEngine
from pitgeo.map_engine.spatial_index import GridSpatialIndex


def _engine(vertices, **kwargs):
    engine = SnapEngine(GridSpatialIndex(10.0), **kwargs)
    engine.update_vertices(vertices)
    return engine


def test_default_threshold():
    assert SnapEngine().threshold == 2.0


def test_find_vertex_exact():
    res = _engine([Vertex(10.0, 10.0)]).find_vertex(10.0, 10.0)
    assert res.vertex == Vertex(10.0, 10.0)
    assert res.distance == 0.0


def test_find_vertex_within_threshold():
    res = _engine([Vertex(10.0, 10.0)]).find_vertex(11.5, 10.0)
    assert res.distance == pytest.approx(1.5)


def test_find_vertex_outside_threshold():
    assert _engine([Vertex(10.0, 10.0)]).find_vertex(12.5, 10.0) is None


def test_find_vertex_picks_closest():
    res = _engine([Vertex(10.0, 10.0), Vertex(12.0, 10.0)]).find_vertex(10.5, 10.0)
    assert res.vertex == Vertex(10.0, 10.0)


def test_boundary_is_inclusive():
    engine = _engine([Vertex(0.0, 0.0)])
    assert engine.find_vertex(2.0, 0.0) is not None
    assert engine.find_vertex(2.0 + 1e-9, 0.0) is None


def test_custom_threshold():
    engine = _engine([Vertex(0.0, 0.0)], threshold=5.0)
    assert engine.find_vertex(4.0, 3.0).distance == pytest.approx(5.0)


def test_empty_engine_misses():
    assert SnapEngine().find_vertex(0.0, 0.0) is None


def test_update_model_indexes_model_vertices():
    model = GeometryModel.from_entities([
        Line(Vertex(0.0, 0.0), Vertex(100.0, 0.0)),
        Point(50.0, 50.0),
    ])
    engine = SnapEngine()
    engine.update_model(model)
    assert engine.find_vertex(99.0, 0.5).vertex == Vertex(100.0, 0.0)
    assert engine.find_vertex(50.5, 49.5).vertex == Vertex(50.0, 50.0, 0.0)
    assert engine.find_vertex(50.0, 0.0) is None


def test_negative_threshold_rejected():
    with pytest.raises(ValueError):
        SnapEngine(threshold=-1.0)
