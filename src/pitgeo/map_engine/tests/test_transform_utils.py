import math

import pytest

from pitgeo.map_engine.entities import (
    Bounds, GeometryModel, Insert, Line, Point, Polyline, Vertex,
)
from pitgeo.map_engine.transform_utils import (
    normalize_units, transform_entity, transform_model, transform_vertex, transform_vertices, unit_factor,
)


def _xyz(v):
    return (v.x, v.y, v.z)


def test_transform_vertex_scale_rotate_translate():
    v = transform_vertex(Vertex(1.0, 0.0, 2.0), 2.0, 3.0, 4.0, 90.0, 10.0, 20.0, 30.0)
    # scale (2, 0, 8), rotate 90 -> (0, 2), translate
    assert _xyz(v) == pytest.approx((10.0, 22.0, 38.0), abs=1e-12)


def test_transform_order_is_scale_then_rotate_then_translate():
    v = transform_vertex(Vertex(1.0, 0.0), scale_x=2.0, rotation_deg=90.0, translate_x=1.0)
    assert (v.x, v.y) == pytest.approx((1.0, 2.0), abs=1e-12)


def test_transform_vertex_keeps_missing_z():
    v = transform_vertex(Vertex(1.0, 1.0), 2.0, 2.0, 2.0, 0.0, 1.0, 1.0, 5.0)
    assert v == Vertex(3.0, 3.0, None)


def test_zero_rotation_is_exact():
    v = transform_vertex(Vertex(0.1, 0.7, 0.3))
    assert v == Vertex(0.1, 0.7, 0.3)


def test_transform_vertex_rotation_45():
    v = transform_vertex(Vertex(1.0, 1.0), rotation_deg=45.0)
    assert (v.x, v.y) == pytest.approx((0.0, math.sqrt(2.0)), abs=1e-12)


def test_transform_vertices():
    out = transform_vertices([Vertex(1.0, 0.0), Vertex(0.0, 1.0)], 1.0, 1.0, 1.0, 0.0, 5.0, 5.0)
    assert out == [Vertex(6.0, 5.0), Vertex(5.0, 6.0)]


def test_transform_entity_variants():
    params = (2.0, 2.0, 1.0, 0.0, 1.0, -1.0, 0.5)
    pt = transform_entity(Point(1.0, 1.0, 1.0, layer='P', color=0x123456), *params)
    assert (pt.x, pt.y, pt.z) == (3.0, 1.0, 1.5)
    assert pt.layer == 'P' and pt.color == 0x123456

    ln = transform_entity(Line(Vertex(0.0, 0.0, 0.0), Vertex(1.0, 2.0, 3.0)), *params)
    assert _xyz(ln.start) == (1.0, -1.0, 0.5)
    assert _xyz(ln.end) == (3.0, 3.0, 3.5)

    pl = transform_entity(Polyline((Vertex(1.0, 1.0), Vertex(2.0, 2.0)), closed=True), *params)
    assert pl.closed is True
    assert [(v.x, v.y) for v in pl.vertices] == [(3.0, 1.0), (5.0, 3.0)]


def test_insert_composition_multiplies_scale_and_adds_rotation():
    ins = Insert('B', Vertex(1.0, 0.0, 0.0), scale_x=2.0, scale_y=2.0, scale_z=1.0, rotation=30.0)
    out = transform_entity(ins, 3.0, 3.0, 2.0, 45.0, 5.0, 0.0, 0.0)
    half = 3.0 * math.sqrt(0.5)
    assert (out.insertion_point.x, out.insertion_point.y) == pytest.approx((5.0 + half, half))
    assert (out.scale_x, out.scale_y, out.scale_z) == (6.0, 6.0, 2.0)
    assert out.rotation == pytest.approx(75.0)
    assert out.block_name == 'B'


def test_transform_does_not_mutate_input():
    ln = Line(Vertex(0.0, 0.0), Vertex(1.0, 1.0))
    transform_entity(ln, 5.0, 5.0, 5.0, 10.0, 1.0, 1.0, 1.0)
    assert ln == Line(Vertex(0.0, 0.0), Vertex(1.0, 1.0))


def test_unsupported_entity_raises_type_error():
    with pytest.raises(TypeError):
        transform_entity(Vertex(0.0, 0.0), 1.0)


def test_transform_model_recomputes_bounds():
    model = GeometryModel.from_entities([Line(Vertex(0.0, 0.0, 0.0), Vertex(10.0, 5.0, 1.0))], units=6)
    moved = transform_model(model, translate_x=100.0, translate_y=200.0)
    assert moved.bounds == Bounds(100.0, 110.0, 200.0, 205.0, 0.0, 1.0)
    assert moved.units == 6
    assert model.bounds.min_x == 0.0


def test_unit_factor():
    assert unit_factor(2, 'm') == pytest.approx(0.3048)
    assert unit_factor(6, 'ft') == pytest.approx(1.0 / 0.3048)
    assert unit_factor(4, 6) == pytest.approx(0.001)
    with pytest.raises(ValueError):
        unit_factor(0, 'm')
    with pytest.raises(ValueError):
        unit_factor(6, 'furlong')


def test_normalize_units_millimetres_to_metres():
    model = GeometryModel.from_entities([Line(Vertex(0.0, 0.0, 0.0), Vertex(1000.0, 500.0, 250.0))], units=4)
    out = normalize_units(model)
    assert out.units == 6
    end = out.lines[0].end
    assert (end.x, end.y, end.z) == pytest.approx((1.0, 0.5, 0.25))
    assert out.bounds.max_x == pytest.approx(1.0)


def test_normalize_units_leaves_unitless_model_alone():
    model = GeometryModel.from_entities([Point(1.0, 1.0)])
    assert normalize_units(model) is model
