"""
transform_utils.py

Scale / rotate / translate helpers for DXF geometry. Used to expand block
inserts and to normalise drawing units.

Every vertex is transformed in a fixed order: scale about the origin, then
rotate about the origin (Z axis, degrees, counter-clockwise), then
translate. Entities are never modified in place.

Public functions:
- `transform_vertex(vertex, sx, sy, sz, rotation_deg, tx, ty, tz)` -> Vertex
- `transform_vertices(vertices, ...)` -> list of Vertex
- `transform_entity(entity, ...)` -> Entity
- `transform_model(model, ...)` -> GeometryModel
- `normalize_units(model, target='m')` -> GeometryModel
"""
from dataclasses import replace
from typing import Iterable, List, Union
import logging
import math

from pitgeo.map_engine.config import INSUNITS, UNIT_NAMES
from pitgeo.map_engine.entities import (
    Entity, GeometryModel, Insert, Line, Point, Polyline, Vertex,
)

logger = logging.getLogger(__name__)


def transform_vertex(
    vertex: Vertex,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    scale_z: float = 1.0,
    rotation_deg: float = 0.0,
    translate_x: float = 0.0,
    translate_y: float = 0.0,
    translate_z: float = 0.0,
) -> Vertex:
    """Scale, then rotate, then translate a single vertex.

    A vertex without Z keeps ``z=None``.
    """
    x = vertex.x * scale_x
    y = vertex.y * scale_y
    z = None if vertex.z is None else vertex.z * scale_z

    if rotation_deg != 0.0:
        rad = math.radians(rotation_deg)
        cos_r = math.cos(rad)
        sin_r = math.sin(rad)
        x, y = x * cos_r - y * sin_r, x * sin_r + y * cos_r

    x += translate_x
    y += translate_y
    if z is not None:
        z += translate_z
    return Vertex(x, y, z)


def transform_vertices(vertices: Iterable[Vertex], *args: float, **kwargs: float) -> List[Vertex]:
    """Apply `transform_vertex` with the same parameters to every vertex."""
    return [transform_vertex(v, *args, **kwargs) for v in vertices]


def transform_entity(
    entity: Entity,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    scale_z: float = 1.0,
    rotation_deg: float = 0.0,
    translate_x: float = 0.0,
    translate_y: float = 0.0,
    translate_z: float = 0.0,
) -> Entity:
    """Return a transformed copy of ``entity``.

    For an `Insert` the insertion point is transformed and the outer
    transform is composed with the block's own instance transform: scale
    factors multiply and rotations add.
    """
    params = (scale_x, scale_y, scale_z, rotation_deg, translate_x, translate_y, translate_z)
    if isinstance(entity, Point):
        tv = transform_vertex(entity.vertex, *params)
        return replace(entity, x=tv.x, y=tv.y, z=tv.z)
    if isinstance(entity, Line):
        return replace(
            entity,
            start=transform_vertex(entity.start, *params),
            end=transform_vertex(entity.end, *params),
        )
    if isinstance(entity, Polyline):
        return replace(entity, vertices=tuple(transform_vertices(entity.vertices, *params)))
    if isinstance(entity, Insert):
        return replace(
            entity,
            insertion_point=transform_vertex(entity.insertion_point, *params),
            scale_x=entity.scale_x * scale_x,
            scale_y=entity.scale_y * scale_y,
            scale_z=entity.scale_z * scale_z,
            rotation=entity.rotation + rotation_deg,
        )
    raise TypeError(f'Unsupported entity type: {type(entity).__name__}')


def transform_model(model: GeometryModel, *args: float, **kwargs: float) -> GeometryModel:
    """Transform every entity of ``model``; bounds are recomputed.

    Block definitions are left untouched: they live in block space and are
    placed by their inserts.
    """
    entities = [transform_entity(e, *args, **kwargs) for e in model.entities()]
    return GeometryModel.from_entities(
        entities,
        layers=model.layers,
        blocks=model.blocks,
        units=model.units,
        skipped=model.skipped,
    )


def unit_factor(source_units: int, target: Union[str, int] = 'm') -> float:
    """Multiplier converting ``source_units`` ($INSUNITS code) to ``target``.

    ``target`` is a unit name from `config.UNIT_NAMES` or an $INSUNITS code.
    Raises ValueError when either side is unitless or unknown.
    """
    target_code = UNIT_NAMES.get(target) if isinstance(target, str) else target
    if target_code is None:
        raise ValueError(f"Unknown target unit '{target}'")
    src_m = INSUNITS.get(source_units)
    dst_m = INSUNITS.get(target_code)
    if src_m is None:
        raise ValueError(f'Drawing units code {source_units} has no metric size')
    if dst_m is None:
        raise ValueError(f'Target units code {target_code} has no metric size')
    return src_m / dst_m


def normalize_units(model: GeometryModel, target: Union[str, int] = 'm') -> GeometryModel:
    """Scale a model from its declared drawing units to ``target``.

    Unitless drawings (``$INSUNITS`` 0 or missing) are returned unchanged.
    """
    if INSUNITS.get(model.units) is None:
        logger.debug('normalize_units: drawing is unitless (code %s); leaving as is', model.units)
        return model
    factor = unit_factor(model.units, target)
    target_code = UNIT_NAMES[target] if isinstance(target, str) else target
    scaled = transform_model(model, factor, factor, factor)
    logger.info('normalize_units: scaled by %g (units %s -> %s)', factor, model.units, target_code)
    return replace(scaled, units=target_code)
