"""
entities.py

Value types of the map geometry engine: vertices, bounding boxes, layers,
the closed set of DXF entity variants (Point, Line, Polyline, Insert) and
the `GeometryModel` produced by one parse.

All types are frozen; transforming or re-parsing produces new objects.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
import numpy as np


@dataclass(frozen=True)
class Vertex:
    """2D / 2.5D point in a single coordinate space."""
    x: float
    y: float
    z: Optional[float] = None


@dataclass(frozen=True)
class SnapResult:
    """Nearest vertex found within a snap threshold and its distance."""
    vertex: Vertex
    distance: float


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned box with ``min <= max`` on every axis."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float = 0.0
    max_z: float = 0.0

    def __post_init__(self):
        if self.min_x > self.max_x or self.min_y > self.max_y or self.min_z > self.max_z:
            raise ValueError(f'Bounds minimum exceeds maximum: {self!r}')

    @classmethod
    def empty(cls) -> 'Bounds':
        """Zero-extent box at the origin, used for models without geometry."""
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_vertices(cls, vertices: Iterable[Vertex]) -> 'Bounds':
        """Compute the box over a full vertex set.

        Vertices without Z do not contribute to the Z range. An empty set
        returns `Bounds.empty()`.
        """
        xyz = [(v.x, v.y, np.nan if v.z is None else v.z) for v in vertices]
        if not xyz:
            return cls.empty()
        arr = np.asarray(xyz, dtype=float)
        zs = arr[:, 2][np.isfinite(arr[:, 2])]
        min_z = float(zs.min()) if zs.size else 0.0
        max_z = float(zs.max()) if zs.size else 0.0
        return cls(
            float(arr[:, 0].min()), float(arr[:, 0].max()),
            float(arr[:, 1].min()), float(arr[:, 1].max()),
            min_z, max_z,
        )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


@dataclass(frozen=True)
class Layer:
    """Layer table record. ``color_index`` is the absolute ACI value."""
    name: str
    color_index: int = 7
    visible: bool = True


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    z: float = 0.0
    layer: str = '0'
    color: int = 0xFFFFFF
    by_block: bool = False

    @property
    def vertex(self) -> Vertex:
        return Vertex(self.x, self.y, self.z)


@dataclass(frozen=True)
class Line:
    start: Vertex
    end: Vertex
    layer: str = '0'
    color: int = 0xFFFFFF
    by_block: bool = False


@dataclass(frozen=True)
class Polyline:
    vertices: Tuple[Vertex, ...]
    closed: bool = False
    layer: str = '0'
    color: int = 0xFFFFFF
    by_block: bool = False


@dataclass(frozen=True)
class Insert:
    """Block reference; its instance transform is scale, then rotation, then
    translation to ``insertion_point``."""
    block_name: str
    insertion_point: Vertex
    scale_x: float = 1.0
    scale_y: float = 1.0
    scale_z: float = 1.0
    rotation: float = 0.0
    layer: str = '0'
    color: int = 0xFFFFFF
    by_block: bool = False


Entity = Union[Point, Line, Polyline, Insert]
ENTITY_TYPES = (Point, Line, Polyline, Insert)


def entity_vertices(entity: Entity) -> List[Vertex]:
    """Return the vertices of one entity (insertion point for inserts)."""
    if isinstance(entity, Point):
        return [entity.vertex]
    if isinstance(entity, Line):
        return [entity.start, entity.end]
    if isinstance(entity, Polyline):
        return list(entity.vertices)
    if isinstance(entity, Insert):
        return [entity.insertion_point]
    raise TypeError(f'Unsupported entity type: {type(entity).__name__}')


@dataclass(frozen=True)
class RowSkipped:
    """A DXF record dropped during parsing; parsing continued past it."""
    entity_type: str
    line: int
    reason: str


@dataclass(frozen=True)
class GeometryModel:
    """Geometry of one parsed DXF file.

    Created once per parse and replaced wholesale on re-parse. ``inserts``
    and ``blocks`` are only populated when inserts were not expanded.
    """
    lines: Tuple[Line, ...] = ()
    polylines: Tuple[Polyline, ...] = ()
    points: Tuple[Point, ...] = ()
    inserts: Tuple[Insert, ...] = ()
    layers: Mapping[str, Layer] = field(default_factory=dict)
    blocks: Mapping[str, Tuple[Entity, ...]] = field(default_factory=dict)
    bounds: Bounds = field(default_factory=Bounds.empty)
    units: int = 0
    skipped: Tuple[RowSkipped, ...] = ()

    @classmethod
    def from_entities(cls, entities: Iterable[Entity], **kwargs) -> 'GeometryModel':
        """Sort ``entities`` into the typed lists and compute bounds last."""
        lines, polylines, points, inserts = [], [], [], []
        for e in entities:
            if isinstance(e, Line):
                lines.append(e)
            elif isinstance(e, Polyline):
                polylines.append(e)
            elif isinstance(e, Point):
                points.append(e)
            elif isinstance(e, Insert):
                inserts.append(e)
            else:
                raise TypeError(f'Unsupported entity type: {type(e).__name__}')
        bounds = Bounds.from_vertices(
            v for e in (*lines, *polylines, *points, *inserts) for v in entity_vertices(e)
        )
        return cls(
            lines=tuple(lines),
            polylines=tuple(polylines),
            points=tuple(points),
            inserts=tuple(inserts),
            bounds=bounds,
            **kwargs,
        )

    def entities(self) -> List[Entity]:
        """All top-level entities: lines, polylines, points, inserts."""
        return [*self.lines, *self.polylines, *self.points, *self.inserts]

    def vertices(self) -> List[Vertex]:
        """Snap candidates: line endpoints, polyline vertices, points."""
        out: List[Vertex] = []
        for ln in self.lines:
            out.append(ln.start)
            out.append(ln.end)
        for pl in self.polylines:
            out.extend(pl.vertices)
        for pt in self.points:
            out.append(pt.vertex)
        return out

    def entities_by_layer(self) -> Dict[str, List[Entity]]:
        grouped: Dict[str, List[Entity]] = {}
        for e in self.entities():
            grouped.setdefault(e.layer, []).append(e)
        return grouped

    @property
    def entity_count(self) -> int:
        return len(self.lines) + len(self.polylines) + len(self.points) + len(self.inserts)

    @property
    def is_empty(self) -> bool:
        return self.entity_count == 0
