"""
dxf.py

DXF (ASCII) reader producing a `GeometryModel` for 2D map rendering and
snapping.

The document is loaded with `ezdxf`; this module maps its layers, blocks
and the entities POINT, LINE, LWPOLYLINE, POLYLINE, CIRCLE, ARC and INSERT
onto the engine's own value types. CIRCLE and ARC are tessellated into
polylines. Other entity types are ignored.

ezdxf rejects a whole document when one value does not match the type of
its group code. Before loading, the group tags are therefore scrubbed with
ezdxf's own tag loader and type table: an entity or table record holding a
malformed or non-finite number is removed and recorded, a bad header
variable is dropped on its own.

Failure policy:
- an unreadable or structureless stream raises `ParseError`;
- a record with a malformed numeric value is dropped, recorded as a
  `RowSkipped` on the model, and parsing continues;
- entities that are invisible (negative colour, layer off or frozen) are
  dropped silently.

Public API:
- `parse_dxf(source, explode_inserts=True)` -> GeometryModel
- `DxfParser(explode_inserts=True, max_insert_depth=50).parse(source)`
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
import io
import logging

import ezdxf
from ezdxf.lldxf.const import DXFError
from ezdxf.lldxf.tagger import ascii_tags_loader
from ezdxf.lldxf.types import TYPE_TABLE, DXFTag

from pitgeo.map_engine.colors import BY_BLOCK, resolve_color
from pitgeo.map_engine.config import DXF
from pitgeo.map_engine.entities import (
    Entity, GeometryModel, Insert, Layer, Line, Point, Polyline, RowSkipped, Vertex,
)
from pitgeo.map_engine.errors import ParseError
from pitgeo.map_engine.transform_utils import transform_entity
from pitgeo.map_engine.utils import parse_float, parse_int

logger = logging.getLogger(__name__)

_STRUCTURE = frozenset(('SECTION', 'ENDSEC', 'TABLE', 'ENDTAB', 'BLOCK', 'ENDBLK', 'EOF'))
# records that belong to the entity before them
_SUBRECORDS = frozenset(('VERTEX', 'ATTRIB', 'SEQEND'))
_RECORD_SECTIONS = frozenset(('TABLES', 'BLOCKS', 'ENTITIES'))
_COMMENT = 999


class _MalformedRecord(Exception):
    """Internal signal: the current record cannot be decoded."""


def _read_text(source: Any) -> str:
    """Return DXF text from bytes, str or a readable stream."""
    if hasattr(source, 'read'):
        try:
            source = source.read()
        except (OSError, ValueError) as exc:
            raise ParseError(f'DXF stream could not be read: {exc}') from exc
    if isinstance(source, (bytes, bytearray, memoryview)):
        raw = bytes(source)
        if raw.startswith(DXF['binary_sentinel']):
            raise ParseError('Binary DXF is not supported')
        for encoding in DXF['encodings']:
            try:
                source = raw.decode(encoding)
                break
            except UnicodeDecodeError:
                continue
        else:
            raise ParseError(f"DXF bytes are not decodable as any of {DXF['encodings']}")
    if not isinstance(source, str):
        raise ParseError(f'Unsupported DXF source type: {type(source).__name__}')
    return source.lstrip('\ufeff')


# ---------------------------------------------------------------------------
# Tag scrubbing
# ---------------------------------------------------------------------------

@dataclass
class _Record:
    """One code-0 record, or an entity with its VERTEX/SEQEND followers."""
    kind: str
    line: int
    tags: List[Tuple[int, DXFTag]] = field(default_factory=list)


@dataclass
class _Scrubbed:
    text: str
    handle_lines: Dict[str, int]
    skipped: List[RowSkipped]


def _load_tags(text: str) -> List[DXFTag]:
    lines = text.splitlines()
    if len(lines) % 2:
        # trailing code without a value
        lines = lines[:-1]
    stream = io.StringIO(''.join(line + '\n' for line in lines))
    try:
        return list(ascii_tags_loader(stream, skip_comments=False))
    except (DXFError, ValueError) as exc:
        raise ParseError(f'DXF stream is not a group code/value sequence: {exc}') from exc


def _clean_tag(tag: DXFTag) -> Optional[DXFTag]:
    """Tag with its value normalised for ezdxf, or None when malformed."""
    caster = TYPE_TABLE.get(tag.code, str)
    if caster is float:
        return tag if parse_float(tag.value) is not None else None
    if caster is int:
        number = parse_int(tag.value)
        return None if number is None else DXFTag(tag.code, str(number))
    if tag.code == 0:
        return DXFTag(0, tag.value.strip())
    return tag


def _bad_value_reason(tag: DXFTag) -> str:
    kind = 'real' if TYPE_TABLE.get(tag.code, str) is float else 'integer'
    return f'bad {kind} {tag.value.strip()!r} in group {tag.code}'


def _group_records(tags: List[DXFTag]) -> List[_Record]:
    records: List[_Record] = []
    for i, tag in enumerate(tags):
        line = 2 * i + 1
        if tag.code == 0:
            kind = tag.value.strip().upper()
            owner = records[-1] if records else None
            if not (kind in _SUBRECORDS and owner is not None and owner.kind not in _STRUCTURE):
                records.append(_Record(kind, line))
        elif not records:
            records.append(_Record('', line))
        records[-1].tags.append((line, tag))
    return records


def _scrub(text: str) -> _Scrubbed:
    """Drop malformed values so that ezdxf can load the rest of the document."""
    records = _group_records(_load_tags(text))
    if not any(r.kind == 'SECTION' for r in records):
        raise ParseError('No DXF SECTION found in stream')

    out: List[str] = []
    handle_lines: Dict[str, int] = {}
    skipped: List[RowSkipped] = []
    section = ''
    for record in records:
        if record.kind == 'SECTION':
            names = [t.value.strip().upper() for _, t in record.tags if t.code == 2]
            section = names[0] if names else ''

        cleaned = [(line, tag, _clean_tag(tag)) for line, tag in record.tags]
        bad = [(line, tag) for line, tag, clean in cleaned if clean is None]

        if bad and section in _RECORD_SECTIONS and record.kind not in _STRUCTURE:
            skipped.append(RowSkipped(record.kind, record.line, _bad_value_reason(bad[0][1])))
            continue

        previous: Optional[Tuple[int, DXFTag]] = None
        kept: List[DXFTag] = []
        for line, tag, clean in cleaned:
            if clean is None:
                if previous is not None and previous[1].code == 9:
                    # header variable without a usable value
                    kept.pop()
                    name = previous[1].value.strip()
                    skipped.append(RowSkipped(section or record.kind, previous[0], f'bad {name} value {tag.value.strip()!r}'))
                else:
                    skipped.append(RowSkipped(section or record.kind, line, _bad_value_reason(tag)))
                previous = None
                continue
            if clean.code != _COMMENT:
                kept.append(clean)
            previous = (line, clean)

        if section in ('BLOCKS', 'ENTITIES'):
            handles = [t.value.strip().upper() for t in kept if t.code == 5]
            if handles:
                handle_lines[handles[0]] = record.line
        out.extend(f'{tag.code}\n{tag.value}\n' for tag in kept)

    for record in skipped:
        logger.warning('DXF: skipped %s at line %d: %s', record.entity_type, record.line, record.reason)
    return _Scrubbed(''.join(out), handle_lines, skipped)


def _vertex(v) -> Vertex:
    return Vertex(float(v.x), float(v.y), float(v.z))


# ---------------------------------------------------------------------------
# Model building
# ---------------------------------------------------------------------------

class _ModelBuilder:
    """Single-use conversion of one ezdxf document into engine entities."""

    def __init__(self, doc, handle_lines: Dict[str, int], skipped: List[RowSkipped], explode_inserts: bool, max_insert_depth: int):
        self._doc = doc
        self._handle_lines = handle_lines
        self._explode = explode_inserts
        self._max_depth = max_insert_depth
        self.skipped: List[RowSkipped] = list(skipped)
        self.layers: Dict[str, Layer] = {}
        self.blocks: Dict[str, Tuple[Entity, ...]] = {}
        self.entities: List[Entity] = []
        self.units = 0
        self.hidden = 0
        self._builders = {
            'POINT': self._build_point,
            'LINE': self._build_line,
            'LWPOLYLINE': self._build_lwpolyline,
            'POLYLINE': self._build_polyline,
            'CIRCLE': self._build_circle,
            'ARC': self._build_arc,
            'INSERT': self._build_insert,
        }

    def _skip(self, kind: str, line: int, reason: str) -> None:
        self.skipped.append(RowSkipped(kind, line, reason))
        logger.warning('DXF: skipped %s at line %d: %s', kind, line, reason)

    def read(self) -> None:
        self.units = int(self._doc.header.get('$INSUNITS', 0))
        for layer in self._doc.layers:
            color = layer.dxf.color
            # negative colour = layer off
            visible = color >= 0 and not layer.is_frozen()
            self.layers[layer.dxf.name] = Layer(layer.dxf.name, abs(color), visible)
        for block in self._doc.blocks:
            if block.is_any_layout:
                continue
            self.blocks[block.name] = tuple(self._convert(block))
        self.entities = self._convert(self._doc.modelspace())

    def _convert(self, layout) -> List[Entity]:
        out: List[Entity] = []
        for e in layout:
            kind = e.dxftype()
            builder = self._builders.get(kind)
            if builder is None:
                continue
            try:
                entity = builder(e)
            except (_MalformedRecord, DXFError) as exc:
                handle = (e.dxf.get('handle') or '').upper()
                self._skip(kind, self._handle_lines.get(handle, 0), str(exc))
                continue
            if entity is not None:
                out.append(entity)
        return out

    # -- entity builders ---------------------------------------------------

    def _style(self, e) -> Optional[Tuple[str, int, bool]]:
        """Resolve (layer, colour, by_block); None when the entity is hidden."""
        layer_name = e.dxf.get('layer', DXF['default_layer'])
        color_index = e.dxf.get('color')
        layer = self.layers.get(layer_name)
        if (color_index is not None and color_index < 0) or (layer is not None and not layer.visible):
            self.hidden += 1
            return None
        layer_color = layer.color_index if layer is not None else DXF['default_layer_color']
        color = resolve_color(e.dxf.get('true_color'), color_index, layer_color)
        return layer_name, color, color_index == BY_BLOCK

    def _build_point(self, e) -> Optional[Point]:
        style = self._style(e)
        if style is None:
            return None
        v = _vertex(e.dxf.location)
        return Point(v.x, v.y, v.z, *style)

    def _build_line(self, e) -> Optional[Line]:
        style = self._style(e)
        if style is None:
            return None
        return Line(_vertex(e.dxf.start), _vertex(e.dxf.end), *style)

    def _build_lwpolyline(self, e) -> Optional[Polyline]:
        elevation = float(e.dxf.elevation)
        vertices = tuple(Vertex(float(x), float(y), elevation) for x, y in e.get_points('xy'))
        if not vertices:
            raise _MalformedRecord('polyline has no vertices')
        style = self._style(e)
        if style is None:
            return None
        return Polyline(vertices, bool(e.closed), *style)

    def _build_polyline(self, e) -> Optional[Polyline]:
        if e.is_polygon_mesh or e.is_poly_face_mesh:
            raise _MalformedRecord('mesh polylines are not supported')
        if e.is_3d_polyline:
            vertices = tuple(_vertex(v.dxf.location) for v in e.vertices)
        else:
            # 2D vertices lie in the plane of the polyline elevation
            z = float(e.dxf.elevation.z)
            vertices = tuple(Vertex(float(v.dxf.location.x), float(v.dxf.location.y), z) for v in e.vertices)
        if not vertices:
            raise _MalformedRecord('polyline has no vertices')
        style = self._style(e)
        if style is None:
            return None
        return Polyline(vertices, bool(e.is_closed), *style)

    def _build_circle(self, e) -> Optional[Polyline]:
        radius = e.dxf.radius
        if radius <= 0.0:
            raise _MalformedRecord(f'non-positive radius {radius}')
        style = self._style(e)
        if style is None:
            return None
        segments = DXF['circle_segments']
        angles = [360.0 * i / segments for i in range(segments)]
        return Polyline(tuple(_vertex(v) for v in e.vertices(angles)), True, *style)

    def _build_arc(self, e) -> Optional[Polyline]:
        radius = e.dxf.radius
        if radius <= 0.0:
            raise _MalformedRecord(f'non-positive radius {radius}')
        style = self._style(e)
        if style is None:
            return None
        start, end = e.dxf.start_angle, e.dxf.end_angle
        if end <= start:
            end += 360.0
        sweep = end - start
        segments = max(DXF['min_arc_segments'], int(sweep / DXF['arc_degrees_per_segment']))
        angles = [start + sweep * i / segments for i in range(segments + 1)]
        return Polyline(tuple(_vertex(v) for v in e.vertices(angles)), False, *style)

    def _build_insert(self, e) -> Optional[Insert]:
        name = e.dxf.get('name', '')
        if not name:
            raise _MalformedRecord('insert has no block name')
        style = self._style(e)
        if style is None:
            return None
        return Insert(
            name, _vertex(e.dxf.insert),
            e.dxf.xscale, e.dxf.yscale, e.dxf.zscale, e.dxf.rotation,
            *style,
        )

    # -- block expansion ---------------------------------------------------

    def explode(self, entities: List[Entity], chain: Tuple[str, ...] = ()) -> List[Entity]:
        """Recursively replace inserts with their transformed block content.

        Children marked ByBlock take the insert's colour. Unknown blocks,
        self-referencing blocks and nesting deeper than the configured limit
        are recorded as skipped (line 0: found after reading).
        """
        out: List[Entity] = []
        for e in entities:
            if not isinstance(e, Insert):
                out.append(e)
                continue
            block = self.blocks.get(e.block_name)
            if block is None:
                self._skip('INSERT', 0, f"unknown block '{e.block_name}'")
                continue
            if e.block_name in chain:
                self._skip('INSERT', 0, f"recursive reference to block '{e.block_name}'")
                continue
            if len(chain) >= self._max_depth:
                self._skip('INSERT', 0, f"block '{e.block_name}' nested deeper than {self._max_depth}")
                continue
            ip = e.insertion_point
            children = []
            for child in block:
                t = transform_entity(
                    child, e.scale_x, e.scale_y, e.scale_z, e.rotation,
                    ip.x, ip.y, ip.z or 0.0,
                )
                if child.by_block:
                    t = replace(t, color=e.color, by_block=e.by_block)
                children.append(t)
            out.extend(self.explode(children, chain + (e.block_name,)))
        return out

    def model(self) -> GeometryModel:
        if self._explode:
            entities = self.explode(self.entities)
            blocks: Dict[str, Tuple[Entity, ...]] = {}
        else:
            entities = self.entities
            blocks = dict(self.blocks)
        return GeometryModel.from_entities(
            entities,
            layers=dict(self.layers),
            blocks=blocks,
            units=self.units,
            skipped=tuple(self.skipped),
        )


class DxfParser:
    """Parse DXF content into a `GeometryModel`.

    Parameters:
    - explode_inserts: expand INSERT references into their block geometry
      (default). When False, inserts and block definitions are preserved on
      the model.
    - max_insert_depth: nesting limit for insert expansion.
    """

    def __init__(self, explode_inserts: bool = True, max_insert_depth: int = DXF['max_insert_depth']):
        self.explode_inserts = explode_inserts
        self.max_insert_depth = int(max_insert_depth)

    def parse(self, source: Any) -> GeometryModel:
        text = _read_text(source)
        if not text.strip():
            raise ParseError('Empty DXF stream')
        scrubbed = _scrub(text)
        try:
            doc = ezdxf.read(io.StringIO(scrubbed.text))
        except DXFError as exc:
            raise ParseError(f'DXF structure could not be loaded: {exc}') from exc

        builder = _ModelBuilder(doc, scrubbed.handle_lines, scrubbed.skipped, self.explode_inserts, self.max_insert_depth)
        builder.read()
        model = builder.model()

        logger.info(
            'DXF parsed: lines=%d polylines=%d points=%d inserts=%d skipped=%d hidden=%d',
            len(model.lines), len(model.polylines), len(model.points),
            len(model.inserts), len(model.skipped), builder.hidden,
        )
        b = model.bounds
        logger.debug('DXF bounds: X[%s..%s] Y[%s..%s] Z[%s..%s]', b.min_x, b.max_x, b.min_y, b.max_y, b.min_z, b.max_z)
        if model.is_empty:
            logger.warning('DXF parsed with zero entities; returning empty model')
        return model


def parse_dxf(source: Any, explode_inserts: bool = True) -> GeometryModel:
    """Parse DXF ``source`` (bytes, str or readable stream)."""
    return DxfParser(explode_inserts=explode_inserts).parse(source)


def parse_dxf_file(path: str, explode_inserts: bool = True) -> GeometryModel:
    """Read and parse a DXF file from disk."""
    try:
        with io.open(path, 'rb') as fh:
            data = fh.read()
    except OSError as exc:
        raise ParseError(f'DXF file could not be read: {path}: {exc}') from exc
    return parse_dxf(data, explode_inserts=explode_inserts)
