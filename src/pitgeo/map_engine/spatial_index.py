"""
spatial_index.py

Uniform-grid spatial index over 2D vertices for nearest-vertex snapping.

The index holds an arena of vertex coordinates (numpy arrays) plus a mapping
from integer cell key ``(floor(x / cell), floor(y / cell))`` to the arena
indices that fall in that cell, in construction order. It is rebuilt from
scratch on every `build` call; a built index is read-only and may be shared
between threads.

`query_nearest` searches square rings of cells outward from the query cell
and stops once no unvisited ring can hold anything closer than the current
best (or closer than ``max_distance``). Distances are compared squared.

Public API:
- `SpatialIndex` : structural interface (build, query_nearest)
- `GridSpatialIndex(cell_size=5.0)`
- `suggest_cell_size(vertices)` : median nearest-neighbour spacing
"""
from typing import Dict, Iterator, List, Optional, Protocol, Sequence, Tuple
import logging
import math

import numpy as np
from scipy.spatial import cKDTree

from pitgeo.map_engine.config import SNAP
from pitgeo.map_engine.entities import SnapResult, Vertex
from pitgeo.map_engine.utils import vertices_to_array

logger = logging.getLogger(__name__)

CellKey = Tuple[int, int]


class SpatialIndex(Protocol):
    """Anything the snap engine can query."""

    def build(self, vertices: Sequence[Vertex]) -> None:
        ...

    def query_nearest(self, x: float, y: float, max_distance: float) -> Optional[SnapResult]:
        ...


class GridSpatialIndex:
    """Bucket vertices into square cells of edge ``cell_size``.

    Ties between equally distant vertices resolve to the vertex that came
    first in the sequence passed to `build`.
    """

    def __init__(self, cell_size: float = SNAP['cell_size']):
        cell_size = float(cell_size)
        if not math.isfinite(cell_size) or cell_size <= 0.0:
            raise ValueError(f'cell_size must be positive and finite, got {cell_size}')
        self.cell_size = cell_size
        self._vertices: List[Vertex] = []
        self._xy = np.zeros((0, 2), dtype=np.float64)
        self._cells: Dict[CellKey, np.ndarray] = {}
        self._extent = (0, 0, 0, 0)  # min_cx, max_cx, min_cy, max_cy

    def __len__(self) -> int:
        return len(self._vertices)

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    def build(self, vertices: Sequence[Vertex]) -> None:
        """Replace the index contents with ``vertices``."""
        self._vertices = list(vertices)
        self._xy = vertices_to_array(self._vertices)
        self._cells = {}
        self._extent = (0, 0, 0, 0)
        if not self._vertices:
            logger.debug('GridSpatialIndex: built empty index')
            return

        keys = np.floor(self._xy / self.cell_size).astype(np.int64)
        # stable: equal keys keep construction order
        order = np.lexsort((keys[:, 1], keys[:, 0]))
        sorted_keys = keys[order]
        change = np.any(sorted_keys[1:] != sorted_keys[:-1], axis=1)
        starts = np.concatenate(([0], np.nonzero(change)[0] + 1))
        ends = np.concatenate((starts[1:], [len(order)]))
        for s, e in zip(starts, ends):
            cx, cy = sorted_keys[s]
            self._cells[(int(cx), int(cy))] = order[s:e]

        self._extent = (
            int(keys[:, 0].min()), int(keys[:, 0].max()),
            int(keys[:, 1].min()), int(keys[:, 1].max()),
        )
        logger.debug(
            'GridSpatialIndex: %d vertices in %d cells (cell_size=%g)',
            len(self._vertices), len(self._cells), self.cell_size,
        )

    def _ring_cells(self, qcx: int, qcy: int, r: int) -> Iterator[CellKey]:
        """Cells at Chebyshev distance ``r`` from the query cell, clipped to the grid."""
        min_cx, max_cx, min_cy, max_cy = self._extent
        if r == 0:
            yield (qcx, qcy)
            return
        x_lo, x_hi = max(qcx - r, min_cx), min(qcx + r, max_cx)
        for cy in (qcy - r, qcy + r):
            if min_cy <= cy <= max_cy:
                for cx in range(x_lo, x_hi + 1):
                    yield (cx, cy)
        y_lo, y_hi = max(qcy - r + 1, min_cy), min(qcy + r - 1, max_cy)
        for cx in (qcx - r, qcx + r):
            if min_cx <= cx <= max_cx:
                for cy in range(y_lo, y_hi + 1):
                    yield (cx, cy)

    def query_nearest(self, x: float, y: float, max_distance: float) -> Optional[SnapResult]:
        """Closest vertex within ``max_distance`` (inclusive) of (x, y), or None."""
        if not self._vertices or not max_distance >= 0 or not (math.isfinite(x) and math.isfinite(y)):
            return None

        cell = self.cell_size
        qcx = int(math.floor(x / cell))
        qcy = int(math.floor(y / cell))
        min_cx, max_cx, min_cy, max_cy = self._extent
        max_d2 = max_distance * max_distance
        eps = cell * 1e-9

        best_d2 = math.inf
        best_idx = -1
        # rings nearer than the grid extent hold no cells
        r = max(min_cx - qcx, qcx - max_cx, min_cy - qcy, qcy - max_cy, 0)
        while True:
            for key in self._ring_cells(qcx, qcy, r):
                idx = self._cells.get(key)
                if idx is None:
                    continue
                pts = self._xy[idx]
                d2 = (pts[:, 0] - x) ** 2 + (pts[:, 1] - y) ** 2
                k = int(np.argmin(d2))
                cand_d2 = float(d2[k])
                cand_idx = int(idx[k])
                if cand_d2 > max_d2:
                    continue
                if cand_d2 < best_d2 or (cand_d2 == best_d2 and cand_idx < best_idx):
                    best_d2, best_idx = cand_d2, cand_idx

            covers_grid = (
                qcx - r <= min_cx and qcx + r >= max_cx
                and qcy - r <= min_cy and qcy + r >= max_cy
            )
            if covers_grid:
                break
            # anything beyond ring r lies outside the block of rings 0..r
            bound = min(
                x - (qcx - r) * cell,
                (qcx + r + 1) * cell - x,
                y - (qcy - r) * cell,
                (qcy + r + 1) * cell - y,
            ) - eps
            if bound > max_distance:
                break
            if best_idx >= 0 and bound * bound > best_d2:
                break
            r += 1

        if best_idx < 0:
            return None
        return SnapResult(self._vertices[best_idx], math.sqrt(best_d2))


def suggest_cell_size(vertices: Sequence[Vertex], default: float = SNAP['cell_size']) -> float:
    """Median nearest-neighbour spacing of ``vertices``.

    Falls back to ``default`` when fewer than two distinct vertices exist.
    """
    xy = vertices_to_array(vertices)
    if len(xy) < 2:
        return float(default)
    dists, _ = cKDTree(xy).query(xy, k=2)
    spacing = dists[:, 1]
    spacing = spacing[spacing > 0.0]
    if spacing.size == 0:
        return float(default)
    return float(np.median(spacing))
