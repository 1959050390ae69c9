"""Snap a query position onto the nearest indexed vertex within a threshold."""
from typing import Iterable, Optional
import logging

from pitgeo.map_engine.config import SNAP
from pitgeo.map_engine.entities import GeometryModel, SnapResult, Vertex
from pitgeo.map_engine.spatial_index import GridSpatialIndex, SpatialIndex

logger = logging.getLogger(__name__)


class SnapEngine:
    """Thin owner of a spatial index plus the snap threshold.

    A hit requires ``distance <= threshold``; only strictly greater distances
    miss. Queries against an empty index return None.
    """

    def __init__(self, index: Optional[SpatialIndex] = None, threshold: float = SNAP['threshold']):
        threshold = float(threshold)
        if not threshold >= 0.0:
            raise ValueError(f'threshold must be non-negative, got {threshold}')
        self.index = index if index is not None else GridSpatialIndex()
        self.threshold = threshold

    def update_vertices(self, vertices: Iterable[Vertex]) -> None:
        """Rebuild the index from ``vertices``."""
        vertices = list(vertices)
        self.index.build(vertices)
        logger.debug('SnapEngine: index rebuilt with %d vertices', len(vertices))

    def update_model(self, model: GeometryModel) -> None:
        self.update_vertices(model.vertices())

    def find_vertex(self, x: float, y: float) -> Optional[SnapResult]:
        return self.index.query_nearest(x, y, self.threshold)
