"""
workers.py

Run slow engine work (DXF parsing, index builds) on a background thread
pool and hand back futures of immutable results. The engine itself stays
synchronous; cancellation is done by the caller discarding a future.

Usage:

    with MapWorker() as worker:
        fut = worker.submit_parse(data)
        model = fut.result()
        snap = worker.submit_snap_engine(model).result()
"""
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Iterable, Optional
import logging

from pitgeo.map_engine.config import SNAP
from pitgeo.map_engine.dxf import DxfParser
from pitgeo.map_engine.entities import GeometryModel, Vertex
from pitgeo.map_engine.snap import SnapEngine
from pitgeo.map_engine.spatial_index import GridSpatialIndex
from pitgeo.map_engine.utils import safe_log_exception

logger = logging.getLogger(__name__)


class MapWorker:
    def __init__(self, max_workers: int = 2, explode_inserts: bool = True):
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix='pitgeo')
        self._parser = DxfParser(explode_inserts=explode_inserts)

    def __enter__(self) -> 'MapWorker':
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _submit(self, name: str, fn, *args) -> Future:
        future = self._executor.submit(fn, *args)

        def _on_done(fut: Future) -> None:
            if fut.cancelled():
                logger.debug('MapWorker: %s cancelled', name)
                return
            exc = fut.exception()
            if exc is not None:
                safe_log_exception(f'MapWorker: {name} failed', exc)

        future.add_done_callback(_on_done)
        return future

    def submit_parse(self, source: Any) -> Future:
        """Future of a `GeometryModel`; a fatal parse raises from ``result()``."""
        return self._submit('parse', self._parser.parse, source)

    def submit_index(self, vertices: Iterable[Vertex], cell_size: float = SNAP['cell_size']) -> Future:
        """Future of a built `GridSpatialIndex`."""
        vertices = list(vertices)

        def build() -> GridSpatialIndex:
            index = GridSpatialIndex(cell_size)
            index.build(vertices)
            return index

        return self._submit('index build', build)

    def submit_snap_engine(self, model: GeometryModel, threshold: float = SNAP['threshold'], cell_size: Optional[float] = None) -> Future:
        """Future of a `SnapEngine` indexed over ``model``'s vertices."""

        def build() -> SnapEngine:
            index = GridSpatialIndex(cell_size if cell_size is not None else SNAP['cell_size'])
            engine = SnapEngine(index, threshold)
            engine.update_model(model)
            return engine

        return self._submit('snap engine build', build)
