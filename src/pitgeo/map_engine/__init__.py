"""
Map geometry engine: DXF parsing, vertex snapping, calibration and the
screen <-> world <-> geodetic coordinate pipeline.
"""
from pitgeo.map_engine.affine_matrix import AffineMatrix
from pitgeo.map_engine.calibration import Calibration, CalibrationPoint, solve_calibration
from pitgeo.map_engine.dxf import DxfParser, parse_dxf, parse_dxf_file
from pitgeo.map_engine.entities import (
    Bounds, GeometryModel, Insert, Layer, Line, Point, Polyline, RowSkipped, SnapResult, Vertex,
)
from pitgeo.map_engine.errors import (
    CalibrationError, DegenerateCalibrationError, MapEngineError, ParseError, SingularMatrixError,
)
from pitgeo.map_engine.projection import (
    CoordinateFormat, UtmCoordinate, format_coordinate, format_dms, format_lat_lng,
    lat_lng_to_utm, utm_to_lat_lng,
)
from pitgeo.map_engine.snap import SnapEngine
from pitgeo.map_engine.spatial_index import GridSpatialIndex, SpatialIndex, suggest_cell_size
from pitgeo.map_engine.transform_utils import (
    normalize_units, transform_entity, transform_model, transform_vertex, transform_vertices,
)
from pitgeo.map_engine.view_transform import (
    FLIP_Y, ViewState, fit_bounds, pan, screen_to_world, world_to_screen, zoom_about,
)
from pitgeo.map_engine.workers import MapWorker
