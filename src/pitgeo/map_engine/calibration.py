"""
calibration.py

Solve the transform from real-world UTM coordinates to a mine's local grid
(drawing space) from one or two surveyed control points.

Each control point pairs a GPS fix (lat, lng) with the known local X, Y of
the same survey marker. Points are first projected to UTM in the zone and
hemisphere of the first point so both live in one plane, then:

- one point: pure translation (no rotation, unit scale). This is a degraded
  mode; any rotation or scale difference between grid and UTM is ignored.
- two points: similarity transform (uniform scale + rotation + translation)
  from the complex ratio ``m = (l2 - l1) / (w2 - w1)``.

The result is an `AffineMatrix` mapping UTM -> local, with its inverse.
"""
from dataclasses import dataclass
from typing import Sequence, Tuple
import cmath
import logging
import math

from pitgeo.map_engine.affine_matrix import AffineMatrix
from pitgeo.map_engine.config import AFFINE
from pitgeo.map_engine.errors import CalibrationError, DegenerateCalibrationError
from pitgeo.map_engine.projection import lat_lng_to_utm, utm_to_lat_lng

logger = logging.getLogger(__name__)

MODE_TRANSLATION = 'translation'
MODE_SIMILARITY = 'similarity'


@dataclass(frozen=True)
class CalibrationPoint:
    lat: float
    lng: float
    local_x: float
    local_y: float

    def validate(self) -> None:
        """Raise CalibrationError for non-finite or out-of-range values."""
        values = (self.lat, self.lng, self.local_x, self.local_y)
        if not all(math.isfinite(v) for v in values):
            raise CalibrationError(f'Calibration point has non-finite values: {self!r}')
        if abs(self.lat) > 90.0:
            raise CalibrationError(f'Latitude out of range: {self.lat}')
        if abs(self.lng) > 180.0:
            raise CalibrationError(f'Longitude out of range: {self.lng}')


@dataclass(frozen=True)
class Calibration:
    """Solved calibration: UTM (zone/hemisphere fixed) -> local grid."""
    matrix: AffineMatrix
    zone: int
    hemisphere: str
    mode: str

    @property
    def scale(self) -> float:
        return math.hypot(self.matrix.a, self.matrix.c)

    @property
    def rotation_degrees(self) -> float:
        return math.degrees(math.atan2(self.matrix.c, self.matrix.a))

    def to_local(self, lat: float, lng: float) -> Tuple[float, float]:
        utm = lat_lng_to_utm(lat, lng, force_zone=self.zone, force_hemisphere=self.hemisphere)
        return self.matrix.map(utm.easting, utm.northing)

    def to_geodetic(self, x: float, y: float) -> Tuple[float, float]:
        """Local grid -> (lat, lng)."""
        easting, northing = self.matrix.map_inverse(x, y)
        return utm_to_lat_lng(self.zone, easting, northing, southern=self.hemisphere == 'S')


def solve_calibration(points: Sequence[CalibrationPoint]) -> Calibration:
    """Solve a calibration from one or two control points."""
    points = list(points)
    if not 1 <= len(points) <= 2:
        raise CalibrationError(f'Calibration needs 1 or 2 points, got {len(points)}')
    for p in points:
        p.validate()

    p1 = points[0]
    w1 = lat_lng_to_utm(p1.lat, p1.lng)
    zone = w1.zone
    hemisphere = 'S' if p1.lat < 0 else 'N'

    if len(points) == 1:
        matrix = AffineMatrix.translation(p1.local_x - w1.easting, p1.local_y - w1.northing)
        logger.info('Calibration: single point translation in zone %d%s', zone, hemisphere)
        return Calibration(matrix, zone, hemisphere, MODE_TRANSLATION)

    p2 = points[1]
    w2 = lat_lng_to_utm(p2.lat, p2.lng, force_zone=zone, force_hemisphere=hemisphere)
    wz1 = complex(w1.easting, w1.northing)
    wz2 = complex(w2.easting, w2.northing)
    lz1 = complex(p1.local_x, p1.local_y)
    lz2 = complex(p2.local_x, p2.local_y)

    sep = AFFINE['min_control_separation']
    if abs(wz2 - wz1) < sep:
        raise DegenerateCalibrationError('Calibration points coincide in geodetic space')
    if abs(lz2 - lz1) < sep:
        raise DegenerateCalibrationError('Calibration points coincide in local space')

    m = (lz2 - lz1) / (wz2 - wz1)
    t = lz1 - m * wz1
    matrix = AffineMatrix(m.real, -m.imag, m.imag, m.real, t.real, t.imag)
    logger.info(
        'Calibration: two point similarity in zone %d%s (scale=%.6f rotation=%.4f deg)',
        zone, hemisphere, abs(m), math.degrees(cmath.phase(m)),
    )
    return Calibration(matrix, zone, hemisphere, MODE_SIMILARITY)
