"""
projection.py

WGS84 latitude/longitude <-> UTM conversion and coordinate display
formatting.

Both directions go through pyproj transformers between EPSG:4326 and the
WGS84 UTM zone CRSs (EPSG:326zz north, EPSG:327zz south). A point can be
projected into any zone (``force_zone``) and either false-northing
convention (``force_hemisphere``); two-point calibration relies on this to
keep both control points in one plane when they straddle a zone boundary.

Public functions:
- `lat_lng_to_utm(lat, lng, force_zone=None, force_hemisphere=None)` -> UtmCoordinate
- `utm_to_lat_lng(zone, easting, northing, southern=False)` -> (lat, lng)
- `utm_zone(lng)`, `utm_letter(lat)`, `utm_crs(zone, southern)`
- `format_lat_lng`, `format_dms`, `format_coordinate`
"""
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple
import math

from pyproj import Transformer

from pitgeo.map_engine.config import WGS84

_BANDS = 'CDEFGHJKLMNPQRSTUVWX'


class CoordinateFormat(Enum):
    UTM = 'utm'
    LAT_LNG = 'lat_lng'
    DMS = 'dms'


@dataclass(frozen=True)
class UtmCoordinate:
    zone: int
    letter: str
    easting: float
    northing: float

    def format(self) -> str:
        return '%d %s %.0f E %.0f N' % (self.zone, self.letter, self.easting, self.northing)


def utm_zone(lng: float) -> int:
    """UTM zone number (1..60) for a longitude in degrees."""
    zone = int(math.floor((lng + 180.0) / WGS84['zone_width_deg'])) + 1
    return min(max(zone, 1), 60)


def utm_letter(lat: float) -> str:
    """Latitude band letter; 'Z' outside the UTM range [-80, 84]."""
    if lat > 84.0 or lat < -80.0:
        return 'Z'
    if lat >= 72.0:
        return 'X'
    return _BANDS[int(math.floor((lat + 80.0) / 8.0))]


def utm_crs(zone: int, southern: bool) -> str:
    """EPSG code of the WGS84 UTM zone, e.g. 'EPSG:32750'."""
    return f"EPSG:{327 if southern else 326}{zone:02d}"


@lru_cache(maxsize=32)
def _forward_transformer(zone: int, southern: bool) -> Transformer:
    return Transformer.from_crs(WGS84['crs'], utm_crs(zone, southern), always_xy=True)


@lru_cache(maxsize=32)
def _inverse_transformer(zone: int, southern: bool) -> Transformer:
    return Transformer.from_crs(utm_crs(zone, southern), WGS84['crs'], always_xy=True)


def lat_lng_to_utm(
    lat: float,
    lng: float,
    force_zone: Optional[int] = None,
    force_hemisphere: Optional[str] = None,
) -> UtmCoordinate:
    """Project WGS84 ``lat``/``lng`` (degrees) to UTM.

    ``force_zone`` projects into that zone instead of the natural one.
    ``force_hemisphere`` ('N' or 'S') chooses the false northing regardless
    of the sign of ``lat``; a southern point forced 'N' gets a negative
    northing.
    """
    if force_hemisphere is not None and force_hemisphere not in ('N', 'S'):
        raise ValueError(f"force_hemisphere must be 'N' or 'S', got {force_hemisphere!r}")
    if force_zone is not None and not 1 <= force_zone <= 60:
        raise ValueError(f'force_zone must be in 1..60, got {force_zone}')

    zone = force_zone if force_zone is not None else utm_zone(lng)
    southern = force_hemisphere == 'S' if force_hemisphere is not None else lat < 0
    easting, northing = _forward_transformer(zone, southern).transform(lng, lat)
    return UtmCoordinate(zone, utm_letter(lat), easting, northing)


def utm_to_lat_lng(zone: int, easting: float, northing: float, southern: bool = False) -> Tuple[float, float]:
    """Inverse UTM; returns (lat, lng) in degrees."""
    if not 1 <= zone <= 60:
        raise ValueError(f'zone must be in 1..60, got {zone}')
    lng, lat = _inverse_transformer(zone, bool(southern)).transform(easting, northing)
    return lat, lng


def format_lat_lng(lat: float, lng: float) -> str:
    return '%.6f, %.6f' % (lat, lng)


def _to_dms(value: float) -> str:
    # round once in tenths of a second so 59.95" carries into the minute
    tenths = int(round(value * 36000))
    deg, rem = divmod(tenths, 36000)
    minutes, tenths = divmod(rem, 600)
    return '%d°%02d\'%04.1f"' % (deg, minutes, tenths / 10.0)


def format_dms(lat: float, lng: float) -> str:
    """e.g. ``0°39'42.0" S, 114°58'31.2" E``."""
    lat_hemi = 'N' if lat >= 0 else 'S'
    lng_hemi = 'E' if lng >= 0 else 'W'
    return f'{_to_dms(abs(lat))} {lat_hemi}, {_to_dms(abs(lng))} {lng_hemi}'


def format_coordinate(lat: float, lng: float, fmt: CoordinateFormat = CoordinateFormat.UTM) -> str:
    fmt = CoordinateFormat(fmt)
    if fmt is CoordinateFormat.UTM:
        return lat_lng_to_utm(lat, lng).format()
    if fmt is CoordinateFormat.LAT_LNG:
        return format_lat_lng(lat, lng)
    return format_dms(lat, lng)
