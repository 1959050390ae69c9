"""Exception types raised by the map geometry engine.

Recoverable per-record problems are not exceptions; see
:class:`pitgeo.map_engine.entities.RowSkipped`.
"""


class MapEngineError(Exception):
    """Base exception raised by the map geometry engine."""


class ParseError(MapEngineError):
    """Raised when a DXF stream cannot be read or holds no DXF structure."""


class CalibrationError(MapEngineError, ValueError):
    """Raised for invalid calibration input."""


class DegenerateCalibrationError(CalibrationError):
    """Raised when control points coincide or are too few to fix a transform."""


class SingularMatrixError(CalibrationError):
    """Raised when an affine matrix has no inverse."""
