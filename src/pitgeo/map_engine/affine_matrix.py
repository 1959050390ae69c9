"""
affine_matrix.py

2D affine transform paired with its precomputed inverse.

Coefficient layout:

    x' = a * x + b * y + e
    y' = c * x + d * y + f

Internally the forward and inverse transforms are `affine.Affine` objects
(the same library the rest of the package uses for pixel/geo transforms);
note that `affine.Affine` orders its six arguments row-wise, so this class
maps to ``Affine(a, b, e, c, d, f)``.

A matrix is singular when its determinant magnitude is at or below
``AFFINE['singular_tolerance']`` times the larger squared row norm of its
linear part, so the test is independent of drawing scale. A singular matrix
cannot be constructed: `SingularMatrixError` is raised. There is no identity
fallback.
"""
from dataclasses import dataclass, field
from typing import Sequence, Tuple
import logging
import math

import numpy as np
from affine import Affine

from pitgeo.map_engine.config import AFFINE
from pitgeo.map_engine.errors import DegenerateCalibrationError, SingularMatrixError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AffineMatrix:
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0
    _forward: Affine = field(init=False, repr=False, compare=False)
    _inverse: Affine = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        coeffs = (self.a, self.b, self.c, self.d, self.e, self.f)
        if not all(math.isfinite(v) for v in coeffs):
            raise SingularMatrixError(f'Affine coefficients must be finite: {coeffs}')
        det = self.a * self.d - self.b * self.c
        scale = max(self.a * self.a + self.b * self.b, self.c * self.c + self.d * self.d)
        if abs(det) <= AFFINE['singular_tolerance'] * scale:
            raise SingularMatrixError(f'Affine matrix is singular (det={det:g})')
        forward = Affine(self.a, self.b, self.e, self.c, self.d, self.f)
        object.__setattr__(self, '_forward', forward)
        object.__setattr__(self, '_inverse', ~forward)

    # -- constructors --------------------------------------------------------

    @classmethod
    def identity(cls) -> 'AffineMatrix':
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float) -> 'AffineMatrix':
        return cls(1.0, 0.0, 0.0, 1.0, tx, ty)

    @classmethod
    def similarity(cls, scale: float, rotation_deg: float, tx: float = 0.0, ty: float = 0.0) -> 'AffineMatrix':
        """Uniform scale and counter-clockwise rotation, then translation."""
        rad = math.radians(rotation_deg)
        sc = scale * math.cos(rad)
        ss = scale * math.sin(rad)
        return cls(sc, -ss, ss, sc, tx, ty)

    @classmethod
    def from_control_points(
        cls,
        src: Sequence[Tuple[float, float]],
        dst: Sequence[Tuple[float, float]],
    ) -> 'AffineMatrix':
        """Least-squares affine mapping ``src`` points onto ``dst`` points.

        Needs at least three pairs that are not collinear in ``src``. More
        pairs give an overdetermined fit; residuals are logged at debug.
        Source points are centred on their mean before solving so that
        UTM-sized coordinates do not cost precision.
        """
        src_xy = np.asarray(src, dtype=float).reshape(-1, 2)
        dst_xy = np.asarray(dst, dtype=float).reshape(-1, 2)
        if len(src_xy) != len(dst_xy):
            raise DegenerateCalibrationError(
                f'Control point count mismatch: {len(src_xy)} source vs {len(dst_xy)} target'
            )
        if len(src_xy) < 3:
            raise DegenerateCalibrationError(f'Need at least 3 control points, got {len(src_xy)}')

        mean = src_xy.mean(axis=0)
        centred = src_xy - mean
        design = np.column_stack([centred, np.ones(len(centred))])
        coeffs, residuals, rank, _ = np.linalg.lstsq(design, dst_xy, rcond=None)
        if rank < 3:
            raise DegenerateCalibrationError('Control points are collinear')

        a, b, e0 = coeffs[:, 0]
        c, d, f0 = coeffs[:, 1]
        mx, my = mean
        logger.debug('Affine fit from %d control points, residuals=%s', len(src_xy), residuals)
        return cls(
            float(a), float(b), float(c), float(d),
            float(e0 - a * mx - b * my), float(f0 - c * mx - d * my),
        )

    @classmethod
    def from_affine(cls, t: Affine) -> 'AffineMatrix':
        return cls(t.a, t.b, t.d, t.e, t.c, t.f)

    # -- properties ----------------------------------------------------------

    @property
    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    @property
    def coefficients(self) -> Tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.d, self.e, self.f)

    def to_affine(self) -> Affine:
        return self._forward

    # -- mapping -------------------------------------------------------------

    def map(self, x: float, y: float) -> Tuple[float, float]:
        return self._forward * (x, y)

    def map_inverse(self, x: float, y: float) -> Tuple[float, float]:
        return self._inverse * (x, y)

    def inverse(self) -> 'AffineMatrix':
        return AffineMatrix.from_affine(self._inverse)

    def __matmul__(self, other: 'AffineMatrix') -> 'AffineMatrix':
        """``(self @ other).map(p) == self.map(*other.map(p))``."""
        if not isinstance(other, AffineMatrix):
            return NotImplemented
        return AffineMatrix.from_affine(self._forward * other._forward)

    def almost_equals(self, other: 'AffineMatrix', tol: float = 1e-9) -> bool:
        return all(abs(p - q) <= tol for p, q in zip(self.coefficients, other.coefficients))
