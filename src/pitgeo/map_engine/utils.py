"""
utils.py

Small helpers shared by the map engine modules: a robust exception logger,
vertex-to-array conversion for the spatial index, and numeric parsing
helpers used by the DXF reader.

The public helpers:
- `safe_log_exception(msg, exc, **ctx)` : logs exceptions robustly
- `vertices_to_array(vertices)` : (N, 2) float array of x, y
- `parse_float(value)` / `parse_int(value)` : strict DXF value parsing

"""

from typing import Any, Iterable, Optional
import math
import sys
import logging
import numpy as np

logger = logging.getLogger(__name__)


def safe_log_exception(msg: str, exc: Exception, **ctx: Any) -> None:
    """Log an exception robustly.

    Logs at error level with the traceback of ``exc`` attached, so it also
    works outside an ``except`` block (e.g. in a future's done callback). If
    logging fails for any reason, falls back to writing a compact message to
    `sys.stderr`.
    """
    try:
        if ctx:
            ctx_s = ' | '.join(f"{k}={v!r}" for k, v in ctx.items())
            logger.error('%s | %s | %s', msg, exc, ctx_s, exc_info=exc)
        else:
            logger.error('%s | %s', msg, exc, exc_info=exc)
    except Exception:
        try:
            sys.stderr.write(f'LOGGING FAILURE: {msg} {exc}\n')
        except Exception:
            pass


def vertices_to_array(vertices: Iterable) -> np.ndarray:
    """Return an (N, 2) float64 array of the x, y of ``vertices``.

    Accepts any iterable of objects exposing ``x`` and ``y`` attributes.
    """
    coords = [(v.x, v.y) for v in vertices]
    if not coords:
        return np.zeros((0, 2), dtype=np.float64)
    return np.asarray(coords, dtype=np.float64)


def parse_float(value: str) -> Optional[float]:
    """Parse a DXF real value; returns None when malformed or not finite."""
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def parse_int(value: str) -> Optional[int]:
    """Parse a DXF integer value; returns None when malformed.

    Some writers emit integer groups as reals (``"7.0"``); those are accepted
    when integral.
    """
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    f = parse_float(value)
    if f is None or f != int(f):
        return None
    return int(f)
