"""
view_transform.py

Screen <-> world conversion for the map canvas.

Pipeline (forward):

    world (UTM / drawing units) --matrix--> page pixel --scale, offset--> screen

    screen = pixel * scale + offset

and the exact inverse for taps. Nothing here owns view state: every
function takes the current `ViewState` and returns values or a new state.

DXF drawings have Y up while screens have Y down; pass `FLIP_Y` (or a
calibration matrix composed with it) as the matrix for those.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math

from pitgeo.map_engine.affine_matrix import AffineMatrix
from pitgeo.map_engine.config import VIEW
from pitgeo.map_engine.entities import Bounds

logger = logging.getLogger(__name__)

IDENTITY = AffineMatrix.identity()
FLIP_Y = AffineMatrix(1.0, 0.0, 0.0, -1.0, 0.0, 0.0)


@dataclass(frozen=True)
class ViewState:
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self):
        if not math.isfinite(self.scale) or self.scale == 0.0:
            raise ValueError(f'View scale must be non-zero and finite, got {self.scale}')
        if not (math.isfinite(self.offset_x) and math.isfinite(self.offset_y)):
            raise ValueError(f'View offset must be finite, got ({self.offset_x}, {self.offset_y})')


def world_to_screen(wx: float, wy: float, view: ViewState, matrix: AffineMatrix = IDENTITY) -> Tuple[float, float]:
    px, py = matrix.map(wx, wy)
    return px * view.scale + view.offset_x, py * view.scale + view.offset_y


def screen_to_world(sx: float, sy: float, view: ViewState, matrix: AffineMatrix = IDENTITY) -> Tuple[float, float]:
    px = (sx - view.offset_x) / view.scale
    py = (sy - view.offset_y) / view.scale
    return matrix.map_inverse(px, py)


def clamp_scale(scale: float) -> float:
    return min(max(scale, VIEW['min_scale']), VIEW['max_scale'])


def pan(view: ViewState, dx: float, dy: float) -> ViewState:
    """Shift the view by a screen-pixel delta."""
    return ViewState(view.scale, view.offset_x + dx, view.offset_y + dy)


def zoom_about(view: ViewState, factor: float, focus_x: float, focus_y: float) -> ViewState:
    """Multiply the scale by ``factor`` keeping the screen focus point fixed.

    The resulting scale is clamped to ``[VIEW['min_scale'], VIEW['max_scale']]``;
    when clamping leaves the scale unchanged the same state is returned.
    """
    new_scale = clamp_scale(view.scale * factor)
    if new_scale == view.scale:
        return view
    ratio = new_scale / view.scale
    return ViewState(
        new_scale,
        focus_x - (focus_x - view.offset_x) * ratio,
        focus_y - (focus_y - view.offset_y) * ratio,
    )


def double_tap_zoom(view: ViewState, focus_x: float, focus_y: float) -> ViewState:
    return zoom_about(view, VIEW['double_tap_zoom'], focus_x, focus_y)


def zoom_out(view: ViewState, focus_x: float, focus_y: float) -> ViewState:
    return zoom_about(view, 1.0 / VIEW['double_tap_zoom'], focus_x, focus_y)


def fit_bounds(
    bounds: Bounds,
    canvas_w: float,
    canvas_h: float,
    matrix: AffineMatrix = IDENTITY,
    padding: float = VIEW['zoom_all_padding'],
) -> Optional[ViewState]:
    """View that centres ``bounds`` on the canvas with ``padding`` pixels free.

    The world box is mapped through ``matrix`` first, so rotated or flipped
    pipelines fit their page-space extent. Returns None for a zero-size box
    or canvas.
    """
    corners = [
        matrix.map(x, y)
        for x in (bounds.min_x, bounds.max_x)
        for y in (bounds.min_y, bounds.max_y)
    ]
    xs = [c[0] for c in corners]
    ys = [c[1] for c in corners]
    page_w = max(xs) - min(xs)
    page_h = max(ys) - min(ys)
    avail_w = canvas_w - 2 * padding
    avail_h = canvas_h - 2 * padding
    if page_w <= 0 or page_h <= 0 or avail_w <= 0 or avail_h <= 0:
        logger.warning(
            'fit_bounds: invalid dimensions page=%gx%g canvas=%gx%g padding=%g',
            page_w, page_h, canvas_w, canvas_h, padding,
        )
        return None

    scale = clamp_scale(min(avail_w / page_w, avail_h / page_h))
    cx = (max(xs) + min(xs)) / 2.0
    cy = (max(ys) + min(ys)) / 2.0
    view = ViewState(scale, canvas_w / 2.0 - cx * scale, canvas_h / 2.0 - cy * scale)
    logger.debug('fit_bounds: %s for canvas %gx%g', view, canvas_w, canvas_h)
    return view
