"""AutoCAD colour resolution for parsed DXF entities.

Colours are returned as packed ``0xRRGGBB`` integers. Precedence follows the
DXF convention: true colour (group 420), then the entity's ACI index (group
62, where 0 = ByBlock and 256 = ByLayer), then the layer's colour. The ACI
palette itself comes from `ezdxf.colors`.
"""
from typing import Optional, Tuple

from ezdxf.colors import aci2rgb, int2rgb, rgb2int

BY_BLOCK = 0
BY_LAYER = 256
WHITE = 0xFFFFFF


def color_from_index(index: int) -> int:
    """RGB for an ACI index; indices outside 1..255 resolve to white."""
    if index < 1 or index > 255:
        return WHITE
    return rgb2int(aci2rgb(index))


def parse_true_color(value: int) -> int:
    """Keep the low 24 bits of a group-420 value."""
    return rgb2int(int2rgb(value))


def resolve_color(true_color: Optional[int], color_index: Optional[int], layer_color_index: int) -> Optional[int]:
    """Resolve an entity colour.

    Returns None when the entity is invisible (negative ACI index).
    """
    if true_color is not None:
        return parse_true_color(true_color)
    if color_index is not None:
        if color_index < 0:
            return None
        if color_index in (BY_BLOCK, BY_LAYER):
            return color_from_index(layer_color_index)
        return color_from_index(color_index)
    return color_from_index(layer_color_index)


def to_rgb(color: int) -> Tuple[int, int, int]:
    return tuple(int2rgb(color))
