# -*- coding: utf-8 -*-

"""
map_engine/config.py

This module centralizes the tuning constants of the map geometry engine so the
parser, the snap engine, the view pipeline and the projection code all agree
on the same numbers.

Contents:
---------
1. SNAP:
   - Default snap threshold (drawing units, normally metres) and the default
     grid cell size of the spatial index.

2. DXF:
   - Limits and tessellation settings used while decoding DXF files.

3. VIEW:
   - Scale clamps and padding used by the pan/zoom helpers.

4. WGS84:
   - Geographic CRS and zone width used to pick UTM zones.

5. AFFINE:
   - Relative determinant tolerance below which a matrix is singular.

6. INSUNITS:
   - DXF ``$INSUNITS`` codes mapped to metres per drawing unit.

Usage:
------
    from pitgeo.map_engine.config import SNAP, DXF

    threshold = SNAP['threshold']
"""

# ───────────────────────────────────────────────────────────────────────────────
# 1) SNAPPING
# ───────────────────────────────────────────────────────────────────────────────
SNAP = {
    'threshold': 2.0,           # max distance for a snap hit (inclusive)
    'cell_size': 5.0,           # grid cell edge; ~5 m cells suit mine survey densities
}

# ───────────────────────────────────────────────────────────────────────────────
# 2) DXF DECODING
# ───────────────────────────────────────────────────────────────────────────────
DXF = {
    'max_insert_depth': 50,             # nested INSERT expansion limit
    'circle_segments': 36,              # CIRCLE -> closed polyline
    'arc_degrees_per_segment': 10.0,    # ARC tessellation density
    'min_arc_segments': 4,
    'encodings': ('utf-8', 'cp1252'),   # tried in order for byte input
    'default_layer': '0',
    'default_layer_color': 7,           # ACI white
    'binary_sentinel': b'AutoCAD Binary DXF',
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) VIEWPORT
# ───────────────────────────────────────────────────────────────────────────────
VIEW = {
    'min_scale': 1e-7,
    'max_scale': 20.0,
    'zoom_all_padding': 40.0,   # screen pixels kept free around a fitted extent
    'double_tap_zoom': 1.5,
}

# ───────────────────────────────────────────────────────────────────────────────
# 4) WGS84 / UTM
# ───────────────────────────────────────────────────────────────────────────────
WGS84 = {
    'crs': 'EPSG:4326',                 # geographic lat/lng source CRS
    'zone_width_deg': 6.0,
}

# ───────────────────────────────────────────────────────────────────────────────
# 5) AFFINE
# ───────────────────────────────────────────────────────────────────────────────
AFFINE = {
    'singular_tolerance': 1e-12,        # |det| relative to the squared row scale
    'min_control_separation': 1e-9,     # metres; closer control points are coincident
}

# ───────────────────────────────────────────────────────────────────────────────
# 6) DXF $INSUNITS -> metres per unit
# ───────────────────────────────────────────────────────────────────────────────
INSUNITS = {
    0: None,            # unitless
    1: 0.0254,          # inches
    2: 0.3048,          # feet
    3: 1609.344,        # miles
    4: 0.001,           # millimetres
    5: 0.01,            # centimetres
    6: 1.0,             # metres
    7: 1000.0,          # kilometres
    8: 2.54e-8,         # microinches
    9: 2.54e-5,         # mils
    10: 0.9144,         # yards
    14: 0.1,            # decimetres
    15: 10.0,           # decametres
    16: 100.0,          # hectometres
    21: 1200.0 / 3937.0,    # US survey feet
}

UNIT_NAMES = {
    'in': 1,
    'ft': 2,
    'mi': 3,
    'mm': 4,
    'cm': 5,
    'm': 6,
    'km': 7,
    'yd': 10,
    'dm': 14,
    'us_ft': 21,
}
