"""pitgeo: map geometry and coordinate engine for mine-site field tools."""

__version__ = '0.1.0'
