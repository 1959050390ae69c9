import pytest

from pitgeo.map_engine import (
    FLIP_Y, Bounds, CalibrationPoint, fit_bounds, lat_lng_to_utm, pan, screen_to_world,
    solve_calibration, world_to_screen, zoom_about,
)
from pitgeo.map_engine.projection import CoordinateFormat, format_coordinate

CONTROL = [
    CalibrationPoint(-0.661668, 114.975332, 1000.0, 2000.0),
    CalibrationPoint(-0.671668, 114.985332, 1500.0, 2600.0),
]
PIT = Bounds(900.0, 1600.0, 1900.0, 2700.0)


@pytest.fixture
def calibration():
    return solve_calibration(CONTROL)


def test_control_points_land_on_local_grid(calibration):
    assert calibration.zone == 50
    assert calibration.hemisphere == 'S'
    for p in CONTROL:
        assert calibration.to_local(p.lat, p.lng) == pytest.approx((p.local_x, p.local_y), abs=1e-6)


def test_tap_round_trip_to_gps(calibration):
    lat, lng = -0.666, 114.98
    lx, ly = calibration.to_local(lat, lng)

    view = fit_bounds(PIT, 1080.0, 1920.0, FLIP_Y)
    assert view is not None
    sx, sy = world_to_screen(lx, ly, view, FLIP_Y)
    assert 0.0 <= sx <= 1080.0 and 0.0 <= sy <= 1920.0

    wx, wy = screen_to_world(sx, sy, view, FLIP_Y)
    assert (wx, wy) == pytest.approx((lx, ly), abs=1e-6)
    back_lat, back_lng = calibration.to_geodetic(wx, wy)
    assert back_lat == pytest.approx(lat, abs=1e-6)
    assert back_lng == pytest.approx(lng, abs=1e-6)
    assert format_coordinate(back_lat, back_lng, CoordinateFormat.DMS) == format_coordinate(lat, lng, 'dms')
    assert format_coordinate(back_lat, back_lng, CoordinateFormat.LAT_LNG) == '-0.666000, 114.980000'


def test_tap_after_pan_and_zoom(calibration):
    view = fit_bounds(PIT, 1080.0, 1920.0, FLIP_Y)
    view = zoom_about(pan(view, 30.0, -40.0), 3.0, 540.0, 960.0)
    lx, ly = calibration.to_local(-0.667, 114.979)
    sx, sy = world_to_screen(lx, ly, view, FLIP_Y)
    lat, lng = calibration.to_geodetic(*screen_to_world(sx, sy, view, FLIP_Y))
    assert (lat, lng) == pytest.approx((-0.667, 114.979), abs=1e-6)


def test_composed_matrix_draws_utm_directly(calibration):
    # UTM -> local grid -> Y-down page in one matrix
    page = FLIP_Y @ calibration.matrix
    view = fit_bounds(PIT, 1080.0, 1920.0, FLIP_Y)
    utm = lat_lng_to_utm(-0.666, 114.98, force_zone=calibration.zone, force_hemisphere=calibration.hemisphere)
    lx, ly = calibration.to_local(-0.666, 114.98)
    assert world_to_screen(utm.easting, utm.northing, view, page) == pytest.approx(
        world_to_screen(lx, ly, view, FLIP_Y), abs=1e-6
    )
    assert screen_to_world(*world_to_screen(utm.easting, utm.northing, view, page), view, page) == pytest.approx(
        (utm.easting, utm.northing), abs=1e-4
    )
