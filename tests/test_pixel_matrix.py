"""
Pixel Matrix Tests
==================

Tests for ladder geometry, the front-end charge model and read accessors.
"""

import numpy as np
import pytest

from cvxd_digitiser.matrix.pixel_matrix import GeometryError
from cvxd_digitiser.models.pixel import MatrixStatus, PixelStatus


class TestGeometry:
    """Tests for ladder tiling and coordinate transforms."""

    def test_grid_dimensions(self, sensor):
        assert sensor.ladder_rows == 8
        assert sensor.ladder_cols == 16
        assert sensor.sensor_rows == 8
        assert sensor.sensor_cols == 8
        assert sensor.segnum_x == 1
        assert sensor.segnum_y == 2

    def test_segments_must_tile(self, make_sensor):
        with pytest.raises(GeometryError):
            make_sensor(xsegment_number=3)
        with pytest.raises(GeometryError):
            make_sensor(ysegment_number=5)

    def test_zero_segments_rejected(self, make_sensor):
        with pytest.raises(GeometryError):
            make_sensor(xsegment_number=0)

    def test_front_end_parameters_validated(self, make_sensor):
        with pytest.raises(ValueError):
            make_sensor(threshold=0.0)
        with pytest.raises(ValueError):
            make_sensor(time_step=0.0)

    def test_column_round_trip(self, sensor):
        for col in range(sensor.ladder_cols):
            assert sensor.y_to_pixel_col(sensor.pixel_col_to_y(col)) == col

    def test_y_round_trip_near_bin_edges(self, sensor):
        pitch = sensor.pixel_size_y
        for k in range(sensor.ladder_cols + 1):
            edge = -sensor.half_length + k * pitch
            for eps, expected in ((1e-9, k), (-1e-9, k - 1)):
                y = edge + eps
                if not -sensor.half_length <= y < sensor.half_length:
                    continue
                col = sensor.y_to_pixel_col(y)
                assert col == expected
                y_back = sensor.pixel_col_to_y(col)
                assert sensor.y_to_pixel_col(y_back) == col
                assert abs(y_back - y) <= 0.5 * pitch + 1e-9

    def test_y_round_trip_across_ladder(self, sensor):
        for y in np.linspace(-sensor.half_length, sensor.half_length, 401)[:-1]:
            col = sensor.y_to_pixel_col(float(y))
            assert 0 <= col < sensor.ladder_cols
            assert sensor.y_to_pixel_col(sensor.pixel_col_to_y(col)) == col

    def test_row_round_trip(self, sensor):
        for row in range(sensor.ladder_rows):
            assert sensor.x_to_pixel_row(sensor.pixel_row_to_x(row)) == row

    def test_ladder_centred_frame(self, sensor):
        assert sensor.pixel_row_to_x(0) == pytest.approx(0.0125 - 0.1)
        assert sensor.x_to_pixel_row(-0.1) == 0

    def test_sensor_to_ladder(self, sensor):
        assert sensor.sensor_col_to_ladder_col(1, 2) == 10
        assert sensor.ladder_to_segment(3, 10) == (0, 1)
        assert sensor.segment_index(0, 1) == 1


class TestFrontEnd:
    """Tests for charge integration and clock edges."""

    def test_reset_is_quiet(self, sensor):
        sensor.reset()
        assert not sensor.is_active()
        sensor.reset()
        assert not sensor.is_active()
        assert sensor.status == MatrixStatus.OK

    def test_update_sets_counter(self, sensor):
        sensor.update_pixel(3, 5, 500.0)
        assert sensor.get_pixel(3, 5).counter == 10
        assert sensor.is_active()

    def test_over_threshold_fires(self, sensor):
        sensor.update_pixel(3, 5, 500.0)
        sensor.clock_sync()
        pixel = sensor.get_pixel(3, 5)
        assert pixel.status == PixelStatus.READY
        assert pixel.charge == 500.0
        assert pixel.time == 0.0
        assert pixel.counter == 9
        assert pixel.is_fired

    def test_under_threshold_charges(self, sensor):
        sensor.update_pixel(3, 5, 100.0)
        sensor.clock_sync()
        assert sensor.check_status(3, 5, PixelStatus.CHARGING)

    def test_collected_charge_does_not_decay(self, sensor):
        sensor.update_pixel(3, 5, 300.0)
        sensor.clock_sync()
        sensor.clock_sync()
        sensor.update_pixel(3, 5, 300.0)
        sensor.clock_sync()
        pixel = sensor.get_pixel(3, 5)
        assert pixel.charge == 500.0
        assert pixel.collected == 600.0

    def test_collected_charge_cleared_at_idle(self, sensor):
        sensor.update_pixel(3, 5, 120.0)
        for _ in range(4):
            sensor.clock_sync()
        assert sensor.get_pixel(3, 5).collected == 0.0

    def test_release_collected(self, sensor):
        sensor.update_pixel(3, 5, 500.0)
        sensor.clock_sync()
        sensor.release_collected(3, 5)
        sensor.release_collected(99, 0)
        assert sensor.get_pixel(3, 5).collected == 0.0
        assert sensor.get_pixel(3, 5).charge == 500.0

    def test_linear_discharge(self, sensor):
        sensor.update_pixel(3, 5, 500.0)
        samples = []
        for _ in range(8):
            sensor.clock_sync()
            samples.append(sensor.get_pixel(3, 5).charge)
        assert samples == [500.0, 450.0, 400.0, 350.0, 300.0, 250.0, 200.0, 150.0]
        assert sensor.check_status(3, 5, PixelStatus.DISCHARGING)
        # fire time sticks to the rising edge
        assert sensor.get_pixel(3, 5).time == 0.0

    def test_drains_to_idle(self, sensor):
        sensor.update_pixel(3, 5, 120.0)
        for _ in range(4):
            sensor.clock_sync()
        assert sensor.check_status(3, 5, PixelStatus.IDLE)
        sensor.clock_sync()
        assert not sensor.is_active()

    def test_clock_advances(self, sensor):
        sensor.clock_sync()
        sensor.clock_sync()
        assert sensor.clock_time == 2.0

    def test_reset_clears_state(self, sensor):
        sensor.update_pixel(3, 5, 500.0)
        sensor.clock_sync()
        sensor.reset()
        assert sensor.check_status(3, 5, PixelStatus.IDLE)
        assert sensor.clock_time == 0.0
        assert sensor.active_positions().size == 0


class TestAddressing:
    """Tests for out-of-range handling."""

    def test_out_of_bounds_update_counted(self, sensor):
        sensor.update_pixel(8, 0, 300.0)
        sensor.update_pixel(0, -1, 300.0)
        assert sensor.out_of_bounds_count == 2
        assert sensor.status == MatrixStatus.PIXEL_NUMBER_ERROR
        assert not sensor.is_active()

    def test_out_of_bounds_read(self, sensor):
        assert sensor.get_pixel(-1, 0).status == PixelStatus.OUT_OF_BOUNDS

    def test_bad_segment(self, sensor):
        pixel = sensor.get_sensor_pixel(1, 0, 0, 0)
        assert pixel.status == PixelStatus.GEOMETRY_ERROR
        assert sensor.status == MatrixStatus.SEGMENT_NUMBER_ERROR

    def test_sensor_pixel_maps_to_ladder(self, sensor):
        sensor.update_pixel(2, 9, 500.0)
        sensor.clock_sync()
        assert sensor.check_sensor_status(0, 1, 2, 1, PixelStatus.READY)
        assert sensor.check_status_on_sensor(0, 1, PixelStatus.READY)
        assert not sensor.check_status_on_sensor(0, 0, PixelStatus.READY)

    def test_charge_map(self, sensor):
        sensor.update_pixel(2, 9, 500.0)
        sensor.clock_sync()
        charge = sensor.charge_map()
        assert charge.shape == (8, 16)
        assert charge[2, 9] == 500.0
