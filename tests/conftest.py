"""
Test Configuration
==================

Pytest fixtures and test configuration for the CVXD digitiser.

The default test ladder is 8 rows x 16 columns of 25 um pixels, split in
two 8 x 8 sensor tiles along its length.
"""

import pytest

from cvxd_digitiser.geometry.cellid import DEFAULT_ENCODING


@pytest.fixture
def sensor_kwargs():
    """Constructor arguments of the default test ladder."""
    return {
        "layer": 0,
        "ladder": 1,
        "xsegment_number": 1,
        "ysegment_number": 2,
        "ladder_length": 0.4,
        "ladder_width": 0.2,
        "thickness": 0.05,
        "pixel_size_x": 0.025,
        "pixel_size_y": 0.025,
        "cell_id_encoding": DEFAULT_ENCODING,
        "barrel_id": 1,
        "threshold": 200.0,
        "fe_slope": 50.0,
        "start_time": 0.0,
        "time_step": 1.0,
    }


@pytest.fixture
def make_sensor(sensor_kwargs):
    """Factory building an HKBaseSensor with overridable arguments."""
    from cvxd_digitiser.sensor.hk_sensor import HKBaseSensor

    def _make(**overrides):
        return HKBaseSensor(**{**sensor_kwargs, **overrides})

    return _make


@pytest.fixture
def sensor(make_sensor):
    """Default test ladder, clustering per sensor tile."""
    return make_sensor()


@pytest.fixture
def run_ticks():
    """Drive a sensor through n ticks; deposits maps tick -> [(row, col, q)]."""

    def _run(sensor, n_ticks, deposits=None, flush=False):
        deposits = deposits or {}
        hits_per_tick = []
        for tick in range(n_ticks):
            for row, col, charge in deposits.get(tick, []):
                sensor.update_pixel(row, col, charge)
            sensor.clock_sync()
            hits = []
            sensor.build_hits(hits)
            hits_per_tick.append(hits)
        if flush:
            hits = []
            sensor.flush(hits)
            hits_per_tick.append(hits)
        return hits_per_tick

    return _run


@pytest.fixture
def small_settings():
    """Settings for one layer of two default test ladders."""
    from cvxd_digitiser.config import (
        FrontEndConfig,
        LayerConfig,
        Settings,
    )

    return Settings(
        layers=[
            LayerConfig(
                ladder_number=2,
                ladder_length=0.4,
                ladder_width=0.2,
                thickness=0.05,
                xsegment_number=1,
                ysegment_number=2,
            )
        ],
        frontend=FrontEndConfig(
            threshold=200.0,
            fe_slope=50.0,
            start_time=0.0,
            time_step=1.0,
            ticks=16,
        ),
    )
