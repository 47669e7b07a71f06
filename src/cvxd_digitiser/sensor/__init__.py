"""
Sensor Module
=============

Sensor implementations driving the pixel matrix through its tick cycle.

Components:
    - HKBaseSensor: Hoshen-Kopelman clustering sensor ("hk_base")
    - create_sensor / register_sensor: Factory keyed by type tag
"""

from cvxd_digitiser.sensor.factory import available_sensors, create_sensor, register_sensor
from cvxd_digitiser.sensor.hk_sensor import (
    ClusterFilter,
    HKBaseSensor,
    SensorPhase,
    passthrough_cluster,
)

__all__ = [
    "available_sensors",
    "create_sensor",
    "register_sensor",
    "ClusterFilter",
    "HKBaseSensor",
    "SensorPhase",
    "passthrough_cluster",
]
