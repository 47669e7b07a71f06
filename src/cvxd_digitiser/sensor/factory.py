"""
Sensor Factory
==============

Registry of sensor implementations keyed by an explicit type tag.

Example:
    @register_sensor("my_sensor")
    class MySensor(PixelDigiMatrix):
        ...

    sensor = create_sensor("my_sensor", layer=0, ladder=1, ...)
"""

import logging
from typing import Any, Callable, Dict, List, Type, TypeVar

from cvxd_digitiser.matrix.pixel_matrix import PixelDigiMatrix


logger = logging.getLogger(__name__)


SensorT = TypeVar("SensorT", bound=Type[PixelDigiMatrix])

_SENSOR_TYPES: Dict[str, Type[PixelDigiMatrix]] = {}


def register_sensor(kind: str) -> Callable[[SensorT], SensorT]:
    """Class decorator registering a sensor implementation under a tag."""

    def decorator(cls: SensorT) -> SensorT:
        if kind in _SENSOR_TYPES and _SENSOR_TYPES[kind] is not cls:
            raise ValueError(f"Sensor type '{kind}' already registered")
        _SENSOR_TYPES[kind] = cls
        return cls

    return decorator


def available_sensors() -> List[str]:
    return sorted(_SENSOR_TYPES)


def create_sensor(kind: str, **kwargs: Any) -> PixelDigiMatrix:
    """
    Build a sensor of a registered type.

    Args:
        kind: Registered type tag
        **kwargs: Constructor arguments of the sensor class

    Raises:
        ValueError: If no sensor is registered under kind
    """
    try:
        cls = _SENSOR_TYPES[kind]
    except KeyError:
        raise ValueError(
            f"Unknown sensor type '{kind}'. Available: {', '.join(available_sensors())}"
        ) from None
    return cls(**kwargs)
