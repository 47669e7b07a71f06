"""
Pixel State Models
==================

This module defines the per-pixel and per-matrix status vocabulary of the
front-end emulation.

Pixel Lifecycle:
    IDLE → CHARGING → READY → DISCHARGING → IDLE

    - IDLE: no charge stored
    - CHARGING: charge below threshold, pixel never fired
    - READY: sampled charge at or above threshold (comparator fired)
    - DISCHARGING: fell back below threshold after firing, still holding charge

    OUT_OF_BOUNDS and GEOMETRY_ERROR are never stored in the matrix. They are
    returned by read accessors for addresses that do not exist.

Example:
    from cvxd_digitiser.models.pixel import PixelStatus

    if pixel.status == PixelStatus.READY:
        ...
"""

from dataclasses import dataclass
from enum import Enum


class PixelStatus(str, Enum):
    """
    Status of a single pixel at the last clock edge.

    Attributes:
        IDLE: No charge in the pixel
        CHARGING: Holding charge below threshold
        READY: Over threshold, fired
        DISCHARGING: Back below threshold after having fired
        OUT_OF_BOUNDS: Address outside the ladder grid
        GEOMETRY_ERROR: Address in a sensor tile that does not exist
    """

    IDLE = "IDLE"
    CHARGING = "CHARGING"
    READY = "READY"
    DISCHARGING = "DISCHARGING"
    OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
    GEOMETRY_ERROR = "GEOMETRY_ERROR"


# Statuses a clustering pass labels
ACTIVE_STATUSES = (PixelStatus.CHARGING, PixelStatus.READY, PixelStatus.DISCHARGING)


class MatrixStatus(str, Enum):
    """
    Matrix-level error flag.

    Index errors are recorded here instead of raised so that routine
    out-of-bounds contributions at sensor edges do not abort a tick.
    The caller decides whether to abort the event.
    """

    OK = "OK"
    PIXEL_NUMBER_ERROR = "PIXEL_NUMBER_ERROR"
    SEGMENT_NUMBER_ERROR = "SEGMENT_NUMBER_ERROR"


@dataclass(frozen=True, slots=True)
class PixelData:
    """
    Read-only snapshot of a pixel.

    Attributes:
        charge: Charge sampled by the comparator at the last clock edge
        time: Clock time the pixel last fired (last edge if it never fired)
        status: Pixel status at the last clock edge
        counter: Ticks left before the stored charge is fully drained
        collected: Charge deposited since the pixel was last IDLE
    """

    charge: float
    time: float
    status: PixelStatus
    counter: int = 0
    collected: float = 0.0

    @property
    def is_fired(self) -> bool:
        """True if the comparator is over threshold."""
        return self.status == PixelStatus.READY


@dataclass(frozen=True, slots=True)
class GridCoordinate:
    """Row/column address inside a ladder grid."""

    row: int
    col: int
