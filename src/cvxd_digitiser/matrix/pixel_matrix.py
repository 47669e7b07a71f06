"""
Pixel Digitisation Matrix
=========================

Simulation of the analog front end of an RD53A-like readout chip.

The matrix covers one ladder. The ladder is divided into a grid of
x_segnum × y_segnum sensor tiles, each s_rows × s_columns pixels:

    l_rows    = x_segnum * s_rows
    l_columns = y_segnum * s_columns

Each pixel collects charge and drains it linearly through the front-end
feedback. A single comparator threshold decides whether the pixel fired.
The matrix is driven by an agent that pushes charge with update_pixel()
and advances time with clock_sync(), once per clock tick.

Clock Edge (clock_sync):
    For every pixel holding charge or pending decay:
        1. counter -= 1 (floored at zero)
        2. sample the charge and recompute the status
               charge >= thr       → READY
               0 < charge < thr    → CHARGING (DISCHARGING if it had fired)
               charge == 0         → IDLE
        3. charge -= slope * step (floored at zero)
    Then the clock advances by one step.

Storage:
    All per-pixel state lives in flat numpy arrays owned by the matrix and
    indexed by LinearPosition = row * l_columns + col.

    The collected charge of a pixel is the sum of every update_pixel()
    contribution since it was last IDLE. It never decays, so hits carry
    the full deposited charge.

Error Handling:
    Only geometry mismatches at construction raise (GeometryError).
    Out-of-range pixel or segment addresses are recorded in the matrix
    status and in the returned PixelData status.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from cvxd_digitiser.geometry.grid import GridPosition
from cvxd_digitiser.models.hit import SegmentDigiHitList
from cvxd_digitiser.models.pixel import MatrixStatus, PixelData, PixelStatus


logger = logging.getLogger(__name__)


# Codes stored in the status arena. OUT_OF_BOUNDS and GEOMETRY_ERROR are
# only ever returned by accessors.
_IDLE, _CHARGING, _READY, _DISCHARGING = 0, 1, 2, 3
_STATUS_BY_CODE = (
    PixelStatus.IDLE,
    PixelStatus.CHARGING,
    PixelStatus.READY,
    PixelStatus.DISCHARGING,
)
_CODE_BY_STATUS = {status: code for code, status in enumerate(_STATUS_BY_CODE)}

# Tolerance when converting ladder extents into pixel counts
_GRID_EPSILON = 1e-9


class GeometryError(ValueError):
    """Segment counts or pixel pitch incompatible with the ladder dimensions."""


def _pixel_count(extent: float, pitch: float) -> int:
    return int(math.floor(extent / pitch + _GRID_EPSILON))


class PixelDigiMatrix(ABC):
    """
    Matrix of pixels for one ladder of a vertex barrel layer.

    Subclasses implement build_hits() to turn fired pixels into hits.

    Attributes:
        status: Matrix-level index error flag
        clock_time: Time of the next clock edge
        out_of_bounds_count: Charge contributions dropped since reset()

    Example:
        matrix = SomeSensor(layer=0, ladder=3, xsegment_number=1, ...)
        matrix.update_pixel(3, 5, 500.0)
        matrix.clock_sync()
        matrix.get_pixel(3, 5).status     # PixelStatus.READY
    """

    def __init__(
        self,
        layer: int,
        ladder: int,
        xsegment_number: int,
        ysegment_number: int,
        ladder_length: float,
        ladder_width: float,
        thickness: float,
        pixel_size_x: float,
        pixel_size_y: float,
        cell_id_encoding: str,
        barrel_id: int,
        threshold: float,
        fe_slope: float,
        start_time: float,
        time_step: float,
    ) -> None:
        """
        Initialize the pixel matrix of a ladder.

        Args:
            layer: ID of the layer containing the ladder
            ladder: ID of the ladder inside the layer
            xsegment_number: Number of sensors across the ladder width
            ysegment_number: Number of sensors along the ladder length
            ladder_length: Ladder length (mm), along y / columns
            ladder_width: Ladder width (mm), along x / rows
            thickness: Ladder thickness (mm)
            pixel_size_x: Pixel pitch along x (mm)
            pixel_size_y: Pixel pitch along y (mm)
            cell_id_encoding: Bit-field format of the sensor cell IDs
            barrel_id: ID of the vertex barrel inside the detector
            threshold: Comparator threshold (electrons)
            fe_slope: Front-end discharge slope (electrons per time unit)
            start_time: Time of the first clock edge
            time_step: Clock period

        Raises:
            GeometryError: If the segment counts do not tile the ladder
            ValueError: If a front-end parameter is out of range
        """
        if xsegment_number < 1 or ysegment_number < 1:
            raise GeometryError(
                f"Segment numbers must be >= 1 (got {xsegment_number}x{ysegment_number})"
            )
        if pixel_size_x <= 0 or pixel_size_y <= 0:
            raise GeometryError("Pixel sizes must be positive")
        if ladder_length <= 0 or ladder_width <= 0:
            raise GeometryError("Ladder dimensions must be positive")
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        if fe_slope < 0:
            raise ValueError("fe_slope must be non-negative")
        if time_step <= 0:
            raise ValueError("time_step must be positive")

        self._barrel_id = barrel_id
        self._layer = layer
        self._ladder = ladder
        self._thickness = thickness
        self._pixel_size_x = pixel_size_x
        self._pixel_size_y = pixel_size_y
        self._ladder_length = ladder_length
        self._ladder_width = ladder_width
        self._cell_fmt = cell_id_encoding
        self._thr_level = threshold
        self._start_time = start_time
        self.clock_step = time_step
        self.delta_c = fe_slope * time_step

        self.l_rows = _pixel_count(ladder_width, pixel_size_x)
        self.l_columns = _pixel_count(ladder_length, pixel_size_y)
        if self.l_rows == 0 or self.l_columns == 0:
            raise GeometryError(
                f"Ladder {ladder_width}x{ladder_length} holds no pixel of "
                f"pitch {pixel_size_x}x{pixel_size_y}"
            )
        if self.l_rows % xsegment_number or self.l_columns % ysegment_number:
            raise GeometryError(
                f"Segments {xsegment_number}x{ysegment_number} do not tile "
                f"a {self.l_rows}x{self.l_columns} pixel ladder"
            )

        self.x_segnum = xsegment_number
        self.y_segnum = ysegment_number
        self.s_rows = self.l_rows // xsegment_number
        self.s_columns = self.l_columns // ysegment_number
        self.s_locate = GridPosition(self.l_rows, self.l_columns)

        size = self.l_rows * self.l_columns
        self._charge = np.zeros(size, dtype=np.float64)
        self._sampled = np.zeros(size, dtype=np.float64)
        self._counter = np.zeros(size, dtype=np.int64)
        self._status = np.zeros(size, dtype=np.int8)
        self._fire_time = np.zeros(size, dtype=np.float64)
        self._collected = np.zeros(size, dtype=np.float64)

        self.status = MatrixStatus.OK
        self.clock_time = start_time
        self._last_edge = start_time
        self.out_of_bounds_count = 0

        logger.debug(
            f"PixelDigiMatrix layer={layer} ladder={ladder}: "
            f"{self.l_rows}x{self.l_columns} pixels, "
            f"{self.x_segnum}x{self.y_segnum} sensors of {self.s_rows}x{self.s_columns}, "
            f"thr={threshold}, delta_c={self.delta_c}"
        )

    # =========================================================================
    # Hit building
    # =========================================================================

    @abstractmethod
    def build_hits(self, output: SegmentDigiHitList) -> None:
        """Append the hits finished at the current tick to output."""
        ...

    # =========================================================================
    # Geometry accessors
    # =========================================================================

    @property
    def barrel_id(self) -> int:
        return self._barrel_id

    @property
    def layer(self) -> int:
        return self._layer

    @property
    def ladder(self) -> int:
        return self._ladder

    @property
    def thickness(self) -> float:
        return self._thickness

    @property
    def half_thickness(self) -> float:
        return self._thickness / 2

    @property
    def length(self) -> float:
        return self._ladder_length

    @property
    def half_length(self) -> float:
        return self._ladder_length / 2

    @property
    def width(self) -> float:
        return self._ladder_width

    @property
    def half_width(self) -> float:
        return self._ladder_width / 2

    @property
    def pixel_size_x(self) -> float:
        return self._pixel_size_x

    @property
    def pixel_size_y(self) -> float:
        return self._pixel_size_y

    @property
    def ladder_rows(self) -> int:
        return self.l_rows

    @property
    def ladder_cols(self) -> int:
        return self.l_columns

    @property
    def sensor_rows(self) -> int:
        return self.s_rows

    @property
    def sensor_cols(self) -> int:
        return self.s_columns

    @property
    def segnum_x(self) -> int:
        return self.x_segnum

    @property
    def segnum_y(self) -> int:
        return self.y_segnum

    @property
    def cell_id_format(self) -> str:
        return self._cell_fmt

    @property
    def threshold(self) -> float:
        return self._thr_level

    # =========================================================================
    # Charge and clock
    # =========================================================================

    def reset(self) -> None:
        """Clear every pixel and rewind the clock for a new event."""
        self._charge.fill(0.0)
        self._sampled.fill(0.0)
        self._counter.fill(0)
        self._status.fill(_IDLE)
        self._fire_time.fill(0.0)
        self._collected.fill(0.0)
        self.status = MatrixStatus.OK
        self.clock_time = self._start_time
        self._last_edge = self._start_time
        self.out_of_bounds_count = 0

    def update_pixel(self, row: int, col: int, charge: float) -> None:
        """
        Add charge to a pixel.

        Contributions outside the ladder are counted and ignored; diffusion
        tails routinely spill past the sensor edges.

        Args:
            row: Ladder row of the pixel
            col: Ladder column of the pixel
            charge: Charge to aggregate
        """
        if not self._check(row, col):
            self.out_of_bounds_count += 1
            self.status = MatrixStatus.PIXEL_NUMBER_ERROR
            logger.debug(f"Ladder {self._layer}/{self._ladder}: pixel ({row}, {col}) out of bounds")
            return

        pos = self._index(row, col)
        self._charge[pos] += charge
        self._collected[pos] += charge
        if self.delta_c > 0:
            self._counter[pos] = math.ceil(self._charge[pos] / self.delta_c)

    def release_collected(self, row: int, col: int) -> None:
        """Forget the collected charge of a pixel once a hit has carried it."""
        if self._check(row, col):
            self._collected[self._index(row, col)] = 0.0

    def clock_sync(self) -> None:
        """
        Clock edge: evaluate every busy pixel, then drain it by one step.

        Must be called exactly once per tick. A second call without new
        charge decays the pixels twice.
        """
        busy = np.flatnonzero(
            (self._charge > 0) | (self._counter > 0) | (self._status != _IDLE)
        )
        if busy.size:
            self._counter[busy] = np.maximum(self._counter[busy] - 1, 0)

            charge = self._charge[busy]
            previous = self._status[busy]
            over = self._is_over_threshold(charge)
            had_fired = (previous == _READY) | (previous == _DISCHARGING)

            below = np.where(had_fired, _DISCHARGING, _CHARGING)
            status = np.where(over, _READY, np.where(charge > 0, below, _IDLE))

            rising = busy[over & (previous != _READY)]
            self._fire_time[rising] = self.clock_time

            self._status[busy] = status
            self._sampled[busy] = charge
            self._charge[busy] = np.maximum(charge - self.delta_c, 0.0)
            self._collected[busy[status == _IDLE]] = 0.0

        self._last_edge = self.clock_time
        self.clock_time += self.clock_step

    def _is_over_threshold(self, charge: np.ndarray) -> np.ndarray:
        """Comparator decision for an array of sampled charges."""
        return charge >= self._thr_level

    # =========================================================================
    # Read accessors
    # =========================================================================

    def get_pixel(self, row: int, col: int) -> PixelData:
        """
        Snapshot of a pixel at the last clock edge.

        Returns:
            PixelData, with status OUT_OF_BOUNDS for addresses outside the ladder
        """
        if not self._check(row, col):
            self.status = MatrixStatus.PIXEL_NUMBER_ERROR
            return PixelData(charge=0.0, time=self._last_edge, status=PixelStatus.OUT_OF_BOUNDS)

        pos = self._index(row, col)
        code = int(self._status[pos])
        if code in (_READY, _DISCHARGING):
            time = float(self._fire_time[pos])
        else:
            time = self._last_edge
        return PixelData(
            charge=float(self._sampled[pos]),
            time=time,
            status=_STATUS_BY_CODE[code],
            counter=int(self._counter[pos]),
            collected=float(self._collected[pos]),
        )

    def get_sensor_pixel(self, seg_x: int, seg_y: int, pos_x: int, pos_y: int) -> PixelData:
        """
        Snapshot of a pixel addressed inside a sensor tile.

        Returns:
            PixelData, with status GEOMETRY_ERROR for a missing tile or
            OUT_OF_BOUNDS for a position outside the tile
        """
        if not self._check_segment(seg_x, seg_y):
            self.status = MatrixStatus.SEGMENT_NUMBER_ERROR
            return PixelData(charge=0.0, time=self._last_edge, status=PixelStatus.GEOMETRY_ERROR)
        if not (0 <= pos_x < self.s_rows and 0 <= pos_y < self.s_columns):
            self.status = MatrixStatus.PIXEL_NUMBER_ERROR
            return PixelData(charge=0.0, time=self._last_edge, status=PixelStatus.OUT_OF_BOUNDS)
        return self.get_pixel(
            self.sensor_row_to_ladder_row(seg_x, pos_x),
            self.sensor_col_to_ladder_col(seg_y, pos_y),
        )

    def is_active(self) -> bool:
        """True if any pixel holds charge (live or sampled at the last edge)."""
        return bool(np.any(self._charge > 0) or np.any(self._sampled > 0))

    def check_status(self, row: int, col: int, status: PixelStatus) -> bool:
        return self.get_pixel(row, col).status == status

    def check_sensor_status(
        self, seg_x: int, seg_y: int, pos_x: int, pos_y: int, status: PixelStatus
    ) -> bool:
        return self.get_sensor_pixel(seg_x, seg_y, pos_x, pos_y).status == status

    def check_status_on_sensor(self, seg_x: int, seg_y: int, status: PixelStatus) -> bool:
        """True if any pixel of the sensor tile has the given status."""
        if not self._check_segment(seg_x, seg_y):
            self.status = MatrixStatus.SEGMENT_NUMBER_ERROR
            return False
        code = _CODE_BY_STATUS.get(status)
        if code is None:
            return False
        tile = self._status.reshape(self.l_rows, self.l_columns)[
            seg_x * self.s_rows:(seg_x + 1) * self.s_rows,
            seg_y * self.s_columns:(seg_y + 1) * self.s_columns,
        ]
        return bool(np.any(tile == code))

    def active_positions(self) -> np.ndarray:
        """Ascending linear positions of pixels that are not IDLE."""
        return np.flatnonzero(self._status != _IDLE)

    def charge_map(self) -> np.ndarray:
        """Sampled charges as a (l_rows, l_columns) array copy."""
        return self._sampled.reshape(self.l_rows, self.l_columns).copy()

    # =========================================================================
    # Coordinate transforms
    # =========================================================================

    def x_to_pixel_row(self, x: float) -> int:
        return int(math.floor((x + self.half_width) / self._pixel_size_x))

    def y_to_pixel_col(self, y: float) -> int:
        return int(math.floor((y + self.half_length) / self._pixel_size_y))

    def pixel_row_to_x(self, row: int) -> float:
        return (0.5 + row) * self._pixel_size_x - self.half_width

    def pixel_col_to_y(self, col: int) -> float:
        return (0.5 + col) * self._pixel_size_y - self.half_length

    def sensor_row_to_ladder_row(self, seg_x: int, pos_x: int) -> int:
        return seg_x * self.s_rows + pos_x

    def sensor_col_to_ladder_col(self, seg_y: int, pos_y: int) -> int:
        return seg_y * self.s_columns + pos_y

    def ladder_to_segment(self, row: int, col: int) -> Tuple[int, int]:
        """Sensor tile (seg_x, seg_y) containing a ladder pixel."""
        return row // self.s_rows, col // self.s_columns

    def segment_index(self, seg_x: int, seg_y: int) -> int:
        return seg_x * self.y_segnum + seg_y

    # =========================================================================
    # Internals
    # =========================================================================

    def _index(self, row: int, col: int) -> int:
        return row * self.l_columns + col

    def _check(self, row: int, col: int) -> bool:
        return 0 <= row < self.l_rows and 0 <= col < self.l_columns

    def _check_segment(self, seg_x: int, seg_y: int) -> bool:
        return 0 <= seg_x < self.x_segnum and 0 <= seg_y < self.y_segnum
