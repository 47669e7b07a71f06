"""
Vertex Digitizer
================

Event-level driver of the vertex barrel.

Builds one sensor per (layer, ladder) from the settings, routes charge
deposits to the sensors and clock ticks, runs the tick graph and
collects the hits of the whole event.

Tick Routing:
    tick = floor((time - start_time) / time_step)

    Deposits earlier than start_time go to tick 0. Deposits at or past
    the last tick are dropped and counted as out of window.

Concurrency:
    Sensors share no state, so with pipeline.workers > 1 the active
    sensors are clocked in worker threads (asyncio.to_thread), at most
    `workers` at a time. Hits are always returned in (layer, ladder)
    order.

    digitize_event() cannot start a loop inside a running one; called
    from async code it clocks the sensors sequentially. Async callers
    wanting the worker threads await adigitize_event() instead.

Example:
    from cvxd_digitiser.config import settings

    digitizer = VertexDigitizer(settings)
    result = digitizer.digitize_event(deposits)
    print(result.analytics.hit_count)
"""

import asyncio
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from cvxd_digitiser.config import Settings
from cvxd_digitiser.models.hit import ChargeDeposit, SegmentDigiHit
from cvxd_digitiser.observability.analytics import AnalyticsComputer, DigitizationAnalytics
from cvxd_digitiser.pipeline.graph import PixelDeposit, TickGraph
from cvxd_digitiser.sensor.factory import create_sensor
from cvxd_digitiser.sensor.hk_sensor import ClusterFilter, HKBaseSensor


logger = logging.getLogger(__name__)


SensorKey = Tuple[int, int]
TickSchedule = List[List[PixelDeposit]]


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class EventResult:
    """Hits and analytics of one digitised event."""

    hits: List[SegmentDigiHit] = field(default_factory=list)
    analytics: Optional[DigitizationAnalytics] = None

    def __repr__(self) -> str:
        return f"EventResult(hits={len(self.hits)})"


class VertexDigitizer:
    """
    Digitizer for every ladder of the vertex barrel.

    Attributes:
        settings: Configuration the sensors were built from
        sensors: Sensor per (layer, ladder)
    """

    def __init__(
        self,
        settings: Settings,
        cluster_filter: Optional[ClusterFilter] = None,
    ) -> None:
        """
        Initialize the digitizer and build its sensors.

        Args:
            settings: Detector, layer and front-end configuration
            cluster_filter: Optional filter handed to every sensor

        Raises:
            GeometryError: If a layer does not tile into its sensors
            CellIDError: If the cell ID format cannot hold a sensor
            ValueError: If the sensor type is not registered
        """
        self.settings = settings
        self._graph = TickGraph()
        self._analytics = AnalyticsComputer()

        self.sensors: Dict[SensorKey, HKBaseSensor] = {}
        det = settings.detector
        fe = settings.frontend
        clus = settings.clustering
        for layer, layer_cfg in enumerate(settings.layers):
            for ladder in range(layer_cfg.ladder_number):
                self.sensors[(layer, ladder)] = create_sensor(
                    det.sensor_type,
                    layer=layer,
                    ladder=ladder,
                    xsegment_number=layer_cfg.xsegment_number,
                    ysegment_number=layer_cfg.ysegment_number,
                    ladder_length=layer_cfg.ladder_length,
                    ladder_width=layer_cfg.ladder_width,
                    thickness=layer_cfg.thickness,
                    pixel_size_x=det.pixel_size_x,
                    pixel_size_y=det.pixel_size_y,
                    cell_id_encoding=det.cell_id_encoding,
                    barrel_id=det.barrel_id,
                    threshold=fe.threshold,
                    fe_slope=fe.fe_slope,
                    start_time=fe.start_time,
                    time_step=fe.time_step,
                    cluster_per_sensor=clus.per_sensor,
                    cluster_filter=cluster_filter,
                    store_fired_pixels=clus.store_fired_pixels,
                    tan_lorentz_x=clus.tan_lorentz_x,
                    tan_lorentz_y=clus.tan_lorentz_y,
                )

        self._log_geometry()

    def _log_geometry(self) -> None:
        det = self.settings.detector
        logger.info(
            f"VertexDigitizer initialized: {det.name} (barrel {det.barrel_id}), "
            f"{len(self.sensors)} ladders, pitch {det.pixel_size_x}x{det.pixel_size_y} mm"
        )
        for layer, layer_cfg in enumerate(self.settings.layers):
            sensor = self.sensors[(layer, 0)]
            logger.info(
                f"  layer {layer}: {layer_cfg.ladder_number} ladders "
                f"{sensor.length:.3f}x{sensor.width:.3f}x{sensor.thickness:.3f} mm, "
                f"{sensor.ladder_rows}x{sensor.ladder_cols} pixels, "
                f"{sensor.segnum_x}x{sensor.segnum_y} sensors of "
                f"{sensor.sensor_rows}x{sensor.sensor_cols}"
            )

    # =========================================================================
    # Scheduling
    # =========================================================================

    @property
    def ticks(self) -> int:
        return self.settings.frontend.ticks

    def tick_of(self, time: float) -> Optional[int]:
        """
        Clock tick collecting a deposit at the given time.

        Returns:
            Tick index, or None if the time is past the readout window
        """
        fe = self.settings.frontend
        if time < fe.start_time:
            return 0
        tick = math.floor((time - fe.start_time) / fe.time_step)
        if tick >= fe.ticks:
            return None
        return tick

    def _schedule(
        self,
        deposits: Iterable[ChargeDeposit],
    ) -> Tuple[Dict[SensorKey, TickSchedule], int, int]:
        schedule: Dict[SensorKey, TickSchedule] = defaultdict(
            lambda: [[] for _ in range(self.ticks)]
        )
        out_of_window = 0
        unknown = 0
        for dep in deposits:
            key = (dep.layer, dep.ladder)
            if key not in self.sensors:
                unknown += 1
                continue
            tick = self.tick_of(dep.time)
            if tick is None:
                out_of_window += 1
                continue
            schedule[key][tick].append((dep.row, dep.col, dep.charge))

        if unknown:
            logger.warning(f"Dropped {unknown} deposits addressed to unknown ladders")
        if out_of_window:
            logger.debug(f"Dropped {out_of_window} deposits past the readout window")
        return dict(schedule), out_of_window, unknown

    # =========================================================================
    # Digitisation
    # =========================================================================

    def _run_sensor(self, key: SensorKey, ticks: TickSchedule) -> List[SegmentDigiHit]:
        sensor = self.sensors[key]
        hits: List[SegmentDigiHit] = []
        for deposits in ticks:
            hits.extend(self._graph.run_tick(sensor, deposits))
        sensor.flush(hits)
        return hits

    async def adigitize_event(self, deposits: Iterable[ChargeDeposit]) -> EventResult:
        """
        Digitise one event, clocking sensors concurrently in worker threads.

        Args:
            deposits: Charge deposits of the event

        Returns:
            EventResult with hits in (layer, ladder) order
        """
        self.reset()
        schedule, out_of_window, unknown = self._schedule(deposits)
        keys = sorted(schedule)

        limit = asyncio.Semaphore(self.settings.pipeline.workers)

        async def run(key: SensorKey) -> List[SegmentDigiHit]:
            async with limit:
                return await asyncio.to_thread(self._run_sensor, key, schedule[key])

        per_sensor = await asyncio.gather(*(run(key) for key in keys))
        hits = [hit for sensor_hits in per_sensor for hit in sensor_hits]
        return self._finish(hits, keys, out_of_window, unknown)

    def digitize_event(self, deposits: Iterable[ChargeDeposit]) -> EventResult:
        """
        Digitise one event.

        Resets every sensor, routes the deposits to their ticks, runs the
        tick graph for the configured number of ticks and flushes the
        clusters still open at the end of the window.

        Args:
            deposits: Charge deposits of the event

        Returns:
            EventResult with hits in (layer, ladder) order
        """
        if self.settings.pipeline.workers > 1 and not _loop_running():
            return asyncio.run(self.adigitize_event(deposits))

        self.reset()
        schedule, out_of_window, unknown = self._schedule(deposits)
        keys = sorted(schedule)
        hits: List[SegmentDigiHit] = []
        for key in keys:
            hits.extend(self._run_sensor(key, schedule[key]))
        return self._finish(hits, keys, out_of_window, unknown)

    def _finish(
        self,
        hits: List[SegmentDigiHit],
        keys: List[SensorKey],
        out_of_window: int,
        unknown: int,
    ) -> EventResult:
        out_of_bounds = sum(self.sensors[key].out_of_bounds_count for key in keys)
        if out_of_bounds:
            logger.warning(f"Rejected {out_of_bounds} pixel updates outside the ladder grids")

        analytics = self._analytics.compute(
            hits,
            ticks=self.ticks,
            out_of_window_deposits=out_of_window,
            out_of_bounds_updates=out_of_bounds,
            unknown_sensor_deposits=unknown,
            active_sensors=len(keys),
        )
        logger.info(
            f"Event digitised: {analytics.hit_count} hits from "
            f"{analytics.active_sensors} ladders, q={analytics.total_charge:.1f}"
        )
        return EventResult(hits=hits, analytics=analytics)

    def reset(self) -> None:
        """Reset every sensor for a new event."""
        for sensor in self.sensors.values():
            sensor.reset()
