"""
Hoshen-Kopelman Sensor
======================

Pixel matrix that clusters fired pixels with a Hoshen-Kopelman pass at
every tick and reconciles the passes in one ClusterHeap per sensor tile.

Tick Cycle:
    IDLE → CHARGING → CLUSTERING → DRAINING → IDLE

    CHARGING:   update_pixel() calls accepted
    (clock_sync() once)
    CLUSTERING: label the active pixels, feed the clusters to the heaps
    DRAINING:   pop finished clusters and emit one hit each

    TERMINAL:   flush() forces every open cluster out at event end

Connectivity Policy:
    With cluster_per_sensor (default) two pixels connect only if they lie
    in the same sensor tile; a deposit straddling a tile border yields one
    hit per tile, each carrying its own sensor cell ID. Otherwise the
    whole ladder is one clustering domain and hits carry sensor 0.

Hit Position:
    x = Σ q·row / Σ q · pixel_size_x - thickness/2 · tan_lorentz_x
    y = Σ q·col / Σ q · pixel_size_y - thickness/2 · tan_lorentz_y

    Coordinates are measured from the centre of pixel (0, 0); use
    grid_to_local() for the ladder-centred frame.

Example:
    sensor = HKBaseSensor(layer=0, ladder=2, xsegment_number=1, ...)
    hits = []
    for tick in range(n_ticks):
        for row, col, charge in deposits[tick]:
            sensor.update_pixel(row, col, charge)
        sensor.clock_sync()
        sensor.build_hits(hits)
    sensor.flush(hits)
"""

import logging
import math
from enum import Enum
from typing import Callable, List, Optional, Tuple

from cvxd_digitiser.clustering.heap import ClusterHeap
from cvxd_digitiser.clustering.partitioned_set import GridPartitionedSet
from cvxd_digitiser.geometry.cellid import CellIDEncoder, CellIDError
from cvxd_digitiser.matrix.pixel_matrix import PixelDigiMatrix
from cvxd_digitiser.models.cluster import BufferedCluster, ClusterOfPixel
from cvxd_digitiser.models.hit import SegmentDigiHit, SegmentDigiHitList
from cvxd_digitiser.sensor.factory import register_sensor


logger = logging.getLogger(__name__)


ClusterFilter = Callable[[ClusterOfPixel], List[ClusterOfPixel]]


def passthrough_cluster(cluster: ClusterOfPixel) -> List[ClusterOfPixel]:
    """Default cluster filter: keep the cluster unchanged."""
    return [cluster]


class SensorPhase(str, Enum):
    """Position of a sensor inside its tick cycle."""

    IDLE = "IDLE"
    CHARGING = "CHARGING"
    CLUSTERING = "CLUSTERING"
    DRAINING = "DRAINING"
    TERMINAL = "TERMINAL"


@register_sensor("hk_base")
class HKBaseSensor(PixelDigiMatrix):
    """
    Ladder matrix with Hoshen-Kopelman clustering.

    Attributes:
        phase: Current step of the tick cycle
        cluster_per_sensor: Restrict connectivity to single sensor tiles
        heap_table: One ClusterHeap per tile (or one for the ladder)
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
        cluster_per_sensor: bool = True,
        cluster_filter: Optional[ClusterFilter] = None,
        store_fired_pixels: bool = False,
        tan_lorentz_x: float = 0.0,
        tan_lorentz_y: float = 0.0,
    ) -> None:
        """
        Initialize the sensor.

        Args:
            layer ... time_step: See PixelDigiMatrix
            cluster_per_sensor: Cluster each sensor tile on its own
            cluster_filter: Strategy reshaping each instantaneous cluster
                before it reaches the heap; may split (return several) or
                drop (return none)
            store_fired_pixels: Keep the fired pixels in every hit
            tan_lorentz_x: Tangent of the Lorentz angle along x
            tan_lorentz_y: Tangent of the Lorentz angle along y

        Raises:
            GeometryError: If the segment counts do not tile the ladder
            CellIDError: If the cell ID format cannot hold this sensor
        """
        super().__init__(
            layer, ladder, xsegment_number, ysegment_number,
            ladder_length, ladder_width, thickness,
            pixel_size_x, pixel_size_y, cell_id_encoding, barrel_id,
            threshold, fe_slope, start_time, time_step,
        )
        self.cluster_per_sensor = cluster_per_sensor
        self.store_fired_pixels = store_fired_pixels
        self.tan_lorentz_x = tan_lorentz_x
        self.tan_lorentz_y = tan_lorentz_y
        self._cluster_filter: ClusterFilter = cluster_filter or passthrough_cluster

        self._grid_set = GridPartitionedSet(self.l_rows, self.l_columns)

        n_heaps = self.x_segnum * self.y_segnum if cluster_per_sensor else 1
        self.heap_table: List[ClusterHeap] = []
        for index in range(n_heaps):
            heap = ClusterHeap(self.l_rows, self.l_columns)
            heap.set_label(f"L{layer}/M{ladder}/S{index}")
            self.heap_table.append(heap)

        encoder = CellIDEncoder(cell_id_encoding)
        self._cell_ids = [self._encode_cell_id(encoder, index) for index in range(n_heaps)]

        self._du = pixel_size_x / math.sqrt(12)
        self._dv = pixel_size_y / math.sqrt(12)

        self.phase = SensorPhase.IDLE
        self._synced = False

    # =========================================================================
    # Tick cycle
    # =========================================================================

    def reset(self) -> None:
        """Clear pixels and heaps for a new event."""
        super().reset()
        for heap in self.heap_table:
            heap.clear()
        self.phase = SensorPhase.IDLE
        self._synced = False

    def update_pixel(self, row: int, col: int, charge: float) -> None:
        super().update_pixel(row, col, charge)
        self.phase = SensorPhase.CHARGING

    def clock_sync(self) -> None:
        if self._synced:
            logger.warning(
                f"Ladder {self.layer}/{self.ladder}: clock_sync called twice "
                f"without build_hits at t={self.clock_time}"
            )
        super().clock_sync()
        self._synced = True

    def build_hits(self, output: SegmentDigiHitList) -> None:
        """Cluster the current tick and append the finished hits to output."""
        self.run_clustering()
        self.drain_clusters(output)

    def run_clustering(self) -> int:
        """
        Label the active pixels and feed the clusters to the heaps.

        Skipped when the matrix holds no charge.

        Returns:
            Number of clusters passed to the heaps
        """
        self.phase = SensorPhase.CLUSTERING
        if not self.is_active():
            return 0

        gset = self._grid_set
        gset.init()
        for pos in self.active_positions().tolist():
            row, col = divmod(pos, self.l_columns)
            gset.add(row, col)
            if col > 0 and self._connects_left(col):
                gset.merge(row, col, row, col - 1)
            if row > 0 and self._connects_up(row):
                gset.merge(row, col, row - 1, col)
        gset.close()

        committed = 0
        for cluster in gset:
            for piece in self._cluster_filter(cluster):
                if not piece:
                    continue
                heap = self.heap_table[self._heap_index(piece[0])]
                heap.add_cluster(piece)
                for pos in piece:
                    row, col = divmod(pos, self.l_columns)
                    heap.setup_pixel(row, col, self.get_pixel(row, col))
                committed += 1
        return committed

    def drain_clusters(self, output: SegmentDigiHitList, force: bool = False) -> int:
        """
        Pop finished clusters (all open ones if forced) and emit hits.

        Clusters without any fired pixel are discarded. The fired pixels
        of an emitted hit start collecting charge from zero again.

        Returns:
            Number of hits appended to output
        """
        self.phase = SensorPhase.TERMINAL if force else SensorPhase.DRAINING
        self._synced = False
        emitted = 0
        for index, heap in enumerate(self.heap_table):
            clusters = heap.drain() if force else heap.pop_clusters()
            for cluster in clusters:
                hit = self._make_hit(cluster, self._cell_ids[index])
                if hit is None:
                    continue
                # a pixel re-firing later must not report this charge again
                for point in cluster.fired_pixels:
                    self.release_collected(point.row, point.col)
                output.append(hit)
                emitted += 1
        if not force:
            self.phase = SensorPhase.IDLE
        return emitted

    def flush(self, output: SegmentDigiHitList) -> int:
        """Force every open cluster out as a hit at event end."""
        emitted = self.drain_clusters(output, force=True)
        if emitted:
            logger.debug(f"Ladder {self.layer}/{self.ladder}: flushed {emitted} open clusters")
        return emitted

    @property
    def open_clusters(self) -> int:
        return sum(heap.open_count for heap in self.heap_table)

    # =========================================================================
    # Hits
    # =========================================================================

    def cell_id(self, seg_x: int = 0, seg_y: int = 0) -> int:
        """Cell ID of a sensor tile (the ladder ID if clustering per ladder)."""
        if not self.cluster_per_sensor:
            return self._cell_ids[0]
        return self._cell_ids[self.segment_index(seg_x, seg_y)]

    def grid_to_local(self, x: float, y: float) -> Tuple[float, float]:
        """Hit coordinates to the ladder-centred frame."""
        return (
            x + 0.5 * self.pixel_size_x - self.half_width,
            y + 0.5 * self.pixel_size_y - self.half_length,
        )

    def _make_hit(self, cluster: BufferedCluster, cell_id: int) -> Optional[SegmentDigiHit]:
        fired = cluster.fired_pixels
        if not fired:
            return None

        charge = sum(p.charge for p in fired)
        row_mean = sum(p.charge * p.row for p in fired) / charge
        col_mean = sum(p.charge * p.col for p in fired) / charge
        x = row_mean * self.pixel_size_x - self.half_thickness * self.tan_lorentz_x
        y = col_mean * self.pixel_size_y - self.half_thickness * self.tan_lorentz_y

        pixels = ()
        if self.store_fired_pixels:
            pixels = tuple((p.row, p.col, p.charge) for p in fired)

        return SegmentDigiHit(
            x=x,
            y=y,
            charge=charge,
            time=cluster.time,
            cell_id=cell_id,
            size=len(fired),
            du=self._du,
            dv=self._dv,
            pixels=pixels,
        )

    def _encode_cell_id(self, encoder: CellIDEncoder, index: int) -> int:
        for required in ("layer", "module"):
            if not encoder.has_field(required):
                raise CellIDError(
                    f"Cell ID format '{encoder.encoding}' has no '{required}' field"
                )
        values = {"layer": self.layer, "module": self.ladder}
        for barrel_field in ("system", "subdet"):
            if encoder.has_field(barrel_field):
                values[barrel_field] = self.barrel_id
                break
        if encoder.has_field("sensor"):
            values["sensor"] = index
        return encoder.encode(**values)

    # =========================================================================
    # Connectivity
    # =========================================================================

    def _connects_left(self, col: int) -> bool:
        return not self.cluster_per_sensor or col % self.s_columns != 0

    def _connects_up(self, row: int) -> bool:
        return not self.cluster_per_sensor or row % self.s_rows != 0

    def _heap_index(self, pos: int) -> int:
        if not self.cluster_per_sensor:
            return 0
        row, col = divmod(pos, self.l_columns)
        return self.segment_index(*self.ladder_to_segment(row, col))
