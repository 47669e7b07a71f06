"""
Cluster Heap
============

Reconciles the instantaneous clusters of successive clustering passes into
durable clusters, one per physical deposit.

A deposit's pixels may cross and leave the threshold at different ticks,
so the same physical cluster shows up in several passes with a changing
shape. The heap keeps every open cluster under a monotonically increasing
id and a reference table mapping each member pixel to that id.

Per Tick:
    add_cluster(cluster)        merge into open clusters sharing a pixel,
                                or open a new one
    setup_pixel(row, col, pix)  attach authoritative charge and time
    pop_clusters()              return clusters with no fired member left

At event end:
    drain()                     return every open cluster

Invariants:
    - A pixel maps to at most one open cluster.
    - A cluster is popped exactly once; nothing is dropped silently.
"""

import logging
from typing import Dict, List, Set

from cvxd_digitiser.geometry.grid import GridPosition
from cvxd_digitiser.models.cluster import (
    BufferedCluster,
    ChargePoint,
    ClusterItem,
    ClusterOfPixel,
    LinearPosition,
)
from cvxd_digitiser.models.pixel import PixelData, PixelStatus


logger = logging.getLogger(__name__)


ClusterTable = Dict[int, ClusterItem]

ReferenceTable = Dict[LinearPosition, int]


class ClusterHeap:
    """
    Open clusters of one sensor (or ladder), keyed by cluster id.

    A cluster stays open while at least one of its pixels is over threshold.
    Each call to pop_clusters() closes the clusters that had no READY pixel
    since the previous call.

    Example:
        heap = ClusterHeap(rows=64, cols=64)
        heap.add_cluster([130, 131])
        heap.setup_pixel(2, 2, matrix.get_pixel(2, 2))
        heap.setup_pixel(2, 3, matrix.get_pixel(2, 3))
        finished = heap.pop_clusters()
    """

    def __init__(self, rows: int, cols: int) -> None:
        self.locate = GridPosition(rows, cols)
        self.debug_label = ""
        self._hash_cnt = 0
        self._cluster_table: ClusterTable = {}
        self._ref_table: ReferenceTable = {}
        self._live: Set[int] = set()

    @property
    def open_count(self) -> int:
        """Number of open clusters."""
        return len(self._cluster_table)

    def set_label(self, label: str) -> None:
        self.debug_label = label

    def cluster_of(self, row: int, col: int) -> int:
        """Id of the open cluster owning a pixel, or -1."""
        return self._ref_table.get(self.locate.to_linear(row, col), -1)

    def add_cluster(self, cluster: ClusterOfPixel) -> int:
        """
        Register an instantaneous cluster.

        Every open cluster sharing a pixel with it is merged into the one
        with the smallest id; the remaining pixels join that cluster.

        Args:
            cluster: Linear positions of the member pixels

        Returns:
            Id of the surviving cluster, or -1 for an empty cluster
        """
        if not cluster:
            return -1

        owners = sorted({self._ref_table[pos] for pos in cluster if pos in self._ref_table})
        if owners:
            cluster_id = owners[0]
            target = self._cluster_table[cluster_id]
            for other_id in owners[1:]:
                other = self._cluster_table.pop(other_id)
                target.absorb(other)
                for pos in other.members:
                    self._ref_table[pos] = cluster_id
                if other_id in self._live:
                    self._live.discard(other_id)
                    self._live.add(cluster_id)
                logger.debug(f"{self.debug_label}: cluster {other_id} merged into {cluster_id}")
        else:
            cluster_id = self._hash_cnt
            self._hash_cnt += 1
            target = ClusterItem()
            self._cluster_table[cluster_id] = target

        for pos in cluster:
            if pos not in target.members:
                coord = self.locate.to_coordinate(pos)
                target.members[pos] = ChargePoint(row=coord.row, col=coord.col)
            self._ref_table[pos] = cluster_id

        return cluster_id

    def setup_pixel(self, pos_x: int, pos_y: int, pix: PixelData) -> None:
        """
        Attach the front-end data of a member pixel.

        A pixel enters the cluster charge once it fires; from then on its
        charge is the collected charge, so later top-ups below threshold
        still count. The cluster time is the earliest fire time.
        A READY sample keeps the owning cluster open for this tick.
        """
        pos = self.locate.to_linear(pos_x, pos_y)
        cluster_id = self._ref_table.get(pos)
        if cluster_id is None:
            logger.debug(f"{self.debug_label}: pixel ({pos_x}, {pos_y}) not in any cluster")
            return

        item = self._cluster_table[cluster_id]
        point = item.members[pos]
        ready = pix.status == PixelStatus.READY
        if not ready and not point.fired:
            return

        if pix.collected > point.charge:
            point.charge = pix.collected
        if ready:
            if item.time is None or pix.time < item.time:
                item.time = pix.time
            self._live.add(cluster_id)

    def pop_clusters(self) -> List[BufferedCluster]:
        """
        Remove and return the clusters whose pixels all left threshold.

        Returns:
            Finished clusters, in ascending id order
        """
        finished = sorted(cid for cid in self._cluster_table if cid not in self._live)
        self._live.clear()
        return [self._pop(cid) for cid in finished]

    def drain(self) -> List[BufferedCluster]:
        """Remove and return every open cluster."""
        self._live.clear()
        return [self._pop(cid) for cid in sorted(self._cluster_table)]

    def clear(self) -> None:
        """Forget every open cluster without returning it."""
        if self._cluster_table:
            logger.warning(
                f"{self.debug_label}: discarding {len(self._cluster_table)} open clusters"
            )
        self._cluster_table.clear()
        self._ref_table.clear()
        self._live.clear()

    def _pop(self, cluster_id: int) -> BufferedCluster:
        item = self._cluster_table.pop(cluster_id)
        for pos in item.members:
            if self._ref_table.get(pos) == cluster_id:
                del self._ref_table[pos]
        return item.to_buffer()
