"""
Clustering Tests
================

Tests for Hoshen-Kopelman labelling and cross-tick cluster reconciliation.
"""

import pytest

from cvxd_digitiser.clustering.heap import ClusterHeap
from cvxd_digitiser.clustering.partitioned_set import NO_LABEL, GridPartitionedSet
from cvxd_digitiser.models.pixel import PixelData, PixelStatus


def label_pass(gset, pixels):
    """Add every pixel, then merge left/up neighbours in the given order."""
    gset.init()
    for row, col in pixels:
        gset.add(row, col)
    for row, col in pixels:
        gset.merge(row, col, row, col - 1)
        gset.merge(row, col, row - 1, col)
    gset.close()
    return list(gset)


def hk_scan(gset, pixels):
    """Row-major Hoshen-Kopelman pass: label each pixel as it is scanned."""
    gset.init()
    for row, col in sorted(pixels):
        gset.add(row, col)
        gset.merge(row, col, row, col - 1)
        gset.merge(row, col, row - 1, col)
    gset.close()
    return list(gset)


def ready(charge, time=0.0):
    return PixelData(charge=charge, time=time, status=PixelStatus.READY, collected=charge)


def discharging(charge, time=0.0):
    return PixelData(charge=charge, time=time, status=PixelStatus.DISCHARGING, collected=charge)


class TestGridPartitionedSet:
    """Tests for union-find labelling."""

    def test_diagonal_pixels_are_separate(self):
        gset = GridPartitionedSet(4, 4)
        clusters = label_pass(gset, [(0, 0), (1, 1)])
        assert clusters == [[0], [5]]

    @pytest.mark.parametrize("shape", [
        [(1, 1), (1, 2), (2, 2)],
        [(1, 1), (2, 1), (2, 2)],
        [(1, 2), (2, 1), (2, 2)],
    ])
    def test_l_shape_row_major_scan(self, shape):
        gset = GridPartitionedSet(4, 4)
        clusters = hk_scan(gset, shape)
        assert len(clusters) == 1
        assert clusters[0] == sorted(r * 4 + c for r, c in shape)

    def test_upper_right_l_shape(self):
        # (r, c), (r, c+1), (r+1, c+1)
        gset = GridPartitionedSet(4, 4)
        assert hk_scan(gset, [(1, 1), (1, 2), (2, 2)]) == [[5, 6, 10]]

    @pytest.mark.parametrize("order", [
        [(1, 1), (1, 2), (2, 2)],
        [(2, 2), (1, 2), (1, 1)],
        [(1, 2), (2, 2), (1, 1)],
    ])
    def test_l_shape_independent_of_merge_order(self, order):
        gset = GridPartitionedSet(4, 4)
        clusters = label_pass(gset, order)
        assert clusters == [[5, 6, 10]]

    def test_smaller_label_is_canonical(self):
        gset = GridPartitionedSet(4, 4)
        gset.init()
        first = gset.add(0, 0)
        second = gset.add(0, 1)
        gset.merge(0, 1, 0, 0)
        assert gset.find(0, 1) == first
        assert gset.find(0, 0) == first
        assert second != first

    def test_add_twice_keeps_label(self):
        gset = GridPartitionedSet(4, 4)
        gset.init()
        label = gset.add(2, 2)
        assert gset.add(2, 2) == label
        assert gset.valid_cells == 1

    def test_out_of_grid(self):
        gset = GridPartitionedSet(4, 4)
        gset.init()
        assert gset.add(4, 0) == NO_LABEL
        assert gset.find(-1, 0) == NO_LABEL

    def test_stale_labels_ignored(self):
        gset = GridPartitionedSet(4, 4)
        label_pass(gset, [(0, 0), (0, 1)])
        gset.init()
        assert gset.find(0, 0) == NO_LABEL
        gset.add(0, 1)
        gset.merge(0, 1, 0, 0)
        gset.close()
        assert list(gset) == [[1]]

    def test_invalidate_keeps_peers_connected(self):
        gset = GridPartitionedSet(4, 4)
        gset.init()
        for col in range(3):
            gset.add(0, col)
        gset.merge(0, 1, 0, 0)
        gset.merge(0, 2, 0, 1)
        gset.invalidate(0, 1)
        gset.close()
        assert gset.valid_cells == 2
        assert gset.next() == [0, 2]
        assert gset.next() == []


class TestClusterHeap:
    """Tests for cross-tick cluster reconciliation."""

    def test_new_clusters_get_increasing_ids(self):
        heap = ClusterHeap(4, 4)
        assert heap.add_cluster([0]) == 0
        assert heap.add_cluster([10]) == 1
        assert heap.open_count == 2
        assert heap.add_cluster([]) == -1

    def test_overlap_merges_into_smallest_id(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([0])
        heap.add_cluster([2])
        assert heap.add_cluster([0, 1, 2]) == 0
        assert heap.open_count == 1
        assert heap.cluster_of(0, 2) == 0

    def test_live_cluster_stays_open(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([5])
        heap.setup_pixel(1, 1, ready(300.0))
        assert heap.pop_clusters() == []
        assert heap.open_count == 1

    def test_cluster_pops_once_it_stops_firing(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([5])
        heap.setup_pixel(1, 1, ready(300.0, time=2.0))
        heap.pop_clusters()

        heap.add_cluster([5])
        heap.setup_pixel(1, 1, discharging(250.0, time=2.0))
        finished = heap.pop_clusters()
        assert len(finished) == 1
        assert finished[0].time == 2.0
        assert finished[0].pixels[0].charge == 300.0
        assert heap.open_count == 0
        assert heap.cluster_of(1, 1) == -1

    def test_charge_is_max_and_time_is_min(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([5, 6])
        heap.setup_pixel(1, 1, ready(300.0, time=1.0))
        heap.setup_pixel(1, 2, ready(250.0, time=0.0))
        heap.pop_clusters()
        heap.add_cluster([5, 6])
        heap.setup_pixel(1, 1, ready(280.0, time=1.0))
        (cluster,) = heap.drain()
        assert cluster.time == 0.0
        assert [p.charge for p in cluster.pixels] == [300.0, 250.0]

    def test_merge_carries_live_state(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([0])
        heap.add_cluster([2])
        heap.setup_pixel(0, 2, ready(300.0))
        heap.add_cluster([0, 1, 2])
        assert heap.pop_clusters() == []

    def test_drain_returns_everything(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([0])
        heap.add_cluster([15])
        heap.setup_pixel(0, 0, ready(300.0))
        drained = heap.drain()
        assert len(drained) == 2
        assert heap.open_count == 0

    def test_unfired_cluster_has_no_fired_pixels(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([3])
        (cluster,) = heap.pop_clusters()
        assert cluster.fired_pixels == []
        assert cluster.time is None

    def test_clear_warns_on_open_clusters(self, caplog):
        heap = ClusterHeap(4, 4)
        heap.set_label("L0/M0/S0")
        heap.add_cluster([3])
        heap.clear()
        assert heap.open_count == 0
        assert "discarding 1 open clusters" in caplog.text

    def test_fired_pixel_keeps_collecting_below_threshold(self):
        heap = ClusterHeap(4, 4)
        heap.add_cluster([5, 6])
        heap.setup_pixel(1, 1, ready(300.0))
        heap.setup_pixel(1, 2, discharging(180.0))
        heap.pop_clusters()
        heap.add_cluster([5, 6])
        heap.setup_pixel(1, 1, discharging(340.0))
        heap.setup_pixel(1, 2, discharging(180.0))
        (cluster,) = heap.pop_clusters()
        assert [p.charge for p in cluster.pixels] == [340.0, 0.0]
        assert cluster.total_charge == 340.0
