"""
Clustering Module
=================

Hoshen-Kopelman labelling and cross-tick cluster reconciliation.

Components:
    - GridPartitionedSet: Union-find for one labelling pass
    - ClusterHeap: Open clusters tracked across ticks
"""

from cvxd_digitiser.clustering.partitioned_set import NO_LABEL, GridPartitionedSet
from cvxd_digitiser.clustering.heap import ClusterHeap

__all__ = ["NO_LABEL", "GridPartitionedSet", "ClusterHeap"]
