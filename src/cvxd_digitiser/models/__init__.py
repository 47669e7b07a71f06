"""
Data Models
===========

Data models for the CVXD digitiser.

This module re-exports all data models for convenient access.

Models:
    Pixel:
        - PixelStatus: Per-pixel front-end status
        - MatrixStatus: Matrix-level index error flag
        - PixelData: Read-only pixel snapshot
        - GridCoordinate: (row, col) address

    Cluster:
        - ChargePoint, BufferedCluster, ClusterItem: Cross-tick clusters
        - ClusterOfPixel, LinearPosition: Instantaneous clusters

    Hit:
        - ChargeDeposit: Input contribution from the Monte Carlo stage
        - SegmentDigiHit: Output cluster hit
"""

from cvxd_digitiser.models.pixel import (
    ACTIVE_STATUSES,
    GridCoordinate,
    MatrixStatus,
    PixelData,
    PixelStatus,
)
from cvxd_digitiser.models.cluster import (
    BufferedCluster,
    ChargePoint,
    ClusterItem,
    ClusterOfPixel,
    LinearPosition,
)
from cvxd_digitiser.models.hit import ChargeDeposit, SegmentDigiHit, SegmentDigiHitList

__all__ = [
    # Pixel
    "ACTIVE_STATUSES",
    "GridCoordinate",
    "MatrixStatus",
    "PixelData",
    "PixelStatus",
    # Cluster
    "BufferedCluster",
    "ChargePoint",
    "ClusterItem",
    "ClusterOfPixel",
    "LinearPosition",
    # Hit
    "ChargeDeposit",
    "SegmentDigiHit",
    "SegmentDigiHitList",
]
