"""
Analytics Module
================

Per-event digitisation analytics.

Analytics are derived from the hits and counters the pipeline already
produces; they never feed back into digitisation.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from cvxd_digitiser.models.hit import SegmentDigiHit


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DigitizationAnalytics:
    """
    Summary of one digitised event.

    Attributes:
        hit_count: Hits emitted
        mean_cluster_size: Mean fired pixels per hit
        max_cluster_size: Largest hit
        total_charge: Charge summed over all hits
        ticks: Clock ticks run
        out_of_window_deposits: Deposits later than the last tick
        out_of_bounds_updates: Pixel updates outside a ladder grid
        unknown_sensor_deposits: Deposits addressed to no configured ladder
        active_sensors: Sensors that received at least one deposit
    """

    hit_count: int
    mean_cluster_size: float
    max_cluster_size: int
    total_charge: float
    ticks: int
    out_of_window_deposits: int = 0
    out_of_bounds_updates: int = 0
    unknown_sensor_deposits: int = 0
    active_sensors: int = 0

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "hit_count": self.hit_count,
            "mean_cluster_size": round(self.mean_cluster_size, 4),
            "max_cluster_size": self.max_cluster_size,
            "total_charge": round(self.total_charge, 3),
            "ticks": self.ticks,
            "out_of_window_deposits": self.out_of_window_deposits,
            "out_of_bounds_updates": self.out_of_bounds_updates,
            "unknown_sensor_deposits": self.unknown_sensor_deposits,
            "active_sensors": self.active_sensors,
        }


class AnalyticsComputer:
    """Builds DigitizationAnalytics from pipeline outputs."""

    def compute(
        self,
        hits: Sequence[SegmentDigiHit],
        ticks: int,
        out_of_window_deposits: int = 0,
        out_of_bounds_updates: int = 0,
        unknown_sensor_deposits: int = 0,
        active_sensors: int = 0,
    ) -> DigitizationAnalytics:
        """
        Compute event analytics.

        Args:
            hits: Hits of the event
            ticks: Clock ticks run
            out_of_window_deposits: Deposits dropped for arriving too late
            out_of_bounds_updates: Updates rejected by the matrices
            unknown_sensor_deposits: Deposits with no matching ladder
            active_sensors: Sensors that received deposits

        Returns:
            Analytics snapshot of the event
        """
        if hits:
            sizes = np.fromiter((hit.size for hit in hits), dtype=np.int64, count=len(hits))
            charges = np.fromiter((hit.charge for hit in hits), dtype=np.float64, count=len(hits))
            mean_size = float(sizes.mean())
            max_size = int(sizes.max())
            total_charge = float(charges.sum())
        else:
            mean_size = 0.0
            max_size = 0
            total_charge = 0.0

        return DigitizationAnalytics(
            hit_count=len(hits),
            mean_cluster_size=mean_size,
            max_cluster_size=max_size,
            total_charge=total_charge,
            ticks=ticks,
            out_of_window_deposits=out_of_window_deposits,
            out_of_bounds_updates=out_of_bounds_updates,
            unknown_sensor_deposits=unknown_sensor_deposits,
            active_sensors=active_sensors,
        )
