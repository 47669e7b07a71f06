"""
Cluster Models
==============

Data carried by the cluster heap while a cluster is open.

Two notions of cluster exist:
    - ClusterOfPixel: ephemeral list of linear positions sharing one
      instantaneous label. Produced by every clustering pass, not retained.
    - ClusterItem: durable cross-tick cluster owned by a ClusterHeap until
      it is popped. Keyed by a monotonically increasing integer id.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


LinearPosition = int

ClusterOfPixel = List[LinearPosition]


@dataclass(slots=True)
class ChargePoint:
    """
    A member pixel of a buffered cluster.

    Attributes:
        row: Ladder row
        col: Ladder column
        charge: Collected charge once the pixel fired (0.0 if never fired)
    """

    row: int
    col: int
    charge: float = 0.0

    @property
    def fired(self) -> bool:
        return self.charge > 0.0


@dataclass(slots=True)
class BufferedCluster:
    """
    Pixels and time of a finished (or open) cluster.

    Attributes:
        pixels: Member pixels, ascending linear position once popped
        time: Earliest fire time among members (None until a member fires)
    """

    pixels: List[ChargePoint] = field(default_factory=list)
    time: Optional[float] = None

    @property
    def fired_pixels(self) -> List[ChargePoint]:
        return [p for p in self.pixels if p.fired]

    @property
    def total_charge(self) -> float:
        return sum(p.charge for p in self.pixels)


@dataclass(slots=True)
class ClusterItem:
    """
    Open cluster tracked across ticks.

    Members are indexed by linear position so that repeated sightings of
    the same pixel never duplicate it.

    Attributes:
        members: Member pixels keyed by linear position
        time: Earliest fire time among members
    """

    members: Dict[LinearPosition, ChargePoint] = field(default_factory=dict)
    time: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.members)

    def absorb(self, other: "ClusterItem") -> None:
        """Merge another item into this one."""
        for pos, point in other.members.items():
            mine = self.members.get(pos)
            if mine is None:
                self.members[pos] = point
            elif point.charge > mine.charge:
                mine.charge = point.charge
        if other.time is not None and (self.time is None or other.time < self.time):
            self.time = other.time

    def to_buffer(self) -> BufferedCluster:
        return BufferedCluster(
            pixels=[self.members[pos] for pos in sorted(self.members)],
            time=self.time,
        )
