"""
Hit Models
==========

Input and output records of the digitiser.

Input:
    ChargeDeposit: one per-pixel analog charge contribution pushed by the
    upstream Monte Carlo stage.

Output:
    SegmentDigiHit: one reconstructed cluster hit, in ladder grid
    coordinates, with the encoded cell identifier of its sensor.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from pydantic import BaseModel, Field


class ChargeDeposit(BaseModel):
    """
    Charge collected by one pixel from the diffusion stage.

    Attributes:
        layer: Layer of the ladder
        ladder: Ladder (module) inside the layer
        row: Pixel row in the ladder grid (may be out of range)
        col: Pixel column in the ladder grid (may be out of range)
        charge: Collected charge in electrons
        time: Arrival time of the charge
    """

    layer: int = Field(..., ge=0, description="Layer ID")
    ladder: int = Field(..., ge=0, description="Ladder ID inside the layer")
    row: int = Field(..., description="Pixel row (ladder grid)")
    col: int = Field(..., description="Pixel column (ladder grid)")
    charge: float = Field(..., ge=0.0, description="Collected charge (electrons)")
    time: float = Field(default=0.0, description="Arrival time")


@dataclass(frozen=True, slots=True)
class SegmentDigiHit:
    """
    Reconstructed cluster hit.

    Attributes:
        x: Charge-weighted row centroid times pixel pitch
        y: Charge-weighted column centroid times pixel pitch
        charge: Sum of fired member charges
        time: Earliest fire time of the cluster
        cell_id: Encoded cell identifier of the sensor
        size: Number of fired pixels
        du: Position resolution along x (pitch / sqrt(12))
        dv: Position resolution along y (pitch / sqrt(12))
        pixels: Fired pixels as (row, col, charge), empty unless stored
    """

    x: float
    y: float
    charge: float
    time: float
    cell_id: int
    size: int = 1
    du: float = 0.0
    dv: float = 0.0
    pixels: Tuple[Tuple[int, int, float], ...] = field(default_factory=tuple)

    def __repr__(self) -> str:
        return (
            f"SegmentDigiHit(x={self.x:.4f}, y={self.y:.4f}, "
            f"q={self.charge:.1f}, t={self.time:.2f}, "
            f"cell={self.cell_id:#x}, size={self.size})"
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "x": round(self.x, 6),
            "y": round(self.y, 6),
            "charge": round(self.charge, 3),
            "time": round(self.time, 3),
            "cell_id": self.cell_id,
            "size": self.size,
        }


SegmentDigiHitList = List[SegmentDigiHit]
