"""
Geometry Module
===============

Grid addressing and cell identifier encoding.
"""

from cvxd_digitiser.geometry.grid import GridPosition, get_bound
from cvxd_digitiser.geometry.cellid import (
    DEFAULT_ENCODING,
    CellIDEncoder,
    CellIDError,
)

__all__ = [
    "GridPosition",
    "get_bound",
    "DEFAULT_ENCODING",
    "CellIDEncoder",
    "CellIDError",
]
