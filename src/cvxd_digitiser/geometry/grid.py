"""
Grid Addressing
===============

Bijection between (row, col) and a linear pixel index.

    LinearPosition = row * columns + col

The linear position is the canonical key shared by the pixel arena, the
union-find labelling and the cluster reference tables.
"""

from typing import Iterable, Tuple

from cvxd_digitiser.models.pixel import GridCoordinate


class GridPosition:
    """
    Row-major addressing of a rows x columns grid.

    Example:
        locate = GridPosition(rows=4, columns=10)
        pos = locate.to_linear(3, 5)        # 35
        locate.to_coordinate(pos)           # GridCoordinate(row=3, col=5)
    """

    __slots__ = ("rows", "columns")

    def __init__(self, rows: int, columns: int) -> None:
        if rows <= 0 or columns <= 0:
            raise ValueError("Grid rows and columns must be positive")
        self.rows = rows
        self.columns = columns

    @property
    def size(self) -> int:
        return self.rows * self.columns

    def contains(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.columns

    def to_linear(self, row: int, col: int) -> int:
        return row * self.columns + col

    def to_coordinate(self, pos: int) -> GridCoordinate:
        row, col = divmod(pos, self.columns)
        return GridCoordinate(row=row, col=col)

    def __repr__(self) -> str:
        return f"GridPosition({self.rows}x{self.columns})"


def get_bound(cluster: Iterable[int], locate: GridPosition) -> Tuple[int, int, int, int]:
    """
    Bounding box of a cluster of linear positions.

    Args:
        cluster: Linear positions of the member pixels
        locate: Addressing of the grid the positions belong to

    Returns:
        (row_min, row_max, col_min, col_max), inclusive

    Raises:
        ValueError: If the cluster is empty
    """
    coords = [locate.to_coordinate(pos) for pos in cluster]
    if not coords:
        raise ValueError("Cannot bound an empty cluster")
    rows = [c.row for c in coords]
    cols = [c.col for c in coords]
    return min(rows), max(rows), min(cols), max(cols)
