"""
Grid Partitioned Set
====================

Union-find over the pixels of a grid, used for single-pass
Hoshen-Kopelman connected-component labelling.

Labelling Pass:
    init()                      start a new pass, O(1)
    add(x, y)                   fresh label for an active pixel (scan order)
    merge(x1, y1, x2, y2)       union with an active left/up neighbour
    invalidate(x, y)            drop a pixel without relabelling its peers
    close()                     group pixels by canonical label
    next()                      pop clusters in ascending label order

Labels:
    Labels are sequential in the order pixels are added. A union keeps the
    smaller label as canonical, so results do not depend on which side of a
    merge is passed first.

Generations:
    Each cell stores the generation of the pass that labelled it. A cell is
    part of the current pass only if its stamp equals the current
    generation, so labels from older passes can never leak into a new one
    and init() does not touch the grid.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterator, List, Optional, Set

import numpy as np

from cvxd_digitiser.geometry.grid import GridPosition
from cvxd_digitiser.models.cluster import ClusterOfPixel


logger = logging.getLogger(__name__)


NO_LABEL = -1


class GridPartitionedSet:
    """
    Disjoint sets of grid pixels for one labelling pass at a time.

    Attributes:
        generation: Number of init() calls so far
        valid_cells: Pixels labelled and not invalidated in the current pass

    Example:
        gset = GridPartitionedSet(n_row=4, n_col=4)
        gset.init()
        gset.add(0, 0)
        gset.add(0, 1)
        gset.merge(0, 0, 0, 1)
        gset.close()
        gset.next()     # [0, 1]
    """

    def __init__(self, n_row: int, n_col: int) -> None:
        self.locate = GridPosition(n_row, n_col)
        self.rows = n_row
        self.columns = n_col

        self._cell_label = np.zeros(self.locate.size, dtype=np.int64)
        self._stamp = np.full(self.locate.size, -1, dtype=np.int64)
        self.generation = 0

        self._parent: List[int] = []
        self._members: List[int] = []
        self._invalid: Set[int] = set()
        self._clusters: Deque[ClusterOfPixel] = deque()

    @property
    def valid_cells(self) -> int:
        return len(self._members) - len(self._invalid)

    def init(self) -> None:
        """Begin a new labelling pass."""
        self.generation += 1
        self._parent.clear()
        self._members.clear()
        self._invalid.clear()
        self._clusters.clear()

    def add(self, x: int, y: int) -> int:
        """
        Give a pixel a fresh label in the current pass.

        Returns:
            The pixel's canonical label (its existing one if already added),
            or NO_LABEL if the pixel lies outside the grid
        """
        if not self.locate.contains(x, y):
            return NO_LABEL
        pos = self.locate.to_linear(x, y)
        if self._stamp[pos] == self.generation:
            return self._root(int(self._cell_label[pos]))

        label = len(self._parent)
        self._parent.append(label)
        self._cell_label[pos] = label
        self._stamp[pos] = self.generation
        self._members.append(pos)
        return label

    def find(self, x: int, y: int) -> int:
        """Canonical label of a pixel, or NO_LABEL if it is not in the pass."""
        pos = self._valid_position(x, y)
        if pos is None:
            return NO_LABEL
        return self._root(int(self._cell_label[pos]))

    def merge(self, x1: int, y1: int, x2: int, y2: int) -> None:
        """Union the sets of two pixels. Ignored if either is not in the pass."""
        pos1 = self._valid_position(x1, y1)
        pos2 = self._valid_position(x2, y2)
        if pos1 is None or pos2 is None:
            return

        root1 = self._root(int(self._cell_label[pos1]))
        root2 = self._root(int(self._cell_label[pos2]))
        if root1 == root2:
            return
        if root1 < root2:
            self._parent[root2] = root1
        else:
            self._parent[root1] = root2

    def invalidate(self, x: int, y: int) -> None:
        """
        Remove a pixel from the current pass.

        The pixel keeps its parent link, so peers that were merged through
        it keep their canonical label.
        """
        pos = self._valid_position(x, y)
        if pos is not None:
            self._invalid.add(pos)

    def close(self) -> None:
        """Group the valid pixels of the pass into clusters."""
        groups: Dict[int, ClusterOfPixel] = {}
        for pos in self._members:
            if pos in self._invalid:
                continue
            root = self._root(int(self._cell_label[pos]))
            groups.setdefault(root, []).append(pos)

        self._clusters = deque(sorted(cluster) for _, cluster in sorted(groups.items()))
        logger.debug(
            f"Pass {self.generation}: {self.valid_cells} pixels in {len(self._clusters)} clusters"
        )

    def next(self) -> ClusterOfPixel:
        """Pop the next cluster, or an empty list when exhausted."""
        if not self._clusters:
            return []
        return self._clusters.popleft()

    def __iter__(self) -> Iterator[ClusterOfPixel]:
        while self._clusters:
            yield self._clusters.popleft()

    def _valid_position(self, x: int, y: int) -> Optional[int]:
        if not self.locate.contains(x, y):
            return None
        pos = self.locate.to_linear(x, y)
        if self._stamp[pos] != self.generation or pos in self._invalid:
            return None
        return pos

    def _root(self, label: int) -> int:
        root = label
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[label] != root:
            self._parent[label], label = root, self._parent[label]
        return root
