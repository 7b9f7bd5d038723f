"""
Link cost lookup for a fixed node list.
"""
import logging
from typing import Optional, Sequence

import numpy as np

from netga.errors import ensure, require

logger = logging.getLogger(__name__)


class EdgeCostMatrix:
    """
    Square matrix of link costs, ``cost(i, j)`` being the cost of linking node
    ``i`` to node ``j`` of a chromosome's node list. The diagonal is zero.
    """

    def __init__(self, matrix: Sequence[Sequence[float]]):
        """
        Args:
            matrix: Square matrix of non-negative costs (nested lists or ndarray)

        Raises:
            PreconditionViolation: if the matrix is empty, not square or has
                negative entries
        """
        array = np.asarray(matrix, dtype=float)
        require(array.ndim == 2 and array.shape[0] > 0, f"The cost matrix has shape {array.shape}")
        require(
            array.shape[0] == array.shape[1],
            f"Each row should have {array.shape[0]} elements, not {array.shape[1]}",
        )
        require(bool(np.all(array >= 0)), "Link costs must not be negative")
        self._matrix = array

    @classmethod
    def random(
        cls,
        num_nodes: int,
        max_cost: float,
        rng: Optional[np.random.RandomState] = None,
    ) -> "EdgeCostMatrix":
        """
        Draw every off-diagonal cost uniformly from [0, max_cost).

        Costs are drawn independently per direction, so ``cost(i, j)`` and
        ``cost(j, i)`` usually differ.
        """
        require(num_nodes > 0, f"Creating matrix for {num_nodes} nodes; it must be positive")
        require(max_cost > 0.0, f"Maximum cost for links is {max_cost}; it must be positive")
        rng = rng if rng is not None else np.random.RandomState()
        matrix = rng.random_sample((num_nodes, num_nodes)) * max_cost
        np.fill_diagonal(matrix, 0.0)
        logger.debug(f"Generated {num_nodes}x{num_nodes} link cost matrix (max cost {max_cost})")
        return cls(matrix)

    @classmethod
    def euclidean(cls, coordinates: Sequence[Sequence[float]]) -> "EdgeCostMatrix":
        """Costs equal to the straight-line distance between node positions."""
        points = np.asarray(coordinates, dtype=float)
        require(points.ndim == 2 and points.shape[1] == 2, "Coordinates must be (x, y) pairs")
        deltas = points[:, None, :] - points[None, :, :]
        return cls(np.sqrt((deltas ** 2).sum(axis=2)))

    @property
    def dimension(self) -> int:
        dim = self._matrix.shape[0]
        ensure(dim > 0, f"The matrix is a {dim} by {dim} matrix")
        return dim

    def cost(self, i: int, j: int) -> float:
        dim = self._matrix.shape[0]
        require(0 <= i < dim, f"Row index {i} is out of bounds; range is [0,{dim - 1}]")
        require(0 <= j < dim, f"Column index {j} is out of bounds; range is [0,{dim - 1}]")
        return float(self._matrix[i, j])

    def as_array(self) -> np.ndarray:
        """Read-only view of the costs."""
        view = self._matrix.view()
        view.flags.writeable = False
        return view

    def __repr__(self) -> str:
        return f"EdgeCostMatrix(dimension={self._matrix.shape[0]})"
