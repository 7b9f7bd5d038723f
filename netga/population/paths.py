"""
All-pairs shortest paths over adjacency cost matrices.

Matrices use ``inf`` for "no link" and 0 on the diagonal. Reductions skip
infinite and zero entries, so unreachable pairs and self-distances never
contribute to a sum, an average or a maximum.
"""
import math

import numpy as np

from netga.errors import ensure, require


def _as_square(adj) -> np.ndarray:
    matrix = np.asarray(adj, dtype=float)
    require(
        matrix.ndim == 2 and matrix.shape[0] == matrix.shape[1],
        f"Each row should have as many elements as there are rows; shape is {matrix.shape}",
    )
    return matrix


def all_pairs_shortest(adj) -> np.ndarray:
    """
    Shortest path cost between every pair of nodes.

    Repeated min-plus squaring of the adjacency matrix: after ``k`` squarings
    the matrix holds the cheapest paths of up to ``2**k`` links, so
    ``ceil(log2(n - 1))`` squarings cover every simple path.

    Args:
        adj: n x n link costs, ``inf`` where there is no link

    Returns:
        n x n matrix of path costs, ``inf`` for unreachable pairs
    """
    matrix = _as_square(adj).copy()
    n = matrix.shape[0]
    require(n > 0, "The matrix is empty")
    np.fill_diagonal(matrix, 0.0)
    iterations = math.ceil(math.log2(n - 1)) if n > 2 else 1
    for _ in range(iterations):
        # via[i, k, j] = matrix[i, k] + matrix[k, j]
        via = matrix[:, :, None] + matrix[None, :, :]
        matrix = via.min(axis=1)
        np.fill_diagonal(matrix, 0.0)
    ensure(matrix.shape == (n, n), f"The result has shape {matrix.shape}")
    return matrix


def to_link_matrix(adj) -> np.ndarray:
    """Replace every finite non-zero cost with 1, keeping ``inf`` and 0."""
    matrix = _as_square(adj)
    links = matrix.copy()
    links[np.isfinite(matrix) & (matrix != 0)] = 1.0
    return links


def _counted(matrix: np.ndarray) -> np.ndarray:
    return matrix[np.isfinite(matrix) & (matrix != 0)]


def matrix_sum(adj) -> float:
    return float(_counted(_as_square(adj)).sum())


def matrix_average(adj) -> float:
    """Mean of the finite non-zero entries (0 if there are none)."""
    values = _counted(_as_square(adj))
    if values.size == 0:
        return 0.0
    return float(values.mean())


def matrix_max(adj) -> float:
    """Largest finite non-zero entry (0 if there are none)."""
    values = _counted(_as_square(adj))
    if values.size == 0:
        return 0.0
    return float(values.max())
