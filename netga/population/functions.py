"""
Cost functions scoring chromosomes on a single objective.

A cost function writes its raw score into slot ``index`` of a chromosome's
fitness array; SetOfChromosomes.normalize() later folds the slots into one
fitness value.
"""
import logging
import math
from collections import deque
from typing import Dict, List, Optional, Sequence, Type

import numpy as np

from netga.errors import check, require
from netga.population.chromosome import Chromosome
from netga.population.paths import (
    all_pairs_shortest,
    matrix_average,
    matrix_max,
    matrix_sum,
    to_link_matrix,
)

logger = logging.getLogger(__name__)


class CostFunction:
    """Base class: score one chromosome, or every chromosome of a population."""

    name = "cost"

    def score(self, chromosome: Chromosome) -> float:
        raise NotImplementedError

    def apply(self, chromosome: Chromosome, index: int) -> None:
        chromosome.insert_into_fit_arr(index, self.score(chromosome))

    def map(self, population, index: int) -> None:
        for chromosome in population:
            self.apply(chromosome, index)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class TotalEdgeCost(CostFunction):
    """Sum of the costs of all links between active nodes."""

    name = "total_edge_cost"

    def score(self, chromosome: Chromosome) -> float:
        return matrix_sum(chromosome.get_adjacency_matrix())


class MinimalPaths(CostFunction):
    """
    Shortest-path quality of the network.

    By default: the total cost of the direct links that are already the
    cheapest route between their endpoints. With ``average=True``: the mean
    all-pairs shortest path cost.
    """

    name = "minimal_paths"

    def __init__(self, average: bool = False):
        self.average = average

    def score(self, chromosome: Chromosome) -> float:
        adjacency = chromosome.get_adjacency_matrix()
        shortest = all_pairs_shortest(adjacency)
        if self.average:
            return matrix_average(shortest)
        unchanged = (adjacency == shortest) & np.isfinite(shortest)
        total = float(shortest[unchanged].sum())
        check(
            total <= matrix_sum(adjacency) + 1e-8 and total <= matrix_sum(shortest) + 1e-8,
            "The kept links cost more than the whole network",
        )
        return total

    def __repr__(self) -> str:
        return f"MinimalPaths(average={self.average})"


class DegreeSeparation(CostFunction):
    """Hop distance between nodes: the diameter, or the mean with ``average=True``."""

    name = "degree_separation"

    def __init__(self, average: bool = False):
        self.average = average

    def score(self, chromosome: Chromosome) -> float:
        hops = all_pairs_shortest(to_link_matrix(chromosome.get_adjacency_matrix()))
        return matrix_average(hops) if self.average else matrix_max(hops)

    def __repr__(self) -> str:
        return f"DegreeSeparation(average={self.average})"


def local_cluster_coefficients(chromosome: Chromosome) -> np.ndarray:
    """
    Per-node connectivity ``k_i / (r_i (r_i - 1))``.

    ``k_i`` is the number of direct links node ``i`` makes and ``r_i`` the
    number of nodes it can reach. Nodes with fewer than two links score 0.
    """
    links = to_link_matrix(chromosome.get_adjacency_matrix())
    reach = all_pairs_shortest(links)
    off_diagonal = ~np.eye(links.shape[0], dtype=bool)
    connections = (np.isfinite(links) & off_diagonal).sum(axis=1)
    reachable = (np.isfinite(reach) & off_diagonal).sum(axis=1)
    coefficients = np.zeros(links.shape[0])
    linked = connections >= 2
    coefficients[linked] = connections[linked] / (reachable[linked] * (reachable[linked] - 1.0))
    return coefficients


class ClusterCoeff(CostFunction):
    """Average clustering coefficient ``2 * mean(C_i)`` over nodes with two or more links."""

    name = "cluster_coeff"

    def score(self, chromosome: Chromosome) -> float:
        coefficients = local_cluster_coefficients(chromosome)
        counted = coefficients[coefficients > 0]
        if counted.size == 0:
            return 0.0
        return 2.0 * float(counted.mean())


class ServerLoad(CostFunction):
    """Total load factor of the servers once every link is placed."""

    name = "server_load"

    def score(self, chromosome: Chromosome) -> float:
        graph = chromosome.get_graph()
        return float(sum(node.get_load() for node in graph.nodes() if node.is_server))


def resistance_matrix(chromosome: Chromosome, unit_resistance: bool = False) -> np.ndarray:
    """
    Approximate node-to-node resistance of the network.

    Every simple path from ``i`` to ``j`` is treated as an independent
    resistor whose resistance is the summed cost of its links, so
    ``R[i, j]`` is the parallel combination ``1 / sum(1 / cost(path))``.
    Unreachable pairs are ``inf`` and the diagonal is 0. The paths are
    enumerated breadth first, which is exponential for dense networks.

    Args:
        chromosome: The network to measure
        unit_resistance: Use 1 for every link instead of its cost
    """
    costs = chromosome.get_adjacency_matrix()
    if unit_resistance:
        costs = to_link_matrix(costs)
    nodes = chromosome.get_node_list()
    destinations = [[chromosome.index_of(node) for node in genes] for genes in chromosome.get_data_array()]
    n = len(nodes)
    resistance = np.zeros((n, n))
    for source in range(n):
        conductance = np.zeros(n)
        queue = deque([(source, 0.0, (source,))])
        while queue:
            here, cost, visited = queue.popleft()
            for there in destinations[here]:
                if there in visited:
                    continue
                total = cost + costs[here, there]
                conductance[there] += 1.0 / total if total > 0 else math.inf
                queue.append((there, total, visited + (there,)))
        row = np.full(n, math.inf)
        reached = conductance > 0
        row[reached] = 1.0 / conductance[reached]
        row[source] = 0.0
        resistance[source] = row
    return resistance


class Resistance(CostFunction):
    """Average resistance between connected nodes; see resistance_matrix."""

    name = "resistance"

    def __init__(self, unit_resistance: bool = False):
        self.unit_resistance = unit_resistance

    def score(self, chromosome: Chromosome) -> float:
        return matrix_average(resistance_matrix(chromosome, self.unit_resistance))

    def __repr__(self) -> str:
        return f"Resistance(unit_resistance={self.unit_resistance})"


class GaussianPerturbation(CostFunction):
    """Adds N(0, stddev) noise to another cost function, never going below 0."""

    def __init__(self, base: CostFunction, stddev: float = 1.0, rng: Optional[np.random.RandomState] = None):
        require(base is not None, "The perturbed cost function must not be None")
        require(stddev >= 0, f"Standard deviation is {stddev}; it must not be negative")
        self.base = base
        self.stddev = stddev
        self.rng = rng if rng is not None else np.random.RandomState()
        self.name = f"noisy_{base.name}"

    def score(self, chromosome: Chromosome) -> float:
        value = self.base.score(chromosome)
        if self.stddev == 0:
            return value
        return max(0.0, value + float(self.rng.normal(0.0, self.stddev)))

    def __repr__(self) -> str:
        return f"GaussianPerturbation({self.base!r}, stddev={self.stddev})"


class PleiotropyRedundancy:
    """
    Sets a chromosome's pleiotropy and redundancy.

    Pleiotropy is the number of links leaving servers per server; redundancy
    is the number of server-to-client links per client.
    """

    def apply(self, chromosome: Chromosome) -> None:
        adjacency = chromosome.get_adjacency_matrix()
        nodes = chromosome.get_node_list()
        is_server = np.array([node.is_server for node in nodes], dtype=bool)
        linked = np.isfinite(adjacency) & ~np.eye(len(nodes), dtype=bool)

        server_out = int(linked[is_server].sum())
        server_to_client = int(linked[np.ix_(is_server, ~is_server)].sum())

        servers = int(is_server.sum())
        clients = len(nodes) - servers
        chromosome.set_pleiotropy(server_out / servers if servers else 0.0)
        chromosome.set_redundancy(server_to_client / clients if clients else 0.0)

    def map(self, population) -> None:
        for chromosome in population:
            self.apply(chromosome)


COST_FUNCTIONS: Dict[str, Type[CostFunction]] = {
    TotalEdgeCost.name: TotalEdgeCost,
    MinimalPaths.name: MinimalPaths,
    DegreeSeparation.name: DegreeSeparation,
    ClusterCoeff.name: ClusterCoeff,
    ServerLoad.name: ServerLoad,
    Resistance.name: Resistance,
}

_VARIANTS = {
    "minimal_paths_avg": lambda: MinimalPaths(average=True),
    "degree_separation_avg": lambda: DegreeSeparation(average=True),
    "resistance_unit": lambda: Resistance(unit_resistance=True),
}


def build_cost_functions(
    names: Sequence[str],
    stddev: float = 0.0,
    rng: Optional[np.random.RandomState] = None,
) -> List[CostFunction]:
    """
    Instantiate cost functions by name.

    Args:
        names: Registered names, plus ``minimal_paths_avg`` and
            ``degree_separation_avg`` for the averaging variants and
            ``resistance_unit`` for unit-cost resistance
        stddev: When positive, every function is wrapped in a
            GaussianPerturbation with this standard deviation
        rng: Random source for the perturbation noise

    Raises:
        ValueError: for an unknown name
    """
    functions: List[CostFunction] = []
    for name in names:
        key = name.strip().lower()
        if key in _VARIANTS:
            function = _VARIANTS[key]()
        elif key in COST_FUNCTIONS:
            function = COST_FUNCTIONS[key]()
        else:
            known = sorted(list(COST_FUNCTIONS) + list(_VARIANTS))
            raise ValueError(f"Unknown cost function {name!r}; expected one of {known}")
        if stddev > 0:
            function = GaussianPerturbation(function, stddev, rng)
        functions.append(function)
    logger.debug(f"Cost functions: {functions}")
    return functions
