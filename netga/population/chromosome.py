"""
Adjacency-list genome of a candidate network.

Locus ``i`` of a chromosome holds the list of nodes that node ``i`` of the
shared node list links out to. Chromosomes of one population share the same
node list object; nodes are treated as identity tokens and never copied by
the genetic operators.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from netga.errors import check, ensure, require
from netga.graph.edge import Edge
from netga.graph.graph import Graph
from netga.graph.node import Node
from netga.graph.repairable import Repairable
from netga.population.cost_matrix import EdgeCostMatrix

logger = logging.getLogger(__name__)

# Link model used for the graph mirror of a chromosome
MIRROR_EDGE_CAPACITY = 1000.0
MIRROR_EDGE_MAX_REPAIR_GEN = 20
MIRROR_EDGE_FAILURE_PROBABILITY = 0.30
MIRROR_EDGE_THRESHOLD = 0.70


class Chromosome:
    """One candidate network: a node list plus one destination list per node."""

    def __init__(
        self,
        node_list: List[Node],
        data: Optional[Sequence[Iterable[Node]]] = None,
        cost_matrix: Optional[EdgeCostMatrix] = None,
        rng: Optional[np.random.RandomState] = None,
    ):
        """
        Args:
            node_list: Nodes of the network, shared with sibling chromosomes
            data: One destination list per node; empty lists if omitted
            cost_matrix: Link costs indexed like node_list; straight-line
                distances between the nodes if omitted
            rng: Random source for the graph mirror's link repair model
        """
        require(node_list is not None, "The node list must not be None")
        self._nodes = node_list
        self._positions: Dict[Node, int] = {node: i for i, node in enumerate(node_list)}
        require(
            len(self._positions) == len(node_list),
            "A node appears more than once in the node list",
        )
        if data is None:
            self._cells: List[List[Node]] = [[] for _ in node_list]
        else:
            require(
                len(data) == len(node_list),
                f"The genome has {len(data)} loci but there are {len(node_list)} nodes",
            )
            self._cells = []
            for index, genes in enumerate(data):
                genes = list(genes)
                self._validate_genes(index, genes)
                self._cells.append(genes)
        if cost_matrix is not None:
            require(
                cost_matrix.dimension == len(node_list),
                f"The cost matrix covers {cost_matrix.dimension} nodes, not {len(node_list)}",
            )
        self._cost_matrix = cost_matrix
        self._rng = rng if rng is not None else np.random.RandomState()

        self._fitness = float("-inf")
        self._fitness_arr: Optional[np.ndarray] = None
        self._pr_selection = 0.0
        self._pleiotropy = float("-inf")
        self._redundancy = float("-inf")
        self._adjacency: Optional[np.ndarray] = None
        self._graph: Optional[Graph] = None

    # ------------------------------------------------------------------
    # Genome
    # ------------------------------------------------------------------

    def _validate_genes(self, index: int, genes: List[Node]) -> None:
        seen = set()
        for node in genes:
            require(node in self._positions, f"{node!r} at locus {index} is not in the node list")
            require(self._positions[node] != index, f"Locus {index} must not link to itself")
            require(node not in seen, f"{node!r} appears twice at locus {index}")
            seen.add(node)

    def _require_locus(self, index: int) -> None:
        require(
            0 <= index < len(self._cells),
            f"Locus {index} is out of bounds; range is [0,{len(self._cells) - 1}]",
        )

    def get_data(self, index: int) -> List[Node]:
        """Destination list of locus ``index``. Callers that change it must call invalidate()."""
        self._require_locus(index)
        return self._cells[index]

    def set_data(self, index: int, genes: Iterable[Node]) -> None:
        """Replace the destination list of locus ``index``."""
        self._require_locus(index)
        genes = list(genes)
        self._validate_genes(index, genes)
        self._cells[index] = genes
        self.invalidate()

    def get_data_array(self) -> List[List[Node]]:
        return self._cells

    def get_node_list(self) -> List[Node]:
        return self._nodes

    def get_length(self) -> int:
        return len(self._cells)

    def get_num_edges(self) -> int:
        return sum(len(genes) for genes in self._cells)

    @property
    def num_servers(self) -> int:
        return sum(1 for node in self._nodes if node.is_server)

    @property
    def num_clients(self) -> int:
        return sum(1 for node in self._nodes if node.is_client)

    def index_of(self, node: Node) -> int:
        require(node in self._positions, f"{node!r} is not in the node list")
        return self._positions[node]

    def contains_node(self, node: Node) -> bool:
        return node in self._positions

    def validate(self) -> None:
        """Check every locus references member nodes only, without self links or duplicates."""
        check(len(self._cells) == len(self._nodes), "Genome length differs from the node list")
        for index, genes in enumerate(self._cells):
            self._validate_genes(index, genes)

    def invalidate(self) -> None:
        """Drop cached matrices, the graph mirror and the fitness after a genome change."""
        self._adjacency = None
        self._graph = None
        self._fitness = float("-inf")
        self._fitness_arr = None

    # ------------------------------------------------------------------
    # Fitness
    # ------------------------------------------------------------------

    @property
    def fitness(self) -> float:
        return self._fitness

    def set_fitness(self, value: float) -> None:
        self._fitness = float(value)

    @property
    def is_evaluated(self) -> bool:
        return self._fitness_arr is not None

    def create_fitness_arr(self, size: int) -> None:
        require(size >= 0, f"Size of the fitness array is {size}")
        self._fitness_arr = np.zeros(size, dtype=float)

    def insert_into_fit_arr(self, index: int, value: float) -> None:
        check(self._fitness_arr is not None, "The fitness array has not been created")
        require(
            0 <= index < len(self._fitness_arr),
            f"Objective index {index} is out of bounds for {len(self._fitness_arr)} objectives",
        )
        self._fitness_arr[index] = value

    def get_fit_arr_elem(self, index: int) -> float:
        check(self._fitness_arr is not None, "The fitness array has not been created")
        require(
            0 <= index < len(self._fitness_arr),
            f"Objective index {index} is out of bounds for {len(self._fitness_arr)} objectives",
        )
        return float(self._fitness_arr[index])

    def get_fitness_arr(self) -> Optional[np.ndarray]:
        return self._fitness_arr

    @property
    def pr_selection(self) -> float:
        ensure(0.0 <= self._pr_selection <= 1.0, f"Probability of selection is {self._pr_selection}")
        return self._pr_selection

    def set_pr_selection(self, probability: float) -> None:
        require(
            0.0 <= probability <= 1.0,
            f"Probability of selection is {probability}; it must be between 0 and 1",
        )
        self._pr_selection = float(probability)

    @property
    def pleiotropy(self) -> float:
        return self._pleiotropy

    def set_pleiotropy(self, value: float) -> None:
        require(
            (value >= 0 and self.get_length() > 0)
            or (value == float("-inf") and self.get_length() == 0),
            f"Pleiotropy of the network is {value}; it cannot be negative",
        )
        self._pleiotropy = float(value)

    @property
    def redundancy(self) -> float:
        return self._redundancy

    def set_redundancy(self, value: float) -> None:
        require(
            (value >= 0 and self.get_length() > 0)
            or (value == float("-inf") and self.get_length() == 0),
            f"Redundancy of the network is {value}; it cannot be negative",
        )
        self._redundancy = float(value)

    # ------------------------------------------------------------------
    # Copies and derived views
    # ------------------------------------------------------------------

    def clone(self) -> "Chromosome":
        """Copy with its own destination lists; nodes and the cost matrix are shared."""
        twin = Chromosome.__new__(Chromosome)
        twin._nodes = self._nodes
        twin._positions = self._positions
        twin._cells = [list(genes) for genes in self._cells]
        twin._cost_matrix = self._cost_matrix
        twin._rng = self._rng
        twin._fitness = self._fitness
        twin._fitness_arr = None if self._fitness_arr is None else self._fitness_arr.copy()
        twin._pr_selection = self._pr_selection
        twin._pleiotropy = self._pleiotropy
        twin._redundancy = self._redundancy
        twin._adjacency = self._adjacency
        twin._graph = None
        return twin

    @property
    def cost_matrix(self) -> EdgeCostMatrix:
        if self._cost_matrix is None:
            self._cost_matrix = EdgeCostMatrix.euclidean([node.coordinates for node in self._nodes])
        return self._cost_matrix

    def set_cost_matrix(self, cost_matrix: EdgeCostMatrix) -> None:
        require(
            cost_matrix.dimension == len(self._nodes),
            f"The cost matrix covers {cost_matrix.dimension} nodes, not {len(self._nodes)}",
        )
        self._cost_matrix = cost_matrix
        self._adjacency = None
        self._graph = None

    def get_adjacency_matrix(self) -> np.ndarray:
        """
        Link cost matrix of the network.

        Entry ``[i, j]`` is the cost of the link from node ``i`` to node ``j``,
        ``inf`` where there is none and 0 on the diagonal. Links from or to an
        inactive node are left out. The result is cached and read-only.
        """
        check(self.get_length() > 0, "The chromosome has length 0")
        if self._adjacency is None:
            dim = self.get_length()
            costs = self.cost_matrix
            matrix = np.full((dim, dim), np.inf)
            np.fill_diagonal(matrix, 0.0)
            for i, genes in enumerate(self._cells):
                if not self._nodes[i].is_active:
                    continue
                for dest in genes:
                    if not dest.is_active:
                        continue
                    j = self._positions[dest]
                    matrix[i, j] = costs.cost(i, j)
            matrix.flags.writeable = False
            self._adjacency = matrix
        ensure(
            self._adjacency.shape == (self.get_length(), self.get_length()),
            "The adjacency matrix must be n x n where n is the number of nodes",
        )
        return self._adjacency

    def get_graph(self) -> Graph:
        """
        Graph mirror of the network.

        Nodes are copies of the node list (so connection usage never leaks
        into the shared nodes) and every gene between active nodes becomes
        an Edge whose cost comes from the cost matrix. Links a saturated
        server refuses are left out of the mirror.
        """
        dim = self.get_length()
        check(dim > 0, "The chromosome has length 0")
        if self._graph is None:
            width = max(node.coordinates[0] for node in self._nodes) + 1
            height = max(node.coordinates[1] for node in self._nodes) + 1
            # room to relocate nodes that share a position
            height = max(height, -(-2 * dim // width))
            graph = Graph(width, height, rng=self._rng)
            mirrors = [node.copy() for node in self._nodes]
            for mirror in mirrors:
                graph.add_node(mirror)

            costs = self.cost_matrix
            rejected = 0
            for i, genes in enumerate(self._cells):
                src = mirrors[i]
                if not src.is_active:
                    continue
                for dest_node in genes:
                    j = self._positions[dest_node]
                    dest = mirrors[j]
                    if not dest.is_active:
                        continue
                    repair = Repairable(
                        int(self._rng.randint(MIRROR_EDGE_MAX_REPAIR_GEN)),
                        MIRROR_EDGE_FAILURE_PROBABILITY,
                        MIRROR_EDGE_THRESHOLD,
                        rng=self._rng,
                    )
                    edge = Edge(
                        src,
                        dest,
                        label=f"{src.label.upper()}-{dest.label.upper()}",
                        capacity=MIRROR_EDGE_CAPACITY,
                        efficiency=1.0,
                        cost=costs.cost(i, j),
                        repair=repair,
                    )
                    if not graph.add_edge(edge):
                        rejected += 1
            if rejected:
                logger.debug(f"{rejected} links were refused by saturated servers")
            self._graph = graph
        ensure(
            self._graph.num_nodes() == dim,
            "The number of nodes in the graph must equal the length of the chromosome",
        )
        return self._graph

    def __repr__(self) -> str:
        return (
            f"Chromosome(length={len(self._cells)}, edges={self.get_num_edges()}, "
            f"fitness={self._fitness:.4f})"
        )
