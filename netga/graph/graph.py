"""
Directed network graph with ordered traversal and topology statistics.

Nodes and edges are kept in insertion order; a node's or edge's position in
that order is its integer id. Sibling traversal (first/next edge to or from a
node) follows the order in which edges were added.
"""
import logging
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Set, Tuple

import numpy as np

from netga.errors import check, ensure, require
from netga.graph.edge import Edge
from netga.graph.node import Node

logger = logging.getLogger(__name__)

# Fraction of a server's capacity consumed by each connection it takes part in
NODE_INCREMENT = 0.0025


class Graph:
    """Directed graph of servers and clients."""

    def __init__(self, max_x: int = 640, max_y: int = 480, rng: Optional[np.random.RandomState] = None):
        """
        Args:
            max_x: Width of the placement area (node x coordinates are below it)
            max_y: Height of the placement area
            rng: Random source used to relocate nodes placed on an occupied spot
        """
        require(max_x > 0 and max_y > 0, f"The display area is {max_x} x {max_y}")
        self.max_x = max_x
        self.max_y = max_y
        self._rng = rng if rng is not None else np.random.RandomState()
        self._nodes: List[Node] = []
        self._edges: List[Edge] = []
        self._node_index: Dict[Node, int] = {}
        self._edge_index: Dict[Edge, int] = {}
        self._occupied: Set[Tuple[int, int]] = set()
        self._num_servers = 0
        self._num_clients = 0

    # ------------------------------------------------------------------
    # Membership and ids
    # ------------------------------------------------------------------

    def num_nodes(self) -> int:
        return len(self._nodes)

    def num_edges(self) -> int:
        return len(self._edges)

    def num_servers(self) -> int:
        return self._num_servers

    def num_clients(self) -> int:
        return self._num_clients

    def nodes(self) -> Iterator[Node]:
        return iter(self._nodes)

    def edges(self) -> Iterator[Edge]:
        return iter(self._edges)

    def has_node(self, node: Node) -> bool:
        return node in self._node_index

    def has_edge(self, edge: Edge) -> bool:
        return edge in self._edge_index

    def _require_node(self, node: Node) -> None:
        require(self.has_node(node), f"{node!r} must exist in the graph")

    def _require_edge(self, edge: Edge) -> None:
        require(self.has_edge(edge), f"{edge!r} must exist in the graph")

    def has_edge_between(self, from_node: Node, to_node: Node) -> bool:
        return self.get_edge_between(from_node, to_node) is not None

    def node_id(self, node: Node) -> int:
        self._require_node(node)
        return self._node_index[node]

    def edge_id(self, edge: Edge) -> int:
        self._require_edge(edge)
        return self._edge_index[edge]

    def get_node(self, node_id: int) -> Optional[Node]:
        if 0 <= node_id < len(self._nodes):
            return self._nodes[node_id]
        return None

    def get_edge(self, edge_id: int) -> Optional[Edge]:
        if 0 <= edge_id < len(self._edges):
            return self._edges[edge_id]
        return None

    def get_edge_between(self, from_node: Node, to_node: Node) -> Optional[Edge]:
        """First edge (in insertion order) leading from ``from_node`` to ``to_node``."""
        self._require_node(from_node)
        self._require_node(to_node)
        for edge in from_node.out_edges:
            if edge.to_node is to_node:
                return edge
        return None

    def in_degree(self, node: Node) -> int:
        self._require_node(node)
        return node.in_degree()

    def out_degree(self, node: Node) -> int:
        self._require_node(node)
        return node.out_degree()

    # ------------------------------------------------------------------
    # Ordered traversal
    # ------------------------------------------------------------------

    def first_node(self) -> Optional[Node]:
        return self._nodes[0] if self._nodes else None

    def next_node(self, node: Node) -> Optional[Node]:
        return self.get_node(self.node_id(node) + 1)

    def first_edge(self) -> Optional[Edge]:
        return self._edges[0] if self._edges else None

    def next_edge(self, edge: Edge) -> Optional[Edge]:
        return self.get_edge(self.edge_id(edge) + 1)

    def first_edge_to(self, node: Node) -> Optional[Edge]:
        self._require_node(node)
        return node.in_edges[0] if node.in_edges else None

    def last_edge_to(self, node: Node) -> Optional[Edge]:
        self._require_node(node)
        return node.in_edges[-1] if node.in_edges else None

    def first_edge_from(self, node: Node) -> Optional[Edge]:
        self._require_node(node)
        return node.out_edges[0] if node.out_edges else None

    def last_edge_from(self, node: Node) -> Optional[Edge]:
        self._require_node(node)
        return node.out_edges[-1] if node.out_edges else None

    def next_edge_to(self, node: Node, edge: Edge) -> Optional[Edge]:
        self._require_node(node)
        self._require_edge(edge)
        require(edge.to_node is node, "The edge's to-node must be the given node")
        return self._next_sibling(node.in_edges, edge)

    def next_edge_from(self, node: Node, edge: Edge) -> Optional[Edge]:
        self._require_node(node)
        self._require_edge(edge)
        require(edge.from_node is node, "The edge's from-node must be the given node")
        return self._next_sibling(node.out_edges, edge)

    @staticmethod
    def _next_sibling(siblings: List[Edge], edge: Edge) -> Optional[Edge]:
        for position, sibling in enumerate(siblings):
            if sibling is edge:
                return siblings[position + 1] if position + 1 < len(siblings) else None
        return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> None:
        """
        Add a node, relocating it to a random free spot if its position is taken.

        Raises:
            PreconditionViolation: if the node is already a member or lies
                outside the placement area
            AssertionViolation: if the placement area has no free spot left
        """
        require(not self.has_node(node), f"{node!r} is already in the graph")
        x, y = node.coordinates
        require(
            x < self.max_x and y < self.max_y,
            f"({x},{y}) lies outside the {self.max_x} x {self.max_y} area",
        )
        if (x, y) in self._occupied:
            check(
                len(self._occupied) < self.max_x * self.max_y,
                "No free position is left for the node",
            )
            logger.debug(f"({x},{y}) is already occupied. The node is being relocated...")
            while (x, y) in self._occupied:
                x = int(self._rng.randint(self.max_x))
                y = int(self._rng.randint(self.max_y))
            logger.debug(f"({x},{y}) is the new position")
            node.set_coordinates(x, y)
        self._occupied.add((x, y))

        self._node_index[node] = len(self._nodes)
        self._nodes.append(node)
        if node.is_server:
            self._num_servers += 1
        elif node.is_client:
            self._num_clients += 1
        ensure(self.has_node(node), "The new node is NOT in the graph")

    def add_edge(self, edge: Edge) -> bool:
        """
        Add an edge between two member nodes.

        Each connection takes NODE_INCREMENT of every server endpoint's
        capacity. If a server endpoint cannot take that usage the edge is
        rejected and the graph is left unchanged.

        Returns:
            True if the edge was added
        """
        from_node, to_node = edge.from_node, edge.to_node
        self._require_node(from_node)
        self._require_node(to_node)
        require(not self.has_edge(edge), f"{edge!r} is already in the graph")

        demand: Dict[Node, float] = {}
        for endpoint in (from_node, to_node):
            if endpoint.is_server:
                demand[endpoint] = demand.get(endpoint, 0.0) + NODE_INCREMENT * endpoint.max_capacity
        for endpoint, amount in demand.items():
            if amount > endpoint.get_available_capacity():
                logger.debug(
                    f"{endpoint!r} cannot accept any more connections; "
                    "no changes to the graph were made"
                )
                return False
        for endpoint, amount in demand.items():
            endpoint.incre_usage(amount)

        out_before, in_before = from_node.out_degree(), to_node.in_degree()
        self._edge_index[edge] = len(self._edges)
        self._edges.append(edge)
        from_node.add_out_edge(edge)
        to_node.add_in_edge(edge)

        ensure(self.has_edge(edge), "The new edge is NOT in the graph")
        if from_node is not to_node:
            ensure(
                from_node.out_degree() == out_before + 1 and to_node.in_degree() == in_before + 1,
                "The out- and in-degree of the nodes were not incremented",
            )
        return True

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _out_neighbours(self, node: Node) -> Set[Node]:
        self._require_node(node)
        return {edge.to_node for edge in node.out_edges if edge.to_node is not node}

    def _in_neighbours(self, node: Node) -> Set[Node]:
        self._require_node(node)
        return {edge.from_node for edge in node.in_edges if edge.from_node is not node}

    def pleio_to_server(self, node: Node) -> int:
        """Number of distinct servers this node links out to."""
        return sum(1 for other in self._out_neighbours(node) if other.is_server)

    def pleio_to_client(self, node: Node) -> int:
        """Number of distinct clients this node links out to."""
        return sum(1 for other in self._out_neighbours(node) if other.is_client)

    def pleio_to_all(self, node: Node) -> int:
        return self.pleio_to_server(node) + self.pleio_to_client(node)

    def redun_from_server(self, node: Node) -> int:
        """Number of distinct servers linking in to this node."""
        return sum(1 for other in self._in_neighbours(node) if other.is_server)

    def redun_from_client(self, node: Node) -> int:
        """Number of distinct clients linking in to this node."""
        return sum(1 for other in self._in_neighbours(node) if other.is_client)

    def redun_from_all(self, node: Node) -> int:
        return self.redun_from_server(node) + self.redun_from_client(node)

    def cluster_factor(self, node: Node) -> float:
        """
        Local clustering of a node.

        The fraction of pairs of the node's neighbours (in either direction)
        that are themselves linked in either direction. Nodes with fewer than
        two neighbours have a factor of 0.
        """
        neighbours = self._out_neighbours(node) | self._in_neighbours(node)
        k = len(neighbours)
        if k < 2:
            return 0.0
        linked = 0
        for a, b in combinations(neighbours, 2):
            if any(edge.to_node is b for edge in a.out_edges) or any(
                edge.to_node is a for edge in b.out_edges
            ):
                linked += 1
        return linked / (k * (k - 1) / 2.0)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={len(self._edges)})"
