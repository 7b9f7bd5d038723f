"""
Network nodes: servers and clients.
"""
from enum import Enum
from typing import List, Optional, Tuple

from netga.errors import ensure, require
from netga.graph.repairable import Repairable
from netga.graph.usable import Usable

# Indices into Node.stats
OUT_TO_SERVER = 0
IN_FROM_SERVER = 1
OUT_TO_CLIENT = 2
IN_FROM_CLIENT = 3


class NodeType(Enum):
    SERVER = "SERVER"
    CLIENT = "CLIENT"

    @classmethod
    def from_label(cls, label: str) -> "NodeType":
        """Parse a legacy label such as ``"Server-3"`` by its prefix."""
        require(label is not None, "Label must not be None")
        upper = label.strip().upper()
        for node_type in cls:
            if upper.startswith(node_type.value):
                return node_type
        raise ValueError(f"Label {label!r} does not start with SERVER or CLIENT")


class Node(Usable):
    """
    A server or client in a network topology.

    A node keeps its incoming and outgoing edges in insertion order and counts
    its connections by the type of node at the other end. Its failure/repair
    behaviour lives in the ``repair`` facet.
    """

    def __init__(
        self,
        node_type: NodeType,
        x: int = 0,
        y: int = 0,
        capacity: float = 0.0,
        efficiency: float = 0.0,
        label: Optional[str] = None,
        repair: Optional[Repairable] = None,
    ):
        require(isinstance(node_type, NodeType), f"Node type is {node_type!r}")
        require(x >= 0 and y >= 0, f"The new coordinates are ({x},{y}); they must not be negative")
        super().__init__(capacity, efficiency)
        self.node_type = node_type
        self.label = label if label is not None else node_type.value
        self._coord = (int(x), int(y))
        self._traffic = 0.0
        self.repair = repair if repair is not None else Repairable()
        self.in_edges: List = []
        self.out_edges: List = []
        self._stats = [0, 0, 0, 0]

    def copy(self) -> "Node":
        """Copy identity data (type, label, coordinates, resources, repair state) but no edges."""
        clone = Node(
            self.node_type,
            *self._coord,
            capacity=self.max_capacity,
            efficiency=self.efficiency,
            label=self.label,
            repair=self.repair.copy(),
        )
        clone._traffic = self._traffic
        return clone

    @property
    def is_server(self) -> bool:
        return self.node_type is NodeType.SERVER

    @property
    def is_client(self) -> bool:
        return self.node_type is NodeType.CLIENT

    @property
    def is_active(self) -> bool:
        return self.repair.is_active

    @property
    def coordinates(self) -> Tuple[int, int]:
        ensure(
            self._coord[0] >= 0 and self._coord[1] >= 0,
            f"The coordinates are {self._coord}",
        )
        return self._coord

    def set_coordinates(self, x: int, y: int) -> None:
        require(x >= 0 and y >= 0, f"The new coordinates are ({x},{y}); they must not be negative")
        self._coord = (int(x), int(y))

    @property
    def traffic(self) -> float:
        ensure(self._traffic >= 0, f"The traffic from this node is {self._traffic}")
        return self._traffic

    def set_traffic(self, traffic: float) -> None:
        require(traffic >= 0, f"The new traffic from this node is {traffic}")
        self._traffic = float(traffic)

    @property
    def stats(self) -> Tuple[int, int, int, int]:
        """Connection counts: (out-to-server, in-from-server, out-to-client, in-from-client)."""
        ensure(all(count >= 0 for count in self._stats), f"The statistic values are {self._stats}")
        return tuple(self._stats)

    def in_degree(self) -> int:
        return len(self.in_edges)

    def out_degree(self) -> int:
        return len(self.out_edges)

    def add_in_edge(self, edge) -> None:
        require(edge.to_node is self, "The new incoming edge must end at this node")
        source = edge.from_node
        if source.is_server:
            self._stats[IN_FROM_SERVER] += 1
        elif source.is_client:
            self._stats[IN_FROM_CLIENT] += 1
        self.in_edges.append(edge)

    def add_out_edge(self, edge) -> None:
        require(edge.from_node is self, "The new outgoing edge must leave from this node")
        target = edge.to_node
        if target.is_server:
            self._stats[OUT_TO_SERVER] += 1
        elif target.is_client:
            self._stats[OUT_TO_CLIENT] += 1
        self.out_edges.append(edge)

    def __repr__(self) -> str:
        return f"Node({self.label}@{self._coord[0]},{self._coord[1]})"
