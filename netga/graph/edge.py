"""
Directed links between nodes.
"""
from typing import Optional

from netga.errors import ensure, require
from netga.graph.node import Node
from netga.graph.repairable import Repairable
from netga.graph.usable import Usable


class Edge(Usable):
    """
    A directed, capacity-constrained link.

    Endpoints are held by reference and are not owned by the edge. Edges
    compare by identity, so parallel edges between the same pair of nodes
    are distinct.
    """

    def __init__(
        self,
        from_node: Node,
        to_node: Node,
        label: str = "",
        capacity: float = 0.0,
        efficiency: float = 0.0,
        cost: float = 0.0,
        repair: Optional[Repairable] = None,
    ):
        require(from_node is not None, "FromNode must not be None")
        require(to_node is not None, "ToNode must not be None")
        require(label is not None, "Label must not be None")
        require(cost >= 0, f"Cost of edge is {cost}; it must not be negative")
        super().__init__(capacity, efficiency)
        self.from_node = from_node
        self.to_node = to_node
        self.label = label
        self._cost = float(cost)
        self.repair = repair if repair is not None else Repairable()

    @property
    def cost(self) -> float:
        ensure(self._cost >= 0, f"Cost of edge is {self._cost}")
        return self._cost

    def set_cost(self, cost: float) -> None:
        require(cost >= 0, f"New cost of edge is {cost}; it must not be negative")
        self._cost = float(cost)

    @property
    def is_active(self) -> bool:
        return self.repair.is_active

    def __repr__(self) -> str:
        return f"Edge({self.from_node.label}->{self.to_node.label}, cost={self._cost:.2f})"
