"""Tests for graph membership, traversal order and topology statistics."""

import numpy as np
import pytest

from netga.errors import PreconditionViolation
from netga.graph.edge import Edge
from netga.graph.graph import NODE_INCREMENT, Graph
from netga.graph.node import Node, NodeType


def _server(x=0, y=0, capacity=1000.0, efficiency=1.0):
    return Node(NodeType.SERVER, x, y, capacity=capacity, efficiency=efficiency)


def _client(x=0, y=0):
    return Node(NodeType.CLIENT, x, y, capacity=16.0, efficiency=1.0)


@pytest.fixture
def star():
    """One server linking out to two clients."""
    g = Graph(10, 10, rng=np.random.RandomState(0))
    s, c1, c2 = _server(0, 0), _client(1, 1), _client(2, 2)
    for node in (s, c1, c2):
        g.add_node(node)
    e1, e2 = Edge(s, c1), Edge(s, c2)
    assert g.add_edge(e1)
    assert g.add_edge(e2)
    return g, s, c1, c2, e1, e2


class TestMembership:
    def test_counts(self, star):
        g, *_ = star
        assert g.num_nodes() == 3
        assert g.num_edges() == 2
        assert g.num_servers() == 1
        assert g.num_clients() == 2

    def test_ids_follow_insertion_order(self, star):
        g, s, c1, c2, e1, e2 = star
        assert [g.node_id(n) for n in (s, c1, c2)] == [0, 1, 2]
        assert g.edge_id(e2) == 1
        assert g.get_node(1) is c1
        assert g.get_node(99) is None
        assert g.get_edge(-1) is None

    def test_adding_a_member_twice_rejected(self, star):
        g, s, *_ = star
        with pytest.raises(PreconditionViolation):
            g.add_node(s)

    def test_queries_on_non_members_rejected(self, star):
        g, s, c1, c2, e1, e2 = star
        outsider = _client(5, 5)
        with pytest.raises(PreconditionViolation):
            g.node_id(outsider)
        with pytest.raises(PreconditionViolation):
            g.first_edge_to(outsider)
        with pytest.raises(PreconditionViolation):
            g.in_degree(outsider)
        with pytest.raises(PreconditionViolation):
            g.add_edge(Edge(s, outsider))
        with pytest.raises(PreconditionViolation):
            g.edge_id(Edge(s, c1))

    def test_has_edge_between(self, star):
        g, s, c1, *_ = star
        assert g.has_edge_between(s, c1)
        assert not g.has_edge_between(c1, s)


class TestPlacement:
    def test_occupied_position_relocates_the_node(self):
        g = Graph(10, 10, rng=np.random.RandomState(3))
        g.add_node(_server(4, 4))
        newcomer = _client(4, 4)
        g.add_node(newcomer)
        x, y = newcomer.coordinates
        assert (x, y) != (4, 4)
        assert 0 <= x < 10 and 0 <= y < 10

    def test_position_outside_the_area_rejected(self):
        g = Graph(10, 10)
        with pytest.raises(PreconditionViolation):
            g.add_node(_client(10, 3))


class TestTraversal:
    def test_siblings_in_insertion_order(self, star):
        g, s, c1, c2, e1, e2 = star
        assert g.first_edge_from(s) is e1
        assert g.next_edge_from(s, e1) is e2
        assert g.next_edge_from(s, e2) is None
        assert g.last_edge_from(s) is e2
        assert g.first_edge_to(c1) is e1
        assert g.last_edge_to(c1) is e1
        assert g.next_edge_to(c1, e1) is None
        assert g.first_edge_to(s) is None

    def test_node_and_edge_sequences(self, star):
        g, s, c1, c2, e1, e2 = star
        assert g.first_node() is s
        assert g.next_node(c2) is None
        assert g.first_edge() is e1
        assert g.next_edge(e1) is e2
        assert g.next_edge(e2) is None
        assert list(g.nodes()) == [s, c1, c2]

    def test_sibling_of_another_node_rejected(self, star):
        g, s, c1, c2, e1, e2 = star
        with pytest.raises(PreconditionViolation):
            g.next_edge_from(c1, e1)
        with pytest.raises(PreconditionViolation):
            g.next_edge_to(c2, e1)


class TestConnectionUsage:
    def test_each_connection_uses_server_capacity(self, star):
        g, s, c1, *_ = star
        assert s.usage == pytest.approx(2 * NODE_INCREMENT * 1000.0)
        assert c1.usage == 0.0

    def test_saturated_server_refuses_the_edge(self):
        g = Graph(10, 10)
        s = _server(0, 0, capacity=1000.0, efficiency=0.001)
        c = _client(1, 1)
        g.add_node(s)
        g.add_node(c)
        assert g.add_edge(Edge(c, s)) is False
        assert g.num_edges() == 0
        assert s.in_degree() == 0
        assert c.out_degree() == 0
        assert s.usage == 0.0


class TestStatistics:
    def test_distinct_neighbours_by_type(self, star):
        g, s, c1, c2, e1, e2 = star
        assert g.add_edge(Edge(s, c1))
        other = _server(3, 3)
        g.add_node(other)
        assert g.add_edge(Edge(other, c1))

        assert g.pleio_to_client(s) == 2
        assert g.pleio_to_server(s) == 0
        assert g.pleio_to_all(s) == 2
        assert g.redun_from_server(c1) == 2
        assert g.redun_from_client(c1) == 0
        assert g.redun_from_all(c1) == 2

    def test_cluster_factor(self, star):
        g, s, c1, c2, e1, e2 = star
        assert g.cluster_factor(s) == 0.0
        assert g.cluster_factor(c1) == 0.0

        assert g.add_edge(Edge(c2, c1))
        assert g.cluster_factor(s) == 1.0
