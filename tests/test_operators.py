"""Tests for crossover, symbiosis and mutation."""

import numpy as np
import pytest

from netga.errors import PreconditionViolation
from netga.evolution.operators import crossover, mutate, mutation_fraction, symbiosis
from netga.graph.node import Node, NodeType
from netga.population.chromosome import Chromosome


class ScriptedRng:
    def __init__(self, integers):
        self.integers = list(integers)

    def randint(self, high):
        return self.integers.pop(0)


@pytest.fixture
def nodes():
    return [
        Node(NodeType.SERVER, 0, 0, capacity=1000.0, efficiency=1.0, label="SERVER-0"),
        Node(NodeType.CLIENT, 10, 0, capacity=16.0, efficiency=1.0, label="CLIENT-0"),
        Node(NodeType.CLIENT, 0, 10, capacity=16.0, efficiency=1.0, label="CLIENT-1"),
        Node(NodeType.CLIENT, 10, 10, capacity=16.0, efficiency=1.0, label="CLIENT-2"),
    ]


def _chromosome(nodes, links):
    return Chromosome(nodes, [[nodes[j] for j in links.get(i, [])] for i in range(len(nodes))])


class TestCrossover:
    @pytest.mark.parametrize("start, swapped", [(0, {0, 2}), (1, {1, 3})])
    def test_swaps_every_other_locus(self, nodes, start, swapped):
        a = _chromosome(nodes, {0: [1], 1: [2], 2: [3], 3: [0]})
        b = _chromosome(nodes, {0: [2], 1: [3], 2: [0], 3: [1]})
        before_a = [list(a.get_data(i)) for i in range(4)]
        before_b = [list(b.get_data(i)) for i in range(4)]

        crossover(a, b, ScriptedRng([start]))

        for i in range(4):
            if i in swapped:
                assert a.get_data(i) == before_b[i]
                assert b.get_data(i) == before_a[i]
            else:
                assert a.get_data(i) == before_a[i]
                assert b.get_data(i) == before_b[i]

    def test_offspring_need_scoring(self, nodes):
        a = _chromosome(nodes, {0: [1]})
        b = _chromosome(nodes, {0: [2]})
        a.set_fitness(4.0)
        crossover(a, b, np.random.RandomState(0))
        assert a.fitness == float("-inf")

    def test_node_lists_must_be_shared(self, nodes):
        other = [node.copy() for node in nodes]
        with pytest.raises(PreconditionViolation):
            crossover(_chromosome(nodes, {}), _chromosome(other, {}))

    def test_swapped_loci_are_validated(self, nodes):
        a = _chromosome(nodes, {0: [1]})
        b = _chromosome(nodes, {0: [2]})
        # a self link slipped in by editing the genes in place
        a.get_data(2).append(nodes[2])
        with pytest.raises(PreconditionViolation, match="must not link to itself"):
            crossover(a, b, ScriptedRng([0]))
        assert b.get_data(2) == [nodes[2]]


class TestSymbiosis:
    def test_best_connected_locus_is_shared(self, nodes):
        # locus 0 links to two nodes that reach each other; locus 1 has a single link
        host = _chromosome(nodes, {0: [1, 2], 1: [2]})
        partner = _chromosome(nodes, {0: [1], 3: [0]})

        symbiosis(host, partner)

        assert set(partner.get_data(0)) == {nodes[1], nodes[2]}
        assert partner.get_data(1) == []
        assert partner.get_data(3) == [nodes[0]]
        assert host.get_data(0) == [nodes[1], nodes[2]]

    def test_mutualism_swaps_the_roles(self, nodes):
        partner = _chromosome(nodes, {})
        host = _chromosome(nodes, {0: [1, 2], 1: [2]})

        symbiosis(partner, host, mutualism=True)

        assert set(partner.get_data(0)) == {nodes[1], nodes[2]}
        assert host.get_data(0) == [nodes[1], nodes[2]]

    def test_host_without_clusters_shares_nothing(self, nodes):
        host = _chromosome(nodes, {0: [1], 1: [2]})
        partner = _chromosome(nodes, {})
        symbiosis(host, partner)
        assert partner.get_num_edges() == 0

    def test_top_k_limits_the_shared_loci(self, nodes):
        host = _chromosome(nodes, {0: [1, 2], 3: [1, 2]})
        partner = _chromosome(nodes, {})
        symbiosis(host, partner, top_k=1)
        assert partner.get_num_edges() == 2


class TestMutation:
    def test_fraction_decays(self):
        assert mutation_fraction(0) == 0.5
        assert mutation_fraction(1) == pytest.approx(0.5 * 2 ** -0.17)
        assert mutation_fraction(100) < mutation_fraction(10)
        with pytest.raises(PreconditionViolation):
            mutation_fraction(-1)

    def test_mutated_chromosome_stays_valid(self, nodes):
        rng = np.random.RandomState(11)
        ch = _chromosome(nodes, {0: [1, 2, 3], 1: [2]})
        for generation in range(200):
            mutate(ch, generation, rng)
            ch.validate()
            assert all(len(ch.get_data(i)) <= 3 for i in range(4))

    def test_mutation_changes_the_genome(self, nodes):
        rng = np.random.RandomState(2)
        ch = _chromosome(nodes, {})
        for _ in range(20):
            mutate(ch, 0, rng)
        assert ch.get_num_edges() > 0

    def test_single_node_is_left_alone(self, nodes):
        ch = Chromosome(nodes[:1])
        assert mutate(ch, 0, np.random.RandomState(0)) is ch
        assert ch.get_data(0) == []
