"""Tests for the chromosome cost functions."""

import math

import numpy as np
import pytest

from netga.errors import PreconditionViolation
from netga.graph.node import Node, NodeType
from netga.population.chromosome import Chromosome
from netga.population.cost_matrix import EdgeCostMatrix
from netga.population.functions import (
    ClusterCoeff,
    DegreeSeparation,
    GaussianPerturbation,
    MinimalPaths,
    PleiotropyRedundancy,
    Resistance,
    ServerLoad,
    TotalEdgeCost,
    build_cost_functions,
    local_cluster_coefficients,
    resistance_matrix,
)

COSTS = EdgeCostMatrix([[0, 4, 15], [4, 0, 6], [15, 6, 0]])


@pytest.fixture
def nodes():
    return [
        Node(NodeType.SERVER, 0, 0, capacity=1000.0, efficiency=1.0, label="SERVER-0"),
        Node(NodeType.CLIENT, 3, 4, capacity=16.0, efficiency=1.0, label="CLIENT-0"),
        Node(NodeType.CLIENT, 6, 8, capacity=16.0, efficiency=1.0, label="CLIENT-1"),
    ]


def _chromosome(nodes, links):
    data = [[nodes[j] for j in links.get(i, [])] for i in range(len(nodes))]
    return Chromosome(nodes, data, cost_matrix=COSTS, rng=np.random.RandomState(0))


@pytest.fixture
def triangle(nodes):
    """Server links to both clients; the first client relays to the second."""
    return _chromosome(nodes, {0: [1, 2], 1: [2]})


@pytest.fixture
def chain(nodes):
    return _chromosome(nodes, {0: [1], 1: [2]})


@pytest.fixture
def star(nodes):
    return _chromosome(nodes, {0: [1, 2]})


def test_total_edge_cost(triangle):
    assert TotalEdgeCost().score(triangle) == 25.0


def test_minimal_paths_keeps_only_the_cheapest_links(triangle):
    # the direct link 0->2 (15) loses to the relay 0->1->2 (10)
    assert MinimalPaths().score(triangle) == 10.0
    assert MinimalPaths(average=True).score(triangle) == pytest.approx(20.0 / 3.0)


def test_degree_separation(chain, triangle):
    assert DegreeSeparation().score(chain) == 2.0
    assert DegreeSeparation(average=True).score(chain) == pytest.approx(4.0 / 3.0)
    assert DegreeSeparation().score(triangle) == 1.0


class TestClusterCoeff:
    def test_chain_has_no_clustering(self, chain):
        assert list(local_cluster_coefficients(chain)) == [0.0, 0.0, 0.0]
        assert ClusterCoeff().score(chain) == 0.0

    def test_star(self, star):
        assert local_cluster_coefficients(star)[0] == pytest.approx(1.0)
        assert ClusterCoeff().score(star) == pytest.approx(2.0)


def test_server_load(star):
    # two connections at 0.25% of a 1000-unit server each
    assert ServerLoad().score(star) == pytest.approx(5.0 / 995.0)


def test_server_load_with_nodes_sharing_a_position():
    shared = [
        Node(NodeType.SERVER, capacity=1000.0, efficiency=1.0),
        Node(NodeType.CLIENT, capacity=16.0, efficiency=1.0),
    ]
    ch = Chromosome(shared, [[shared[1]], []], rng=np.random.RandomState(0))
    assert ServerLoad().score(ch) > 0.0


class TestResistance:
    def test_parallel_paths_combine(self, triangle):
        r = resistance_matrix(triangle)
        # 0->2 directly (15) in parallel with 0->1->2 (10)
        assert r[0, 2] == pytest.approx(6.0)
        assert r[0, 1] == 4.0
        assert r[1, 2] == pytest.approx(6.0)
        assert list(np.diag(r)) == [0.0, 0.0, 0.0]
        assert math.isinf(r[2, 0]) and math.isinf(r[1, 0])
        assert Resistance().score(triangle) == pytest.approx(16.0 / 3.0)

    def test_unit_resistance(self, triangle):
        r = resistance_matrix(triangle, unit_resistance=True)
        assert r[0, 2] == pytest.approx(2.0 / 3.0)
        assert r[0, 1] == 1.0
        assert Resistance(unit_resistance=True).score(triangle) == pytest.approx(8.0 / 9.0)

    def test_chain_is_in_series(self, chain):
        assert resistance_matrix(chain)[0, 2] == pytest.approx(10.0)
        assert Resistance().score(chain) == pytest.approx(20.0 / 3.0)

    def test_unlinked_network(self, nodes):
        assert Resistance().score(_chromosome(nodes, {})) == 0.0

    def test_cycle_paths_stay_simple(self, nodes):
        ring = _chromosome(nodes, {0: [1], 1: [2], 2: [0]})
        r = resistance_matrix(ring)
        assert r[0, 2] == pytest.approx(10.0)
        assert r[2, 1] == pytest.approx(19.0)


class TestGaussianPerturbation:
    def test_zero_noise_is_the_base_score(self, triangle):
        noisy = GaussianPerturbation(TotalEdgeCost(), 0.0)
        assert noisy.score(triangle) == 25.0
        assert noisy.name == "noisy_total_edge_cost"

    def test_never_below_zero(self, chain):
        noisy = GaussianPerturbation(DegreeSeparation(), 50.0, rng=np.random.RandomState(3))
        assert all(noisy.score(chain) >= 0.0 for _ in range(50))

    def test_negative_stddev_rejected(self):
        with pytest.raises(PreconditionViolation):
            GaussianPerturbation(TotalEdgeCost(), -1.0)


def test_apply_writes_the_objective_slot(triangle):
    triangle.create_fitness_arr(2)
    TotalEdgeCost().apply(triangle, 1)
    assert triangle.get_fit_arr_elem(1) == 25.0
    assert triangle.get_fit_arr_elem(0) == 0.0


def test_pleiotropy_and_redundancy(star, nodes):
    PleiotropyRedundancy().apply(star)
    assert star.pleiotropy == 2.0
    assert star.redundancy == 1.0

    only_clients = Chromosome(nodes[1:], [[nodes[2]], []])
    PleiotropyRedundancy().apply(only_clients)
    assert only_clients.pleiotropy == 0.0
    assert only_clients.redundancy == 0.0


class TestBuildCostFunctions:
    def test_by_name(self):
        functions = build_cost_functions(["total_edge_cost", "Server_Load", "minimal_paths_avg"])
        assert isinstance(functions[0], TotalEdgeCost)
        assert isinstance(functions[1], ServerLoad)
        assert isinstance(functions[2], MinimalPaths) and functions[2].average

    def test_resistance_variants(self):
        plain, unit = build_cost_functions(["resistance", "resistance_unit"])
        assert isinstance(plain, Resistance) and not plain.unit_resistance
        assert isinstance(unit, Resistance) and unit.unit_resistance

    def test_noise_wraps_every_function(self):
        functions = build_cost_functions(["cluster_coeff"], stddev=0.5)
        assert isinstance(functions[0], GaussianPerturbation)
        assert isinstance(functions[0].base, ClusterCoeff)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown cost function"):
            build_cost_functions(["latency"])
