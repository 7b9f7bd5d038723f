"""Tests for rank and tournament selection."""

import numpy as np
import pytest

from netga.errors import AssertionViolation, PreconditionViolation
from netga.evolution.selection import RankSelection, SSEASelection, first_share
from netga.graph.node import Node, NodeType
from netga.population.chromosome import Chromosome
from netga.population.population import SetOfChromosomes

FITNESS = [
    52.8, 24.2, 96.7, 25.4, 44.0, 43.3, 21.9, 62.9, 38.1, 11.4,
    0.1, 76.1, 99.1, 14.1, 99.9, 17.1, 41.2, 21.3, 83.1, 28.3,
]


class ScriptedRng:
    """Replays fixed draws in place of a RandomState."""

    def __init__(self, samples=(), integers=()):
        self.samples = list(samples)
        self.integers = list(integers)

    def random_sample(self):
        return self.samples.pop(0)

    def randint(self, high):
        value = self.integers.pop(0)
        assert 0 <= value < high
        return value


def _population(fitness):
    nodes = [
        Node(NodeType.SERVER, 0, 0, capacity=1000.0, efficiency=1.0),
        Node(NodeType.CLIENT, 1, 1, capacity=16.0, efficiency=1.0),
    ]
    chromosomes = []
    for value in fitness:
        ch = Chromosome(nodes)
        ch.set_fitness(value)
        chromosomes.append(ch)
    return SetOfChromosomes(chromosomes)


def _fitness_with(value):
    return _population([value]).get_chromo(0)


class TestFirstShare:
    def test_small_population(self):
        assert first_share(24) == pytest.approx(0.52)

    def test_hundred(self):
        assert first_share(100) == pytest.approx(0.02915781944436709)

    def test_shrinks_with_size(self):
        shares = [first_share(n) for n in (10, 25, 50, 75, 200)]
        assert shares == sorted(shares, reverse=True)
        assert all(share > 0.02 for share in shares)


class TestRankSelection:
    def test_cumulative_probabilities(self):
        selection = RankSelection(_population([3.0, 2.0, 1.0]))
        assert selection.pr_selection == pytest.approx([0.52, 0.7696, 1.0])

    def test_last_entry_is_one(self):
        pop = _population(sorted(FITNESS, reverse=True))
        selection = RankSelection(pop)
        assert selection.pr_selection[-1] == 1.0
        assert np.all(np.diff(selection.pr_selection) >= 0)

    def test_draw_follows_the_cumulative_array(self):
        pop = _population([3.0, 2.0, 1.0])
        selection = RankSelection(pop, ScriptedRng(samples=[0.6, 0.1]))
        first, second = selection.select_pair_chromo()
        assert first is pop.get_chromo(1)
        assert second is pop.get_chromo(0)
        assert first.pr_selection == 0.6

    def test_empty_population(self):
        selection = RankSelection(SetOfChromosomes())
        assert selection.pr_selection is None
        with pytest.raises(AssertionViolation):
            selection.select_pair_chromo()

    def test_invalid_first_share(self):
        selection = RankSelection(_population([1.0]))
        with pytest.raises(PreconditionViolation):
            selection.set_pr_selection(1.2)


class TestTournament:
    def test_fittest_candidate_wins(self):
        pop = _population(FITNESS)
        selection = SSEASelection(pop, ScriptedRng(integers=[9, 14, 3]))
        assert selection.tournament_select_from(3).fitness == 99.9

    def test_ties_go_to_the_first_drawn(self):
        pop = _population([5.0, 5.0])
        selection = SSEASelection(pop, ScriptedRng(integers=[1, 0]))
        assert selection.tournament_select_from(2) is pop.get_chromo(1)

    def test_candidates_are_drawn_with_replacement(self):
        pop = _population([1.0, 2.0])
        selection = SSEASelection(pop, ScriptedRng(integers=[0, 0, 0]))
        assert selection.tournament_select_from(3) is pop.get_chromo(0)

    def test_errors(self):
        with pytest.raises(AssertionViolation):
            SSEASelection(SetOfChromosomes()).tournament_select_from(2)
        with pytest.raises(PreconditionViolation):
            SSEASelection(_population([1.0])).tournament_select_from(0)


class TestInsert:
    @pytest.mark.parametrize(
        "fitness, expected",
        [(34.8, 8), (6.0, 9), (78.0, 11), (59.9, 7), (15.3, 13)],
    )
    def test_replaces_the_closest_fitness(self, fitness, expected):
        pop = _population(FITNESS)
        newcomer = _fitness_with(fitness)
        selection = SSEASelection(pop)
        assert selection.insert(newcomer) == expected
        assert pop.get_chromo(expected) is newcomer
        assert selection.size == 20

    def test_tie_goes_to_the_lowest_index(self):
        pop = _population([1.0, 3.0, 3.0])
        assert SSEASelection(pop).insert(_fitness_with(2.0)) == 0

