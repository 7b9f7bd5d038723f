"""
Parent selection strategies.

- RankSelection: cumulative rank-based probabilities over a population sorted
  by descending fitness (generational evolution).
- SSEASelection: tournament selection and closest-fitness replacement
  (steady-state evolution).
"""
import logging
import math
from typing import Optional, Tuple

import numpy as np

from netga.errors import check, ensure, require
from netga.population.chromosome import Chromosome
from netga.population.population import SetOfChromosomes

logger = logging.getLogger(__name__)


def first_share(pop_size: int) -> float:
    """Share of the selection probability given to the first rank."""
    require(pop_size >= 0, f"Population size is {pop_size}; it must not be negative")
    return 0.02 + 0.5 * math.exp(-(pop_size // 25))


class RankSelection:
    """
    Rank selection over a population sorted fittest first.

    Rank ``i`` receives ``p`` of the probability mass not yet handed out to
    ranks ``0..i-1``; the array kept is the running total of those shares,
    with the last entry pinned to 1.0.
    """

    def __init__(self, population: Optional[SetOfChromosomes], rng: Optional[np.random.RandomState] = None):
        self.population = population
        self.rng = rng if rng is not None else np.random.RandomState()
        self.size = population.get_pop_size() if population is not None else 0
        self.pr_selection: Optional[np.ndarray] = None
        if self.size > 0:
            self.set_pr_selection(first_share(self.size))

    def set_pr_selection(self, first_probability: float) -> None:
        require(
            0.0 <= first_probability <= 1.0,
            f"Probability is {first_probability}; it must be between 0.00 and 1.00",
        )
        shares = np.empty(self.size)
        left_over = 1.0
        for i in range(self.size):
            shares[i] = left_over * first_probability
            left_over -= shares[i]
        cumulative = np.cumsum(shares)
        cumulative[-1] = 1.0
        ensure(
            bool(np.all(np.diff(cumulative) >= 0)),
            "The cumulative probability array is NOT ordered correctly",
        )
        self.pr_selection = cumulative

    def _draw(self) -> Chromosome:
        sample = float(self.rng.random_sample())
        for i in range(self.size):
            if sample <= self.pr_selection[i]:
                chromosome = self.population.get_chromo(i)
                chromosome.set_pr_selection(sample)
                return chromosome
        # unreachable: the last cumulative entry is 1.0
        return self.population.get_chromo(self.size - 1)

    def select_pair_chromo(self) -> Tuple[Chromosome, Chromosome]:
        """Draw two parents independently (they may be the same chromosome)."""
        check(
            self.population is not None and self.population.get_pop_size() > 0,
            "The population must not be empty",
        )
        return self._draw(), self._draw()


class SSEASelection:
    """Tournament selection and closest-fitness insertion for steady-state evolution."""

    def __init__(self, population: SetOfChromosomes, rng: Optional[np.random.RandomState] = None):
        self.population = population
        self.rng = rng if rng is not None else np.random.RandomState()

    @property
    def size(self) -> int:
        return self.population.get_pop_size() if self.population is not None else 0

    def tournament_select_from(self, n: int) -> Chromosome:
        """
        Fittest of ``n`` members drawn uniformly with replacement.

        Raises:
            AssertionViolation: if the population is empty
            PreconditionViolation: if n < 1
        """
        check(self.size > 0, "The population must not be empty")
        require(n >= 1, f"The number of candidates is {n}; it must be greater than 0")
        candidates = [self.population.get_chromo(int(self.rng.randint(self.size))) for _ in range(n)]
        winner = candidates[0]
        for candidate in candidates[1:]:
            if candidate.fitness > winner.fitness:
                winner = candidate
        return winner

    def insert(self, chromosome: Chromosome) -> int:
        """
        Replace the member whose fitness is closest to the newcomer's.

        Ties go to the lowest index. Returns the index that was replaced.
        """
        check(self.size > 0, "The population must not be empty")
        target = chromosome.fitness
        index = -1
        closest = math.inf
        for i, member in enumerate(self.population.get_cur_pop()):
            diff = abs(member.fitness - target)
            if math.isnan(diff):
                diff = math.inf
            if index < 0 or diff < closest:
                closest = diff
                index = i
        check(0 <= index < self.size, f"Index of the chromosome to replace is {index}")
        self.population.replace_chromo(index, chromosome)
        logger.debug(f"Inserted chromosome with fitness {target:.4f} at index {index}")
        return index
