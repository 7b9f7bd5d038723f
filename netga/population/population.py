"""
Population of chromosomes and multi-objective fitness aggregation.
"""
import logging
import math
from typing import Iterator, List, Optional, Sequence

import numpy as np

from netga.errors import check, require
from netga.population.chromosome import Chromosome
from netga.population.functions import CostFunction

logger = logging.getLogger(__name__)

# Largest share of the population remove_chromo() may cull in one call
MAX_RM_PERCENTAGE = 0.10


class SetOfChromosomes:
    """
    Ordered population of chromosomes.

    Fitness is aggregated from the raw per-objective scores as
    ``sqrt(sum_i (raw_i / sum_i) ** 2)``, where ``sum_i`` is the population
    total of objective ``i``. This treats the objectives as uncorrelated.
    """

    def __init__(self, chromosomes: Optional[List[Chromosome]] = None):
        self._population: List[Chromosome] = chromosomes if chromosomes is not None else []
        self._functions: List[CostFunction] = []
        self._sums: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self._population)

    def __iter__(self) -> Iterator[Chromosome]:
        return iter(list(self._population))

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_chromo(self, chromosome: Chromosome) -> None:
        require(chromosome is not None, "Chromosome must not be None")
        self._population.append(chromosome)

    def replace_chromo(self, index: int, chromosome: Chromosome) -> Chromosome:
        """Put ``chromosome`` at ``index`` and return the one it evicted."""
        require(chromosome is not None, "Chromosome must not be None")
        old = self.get_chromo(index)
        self._population[index] = chromosome
        return old

    def get_chromo(self, index: int) -> Chromosome:
        require(
            0 <= index < len(self._population),
            f"Index {index} is out of bounds for a population of {len(self._population)}",
        )
        return self._population[index]

    def append_pop(self, other: Optional["SetOfChromosomes"]) -> None:
        if other is None:
            return
        self._population.extend(other.get_cur_pop())

    def get_cur_pop(self) -> List[Chromosome]:
        return self._population

    def get_pop_size(self) -> int:
        return len(self._population)

    def best(self) -> Optional[Chromosome]:
        """Fittest chromosome, the first one found on ties."""
        if not self._population:
            return None
        return max(self._population, key=lambda c: c.fitness)

    def clone(self) -> "SetOfChromosomes":
        twin = SetOfChromosomes([chromosome.clone() for chromosome in self._population])
        twin._functions = list(self._functions)
        twin._sums = None if self._sums is None else self._sums.copy()
        return twin

    # ------------------------------------------------------------------
    # Fitness
    # ------------------------------------------------------------------

    def set_cost_functions(self, functions: Sequence[CostFunction]) -> None:
        require(functions is not None, "Cost functions must not be None")
        self._functions = list(functions)
        self._sums = None

    def get_cost_functions(self) -> List[CostFunction]:
        return self._functions

    def evaluate(self, chromosome: Chromosome) -> None:
        """Score one chromosome with every registered cost function."""
        chromosome.create_fitness_arr(len(self._functions))
        for index, function in enumerate(self._functions):
            function.apply(chromosome, index)

    def evaluate_all(self) -> None:
        for chromosome in self._population:
            chromosome.create_fitness_arr(len(self._functions))
        for index, function in enumerate(self._functions):
            function.map(self, index)

    def normalize(self) -> None:
        """Recompute the objective totals and the aggregate fitness of every chromosome."""
        count = len(self._functions)
        sums = np.zeros(count)
        for chromosome in self._population:
            raw = chromosome.get_fitness_arr()
            check(
                raw is not None and len(raw) == count,
                f"{chromosome!r} has not been scored on all {count} objectives",
            )
            sums += raw
        self._sums = sums
        for chromosome in self._population:
            self.pythagoras(chromosome)

    def pythagoras(self, chromosome: Chromosome) -> float:
        """Set (and return) the aggregate fitness of a chromosome using the last totals."""
        check(self._sums is not None, "normalize() must run before pythagoras()")
        raw = chromosome.get_fitness_arr()
        check(
            raw is not None and len(raw) == len(self._sums),
            f"{chromosome!r} has not been scored on all {len(self._sums)} objectives",
        )
        total = 0.0
        for value, objective_sum in zip(raw, self._sums):
            if objective_sum == 0:
                continue
            share = value / objective_sum
            total += share * share
        fitness = math.sqrt(total)
        chromosome.set_fitness(fitness)
        return fitness

    def get_objective_sums(self) -> Optional[np.ndarray]:
        return None if self._sums is None else self._sums.copy()

    def sort(self) -> None:
        """Order by descending fitness; equal fitness keeps the current order."""
        self._population.sort(key=lambda c: c.fitness, reverse=True)

    # ------------------------------------------------------------------
    # Twins and culling
    # ------------------------------------------------------------------

    @staticmethod
    def check_if_twins(chromosomes: Sequence[Optional[Chromosome]]) -> bool:
        """True if all given chromosomes encode the same links (order within a locus ignored)."""
        if chromosomes is None or len(chromosomes) < 2:
            return False
        if any(chromosome is None for chromosome in chromosomes):
            return False
        first = chromosomes[0]
        length = first.get_length()
        for other in chromosomes[1:]:
            if other.get_length() != length:
                return False
            for index in range(length):
                genes = first.get_data(index)
                other_genes = other.get_data(index)
                if len(genes) != len(other_genes):
                    return False
                if any(node not in other_genes for node in genes):
                    return False
        return True

    def remove_chromo(self, rng: Optional[np.random.RandomState] = None) -> List[Chromosome]:
        """
        Cull a random share, at most MAX_RM_PERCENTAGE, of the population.

        Twins of fitter members go first; the rest of the quota is taken from
        the least fit members.

        Returns:
            The removed chromosomes
        """
        rng = rng if rng is not None else np.random.RandomState()
        size = len(self._population)
        count = int(rng.random_sample() * MAX_RM_PERCENTAGE * size)
        if count == 0:
            return []

        order = sorted(range(size), key=lambda i: self._population[i].fitness, reverse=True)
        doomed: List[int] = []
        kept: List[Chromosome] = []
        for index in order:
            chromosome = self._population[index]
            if len(doomed) < count and any(self.check_if_twins([k, chromosome]) for k in kept):
                doomed.append(index)
            else:
                kept.append(chromosome)
        twins = len(doomed)
        for index in reversed(order):
            if len(doomed) >= count:
                break
            if index not in doomed:
                doomed.append(index)

        removed = [self._population[index] for index in doomed]
        doomed_set = set(doomed)
        self._population[:] = [c for i, c in enumerate(self._population) if i not in doomed_set]
        logger.debug(f"Removed {len(removed)} chromosomes ({twins} twins)")
        return removed

    def __repr__(self) -> str:
        return f"SetOfChromosomes(size={len(self._population)}, objectives={len(self._functions)})"
