"""
Genetic operators on chromosomes.

Operators change chromosomes in place and invalidate their cached views and
fitness. They never touch a population; scoring the offspring is up to the
caller.
"""
import logging
from typing import Optional, Tuple

import numpy as np

from netga.errors import ensure, require
from netga.population.chromosome import Chromosome
from netga.population.functions import local_cluster_coefficients

logger = logging.getLogger(__name__)

PROB_CROSSOVER = 0.5
PROB_MUTATION = 0.4

# Cumulative probabilities of the mutation actions: remove, then add, else keep
ACCUM_PROB_REMOVE = 0.40
ACCUM_PROB_ADD = 0.80

# Offset keeping the mutation-rate decay finite at generation 0
GEN_OFFSET = 1


def _require_siblings(ch1: Chromosome, ch2: Chromosome) -> None:
    require(
        ch1.get_node_list() is ch2.get_node_list(),
        "Both chromosomes must share the same node list",
    )
    require(ch1.get_length() > 0, "The chromosomes must not be of length 0")


def crossover(
    ch1: Chromosome,
    ch2: Chromosome,
    rng: Optional[np.random.RandomState] = None,
) -> Tuple[Chromosome, Chromosome]:
    """
    Swap every other locus between two chromosomes.

    The swap starts at locus 0 or 1 at random and proceeds in steps of two.
    Both genomes are validated afterwards.

    Returns:
        The two (modified) chromosomes
    """
    _require_siblings(ch1, ch2)
    rng = rng if rng is not None else np.random.RandomState()
    cells1 = ch1.get_data_array()
    cells2 = ch2.get_data_array()
    start = int(rng.randint(2))
    for i in range(start, min(len(cells1), len(cells2)), 2):
        cells1[i], cells2[i] = cells2[i], cells1[i]
    ch1.invalidate()
    ch2.invalidate()
    ch1.validate()
    ch2.validate()
    return ch1, ch2


def symbiosis(
    ch1: Chromosome,
    ch2: Chromosome,
    mutualism: bool = False,
    top_k: int = 5,
) -> Tuple[Chromosome, Chromosome]:
    """
    Copy the links of the host's best-connected loci into its partner.

    The host is ``ch1`` and the partner ``ch2``; ``mutualism`` swaps the
    roles. The host's loci are ranked by local clustering and, for the
    ``top_k`` loci with a positive coefficient, every destination the partner
    lacks at that locus is appended to it.

    Returns:
        The two chromosomes, only the partner having changed
    """
    _require_siblings(ch1, ch2)
    require(top_k >= 0, f"Number of loci to share is {top_k}; it must not be negative")
    host, partner = (ch2, ch1) if mutualism else (ch1, ch2)

    coefficients = local_cluster_coefficients(host)
    ranked = np.argsort(-coefficients, kind="stable")
    loci = [int(i) for i in ranked[:top_k] if coefficients[i] > 0]

    added = 0
    for locus in loci:
        genes = partner.get_data(locus)
        for node in host.get_data(locus):
            if node not in genes:
                genes.append(node)
                added += 1
    partner.invalidate()
    partner.validate()
    logger.debug(f"Symbiosis shared {added} links from loci {loci}")
    return ch1, ch2


def mutation_fraction(generation: int) -> float:
    """Upper bound on the share of loci one mutation changes; decays with the generation."""
    require(generation >= 0, f"Generation is {generation}; it must not be negative")
    return 0.5 * (generation + GEN_OFFSET) ** -0.17


def mutate(
    chromosome: Chromosome,
    generation: int = 0,
    rng: Optional[np.random.RandomState] = None,
) -> Chromosome:
    """
    Randomly add or drop links.

    ``1 + randint(int(n * fraction) + 1)`` changes are made, each at a random
    locus: drop a random destination (p=0.4), add a new destination that is
    neither the locus itself nor already listed (p=0.4), or leave it (p=0.2).
    A change that is impossible at the drawn locus (dropping from an empty
    list, adding to a full one) is drawn again.
    """
    length = chromosome.get_length()
    require(length > 0, "The chromosome must have positive length")
    rng = rng if rng is not None else np.random.RandomState()
    nodes = chromosome.get_node_list()
    if length < 2:
        return chromosome

    changes = int(rng.randint(int(length * mutation_fraction(generation)) + 1)) + 1
    done = 0
    while done < changes:
        index = int(rng.randint(length))
        genes = chromosome.get_data(index)
        action = rng.random_sample()
        if action < ACCUM_PROB_REMOVE:
            if not genes:
                continue
            genes.pop(int(rng.randint(len(genes))))
        elif action < ACCUM_PROB_ADD:
            if len(genes) == length - 1:
                continue
            while True:
                candidate = int(rng.randint(length))
                node = nodes[candidate]
                if candidate != index and node not in genes:
                    break
            genes.append(node)
        done += 1

    chromosome.invalidate()
    ensure(
        all(len(genes) <= length - 1 for genes in chromosome.get_data_array()),
        "A locus lists more destinations than there are other nodes",
    )
    return chromosome
