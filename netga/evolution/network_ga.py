"""
Genetic algorithm evolving network topologies.

Each chromosome of the population encodes the links of one candidate network
over a shared list of servers and clients. Two evolution strategies are
available:
- generational: rank selection refills a whole new population every
  generation, keeping the two fittest when the population is large enough
- steady_state: every generation breeds one or two offspring from
  tournament winners and inserts them in place of the member of closest
  fitness
Seeded through a single numpy RandomState for reproducible runs.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from deap import base, tools
from tqdm import tqdm

from netga.config import STRATEGIES, NetGAConfig, get_config
from netga.errors import ensure, require
from netga.evolution.operators import PROB_CROSSOVER, PROB_MUTATION, crossover, mutate, symbiosis
from netga.evolution.selection import RankSelection, SSEASelection
from netga.graph.node import Node, NodeType
from netga.graph.repairable import Repairable
from netga.population.chromosome import Chromosome
from netga.population.cost_matrix import EdgeCostMatrix
from netga.population.functions import (
    CostFunction,
    PleiotropyRedundancy,
    ServerLoad,
    TotalEdgeCost,
    build_cost_functions,
)
from netga.population.population import SetOfChromosomes

logger = logging.getLogger(__name__)

SERVER_CAPACITY = 1000.0
CLIENT_CAPACITY = 16.0
MAX_REPAIR_GEN = 20
NODE_FAILURE_THRESHOLD = 0.20

# Populations at least this large keep their two fittest members
ELITISM_MIN_POP = 20
ELITE_COUNT = 2

# Share of the nodes each server is offered as clients when seeding
SERVER_SEED_FRACTION = 0.8
# Chance that a random initial link of a server/client goes to a server
SERVER_LINK_BIAS = 0.50
CLIENT_LINK_BIAS = 0.75

SYMBIOSIS_TOP_K = 5
STAGNATION_PATIENCE = 20


@dataclass(frozen=True)
class TopologySnapshot:
    """Read-only picture of the fittest network, for display."""

    generation: int
    fitness: float
    pleiotropy: float
    redundancy: float
    labels: Tuple[str, ...]
    node_types: Tuple[NodeType, ...]
    coordinates: Tuple[Tuple[int, int], ...]
    links: Tuple[Tuple[int, ...], ...]

    @property
    def num_links(self) -> int:
        return sum(len(destinations) for destinations in self.links)


class NetworkGA:
    """Seeded genetic algorithm over network-topology chromosomes."""

    def __init__(
        self,
        pr_crossover: float = PROB_CROSSOVER,
        pr_mutation: float = PROB_MUTATION,
        num_servers: int = 5,
        num_clients: int = 20,
        pop_size: int = 20,
        cost_functions: Optional[Sequence[CostFunction]] = None,
        pr_symbiosis: float = 0.0,
        strategy: str = "steady_state",
        replace_two: bool = True,
        tournament_size: int = 2,
        seed: Optional[int] = None,
        workspace: Tuple[int, int] = (950, 700),
        num_generations: int = 200,
    ):
        """
        Initialize the GA and create a random, evaluated initial population.

        Args:
            pr_crossover: Probability of crossing two parents
            pr_mutation: Probability of mutating an offspring
            num_servers: Number of server nodes
            num_clients: Number of client nodes
            pop_size: Number of chromosomes in the population
            cost_functions: Objectives scoring each chromosome (defaults to
                total link cost and server load)
            pr_symbiosis: Probability of symbiosis between two offspring
                (steady-state only)
            strategy: "steady_state" or "generational"
            replace_two: Steady-state inserts both offspring instead of one
            tournament_size: Candidates per steady-state tournament
            seed: Random seed (None = unseeded)
            workspace: (width, height) of the area nodes are placed in
            num_generations: Generations run() performs by default
        """
        for name, value in (
            ("pr_crossover", pr_crossover),
            ("pr_mutation", pr_mutation),
            ("pr_symbiosis", pr_symbiosis),
        ):
            require(0.0 <= value <= 1.0, f"{name} is {value}; it must be between 0 and 1")
        require(
            num_servers >= 0 and num_clients >= 0,
            f"There will be {num_servers} servers and {num_clients} clients; both must be non-negative",
        )
        require(num_servers + num_clients > 0, "The network must contain at least one node")
        require(pop_size > 0, f"Population size is {pop_size}; it must be positive")
        require(strategy in STRATEGIES, f"Strategy is {strategy!r}; expected one of {STRATEGIES}")
        require(tournament_size >= 1, f"Tournament size is {tournament_size}; it must be positive")
        require(
            workspace[0] > 0 and workspace[1] > 0,
            f"Workspace is {workspace[0]} x {workspace[1]}; both sides must be positive",
        )
        require(num_generations >= 0, f"Number of generations is {num_generations}")

        self._pr_crossover = pr_crossover
        self._pr_mutation = pr_mutation
        self._pr_symbiosis = pr_symbiosis
        self.num_servers = num_servers
        self.num_clients = num_clients
        self.pop_size = pop_size
        self.strategy = strategy
        self.replace_two = replace_two
        self.tournament_size = tournament_size
        self.seed = seed
        self.workspace = workspace
        self.num_generations = num_generations
        self.max_edge_cost = int(math.sqrt(workspace[0] ** 2 + workspace[1] ** 2))

        self.cost_functions: List[CostFunction] = (
            list(cost_functions) if cost_functions is not None else [TotalEdgeCost(), ServerLoad()]
        )
        self.pr_calculator = PleiotropyRedundancy()

        self._cur_gen = 0
        self._mutualism = False
        self._node_list: List[Node] = []
        self._cost_matrix: Optional[EdgeCostMatrix] = None
        self._cur_pop = SetOfChromosomes()

        # Seeded RNG
        self.rng = np.random.RandomState(seed)

        self._setup_deap()
        self.set_cur_pop(self.init_pop(num_servers, num_clients))
        self.evaluate_population()

    @classmethod
    def from_config(
        cls,
        config: Optional[NetGAConfig] = None,
        cost_functions: Optional[Sequence[CostFunction]] = None,
    ) -> "NetworkGA":
        """
        Build a GA from settings (the global config when none is given).

        The settings' log level is applied to the ``netga`` logger.
        """
        config = config if config is not None else get_config()
        logging.getLogger("netga").setLevel(config.log_level.upper())
        if cost_functions is None:
            cost_functions = build_cost_functions(
                config.cost_functions,
                stddev=config.gaussian_stddev,
                rng=np.random.RandomState(config.seed),
            )
        return cls(
            pr_crossover=config.pr_crossover,
            pr_mutation=config.pr_mutation,
            num_servers=config.num_servers,
            num_clients=config.num_clients,
            pop_size=config.population_size,
            cost_functions=cost_functions,
            pr_symbiosis=config.pr_symbiosis,
            strategy=config.strategy,
            replace_two=config.replace_two,
            tournament_size=config.tournament_size,
            seed=config.seed,
            workspace=(config.workspace_width, config.workspace_height),
            num_generations=config.num_generations,
        )

    def _setup_deap(self):
        """Setup DEAP toolbox and statistics."""
        self.toolbox = base.Toolbox()
        self.toolbox.register("clone", Chromosome.clone)
        self.toolbox.register("mate", crossover, rng=self.rng)
        self.toolbox.register("symbiose", symbiosis, top_k=SYMBIOSIS_TOP_K)
        self.toolbox.register("mutate", mutate, generation=self._cur_gen, rng=self.rng)

        self.stats = tools.Statistics(key=lambda chromosome: chromosome.fitness)
        self.stats.register("avg", np.mean)
        self.stats.register("std", np.std)
        self.stats.register("min", np.min)
        self.stats.register("max", np.max)

        self.logbook = tools.Logbook()
        self.logbook.header = ["gen", "evals"] + self.stats.fields

    # ------------------------------------------------------------------
    # Probabilities and counters
    # ------------------------------------------------------------------

    @property
    def pr_crossover(self) -> float:
        return self._pr_crossover

    @pr_crossover.setter
    def pr_crossover(self, value: float) -> None:
        require(0.0 <= value <= 1.0, f"pr_crossover is {value}; it must be between 0 and 1")
        self._pr_crossover = value

    @property
    def pr_mutation(self) -> float:
        return self._pr_mutation

    @pr_mutation.setter
    def pr_mutation(self, value: float) -> None:
        require(0.0 <= value <= 1.0, f"pr_mutation is {value}; it must be between 0 and 1")
        self._pr_mutation = value

    @property
    def pr_symbiosis(self) -> float:
        return self._pr_symbiosis

    @pr_symbiosis.setter
    def pr_symbiosis(self, value: float) -> None:
        require(0.0 <= value <= 1.0, f"pr_symbiosis is {value}; it must be between 0 and 1")
        self._pr_symbiosis = value

    def set_strategy(self, strategy: str) -> None:
        require(strategy in STRATEGIES, f"Strategy is {strategy!r}; expected one of {STRATEGIES}")
        if strategy != self.strategy:
            logger.info(f"Switching evolution strategy from {self.strategy} to {strategy}")
            if strategy == "generational":
                self._cur_pop.sort()
        self.strategy = strategy

    def get_num_gen(self) -> int:
        ensure(self._cur_gen >= 0, f"Current generation is {self._cur_gen}")
        return self._cur_gen

    def increment_gen(self) -> None:
        self._cur_gen += 1

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def init_node(self, node_type: NodeType, label: Optional[str] = None) -> Node:
        """Create a node at a random position with a random repair model."""
        require(isinstance(node_type, NodeType), f"Node type is {node_type!r}")
        x = int(self.rng.randint(self.workspace[0]))
        y = int(self.rng.randint(self.workspace[1]))
        repair = Repairable(
            int(self.rng.randint(MAX_REPAIR_GEN)),
            float(self.rng.random_sample()) * NODE_FAILURE_THRESHOLD,
            NODE_FAILURE_THRESHOLD,
            active=True,
            rng=self.rng,
        )
        capacity = SERVER_CAPACITY if node_type is NodeType.SERVER else CLIENT_CAPACITY
        return Node(node_type, x, y, capacity=capacity, efficiency=1.0, label=label, repair=repair)

    def init_chromo(self, node_list: List[Node], num_servers: int, num_clients: int) -> Chromosome:
        """
        Create a chromosome with a few random links per node.

        Nodes ``0..num_servers-1`` of the list are servers, the rest clients.
        Each node draws ``1 + randint(n // 5)`` destinations, a server with
        probability 0.5 for servers and 0.75 for clients.
        """
        total = len(node_list)
        require(total > 0, "The network must contain at least one node")
        require(
            num_servers >= 0 and num_clients >= 0,
            "Number of servers and clients must be non-negative",
        )
        require(
            total == num_servers + num_clients,
            f"The node list has {total} nodes, not {num_servers} + {num_clients}",
        )
        cells = []
        for i in range(total):
            bias = SERVER_LINK_BIAS if i < num_servers else CLIENT_LINK_BIAS
            cell: List[Node] = []
            for _ in range(int(self.rng.randint(max(1, total // 5))) + 1):
                pick_server = self.rng.random_sample() < bias
                if num_servers > 0 and (pick_server or num_clients == 0):
                    index = int(self.rng.randint(num_servers))
                else:
                    index = int(self.rng.randint(num_clients)) + num_servers
                node = node_list[index]
                if index != i and node not in cell:
                    cell.append(node)
            cells.append(cell)
        return Chromosome(node_list, cells, cost_matrix=self._cost_matrix, rng=self.rng)

    def init_pop(self, num_servers: int, num_clients: int) -> SetOfChromosomes:
        """
        Create ``pop_size`` random chromosomes over a fresh node list.

        On top of the random links, every server is offered
        ``int(0.8 * n)`` random clients to link to.
        """
        require(
            num_servers >= 0 and num_clients >= 0,
            "Number of servers and clients must be non-negative",
        )
        node_list = [
            self.init_node(NodeType.SERVER, label=f"SERVER-{i}") for i in range(num_servers)
        ] + [
            self.init_node(NodeType.CLIENT, label=f"CLIENT-{i}") for i in range(num_clients)
        ]
        seed_links = int((num_servers + num_clients) * SERVER_SEED_FRACTION)

        chromosomes = []
        for _ in range(self.pop_size):
            chromosome = self.init_chromo(node_list, num_servers, num_clients)
            if num_clients > 0:
                for server in range(num_servers):
                    genes = chromosome.get_data(server)
                    for _ in range(seed_links):
                        client = node_list[int(self.rng.randint(num_clients)) + num_servers]
                        if client not in genes:
                            genes.append(client)
                chromosome.invalidate()
            chromosomes.append(chromosome)
        logger.debug(
            f"Initial population: {self.pop_size} chromosomes over "
            f"{num_servers} servers and {num_clients} clients"
        )
        return SetOfChromosomes(chromosomes)

    def get_node_list(self) -> List[Node]:
        return self._node_list

    def get_cur_pop(self) -> SetOfChromosomes:
        return self._cur_pop

    def get_pop_size(self) -> int:
        return self._cur_pop.get_pop_size()

    def set_cur_pop(self, population: SetOfChromosomes) -> None:
        """
        Adopt a population and draw a fresh link cost matrix for its nodes.

        Raises:
            PreconditionViolation: if the chromosomes do not all share one node list
        """
        require(population is not None, "The population must not be None")
        if population.get_pop_size() > 0:
            nodes = population.get_chromo(0).get_node_list()
            for chromosome in population:
                require(
                    chromosome.get_node_list() is nodes,
                    "All chromosomes must refer to the same list of nodes",
                )
            self._node_list = nodes
            self._cost_matrix = EdgeCostMatrix.random(len(nodes), self.max_edge_cost, self.rng)
            for chromosome in population:
                chromosome.set_cost_matrix(self._cost_matrix)
        population.set_cost_functions(self.cost_functions)
        self._cur_pop = population

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_population(self) -> None:
        """Score, normalise and sort the current population."""
        self._cur_pop.evaluate_all()
        self.pr_calculator.map(self._cur_pop)
        self._cur_pop.normalize()
        self._cur_pop.sort()

    def _score_offspring(self, chromosome: Chromosome) -> None:
        """Score one offspring against the current population's objective totals."""
        self._cur_pop.evaluate(chromosome)
        self.pr_calculator.apply(chromosome)
        self._cur_pop.pythagoras(chromosome)

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def evolve(self) -> int:
        """
        One generational step.

        Returns:
            Number of chromosomes evaluated
        """
        target = self.get_pop_size()

        new_pop = SetOfChromosomes()
        if target >= ELITISM_MIN_POP:
            for i in range(ELITE_COUNT):
                new_pop.add_chromo(self._cur_pop.get_chromo(i))

        selection = RankSelection(self._cur_pop, self.rng)
        while new_pop.get_pop_size() < target:
            parents = selection.select_pair_chromo()
            child1, child2 = map(self.toolbox.clone, parents)
            if self.rng.random_sample() < self._pr_crossover:
                child1, child2 = self.toolbox.mate(child1, child2)
            if self.rng.random_sample() < self._pr_mutation:
                child1 = self.toolbox.mutate(child1)
            if self.rng.random_sample() < self._pr_mutation:
                child2 = self.toolbox.mutate(child2)
            new_pop.add_chromo(child1)
            # an odd target leaves room for one child only
            if new_pop.get_pop_size() < target:
                new_pop.add_chromo(child2)

        new_pop.set_cost_functions(self.cost_functions)
        self._cur_pop = new_pop
        self.evaluate_population()
        self.increment_gen()
        return new_pop.get_pop_size()

    def steady_state_evolve(self) -> int:
        """
        One steady-state step: breed from two tournament winners and insert
        the offspring in place of the members of closest fitness.

        Returns:
            Number of chromosomes evaluated
        """
        selection = SSEASelection(self._cur_pop, self.rng)
        child1 = self.toolbox.clone(selection.tournament_select_from(self.tournament_size))
        child2 = self.toolbox.clone(selection.tournament_select_from(self.tournament_size))

        if self.rng.random_sample() < self._pr_crossover:
            child1, child2 = self.toolbox.mate(child1, child2)
        if self.rng.random_sample() < self._pr_symbiosis:
            child1, child2 = self.toolbox.symbiose(child1, child2, self._mutualism)
            self._mutualism = not self._mutualism
        if self.rng.random_sample() < self._pr_mutation:
            child1 = self.toolbox.mutate(child1)
        self._score_offspring(child1)
        selection.insert(child1)
        evaluated = 1

        if self.replace_two:
            if self.rng.random_sample() < self._pr_mutation:
                child2 = self.toolbox.mutate(child2)
            self._score_offspring(child2)
            selection.insert(child2)
            evaluated += 1

        self.increment_gen()
        return evaluated

    def cull(self) -> int:
        """
        Remove a random share of twins and weak members, refilling the
        population with fresh random chromosomes.

        Returns:
            Number of chromosomes replaced
        """
        removed = self._cur_pop.remove_chromo(self.rng)
        for _ in removed:
            chromosome = self.init_chromo(self._node_list, self.num_servers, self.num_clients)
            self._score_offspring(chromosome)
            self._cur_pop.add_chromo(chromosome)
        if removed:
            logger.debug(f"Culled and replaced {len(removed)} chromosomes")
            if self.strategy == "generational":
                self._cur_pop.sort()
        return len(removed)

    def step(self) -> int:
        """Run one generation with the configured strategy."""
        self.toolbox.register("mutate", mutate, generation=self._cur_gen, rng=self.rng)
        if self.strategy == "generational":
            return self.evolve()
        return self.steady_state_evolve()

    def run(
        self,
        generations: Optional[int] = None,
        progress_callback: Optional[Callable[[int, float, float], None]] = None,
        generation_callback: Optional[Callable[[int, TopologySnapshot], None]] = None,
        show_progress: bool = True,
    ) -> Chromosome:
        """
        Evolve for a number of generations.

        Args:
            generations: Generations to run (defaults to num_generations)
            progress_callback: Called as (generation, best_fitness, mean_fitness)
                after every generation
            generation_callback: Called as (generation, snapshot) after every
                generation
            show_progress: Display a tqdm progress bar

        Callback errors are caught and logged.

        Returns:
            The fittest chromosome of the final population
        """
        generations = self.num_generations if generations is None else generations
        require(generations >= 0, f"Number of generations is {generations}")
        logger.info(
            f"Starting network GA (strategy={self.strategy}, pop={self.get_pop_size()}, "
            f"gen={generations}, pc={self._pr_crossover}, pm={self._pr_mutation}, "
            f"ps={self._pr_symbiosis})"
        )

        best_so_far = self.best_fitness
        generations_without_improvement = 0
        for _ in tqdm(range(generations), desc="Evolving", disable=not show_progress):
            evaluated = self.step()
            gen = self.get_num_gen()

            record = self.stats.compile(self._cur_pop)
            self.logbook.record(gen=gen, evals=evaluated, **record)
            current_best = float(record["max"])
            current_mean = float(record["avg"])
            logger.info(
                f"Gen {gen}: best={current_best:.4f}, mean={current_mean:.4f}, "
                f"std={float(record['std']):.4f}"
            )

            if current_best > best_so_far:
                best_so_far = current_best
                generations_without_improvement = 0
            else:
                generations_without_improvement += 1
                if generations_without_improvement == STAGNATION_PATIENCE:
                    logger.info(
                        f"No improvement for {STAGNATION_PATIENCE} generations "
                        f"(best={best_so_far:.4f})"
                    )

            if progress_callback:
                try:
                    progress_callback(gen, current_best, current_mean)
                except Exception as e:
                    logger.warning("Progress callback failed at gen %s: %s", gen, e)

            if generation_callback:
                try:
                    generation_callback(gen, self.snapshot())
                except Exception as e:
                    logger.warning("Generation callback failed at gen %s: %s", gen, e)

        best = self.best()
        logger.info(f"Network GA complete: best fitness = {self.best_fitness:.4f}")
        return best

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def best(self) -> Optional[Chromosome]:
        return self._cur_pop.best()

    @property
    def best_fitness(self) -> float:
        best = self.best()
        return best.fitness if best is not None else float("-inf")

    def snapshot(self) -> TopologySnapshot:
        """Picture of the fittest chromosome at the current generation."""
        best = self.best()
        require(best is not None, "The population is empty")
        nodes = best.get_node_list()
        return TopologySnapshot(
            generation=self._cur_gen,
            fitness=best.fitness,
            pleiotropy=best.pleiotropy,
            redundancy=best.redundancy,
            labels=tuple(node.label for node in nodes),
            node_types=tuple(node.node_type for node in nodes),
            coordinates=tuple(node.coordinates for node in nodes),
            links=tuple(
                tuple(best.index_of(dest) for dest in best.get_data(i))
                for i in range(best.get_length())
            ),
        )
