import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidArgumentError, InvalidStateError
from .evaluation import DistanceFitness
from .geometry import City, Tour
from .operators import Crossover, Mutation
from .solvers.base import Solver, finished_tour, is_cancelled

logger = logging.getLogger(__name__)

FITNESS_IMPROVEMENT_THRESHOLD = 1e-6


@dataclass
class GeneticAlgorithmConfig:
    population_size: int = 100
    max_generations: int = 1000
    mutation_rate: float = 0.01
    crossover_rate: float = 0.8
    elitism_rate: float = 0.1
    tournament_size: int = 5
    stagnation_limit: int = 100
    progress_report_interval: int = 10
    random_seed: Optional[int] = None
    crossover_name: str = "OrderCrossover"
    mutation_name: str = "SwapMutation"

    def __post_init__(self):
        if self.population_size <= 0:
            raise InvalidArgumentError("population_size must be positive")
        if self.max_generations <= 0:
            raise InvalidArgumentError("max_generations must be positive")
        for field_name in ("mutation_rate", "crossover_rate", "elitism_rate"):
            value = getattr(self, field_name)
            if not 0.0 <= value <= 1.0:
                raise InvalidArgumentError(f"{field_name} must be within [0, 1], got {value}")
        if self.tournament_size <= 0:
            raise InvalidArgumentError("tournament_size must be positive")
        if self.stagnation_limit < 0:
            raise InvalidArgumentError("stagnation_limit cannot be negative")
        if self.progress_report_interval <= 0:
            raise InvalidArgumentError("progress_report_interval must be positive")


@dataclass(frozen=True)
class GenerationResult:
    generation: int
    best_fitness: float
    average_fitness: float
    best_tour: Tuple[int, ...]
    best_distance: float
    elapsed_ms: int
    is_complete: bool


class GeneticEngine:
    """
    Generational loop: elitism, tournament selection, crossover, mutation.

    The engine only consumes the operator contracts; any crossover/mutation
    pair from ``tsp_lab.operators`` can be plugged in.
    """

    def __init__(
        self,
        config: GeneticAlgorithmConfig,
        crossover: Crossover,
        mutation: Mutation,
        fitness: Optional[DistanceFitness] = None,
        rng: Optional[random.Random] = None,
    ):
        if crossover is None or mutation is None:
            raise InvalidArgumentError("crossover and mutation operators are required")
        self.cfg = config
        self.crossover = crossover
        self.mutation = mutation
        self.mutation.mutation_rate = config.mutation_rate
        self.fitness = fitness or DistanceFitness()
        self.rng = rng or random.Random(config.random_seed)
        self.population: List[Tour] = []
        self.cities: Sequence[City] = ()
        self.distance_matrix: Optional[np.ndarray] = None
        self.generation = 0

    def initialize(self, cities: Sequence[City], distance_matrix: Optional[np.ndarray] = None) -> None:
        if cities is None or len(cities) < 3:
            raise InvalidArgumentError("the genetic algorithm needs at least 3 cities")
        self.cities = cities
        self.distance_matrix = distance_matrix
        base = list(range(len(cities)))
        self.population = []
        for _ in range(self.cfg.population_size):
            order = base[:]
            self.rng.shuffle(order)
            self.population.append(Tour(order))
        self._evaluate(self.population)
        self.generation = 0

    def _evaluate(self, tours: List[Tour]) -> None:
        for tour in tours:
            if tour.fitness is None:
                self.fitness.evaluate(tour, self.cities, self.distance_matrix)

    def _tournament(self) -> Tour:
        contenders = [self.rng.choice(self.population) for _ in range(self.cfg.tournament_size)]
        return max(contenders, key=lambda t: t.fitness)

    def step(self) -> None:
        if not self.population:
            raise InvalidStateError("initialize() must be called before step()")
        ranked = sorted(self.population, key=lambda t: t.fitness, reverse=True)
        elite_count = int(self.cfg.elitism_rate * len(ranked))
        new_pop: List[Tour] = [t.copy() for t in ranked[:elite_count]]
        while len(new_pop) < self.cfg.population_size:
            a = self._tournament()
            b = self._tournament()
            if self.rng.random() < self.cfg.crossover_rate:
                child1, child2 = self.crossover.crossover(a, b, self.rng)
            else:
                child1, child2 = a.copy(), b.copy()
            for child in (child1, child2):
                if len(new_pop) < self.cfg.population_size:
                    self.mutation.mutate(child, self.rng)
                    new_pop.append(child)
        self._evaluate(new_pop)
        self.population = new_pop
        self.generation += 1

    def best(self) -> Tour:
        return max(self.population, key=lambda t: t.fitness)

    def run(
        self,
        cities: Sequence[City],
        cancel: Optional[threading.Event] = None,
        distance_matrix: Optional[np.ndarray] = None,
    ) -> Iterator[GenerationResult]:
        start = time.perf_counter()
        self.initialize(cities, distance_matrix)
        best = self.best().copy()
        last_improvement = 0
        logger.info(
            "GA with %d individuals, %d generations (%s + %s)",
            self.cfg.population_size, self.cfg.max_generations, self.crossover.name, self.mutation.name,
        )
        for generation in range(self.cfg.max_generations):
            if is_cancelled(cancel):
                logger.info("GA cancelled at generation %d", generation)
                return
            self.step()
            current = self.best()
            if current.fitness - best.fitness > FITNESS_IMPROVEMENT_THRESHOLD:
                best = current.copy()
                last_improvement = generation
                logger.debug("generation %d: fitness %.6f distance %.4f", generation, best.fitness, best.distance)
            stagnant = (
                self.cfg.stagnation_limit > 0
                and generation - last_improvement >= self.cfg.stagnation_limit
            )
            is_last = generation == self.cfg.max_generations - 1 or stagnant
            yield GenerationResult(
                generation=generation,
                best_fitness=best.fitness,
                average_fitness=sum(t.fitness for t in self.population) / len(self.population),
                best_tour=best.cities,
                best_distance=best.distance,
                elapsed_ms=int((time.perf_counter() - start) * 1000),
                is_complete=is_last,
            )
            if stagnant:
                logger.info("GA stopped after %d stagnant generations", generation - last_improvement)
                return
        logger.info("GA completed: best distance %.4f", best.distance)


class GeneticAlgorithmSolver(Solver):
    name = "Genetic Algorithm"
    description = (
        "Evolves a population of tours with tournament selection, permutation crossover and mutation"
    )

    def _solve(self, cities, distance_matrix, config, cancel, rng):
        from .registry import resolve_crossover, resolve_mutation

        config = config or GeneticAlgorithmConfig(max_generations=200, stagnation_limit=50)
        if not isinstance(config, GeneticAlgorithmConfig):
            raise InvalidArgumentError(f"expected GeneticAlgorithmConfig, got {type(config).__name__}")
        engine = GeneticEngine(
            config,
            resolve_crossover(config.crossover_name)(),
            resolve_mutation(config.mutation_name)(),
            rng=rng,
        )
        last = None
        for last in engine.run(cities, cancel=cancel, distance_matrix=distance_matrix):
            pass
        if last is None:
            best = engine.best()
            return finished_tour(best.cities, best.distance)
        return finished_tour(last.best_tour, last.best_distance)
