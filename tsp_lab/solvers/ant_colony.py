import asyncio
import logging
import random
import threading
import time
from dataclasses import dataclass, replace
from typing import AsyncIterator, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import InvalidArgumentError, InvalidStateError
from ..geometry import City, build_distance_matrix
from .base import Order, Solver, check_cities, finished_tour, is_cancelled, tour_length
from .heuristics import nearest_neighbor_tour, two_opt

logger = logging.getLogger(__name__)

# Keeps 1/d finite between coincident cities.
HEURISTIC_EPSILON = 1e-10
# Floor for the tour length used in 1/L deposits (all cities coincident).
MIN_TOUR_LENGTH = 1e-10


@dataclass(frozen=True)
class AntColonyConfig:
    ant_count: int = 50
    max_iterations: int = 300
    alpha: float = 1.0
    beta: float = 2.0
    evaporation_rate: float = 0.5
    initial_pheromone: float = 0.1
    elite_ant_count: int = 1
    use_local_search: bool = True
    progress_report_interval: int = 10

    def __post_init__(self):
        if self.ant_count < 1:
            raise InvalidArgumentError("ant_count must be at least 1")
        if self.max_iterations < 1:
            raise InvalidArgumentError("max_iterations must be at least 1")
        if self.alpha < 0 or self.beta < 0:
            raise InvalidArgumentError("alpha and beta must be non-negative")
        if not 0 < self.evaporation_rate <= 1:
            raise InvalidArgumentError(f"evaporation_rate must be within (0, 1], got {self.evaporation_rate}")
        if not self.initial_pheromone > 0:
            raise InvalidArgumentError("initial_pheromone must be positive")
        if not 0 <= self.elite_ant_count <= self.ant_count:
            raise InvalidArgumentError("elite_ant_count must be between 0 and ant_count")
        if self.progress_report_interval < 1:
            raise InvalidArgumentError("progress_report_interval must be at least 1")

    @classmethod
    def for_problem_size(cls, city_count: int, **overrides) -> "AntColonyConfig":
        ant_count = min(100, max(20, city_count))
        max_iterations = min(500, max(100, city_count * 3))
        base = cls(
            ant_count=ant_count,
            max_iterations=max_iterations,
            elite_ant_count=max(1, ant_count // 10),
            use_local_search=True,
            progress_report_interval=max(1, max_iterations // 20),
        )
        return replace(base, **overrides) if overrides else base


@dataclass(frozen=True)
class IterationResult:
    iteration: int
    best_tour: Tuple[int, ...]
    best_distance: float
    iteration_best_tour: Tuple[int, ...]
    iteration_best_distance: float
    average_distance: float
    worst_distance: float
    min_pheromone: float
    max_pheromone: float
    elapsed_ms: int
    is_complete: bool
    stagnation_count: int
    config: AntColonyConfig


def initialize_pheromones(n: int, value: float) -> np.ndarray:
    pheromones = np.full((n, n), float(value))
    np.fill_diagonal(pheromones, 0.0)
    return pheromones


def heuristic_matrix(distance_matrix: np.ndarray, beta: float) -> np.ndarray:
    with np.errstate(over="ignore", divide="ignore"):
        eta = np.power(1.0 / (np.asarray(distance_matrix, dtype=float) + HEURISTIC_EPSILON), beta)
    np.fill_diagonal(eta, 0.0)
    return eta


def choice_weights(pheromones: np.ndarray, heuristics: np.ndarray, alpha: float) -> np.ndarray:
    with np.errstate(over="ignore", invalid="ignore"):
        return np.power(pheromones, alpha) * heuristics


def _roulette(candidates: np.ndarray, weights: np.ndarray, rng: random.Random) -> Optional[int]:
    weights = np.where(np.isnan(weights), 0.0, weights)
    infinite = np.isposinf(weights)
    if infinite.any():
        return int(rng.choice(candidates[infinite].tolist()))
    cumulative = np.cumsum(weights)
    total = cumulative[-1]
    if not total > 0:
        return None
    idx = int(np.searchsorted(cumulative, rng.random() * total, side="right"))
    return int(candidates[min(idx, candidates.size - 1)])


def select_next_city(
    current: int,
    unvisited: np.ndarray,
    weights: np.ndarray,
    heuristics: np.ndarray,
    rng: random.Random,
) -> int:
    """
    Roulette-wheel choice among unvisited cities.

    ``weights`` holds tau^alpha * eta. If every candidate weight is zero (for
    instance after full evaporation) the heuristic term alone is used, and if
    that is zero too the choice is uniform.
    """
    candidates = np.flatnonzero(unvisited)
    if candidates.size == 0:
        raise InvalidStateError(f"no unvisited city left to leave {current} for")
    choice = _roulette(candidates, weights[current, candidates], rng)
    if choice is None:
        choice = _roulette(candidates, heuristics[current, candidates], rng)
    if choice is None:
        choice = int(rng.choice(candidates.tolist()))
    return choice


def construct_ant_tour(weights: np.ndarray, heuristics: np.ndarray, rng: random.Random) -> Order:
    n = len(weights)
    current = rng.randrange(n)
    tour = [current]
    unvisited = np.ones(n, dtype=bool)
    unvisited[current] = False
    for _ in range(n - 1):
        current = select_next_city(current, unvisited, weights, heuristics, rng)
        tour.append(current)
        unvisited[current] = False
    return tour


def evaporate(pheromones: np.ndarray, rate: float) -> None:
    pheromones *= 1.0 - rate


def deposit_amount(length: float, factor: float = 1.0) -> float:
    return factor / max(length, MIN_TOUR_LENGTH)


def deposit(pheromones: np.ndarray, order: Sequence[int], amount: float) -> None:
    a = np.asarray(order, dtype=np.intp)
    b = np.roll(a, -1)
    np.add.at(pheromones, (a, b), amount)
    np.add.at(pheromones, (b, a), amount)


def update_pheromones(
    pheromones: np.ndarray,
    tours: List[Order],
    lengths: List[float],
    evaporation_rate: float,
    elite_ant_count: int,
    best_tour: Sequence[int],
    best_length: float,
) -> None:
    evaporate(pheromones, evaporation_rate)
    for order, length in zip(tours, lengths):
        deposit(pheromones, order, deposit_amount(length))
    if elite_ant_count > 0:
        for idx in np.argsort(lengths, kind="stable")[:elite_ant_count]:
            deposit(pheromones, tours[idx], deposit_amount(lengths[idx], elite_ant_count))
        deposit(pheromones, best_tour, deposit_amount(best_length, elite_ant_count))


def pheromone_range(pheromones: np.ndarray) -> Tuple[float, float]:
    off_diagonal = pheromones[~np.eye(len(pheromones), dtype=bool)]
    return float(off_diagonal.min()), float(off_diagonal.max())


class AntColonySolver(Solver):
    name = "Ant Colony Optimization"
    description = (
        "Metaheuristic inspired by ant behavior that uses pheromone trails to find good paths "
        "through collective intelligence"
    )

    def _solve(self, cities, distance_matrix, config, cancel, rng):
        config = self._resolve_config(config, len(cities))
        result = None
        for result in self._colony(distance_matrix, config, cancel, rng, report=False):
            pass
        order, length = result
        return finished_tour(order, length)

    def solve_with_progress(
        self,
        cities: Sequence[City],
        config: Optional[AntColonyConfig] = None,
        cancel: Optional[threading.Event] = None,
        rng: Optional[random.Random] = None,
        distance_matrix: Optional[np.ndarray] = None,
    ) -> Iterator[IterationResult]:
        check_cities(cities, distance_matrix)
        if len(cities) < 3:
            raise InvalidArgumentError("at least 3 cities are required")
        config = self._resolve_config(config, len(cities))
        if distance_matrix is None:
            distance_matrix = build_distance_matrix(cities)
        return self._colony(
            np.asarray(distance_matrix, dtype=float), config, cancel, rng or random.Random(), report=True
        )

    async def asolve_with_progress(
        self,
        cities: Sequence[City],
        config: Optional[AntColonyConfig] = None,
        cancel: Optional[threading.Event] = None,
        rng: Optional[random.Random] = None,
        distance_matrix: Optional[np.ndarray] = None,
    ) -> AsyncIterator[IterationResult]:
        for snapshot in self.solve_with_progress(cities, config, cancel, rng, distance_matrix):
            yield snapshot
            await asyncio.sleep(0)

    @staticmethod
    def _resolve_config(config, city_count: int) -> AntColonyConfig:
        if config is None:
            return AntColonyConfig.for_problem_size(city_count)
        if not isinstance(config, AntColonyConfig):
            raise InvalidArgumentError(f"expected AntColonyConfig, got {type(config).__name__}")
        return config

    def _colony(self, distance_matrix, config, cancel, rng, report: bool):
        n = len(distance_matrix)
        start_time = time.perf_counter()
        pheromones = initialize_pheromones(n, config.initial_pheromone)
        heuristics = heuristic_matrix(distance_matrix, config.beta)

        best = nearest_neighbor_tour(distance_matrix, rng.randrange(n))
        best_length = tour_length(distance_matrix, best)
        stagnation = 0
        last_improvement = 0

        logger.info(
            "ant colony on %d cities: %d ants, %d iterations, alpha=%.2f beta=%.2f rho=%.2f",
            n, config.ant_count, config.max_iterations, config.alpha, config.beta, config.evaporation_rate,
        )

        for iteration in range(config.max_iterations):
            if is_cancelled(cancel):
                logger.info("ant colony cancelled at iteration %d: best %.4f", iteration, best_length)
                break
            weights = choice_weights(pheromones, heuristics, config.alpha)
            tours = []
            lengths = []
            for _ in range(config.ant_count):
                order = construct_ant_tour(weights, heuristics, rng)
                if config.use_local_search:
                    order, length = two_opt(distance_matrix, order)
                else:
                    length = tour_length(distance_matrix, order)
                tours.append(order)
                lengths.append(length)

            it_best = int(np.argmin(lengths))
            improved = lengths[it_best] < best_length
            if improved:
                best = list(tours[it_best])
                best_length = lengths[it_best]
                last_improvement = iteration
                stagnation = 0
                logger.debug("iteration %d: new best %.4f", iteration, best_length)
            else:
                stagnation = iteration - last_improvement

            update_pheromones(
                pheromones, tours, lengths, config.evaporation_rate, config.elite_ant_count, best, best_length
            )

            is_last = iteration == config.max_iterations - 1
            if report and (iteration % config.progress_report_interval == 0 or improved or is_last):
                low, high = pheromone_range(pheromones)
                yield IterationResult(
                    iteration=iteration,
                    best_tour=tuple(best),
                    best_distance=best_length,
                    iteration_best_tour=tuple(tours[it_best]),
                    iteration_best_distance=lengths[it_best],
                    average_distance=float(np.mean(lengths)),
                    worst_distance=float(np.max(lengths)),
                    min_pheromone=low,
                    max_pheromone=high,
                    elapsed_ms=int((time.perf_counter() - start_time) * 1000),
                    is_complete=is_last,
                    stagnation_count=stagnation,
                    config=config,
                )
        else:
            logger.info(
                "ant colony finished %d iterations: best %.4f (stagnant for %d)",
                iteration + 1, best_length, stagnation,
            )

        if not report:
            yield best, best_length
