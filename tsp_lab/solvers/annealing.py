import logging
import math
import random
import threading
import time
from dataclasses import dataclass, replace
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from ..errors import InvalidArgumentError
from ..geometry import City, build_distance_matrix
from .base import Solver, check_cities, finished_tour, is_cancelled, tour_length
from .heuristics import nearest_neighbor_tour, random_tour

logger = logging.getLogger(__name__)

REHEAT_FACTOR = 1.1


@dataclass(frozen=True)
class SimulatedAnnealingConfig:
    initial_temperature: float = 1000.0
    final_temperature: float = 0.1
    cooling_rate: float = 0.995
    max_iterations: int = 50_000
    two_opt_probability: float = 0.7
    use_nearest_neighbor_init: bool = True
    enable_adaptive_reheating: bool = True
    reheat_check_interval: int = 1000
    progress_interval: int = 100

    def __post_init__(self):
        if not self.initial_temperature > 0:
            raise InvalidArgumentError("initial_temperature must be positive")
        if not 0 < self.final_temperature < self.initial_temperature:
            raise InvalidArgumentError(
                "final_temperature must be positive and below initial_temperature "
                f"({self.final_temperature} vs {self.initial_temperature})"
            )
        if not 0 < self.cooling_rate < 1:
            raise InvalidArgumentError(f"cooling_rate must be within (0, 1), got {self.cooling_rate}")
        if self.max_iterations < 1:
            raise InvalidArgumentError("max_iterations must be at least 1")
        if not 0 <= self.two_opt_probability <= 1:
            raise InvalidArgumentError("two_opt_probability must be within [0, 1]")
        if self.reheat_check_interval < 1:
            raise InvalidArgumentError("reheat_check_interval must be at least 1")
        if self.progress_interval < 1:
            raise InvalidArgumentError("progress_interval must be at least 1")

    @classmethod
    def for_problem_size(cls, city_count: int, **overrides) -> "SimulatedAnnealingConfig":
        base = cls(
            initial_temperature=max(1000.0, city_count * 50.0),
            final_temperature=max(0.1, city_count * 0.01),
            cooling_rate=0.9995 if city_count > 50 else 0.995,
            max_iterations=max(10_000, city_count * city_count * 10),
            two_opt_probability=0.8 if city_count > 100 else 0.7,
            use_nearest_neighbor_init=True,
            enable_adaptive_reheating=city_count > 30,
            reheat_check_interval=max(500, city_count * 10),
        )
        return replace(base, **overrides) if overrides else base


@dataclass(frozen=True)
class AnnealingResult:
    iteration: int
    total_iterations: int
    best_tour: Tuple[int, ...]
    best_distance: float
    current_temperature: float
    initial_temperature: float
    acceptance_rate: float
    total_accepted: int
    total_rejected: int
    improvements: int
    elapsed_ms: int
    is_complete: bool
    phase: str

    @property
    def progress(self) -> float:
        return self.iteration / self.total_iterations if self.total_iterations > 0 else 0.0


def should_accept(delta: float, temperature: float, rng: random.Random) -> bool:
    """Metropolis criterion: downhill always, uphill with probability exp(-delta / T)."""
    if delta <= 0:
        return True
    if temperature <= 0:
        return False
    return rng.random() < math.exp(-delta / temperature)


def _swap_delta(tour, rows, p: int, q: int) -> float:
    """Swap positions p and q in place and return the length change."""
    n = len(tour)
    starts = {(p - 1) % n, p, (q - 1) % n, q}
    before = sum(rows[tour[k]][tour[(k + 1) % n]] for k in starts)
    tour[p], tour[q] = tour[q], tour[p]
    after = sum(rows[tour[k]][tour[(k + 1) % n]] for k in starts)
    return after - before


def _reversal_delta(tour, rows, i: int, j: int) -> float:
    """Length change of reversing tour[i+1..j] (not applied)."""
    n = len(tour)
    a, b = tour[i], tour[i + 1]
    c, d = tour[j], tour[(j + 1) % n]
    return rows[a][c] + rows[b][d] - rows[a][b] - rows[c][d]


class SimulatedAnnealingSolver(Solver):
    name = "Simulated Annealing"
    description = (
        "Metaheuristic that uses probabilistic acceptance of worse solutions to escape local optima, "
        "cooling temperature over time"
    )

    def _solve(self, cities, distance_matrix, config, cancel, rng):
        config = self._resolve_config(config, len(cities))
        best = None
        for best in self._anneal(distance_matrix, config, cancel, rng, report=False):
            pass
        order, length = best
        return finished_tour(order, length)

    def solve_with_progress(
        self,
        cities: Sequence[City],
        config: Optional[SimulatedAnnealingConfig] = None,
        cancel: Optional[threading.Event] = None,
        rng: Optional[random.Random] = None,
        distance_matrix: Optional[np.ndarray] = None,
    ) -> Iterator[AnnealingResult]:
        check_cities(cities, distance_matrix)
        if len(cities) < 3:
            raise InvalidArgumentError("at least 3 cities are required")
        config = self._resolve_config(config, len(cities))
        if distance_matrix is None:
            distance_matrix = build_distance_matrix(cities)
        else:
            distance_matrix = np.asarray(distance_matrix, dtype=float)
        return self._anneal(distance_matrix, config, cancel, rng or random.Random(), report=True)

    @staticmethod
    def _resolve_config(config, city_count: int) -> SimulatedAnnealingConfig:
        if config is None:
            return SimulatedAnnealingConfig.for_problem_size(city_count)
        if not isinstance(config, SimulatedAnnealingConfig):
            raise InvalidArgumentError(f"expected SimulatedAnnealingConfig, got {type(config).__name__}")
        return config

    def _anneal(self, distance_matrix, config, cancel, rng, report: bool):
        """
        Run one annealing trajectory.

        With ``report`` the generator yields ``AnnealingResult`` snapshots;
        otherwise it yields a single ``(best_order, best_length)`` at the end.
        """
        n = len(distance_matrix)
        # Plain nested lists: scalar lookups in the move loop are much cheaper than ndarray indexing.
        rows = np.asarray(distance_matrix, dtype=float).tolist()
        start_time = time.perf_counter()

        if config.use_nearest_neighbor_init:
            current = nearest_neighbor_tour(distance_matrix, rng.randrange(n))
        else:
            current = random_tour(n, rng)
        current_distance = tour_length(distance_matrix, current)
        best = current[:]
        best_distance = current_distance

        temperature = config.initial_temperature
        iteration = 0
        window_improvements = 0
        improvements = 0
        accepted = 0
        moves = 0

        logger.info(
            "annealing %d cities: T %.3f -> %.3f, cooling %.4f, max %d iterations",
            n, config.initial_temperature, config.final_temperature, config.cooling_rate, config.max_iterations,
        )

        while (
            temperature > config.final_temperature
            and iteration < config.max_iterations
            and not is_cancelled(cancel)
        ):
            if rng.random() < config.two_opt_probability:
                i = rng.randrange(n - 2)
                j = rng.randint(i + 2, n - 1)
                delta = _reversal_delta(current, rows, i, j)
                accept = should_accept(delta, temperature, rng)
                if accept:
                    current[i + 1 : j + 1] = current[i + 1 : j + 1][::-1]
            else:
                p, q = rng.sample(range(n), 2)
                delta = _swap_delta(current, rows, p, q)
                accept = should_accept(delta, temperature, rng)
                if not accept:
                    current[p], current[q] = current[q], current[p]
            moves += 1

            improved = False
            if accept:
                accepted += 1
                current_distance += delta
                if not math.isfinite(current_distance):
                    current_distance = tour_length(distance_matrix, current)
                if current_distance < best_distance - 1e-12:
                    # Resync against accumulated floating point drift.
                    current_distance = tour_length(distance_matrix, current)
                    if current_distance < best_distance:
                        best = current[:]
                        best_distance = current_distance
                        window_improvements += 1
                        improvements += 1
                        improved = True

            if (
                config.enable_adaptive_reheating
                and iteration > 0
                and iteration % config.reheat_check_interval == 0
            ):
                if window_improvements == 0:
                    temperature *= REHEAT_FACTOR
                    logger.debug("reheat at iteration %d: T=%.4f", iteration, temperature)
                else:
                    temperature *= config.cooling_rate
                window_improvements = 0
            else:
                temperature *= config.cooling_rate

            if report and (improved or iteration % config.progress_interval == 0):
                yield AnnealingResult(
                    iteration=iteration,
                    total_iterations=config.max_iterations,
                    best_tour=tuple(best),
                    best_distance=best_distance,
                    current_temperature=temperature,
                    initial_temperature=config.initial_temperature,
                    acceptance_rate=accepted / moves if moves else 0.0,
                    total_accepted=accepted,
                    total_rejected=moves - accepted,
                    improvements=improvements,
                    elapsed_ms=int((time.perf_counter() - start_time) * 1000),
                    is_complete=False,
                    phase="Optimizing",
                )
                accepted = 0
                moves = 0
            iteration += 1

        cancelled = is_cancelled(cancel)
        logger.info(
            "annealing %s after %d iterations: best %.4f",
            "cancelled" if cancelled else "finished", iteration, best_distance,
        )
        if not report:
            yield best, best_distance
        elif not cancelled:
            yield AnnealingResult(
                iteration=iteration,
                total_iterations=config.max_iterations,
                best_tour=tuple(best),
                best_distance=best_distance,
                current_temperature=temperature,
                initial_temperature=config.initial_temperature,
                acceptance_rate=accepted / moves if moves else 0.0,
                total_accepted=accepted,
                total_rejected=moves - accepted,
                improvements=improvements,
                elapsed_ms=int((time.perf_counter() - start_time) * 1000),
                is_complete=True,
                phase="Complete",
            )
