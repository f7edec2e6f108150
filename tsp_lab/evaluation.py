import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import City, Tour

logger = logging.getLogger(__name__)

INVALID_DISTANCE = math.inf


class DistanceFitness:
    """
    Distance-based fitness with an optional memo of tour distances.

    ``distance`` never raises on degenerate numbers: an out-of-range index or a
    non-finite segment yields ``INVALID_DISTANCE`` so a search simply treats
    the candidate as the worst possible one.
    """

    name = "DistanceFitness"

    def __init__(self, scale: float = 1000.0, cache_size: int = 10_000):
        self.scale = scale
        self.cache_size = cache_size
        self._cache: "OrderedDict[Tuple[int, ...], float]" = OrderedDict()
        self._lock = threading.Lock()
        self._source: Tuple[object, object] = (None, None)
        self.hits = 0
        self.misses = 0

    def distance(
        self,
        tour: Tour,
        cities: Optional[Sequence[City]],
        distance_matrix: Optional[np.ndarray] = None,
    ) -> float:
        key = tuple(tour)
        if self.cache_size > 0:
            self._bind(cities, distance_matrix)
            cached = self._cache.get(key)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1
        total = self._compute(key, cities, distance_matrix)
        if self.cache_size > 0 and math.isfinite(total):
            with self._lock:
                self._cache[key] = total
                if len(self._cache) > self.cache_size:
                    self._cache.popitem(last=False)
        return total

    def fitness(
        self,
        tour: Tour,
        cities: Optional[Sequence[City]],
        distance_matrix: Optional[np.ndarray] = None,
    ) -> float:
        return self.fitness_from_distance(self.distance(tour, cities, distance_matrix))

    def fitness_from_distance(self, distance: float) -> float:
        if math.isnan(distance) or math.isinf(distance) or distance <= 0:
            return 0.0
        return self.scale / distance

    def evaluate(
        self,
        tour: Tour,
        cities: Optional[Sequence[City]],
        distance_matrix: Optional[np.ndarray] = None,
    ) -> float:
        distance = self.distance(tour, cities, distance_matrix)
        tour.distance = distance
        tour.fitness = self.fitness_from_distance(distance)
        return tour.fitness

    def cache_info(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "size": len(self._cache)}

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
        self.hits = 0
        self.misses = 0

    def _bind(self, cities, distance_matrix) -> None:
        # Entries are only meaningful for the problem they were computed on.
        if self._source[0] is cities and self._source[1] is distance_matrix:
            return
        with self._lock:
            self._cache.clear()
            self._source = (cities, distance_matrix)

    def _compute(self, order: Tuple[int, ...], cities, distance_matrix) -> float:
        n = len(distance_matrix) if distance_matrix is not None else len(cities or ())
        if not order or n == 0:
            return INVALID_DISTANCE
        total = 0.0
        for k in range(len(order)):
            a = order[k]
            b = order[(k + 1) % len(order)]
            if a < 0 or a >= n or b < 0 or b >= n:
                logger.warning("invalid city index in tour: %s -> %s (n=%d)", a, b, n)
                return INVALID_DISTANCE
            if distance_matrix is not None:
                segment = float(distance_matrix[a, b])
            else:
                segment = cities[a].distance_to(cities[b])
            if not math.isfinite(segment):
                logger.warning("non-finite segment %s -> %s: %r", a, b, segment)
                return INVALID_DISTANCE
            total += segment
        if not math.isfinite(total) or total < 0:
            return INVALID_DISTANCE
        return total


@dataclass
class SolveReport:
    length: float
    runtime: float
    gap: float
    solver_name: str


def evaluate_solver(
    solver,
    cities: Sequence[City],
    optimum: Optional[float] = None,
    distance_matrix: Optional[np.ndarray] = None,
    rng=None,
    config=None,
) -> SolveReport:
    start = time.perf_counter()
    tour = solver.solve(cities, config=config, rng=rng, distance_matrix=distance_matrix)
    runtime = time.perf_counter() - start
    length = tour.distance if tour.distance is not None else INVALID_DISTANCE
    if optimum is None or math.isclose(optimum, 0.0):
        gap = math.inf
    else:
        gap = (length - optimum) / optimum
    return SolveReport(length=length, runtime=runtime, gap=gap, solver_name=solver.name)


def aggregate_reports(reports: List[SolveReport]) -> Dict[str, float]:
    if not reports:
        return {"length": math.inf, "best": math.inf, "gap": math.inf, "runtime": math.inf}
    finite_gaps = [r.gap for r in reports if math.isfinite(r.gap)]
    return {
        "length": sum(r.length for r in reports) / len(reports),
        "best": min(r.length for r in reports),
        "gap": sum(finite_gaps) / len(finite_gaps) if finite_gaps else math.inf,
        "runtime": sum(r.runtime for r in reports) / len(reports),
    }
