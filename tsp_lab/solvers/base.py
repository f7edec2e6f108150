import logging
import random
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

import numpy as np

from ..errors import InvalidArgumentError
from ..evaluation import DistanceFitness
from ..geometry import City, Tour, build_distance_matrix

logger = logging.getLogger(__name__)

Order = List[int]


def tour_length(distance_matrix: np.ndarray, order: Sequence[int]) -> float:
    dist = 0.0
    n = len(order)
    for i in range(n):
        dist += distance_matrix[order[i], order[(i + 1) % n]]
    return float(dist)


def is_cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


def finished_tour(order: Sequence[int], length: float, scale: float = 1000.0) -> Tour:
    tour = Tour(order)
    tour.distance = float(length)
    tour.fitness = DistanceFitness(scale=scale, cache_size=0).fitness_from_distance(tour.distance)
    return tour


def check_cities(cities: Optional[Sequence[City]], distance_matrix: Optional[np.ndarray] = None) -> None:
    if cities is None:
        raise InvalidArgumentError("cities must not be None")
    if len(cities) == 0:
        raise InvalidArgumentError("cannot solve TSP with no cities")
    if distance_matrix is not None and np.shape(distance_matrix) != (len(cities), len(cities)):
        raise InvalidArgumentError(
            f"distance matrix shape {np.shape(distance_matrix)} does not match {len(cities)} cities"
        )


class Solver(ABC):
    """
    Common surface of every TSP algorithm.

    ``solve`` validates the input and answers the degenerate sizes itself (one
    city: distance 0, two cities: the round trip); larger problems go to the
    algorithm's ``_solve``. Each call owns its random source and working
    arrays, so one solver instance can serve concurrent calls.
    """

    name: str = "base"
    description: str = ""

    def solve(
        self,
        cities: Sequence[City],
        config: Any = None,
        cancel: Optional[threading.Event] = None,
        rng: Optional[random.Random] = None,
        distance_matrix: Optional[np.ndarray] = None,
    ) -> Tour:
        check_cities(cities, distance_matrix)
        n = len(cities)
        if n == 1:
            return finished_tour([0], 0.0)
        if n == 2:
            if distance_matrix is not None:
                length = float(distance_matrix[0, 1] + distance_matrix[1, 0])
            else:
                length = 2 * cities[0].distance_to(cities[1])
            return finished_tour([0, 1], length)
        if distance_matrix is None:
            distance_matrix = build_distance_matrix(cities)
        else:
            distance_matrix = np.asarray(distance_matrix, dtype=float)
        rng = rng or random.Random()
        return self._solve(cities, distance_matrix, config, cancel, rng)

    @abstractmethod
    def _solve(
        self,
        cities: Sequence[City],
        distance_matrix: np.ndarray,
        config: Any,
        cancel: Optional[threading.Event],
        rng: random.Random,
    ) -> Tour:
        raise NotImplementedError
