import logging
import random
import threading
from typing import Optional, Sequence, Tuple

import numpy as np

from .base import Order, Solver, finished_tour, is_cancelled, tour_length

logger = logging.getLogger(__name__)

IMPROVEMENT_EPS = 1e-10


def nearest_neighbor_tour(distance_matrix: np.ndarray, start: int) -> Order:
    n = len(distance_matrix)
    tour = [start]
    visited = np.zeros(n, dtype=bool)
    visited[start] = True
    current = start
    for _ in range(n - 1):
        candidates = np.flatnonzero(~visited)
        nxt = int(candidates[np.argmin(distance_matrix[current, candidates])])
        tour.append(nxt)
        visited[nxt] = True
        current = nxt
    return tour


def random_tour(n: int, rng: random.Random) -> Order:
    tour = list(range(n))
    rng.shuffle(tour)
    return tour


def two_opt(
    distance_matrix: np.ndarray,
    order: Sequence[int],
    max_passes: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> Tuple[Order, float]:
    """
    2-opt local search using the four-endpoint delta.

    Reversing ``tour[i..j]`` replaces edges (a, b) and (c, d) with (a, c) and
    (b, d). For each ``i`` all ``j`` are scored at once and the best
    improving one is applied immediately. Passes repeat until one finds
    nothing (or ``max_passes`` is hit).
    """
    tour = np.asarray(order, dtype=np.intp).copy()
    n = len(tour)
    if n < 4:
        return tour.tolist(), tour_length(distance_matrix, tour)
    passes = 0
    improved = True
    while improved and (max_passes is None or passes < max_passes):
        if is_cancelled(cancel):
            break
        improved = False
        passes += 1
        for i in range(1, n - 1):
            j = np.arange(i + 1, n)
            if i == 1:
                # (tour[0], tour[1]) and (tour[n-1], tour[0]) share a city.
                j = j[:-1]
            if j.size == 0:
                continue
            a = tour[i - 1]
            b = tour[i]
            c = tour[j]
            d = tour[(j + 1) % n]
            delta = (
                distance_matrix[a, c]
                + distance_matrix[b, d]
                - distance_matrix[a, b]
                - distance_matrix[c, d]
            )
            k = int(np.argmin(delta))
            if delta[k] < -IMPROVEMENT_EPS:
                end = int(j[k])
                tour[i : end + 1] = tour[i : end + 1][::-1].copy()
                improved = True
    return tour.tolist(), tour_length(distance_matrix, tour)


class NearestNeighborSolver(Solver):
    name = "Nearest Neighbor"
    description = (
        "Greedy algorithm that starts from a random city and always visits the nearest unvisited city next"
    )

    def _solve(self, cities, distance_matrix, config, cancel, rng):
        start = rng.randrange(len(cities))
        order = nearest_neighbor_tour(distance_matrix, start)
        return finished_tour(order, tour_length(distance_matrix, order))


class TwoOptSolver(Solver):
    name = "2-opt"
    description = (
        "Local search that starts with Nearest Neighbor and reverses tour segments to remove crossings"
    )

    def __init__(self, max_passes: int = 1000):
        self.max_passes = max_passes

    def _solve(self, cities, distance_matrix, config, cancel, rng):
        start = rng.randrange(len(cities))
        seed = nearest_neighbor_tour(distance_matrix, start)
        order, length = two_opt(distance_matrix, seed, max_passes=self.max_passes, cancel=cancel)
        logger.debug("2-opt improved %.4f -> %.4f", tour_length(distance_matrix, seed), length)
        return finished_tour(order, length)
