import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidArgumentError


@dataclass(frozen=True)
class City:
    id: int
    name: str
    x: float
    y: float

    def distance_to(self, other: "City") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def squared_distance_to(self, other: "City") -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy

    def __str__(self) -> str:
        return f"{self.name} ({self.x:.2f}, {self.y:.2f})"


class Tour:
    """
    Cyclic visiting order over city indices.

    The order is owned by the tour (the constructor copies its input). Cached
    ``fitness`` and ``distance`` are set by evaluators and cleared by every
    mutating method.
    """

    __slots__ = ("_cities", "_fitness", "_distance")

    def __init__(self, cities: Sequence[int]):
        if cities is None:
            raise InvalidArgumentError("Tour requires a city sequence")
        self._cities = [int(c) for c in cities]
        if not self._cities:
            raise InvalidArgumentError("Tour cannot be empty")
        self._fitness: Optional[float] = None
        self._distance: Optional[float] = None

    @property
    def cities(self) -> Tuple[int, ...]:
        return tuple(self._cities)

    @property
    def fitness(self) -> Optional[float]:
        return self._fitness

    @fitness.setter
    def fitness(self, value: Optional[float]) -> None:
        self._fitness = value

    @property
    def distance(self) -> Optional[float]:
        return self._distance

    @distance.setter
    def distance(self, value: Optional[float]) -> None:
        self._distance = value

    def __len__(self) -> int:
        return len(self._cities)

    def __getitem__(self, index: int) -> int:
        return self._cities[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._cities)

    def copy(self) -> "Tour":
        clone = Tour(self._cities)
        clone._fitness = self._fitness
        clone._distance = self._distance
        return clone

    def _check_position(self, index: int, label: str) -> None:
        if index < 0 or index >= len(self._cities):
            raise IndexError(f"{label}={index} outside tour of length {len(self._cities)}")

    def swap(self, i: int, j: int) -> None:
        self._check_position(i, "i")
        self._check_position(j, "j")
        self._cities[i], self._cities[j] = self._cities[j], self._cities[i]
        self._invalidate()

    def reverse_segment(self, start: int, end: int) -> None:
        """Reverse positions ``start..end`` inclusive (order of the bounds does not matter)."""
        self._check_position(start, "start")
        self._check_position(end, "end")
        if start > end:
            start, end = end, start
        self._cities[start : end + 1] = self._cities[start : end + 1][::-1]
        self._invalidate()

    def is_valid(self) -> bool:
        n = len(self._cities)
        seen = [False] * n
        for city in self._cities:
            if city < 0 or city >= n or seen[city]:
                return False
            seen[city] = True
        return True

    def _invalidate(self) -> None:
        self._fitness = None
        self._distance = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tour):
            return NotImplemented
        return self._cities == other._cities

    def __hash__(self) -> int:
        return hash(tuple(self._cities))

    def __repr__(self) -> str:
        return f"Tour[{' -> '.join(str(c) for c in self._cities)}]"


def coordinates(cities: Sequence[City]) -> np.ndarray:
    return np.array([(c.x, c.y) for c in cities], dtype=float).reshape(len(cities), 2)


def build_distance_matrix(cities: Sequence[City]) -> np.ndarray:
    coords = coordinates(cities)
    diff = coords[:, None, :] - coords[None, :, :]
    dist = np.sqrt((diff ** 2).sum(axis=2))
    np.fill_diagonal(dist, 0.0)
    return dist
