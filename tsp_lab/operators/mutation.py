import random
from abc import ABC, abstractmethod

from ..errors import InvalidArgumentError
from ..geometry import Tour


class Mutation(ABC):
    name: str = "base"

    def __init__(self, mutation_rate: float = 0.01):
        self.mutation_rate = mutation_rate

    @property
    def mutation_rate(self) -> float:
        return self._mutation_rate

    @mutation_rate.setter
    def mutation_rate(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise InvalidArgumentError(f"mutation_rate must be within [0, 1], got {value}")
        self._mutation_rate = float(value)

    def mutate(self, tour: Tour, rng: random.Random) -> bool:
        """Apply the operator with probability ``mutation_rate``; returns True if the tour changed."""
        if tour is None or rng is None:
            raise InvalidArgumentError("mutate requires a tour and a random source")
        if rng.random() >= self._mutation_rate:
            return False
        return self._apply(tour, rng)

    @abstractmethod
    def _apply(self, tour: Tour, rng: random.Random) -> bool:
        raise NotImplementedError


class SwapMutation(Mutation):
    name = "SwapMutation"

    def _apply(self, tour, rng):
        n = len(tour)
        if n < 2:
            return False
        i, j = rng.sample(range(n), 2)
        tour.swap(i, j)
        return True


class InversionMutation(Mutation):
    name = "InversionMutation"

    def _apply(self, tour, rng):
        n = len(tour)
        if n < 2:
            return False
        start = rng.randrange(n)
        end = rng.randrange(n)
        if start == end:
            return False
        tour.reverse_segment(start, end)
        return True


class TwoOptMutation(Mutation):
    name = "TwoOptMutation"

    def _apply(self, tour, rng):
        n = len(tour)
        if n < 4:
            return False
        i = rng.randrange(n - 2)
        # With i == 0 the segment stops at n-2 so the whole tour is never reversed.
        upper = n - 2 if i == 0 else n - 1
        j = rng.randint(i + 2, upper)
        tour.reverse_segment(i + 1, j)
        return True
