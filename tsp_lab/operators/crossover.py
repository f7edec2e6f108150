import random
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Set, Tuple

from ..errors import InvalidArgumentError, InvalidStateError
from ..geometry import Tour

MIN_PARENT_LENGTH = 3


class Crossover(ABC):
    name: str = "base"
    description: str = ""

    def crossover(self, parent1: Tour, parent2: Tour, rng: random.Random) -> Tuple[Tour, Tour]:
        if parent1 is None or parent2 is None or rng is None:
            raise InvalidArgumentError("crossover requires two parents and a random source")
        if len(parent1) != len(parent2):
            raise InvalidArgumentError(
                f"parents must have the same length ({len(parent1)} != {len(parent2)})"
            )
        if len(parent1) < MIN_PARENT_LENGTH:
            raise InvalidArgumentError(f"tours must have at least {MIN_PARENT_LENGTH} cities")
        child1, child2 = self._crossover(list(parent1), list(parent2), rng)
        return _verified(child1, self.name), _verified(child2, self.name)

    @abstractmethod
    def _crossover(
        self, parent1: List[int], parent2: List[int], rng: random.Random
    ) -> Tuple[List[int], List[int]]:
        raise NotImplementedError


def _verified(order: List[int], operator: str) -> Tour:
    tour = Tour(order)
    if not tour.is_valid():
        raise InvalidStateError(f"{operator} produced an invalid permutation: {order}")
    return tour


def _cut_points(n: int, rng: random.Random) -> Tuple[int, int]:
    a = rng.randrange(n)
    b = rng.randrange(n)
    return (a, b) if a <= b else (b, a)


def order_offspring(primary: Sequence[int], secondary: Sequence[int], start: int, end: int) -> List[int]:
    n = len(primary)
    child = [-1] * n
    used = [False] * n
    for i in range(start, end + 1):
        child[i] = primary[i]
        used[primary[i]] = True
    fill = (end + 1) % n
    for k in range(n):
        city = secondary[(end + 1 + k) % n]
        if used[city]:
            continue
        child[fill] = city
        used[city] = True
        fill = (fill + 1) % n
    return child


class OrderCrossover(Crossover):
    name = "OrderCrossover"
    description = "Order Crossover (OX) - keeps a segment of one parent, fills the rest in the other's order"

    def _crossover(self, parent1, parent2, rng):
        n = len(parent1)
        start, end = _cut_points(n, rng)
        child1 = order_offspring(parent1, parent2, start, end)
        start, end = _cut_points(n, rng)
        child2 = order_offspring(parent2, parent1, start, end)
        return child1, child2


def pmx_offspring(receiver: Sequence[int], donor: Sequence[int], point1: int, point2: int) -> List[int]:
    """Copy ``donor[point1..point2]`` into ``receiver`` and repair the genes outside it."""
    n = len(receiver)
    child = list(receiver)
    mapping: Dict[int, int] = {}
    for i in range(point1, point2 + 1):
        child[i] = donor[i]
        if donor[i] != receiver[i]:
            mapping[donor[i]] = receiver[i]
    for i in range(n):
        if point1 <= i <= point2:
            continue
        city = child[i]
        steps = 0
        while city in mapping:
            city = mapping[city]
            steps += 1
            if steps > n:
                raise InvalidStateError("PMX mapping chain does not terminate")
        child[i] = city
    return child


class PartiallyMappedCrossover(Crossover):
    name = "PartiallyMappedCrossover"
    description = "Partially Mapped Crossover (PMX) - swaps a segment and repairs duplicates through the mapping"

    def _crossover(self, parent1, parent2, rng):
        point1, point2 = _cut_points(len(parent1), rng)
        return (
            pmx_offspring(parent1, parent2, point1, point2),
            pmx_offspring(parent2, parent1, point1, point2),
        )


def find_cycles(parent1: Sequence[int], parent2: Sequence[int]) -> List[List[int]]:
    position_in_2 = {city: pos for pos, city in enumerate(parent2)}
    visited = [False] * len(parent1)
    cycles = []
    for start in range(len(parent1)):
        if visited[start]:
            continue
        cycle = []
        pos = start
        while not visited[pos]:
            visited[pos] = True
            cycle.append(pos)
            pos = position_in_2[parent1[pos]]
        cycles.append(cycle)
    return cycles


class CycleCrossover(Crossover):
    name = "CycleCrossover"
    description = "Cycle Crossover (CX) - preserves absolute positions, alternating parents per cycle"

    def _crossover(self, parent1, parent2, rng):
        n = len(parent1)
        child1 = [-1] * n
        child2 = [-1] * n
        from_first = rng.random() < 0.5
        for cycle in find_cycles(parent1, parent2):
            a, b = (parent1, parent2) if from_first else (parent2, parent1)
            for pos in cycle:
                child1[pos] = a[pos]
                child2[pos] = b[pos]
            from_first = not from_first
        return child1, child2


def build_edge_table(parent1: Sequence[int], parent2: Sequence[int]) -> List[Set[int]]:
    n = len(parent1)
    table: List[Set[int]] = [set() for _ in range(n)]
    for parent in (parent1, parent2):
        for i, city in enumerate(parent):
            table[city].add(parent[i - 1])
            table[city].add(parent[(i + 1) % n])
    return table


def edge_offspring(primary: Sequence[int], secondary: Sequence[int], rng: random.Random) -> List[int]:
    n = len(primary)
    table = build_edge_table(primary, secondary)
    unused = set(range(n))
    child = []

    def take(city: int) -> None:
        child.append(city)
        unused.discard(city)
        # The table is symmetric, so only the city's own neighbours reference it.
        for neighbour in table[city]:
            table[neighbour].discard(city)

    current = primary[rng.randrange(n)]
    take(current)
    while unused:
        neighbours = sorted(table[current])
        if neighbours:
            fewest = min(len(table[c]) for c in neighbours)
            current = rng.choice([c for c in neighbours if len(table[c]) == fewest])
        else:
            current = rng.choice(sorted(unused))
        take(current)
    return child


class EdgeRecombinationCrossover(Crossover):
    name = "EdgeRecombinationCrossover"
    description = "Edge Recombination Crossover (ERX) - builds children from edges present in either parent"

    def _crossover(self, parent1, parent2, rng):
        return edge_offspring(parent1, parent2, rng), edge_offspring(parent2, parent1, rng)
