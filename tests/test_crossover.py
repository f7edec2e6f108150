import random

import pytest

from tsp_lab.errors import InvalidArgumentError
from tsp_lab.geometry import Tour
from tsp_lab.operators import (
    CycleCrossover,
    EdgeRecombinationCrossover,
    OrderCrossover,
    PartiallyMappedCrossover,
)
from tsp_lab.operators.crossover import (
    build_edge_table,
    edge_offspring,
    find_cycles,
    order_offspring,
    pmx_offspring,
)

OPERATORS = [OrderCrossover, PartiallyMappedCrossover, CycleCrossover, EdgeRecombinationCrossover]


def _random_parents(n, rng):
    a = list(range(n))
    b = list(range(n))
    rng.shuffle(a)
    rng.shuffle(b)
    return Tour(a), Tour(b)


@pytest.mark.parametrize("operator_cls", OPERATORS)
def test_children_are_permutations(operator_cls):
    rng = random.Random(42)
    operator = operator_cls()
    for trial in range(200):
        n = 3 + trial % 15
        p1, p2 = _random_parents(n, rng)
        c1, c2 = operator.crossover(p1, p2, rng)
        assert c1.is_valid() and c2.is_valid()
        assert len(c1) == len(c2) == n
        assert c1.fitness is None and c2.fitness is None


@pytest.mark.parametrize("operator_cls", OPERATORS)
def test_identical_parents_reproduce_parent(operator_cls):
    rng = random.Random(5)
    parent = Tour([3, 1, 4, 0, 2, 5])
    c1, c2 = operator_cls().crossover(parent, parent.copy(), rng)
    if operator_cls is EdgeRecombinationCrossover:
        # Same cycle, possibly rotated or reversed.
        edges = {frozenset((parent[i], parent[(i + 1) % 6])) for i in range(6)}
        for child in (c1, c2):
            assert {frozenset((child[i], child[(i + 1) % 6])) for i in range(6)} == edges
    else:
        assert c1 == parent and c2 == parent


@pytest.mark.parametrize("operator_cls", OPERATORS)
def test_rejects_bad_parents(operator_cls):
    operator = operator_cls()
    rng = random.Random(0)
    with pytest.raises(InvalidArgumentError):
        operator.crossover(Tour([0, 1, 2]), Tour([0, 1, 2, 3]), rng)
    with pytest.raises(InvalidArgumentError):
        operator.crossover(Tour([0, 1]), Tour([1, 0]), rng)
    with pytest.raises(InvalidArgumentError):
        operator.crossover(None, Tour([0, 1, 2]), rng)


@pytest.mark.parametrize("start,end", [(0, 0), (0, 7), (7, 7), (3, 3), (2, 5)])
def test_order_offspring_extreme_cuts(start, end):
    primary = [0, 1, 2, 3, 4, 5, 6, 7]
    secondary = [7, 6, 5, 4, 3, 2, 1, 0]
    child = order_offspring(primary, secondary, start, end)
    assert sorted(child) == primary
    assert child[start : end + 1] == primary[start : end + 1]


def test_order_offspring_fills_from_after_cut():
    child = order_offspring([0, 1, 2, 3, 4, 5, 6, 7], [3, 7, 5, 1, 6, 0, 2, 4], 3, 5)
    # Segment [3, 4, 5]; remaining cities in secondary order starting after position 5.
    assert child == [1, 6, 0, 3, 4, 5, 2, 7]


@pytest.mark.parametrize("p1,p2", [(0, 0), (0, 7), (7, 7), (2, 5)])
def test_pmx_offspring_extreme_cuts(p1, p2):
    receiver = [0, 1, 2, 3, 4, 5, 6, 7]
    donor = [2, 5, 0, 7, 1, 6, 3, 4]
    child = pmx_offspring(receiver, donor, p1, p2)
    assert sorted(child) == receiver
    assert child[p1 : p2 + 1] == donor[p1 : p2 + 1]


def test_pmx_keeps_non_conflicting_genes():
    receiver = [0, 1, 2, 3, 4, 5, 6, 7]
    donor = [3, 7, 5, 1, 6, 0, 2, 4]
    child = pmx_offspring(receiver, donor, 3, 5)
    assert child[3:6] == [1, 6, 0]
    assert child[2] == 2 and child[7] == 7


def test_find_cycles_partitions_positions():
    p1 = [0, 1, 2, 3, 4, 5, 6, 7]
    p2 = [1, 2, 0, 4, 3, 5, 7, 6]
    cycles = find_cycles(p1, p2)
    assert sorted(sorted(c) for c in cycles) == [[0, 1, 2], [3, 4], [5], [6, 7]]


def test_cycle_crossover_keeps_positions():
    rng = random.Random(9)
    p1, p2 = _random_parents(12, rng)
    c1, c2 = CycleCrossover().crossover(p1, p2, rng)
    for pos in range(12):
        assert c1[pos] in (p1[pos], p2[pos])
        assert {c1[pos], c2[pos]} == {p1[pos], p2[pos]}


def test_edge_table_is_symmetric():
    table = build_edge_table([0, 1, 2, 3, 4], [0, 2, 4, 1, 3])
    for city, neighbours in enumerate(table):
        for other in neighbours:
            assert city in table[other]


def test_edge_offspring_visits_every_city_once():
    rng = random.Random(11)
    for _ in range(100):
        a = list(range(10))
        b = list(range(10))
        rng.shuffle(a)
        rng.shuffle(b)
        child = edge_offspring(a, b, rng)
        assert len(child) == 10
        assert sorted(child) == list(range(10))
