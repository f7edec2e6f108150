import asyncio
import math
import random
import threading

import numpy as np
import pytest

from tsp_lab.data import cities_from_coordinates
from tsp_lab.errors import InvalidArgumentError, InvalidStateError
from tsp_lab.geometry import build_distance_matrix
from tsp_lab.solvers import AntColonyConfig, AntColonySolver
from tsp_lab.solvers.ant_colony import (
    choice_weights,
    construct_ant_tour,
    deposit,
    deposit_amount,
    evaporate,
    heuristic_matrix,
    initialize_pheromones,
    pheromone_range,
    select_next_city,
    update_pheromones,
)

SMALL = AntColonyConfig(ant_count=10, max_iterations=20, progress_report_interval=5)


def test_unit_square_is_solved(square):
    tour = AntColonySolver().solve(square, config=SMALL, rng=random.Random(0))
    assert tour.is_valid()
    assert tour.distance == pytest.approx(4.0, abs=1e-6)


def test_without_local_search(cities20):
    config = AntColonyConfig(ant_count=10, max_iterations=10, use_local_search=False)
    tour = AntColonySolver().solve(cities20, config=config, rng=random.Random(1))
    assert tour.is_valid()
    assert tour.fitness == pytest.approx(1000.0 / tour.distance)


def test_full_evaporation_still_solves_square(square):
    config = AntColonyConfig(ant_count=10, max_iterations=20, evaporation_rate=1.0, use_local_search=False)
    tour = AntColonySolver().solve(square, config=config, rng=random.Random(7))
    assert tour.is_valid()
    assert tour.distance == pytest.approx(4.0, abs=1e-6)


def test_pheromone_initialisation():
    pheromones = initialize_pheromones(4, 0.1)
    assert np.all(np.diag(pheromones) == 0)
    assert pheromone_range(pheromones) == (pytest.approx(0.1), pytest.approx(0.1))


def test_full_evaporation_zeroes_trails():
    pheromones = initialize_pheromones(5, 0.7)
    evaporate(pheromones, 1.0)
    assert np.all(pheromones == 0)


def test_deposit_is_symmetric():
    pheromones = initialize_pheromones(4, 0.0)
    deposit(pheromones, [0, 1, 2, 3], 0.25)
    assert np.allclose(pheromones, pheromones.T)
    assert pheromones[0, 1] == pytest.approx(0.25)
    assert pheromones[3, 0] == pytest.approx(0.25)
    assert pheromones[0, 2] == 0


def test_deposit_amount_floors_zero_length():
    assert math.isfinite(deposit_amount(0.0))
    assert deposit_amount(4.0, 2.0) == pytest.approx(0.5)


def test_update_keeps_symmetry(square):
    pheromones = initialize_pheromones(4, 0.1)
    tours = [[0, 1, 2, 3], [0, 2, 1, 3]]
    lengths = [4.0, 2 + 2 * math.sqrt(2)]
    update_pheromones(pheromones, tours, lengths, 0.5, 1, tours[0], lengths[0])
    assert np.allclose(pheromones, pheromones.T)
    assert pheromones[0, 1] > pheromones[0, 2]


def test_zero_pheromone_falls_back_to_heuristic():
    matrix = np.array([[0.0, 1.0, 100.0], [1.0, 0.0, 1.0], [100.0, 1.0, 0.0]])
    heuristics = heuristic_matrix(matrix, 2.0)
    weights = choice_weights(initialize_pheromones(3, 0.0), heuristics, 1.0)
    unvisited = np.array([False, True, True])
    rng = random.Random(0)
    picks = [select_next_city(0, unvisited, weights, heuristics, rng) for _ in range(200)]
    assert set(picks) <= {1, 2}
    assert picks.count(1) > picks.count(2)


def test_all_zero_weights_choose_uniformly():
    zeros = np.zeros((3, 3))
    unvisited = np.array([False, True, True])
    rng = random.Random(0)
    picks = {select_next_city(0, unvisited, zeros, zeros, rng) for _ in range(100)}
    assert picks == {1, 2}


def test_no_candidates_is_an_error():
    zeros = np.zeros((2, 2))
    with pytest.raises(InvalidStateError):
        select_next_city(0, np.array([False, False]), zeros, zeros, random.Random(0))


def test_construct_ant_tour_is_permutation(cities20):
    matrix = build_distance_matrix(cities20)
    heuristics = heuristic_matrix(matrix, 2.0)
    weights = choice_weights(initialize_pheromones(20, 0.1), heuristics, 1.0)
    rng = random.Random(2)
    for _ in range(20):
        assert sorted(construct_ant_tour(weights, heuristics, rng)) == list(range(20))


def test_coincident_cities_stay_finite():
    cities = cities_from_coordinates([(0, 0), (0, 0), (0, 0), (3, 4)])
    tour = AntColonySolver().solve(cities, config=SMALL, rng=random.Random(3))
    assert tour.is_valid()
    assert tour.distance == pytest.approx(10.0)


def test_progress_stream(cities20):
    snapshots = list(AntColonySolver().solve_with_progress(cities20, SMALL, rng=random.Random(4)))
    assert snapshots[-1].is_complete
    assert snapshots[-1].iteration == SMALL.max_iterations - 1
    assert sum(s.is_complete for s in snapshots) == 1
    iterations = [s.iteration for s in snapshots]
    assert iterations == sorted(set(iterations))
    bests = [s.best_distance for s in snapshots]
    assert all(b2 <= b1 for b1, b2 in zip(bests, bests[1:]))
    for s in snapshots:
        assert s.best_distance <= s.iteration_best_distance + 1e-9
        assert s.iteration_best_distance <= s.average_distance <= s.worst_distance + 1e-9
        assert s.min_pheromone <= s.max_pheromone
        assert s.config is SMALL


def test_cancelled_stream_has_no_complete_snapshot(cities20):
    cancel = threading.Event()
    config = AntColonyConfig(ant_count=5, max_iterations=50, progress_report_interval=1, use_local_search=False)
    snapshots = []
    for snapshot in AntColonySolver().solve_with_progress(cities20, config, cancel, random.Random(5)):
        snapshots.append(snapshot)
        if len(snapshots) == 2:
            cancel.set()
    assert len(snapshots) == 2
    assert not any(s.is_complete for s in snapshots)


def test_async_stream(cities20):
    async def collect():
        return [s async for s in AntColonySolver().asolve_with_progress(cities20, SMALL, rng=random.Random(6))]

    snapshots = asyncio.run(collect())
    assert snapshots[-1].is_complete


def test_progress_needs_three_cities(square):
    with pytest.raises(InvalidArgumentError):
        list(AntColonySolver().solve_with_progress(square[:2]))


@pytest.mark.parametrize(
    "overrides",
    [
        {"ant_count": 0},
        {"max_iterations": 0},
        {"alpha": -1.0},
        {"evaporation_rate": 0.0},
        {"evaporation_rate": 1.5},
        {"initial_pheromone": 0.0},
        {"elite_ant_count": 100},
    ],
)
def test_config_validation(overrides):
    with pytest.raises(InvalidArgumentError):
        AntColonyConfig(**overrides)


def test_for_problem_size():
    small = AntColonyConfig.for_problem_size(5)
    assert small.ant_count == 20
    assert small.max_iterations == 100
    assert small.elite_ant_count == 2
    assert small.progress_report_interval == 5
    assert AntColonyConfig.for_problem_size(60).ant_count == 60
    assert AntColonyConfig.for_problem_size(60).max_iterations == 180
    big = AntColonyConfig.for_problem_size(250)
    assert big.ant_count == 100
    assert big.max_iterations == 500
    assert big.elite_ant_count == 10
    assert big.progress_report_interval == 25
    assert big.use_local_search
    assert AntColonyConfig.for_problem_size(250, max_iterations=7).max_iterations == 7
