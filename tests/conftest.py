import random

import pytest

from tsp_lab.data import cities_from_coordinates, random_cities


@pytest.fixture
def square():
    return cities_from_coordinates([(0, 0), (1, 0), (1, 1), (0, 1)])


@pytest.fixture
def cities20():
    return random_cities(20, seed=7)


@pytest.fixture
def rng():
    return random.Random(1234)
