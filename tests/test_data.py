import numpy as np
import pytest

from tsp_lab.data import (
    cities_from_coordinates,
    load_instance,
    load_tsplib_instances,
    random_cities,
    random_instance,
)

TRIANGLE = """NAME : tri
TYPE : TSP
DIMENSION : 3
EDGE_WEIGHT_TYPE : EUC_2D
NODE_COORD_SECTION
1 0 0
2 3 0
3 3 4
EOF
"""

TRIANGLE_TOUR = """NAME : tri.opt.tour
TYPE : TOUR
DIMENSION : 3
TOUR_SECTION
1
2
3
-1
EOF
"""

SQUARE = """NAME : sq
TYPE : TSP
DIMENSION : 4
EDGE_WEIGHT_TYPE : EUC_2D
NODE_COORD_SECTION
1 0 0
2 10 0
3 10 10
4 0 10
EOF
"""


def test_cities_from_coordinates():
    cities = cities_from_coordinates([(1, 2), (3, 4)], prefix="Stop")
    assert [c.id for c in cities] == [0, 1]
    assert cities[1].name == "Stop 2"
    assert (cities[1].x, cities[1].y) == (3.0, 4.0)


def test_random_cities_are_reproducible():
    a = random_cities(10, seed=3)
    b = random_cities(10, seed=3)
    assert a == b
    assert all(0 <= c.x <= 100 and 0 <= c.y <= 100 for c in a)
    assert random_cities(10, seed=4) != a


def test_random_instance():
    instance = random_instance(5, seed=1)
    assert instance.name == "random5"
    assert len(instance.cities) == 5
    assert instance.distance_matrix is None and instance.optimum is None


def test_load_instance_with_optimum(tmp_path):
    path = tmp_path / "tri.tsp"
    path.write_text(TRIANGLE)
    (tmp_path / "tri.opt.tour").write_text(TRIANGLE_TOUR)
    instance = load_instance(path)
    assert instance.name == "tri"
    assert len(instance.cities) == 3
    assert instance.distance_matrix.shape == (3, 3)
    assert np.all(np.diag(instance.distance_matrix) == 0)
    assert instance.distance_matrix[0, 2] == pytest.approx(5.0)
    assert instance.optimum == pytest.approx(12.0)
    assert (instance.cities[2].x, instance.cities[2].y) == (3.0, 4.0)


def test_load_tsplib_directory_filters_by_size(tmp_path):
    (tmp_path / "tri.tsp").write_text(TRIANGLE)
    (tmp_path / "sq.tsp").write_text(SQUARE)
    assert [i.name for i in load_tsplib_instances(tmp_path)] == ["sq", "tri"]
    assert [i.name for i in load_tsplib_instances(tmp_path, max_nodes=3)] == ["tri"]
    assert len(load_tsplib_instances(tmp_path, max_instances=1)) == 1
    assert load_tsplib_instances(tmp_path)[0].optimum is None
