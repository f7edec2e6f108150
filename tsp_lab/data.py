import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np
import tsplib95

from .geometry import City

logger = logging.getLogger(__name__)


@dataclass
class Instance:
    name: str
    path: Optional[Path]
    cities: List[City]
    distance_matrix: Optional[np.ndarray]
    optimum: Optional[float]


def cities_from_coordinates(coords: Iterable[Sequence[float]], prefix: str = "City") -> List[City]:
    return [City(id=i, name=f"{prefix} {i + 1}", x=float(x), y=float(y)) for i, (x, y) in enumerate(coords)]


def random_cities(
    n: int, seed: Optional[int] = None, width: float = 100.0, height: float = 100.0
) -> List[City]:
    rng = np.random.default_rng(seed)
    coords = rng.random((n, 2)) * np.array([width, height])
    return cities_from_coordinates(coords.tolist())


def _optimum_files(path: Path) -> List[Path]:
    solutions = path.parent / "solutions"
    return [path.with_suffix(".opt.tour")] + [
        solutions / f"{path.stem}{suffix}" for suffix in (".opt.tour", ".opt", ".tour")
    ]


_DIMENSION = re.compile(r"^\s*DIMENSION\s*:?\s*(\d+)", re.IGNORECASE)


def _declared_dimension(path: Path) -> Optional[int]:
    """Read DIMENSION from the header without parsing the whole file."""
    with path.open("r") as f:
        for line in f:
            match = _DIMENSION.match(line)
            if match:
                return int(match.group(1))
            if line.strip().upper().endswith("_SECTION"):
                break
    return None


def _load_optimum(problem, path: Path) -> Optional[float]:
    for candidate in _optimum_files(path):
        if not candidate.exists():
            continue
        try:
            nodes = list(tsplib95.parse(candidate.read_text()).tours[0])
        except Exception as exc:
            logger.warning("ignoring unreadable tour file %s: %s", candidate, exc)
            continue
        closed = zip(nodes, nodes[1:] + nodes[:1])
        return float(sum(problem.get_weight(a, b) for a, b in closed))
    return None


def _coordinates(problem, nodes: List[int]) -> Optional[List[Tuple[float, float]]]:
    for source in (problem.node_coords, problem.display_data):
        if source and all(node in source for node in nodes):
            return [tuple(source[node][:2]) for node in nodes]
    return None


def load_instance(path: Path) -> Instance:
    path = Path(path)
    problem = tsplib95.load(path)
    graph = problem.get_graph()
    nodes = sorted(graph.nodes())
    matrix = nx.to_numpy_array(graph, nodelist=nodes, weight="weight")
    np.fill_diagonal(matrix, 0.0)
    coords = _coordinates(problem, nodes)
    if coords is None:
        # Explicit-weight instances carry no layout; the matrix drives the solvers.
        logger.warning("%s has no coordinates; placing all cities at the origin", path.name)
        coords = [(0.0, 0.0)] * len(nodes)
    cities = [
        City(id=i, name=str(node), x=float(x), y=float(y)) for i, (node, (x, y)) in enumerate(zip(nodes, coords))
    ]
    optimum = _load_optimum(problem, path)
    return Instance(name=problem.name or path.stem, path=path, cities=cities, distance_matrix=matrix, optimum=optimum)


def load_tsplib_instances(
    root: Path, max_nodes: Optional[int] = None, max_instances: Optional[int] = None
) -> List[Instance]:
    """Load every ``*.tsp`` under ``root`` in name order, skipping files above ``max_nodes``."""
    instances: List[Instance] = []
    for path in sorted(Path(root).glob("*.tsp")):
        if max_instances is not None and len(instances) >= max_instances:
            break
        dimension = _declared_dimension(path) if max_nodes is not None else None
        if dimension is not None and dimension > max_nodes:
            logger.info("skipping %s: %d nodes > %d", path.name, dimension, max_nodes)
            continue
        instances.append(load_instance(path))
    return instances


def random_instance(n: int, seed: Optional[int] = None) -> Instance:
    return Instance(
        name=f"random{n}", path=None, cities=random_cities(n, seed=seed), distance_matrix=None, optimum=None
    )
