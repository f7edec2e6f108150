"""
Name-based catalog of the available strategies.

Front ends (the CLI, a web layer, benchmarks) discover algorithms and
operators here instead of importing the classes directly.
"""

import logging
from typing import Dict, List, Tuple, Type, TypeVar

from .errors import InvalidArgumentError
from .evolutionary import GeneticAlgorithmSolver
from .operators import (
    Crossover,
    CycleCrossover,
    EdgeRecombinationCrossover,
    InversionMutation,
    Mutation,
    OrderCrossover,
    PartiallyMappedCrossover,
    SwapMutation,
    TwoOptMutation,
)
from .solvers import (
    AntColonySolver,
    NearestNeighborSolver,
    SimulatedAnnealingSolver,
    Solver,
    TwoOptSolver,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SOLVERS: Dict[str, Type[Solver]] = {
    "nearest_neighbor": NearestNeighborSolver,
    "two_opt": TwoOptSolver,
    "simulated_annealing": SimulatedAnnealingSolver,
    "ant_colony": AntColonySolver,
    "genetic": GeneticAlgorithmSolver,
}

CROSSOVERS: Dict[str, Type[Crossover]] = {
    cls.name: cls
    for cls in (OrderCrossover, PartiallyMappedCrossover, CycleCrossover, EdgeRecombinationCrossover)
}

MUTATIONS: Dict[str, Type[Mutation]] = {
    cls.name: cls for cls in (SwapMutation, InversionMutation, TwoOptMutation)
}


def _resolve(kind: str, catalog: Dict[str, Type[T]], name: str) -> Type[T]:
    if not name or not name.strip():
        raise InvalidArgumentError(f"{kind} name must not be empty")
    wanted = name.strip().lower()
    for key, cls in catalog.items():
        # Accept both the catalog key and the display name ("simulated_annealing" / "Simulated Annealing").
        if wanted in (key.lower(), getattr(cls, "name", "").lower()):
            logger.debug("resolved %s %r -> %s", kind, name, cls.__name__)
            return cls
    available = ", ".join(catalog)
    raise InvalidArgumentError(f"{kind} '{name}' not found. Available: {available}")


def resolve_solver(name: str) -> Type[Solver]:
    return _resolve("solver", SOLVERS, name)


def resolve_crossover(name: str) -> Type[Crossover]:
    return _resolve("crossover", CROSSOVERS, name)


def resolve_mutation(name: str) -> Type[Mutation]:
    return _resolve("mutation", MUTATIONS, name)


def available_solvers() -> List[str]:
    return list(SOLVERS)


def available_crossovers() -> List[str]:
    return list(CROSSOVERS)


def available_mutations() -> List[str]:
    return list(MUTATIONS)


def describe_solvers() -> List[Tuple[str, str, str]]:
    return [(key, cls.name, cls.description) for key, cls in SOLVERS.items()]
