from .base import Solver, tour_length
from .heuristics import NearestNeighborSolver, TwoOptSolver, nearest_neighbor_tour, random_tour, two_opt
from .annealing import AnnealingResult, SimulatedAnnealingConfig, SimulatedAnnealingSolver, should_accept
from .ant_colony import AntColonyConfig, AntColonySolver, IterationResult

__all__ = [
    "Solver",
    "tour_length",
    "NearestNeighborSolver",
    "TwoOptSolver",
    "nearest_neighbor_tour",
    "random_tour",
    "two_opt",
    "SimulatedAnnealingConfig",
    "SimulatedAnnealingSolver",
    "AnnealingResult",
    "should_accept",
    "AntColonyConfig",
    "AntColonySolver",
    "IterationResult",
]
