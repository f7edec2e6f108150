"""
Travelling-salesman metaheuristics: simulated annealing, ant colony
optimization and a genetic algorithm built from composable operators.
"""

__all__ = [
    "data",
    "evaluation",
    "evolutionary",
    "geometry",
    "operators",
    "registry",
    "solvers",
]
