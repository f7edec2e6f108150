from .crossover import (
    Crossover,
    CycleCrossover,
    EdgeRecombinationCrossover,
    OrderCrossover,
    PartiallyMappedCrossover,
)
from .mutation import InversionMutation, Mutation, SwapMutation, TwoOptMutation

__all__ = [
    "Crossover",
    "OrderCrossover",
    "PartiallyMappedCrossover",
    "CycleCrossover",
    "EdgeRecombinationCrossover",
    "Mutation",
    "SwapMutation",
    "InversionMutation",
    "TwoOptMutation",
]
