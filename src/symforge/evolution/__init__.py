"""Evolutionary loop, individuals and non-dominated sorting."""

from symforge.evolution.gp import (
    GeneticAlgorithmConfig,
    GeneticProgrammingAlgorithm,
    GPResult,
)
from symforge.evolution.population import (
    Individual,
    PopulationStats,
    compute_stats,
    sanitize_fitness,
    worst_fitness,
)
from symforge.evolution.sorting import (
    DominanceDegreeSorter,
    crowding_distance,
    dominates,
    rank_population,
)

__all__ = [
    "GeneticAlgorithmConfig",
    "GeneticProgrammingAlgorithm",
    "GPResult",
    "Individual",
    "PopulationStats",
    "compute_stats",
    "sanitize_fitness",
    "worst_fitness",
    "DominanceDegreeSorter",
    "crowding_distance",
    "dominates",
    "rank_population",
]
