"""Individuals and population statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from symforge.expression.tree import Tree


@dataclass
class Individual:
    """A tree with its fitness vector.

    Fitness is minimized on every objective unless the algorithm is configured
    for maximization, in which case only the primary objective is maximized.

    Attributes:
        genotype: Expression tree
        fitness: Objective values (objective 0 is primary)
        rank: Non-dominated front index (0 = first front)
        crowding_distance: Isolation in objective space within its front
    """

    genotype: Tree
    fitness: np.ndarray = field(default_factory=lambda: np.zeros(1))
    rank: int = 0
    crowding_distance: float = 0.0

    @classmethod
    def new(cls, n_objectives: int = 1, genotype: Tree | None = None) -> "Individual":
        return cls(
            genotype=genotype if genotype is not None else Tree([]),
            fitness=np.full(n_objectives, np.finfo(np.float64).max),
        )

    def __getitem__(self, i: int) -> float:
        return float(self.fitness[i])

    @property
    def n_objectives(self) -> int:
        return len(self.fitness)

    @property
    def length(self) -> int:
        return self.genotype.length

    def copy(self) -> "Individual":
        return Individual(
            genotype=self.genotype.copy(),
            fitness=np.array(self.fitness, dtype=np.float64, copy=True),
            rank=self.rank,
            crowding_distance=self.crowding_distance,
        )


def worst_fitness(maximization: bool = False) -> float:
    """Sentinel assigned to non-finite objective values."""
    worst = float(np.finfo(np.float64).max)
    return -worst if maximization else worst


def sanitize_fitness(values: Sequence[float] | np.ndarray, worst: float) -> np.ndarray:
    """Replace NaN and infinite entries with ``worst``.

    The opposite-direction sentinel ``-worst`` is also mapped to ``worst``, so
    a value sanitized for the other optimization direction stays the worst.
    """
    values = np.array(values, dtype=np.float64, ndmin=1)
    values[~np.isfinite(values) | (values == -worst)] = worst
    return values


@dataclass
class PopulationStats:
    """Statistics about a population."""

    size: int
    best_fitness: float
    avg_fitness: float
    avg_length: float
    avg_coefficients: float
    first_front_size: int = 0

    def to_dict(self) -> dict[str, float]:
        return {
            "size": self.size,
            "best_fitness": self.best_fitness,
            "avg_fitness": self.avg_fitness,
            "avg_length": self.avg_length,
            "avg_coefficients": self.avg_coefficients,
            "first_front_size": self.first_front_size,
        }


def compute_stats(
    individuals: Sequence[Individual],
    maximization: bool = False,
) -> PopulationStats:
    """Summarize the primary objective and tree sizes of a population."""
    if not individuals:
        return PopulationStats(0, float("nan"), float("nan"), 0.0, 0.0)

    primary = np.array([ind[0] for ind in individuals])
    best = primary.max() if maximization else primary.min()
    return PopulationStats(
        size=len(individuals),
        best_fitness=float(best),
        avg_fitness=float(primary.mean()),
        avg_length=float(np.mean([ind.length for ind in individuals])),
        avg_coefficients=float(
            np.mean([ind.genotype.coefficients_count() for ind in individuals])
        ),
        first_front_size=sum(1 for ind in individuals if ind.rank == 0),
    )
