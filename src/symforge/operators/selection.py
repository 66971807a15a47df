"""Parent selection operators.

Provides selection strategies:
- Tournament selection: Best of k random individuals on one objective
- Random selection: Uniform pick
- Crowded tournament: Multi-objective comparison by (rank, -crowding)

Selectors are prepared once per generation, then called concurrently from
worker threads. ``__call__`` only reads the prepared state.
"""

from __future__ import annotations

from typing import Sequence
import random

import numpy as np

from symforge.errors import ConfigurationError
from symforge.evolution.population import Individual
from symforge.evolution.sorting import DominanceDegreeSorter, rank_population


class SelectorBase:
    """Holds the prepared population."""

    def __init__(self):
        self._population: Sequence[Individual] = ()

    def prepare(self, population: Sequence[Individual]) -> None:
        if not population:
            raise ConfigurationError("Cannot select from an empty population")
        self._population = population

    @property
    def population(self) -> Sequence[Individual]:
        return self._population

    def __call__(self, rng: random.Random) -> int:
        raise NotImplementedError


class TournamentSelector(SelectorBase):
    """Best of ``tournament_size`` uniformly drawn individuals.

    Args:
        tournament_size: Number of contestants (drawn with replacement)
        objective: Index of the objective compared
        maximization: Whether larger objective values win
    """

    def __init__(self, tournament_size: int = 5, objective: int = 0, maximization: bool = False):
        super().__init__()
        if tournament_size < 1:
            raise ConfigurationError(f"tournament_size must be >= 1, got {tournament_size}")
        self.tournament_size = tournament_size
        self.objective = objective
        self.maximization = maximization
        self._values = np.empty(0)

    def prepare(self, population: Sequence[Individual]) -> None:
        super().prepare(population)
        values = np.array([ind[self.objective] for ind in population])
        self._values = -values if self.maximization else values

    def __call__(self, rng: random.Random) -> int:
        n = len(self._values)
        best = rng.randrange(n)
        for _ in range(self.tournament_size - 1):
            i = rng.randrange(n)
            if self._values[i] < self._values[best]:
                best = i
        return best


class RandomSelector(SelectorBase):
    """Uniform random selection."""

    def __call__(self, rng: random.Random) -> int:
        return rng.randrange(len(self._population))


class CrowdedTournamentSelector(SelectorBase):
    """Binary (or k-ary) tournament on non-dominated rank, then crowding distance.

    ``prepare`` ranks the population in place with the non-dominated sorter.
    With ``maximization`` the primary objective is maximized.
    """

    def __init__(
        self,
        sorter: DominanceDegreeSorter | None = None,
        tournament_size: int = 2,
        maximization: bool = False,
    ):
        super().__init__()
        self.sorter = sorter or DominanceDegreeSorter()
        self.tournament_size = tournament_size
        self.maximization = maximization
        self._keys: list[tuple[int, float]] = []

    def prepare(self, population: Sequence[Individual]) -> None:
        super().prepare(population)
        rank_population(population, self.sorter, self.maximization)
        self._keys = [(ind.rank, -ind.crowding_distance) for ind in population]

    def __call__(self, rng: random.Random) -> int:
        n = len(self._keys)
        best = rng.randrange(n)
        for _ in range(self.tournament_size - 1):
            i = rng.randrange(n)
            if self._keys[i] < self._keys[best]:
                best = i
        return best


def parse_selector(text: str, maximization: bool = False) -> SelectorBase:
    """Build a selector from ``tournament[:k]``, ``random`` or ``crowded[:k]``."""
    name, _, arg = text.partition(":")
    name = name.strip().lower()
    if name == "tournament":
        return TournamentSelector(int(arg) if arg else 5, maximization=maximization)
    if name == "random":
        return RandomSelector()
    if name == "crowded":
        return CrowdedTournamentSelector(tournament_size=int(arg) if arg else 2, maximization=maximization)
    raise ConfigurationError(f"Unknown selector: {text}")
