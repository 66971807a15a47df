"""Reinsertion operators merging an offspring pool into the population."""

from __future__ import annotations

import random

from symforge.errors import ConfigurationError
from symforge.evolution.population import Individual
from symforge.evolution.sorting import DominanceDegreeSorter, rank_population


def _sort_key(objective: int, maximization: bool):
    sign = -1.0 if maximization else 1.0
    return lambda ind: sign * ind[objective]


class KeepBestReinserter:
    """Keep the best individuals of population and pool combined."""

    def __init__(self, objective: int = 0, maximization: bool = False):
        self.objective = objective
        self.maximization = maximization

    def __call__(
        self,
        rng: random.Random,
        population: list[Individual],
        pool: list[Individual],
    ) -> None:
        n = len(population)
        merged = sorted(population + pool, key=_sort_key(self.objective, self.maximization))
        population[:] = merged[:n]


class ReplaceWorstReinserter:
    """Replace the worst members of the population with the best of the pool."""

    def __init__(self, objective: int = 0, maximization: bool = False):
        self.objective = objective
        self.maximization = maximization

    def __call__(
        self,
        rng: random.Random,
        population: list[Individual],
        pool: list[Individual],
    ) -> None:
        key = _sort_key(self.objective, self.maximization)
        population.sort(key=key)
        best_of_pool = sorted(pool, key=key)
        k = min(len(population), len(best_of_pool))
        if k:
            population[len(population) - k :] = best_of_pool[:k]


class NonDominatedReinserter:
    """Fill the population front by front, truncating the last front by crowding."""

    def __init__(self, sorter: DominanceDegreeSorter | None = None, maximization: bool = False):
        self.sorter = sorter or DominanceDegreeSorter()
        self.maximization = maximization

    def __call__(
        self,
        rng: random.Random,
        population: list[Individual],
        pool: list[Individual],
    ) -> None:
        n = len(population)
        merged = population + pool
        fronts = rank_population(merged, self.sorter, self.maximization)

        selected: list[Individual] = []
        for front in fronts:
            members = [merged[i] for i in front]
            if len(selected) + len(members) <= n:
                selected.extend(members)
                continue
            members.sort(key=lambda ind: -ind.crowding_distance)
            selected.extend(members[: n - len(selected)])
            break
        population[:] = selected


def parse_reinserter(text: str, maximization: bool = False):
    """Build a reinserter from ``keep-best``, ``replace-worst`` or ``non-dominated``."""
    name = text.strip().lower()
    if name == "keep-best":
        return KeepBestReinserter(maximization=maximization)
    if name == "replace-worst":
        return ReplaceWorstReinserter(maximization=maximization)
    if name == "non-dominated":
        return NonDominatedReinserter(maximization=maximization)
    raise ConfigurationError(f"Unknown reinserter: {text}")
