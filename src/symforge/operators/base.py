"""Contracts for the pluggable operators of the evolutionary loop.

Every operator takes the caller's ``random.Random`` as its first argument so
that a run is reproducible given its seed: the loop hands each work item its
own generator and operators never reach for global randomness.
"""

from __future__ import annotations

from typing import Protocol, Sequence, TYPE_CHECKING, runtime_checkable
import random

import numpy as np

if TYPE_CHECKING:
    from symforge.data.dataset import Variable
    from symforge.evolution.population import Individual
    from symforge.expression.tree import Tree
    from symforge.expression.types import PrimitiveSet


@runtime_checkable
class Creator(Protocol):
    """Build a random tree within length and depth limits."""

    def __call__(
        self,
        rng: random.Random,
        pset: "PrimitiveSet",
        variables: Sequence["Variable"],
        max_length: int | None = None,
        max_depth: int | None = None,
    ) -> "Tree":
        ...


@runtime_checkable
class TreeInitializer(Protocol):
    """Build a tree for the initial population."""

    def __call__(
        self,
        rng: random.Random,
        pset: "PrimitiveSet",
        variables: Sequence["Variable"],
    ) -> "Tree":
        ...


@runtime_checkable
class CoefficientInitializer(Protocol):
    """Assign initial coefficient values to a tree in place."""

    def __call__(self, rng: random.Random, tree: "Tree") -> None:
        ...


@runtime_checkable
class Crossover(Protocol):
    """Combine two parent trees into one child."""

    def __call__(self, rng: random.Random, lhs: "Tree", rhs: "Tree") -> "Tree":
        ...


@runtime_checkable
class Mutator(Protocol):
    """Produce a modified copy of a tree."""

    def __call__(self, rng: random.Random, tree: "Tree") -> "Tree":
        ...


@runtime_checkable
class FitnessEvaluator(Protocol):
    """Compute the fitness vector of an individual.

    May tune the individual's coefficients in place.
    """

    def __call__(self, rng: random.Random, individual: "Individual") -> np.ndarray:
        ...

    def budget_exhausted(self) -> bool:
        ...


@runtime_checkable
class Selector(Protocol):
    """Pick parent indices from a prepared population."""

    def prepare(self, population: Sequence["Individual"]) -> None:
        ...

    def __call__(self, rng: random.Random) -> int:
        ...


@runtime_checkable
class OffspringGenerator(Protocol):
    """Produce one evaluated child, or None when no acceptable child was made."""

    def prepare(self, parents: Sequence["Individual"]) -> None:
        ...

    def __call__(
        self,
        rng: random.Random,
        crossover_probability: float,
        mutation_probability: float,
    ) -> "Individual | None":
        ...

    def terminate(self) -> bool:
        ...


@runtime_checkable
class Reinserter(Protocol):
    """Merge an offspring pool back into the population in place."""

    def __call__(
        self,
        rng: random.Random,
        population: list["Individual"],
        pool: list["Individual"],
    ) -> None:
        ...
