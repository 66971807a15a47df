"""Offspring generators.

A generator bundles the recombination pipeline (select, cross over, mutate,
evaluate) and decides whether a child is accepted. Returning ``None`` tells
the loop to try again for the same slot, until ``terminate()`` says stop.
"""

from __future__ import annotations

from typing import Sequence
import random
import threading
import time

from symforge.errors import ConfigurationError
from symforge.evolution.population import Individual, sanitize_fitness, worst_fitness
from symforge.operators.base import Crossover, Mutator
from symforge.operators.evaluator import Evaluator
from symforge.operators.selection import SelectorBase


class OffspringGeneratorBase:
    """Shared recombination pipeline and termination logic.

    Args:
        evaluator: Fitness evaluator (owns the evaluation budget)
        crossover: Crossover operator
        mutator: Mutation operator
        female_selector: Selects the first parent
        male_selector: Selects the crossover donor (defaults to the female selector)
        maximization: Whether the primary objective is maximized
        time_limit: Seconds after ``reset()`` at which to terminate (None = unlimited)
    """

    def __init__(
        self,
        evaluator: Evaluator,
        crossover: Crossover,
        mutator: Mutator,
        female_selector: SelectorBase,
        male_selector: SelectorBase | None = None,
        maximization: bool = False,
        time_limit: float | None = None,
    ):
        self.evaluator = evaluator
        self.crossover = crossover
        self.mutator = mutator
        self.female_selector = female_selector
        self.male_selector = male_selector or female_selector
        self.maximization = maximization
        self.time_limit = time_limit
        self._parents: Sequence[Individual] = ()
        self._start = time.monotonic()

    def prepare(self, parents: Sequence[Individual]) -> None:
        self._parents = parents
        self.female_selector.prepare(parents)
        if self.male_selector is not self.female_selector:
            self.male_selector.prepare(parents)

    def reset(self) -> None:
        self._start = time.monotonic()
        self.evaluator.reset()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def terminate(self) -> bool:
        if self.evaluator.budget_exhausted():
            return True
        return self.time_limit is not None and self.elapsed >= self.time_limit

    def evaluate(self, rng: random.Random, individual: Individual) -> Individual:
        fitness = self.evaluator(rng, individual)
        individual.fitness = sanitize_fitness(fitness, worst_fitness(self.maximization))
        return individual

    def _recombine(
        self,
        rng: random.Random,
        crossover_probability: float,
        mutation_probability: float,
    ) -> tuple[Individual | None, list[Individual]]:
        """Child (None if no operator fired) and the parents that produced it."""
        female = self._parents[self.female_selector(rng)]
        do_crossover = rng.random() < crossover_probability
        do_mutation = rng.random() < mutation_probability

        if not (do_crossover or do_mutation):
            return None, [female]

        parents = [female]
        tree = female.genotype
        if do_crossover:
            male = self._parents[self.male_selector(rng)]
            parents.append(male)
            tree = self.crossover(rng, tree, male.genotype)
        if do_mutation:
            tree = self.mutator(rng, tree)

        child = Individual(genotype=tree)
        return self.evaluate(rng, child), parents

    def __call__(
        self,
        rng: random.Random,
        crossover_probability: float,
        mutation_probability: float,
    ) -> Individual | None:
        raise NotImplementedError


class BasicOffspringGenerator(OffspringGeneratorBase):
    """Accept every child.

    When neither crossover nor mutation fires, a copy of the selected parent
    is returned without re-evaluation.
    """

    def __call__(
        self,
        rng: random.Random,
        crossover_probability: float,
        mutation_probability: float,
    ) -> Individual | None:
        child, parents = self._recombine(rng, crossover_probability, mutation_probability)
        if child is None:
            return parents[0].copy()
        return child


class OffspringSelectionGenerator(OffspringGeneratorBase):
    """Accept a child only if it improves on its parents.

    The child's primary objective must beat
    ``worse + comparison_factor * (better - worse)`` where ``better`` and
    ``worse`` are the parents' primary objective values. A factor of 0 only
    requires beating the worse parent; 1 requires beating the better one.

    Terminates once the number of attempts in a generation exceeds
    ``max_selection_pressure`` times the population size.
    """

    def __init__(
        self,
        *args,
        comparison_factor: float = 1.0,
        max_selection_pressure: float = 100.0,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        if not 0.0 <= comparison_factor <= 1.0:
            raise ConfigurationError(
                f"comparison_factor must be in [0, 1], got {comparison_factor}"
            )
        self.comparison_factor = comparison_factor
        self.max_selection_pressure = max_selection_pressure
        self._lock = threading.Lock()
        self._attempts = 0

    def prepare(self, parents: Sequence[Individual]) -> None:
        super().prepare(parents)
        with self._lock:
            self._attempts = 0

    @property
    def selection_pressure(self) -> float:
        if not self._parents:
            return 0.0
        return self._attempts / len(self._parents)

    def terminate(self) -> bool:
        return super().terminate() or self.selection_pressure >= self.max_selection_pressure

    def __call__(
        self,
        rng: random.Random,
        crossover_probability: float,
        mutation_probability: float,
    ) -> Individual | None:
        with self._lock:
            self._attempts += 1

        child, parents = self._recombine(rng, crossover_probability, mutation_probability)
        if child is None:
            return None

        values = [p[0] for p in parents]
        if self.maximization:
            better, worse = max(values), min(values)
        else:
            better, worse = min(values), max(values)
        threshold = worse + self.comparison_factor * (better - worse)

        accepted = child[0] > threshold if self.maximization else child[0] < threshold
        return child if accepted else None


def parse_generator(text: str, *args, **kwargs) -> OffspringGeneratorBase:
    """Build a generator from ``basic`` or ``os[:comparison_factor]``."""
    name, _, arg = text.partition(":")
    name = name.strip().lower()
    if name == "basic":
        return BasicOffspringGenerator(*args, **kwargs)
    if name == "os":
        if arg:
            kwargs["comparison_factor"] = float(arg)
        return OffspringSelectionGenerator(*args, **kwargs)
    raise ConfigurationError(f"Unknown offspring generator: {text}")
