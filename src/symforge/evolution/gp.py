"""Generational genetic programming loop.

Each generation runs as a sequence of data-parallel phases on a shared thread
pool, separated by full joins:

1. Create the initial parents (first generation only)
2. Evaluate the initial parents (first generation only)
3. Report, then check termination
4. Recombine: slot 0 receives a copy of the best parent, every other slot
   retries the offspring generator until it yields a child or terminates
5. Swap parents and offspring (or merge them with a reinserter)

Before every parallel phase one seed per slot is drawn from the top-level
generator, so slot ``k`` always sees the same random stream for a given top
level seed, independent of thread scheduling.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence
import logging
import random
import threading
import time

from symforge.data.problem import Problem
from symforge.errors import ConfigurationError
from symforge.evolution.population import (
    Individual,
    compute_stats,
    sanitize_fitness,
    worst_fitness,
)
from symforge.expression.interpreter import N_EVAL_THREADS
from symforge.operators.base import (
    CoefficientInitializer,
    OffspringGenerator,
    Reinserter,
    TreeInitializer,
)

logger = logging.getLogger(__name__)

# Distance from the optimum at which the run counts as converged
CONVERGENCE_EPSILON = 1e-6


@dataclass
class GeneticAlgorithmConfig:
    """Configuration for the genetic programming loop.

    Attributes:
        population_size: Number of parents
        pool_size: Offspring generated per generation (None = population_size)
        generations: Maximum number of generations (reports)
        evaluations: Fitness evaluation budget applied to the generator's
            evaluator when it has none
        iterations: Local optimization budget per evaluation (consumed by the
            evaluator)
        crossover_probability: Probability of applying crossover
        mutation_probability: Probability of applying mutation
        time_limit: Wall-clock limit in seconds (None = unlimited)
        seed: Random seed for the top-level generator
        maximization: Whether the primary objective is maximized
        threads: Worker threads (None = automatic)
    """

    population_size: int = 1000
    pool_size: int | None = None
    generations: int = 1000
    evaluations: int = 1_000_000
    iterations: int = 0
    crossover_probability: float = 1.0
    mutation_probability: float = 0.25
    time_limit: float | None = None
    seed: int | None = None
    maximization: bool = False
    threads: int | None = None

    def validate(self) -> None:
        if self.population_size < 1:
            raise ConfigurationError(f"population_size must be >= 1, got {self.population_size}")
        if self.pool_size is not None and self.pool_size < 1:
            raise ConfigurationError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.generations < 1:
            raise ConfigurationError(f"generations must be >= 1, got {self.generations}")
        if self.evaluations < 0 or self.iterations < 0:
            raise ConfigurationError("evaluations and iterations must be non-negative")
        for name in ("crossover_probability", "mutation_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ConfigurationError(f"time_limit must be positive, got {self.time_limit}")
        if self.threads is not None and self.threads < 1:
            raise ConfigurationError(f"threads must be >= 1, got {self.threads}")

    @property
    def effective_pool_size(self) -> int:
        return self.population_size if self.pool_size is None else self.pool_size


@dataclass
class GPResult:
    """Result of a genetic programming run.

    Attributes:
        best: Best individual of the final parents
        population: Final parents
        generations: Number of generations reported
        generation_stats: Statistics per generation
        evaluations: Total evaluations spent
        terminated_by: One of "generations", "generator", "convergence"
    """

    best: Individual
    population: list[Individual]
    generations: int
    generation_stats: list[dict[str, Any]] = field(default_factory=list)
    evaluations: int = 0
    terminated_by: str = "generations"


class GeneticProgrammingAlgorithm:
    """Generational GP with elitism and parallel phases.

    Args:
        problem: Regression problem (dataset, inputs, grammar)
        config: Loop configuration
        initializer: Builds initial trees, called as ``(rng, pset, variables)``
        coefficient_initializer: Initializes coefficients of new trees
        generator: Offspring generator (owns evaluator, selectors, operators)
        reinserter: Merges the offspring pool into the parents; required when
            the pool size differs from the population size
    """

    def __init__(
        self,
        problem: Problem,
        config: GeneticAlgorithmConfig,
        initializer: TreeInitializer,
        coefficient_initializer: CoefficientInitializer,
        generator: OffspringGenerator,
        reinserter: Reinserter | None = None,
    ):
        config.validate()
        if not isinstance(generator, OffspringGenerator):
            raise ConfigurationError(f"{type(generator).__name__} is not an offspring generator")
        if config.effective_pool_size != config.population_size and reinserter is None:
            raise ConfigurationError(
                f"pool_size ({config.effective_pool_size}) must equal population_size "
                f"({config.population_size}) unless a reinserter is given"
            )

        self.problem = problem
        self.config = config
        self.initializer = initializer
        self.coefficient_initializer = coefficient_initializer
        self.generator = generator
        self.reinserter = reinserter

        evaluator = getattr(generator, "evaluator", None)
        if evaluator is not None and evaluator.budget is None:
            evaluator.budget = config.evaluations
        if config.time_limit is not None and getattr(generator, "time_limit", None) is None:
            generator.time_limit = config.time_limit
        for operator in (
            generator,
            getattr(generator, "female_selector", None),
            getattr(generator, "male_selector", None),
            reinserter,
        ):
            if operator is not None and hasattr(operator, "maximization"):
                operator.maximization = config.maximization

        self._parents: list[Individual] = []
        self._offspring: list[Individual] = []
        self._generation = 0

    @property
    def parents(self) -> list[Individual]:
        return self._parents

    @property
    def offspring(self) -> list[Individual]:
        return self._offspring

    @property
    def generation(self) -> int:
        return self._generation

    def reset(self) -> None:
        self._parents = []
        self._offspring = []
        self._generation = 0
        self.generator.reset()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _draw_seeds(rng: random.Random, n: int) -> list[int]:
        return [rng.getrandbits(64) for _ in range(n)]

    @staticmethod
    def _map(executor: ThreadPoolExecutor, fn: Callable[[int], Any], items: Iterable[int]) -> list:
        """Run ``fn`` over ``items`` in parallel and join; errors propagate."""
        futures = [executor.submit(fn, i) for i in items]
        return [future.result() for future in futures]

    def best(self, individuals: Sequence[Individual]) -> Individual:
        """First individual with the best primary objective."""
        if self.config.maximization:
            return max(individuals, key=lambda ind: ind[0])
        return min(individuals, key=lambda ind: ind[0])

    def _evaluations(self) -> int:
        evaluator = getattr(self.generator, "evaluator", None)
        return evaluator.total_evaluations if evaluator is not None else 0

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        rng: random.Random | None = None,
        on_generation: Callable[[int, dict], None] | None = None,
    ) -> GPResult:
        """Run the algorithm to termination.

        Args:
            rng: Top-level random generator (defaults to one seeded with
                ``config.seed``)
            on_generation: Callback invoked once per generation, before the
                termination check, with (generation_number, stats_dict)

        Returns:
            GPResult with the final parents and statistics
        """
        config = self.config
        rng = rng or random.Random(config.seed)
        n = config.population_size
        pool_size = config.effective_pool_size
        worst = worst_fitness(config.maximization)
        optimum = 1.0 if config.maximization else 0.0
        pset = self.problem.primitive_set
        variables = self.problem.input_variables
        evaluator = self.generator.evaluator

        self.reset()
        terminate = threading.Event()
        generation_stats: list[dict[str, Any]] = []
        terminated_by = "generations"
        t0 = time.monotonic()

        logger.info(
            f"Starting GP: population={n}, pool={pool_size}, "
            f"generations={config.generations}, budget={evaluator.budget}"
        )

        with ThreadPoolExecutor(max_workers=config.threads or N_EVAL_THREADS) as executor:
            # Initial parents
            seeds = self._draw_seeds(rng, n)

            def create(i: int) -> Individual:
                local = random.Random(seeds[i])
                tree = self.initializer(local, pset, variables)
                self.coefficient_initializer(local, tree)
                return Individual(genotype=tree, fitness=sanitize_fitness([worst], worst))

            self._parents = self._map(executor, create, range(n))

            seeds = self._draw_seeds(rng, n)

            def evaluate(i: int) -> None:
                individual = self._parents[i]
                individual.fitness = sanitize_fitness(
                    evaluator(random.Random(seeds[i]), individual), worst
                )

            self._map(executor, evaluate, range(n))

            for gen in range(config.generations):
                self._generation = gen
                best = self.best(self._parents)

                converged = abs(best[0] - optimum) < CONVERGENCE_EPSILON
                if converged:
                    terminate.set()

                stats = compute_stats(self._parents, config.maximization).to_dict()
                stats.update(
                    generation=gen + 1,
                    evaluations=self._evaluations(),
                    elapsed=time.monotonic() - t0,
                )
                generation_stats.append(stats)
                logger.debug(
                    f"Generation {gen + 1}: best={stats['best_fitness']:.6g}, "
                    f"avg_length={stats['avg_length']:.1f}, evaluations={stats['evaluations']}"
                )

                if on_generation is not None:
                    on_generation(gen + 1, stats)

                if converged:
                    terminated_by = "convergence"
                    break
                if terminate.is_set() or self.generator.terminate():
                    terminated_by = "generator"
                    break
                if gen + 1 == config.generations:
                    break

                # Recombination
                seeds = self._draw_seeds(rng, pool_size)
                self.generator.prepare(self._parents)
                parents = self._parents

                def recombine(i: int) -> Individual | None:
                    local = random.Random(seeds[i])
                    while not terminate.is_set():
                        if self.generator.terminate():
                            terminate.set()
                            break
                        child = self.generator(
                            local,
                            config.crossover_probability,
                            config.mutation_probability,
                        )
                        if child is not None:
                            child.fitness = sanitize_fitness(child.fitness, worst)
                            return child
                    return None

                children = self._map(executor, recombine, range(1, pool_size))
                offspring = [best.copy()]
                for i, child in enumerate(children, start=1):
                    offspring.append(child if child is not None else parents[i % n].copy())

                if self.reinserter is not None:
                    self.reinserter(rng, self._parents, offspring)
                    self._offspring = offspring
                else:
                    self._parents, self._offspring = offspring, parents

        best = self.best(self._parents)
        logger.info(
            f"GP finished after {len(generation_stats)} generations "
            f"({terminated_by}): best={best[0]:.6g}, evaluations={self._evaluations()}"
        )

        return GPResult(
            best=best,
            population=self._parents,
            generations=len(generation_stats),
            generation_stats=generation_stats,
            evaluations=self._evaluations(),
            terminated_by=terminated_by,
        )
