"""Tests for the genetic programming loop."""

import random

import numpy as np
import pytest

from symforge.data import Dataset, Problem, Range
from symforge.errors import ConfigurationError
from symforge.evolution import GeneticAlgorithmConfig, GeneticProgrammingAlgorithm
from symforge.operators import (
    BalancedTreeCreator,
    BasicOffspringGenerator,
    ChangeVariableMutation,
    ErrorEvaluator,
    Evaluator,
    InsertSubtreeMutation,
    KeepBestReinserter,
    MultiMutation,
    NormalCoefficientInitializer,
    OffspringSelectionGenerator,
    OnePointMutation,
    RemoveSubtreeMutation,
    ReplaceSubtreeMutation,
    SubtreeCrossover,
    TournamentSelector,
    UniformTreeInitializer,
)

MAX_LENGTH = 25
MAX_DEPTH = 8


class FirstCallsEvaluator(Evaluator):
    """Scores the first ``n`` evaluations 0.3 and every later one NaN."""

    def __init__(self, n):
        super().__init__()
        self.n = n

    def __call__(self, rng, individual):
        self._count(fitness=1)
        return np.array([0.3 if self.fitness_evaluations <= self.n else np.nan])


def build_algorithm(problem, config, generator_cls=BasicOffspringGenerator, reinserter=None, **kwargs):
    """Assemble a loop with the standard operator set."""
    pset = problem.primitive_set
    variables = problem.input_variables
    creator = BalancedTreeCreator(max_length=MAX_LENGTH)
    initializer = UniformTreeInitializer(creator, 1, MAX_LENGTH, MAX_DEPTH)
    coefficients = NormalCoefficientInitializer()
    mutator = (
        MultiMutation()
        .add(OnePointMutation(), 1.0)
        .add(ChangeVariableMutation(variables), 1.0)
        .add(ReplaceSubtreeMutation(creator, pset, variables, MAX_DEPTH, MAX_LENGTH, coefficients), 1.0)
        .add(InsertSubtreeMutation(creator, pset, variables, MAX_DEPTH, MAX_LENGTH, coefficients), 1.0)
        .add(RemoveSubtreeMutation(pset, variables), 1.0)
    )
    evaluator = ErrorEvaluator(problem, iterations=config.iterations)
    generator = generator_cls(
        evaluator,
        SubtreeCrossover(0.9, MAX_DEPTH, MAX_LENGTH),
        mutator,
        TournamentSelector(3),
        **kwargs,
    )
    return GeneticProgrammingAlgorithm(
        problem, config, initializer, coefficients, generator, reinserter
    )


class TestGeneticProgrammingLoop:
    """Test generation bookkeeping and invariants of the loop."""

    @pytest.fixture
    def config(self):
        return GeneticAlgorithmConfig(population_size=20, generations=10, threads=2, seed=1)

    def test_one_callback_per_generation(self, regression_problem, config):
        calls = []
        gp = build_algorithm(regression_problem, config)
        result = gp.run(on_generation=lambda gen, stats: calls.append(gen))
        assert calls == list(range(1, 11))
        assert result.generations == 10
        assert result.terminated_by == "generations"

    def test_population_size_is_constant(self, regression_problem, config):
        sizes = []
        gp = build_algorithm(regression_problem, config)
        gp.run(on_generation=lambda gen, stats: sizes.append((len(gp.parents), len(gp.offspring))))
        assert [parents for parents, _ in sizes] == [20] * 10
        assert [offspring for _, offspring in sizes[1:]] == [20] * 9
        assert len(gp.offspring) == 20

    def test_elitism_keeps_best(self, regression_problem, config):
        """The best primary objective never gets worse."""
        gp = build_algorithm(regression_problem, config)
        result = gp.run()
        best = [s["best_fitness"] for s in result.generation_stats]
        assert all(b <= a for a, b in zip(best, best[1:]))
        assert result.best[0] == best[-1]

    def test_maximization_ignores_non_finite_children(self, regression_problem):
        """NaN children never outrank a finite elite when maximizing."""
        config = GeneticAlgorithmConfig(
            population_size=10, generations=3, threads=1, seed=1, maximization=True
        )
        creator = BalancedTreeCreator(max_length=MAX_LENGTH)
        generator = BasicOffspringGenerator(
            FirstCallsEvaluator(10),
            SubtreeCrossover(0.9, MAX_DEPTH, MAX_LENGTH),
            OnePointMutation(),
            TournamentSelector(3),
        )
        gp = GeneticProgrammingAlgorithm(
            regression_problem,
            config,
            UniformTreeInitializer(creator, 1, MAX_LENGTH, MAX_DEPTH),
            NormalCoefficientInitializer(),
            generator,
        )
        assert generator.maximization
        assert generator.female_selector.maximization

        result = gp.run()
        assert [s["best_fitness"] for s in result.generation_stats] == [0.3] * 3
        assert result.best[0] == 0.3
        assert all(ind[0] <= 0.3 for ind in result.population)

    def test_trees_respect_limits(self, regression_problem, config):
        """Every parent is structurally valid and within length and depth limits."""
        gp = build_algorithm(regression_problem, config)

        def check(gen, stats):
            for individual in gp.parents:
                individual.genotype.validate()
                assert individual.length <= MAX_LENGTH
                assert individual.genotype.depth <= MAX_DEPTH

        gp.run(on_generation=check)

    def test_fitness_is_finite(self, regression_problem, config):
        gp = build_algorithm(regression_problem, config)
        result = gp.run()
        assert all(np.all(np.isfinite(ind.fitness)) for ind in result.population)

    def test_same_seed_same_result(self, regression_problem, config):
        """Per-slot seeds make runs independent of thread scheduling."""
        first = build_algorithm(regression_problem, config).run(rng=random.Random(5))
        second = build_algorithm(regression_problem, config).run(rng=random.Random(5))
        assert first.best[0] == second.best[0]
        assert first.best.genotype == second.best.genotype

    def test_stats_content(self, regression_problem, config):
        gp = build_algorithm(regression_problem, config)
        result = gp.run()
        stats = result.generation_stats[0]
        for key in ("generation", "best_fitness", "avg_fitness", "avg_length", "evaluations", "elapsed"):
            assert key in stats
        assert stats["generation"] == 1
        assert stats["evaluations"] >= 20


class TestTermination:
    """Test the three ways a run ends early or on schedule."""

    def test_budget_terminates_via_generator(self, regression_problem):
        config = GeneticAlgorithmConfig(
            population_size=20, generations=10, evaluations=30, threads=2, seed=2
        )
        result = build_algorithm(regression_problem, config).run()
        assert result.terminated_by == "generator"
        assert result.generations < 10
        assert len(result.population) == 20

    def test_convergence(self):
        """A target that is a linear function of the only input converges early."""
        x1 = np.linspace(-1, 1, 50)
        dataset = Dataset.from_arrays(["x1", "y"], [x1, 3.0 * x1 + 1.0])
        problem = Problem(dataset, "y", Range(0, 50))
        config = GeneticAlgorithmConfig(population_size=50, generations=50, threads=2, seed=3)
        result = build_algorithm(problem, config).run()
        assert result.terminated_by == "convergence"
        assert result.best[0] < 1e-6
        assert result.generations < 50

    def test_offspring_selection_pressure(self, regression_problem):
        """Offspring selection stops once the attempt limit is reached."""
        config = GeneticAlgorithmConfig(population_size=20, generations=50, threads=2, seed=4)
        gp = build_algorithm(
            regression_problem,
            config,
            generator_cls=OffspringSelectionGenerator,
            max_selection_pressure=2.0,
        )
        result = gp.run()
        assert result.terminated_by == "generator"
        assert len(result.population) == 20


class TestConfiguration:
    """Test configuration validation."""

    def test_pool_size_requires_reinserter(self, regression_problem):
        config = GeneticAlgorithmConfig(population_size=20, pool_size=30, generations=2)
        with pytest.raises(ConfigurationError):
            build_algorithm(regression_problem, config)

    def test_pool_with_reinserter(self, regression_problem):
        config = GeneticAlgorithmConfig(population_size=20, pool_size=30, generations=3, threads=2, seed=6)
        gp = build_algorithm(regression_problem, config, reinserter=KeepBestReinserter())
        result = gp.run()
        assert len(result.population) == 20
        assert len(gp.offspring) == 30

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"population_size": 0},
            {"generations": 0},
            {"crossover_probability": 1.5},
            {"mutation_probability": -0.1},
            {"time_limit": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            GeneticAlgorithmConfig(**kwargs).validate()

    def test_budget_propagates_to_evaluator(self, regression_problem):
        config = GeneticAlgorithmConfig(population_size=10, evaluations=123)
        gp = build_algorithm(regression_problem, config)
        assert gp.generator.evaluator.budget == 123
