"""Tests for dominance degree non-dominated sorting."""

import numpy as np
import pytest

from symforge.evolution import (
    DominanceDegreeSorter,
    Individual,
    crowding_distance,
    dominates,
    rank_population,
)
from symforge.expression import Tree


def brute_force_fronts(fitness: np.ndarray) -> list[list[int]]:
    """Reference sorting by repeated pairwise dominance checks."""
    remaining = list(range(len(fitness)))
    fronts = []
    while remaining:
        front = [
            i for i in remaining
            if not any(dominates(fitness[j], fitness[i]) for j in remaining if j != i)
        ]
        fronts.append(front)
        remaining = [i for i in remaining if i not in front]
    return fronts


class TestDominanceDegreeSorter:
    """Test front assignment."""

    @pytest.fixture
    def sorter(self):
        return DominanceDegreeSorter()

    def test_trade_off_is_one_front(self, sorter):
        fitness = [(1, 4), (2, 3), (3, 2), (4, 1)]
        assert sorter(fitness) == [[0, 1, 2, 3]]

    def test_chain(self, sorter):
        fitness = [(1, 1), (2, 2), (3, 3)]
        assert sorter(fitness) == [[0], [1], [2]]

    def test_identical_points_share_a_front(self, sorter):
        fitness = [(1, 1), (1, 1), (2, 2)]
        assert sorter(fitness) == [[0, 1], [2]]

    def test_single_objective(self, sorter):
        """Ties in one objective stay together, ordered by value."""
        assert sorter([3.0, 1.0, 2.0, 1.0]) == [[1, 3], [2], [0]]

    def test_empty(self, sorter):
        assert sorter(np.empty((0, 2))) == []

    def test_fronts_partition_population(self, sorter):
        gen = np.random.default_rng(0)
        fitness = gen.integers(0, 5, size=(60, 2)).astype(float)
        fronts = sorter(fitness)
        flat = sorted(i for front in fronts for i in front)
        assert flat == list(range(60))

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_matches_brute_force(self, sorter, seed):
        """Random three-objective populations, including duplicates."""
        gen = np.random.default_rng(seed)
        n = int(gen.integers(1, 201))
        fitness = gen.integers(0, 10, size=(n, 3)).astype(float)
        fronts = sorter(fitness)
        expected = brute_force_fronts(fitness)
        assert [sorted(f) for f in fronts] == [sorted(f) for f in expected]

    def test_no_dominance_within_front(self, sorter):
        gen = np.random.default_rng(9)
        fitness = gen.random((100, 3))
        for front in sorter(fitness):
            for i in front:
                assert not any(dominates(fitness[j], fitness[i]) for j in front)


class TestCrowdingDistance:
    """Test crowding distance."""

    def test_small_fronts_are_infinite(self):
        fitness = np.array([[1.0, 2.0], [2.0, 1.0]])
        assert np.all(np.isinf(crowding_distance(fitness, [0, 1])))

    def test_interior_point(self):
        fitness = np.array([[0.0, 4.0], [1.0, 2.0], [4.0, 0.0]])
        distances = crowding_distance(fitness, [0, 1, 2])
        assert np.isinf(distances[0]) and np.isinf(distances[2])
        assert distances[1] == pytest.approx(4.0 / 4.0 + 4.0 / 4.0)


class TestRankPopulation:
    """Test in-place ranking of individuals."""

    def test_assigns_rank(self):
        individuals = [
            Individual(genotype=Tree([]), fitness=np.array(f, dtype=float))
            for f in [(1, 1), (2, 2), (0, 3)]
        ]
        fronts = rank_population(individuals)
        assert fronts == [[0, 2], [1]]
        assert [ind.rank for ind in individuals] == [0, 1, 0]
