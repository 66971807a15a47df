"""Non-dominated sorting for multi-objective selection.

The dominance degree sorter (Zhou et al., 2017) replaces pairwise dominance
checks with per-objective comparison matrices. For objective ``k`` the
comparison matrix has ``C[i, j] = 1`` when ``f_k(i) <= f_k(j)``. Summing
the matrices over all ``m`` objectives gives the degree matrix ``D``, where
``D[j, i] == m`` means ``j`` is no worse than ``i`` everywhere. Pairs with
identical fitness vectors have ``D[i, j] == D[j, i] == m`` and are zeroed so
they land in the same front. Fronts are then peeled: an individual belongs to
the current front when no remaining individual has degree ``m`` over it.

Performance optimizations:
- Numba JIT for the comparison matrix construction
- Vectorized front peeling over the degree matrix
"""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

import numba
import numpy as np

if TYPE_CHECKING:
    from symforge.evolution.population import Individual


@numba.jit(nopython=True, cache=True)
def _comparison_matrix(values: np.ndarray, order: np.ndarray) -> np.ndarray:
    """Comparison matrix for one objective given its ascending ``order``."""
    n = len(order)
    c = np.zeros((n, n), dtype=np.int64)
    first = order[0]
    for j in range(n):
        c[first, j] = 1
    for i in range(1, n):
        bi = order[i]
        prev = order[i - 1]
        if values[bi] == values[prev]:
            for j in range(n):
                c[bi, j] = c[prev, j]
        else:
            for j in range(i, n):
                c[bi, order[j]] = 1
    return c


def degree_matrix(fitness: np.ndarray) -> np.ndarray:
    """Dominance degree matrix with identical pairs zeroed."""
    n, m = fitness.shape
    d = np.zeros((n, n), dtype=np.int64)
    for k in range(m):
        column = np.ascontiguousarray(fitness[:, k])
        order = np.argsort(column, kind="stable")
        d += _comparison_matrix(column, order)

    identical = (d == m) & (d.T == m)
    d[identical] = 0
    return d


class DominanceDegreeSorter:
    """Partition a population into non-dominated fronts (minimization)."""

    def __call__(self, fitness: Sequence[Sequence[float]] | np.ndarray) -> list[list[int]]:
        fitness = np.asarray(fitness, dtype=np.float64)
        if fitness.size == 0:
            return []
        if fitness.ndim == 1:
            fitness = fitness[:, None]

        n, m = fitness.shape
        d = degree_matrix(fitness)

        fronts: list[list[int]] = []
        remaining = np.arange(n)
        while remaining.size:
            sub = d[np.ix_(remaining, remaining)]
            # Column i is dominated if some remaining row reaches degree m
            in_front = ~(sub == m).any(axis=0)
            fronts.append(remaining[in_front].tolist())
            remaining = remaining[~in_front]
        return fronts

    def sort(self, fitness: Sequence[Sequence[float]] | np.ndarray) -> list[list[int]]:
        return self(fitness)


def dominates(a: Sequence[float], b: Sequence[float]) -> bool:
    """True if ``a`` is no worse than ``b`` everywhere and better somewhere."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return bool(np.all(a <= b) and np.any(a < b))


def crowding_distance(fitness: np.ndarray, front: Sequence[int]) -> np.ndarray:
    """Crowding distance of each member of ``front``.

    Boundary points get infinite distance; interior points accumulate the
    normalized gap between their neighbours on every objective.
    """
    fitness = np.asarray(fitness, dtype=np.float64)
    n = len(front)
    distances = np.zeros(n)
    if n < 3:
        distances[:] = np.inf
        return distances

    values = fitness[list(front)]
    for j in range(values.shape[1]):
        sorted_idx = np.argsort(values[:, j], kind="stable")
        distances[sorted_idx[0]] = np.inf
        distances[sorted_idx[-1]] = np.inf

        obj_range = values[sorted_idx[-1], j] - values[sorted_idx[0], j]
        if obj_range == 0:
            continue

        gaps = (values[sorted_idx[2:], j] - values[sorted_idx[:-2], j]) / obj_range
        distances[sorted_idx[1:-1]] += gaps

    return distances


def rank_population(
    individuals: Sequence["Individual"],
    sorter: DominanceDegreeSorter | None = None,
    maximization: bool = False,
) -> list[list[int]]:
    """Assign ``rank`` and ``crowding_distance`` in place and return the fronts.

    With ``maximization`` the primary objective is negated before sorting;
    the other objectives are always minimized.
    """
    if not individuals:
        return []
    sorter = sorter or DominanceDegreeSorter()
    fitness = np.vstack([ind.fitness for ind in individuals])
    if maximization:
        fitness[:, 0] = -fitness[:, 0]
    fronts = sorter(fitness)
    for rank, front in enumerate(fronts):
        distances = crowding_distance(fitness, front)
        for i, dist in zip(front, distances):
            individuals[i].rank = rank
            individuals[i].crowding_distance = float(dist)
    return fronts
