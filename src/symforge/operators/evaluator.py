"""Fitness evaluators.

Evaluators are shared by every worker thread of the evolutionary loop, so
their counters are guarded by a lock. Counting is best-effort with respect to
the budget: several threads may pass ``budget_exhausted()`` concurrently and
overshoot it slightly.
"""

from __future__ import annotations

from typing import Sequence
import logging
import random
import threading

import numpy as np
from scipy.optimize import least_squares

from symforge.data.problem import Problem
from symforge.errors import ConfigurationError
from symforge.evolution.population import Individual
from symforge.expression.interpreter import Interpreter
from symforge.metrics import ERROR_METRICS, linear_scaling

logger = logging.getLogger(__name__)


class Evaluator:
    """Base evaluator with thread-safe evaluation counters.

    Attributes:
        fitness_evaluations: Number of fitness computations
        local_evaluations: Residual evaluations spent by local optimization
        jacobian_evaluations: Jacobian evaluations spent by local optimization
        budget: Maximum total evaluations (None = unlimited)
    """

    n_objectives = 1

    def __init__(self, budget: int | None = None):
        self.budget = budget
        self._lock = threading.Lock()
        self.fitness_evaluations = 0
        self.local_evaluations = 0
        self.jacobian_evaluations = 0

    def __call__(self, rng: random.Random, individual: Individual) -> np.ndarray:
        raise NotImplementedError

    def _count(self, fitness: int = 0, local: int = 0, jacobian: int = 0) -> None:
        with self._lock:
            self.fitness_evaluations += fitness
            self.local_evaluations += local
            self.jacobian_evaluations += jacobian

    @property
    def total_evaluations(self) -> int:
        return self.fitness_evaluations + self.local_evaluations

    def budget_exhausted(self) -> bool:
        return self.budget is not None and self.total_evaluations >= self.budget

    def reset(self) -> None:
        with self._lock:
            self.fitness_evaluations = 0
            self.local_evaluations = 0
            self.jacobian_evaluations = 0

    def stats(self) -> dict[str, int]:
        return {
            "fitness_evaluations": self.fitness_evaluations,
            "local_evaluations": self.local_evaluations,
            "jacobian_evaluations": self.jacobian_evaluations,
            "total_evaluations": self.total_evaluations,
        }


class ErrorEvaluator(Evaluator):
    """Prediction error on the training range.

    Args:
        problem: Regression problem
        interpreter: Tree interpreter (a default one is created if omitted)
        metric: One of ``ERROR_METRICS`` (``r2`` is turned into ``1 - r2``)
        linear_scaling: Fit scale and offset before computing the error
        iterations: Residual evaluations allowed for local optimization of the
            coefficients (0 disables it)
        budget: Maximum total evaluations
    """

    def __init__(
        self,
        problem: Problem,
        interpreter: Interpreter | None = None,
        metric: str = "r2",
        linear_scaling: bool = True,
        iterations: int = 0,
        budget: int | None = None,
    ):
        super().__init__(budget)
        if metric not in ERROR_METRICS:
            raise ConfigurationError(
                f"Unknown error metric: {metric}. Valid: {sorted(ERROR_METRICS)}"
            )
        if iterations < 0:
            raise ConfigurationError(f"iterations must be non-negative, got {iterations}")
        self.problem = problem
        self.interpreter = interpreter or Interpreter()
        self.metric = metric
        self.linear_scaling = linear_scaling
        self.iterations = iterations

    def __call__(self, rng: random.Random, individual: Individual) -> np.ndarray:
        tree = individual.genotype
        dataset = self.problem.dataset
        training = self.problem.training_range
        target = self.problem.target_values(training)

        if self.iterations > 0 and tree.coefficients_count() > 0:
            self.optimize(tree, target)

        self._count(fitness=1)
        estimated = self.interpreter.evaluate(tree, dataset, training)
        if self.linear_scaling:
            scale, offset = linear_scaling(estimated, target)
            estimated = scale * estimated + offset

        with np.errstate(all="ignore"):
            error = ERROR_METRICS[self.metric](estimated, target)
        return np.array([error], dtype=np.float64)

    def optimize(self, tree, target: np.ndarray) -> None:
        """Tune the tree's coefficients in place by nonlinear least squares.

        Uses Levenberg-Marquardt when there are at least as many rows as
        coefficients and trust-region reflective otherwise. The Jacobian comes
        from the interpreter's reverse pass. Numerical failures leave the
        coefficients unchanged.
        """
        dataset = self.problem.dataset
        training = self.problem.training_range
        x0 = tree.get_coefficients()

        def residuals(x: np.ndarray) -> np.ndarray:
            return self.interpreter.evaluate(tree, dataset, training, x) - target

        def jacobian(x: np.ndarray) -> np.ndarray:
            return self.interpreter.jacobian(tree, dataset, training, x)

        method = "lm" if len(target) >= len(x0) else "trf"
        try:
            result = least_squares(
                residuals,
                x0,
                jac=jacobian,
                method=method,
                max_nfev=self.iterations,
            )
        except ConfigurationError:
            raise
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.debug(f"Local optimization failed: {e}")
            self._count(local=1)
            return

        self._count(local=int(result.nfev), jacobian=int(result.njev or 0))
        if np.all(np.isfinite(result.x)) and np.isfinite(result.cost):
            tree.set_coefficients(result.x)


class LengthEvaluator(Evaluator):
    """Tree length as an objective (parsimony pressure)."""

    def __call__(self, rng: random.Random, individual: Individual) -> np.ndarray:
        self._count(fitness=1)
        return np.array([float(individual.genotype.length)])


class MultiEvaluator(Evaluator):
    """Concatenate the objectives of several evaluators.

    The budget and counters of the first evaluator are authoritative.
    """

    def __init__(self, evaluators: Sequence[Evaluator]):
        if not evaluators:
            raise ConfigurationError("MultiEvaluator needs at least one evaluator")
        self.evaluators = list(evaluators)
        self._lock = threading.Lock()

    @property
    def n_objectives(self) -> int:
        return sum(e.n_objectives for e in self.evaluators)

    @property
    def budget(self) -> int | None:
        return self.evaluators[0].budget

    @budget.setter
    def budget(self, value: int | None) -> None:
        self.evaluators[0].budget = value

    @property
    def fitness_evaluations(self) -> int:
        return self.evaluators[0].fitness_evaluations

    @property
    def local_evaluations(self) -> int:
        return self.evaluators[0].local_evaluations

    @property
    def jacobian_evaluations(self) -> int:
        return self.evaluators[0].jacobian_evaluations

    def __call__(self, rng: random.Random, individual: Individual) -> np.ndarray:
        return np.concatenate([e(rng, individual) for e in self.evaluators])

    def reset(self) -> None:
        for e in self.evaluators:
            e.reset()
