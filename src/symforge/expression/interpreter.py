"""Vectorized tree interpreter with reverse-mode differentiation.

The interpreter walks a postorder tree once, computing a row vector per node
from the vectors of its children. Because every child precedes its parent in
storage, a single left-to-right pass suffices. The cached per-node values are
reused by the reverse pass, which propagates adjoints from the root towards
the leaves and collects one Jacobian column per tunable coefficient.

Non-finite intermediates are not special-cased: NaN and Inf flow through the
arithmetic and are dealt with by whoever consumes the result.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence
import builtins
import functools
import os

import numpy as np

from symforge.data.dataset import Dataset, Range
from symforge.expression.derivatives import DERIVATIVES
from symforge.expression.tree import Tree
from symforge.expression.types import NodeType

# Worker count for parallel evaluation (numpy releases the GIL)
N_EVAL_THREADS = min(os.cpu_count() or 4, 8)


def _fold(op: Callable[[np.ndarray, np.ndarray], np.ndarray], unary: Callable | None = None):
    def fn(*args: np.ndarray) -> np.ndarray:
        if len(args) == 1:
            return unary(args[0]) if unary is not None else args[0]
        return functools.reduce(op, args)
    return fn


def _aq(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a / np.sqrt(1.0 + np.square(b))


FUNCTIONS: dict[NodeType, Callable[..., np.ndarray]] = {
    NodeType.ADD: _fold(np.add),
    NodeType.SUB: _fold(np.subtract, np.negative),
    NodeType.MUL: _fold(np.multiply),
    NodeType.DIV: _fold(np.divide, np.reciprocal),
    NodeType.FMIN: _fold(np.fmin),
    NodeType.FMAX: _fold(np.fmax),
    NodeType.AQ: _aq,
    NodeType.POW: np.power,
    NodeType.ABS: np.abs,
    NodeType.ACOS: np.arccos,
    NodeType.ASIN: np.arcsin,
    NodeType.ATAN: np.arctan,
    NodeType.CBRT: np.cbrt,
    NodeType.CEIL: np.ceil,
    NodeType.COS: np.cos,
    NodeType.COSH: np.cosh,
    NodeType.EXP: np.exp,
    NodeType.FLOOR: np.floor,
    NodeType.LOG: np.log,
    NodeType.LOGABS: lambda x: np.log(np.abs(x)),
    NodeType.LOG1P: np.log1p,
    NodeType.SIN: np.sin,
    NodeType.SINH: np.sinh,
    NodeType.SQRT: np.sqrt,
    NodeType.SQRTABS: lambda x: np.sqrt(np.abs(x)),
    NodeType.SQUARE: np.square,
    NodeType.TAN: np.tan,
    NodeType.TANH: np.tanh,
}


if set(FUNCTIONS) != set(DERIVATIVES):
    _missing = set(FUNCTIONS) ^ set(DERIVATIVES)
    raise RuntimeError(
        f"Forward and derivative tables disagree on: {sorted(k.symbol for k in _missing)}"
    )


class Interpreter:
    """Evaluate trees over a dataset row range.

    Args:
        dtype: Floating point type of the per-node buffers
        batch_size: Evaluate ``evaluate`` calls in contiguous row batches of
            this size (None = all rows at once)
    """

    def __init__(self, dtype: type = np.float64, batch_size: int | None = None):
        if batch_size is not None and batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.dtype = dtype
        self.batch_size = batch_size

    def forward(
        self,
        tree: Tree,
        dataset: Dataset,
        range: Range | None = None,
        coefficients: Sequence[float] | None = None,
    ) -> np.ndarray:
        """Per-node values, shape ``(len(tree), rows)``."""
        rows_slice = dataset.row_slice(range)
        rows = len(dataset.values[rows_slice])
        values = np.empty((len(tree), rows), dtype=self.dtype)

        if coefficients is not None and len(coefficients) != tree.coefficients_count():
            raise ValueError(
                f"Expected {tree.coefficients_count()} coefficients, got {len(coefficients)}"
            )

        k = 0
        with np.errstate(all="ignore"):
            for i, node in enumerate(tree):
                if node.is_leaf:
                    value = node.value
                    if node.optimize and coefficients is not None:
                        value = coefficients[k]
                    if node.optimize:
                        k += 1
                    if node.is_constant:
                        values[i] = value
                    else:
                        values[i] = value * dataset.get_values(node.hash_value)[rows_slice]
                    continue

                args = [values[j] for _, j in tree.children(i)]
                values[i] = FUNCTIONS[node.type](*args)

        return values

    def evaluate(
        self,
        tree: Tree,
        dataset: Dataset,
        range: Range | None = None,
        coefficients: Sequence[float] | None = None,
    ) -> np.ndarray:
        """Value of the tree for every row in ``range``."""
        if self.batch_size is None:
            return self.forward(tree, dataset, range, coefficients)[-1]

        rows_slice = dataset.row_slice(range)
        start, stop, _ = rows_slice.indices(dataset.rows)
        chunks = [
            self.forward(
                tree,
                dataset,
                Range(b, min(b + self.batch_size, stop)),
                coefficients,
            )[-1]
            for b in builtins.range(start, stop, self.batch_size)
        ]
        if not chunks:
            return np.empty(0, dtype=self.dtype)
        return np.concatenate(chunks)

    def evaluate_trees(
        self,
        trees: Sequence[Tree],
        dataset: Dataset,
        range: Range | None = None,
        threads: int | None = None,
    ) -> np.ndarray:
        """Evaluate many trees in parallel, shape ``(len(trees), rows)``."""
        rows = len(dataset.values[dataset.row_slice(range)])
        result = np.empty((len(trees), rows), dtype=self.dtype)
        with ThreadPoolExecutor(max_workers=threads or N_EVAL_THREADS) as executor:
            futures = {
                executor.submit(self.evaluate, tree, dataset, range): i
                for i, tree in enumerate(trees)
            }
            for future, i in futures.items():
                result[i] = future.result()
        return result

    def jacobian(
        self,
        tree: Tree,
        dataset: Dataset,
        range: Range | None = None,
        coefficients: Sequence[float] | None = None,
    ) -> np.ndarray:
        """Derivatives of the output w.r.t. each coefficient, shape ``(rows, n_coef)``."""
        return self.evaluate_with_jacobian(tree, dataset, range, coefficients)[1]

    def evaluate_with_jacobian(
        self,
        tree: Tree,
        dataset: Dataset,
        range: Range | None = None,
        coefficients: Sequence[float] | None = None,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Output values and Jacobian from one forward and one reverse pass."""
        values = self.forward(tree, dataset, range, coefficients)
        rows_slice = dataset.row_slice(range)
        rows = values.shape[1]

        adjoint = np.zeros_like(values)
        adjoint[-1] = 1.0

        with np.errstate(all="ignore"):
            for i in builtins.range(len(tree) - 1, -1, -1):
                node = tree[i]
                if node.is_leaf:
                    continue
                children = [j for _, j in tree.children(i)]
                partials = DERIVATIVES[node.type]([values[j] for j in children], values[i])
                for j, d in zip(children, partials):
                    adjoint[j] += adjoint[i] * d

            columns = []
            for i, node in enumerate(tree):
                if not (node.is_leaf and node.optimize):
                    continue
                if node.is_constant:
                    columns.append(adjoint[i])
                else:
                    columns.append(adjoint[i] * dataset.get_values(node.hash_value)[rows_slice])

        if not columns:
            return values[-1], np.empty((rows, 0), dtype=self.dtype)
        return values[-1], np.column_stack(columns)

