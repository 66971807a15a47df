"""Tests comparing reverse-mode derivatives with finite differences."""

import random

import numpy as np
import pytest

from symforge.data import Dataset
from symforge.expression import Interpreter, Node, NodeType, PrimitiveSet, Tree
from symforge.expression.derivatives import DERIVATIVES
from symforge.expression.interpreter import FUNCTIONS
from symforge.expression.types import PRIMITIVES
from symforge.operators import BalancedTreeCreator, NormalCoefficientInitializer

SMOOTH = (
    NodeType.ADD | NodeType.SUB | NodeType.MUL | NodeType.AQ
    | NodeType.SIN | NodeType.COS | NodeType.TANH | NodeType.EXP
    | NodeType.CONSTANT | NodeType.VARIABLE
)

# Every function kind at every arity it can be differentiated at. Ternary div
# is excluded because it has no derivative rule.
KIND_ARITIES = (
    [(kind, 1) for kind, info in PRIMITIVES.items() if info.min_arity == 1]
    + [(kind, 2) for kind, info in PRIMITIVES.items() if info.min_arity <= 2 <= info.max_arity]
    + [(kind, 3) for kind, info in PRIMITIVES.items() if info.max_arity >= 3 and kind != NodeType.DIV]
)


def finite_difference_jacobian(interpreter, tree, dataset, step=1e-6):
    """Central differences of the output w.r.t. each coefficient."""
    x0 = tree.get_coefficients()
    columns = []
    for k in range(len(x0)):
        h = step * max(1.0, abs(x0[k]))
        up = x0.copy()
        down = x0.copy()
        up[k] += h
        down[k] -= h
        columns.append(
            (interpreter.evaluate(tree, dataset, coefficients=up)
             - interpreter.evaluate(tree, dataset, coefficients=down)) / (2 * h)
        )
    return np.column_stack(columns)


class TestDerivativeTable:
    """Test the derivative rule table."""

    def test_every_function_has_a_rule(self):
        assert set(DERIVATIVES) == set(FUNCTIONS)

    def test_fmin_subgradient_picks_first(self):
        """On ties the first child receives the whole gradient."""
        a = np.array([1.0, 2.0])
        b = np.array([1.0, 0.0])
        da, db = DERIVATIVES[NodeType.FMIN]([a, b], np.fmin(a, b))
        np.testing.assert_array_equal(da, [1.0, 0.0])
        np.testing.assert_array_equal(db, [0.0, 1.0])


class TestReverseModeAgainstFiniteDifferences:
    """Random smooth trees: reverse pass matches central differences."""

    @pytest.fixture
    def dataset(self):
        gen = np.random.default_rng(3)
        return Dataset.from_arrays(
            ["x1", "x2", "x3"],
            [gen.uniform(-1, 1, 20) for _ in range(3)],
        )

    @pytest.fixture
    def pset(self):
        pset = PrimitiveSet(SMOOTH)
        for kind in (NodeType.ADD, NodeType.SUB, NodeType.MUL):
            pset.set_arity(kind, 1, 3)
        return pset

    def test_random_trees(self, dataset, pset):
        rng = random.Random(1234)
        creator = BalancedTreeCreator(max_length=30)
        init = NormalCoefficientInitializer(0.0, 1.0)
        interpreter = Interpreter()

        checked = 0
        for _ in range(100):
            tree = creator(rng, pset, dataset.variables, max_length=rng.randint(1, 30))
            init(rng, tree)
            if tree.coefficients_count() == 0:
                continue

            values, jac = interpreter.evaluate_with_jacobian(tree, dataset)
            if not (np.all(np.isfinite(values)) and np.all(np.isfinite(jac))):
                continue
            if np.max(np.abs(values)) > 1e2 or np.max(np.abs(jac)) > 1e2:
                continue

            expected = finite_difference_jacobian(interpreter, tree, dataset)
            if not np.all(np.isfinite(expected)):
                continue

            np.testing.assert_allclose(jac, expected, rtol=1e-4, atol=1e-6)
            checked += 1

        assert checked > 20


class TestEachKindAgainstFiniteDifferences:
    """One small tree per kind and arity, on inputs where every kind is smooth."""

    @pytest.fixture(scope="class")
    def dataset(self):
        gen = np.random.default_rng(11)
        return Dataset.from_arrays(
            ["x1", "x2", "x3"],
            [gen.uniform(0.15, 0.8, 25) for _ in range(3)],
        )

    @pytest.mark.parametrize(
        "kind, arity",
        KIND_ARITIES,
        ids=[f"{PRIMITIVES[kind].name}-{arity}" for kind, arity in KIND_ARITIES],
    )
    def test_kind(self, dataset, make_variable, kind, arity):
        if arity == 1:
            # kind(0.9 * x1 + 0.1), argument stays inside (0, 1)
            nodes = [
                make_variable(dataset, "x1", 0.9),
                Node.constant(0.1),
                Node.function(NodeType.ADD),
                Node.function(kind, 1),
            ]
        else:
            weights = (0.9, 0.7, 0.5)
            nodes = [make_variable(dataset, f"x{i + 1}", weights[i]) for i in range(arity)]
            nodes.append(Node.function(kind, arity))
        tree = Tree(nodes)
        interpreter = Interpreter()

        values, jac = interpreter.evaluate_with_jacobian(tree, dataset)
        assert np.all(np.isfinite(values))
        assert jac.shape == (dataset.rows, tree.coefficients_count())

        expected = finite_difference_jacobian(interpreter, tree, dataset)
        np.testing.assert_allclose(jac, expected, rtol=1e-4, atol=1e-6)
