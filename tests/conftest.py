"""
Pytest fixtures for SymForge tests.

Datasets are generated from fixed seeds so every test is reproducible.
"""

import random

import numpy as np
import pytest

from symforge.data import Dataset, Problem, Range
from symforge.expression import Interpreter, Node, NodeType, PrimitiveSet, Tree


@pytest.fixture
def rng() -> random.Random:
    """Seeded random generator."""
    return random.Random(42)


@pytest.fixture
def small_dataset() -> Dataset:
    """Two rows: (x1=1, x2=2) and (x1=3, x2=4)."""
    return Dataset.from_arrays(["x1", "x2"], [[1.0, 3.0], [2.0, 4.0]])


@pytest.fixture
def regression_dataset() -> Dataset:
    """200 rows with y = 2 * x1 + sin(x2) + 0.5."""
    gen = np.random.default_rng(7)
    x1 = gen.uniform(-1, 1, 200)
    x2 = gen.uniform(-1, 1, 200)
    y = 2.0 * x1 + np.sin(x2) + 0.5
    return Dataset.from_arrays(["x1", "x2", "y"], [x1, x2, y])


@pytest.fixture
def regression_problem(regression_dataset) -> Problem:
    """Problem over the regression dataset with an arithmetic grammar."""
    return Problem(
        regression_dataset,
        target="y",
        training_range=Range(0, 150),
        test_range=Range(150, 200),
        primitive_set=PrimitiveSet(),
    )


@pytest.fixture
def interpreter() -> Interpreter:
    return Interpreter()


def variable(dataset: Dataset, name: str, weight: float = 1.0) -> Node:
    """Variable node referencing ``name`` in ``dataset``."""
    return Node.variable(dataset.get_variable(name).hash, weight)


def binary(kind: NodeType, lhs: list, rhs: list) -> list:
    """Postorder nodes of ``kind(lhs, rhs)``."""
    return lhs + rhs + [Node.function(kind, 2)]


@pytest.fixture
def make_variable():
    return variable


@pytest.fixture
def sum_tree(small_dataset) -> Tree:
    """x1 + x2."""
    return Tree(binary(
        NodeType.ADD,
        [variable(small_dataset, "x1")],
        [variable(small_dataset, "x2")],
    ))
