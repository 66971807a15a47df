"""Coefficient initializers."""

from __future__ import annotations

import random

from symforge.expression.tree import Tree


class NormalCoefficientInitializer:
    """Draw tunable constants from a normal distribution.

    Variable weights are left untouched.
    """

    def __init__(self, mean: float = 0.0, stddev: float = 1.0):
        self.mean = mean
        self.stddev = stddev

    def __call__(self, rng: random.Random, tree: Tree) -> None:
        for node in tree:
            if node.is_constant and node.optimize:
                node.value = rng.gauss(self.mean, self.stddev)


class UniformCoefficientInitializer:
    """Draw tunable constants uniformly from ``[low, high]``."""

    def __init__(self, low: float = -1.0, high: float = 1.0):
        if low > high:
            raise ValueError(f"low ({low}) must not exceed high ({high})")
        self.low = low
        self.high = high

    def __call__(self, rng: random.Random, tree: Tree) -> None:
        for node in tree:
            if node.is_constant and node.optimize:
                node.value = rng.uniform(self.low, self.high)
