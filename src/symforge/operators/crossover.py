"""Subtree crossover for postorder trees."""

from __future__ import annotations

import random

from symforge.expression.tree import Tree


def _select_index(
    rng: random.Random,
    tree: Tree,
    internal_probability: float,
    max_length: int,
    max_depth: int,
) -> int | None:
    """Pick a node whose subtree fits the limits, biased towards functions."""
    leaves = []
    internals = []
    for i, node in enumerate(tree):
        if node.length > max_length or node.depth > max_depth:
            continue
        (leaves if node.is_leaf else internals).append(i)

    if not leaves and not internals:
        return None
    if internals and (not leaves or rng.random() < internal_probability):
        return rng.choice(internals)
    return rng.choice(leaves)


class SubtreeCrossover:
    """Replace a random subtree of the first parent with one from the second.

    The donor subtree is chosen so that the child respects ``max_length`` and
    ``max_depth``.

    Args:
        internal_probability: Probability of choosing function nodes as cut
            points instead of leaves
        max_depth: Maximum depth of the child
        max_length: Maximum length of the child
    """

    def __init__(
        self,
        internal_probability: float = 0.9,
        max_depth: int = 10,
        max_length: int = 50,
    ):
        if not 0.0 <= internal_probability <= 1.0:
            raise ValueError(
                f"internal_probability must be in [0, 1], got {internal_probability}"
            )
        self.internal_probability = internal_probability
        self.max_depth = max_depth
        self.max_length = max_length

    def __call__(self, rng: random.Random, lhs: Tree, rhs: Tree) -> Tree:
        i = _select_index(rng, lhs, self.internal_probability, len(lhs), lhs.depth)
        if i is None:
            return lhs.copy()

        cut = lhs[i]
        length_budget = self.max_length - (len(lhs) - cut.length)
        depth_budget = self.max_depth - cut.level + 1

        j = _select_index(rng, rhs, self.internal_probability, length_budget, depth_budget)
        if j is None:
            return lhs.copy()

        return lhs.replace_subtree(i, rhs.subtree_nodes(j))
