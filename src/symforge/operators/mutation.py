"""Mutation operators for postorder trees.

Provides various mutation strategies:
- One-point: Perturb one coefficient with Gaussian noise
- Change variable: Point a variable node at a different input
- Change function: Swap a function for another of compatible arity
- Replace subtree: Regrow a random subtree
- Insert subtree: Wrap a random subtree in a new function node
- Remove subtree: Drop one argument of a function, or collapse to a leaf

Every mutator returns a new tree and leaves its input untouched. When a
mutation is not applicable (e.g. no variables to change) a plain copy is
returned.
"""

from __future__ import annotations

from typing import Sequence
import random

from symforge.data.dataset import Variable
from symforge.expression.nodes import Node
from symforge.expression.tree import Tree
from symforge.expression.types import PrimitiveSet
from symforge.operators.base import CoefficientInitializer, Creator, Mutator
from symforge.operators.creator import assign_variables


class OnePointMutation:
    """Add ``N(mean, stddev)`` noise to one randomly chosen coefficient."""

    def __init__(self, mean: float = 0.0, stddev: float = 1.0):
        self.mean = mean
        self.stddev = stddev

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        child = tree.copy()
        candidates = [i for i, n in enumerate(child) if n.is_leaf and n.optimize]
        if not candidates:
            return child
        node = child[rng.choice(candidates)]
        node.value += rng.gauss(self.mean, self.stddev)
        return child


class ChangeVariableMutation:
    """Swap the input referenced by a random variable node."""

    def __init__(self, variables: Sequence[Variable]):
        self.variables = list(variables)

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        child = tree.copy()
        candidates = [i for i, n in enumerate(child) if n.is_variable]
        if not candidates or not self.variables:
            return child
        child[rng.choice(candidates)].hash_value = rng.choice(self.variables).hash
        return child


class ChangeFunctionMutation:
    """Swap a random function node for another enabled kind of the same arity."""

    def __init__(self, pset: PrimitiveSet):
        self.pset = pset

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        child = tree.copy()
        candidates = [i for i, n in enumerate(child) if not n.is_leaf]
        if not candidates:
            return child

        node = child[rng.choice(candidates)]
        kinds = [
            kind
            for kind in self.pset.enabled_kinds()
            if not kind.is_leaf
            and kind != node.type
            and self.pset.frequency(kind) > 0
            and self.pset.arity(kind)[0] <= node.arity <= self.pset.arity(kind)[1]
        ]
        if not kinds:
            return child

        weights = [self.pset.frequency(kind) for kind in kinds]
        node.type = rng.choices(kinds, weights=weights)[0]
        return child


class ReplaceSubtreeMutation:
    """Replace a random subtree with a freshly created one that fits the limits.

    Args:
        creator: Tree creator for the replacement
        pset: Grammar passed to the creator
        variables: Inputs passed to the creator
        max_depth: Maximum depth of the result
        max_length: Maximum length of the result
        coefficient_initializer: Optional initializer applied to the new subtree
    """

    def __init__(
        self,
        creator: Creator,
        pset: PrimitiveSet,
        variables: Sequence[Variable],
        max_depth: int = 10,
        max_length: int = 50,
        coefficient_initializer: CoefficientInitializer | None = None,
    ):
        self.creator = creator
        self.pset = pset
        self.variables = list(variables)
        self.max_depth = max_depth
        self.max_length = max_length
        self.coefficient_initializer = coefficient_initializer

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        i = rng.randrange(len(tree))
        node = tree[i]
        length_budget = self.max_length - (len(tree) - node.length)
        depth_budget = self.max_depth - node.level + 1
        if length_budget < 1 or depth_budget < 1:
            return tree.copy()

        subtree = self.creator(
            rng,
            self.pset,
            self.variables,
            max_length=rng.randint(1, length_budget),
            max_depth=depth_budget,
        )
        if self.coefficient_initializer is not None:
            self.coefficient_initializer(rng, subtree)
        return tree.replace_subtree(i, subtree.nodes)


class InsertSubtreeMutation:
    """Wrap a random subtree as one argument of a new function node.

    The remaining arguments of the new function are freshly created.
    """

    def __init__(
        self,
        creator: Creator,
        pset: PrimitiveSet,
        variables: Sequence[Variable],
        max_depth: int = 10,
        max_length: int = 50,
        coefficient_initializer: CoefficientInitializer | None = None,
    ):
        self.creator = creator
        self.pset = pset
        self.variables = list(variables)
        self.max_depth = max_depth
        self.max_length = max_length
        self.coefficient_initializer = coefficient_initializer

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        # One slot for the new function plus at least one leaf per extra argument
        spare = self.max_length - len(tree) - 1
        min_arity, max_arity = self.pset.function_arity_limits()
        max_arity = min(max_arity, spare + 1)
        if max_arity < max(min_arity, 1):
            return tree.copy()

        i = rng.randrange(len(tree))
        target = tree[i]
        # Arguments of the new function sit one level below the target
        depth_budget = self.max_depth - target.level
        if target.depth > depth_budget:
            return tree.copy()

        function = self.pset.sample_random_symbol(rng, max(min_arity, 1), max_arity)
        position = rng.randrange(function.arity)

        new_nodes: list[Node] = []
        budget = spare - (function.arity - 1)
        for k in range(function.arity):
            if k == position:
                new_nodes.extend(tree.subtree_nodes(i))
                continue
            length = 1 + rng.randint(0, budget) if budget > 0 else 1
            budget -= length - 1
            sibling = self.creator(
                rng, self.pset, self.variables, max_length=length, max_depth=depth_budget
            )
            if self.coefficient_initializer is not None:
                self.coefficient_initializer(rng, sibling)
            new_nodes.extend(sibling.nodes)
        new_nodes.append(function)
        return tree.replace_subtree(i, new_nodes)


class RemoveSubtreeMutation:
    """Remove one argument from a variable-arity function.

    When the parent cannot lose an argument, the subtree is collapsed into a
    single random leaf instead.
    """

    def __init__(self, pset: PrimitiveSet, variables: Sequence[Variable] = ()):
        self.pset = pset
        self.variables = list(variables)

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        if len(tree) < 2:
            return tree.copy()

        i = rng.randrange(len(tree) - 1)
        parent_index = tree[i].parent
        parent = tree[parent_index]

        start = i - tree[i].length + 1
        nodes = [n.copy() for n in tree]

        if parent.arity - 1 >= self.pset.arity(parent.type)[0]:
            nodes[parent_index].arity -= 1
            return Tree(nodes[:start] + nodes[i + 1 :], copy=False)

        if tree[i].is_leaf:
            return tree.copy()

        leaf = self.pset.sample_random_symbol(rng, 0, 0)
        assign_variables(rng, [leaf], self.variables)
        return Tree(nodes[:start] + [leaf] + nodes[i + 1 :], copy=False)


class MultiMutation:
    """Dispatch to one of several mutators, chosen by relative weight."""

    def __init__(self):
        self._mutators: list[Mutator] = []
        self._weights: list[float] = []

    def add(self, mutator: Mutator, weight: float = 1.0) -> "MultiMutation":
        if weight < 0:
            raise ValueError(f"Mutation weight must be non-negative, got {weight}")
        self._mutators.append(mutator)
        self._weights.append(weight)
        return self

    @property
    def mutators(self) -> list[Mutator]:
        return list(self._mutators)

    def __len__(self) -> int:
        return len(self._mutators)

    def __call__(self, rng: random.Random, tree: Tree) -> Tree:
        if not self._mutators or sum(self._weights) <= 0:
            return tree.copy()
        mutator = rng.choices(self._mutators, weights=self._weights)[0]
        return mutator(rng, tree)
