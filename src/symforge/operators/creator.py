"""Random tree creators.

Creators emit nodes directly in postorder and then assign variable hashes
drawn uniformly from the input variables.

Two shapes are supported:
- Grow: depth-first recursion, each subtree bounded by the remaining length
- Balanced (BTC): breadth-first expansion towards a target length, which
  produces bushier trees with a controllable length distribution
"""

from __future__ import annotations

from typing import Sequence
import random

from symforge.data.dataset import Variable
from symforge.errors import ConfigurationError
from symforge.expression.nodes import Node
from symforge.expression.tree import Tree
from symforge.expression.types import PrimitiveSet
from symforge.operators.base import Creator


def assign_variables(
    rng: random.Random,
    nodes: Sequence[Node],
    variables: Sequence[Variable],
) -> None:
    """Point every variable node at a uniformly chosen input variable."""
    if any(n.is_variable for n in nodes) and not variables:
        raise ConfigurationError("Cannot create variable nodes without input variables")
    for node in nodes:
        if node.is_variable:
            node.hash_value = rng.choice(variables).hash


def _sample_leaf(rng: random.Random, pset: PrimitiveSet) -> Node:
    return pset.sample_random_symbol(rng, 0, 0)


class GrowTreeCreator:
    """Depth-first random trees bounded by length and depth.

    Args:
        max_depth: Default maximum depth
        max_length: Default maximum number of nodes
    """

    def __init__(self, max_depth: int = 10, max_length: int = 50):
        if max_depth < 1 or max_length < 1:
            raise ConfigurationError("max_depth and max_length must be at least 1")
        self.max_depth = max_depth
        self.max_length = max_length

    def __call__(
        self,
        rng: random.Random,
        pset: PrimitiveSet,
        variables: Sequence[Variable],
        max_length: int | None = None,
        max_depth: int | None = None,
    ) -> Tree:
        max_length = self.max_length if max_length is None else max_length
        max_depth = self.max_depth if max_depth is None else max_depth

        nodes: list[Node] = []
        self._grow(rng, pset, nodes, max(1, max_length), max(1, max_depth))
        assign_variables(rng, nodes, variables)
        return Tree(nodes, copy=False)

    def _grow(
        self,
        rng: random.Random,
        pset: PrimitiveSet,
        nodes: list[Node],
        budget: int,
        depth: int,
    ) -> int:
        """Append one subtree of at most ``budget`` nodes; return its length."""
        min_arity, max_arity = pset.function_arity_limits()
        max_arity = min(max_arity, budget - 1)

        if depth <= 1 or max_arity < max(min_arity, 1):
            nodes.append(_sample_leaf(rng, pset))
            return 1

        node = pset.sample_random_symbol(rng, 0, max_arity)
        remaining = budget - 1
        used = 0
        for k in range(node.arity):
            # Reserve one node for each sibling still to come
            child_budget = remaining - used - (node.arity - k - 1)
            used += self._grow(rng, pset, nodes, child_budget, depth - 1)
        nodes.append(node)
        return used + 1


class BalancedTreeCreator:
    """Breadth-first random trees that aim for an exact length.

    Args:
        max_length: Default target length
        irregularity_bias: Probability of closing an open slot with a leaf
            while the length budget still allows a function
        max_depth: Hard depth limit
    """

    def __init__(
        self,
        max_length: int = 50,
        irregularity_bias: float = 0.0,
        max_depth: int = 1000,
    ):
        if not 0.0 <= irregularity_bias <= 1.0:
            raise ConfigurationError(
                f"irregularity_bias must be in [0, 1], got {irregularity_bias}"
            )
        self.max_length = max_length
        self.irregularity_bias = irregularity_bias
        self.max_depth = max_depth

    def __call__(
        self,
        rng: random.Random,
        pset: PrimitiveSet,
        variables: Sequence[Variable],
        max_length: int | None = None,
        max_depth: int | None = None,
    ) -> Tree:
        target = max(1, self.max_length if max_length is None else max_length)
        max_depth = self.max_depth if max_depth is None else max_depth
        min_arity, max_arity = pset.function_arity_limits()
        has_functions = max_arity > 0

        def sample_function(budget: int) -> Node | None:
            hi = min(max_arity, budget)
            lo = max(min_arity, 1)
            if not has_functions or hi < lo:
                return None
            return pset.sample_random_symbol(rng, lo, hi)

        # Breadth-first layout: (node, level, child indices into bfs)
        bfs: list[tuple[Node, int, list[int]]] = []
        root = sample_function(target - 1) if target > 1 and max_depth > 1 else None
        root = root if root is not None else _sample_leaf(rng, pset)
        bfs.append((root, 1, []))
        total = 1 + root.arity

        head = 0
        while head < len(bfs):
            node, level, children = bfs[head]
            for _ in range(node.arity):
                child = None
                if level + 1 < max_depth and rng.random() >= self.irregularity_bias:
                    child = sample_function(target - total)
                if child is None:
                    child = _sample_leaf(rng, pset)
                total += child.arity
                children.append(len(bfs))
                bfs.append((child, level + 1, []))
            head += 1

        nodes: list[Node] = []
        # Iterative postorder: children left to right, then parent
        stack = [(0, False)]
        while stack:
            i, expanded = stack.pop()
            if expanded:
                nodes.append(bfs[i][0])
                continue
            stack.append((i, True))
            for c in reversed(bfs[i][2]):
                stack.append((c, False))

        assign_variables(rng, nodes, variables)
        return Tree(nodes, copy=False)


class UniformTreeInitializer:
    """Initial trees with a target length drawn uniformly from a range.

    Args:
        creator: Tree creator invoked with the sampled length
        min_length: Smallest target length
        max_length: Largest target length
        max_depth: Depth limit passed to the creator
    """

    def __init__(
        self,
        creator: Creator,
        min_length: int = 1,
        max_length: int = 50,
        max_depth: int = 1000,
    ):
        if not 1 <= min_length <= max_length:
            raise ConfigurationError(
                f"Invalid length range [{min_length}, {max_length}]"
            )
        self.creator = creator
        self.min_length = min_length
        self.max_length = max_length
        self.max_depth = max_depth

    def __call__(
        self,
        rng: random.Random,
        pset: PrimitiveSet,
        variables: Sequence[Variable],
    ) -> Tree:
        length = rng.randint(self.min_length, self.max_length)
        return self.creator(rng, pset, variables, max_length=length, max_depth=self.max_depth)
