"""Flattened expression tree.

A Tree is a postorder sequence of nodes: children are stored before their
parent and the root is the last element. Each node records the size of its
subtree (``length``) so the subtree rooted at index ``i`` occupies the
contiguous range ``[i - length + 1, i]``. Children are located without
pointers by stepping left over the previous sibling's ``length``.

Trees are treated as immutable once built, except for coefficient values which
local optimization may overwrite in place.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence
import hashlib

import numpy as np

from symforge.errors import InvalidTreeError
from symforge.expression.nodes import Node


class Tree:
    """Postorder expression tree.

    Args:
        nodes: Nodes in postorder (children before parent)
        copy: Copy the nodes instead of taking ownership of them
    """

    __slots__ = ("_nodes",)

    def __init__(self, nodes: Iterable[Node], copy: bool = True):
        self._nodes: list[Node] = [n.copy() for n in nodes] if copy else list(nodes)
        self.update_nodes()

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def update_nodes(self) -> "Tree":
        """Derive length, depth, parent and level fields from arities."""
        nodes = self._nodes
        if not nodes:
            return self

        for i, node in enumerate(nodes):
            if node.arity == 0:
                node.length = 1
                node.depth = 1
                continue

            length = 1
            depth = 0
            j = i - 1
            for _ in range(node.arity):
                if j < 0:
                    raise InvalidTreeError(
                        f"Node {i} ({node.name}) expects {node.arity} children"
                    )
                child = nodes[j]
                child.parent = i
                length += child.length
                depth = max(depth, child.depth)
                j -= child.length
            node.length = length
            node.depth = depth + 1

        root = nodes[-1]
        if root.length != len(nodes):
            raise InvalidTreeError(
                f"Root spans {root.length} nodes but the tree holds {len(nodes)}"
            )

        root.parent = len(nodes) - 1
        root.level = 1
        for i in range(len(nodes) - 2, -1, -1):
            nodes[i].level = nodes[nodes[i].parent].level + 1

        return self

    def validate(self) -> None:
        """Check the structural invariants, raising InvalidTreeError on violation."""
        for i, node in enumerate(self._nodes):
            expected = 1 + sum(self._nodes[j].length for _, j in self.children(i))
            if node.length != expected:
                raise InvalidTreeError(
                    f"Node {i}: length {node.length} != 1 + sum(children) = {expected}"
                )
            if node.is_leaf != node.type.is_leaf:
                raise InvalidTreeError(f"Node {i}: arity {node.arity} invalid for {node.name}")
        if self._nodes and self.root.length != len(self._nodes):
            raise InvalidTreeError("Root length does not match node count")

    def children(self, i: int) -> Iterator[tuple[int, int]]:
        """Yield ``(position, index)`` for the direct children of node ``i``.

        Positions follow argument order: position 0 is the leftmost child,
        which sits furthest from its parent in storage.
        """
        node = self._nodes[i]
        indices = []
        j = i - 1
        for _ in range(node.arity):
            indices.append(j)
            j -= self._nodes[j].length
        indices.reverse()
        return iter(enumerate(indices))

    def indices(self, i: int) -> range:
        """Indices of all nodes in the subtree rooted at ``i``."""
        return range(i - self._nodes[i].length + 1, i + 1)

    def subtree(self, i: int) -> "Tree":
        """Copy of the subtree rooted at ``i``."""
        return Tree(self._nodes[j] for j in self.indices(i))

    def subtree_nodes(self, i: int) -> list[Node]:
        return self._nodes[i - self._nodes[i].length + 1 : i + 1]

    def replace_subtree(self, i: int, nodes: Sequence[Node]) -> "Tree":
        """New tree with the subtree rooted at ``i`` replaced by ``nodes``."""
        start = i - self._nodes[i].length + 1
        return Tree(self._nodes[:start] + list(nodes) + self._nodes[i + 1 :])

    # ------------------------------------------------------------------
    # Coefficients
    # ------------------------------------------------------------------

    def coefficients_count(self) -> int:
        return sum(1 for n in self._nodes if n.is_leaf and n.optimize)

    def get_coefficients(self) -> np.ndarray:
        return np.array(
            [n.value for n in self._nodes if n.is_leaf and n.optimize],
            dtype=np.float64,
        )

    def set_coefficients(self, values: Sequence[float]) -> None:
        values = np.asarray(values, dtype=np.float64)
        if len(values) != self.coefficients_count():
            raise ValueError(
                f"Expected {self.coefficients_count()} coefficients, got {len(values)}"
            )
        k = 0
        for node in self._nodes:
            if node.is_leaf and node.optimize:
                node.value = float(values[k])
                k += 1

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[Node]:
        return self._nodes

    @property
    def length(self) -> int:
        return len(self._nodes)

    @property
    def depth(self) -> int:
        return self.root.depth if self._nodes else 0

    @property
    def root(self) -> Node:
        return self._nodes[-1]

    @property
    def empty(self) -> bool:
        return not self._nodes

    def hash_key(self, with_coefficients: bool = False) -> str:
        """Structural hash for deduplication."""
        tokens = []
        for node in self._nodes:
            if node.is_variable:
                tokens.append(f"v{node.hash_value:x}")
            elif node.is_constant:
                tokens.append("c")
            else:
                tokens.append(f"{node.name}/{node.arity}")
            if with_coefficients and node.is_leaf:
                tokens.append(repr(node.value))
        return hashlib.md5(" ".join(tokens).encode()).hexdigest()[:12]

    @property
    def hash(self) -> str:
        return self.hash_key()

    def copy(self) -> "Tree":
        return Tree(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, i: int) -> Node:
        return self._nodes[i]

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __repr__(self) -> str:
        return f"Tree(length={self.length}, depth={self.depth}, coefficients={self.coefficients_count()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tree):
            return NotImplemented
        return self.hash_key(with_coefficients=True) == other.hash_key(with_coefficients=True)

    def __hash__(self) -> int:
        return hash(self.hash_key(with_coefficients=True))
