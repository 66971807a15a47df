"""Tree nodes.

A node is one instance of a primitive kind inside a flattened tree. Structural
fields (length, depth, level, parent) are derived by ``Tree.update_nodes`` and
should not be set by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from symforge.expression.types import NodeType, PRIMITIVES


@dataclass
class Node:
    """One primitive inside a postorder tree.

    Attributes:
        type: Primitive kind
        arity: Number of children
        length: Size of the subtree rooted here, including this node
        depth: Height of the subtree rooted here (leaves have depth 1)
        level: Distance from the root (the root has level 1)
        parent: Index of the parent node (the root points at itself)
        hash_value: Hash of the referenced variable for variable nodes
        value: Coefficient (constant value or variable weight)
        optimize: Whether ``value`` is tuned by local optimization
    """

    type: NodeType
    arity: int = 0
    length: int = 1
    depth: int = 1
    level: int = 1
    parent: int = 0
    hash_value: int = 0
    value: float = 1.0
    optimize: bool = False

    def __post_init__(self) -> None:
        if self.type.is_leaf:
            self.arity = 0

    @classmethod
    def constant(cls, value: float, optimize: bool = True) -> "Node":
        return cls(type=NodeType.CONSTANT, value=float(value), optimize=optimize)

    @classmethod
    def variable(
        cls,
        hash_value: int,
        weight: float = 1.0,
        optimize: bool = True,
    ) -> "Node":
        return cls(
            type=NodeType.VARIABLE,
            hash_value=hash_value,
            value=float(weight),
            optimize=optimize,
        )

    @classmethod
    def function(cls, kind: NodeType, arity: int | None = None) -> "Node":
        info = PRIMITIVES[kind]
        if kind.is_leaf:
            raise ValueError(f"{info.name} is a leaf, not a function")
        arity = info.arity if arity is None else arity
        if not info.min_arity <= arity <= info.max_arity:
            raise ValueError(f"Arity {arity} not supported by {info.name}")
        return cls(type=kind, arity=arity)

    @property
    def name(self) -> str:
        return PRIMITIVES[self.type].name

    @property
    def is_leaf(self) -> bool:
        return self.arity == 0

    @property
    def is_constant(self) -> bool:
        return self.type == NodeType.CONSTANT

    @property
    def is_variable(self) -> bool:
        return self.type == NodeType.VARIABLE

    @property
    def is_commutative(self) -> bool:
        return PRIMITIVES[self.type].commutative

    def copy(self) -> "Node":
        return replace(self)

    def __repr__(self) -> str:
        if self.is_constant:
            return f"Node(constant={self.value:g})"
        if self.is_variable:
            return f"Node(variable={self.hash_value:x}, weight={self.value:g})"
        return f"Node({self.name}/{self.arity}, length={self.length})"
