"""Expression trees, primitives and the interpreter."""

from symforge.expression.formatter import InfixFormatter, PostfixFormatter
from symforge.expression.interpreter import Interpreter
from symforge.expression.nodes import Node
from symforge.expression.tree import Tree
from symforge.expression.types import (
    ARITHMETIC,
    FULL,
    NodeType,
    PrimitiveSet,
    format_primitive_set,
    parse_primitive_set_config,
)

__all__ = [
    "InfixFormatter",
    "PostfixFormatter",
    "Interpreter",
    "Node",
    "Tree",
    "ARITHMETIC",
    "FULL",
    "NodeType",
    "PrimitiveSet",
    "format_primitive_set",
    "parse_primitive_set_config",
]
